"""The wrapped collection renderer.

The collaborator is a black box: given a request it produces markup,
and for unsupported views it fails on its own terms. The default
implementation emits the mount point the client-side widget hydrates.
"""

import json
from typing import Protocol

from jinja2 import BaseLoader, Environment

from collection_fallback.views.schemas import CollectionRequest


class Collaborator(Protocol):
    def render(self, request: CollectionRequest) -> str: ...


MOUNT_TEMPLATE = """\
<div class="notion-collection" data-block-id="{{ block_id }}" data-props="{{ props }}"></div>"""

_env = Environment(loader=BaseLoader(), autoescape=True)
_mount_template = _env.from_string(MOUNT_TEMPLATE)


class MountPointCollaborator:
    """Renders a hydration mount point carrying the original props."""

    def render(self, request: CollectionRequest) -> str:
        props = request.model_dump(mode="json", by_alias=False, exclude_none=True)
        return _mount_template.render(
            block_id=request.block_id or "",
            props=json.dumps(props, sort_keys=True),
        )
