"""Identifier resolver — content id and view id from whatever the request carries.

Sources are tried in a fixed priority order until one yields a
non-empty id. content_id and view_id are resolved independently:

content_id:
1. block_id supplied by the host (the container block)
2. hint_id supplied by the host
3. first graph block whose type marks a view container
4. the first view's format.collection_pointer.id

view_id:
1. declared views (the record's own id, else its key)
2. the view_ids hint list
3. the graph-level view index
4. view_ids referenced by the container block

Upstream ids are hyphen-delimited; the embed target wants them bare,
so every id is canonicalized by dropping the separator.
"""

import logging
from typing import Callable, Iterable, Optional

from collection_fallback.config import FallbackSettings, get_settings
from collection_fallback.views.schemas import BlockRecord, CollectionRequest

from .schemas import ResolvedIdentity

logger = logging.getLogger(__name__)


def canonicalize_id(raw: Optional[str], separator: str = "-") -> Optional[str]:
    """Strip the separator; None for missing or empty ids."""
    if not raw:
        return None
    canonical = raw.strip().replace(separator, "")
    return canonical or None


def _first_id(candidates: Iterable[Optional[str]], separator: str) -> Optional[str]:
    for candidate in candidates:
        canonical = canonicalize_id(candidate, separator)
        if canonical:
            return canonical
    return None


def find_container_block(
    request: CollectionRequest,
    container_types: Iterable[str],
) -> Optional[tuple[str, BlockRecord]]:
    """First graph block whose type marks it as a view container."""
    if request.graph is None:
        return None
    types = set(container_types)
    for block_key, block in request.graph.blocks.items():
        if block.type in types:
            return block_key, block
    return None


# -- content id sources --


def _content_from_block_id(request, settings, container):
    return request.block_id


def _content_from_hint_id(request, settings, container):
    return request.hint_id


def _content_from_graph_container(request, settings, container):
    if container is None:
        return None
    block_key, block = container
    return block_key or block.id


def _content_from_format_pointer(request, settings, container):
    if request.descriptor is None:
        return None
    first = request.descriptor.first()
    if first is None:
        return None
    _, view = first
    if view.format and view.format.collection_pointer:
        return view.format.collection_pointer.id
    return None


# -- view id sources --


def _view_from_declared(request, settings, container):
    if request.descriptor is None:
        return None
    return _first_id(
        (view.id or key for key, view in request.descriptor.views.items()),
        settings.id_separator,
    )


def _view_from_hints(request, settings, container):
    return _first_id(request.view_ids, settings.id_separator)


def _view_from_graph_index(request, settings, container):
    if request.graph is None:
        return None
    return _first_id(
        (view.id or key for key, view in request.graph.views.items()),
        settings.id_separator,
    )


def _view_from_container(request, settings, container):
    if container is None:
        return None
    _, block = container
    return _first_id(block.view_ids, settings.id_separator)


Source = Callable[
    [CollectionRequest, FallbackSettings, Optional[tuple[str, BlockRecord]]],
    Optional[str],
]

CONTENT_ID_SOURCES: list[tuple[str, Source]] = [
    ("block_id", _content_from_block_id),
    ("hint_id", _content_from_hint_id),
    ("graph_container", _content_from_graph_container),
    ("format_pointer", _content_from_format_pointer),
]

VIEW_ID_SOURCES: list[tuple[str, Source]] = [
    ("declared_view", _view_from_declared),
    ("view_hint", _view_from_hints),
    ("graph_view_index", _view_from_graph_index),
    ("container_block", _view_from_container),
]


def _try_sources(sources, request, settings, container) -> tuple[Optional[str], Optional[str]]:
    for source_name, source in sources:
        value = canonicalize_id(source(request, settings, container), settings.id_separator)
        if value:
            return value, source_name
    return None, None


def resolve_identity(
    request: CollectionRequest,
    settings: Optional[FallbackSettings] = None,
) -> ResolvedIdentity:
    """Resolve content and view ids for a request.

    Returns an identity with content_id None when nothing yields an id;
    callers treat that as "no fallback possible", not as an error.
    """
    settings = settings or get_settings()
    container = find_container_block(request, settings.container_block_types)

    content_id, content_source = _try_sources(
        CONTENT_ID_SOURCES, request, settings, container
    )
    view_id, view_source = _try_sources(VIEW_ID_SOURCES, request, settings, container)

    if content_id is None:
        logger.debug("No content id could be resolved, fallback unavailable")
    else:
        logger.debug(
            f"Resolved content id {content_id} from {content_source}, "
            f"view id {view_id} from {view_source}"
        )

    return ResolvedIdentity(
        content_id=content_id,
        view_id=view_id,
        content_source=content_source,
        view_source=view_source,
    )
