"""View classifier — the declared kind of the requested view, if known."""

import logging
from typing import Iterable, Optional

from .schemas import ContentGraph, ViewDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_KIND = "unknown"
MAP_KIND = "map"

DEFAULT_MAP_KINDS = ("map", "map_view", "map-view")


def _normalize_kind(kind: str) -> str:
    return kind.strip().lower()


def is_map_kind(kind: Optional[str], map_kinds: Iterable[str] = DEFAULT_MAP_KINDS) -> bool:
    """Whether a kind belongs to the map equivalence set."""
    if not kind:
        return False
    return _normalize_kind(kind) in {_normalize_kind(k) for k in map_kinds}


def classify_view_kind(
    descriptor: Optional[ViewDescriptor],
    graph: Optional[ContentGraph],
    map_kinds: Iterable[str] = DEFAULT_MAP_KINDS,
) -> str:
    """Return the declared kind of the first view, or "unknown".

    Both the descriptor and its backing graph must be present; the
    provider often omits them, so "unknown" is the common answer and
    not a fault. Every spelling of the map kind is reported as "map".
    """
    if descriptor is None or graph is None:
        logger.debug("No view metadata available, kind unknown")
        return UNKNOWN_KIND

    first = descriptor.first()
    if first is None:
        logger.debug("View descriptor is empty, kind unknown")
        return UNKNOWN_KIND

    view_key, view = first
    kind = _normalize_kind(view.kind)
    if not kind:
        logger.debug(f"View {view_key} declares no kind")
        return UNKNOWN_KIND

    if is_map_kind(kind, map_kinds):
        logger.debug(f"View {view_key} declares map kind '{view.kind}'")
        return MAP_KIND

    logger.debug(f"View {view_key} declares kind '{kind}'")
    return kind
