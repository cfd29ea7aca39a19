"""Render-surface watcher.

A RenderSurface is anything that can report structural changes to the
rendered output of the wrapped collaborator: nodes added, attributes
changed, text changed. The detector subscribes for the duration of a
request and reads one snapshot right after subscribing, since the
failure may already be on screen before observation starts.
"""

import logging
from typing import Callable, Optional, Protocol

from .schemas import ChangeKind, SurfaceChange, SurfaceNode

logger = logging.getLogger(__name__)

SurfaceListener = Callable[[SurfaceChange], None]


class Subscription:
    """Handle returned by subscribe(); cancel() is idempotent."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._cancel()


class RenderSurface(Protocol):
    """Change notifications for a rendered subtree."""

    def subscribe(self, listener: SurfaceListener) -> Subscription: ...

    def snapshot(self) -> list[SurfaceNode]: ...


class InMemoryRenderSurface:
    """Render surface backed by a flat list of nodes.

    Used by the HTTP sessions (the browser reports changes) and by
    in-process hosts that render into it directly.
    """

    def __init__(self, nodes: Optional[list[SurfaceNode]] = None):
        self._nodes: list[SurfaceNode] = list(nodes or [])
        self._listeners: list[SurfaceListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: SurfaceListener) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    def snapshot(self) -> list[SurfaceNode]:
        return list(self._nodes)

    def _notify(self, change: SurfaceChange) -> None:
        # Copy: a listener may unsubscribe while handling the change
        for listener in list(self._listeners):
            listener(change)

    def append(self, node: SurfaceNode) -> None:
        """Add a node to the surface."""
        self._nodes.append(node)
        self._notify(SurfaceChange(kind=ChangeKind.ADDED, node=node))

    def set_attribute(self, index: int, name: str, value: str) -> None:
        """Change an attribute on an existing node."""
        node = self._nodes[index]
        node.attributes[name] = value
        if name == "class":
            node.class_names = value.split()
        self._notify(
            SurfaceChange(kind=ChangeKind.ATTRIBUTES, node=node, attribute_name=name)
        )

    def set_text(self, index: int, text: str) -> None:
        """Replace the text of an existing node."""
        node = self._nodes[index]
        node.text = text
        self._notify(SurfaceChange(kind=ChangeKind.TEXT, node=node))

    def apply(self, change: SurfaceChange) -> None:
        """Record a change reported by a remote host and notify listeners."""
        if change.kind == ChangeKind.ADDED:
            self._nodes.append(change.node)
        logger.debug(f"Surface change reported: {change.kind.value}")
        self._notify(change)
