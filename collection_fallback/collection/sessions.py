"""In-memory session store for components driven over HTTP.

A browser host mounts a request, then reports what it sees (surface
changes, collaborator diagnostics, frame events) against the session
id. Sessions live until the host deletes them or until they sit idle
longer than the configured TTL; idle sessions are swept on create and
lookup. Everything is per process.
"""

import logging
import uuid
from typing import Optional

from collection_fallback.config import get_settings
from collection_fallback.detection.scheduler import AsyncioScheduler, Scheduler
from collection_fallback.views.schemas import CollectionRequest

from .collaborator import Collaborator, MountPointCollaborator
from .component import CollectionFallback

logger = logging.getLogger(__name__)


class SessionStore:
    """Mounted components keyed by session id."""

    def __init__(
        self,
        collaborator: Optional[Collaborator] = None,
        scheduler: Optional[Scheduler] = None,
        idle_ttl: Optional[float] = None,
    ):
        self.collaborator = collaborator or MountPointCollaborator()
        self.scheduler = scheduler
        self.idle_ttl = (
            idle_ttl if idle_ttl is not None else get_settings().session_idle_ttl_seconds
        )
        # Only now() is used here, so no event loop is bound
        self._clock: Scheduler = scheduler or AsyncioScheduler()
        self._sessions: dict[str, CollectionFallback] = {}
        self._last_seen: dict[str, float] = {}

    def create(self, request: CollectionRequest) -> tuple[str, CollectionFallback]:
        """Mount a component for a request and register it."""
        self.evict_idle()
        session_id = uuid.uuid4().hex
        component = CollectionFallback(
            request,
            collaborator=self.collaborator,
            scheduler=self.scheduler or AsyncioScheduler(),
        )
        component.mount()
        self._sessions[session_id] = component
        self._last_seen[session_id] = self._clock.now()
        logger.info(f"Created session {session_id} ({component.state.value})")
        return session_id, component

    def get(self, session_id: str) -> Optional[CollectionFallback]:
        """Look up a session and mark it active."""
        self.evict_idle()
        component = self._sessions.get(session_id)
        if component is not None:
            self._last_seen[session_id] = self._clock.now()
        return component

    def delete(self, session_id: str) -> bool:
        """Unmount and forget a session."""
        component = self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)
        if component is None:
            return False
        component.unmount()
        logger.info(f"Deleted session {session_id}")
        return True

    def evict_idle(self) -> int:
        """Unmount sessions idle longer than the TTL. Returns how many."""
        if self.idle_ttl <= 0:
            return 0
        cutoff = self._clock.now() - self.idle_ttl
        expired = [sid for sid, seen in self._last_seen.items() if seen <= cutoff]
        for session_id in expired:
            self.delete(session_id)
        if expired:
            logger.info(f"Evicted {len(expired)} idle sessions")
        return len(expired)

    def list_keys(self) -> list[str]:
        return list(self._sessions.keys())

    def count(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        """Unmount every session."""
        for session_id in list(self._sessions):
            self.delete(session_id)


# Global store instance
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get the global session store."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
