"""Fallback schemas — retry progress and frame access results."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class FallbackStatus(str, Enum):
    """Frame rendering states."""
    EMBEDDING = "embedding"
    LOADED = "loaded"
    CSP_ERROR = "csp_error"
    LOAD_EXHAUSTED = "load_exhausted"


TERMINAL_STATUSES = frozenset({FallbackStatus.CSP_ERROR, FallbackStatus.LOAD_EXHAUSTED})


class RenderAttempt(BaseModel):
    """Retry progress for the current identity."""

    url_variant: int = Field(default=1, ge=1, le=5)
    csp_suspected: bool = False
    load_failed: bool = False
    status: FallbackStatus = FallbackStatus.EMBEDDING
    failures: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class FrameAccess(str, Enum):
    """Outcome of the post-load access check."""
    ACCESSIBLE = "accessible"
    CROSS_ORIGIN = "cross_origin"
    POLICY_BLOCKED = "policy_blocked"
    UNKNOWN = "unknown"


class FrameProbeResult(BaseModel):
    """What a host saw when it tried to look inside the loaded frame."""

    readable: bool = Field(
        default=False,
        description="The frame document could be read",
    )
    error: Optional[str] = Field(
        default=None,
        description="Error raised while reading the frame, if any",
    )
    location: Optional[str] = Field(
        default=None,
        description="Frame location when readable (about:blank means replaced)",
    )


class EmbedPolicy(BaseModel):
    """Result of a header preflight against the embed target."""

    url: str
    blocked: bool = False
    reason: Optional[str] = None
    status_code: Optional[int] = None


class EmbedVariant(BaseModel):
    """One candidate embed URL."""

    variant: int
    name: str
    url: str


class PreflightRequest(BaseModel):
    """Header preflight against an embed URL."""

    url: str
    embedding_origin: Optional[str] = Field(
        default=None,
        description="Origin of the page that will host the frame",
    )
