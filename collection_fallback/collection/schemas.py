"""Collection component schemas — what the host page receives."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from collection_fallback.detection.schemas import DetectionState
from collection_fallback.fallback.schemas import RenderAttempt
from collection_fallback.identity.schemas import ResolvedIdentity


class VisualState(str, Enum):
    """Which of the mutually exclusive renderings is active."""
    NATIVE = "native"
    EMBED = "embed"
    LINK_OUT = "link_out"


class RenderOutput(BaseModel):
    """Renderable unit for the host page."""

    state: VisualState
    html: str
    kind: str = Field(description="Declared view kind, or 'unknown'")
    identity: ResolvedIdentity
    url: Optional[str] = Field(
        default=None,
        description="Embed URL (embed) or external link (link_out)",
    )
    detection: Optional[DetectionState] = None
    attempt: Optional[RenderAttempt] = None
    mounted: bool = True


class ResolveResponse(BaseModel):
    """Classification and identity for a request, without mounting it."""

    kind: str
    is_map: bool
    identity: ResolvedIdentity
    detection_required: bool = Field(
        description="True when the kind is unknown and a fallback is possible"
    )


class SessionResponse(BaseModel):
    """A mounted session and its current output."""

    session_id: str
    output: RenderOutput
