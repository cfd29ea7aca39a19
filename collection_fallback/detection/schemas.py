"""Detection schemas — surface changes, diagnostic messages, detector state."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class DetectionPhase(str, Enum):
    """Detector lifecycle states."""
    IDLE = "idle"
    WATCHING = "watching"
    CONFIRMED = "confirmed"
    SETTLED = "settled"
    UNMOUNTED = "unmounted"


TERMINAL_PHASES = frozenset(
    {DetectionPhase.CONFIRMED, DetectionPhase.SETTLED, DetectionPhase.UNMOUNTED}
)


class SignalChannel(str, Enum):
    """Where a failure signal came from."""
    SURFACE = "surface"
    DIAGNOSTIC = "diagnostic"
    TIMEOUT = "timeout"


class ChangeKind(str, Enum):
    """Kinds of render-surface change."""
    ADDED = "added"
    ATTRIBUTES = "attributes"
    TEXT = "text"


class SurfaceNode(BaseModel):
    """A rendered element as seen by the surface watcher."""

    tag: str = "div"
    class_names: list[str] = Field(default_factory=list)
    text: str = ""
    attributes: dict[str, str] = Field(default_factory=dict)


class SurfaceChange(BaseModel):
    """One structural change on the render surface."""

    kind: ChangeKind
    node: SurfaceNode
    attribute_name: Optional[str] = None


class DiagnosticMessage(BaseModel):
    """A message from the collaborator's diagnostic stream."""

    level: str = "warning"
    message: str
    payload: Optional[dict[str, Any]] = Field(
        default=None,
        description="Structured data logged alongside the message, "
        "e.g. the view record the collaborator choked on",
    )


class DetectionSignal(BaseModel):
    """The signal that confirmed a failed render."""

    channel: SignalChannel
    detail: str = ""


class DetectionState(BaseModel):
    """Snapshot of a detector for one request."""

    phase: DetectionPhase = DetectionPhase.IDLE
    suspected: bool = False
    confirmed: bool = False
    started_at: Optional[float] = None
    elapsed: float = 0.0
    signal: Optional[DetectionSignal] = None
    recovered_view_id: Optional[str] = None
