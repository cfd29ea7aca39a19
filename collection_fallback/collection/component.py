"""Collection component — one rendering request from mount to unmount.

Routing on mount:
- no content id: passthrough only, nothing to fall back to
- declared map kind: straight to the fallback embed, no detection
- unknown kind: passthrough while the detector watches; confirmation
  (surface, diagnostic or timeout) swaps in the fallback embed
- any other declared kind: passthrough

The visual state is derived from one place (the fallback renderer, if
any), so native, embed and link-out can never be active together.
"""

import logging
import uuid
from typing import Optional

from collection_fallback.config import FallbackSettings, get_settings
from collection_fallback.detection.detector import UnsupportedRenderDetector
from collection_fallback.detection.diagnostics import DiagnosticEmitter, get_logging_bridge
from collection_fallback.detection.scheduler import Scheduler
from collection_fallback.detection.schemas import DetectionSignal
from collection_fallback.detection.signals import SignalRegistry, get_signal_registry
from collection_fallback.detection.surface import InMemoryRenderSurface, RenderSurface
from collection_fallback.fallback.renderer import FallbackRenderer, FrameProbe
from collection_fallback.fallback.schemas import FrameAccess, FrameProbeResult
from collection_fallback.identity.resolver import resolve_identity
from collection_fallback.identity.schemas import ResolvedIdentity
from collection_fallback.views.classifier import MAP_KIND, UNKNOWN_KIND, classify_view_kind
from collection_fallback.views.schemas import CollectionRequest

from .collaborator import Collaborator
from .schemas import RenderOutput, VisualState

logger = logging.getLogger(__name__)


class CollectionFallback:
    """Wraps the collaborator for one request and falls back when it fails."""

    def __init__(
        self,
        request: CollectionRequest,
        collaborator: Collaborator,
        scheduler: Scheduler,
        surface: Optional[RenderSurface] = None,
        diagnostics: Optional[DiagnosticEmitter] = None,
        settings: Optional[FallbackSettings] = None,
        signals: Optional[SignalRegistry] = None,
        probe: Optional[FrameProbe] = None,
        bridge_logs: bool = False,
        request_key: Optional[str] = None,
    ):
        self.request = request
        self.collaborator = collaborator
        self.scheduler = scheduler
        self.surface = surface if surface is not None else InMemoryRenderSurface()
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticEmitter()
        self.settings = settings or get_settings()
        self.signals = signals or get_signal_registry()
        self.probe = probe
        self.bridge_logs = bridge_logs
        self.request_key = request_key or uuid.uuid4().hex

        self.kind: str = UNKNOWN_KIND
        self.identity = ResolvedIdentity()
        self.detector: Optional[UnsupportedRenderDetector] = None
        self.fallback: Optional[FallbackRenderer] = None
        self.fallback_mounts = 0
        self.mounted = False
        self._passthrough_html: Optional[str] = None

    @property
    def diagnostic_logger_name(self) -> str:
        """Logger the collaborator should report through for this request."""
        return f"{self.settings.diagnostic_logger}.{self.request_key}"

    # -- lifecycle --

    def mount(self) -> RenderOutput:
        """Classify, resolve, and pick the initial rendering."""
        if self.mounted:
            return self.render()
        self.mounted = True

        self.kind = classify_view_kind(
            self.request.descriptor, self.request.graph, self.settings.map_kinds
        )
        self.identity = resolve_identity(self.request, self.settings)

        if not self.identity.can_fall_back:
            logger.info(f"No content id for {self.kind} view, passthrough only")
        elif self.kind == MAP_KIND:
            logger.info(f"Declared map view {self.identity.content_id}, embedding")
            self._mount_fallback(self.identity)
        elif self.kind == UNKNOWN_KIND:
            self._start_detection()
        else:
            logger.debug(f"Declared {self.kind} view, passthrough")

        return self.render()

    def unmount(self) -> None:
        """Stop detection and pending frame checks synchronously."""
        if not self.mounted:
            return
        self.mounted = False
        if self.detector is not None:
            self.detector.unmount()
        if self.fallback is not None:
            self.fallback.dispose()
        logger.debug(f"Unmounted collection {self.identity.content_id}")

    def settle(self) -> None:
        """Host reports the native render succeeded."""
        if self.detector is not None:
            self.detector.settle()

    def _start_detection(self) -> None:
        bridge = get_logging_bridge(self.settings.diagnostic_logger) if self.bridge_logs else None
        self.detector = UnsupportedRenderDetector(
            surface=self.surface,
            diagnostics=self.diagnostics,
            scheduler=self.scheduler,
            on_confirmed=self._on_detection_confirmed,
            timeout=self.settings.detection_timeout_seconds,
            signals=self.signals,
            bridge=bridge,
            bridge_key=self.request_key,
            map_kinds=self.settings.map_kinds,
            id_separator=self.settings.id_separator,
        )
        self.detector.start()

    def _on_detection_confirmed(self, signal: DetectionSignal) -> None:
        if not self.mounted:
            return
        identity = self.identity
        recovered = self.detector.recovered_view_id if self.detector else None
        if identity.view_id is None and recovered:
            identity = identity.with_view_id(recovered, "diagnostic_payload")
            self.identity = identity
        self._mount_fallback(identity)

    def _mount_fallback(self, identity: ResolvedIdentity) -> None:
        if self.fallback is not None:
            return
        self.fallback = FallbackRenderer(
            identity,
            scheduler=self.scheduler,
            settings=self.settings,
            probe=self.probe,
            signals=self.signals,
        )
        self.fallback_mounts += 1

    # -- frame events --

    def frame_loaded(self) -> None:
        if self.fallback is None or not self.mounted:
            logger.debug("Frame load reported with no active fallback, ignored")
            return
        self.fallback.frame_loaded()

    def frame_failed(self) -> None:
        if self.fallback is None or not self.mounted:
            logger.debug("Frame error reported with no active fallback, ignored")
            return
        self.fallback.frame_failed()

    def report_frame_access(self, result: FrameProbeResult) -> Optional[FrameAccess]:
        if self.fallback is None or not self.mounted:
            return None
        return self.fallback.report_frame_access(result)

    # -- output --

    @property
    def state(self) -> VisualState:
        if self.fallback is None:
            return VisualState.NATIVE
        if self.fallback.is_degraded:
            return VisualState.LINK_OUT
        return VisualState.EMBED

    def _passthrough(self) -> str:
        if self._passthrough_html is None:
            self._passthrough_html = self.collaborator.render(self.request)
        return self._passthrough_html

    def render(self) -> RenderOutput:
        """Current renderable unit."""
        state = self.state
        url = None
        if state == VisualState.NATIVE:
            html = self._passthrough()
        else:
            html = self.fallback.render()
            url = (
                self.fallback.link_out_url
                if state == VisualState.LINK_OUT
                else self.fallback.current_url
            )

        return RenderOutput(
            state=state,
            html=html,
            kind=self.kind,
            identity=self.identity,
            url=url,
            detection=self.detector.state() if self.detector else None,
            attempt=self.fallback.attempt if self.fallback else None,
            mounted=self.mounted,
        )
