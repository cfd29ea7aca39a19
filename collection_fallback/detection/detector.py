"""Unsupported-render detector.

Decides whether the wrapped collaborator is failing to render a view
whose kind was never declared. Three channels race, and any one of them
confirms:

- surface: each structural change is checked for failure markers, and
  the current snapshot is checked once as soon as watching starts
- diagnostic: messages on the request's diagnostic emitter are matched
  against known failure phrases; a structured payload naming a view
  kind and id can also recover a view id nobody else knew
- timeout: a single timer confirms if nothing else has

Lifecycle: idle -> watching -> confirmed | settled | unmounted. Every
terminal transition tears the channels down first; anything arriving
after that is ignored.
"""

import logging
from typing import Callable, Iterable, Optional

from collection_fallback.identity.resolver import canonicalize_id
from collection_fallback.views.classifier import DEFAULT_MAP_KINDS, is_map_kind

from .diagnostics import DiagnosticEmitter, LoggingBridge
from .scheduler import Scheduler, TimerHandle
from .schemas import (
    DetectionPhase,
    DetectionSignal,
    DetectionState,
    DiagnosticMessage,
    SignalChannel,
    SurfaceChange,
    TERMINAL_PHASES,
)
from .signals import SignalRegistry, get_signal_registry
from .surface import RenderSurface, Subscription

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[DetectionSignal], None]


class UnsupportedRenderDetector:
    """Watches one request for signs of an unsupported render."""

    def __init__(
        self,
        surface: RenderSurface,
        diagnostics: DiagnosticEmitter,
        scheduler: Scheduler,
        on_confirmed: ConfirmCallback,
        timeout: float,
        signals: Optional[SignalRegistry] = None,
        bridge: Optional[LoggingBridge] = None,
        bridge_key: Optional[str] = None,
        map_kinds: Iterable[str] = DEFAULT_MAP_KINDS,
        id_separator: str = "-",
    ):
        self.surface = surface
        self.diagnostics = diagnostics
        self.scheduler = scheduler
        self.on_confirmed = on_confirmed
        self.timeout = timeout
        self.signals = signals or get_signal_registry()
        self.bridge = bridge
        self.bridge_key = bridge_key
        self.map_kinds = tuple(map_kinds)
        self.id_separator = id_separator

        self._phase = DetectionPhase.IDLE
        self._suspected = False
        self._started_at: Optional[float] = None
        self._ended_at: Optional[float] = None
        self._signal: Optional[DetectionSignal] = None
        self._recovered_view_id: Optional[str] = None

        self._surface_sub: Optional[Subscription] = None
        self._diagnostic_sub: Optional[Subscription] = None
        self._timer: Optional[TimerHandle] = None
        self._bridge_sub: Optional[Subscription] = None

    # -- state --

    @property
    def phase(self) -> DetectionPhase:
        return self._phase

    @property
    def recovered_view_id(self) -> Optional[str]:
        return self._recovered_view_id

    @property
    def is_watching(self) -> bool:
        return self._phase == DetectionPhase.WATCHING

    def state(self) -> DetectionState:
        """Snapshot of the detector."""
        elapsed = 0.0
        if self._started_at is not None:
            end = self._ended_at if self._ended_at is not None else self.scheduler.now()
            elapsed = max(end - self._started_at, 0.0)
        return DetectionState(
            phase=self._phase,
            suspected=self._suspected,
            confirmed=self._phase == DetectionPhase.CONFIRMED,
            started_at=self._started_at,
            elapsed=elapsed,
            signal=self._signal,
            recovered_view_id=self._recovered_view_id,
        )

    # -- lifecycle --

    def start(self) -> None:
        """Idle -> watching. Subscribes all channels, then checks the snapshot."""
        if self._phase != DetectionPhase.IDLE:
            logger.debug(f"Detector start ignored in phase {self._phase.value}")
            return

        if self.bridge is not None and self.bridge_key:
            self._bridge_sub = self.bridge.attach(self.bridge_key, self.diagnostics)

        self._phase = DetectionPhase.WATCHING
        self._started_at = self.scheduler.now()

        self._surface_sub = self.surface.subscribe(self._on_surface_change)
        self._diagnostic_sub = self.diagnostics.subscribe(self._on_diagnostic)
        self._timer = self.scheduler.call_later(self.timeout, self._on_timeout)
        logger.info(f"Watching for unsupported render (timeout {self.timeout}s)")

        self._check_snapshot()

    def settle(self) -> None:
        """The host saw a native render succeed; stop without confirming."""
        self._finish(DetectionPhase.SETTLED)

    def unmount(self) -> None:
        """Request removed; stop every channel synchronously."""
        self._finish(DetectionPhase.UNMOUNTED)

    def _finish(self, phase: DetectionPhase) -> None:
        if self._phase in TERMINAL_PHASES:
            return
        was_watching = self._phase == DetectionPhase.WATCHING
        self._phase = phase
        self._teardown()
        if was_watching:
            logger.info(f"Detector stopped: {phase.value}")

    def _teardown(self) -> None:
        self._ended_at = self.scheduler.now() if self._started_at is not None else None
        if self._surface_sub is not None:
            self._surface_sub.cancel()
            self._surface_sub = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._diagnostic_sub is not None:
            self._diagnostic_sub.cancel()
            self._diagnostic_sub = None
        if self._bridge_sub is not None:
            self._bridge_sub.cancel()
            self._bridge_sub = None

    def _confirm(self, signal: DetectionSignal) -> None:
        # Losing channels keep firing after a win; those calls land here
        if self._phase != DetectionPhase.WATCHING:
            return
        self._phase = DetectionPhase.CONFIRMED
        self._signal = signal
        self._teardown()
        logger.info(
            f"Unsupported render confirmed via {signal.channel.value}: {signal.detail}"
        )
        self.on_confirmed(signal)

    # -- channels --

    def _check_snapshot(self) -> None:
        nodes = self.surface.snapshot()
        if not nodes:
            # Nothing rendered yet; weak evidence on its own
            self._suspected = True
        for node in nodes:
            if not self.is_watching:
                return
            hit = self.signals.match_node(node)
            if hit:
                self._confirm(
                    DetectionSignal(channel=SignalChannel.SURFACE, detail=f"initial {hit}")
                )
                return

    def _on_surface_change(self, change: SurfaceChange) -> None:
        if not self.is_watching:
            return
        hit = self.signals.match_change(change)
        if hit:
            self._confirm(
                DetectionSignal(
                    channel=SignalChannel.SURFACE,
                    detail=f"{change.kind.value} {hit}",
                )
            )

    def _on_diagnostic(self, message: DiagnosticMessage) -> None:
        if not self.is_watching:
            return
        if message.payload:
            self._recover_view_id(message.payload)
        hit = self.signals.match_diagnostic(message)
        if hit:
            self._confirm(
                DetectionSignal(channel=SignalChannel.DIAGNOSTIC, detail=f"phrase '{hit}'")
            )

    def _recover_view_id(self, payload: dict) -> None:
        """Pick a view id out of a structured diagnostic payload."""
        record = payload.get("value") if isinstance(payload.get("value"), dict) else payload
        kind = record.get("type") or record.get("kind")
        raw_id = record.get("id")
        if not isinstance(kind, str) or not isinstance(raw_id, str):
            return
        view_id = canonicalize_id(raw_id, self.id_separator)
        if not kind or not view_id:
            return
        if is_map_kind(kind, self.map_kinds):
            self._suspected = True
        if self._recovered_view_id is None:
            self._recovered_view_id = view_id
            logger.debug(f"Recovered view id {view_id} ({kind}) from diagnostic payload")

    def _on_timeout(self) -> None:
        self._timer = None
        if not self.is_watching:
            return
        self._confirm(
            DetectionSignal(
                channel=SignalChannel.TIMEOUT,
                detail=f"no native render signal within {self.timeout}s",
            )
        )
