"""Fallback renderer — the embedded frame and its retry/degrade logic.

Usage:
    renderer = FallbackRenderer(identity, scheduler, settings)
    html = renderer.render()          # frame for the current URL variant
    renderer.frame_failed()           # frame onerror: try the next variant
    renderer.frame_loaded()           # frame onload: schedule access check
    renderer.report_frame_access(r)   # host-side access check result

Terminal states (csp_error, load_exhausted) render a link-out instead
of a frame; nothing can make another embed attempt succeed.
"""

import logging
from typing import Callable, Optional

from jinja2 import BaseLoader, Environment

from collection_fallback.config import FallbackSettings, get_settings
from collection_fallback.detection.scheduler import Scheduler, TimerHandle
from collection_fallback.detection.signals import SignalRegistry, get_signal_registry
from collection_fallback.identity.schemas import ResolvedIdentity

from .policy import classify_frame_access
from .schemas import FallbackStatus, FrameAccess, FrameProbeResult, RenderAttempt
from .urls import FIRST_VARIANT, build_embed_url, content_url, next_variant

logger = logging.getLogger(__name__)

FrameProbe = Callable[[str], FrameProbeResult]

FRAME_TEMPLATE = """\
<div class="notion-map-view-container" data-url-variant="{{ variant }}" style="width: 100%; height: {{ height }}; margin: 1rem 0; border: 1px solid var(--fg-color-1); border-radius: 4px; overflow: hidden">
  <iframe src="{{ url }}" style="width: 100%; height: 100%; border: none" allowfullscreen title="{{ title }}"></iframe>
</div>"""

LINK_OUT_TEMPLATE = """\
<div class="notion-map-view-container notion-map-view-link-out" data-reason="{{ reason }}" style="width: 100%; margin: 1rem 0; padding: 1rem; border: 1px solid var(--fg-color-1); border-radius: 4px">
  <p>{{ message }}</p>
  <a href="{{ url }}" target="_blank" rel="noopener noreferrer">{{ label }} &rarr;</a>
</div>"""

_env = Environment(loader=BaseLoader(), autoescape=True)
_frame_template = _env.from_string(FRAME_TEMPLATE)
_link_out_template = _env.from_string(LINK_OUT_TEMPLATE)


class FallbackRenderer:
    """Embeds the resolved content in a frame, retrying URL variants."""

    def __init__(
        self,
        identity: ResolvedIdentity,
        scheduler: Scheduler,
        settings: Optional[FallbackSettings] = None,
        probe: Optional[FrameProbe] = None,
        signals: Optional[SignalRegistry] = None,
    ):
        if not identity.content_id:
            raise ValueError("FallbackRenderer requires a resolved content id")

        self.identity = identity
        self.scheduler = scheduler
        self.settings = settings or get_settings()
        self.probe = probe
        self.signals = signals or get_signal_registry()

        self.attempt = RenderAttempt(url_variant=FIRST_VARIANT)
        self._check_timer: Optional[TimerHandle] = None
        self._disposed = False
        logger.info(
            f"Fallback embed for {identity.content_id} "
            f"starting at URL variant {self.attempt.url_variant}"
        )

    # -- state --

    @property
    def status(self) -> FallbackStatus:
        return self.attempt.status

    @property
    def is_degraded(self) -> bool:
        """True once no embed attempt can succeed."""
        return self.attempt.is_terminal

    @property
    def current_url(self) -> str:
        return build_embed_url(self.identity, self.attempt.url_variant, self.settings)

    @property
    def link_out_url(self) -> str:
        return content_url(self.identity, self.settings)

    # -- frame events --

    def frame_failed(self) -> None:
        """Frame load error: advance to the next URL variant, or give up."""
        if self.attempt.is_terminal or self._disposed:
            return
        self._cancel_check()
        failures = self.attempt.failures + 1
        variant = next_variant(self.attempt.url_variant)

        if variant is None:
            self.attempt = self.attempt.model_copy(
                update={
                    "failures": failures,
                    "load_failed": True,
                    "status": FallbackStatus.LOAD_EXHAUSTED,
                }
            )
            logger.warning(
                f"All embed URL variants failed for {self.identity.content_id}, "
                f"degrading to link-out"
            )
            return

        self.attempt = self.attempt.model_copy(
            update={
                "failures": failures,
                "url_variant": variant,
                "status": FallbackStatus.EMBEDDING,
            }
        )
        logger.info(f"Embed load failed, retrying with URL variant {variant}")

    def frame_loaded(self) -> None:
        """Frame loaded: schedule the delayed access check."""
        if self.attempt.is_terminal or self._disposed:
            return
        self.attempt = self.attempt.model_copy(update={"status": FallbackStatus.LOADED})
        if self.probe is None:
            # Host reports the check itself via report_frame_access()
            return
        self._cancel_check()
        self._check_timer = self.scheduler.call_later(
            self.settings.frame_check_delay_seconds, self._run_probe
        )

    def _run_probe(self) -> None:
        self._check_timer = None
        if self._disposed or self.attempt.is_terminal or self.probe is None:
            return
        self.report_frame_access(self.probe(self.current_url))

    def report_frame_access(self, result: FrameProbeResult) -> FrameAccess:
        """Apply an access check result; only a policy block changes state."""
        access = classify_frame_access(result, self.signals)
        if self.attempt.is_terminal or self._disposed:
            return access

        if access == FrameAccess.POLICY_BLOCKED:
            self._cancel_check()
            self.attempt = self.attempt.model_copy(
                update={"csp_suspected": True, "status": FallbackStatus.CSP_ERROR}
            )
            logger.warning(
                f"Embed of {self.identity.content_id} blocked by target policy, "
                f"degrading to link-out"
            )
        elif access == FrameAccess.CROSS_ORIGIN:
            logger.debug("Frame is cross-origin as expected")
        return access

    def dispose(self) -> None:
        """Cancel the pending access check; later events are ignored."""
        self._disposed = True
        self._cancel_check()

    def _cancel_check(self) -> None:
        if self._check_timer is not None:
            self._check_timer.cancel()
            self._check_timer = None

    # -- output --

    def render(self) -> str:
        """Markup for the current state: a frame, or the link-out."""
        if self.is_degraded:
            return _link_out_template.render(
                url=self.link_out_url,
                reason=self.attempt.status.value,
                message=self.settings.link_out_message,
                label=self.settings.link_out_label,
            )
        return _frame_template.render(
            url=self.current_url,
            variant=self.attempt.url_variant,
            height=self.settings.frame_height,
            title=self.settings.frame_title,
        )
