"""Embedding policy checks.

A frame that loads can still be empty: the target may refuse to be
framed (CSP frame-ancestors, X-Frame-Options) and the browser swaps in
an error page. From the outside that looks a lot like the ordinary
cross-origin restriction every third-party frame has, which is expected
and must be ignored. classify_frame_access tells the two apart.

preflight_embed_policy asks the target directly by reading its framing
headers; HttpFrameProbe plugs that into the fallback renderer's
post-load check for hosts that render server-side.
"""

import asyncio
import logging
from typing import Callable, Optional
from urllib.parse import urlsplit

import httpx

from collection_fallback.config import FallbackSettings
from collection_fallback.detection.signals import SignalRegistry, get_signal_registry

from .schemas import EmbedPolicy, FrameAccess, FrameProbeResult

logger = logging.getLogger(__name__)

PREFLIGHT_TIMEOUT = httpx.Timeout(connect=5.0, read=10.0, write=5.0, pool=5.0)


def classify_frame_access(
    result: FrameProbeResult,
    signals: Optional[SignalRegistry] = None,
) -> FrameAccess:
    """Classify a post-load frame access check.

    Policy markers are checked before cross-origin markers: a policy
    rejection message can also mention the origin.
    """
    signals = signals or get_signal_registry()

    if result.location and signals.is_blank_location(result.location):
        return FrameAccess.POLICY_BLOCKED
    if result.readable:
        return FrameAccess.ACCESSIBLE
    if result.error:
        if signals.match_policy_block(result.error):
            return FrameAccess.POLICY_BLOCKED
        if signals.match_cross_origin(result.error):
            return FrameAccess.CROSS_ORIGIN
    return FrameAccess.UNKNOWN


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}".lower()


def _frame_ancestors(csp: str) -> Optional[list[str]]:
    """Source list of the frame-ancestors directive, None when absent."""
    for directive in csp.split(";"):
        tokens = directive.strip().split()
        if tokens and tokens[0].lower() == "frame-ancestors":
            return [t.lower() for t in tokens[1:]]
    return None


def _source_allows(source: str, origin: str, target_origin: str) -> bool:
    if source == "*":
        return True
    if source == "'self'":
        return origin == target_origin
    if "*." in source:
        scheme, sep, host_pattern = source.partition("://")
        if not sep:
            scheme, host_pattern = None, source
        suffix = host_pattern.replace("*.", ".", 1)
        origin_scheme, _, origin_host = origin.partition("://")
        return (scheme is None or scheme == origin_scheme) and origin_host.endswith(suffix)
    return source.rstrip("/") == origin


def evaluate_framing_headers(
    url: str,
    headers: httpx.Headers,
    embedding_origin: Optional[str] = None,
) -> tuple[bool, Optional[str]]:
    """Decide from response headers whether framing is refused.

    frame-ancestors wins over X-Frame-Options when both are present.
    Without an embedding origin only unconditional refusals count.
    """
    target_origin = _origin(url)
    origin = embedding_origin.rstrip("/").lower() if embedding_origin else None

    csp = headers.get("content-security-policy")
    if csp:
        ancestors = _frame_ancestors(csp)
        if ancestors is not None:
            if not ancestors or ancestors == ["'none'"]:
                return True, "frame-ancestors 'none'"
            if origin and not any(_source_allows(s, origin, target_origin) for s in ancestors):
                return True, f"frame-ancestors does not allow {origin}"
            return False, None

    xfo = headers.get("x-frame-options", "").strip().upper()
    if xfo == "DENY":
        return True, "X-Frame-Options: DENY"
    if xfo == "SAMEORIGIN" and origin != target_origin:
        return True, "X-Frame-Options: SAMEORIGIN"
    return False, None


def is_embed_target(url: str, settings: FallbackSettings) -> bool:
    """True only for URLs on the configured embed scheme and host.

    The netloc must equal the host exactly, so credentials and explicit
    ports are refused too.
    """
    parts = urlsplit(url)
    return (
        parts.scheme.lower() == settings.embed_scheme.lower()
        and parts.netloc.lower() == settings.embed_host.lower()
    )


def embed_target_guard(settings: FallbackSettings) -> Callable[[httpx.Request], None]:
    """httpx request hook refusing every hop (redirects included) off the embed host."""

    def _guard(request: httpx.Request) -> None:
        if not is_embed_target(str(request.url), settings):
            raise httpx.RequestError(
                f"refusing to fetch {request.url}: not the embed host", request=request
            )

    return _guard


def preflight_embed_policy(
    url: str,
    client: Optional[httpx.Client] = None,
    embedding_origin: Optional[str] = None,
) -> EmbedPolicy:
    """Fetch the embed target and read its framing headers.

    Network failures are reported as not blocked: the preflight can only
    prove a refusal, never rule one out.
    """
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=PREFLIGHT_TIMEOUT, follow_redirects=True)

    try:
        response = client.get(url)
    except httpx.HTTPError as e:
        logger.warning(f"Embed preflight failed for {url}: {e}")
        return EmbedPolicy(url=url, blocked=False, reason=f"preflight failed: {e}")
    finally:
        if owns_client:
            client.close()

    blocked, reason = evaluate_framing_headers(url, response.headers, embedding_origin)
    if blocked:
        logger.info(f"Embed target refuses framing: {url} ({reason})")
    return EmbedPolicy(
        url=url,
        blocked=blocked,
        reason=reason,
        status_code=response.status_code,
    )


def _in_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class HttpFrameProbe:
    """FrameProbe backed by a header preflight.

    Translates the preflight into what a browser would report: a refused
    frame error when blocked, the usual cross-origin error otherwise.

    Synchronous: the HTTP request blocks the calling thread. Use it with
    ManualScheduler hosts or from a worker thread; calling it on a running
    event loop raises instead of stalling the loop.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        embedding_origin: Optional[str] = None,
    ):
        self.client = client
        self.embedding_origin = embedding_origin

    def __call__(self, url: str) -> FrameProbeResult:
        if _in_event_loop():
            raise RuntimeError("HttpFrameProbe blocks; call it off the event loop")
        policy = preflight_embed_policy(url, self.client, self.embedding_origin)
        if policy.blocked:
            return FrameProbeResult(
                readable=False,
                error=f"Refused to display '{url}' in a frame: {policy.reason}",
            )
        return FrameProbeResult(
            readable=False,
            error="SecurityError: cross-origin frame access denied",
        )
