"""Tests for frame access classification and the header preflight."""
import asyncio

import httpx
import pytest

from collection_fallback.fallback.policy import (
    HttpFrameProbe,
    classify_frame_access,
    embed_target_guard,
    evaluate_framing_headers,
    is_embed_target,
    preflight_embed_policy,
)
from collection_fallback.fallback.schemas import FrameAccess, FrameProbeResult

URL = "https://www.notion.so/abc123"


def _client(headers=None, status_code=200):
    def handler(request):
        return httpx.Response(status_code, headers=headers or {}, text="<html></html>")
    return httpx.Client(transport=httpx.MockTransport(handler))


# ── classify_frame_access ──


def test_readable_frame_is_accessible(signals):
    result = FrameProbeResult(readable=True, location="https://www.notion.so/abc123")
    assert classify_frame_access(result, signals) == FrameAccess.ACCESSIBLE


@pytest.mark.parametrize("location", ["about:blank", "chrome-error://chromewebdata/"])
def test_blank_replacement_is_policy_block(signals, location):
    result = FrameProbeResult(readable=True, location=location)
    assert classify_frame_access(result, signals) == FrameAccess.POLICY_BLOCKED


def test_policy_markers_win_over_cross_origin_markers(signals):
    result = FrameProbeResult(
        error="Refused to display 'https://www.notion.so/' in a frame because of "
        "X-Frame-Options; cross-origin"
    )
    assert classify_frame_access(result, signals) == FrameAccess.POLICY_BLOCKED


def test_plain_cross_origin_restriction(signals):
    result = FrameProbeResult(error="SecurityError: Permission denied to access property \"document\"")
    assert classify_frame_access(result, signals) == FrameAccess.CROSS_ORIGIN


def test_unrecognised_error_is_unknown(signals):
    assert classify_frame_access(FrameProbeResult(error="boom"), signals) == FrameAccess.UNKNOWN
    assert classify_frame_access(FrameProbeResult(), signals) == FrameAccess.UNKNOWN


# ── header evaluation ──


def test_xfo_deny_blocks():
    blocked, reason = evaluate_framing_headers(URL, httpx.Headers({"X-Frame-Options": "DENY"}))
    assert blocked
    assert "DENY" in reason


def test_xfo_sameorigin_blocks_other_origins():
    headers = httpx.Headers({"X-Frame-Options": "sameorigin"})
    assert evaluate_framing_headers(URL, headers, "https://blog.example.com")[0]
    assert not evaluate_framing_headers(URL, headers, "https://www.notion.so")[0]


def test_frame_ancestors_none_blocks():
    headers = httpx.Headers({"Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'"})
    assert evaluate_framing_headers(URL, headers)[0]


def test_frame_ancestors_allow_list():
    headers = httpx.Headers(
        {"Content-Security-Policy": "frame-ancestors 'self' https://*.example.com https://site.org"}
    )
    assert not evaluate_framing_headers(URL, headers, "https://blog.example.com")[0]
    assert not evaluate_framing_headers(URL, headers, "https://site.org")[0]
    blocked, reason = evaluate_framing_headers(URL, headers, "https://other.net")
    assert blocked
    assert "other.net" in reason


def test_frame_ancestors_wins_over_xfo():
    headers = httpx.Headers(
        {"Content-Security-Policy": "frame-ancestors *", "X-Frame-Options": "DENY"}
    )
    assert not evaluate_framing_headers(URL, headers, "https://blog.example.com")[0]


def test_no_framing_headers_allows():
    assert evaluate_framing_headers(URL, httpx.Headers({})) == (False, None)


# ── preflight ──


def test_preflight_reports_block():
    policy = preflight_embed_policy(URL, client=_client({"X-Frame-Options": "DENY"}))
    assert policy.blocked
    assert policy.status_code == 200


def test_preflight_network_failure_is_not_a_block():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    policy = preflight_embed_policy(URL, client=client)
    assert not policy.blocked
    assert "preflight failed" in policy.reason


def test_http_probe_translates_to_browser_errors(signals):
    blocked = HttpFrameProbe(_client({"X-Frame-Options": "DENY"}))(URL)
    assert classify_frame_access(blocked, signals) == FrameAccess.POLICY_BLOCKED

    allowed = HttpFrameProbe(_client())(URL)
    assert classify_frame_access(allowed, signals) == FrameAccess.CROSS_ORIGIN


def test_http_probe_refuses_to_block_a_running_loop():
    async def run_on_loop():
        return HttpFrameProbe(_client())(URL)

    with pytest.raises(RuntimeError):
        asyncio.run(run_on_loop())


# ── embed target confinement ──


@pytest.mark.parametrize(
    "url, allowed",
    [
        ("https://www.notion.so/abc123?v=v1", True),
        ("https://WWW.NOTION.SO/abc123", True),
        ("http://www.notion.so/abc123", False),
        ("http://169.254.169.254/latest/meta-data/", False),
        ("https://www.notion.so.evil.example/abc123", False),
        ("https://user@www.notion.so/abc123", False),
        ("https://www.notion.so:8443/abc123", False),
        ("not a url", False),
    ],
)
def test_is_embed_target(settings, url, allowed):
    assert is_embed_target(url, settings) is allowed


def test_guard_stops_redirect_off_the_embed_host(settings):
    fetched = []

    def handler(request):
        fetched.append(str(request.url))
        if request.url.host == "www.notion.so":
            return httpx.Response(302, headers={"Location": "http://169.254.169.254/latest/"})
        return httpx.Response(200)

    client = httpx.Client(
        transport=httpx.MockTransport(handler),
        follow_redirects=True,
        event_hooks={"request": [embed_target_guard(settings)]},
    )
    policy = preflight_embed_policy(URL, client=client)
    assert fetched == [URL]
    assert not policy.blocked
    assert "preflight failed" in policy.reason
