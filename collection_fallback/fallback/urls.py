"""Embed URL strategies.

An ordered list, most specific first. The renderer walks it one step
per frame load failure:

1. ?v=<view>
2. ?v=<view>&embed=true
3. ?v=<view>&embed=true&source=<tag>
4. ?embed=true
5. bare content URL

The view parameter is optional; without a view id, strategies 1-3 are
built without it.
"""

from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlencode

from collection_fallback.config import FallbackSettings
from collection_fallback.identity.schemas import ResolvedIdentity

FIRST_VARIANT = 1
LAST_VARIANT = 5

QueryParams = list[tuple[str, Optional[str]]]


@dataclass(frozen=True)
class UrlStrategy:
    """One URL form: its variant number and the query it adds."""
    variant: int
    name: str
    params: Callable[[ResolvedIdentity, FallbackSettings], QueryParams]


URL_STRATEGIES: list[UrlStrategy] = [
    UrlStrategy(1, "view", lambda i, s: [("v", i.view_id)]),
    UrlStrategy(2, "view_embed", lambda i, s: [("v", i.view_id), ("embed", "true")]),
    UrlStrategy(
        3,
        "view_embed_source",
        lambda i, s: [("v", i.view_id), ("embed", "true"), ("source", s.source_tag)],
    ),
    UrlStrategy(4, "embed", lambda i, s: [("embed", "true")]),
    UrlStrategy(5, "bare", lambda i, s: []),
]


def content_url(identity: ResolvedIdentity, settings: FallbackSettings) -> str:
    """Bare URL of the content on the embed host."""
    if not identity.content_id:
        raise ValueError("Cannot build an embed URL without a content id")
    return f"{settings.embed_scheme}://{settings.embed_host}/{identity.content_id}"


def get_strategy(variant: int) -> UrlStrategy:
    if not FIRST_VARIANT <= variant <= LAST_VARIANT:
        raise ValueError(f"URL variant out of range: {variant}")
    return URL_STRATEGIES[variant - 1]


def build_embed_url(
    identity: ResolvedIdentity,
    variant: int,
    settings: FallbackSettings,
) -> str:
    """Embed URL for a variant. Parameters without a value are left out."""
    strategy = get_strategy(variant)
    base = content_url(identity, settings)
    params = [(key, value) for key, value in strategy.params(identity, settings) if value]
    if not params:
        return base
    return f"{base}?{urlencode(params)}"


def candidate_urls(
    identity: ResolvedIdentity,
    settings: FallbackSettings,
) -> list[tuple[UrlStrategy, str]]:
    """Every (strategy, url) in retry order."""
    return [
        (strategy, build_embed_url(identity, strategy.variant, settings))
        for strategy in URL_STRATEGIES
    ]


def next_variant(variant: int) -> Optional[int]:
    """The variant to try after a failure, or None when exhausted."""
    if variant >= LAST_VARIANT:
        return None
    return variant + 1
