"""API routes for embed URLs and embedding policy checks."""

import logging
from typing import Iterator, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from collection_fallback.config import get_settings
from collection_fallback.fallback.policy import (
    PREFLIGHT_TIMEOUT,
    embed_target_guard,
    is_embed_target,
    preflight_embed_policy,
)
from collection_fallback.fallback.schemas import EmbedPolicy, EmbedVariant, PreflightRequest
from collection_fallback.fallback.urls import candidate_urls
from collection_fallback.identity.resolver import canonicalize_id
from collection_fallback.identity.schemas import ResolvedIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/embeds", tags=["embeds"])


def get_preflight_client() -> Iterator[httpx.Client]:
    """HTTP client for preflight requests, confined to the embed host."""
    with httpx.Client(
        timeout=PREFLIGHT_TIMEOUT,
        follow_redirects=True,
        event_hooks={"request": [embed_target_guard(get_settings())]},
    ) as client:
        yield client


@router.get("/{content_id}/variants", response_model=list[EmbedVariant])
async def list_embed_variants(
    content_id: str,
    view_id: Optional[str] = Query(None, description="View id for variants 1-3"),
):
    """Candidate embed URLs for a content id, in retry order."""
    settings = get_settings()
    identity = ResolvedIdentity(
        content_id=canonicalize_id(content_id, settings.id_separator),
        view_id=canonicalize_id(view_id, settings.id_separator),
    )
    if identity.content_id is None:
        raise HTTPException(status_code=422, detail="Content id is empty")
    return [
        EmbedVariant(variant=strategy.variant, name=strategy.name, url=url)
        for strategy, url in candidate_urls(identity, settings)
    ]


@router.post("/preflight", response_model=EmbedPolicy)
def preflight_embed(
    request: PreflightRequest,
    client: httpx.Client = Depends(get_preflight_client),
):
    """Read the embed target's framing headers to see if it refuses framing."""
    settings = get_settings()
    if not is_embed_target(request.url, settings):
        raise HTTPException(
            status_code=422,
            detail=f"Preflight is limited to {settings.embed_scheme}://{settings.embed_host}",
        )
    return preflight_embed_policy(
        request.url,
        client=client,
        embedding_origin=request.embedding_origin,
    )
