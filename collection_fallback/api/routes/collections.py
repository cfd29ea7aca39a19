"""API routes for collection render sessions.

A browser host mounts a request here, renders whatever comes back, and
reports surface changes, collaborator diagnostics and frame events as
they happen. Each call returns the session's current output so the host
can swap renderings when the state changes.
"""

import logging

from fastapi import APIRouter, HTTPException

from collection_fallback.collection.component import CollectionFallback
from collection_fallback.collection.schemas import (
    RenderOutput,
    ResolveResponse,
    SessionResponse,
)
from collection_fallback.collection.sessions import get_session_store
from collection_fallback.config import get_settings
from collection_fallback.detection.schemas import DiagnosticMessage, SurfaceChange
from collection_fallback.detection.surface import InMemoryRenderSurface
from collection_fallback.fallback.schemas import FrameProbeResult
from collection_fallback.identity.resolver import resolve_identity
from collection_fallback.views.classifier import UNKNOWN_KIND, classify_view_kind, is_map_kind
from collection_fallback.views.schemas import CollectionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/collections", tags=["collections"])


def _get_or_404(session_id: str) -> CollectionFallback:
    """Get a session by id or raise 404."""
    component = get_session_store().get(session_id)
    if component is None:
        raise HTTPException(
            status_code=404,
            detail=f"Session '{session_id}' not found",
        )
    return component


# -- Stateless --


@router.post("/resolve", response_model=ResolveResponse)
async def resolve_collection(request: CollectionRequest):
    """Classify a request and resolve its identifiers without mounting it."""
    settings = get_settings()
    kind = classify_view_kind(request.descriptor, request.graph, settings.map_kinds)
    identity = resolve_identity(request, settings)
    return ResolveResponse(
        kind=kind,
        is_map=is_map_kind(kind, settings.map_kinds),
        identity=identity,
        detection_required=kind == UNKNOWN_KIND and identity.can_fall_back,
    )


# -- Session lifecycle --


@router.post("/sessions", response_model=SessionResponse, status_code=201)
async def create_session(request: CollectionRequest):
    """Mount a collection request."""
    session_id, component = get_session_store().create(request)
    return SessionResponse(session_id=session_id, output=component.render())


@router.get("/sessions/{session_id}", response_model=RenderOutput)
async def get_session(session_id: str):
    """Current output of a session."""
    return _get_or_404(session_id).render()


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Unmount a session."""
    _get_or_404(session_id)
    get_session_store().delete(session_id)
    return {"deleted": session_id}


@router.post("/sessions/{session_id}/settle", response_model=RenderOutput)
async def settle_session(session_id: str):
    """Report that the native render succeeded."""
    component = _get_or_404(session_id)
    component.settle()
    return component.render()


# -- Detection signals --


@router.post("/sessions/{session_id}/surface", response_model=RenderOutput)
async def report_surface_change(session_id: str, change: SurfaceChange):
    """Report a structural change on the rendered collection."""
    component = _get_or_404(session_id)
    if isinstance(component.surface, InMemoryRenderSurface):
        component.surface.apply(change)
    return component.render()


@router.post("/sessions/{session_id}/diagnostics", response_model=RenderOutput)
async def report_diagnostic(session_id: str, message: DiagnosticMessage):
    """Report a message from the collaborator's diagnostic output."""
    component = _get_or_404(session_id)
    component.diagnostics.publish(message)
    return component.render()


# -- Frame events --


@router.post("/sessions/{session_id}/frame/load", response_model=RenderOutput)
async def report_frame_load(session_id: str):
    """The fallback frame fired its load event."""
    component = _get_or_404(session_id)
    component.frame_loaded()
    return component.render()


@router.post("/sessions/{session_id}/frame/error", response_model=RenderOutput)
async def report_frame_error(session_id: str):
    """The fallback frame failed to load."""
    component = _get_or_404(session_id)
    component.frame_failed()
    return component.render()


@router.post("/sessions/{session_id}/frame/access", response_model=RenderOutput)
async def report_frame_access(session_id: str, result: FrameProbeResult):
    """Result of the host's delayed frame access check."""
    component = _get_or_404(session_id)
    component.report_frame_access(result)
    return component.render()
