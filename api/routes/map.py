"""
Map search session routes: viewport, filter, reset and selection events.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import ListingRepository
from dependencies import get_db, get_sessions
from models import FilterSettings
from api.schemas import (
    HeatmapCell,
    MapPropertyItem,
    MapViewport,
    SearchStateResponse,
    SelectionResponse,
    SessionClosedResponse,
    SessionCreateRequest,
    build_preview,
)
from api.services.map_engine import CommandBufferMapEngine
from api.services.viewport_sync import SearchUpdate, ViewportSyncController
from api.session_store import SearchSession, SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_session_or_404(store: SessionStore, session_id: str) -> SearchSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def build_state_response(
    session: SearchSession,
    update: Optional[SearchUpdate] = None,
    stale: bool = False,
) -> SearchStateResponse:
    """Serialize a session's committed state and drain its pending map commands."""
    update = update or session.controller.snapshot()
    items = [MapPropertyItem.from_property(prop) for prop in update.properties]
    preview, remaining_count = build_preview(items)

    return SearchStateResponse(
        session_id=session.session_id,
        version=update.version,
        status=update.status.value,
        stale=stale,
        bounds=update.bounds,
        settings=update.settings,
        statistics=update.statistics,
        total=len(items),
        properties=items,
        preview=preview,
        remaining_count=remaining_count,
        selection=SelectionResponse(
            selected_id=update.selection.selected_id,
            popup_visible=update.selection.popup_visible,
        ),
        heatmap=[HeatmapCell(**cell) for cell in update.heatmap],
        map_commands=session.engine.drain(),
    )


@router.post("/sessions", response_model=SearchStateResponse, status_code=201)
async def create_session(
    request: Optional[SessionCreateRequest] = None,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_sessions),
):
    """Start a search session over every listing currently in the database."""
    records = ListingRepository(db).load_records()
    engine = CommandBufferMapEngine()
    settings = request.settings if request else None
    controller = ViewportSyncController(records, engine, settings=settings)
    session = store.create(controller, engine)
    logger.info(
        "Session %s started with %d listings", session.session_id, len(records)
    )
    return build_state_response(session)


@router.get("/sessions/{session_id}", response_model=SearchStateResponse)
async def get_session_state(
    session_id: str, store: SessionStore = Depends(get_sessions)
):
    """Current state of a session."""
    session = _get_session_or_404(store, session_id)
    return build_state_response(session)


@router.delete("/sessions/{session_id}", response_model=SessionClosedResponse)
async def delete_session(session_id: str, store: SessionStore = Depends(get_sessions)):
    """End a session; the response carries the commands that clear its markers and popup."""
    session = _get_session_or_404(store, session_id)
    store.delete(session_id)
    return SessionClosedResponse(
        session_id=session_id, map_commands=session.engine.drain()
    )


@router.post("/sessions/{session_id}/viewport", response_model=SearchStateResponse)
async def change_viewport(
    session_id: str,
    viewport: MapViewport,
    store: SessionStore = Depends(get_sessions),
):
    """Viewport changed on the map (pan / zoom / resize)."""
    session = _get_session_or_404(store, session_id)
    controller = session.controller

    if not controller.accept_sequence(viewport.sequence):
        return build_state_response(session, stale=True)

    update = await controller.on_viewport_change_async(viewport.to_bounds())
    return build_state_response(session, update, stale=update is None)


@router.put("/sessions/{session_id}/filters", response_model=SearchStateResponse)
async def change_filters(
    session_id: str,
    settings: FilterSettings,
    store: SessionStore = Depends(get_sessions),
):
    """Sidebar filter settings changed."""
    session = _get_session_or_404(store, session_id)
    update = await session.controller.on_filter_settings_change_async(settings)
    return build_state_response(session, update, stale=update is None)


@router.post("/sessions/{session_id}/reset", response_model=SearchStateResponse)
async def reset_session(session_id: str, store: SessionStore = Depends(get_sessions)):
    """Restore default filters and show every listing again."""
    session = _get_session_or_404(store, session_id)
    update = session.controller.on_reset()
    return build_state_response(session, update)


@router.post("/sessions/{session_id}/refresh", response_model=SearchStateResponse)
async def refresh_session(
    session_id: str,
    db: Session = Depends(get_db),
    store: SessionStore = Depends(get_sessions),
):
    """Reload listings from the database, keeping viewport and filters."""
    session = _get_session_or_404(store, session_id)
    records = ListingRepository(db).load_records()
    update = session.controller.set_properties(records)
    return build_state_response(session, update)


@router.post(
    "/sessions/{session_id}/selection/{property_id}",
    response_model=SearchStateResponse,
)
async def select_property(
    session_id: str, property_id: int, store: SessionStore = Depends(get_sessions)
):
    """Property picked in the sidebar list. Ids outside the current results are ignored."""
    session = _get_session_or_404(store, session_id)
    session.controller.on_property_select(property_id)
    return build_state_response(session)


@router.post(
    "/sessions/{session_id}/markers/{property_id}/click",
    response_model=SearchStateResponse,
)
async def click_marker(
    session_id: str, property_id: int, store: SessionStore = Depends(get_sessions)
):
    """Marker clicked on the map."""
    session = _get_session_or_404(store, session_id)
    session.controller.on_marker_click(property_id)
    return build_state_response(session)


@router.delete("/sessions/{session_id}/selection", response_model=SearchStateResponse)
async def clear_selection(session_id: str, store: SessionStore = Depends(get_sessions)):
    """Close the popup."""
    session = _get_session_or_404(store, session_id)
    session.controller.on_deselect()
    return build_state_response(session)


@router.post("/sessions/{session_id}/fit", response_model=SearchStateResponse)
async def fit_to_results(session_id: str, store: SessionStore = Depends(get_sessions)):
    """Frame every current result. Nothing happens when there are no results."""
    session = _get_session_or_404(store, session_id)
    session.controller.on_fit_to_results()
    return build_state_response(session)


@router.post("/sessions/{session_id}/view/reset", response_model=SearchStateResponse)
async def reset_view(session_id: str, store: SessionStore = Depends(get_sessions)):
    """Fly back to the default map centre; filters and results are untouched."""
    session = _get_session_or_404(store, session_id)
    session.controller.on_reset_view()
    return build_state_response(session)
