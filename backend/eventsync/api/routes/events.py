"""
Cached event endpoints for the UI shell.
Sub-resource endpoints refresh from the remote catalog first, then answer
from the cache.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from eventsync.api.deps import get_catalog_service
from eventsync.schemas.event import EventView
from eventsync.schemas.panthi import PanthiView
from eventsync.schemas.program import ProgramView
from eventsync.schemas.results import LoadResult
from eventsync.schemas.ticket_type import TicketTypeView
from eventsync.services.catalog_service import CatalogService

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/", response_model=LoadResult[EventView])
async def list_cached_events_endpoint(
    limit: Optional[int] = Query(None, ge=1, le=500),
    service: CatalogService = Depends(get_catalog_service),
):
    """Snapshot of cached events, newest first, TBA events last. No network."""
    return await service.load_cached_snapshot(limit=limit)


@router.get("/{event_id}/ticket-types", response_model=LoadResult[TicketTypeView])
async def ticket_types_endpoint(
    event_id: str,
    force_full: bool = Query(False),
    service: CatalogService = Depends(get_catalog_service),
):
    return await service.load_ticket_types(event_id, force_full=force_full)


@router.get("/{event_id}/slots", response_model=LoadResult[PanthiView])
async def slots_endpoint(
    event_id: str,
    force_full: bool = Query(False),
    service: CatalogService = Depends(get_catalog_service),
):
    return await service.load_slots(event_id, force_full=force_full)


@router.get("/{event_id}/programs", response_model=LoadResult[ProgramView])
async def programs_endpoint(
    event_id: str,
    timeout: Optional[float] = Query(None, gt=0, le=120),
    service: CatalogService = Depends(get_catalog_service),
):
    return await service.load_programs(event_id, timeout=timeout)
