"""
Sync trigger endpoint for the UI shell (pull-to-refresh).
"""

from fastapi import APIRouter, Depends, Query

from eventsync.api.deps import get_catalog_service
from eventsync.schemas.event import EventView
from eventsync.schemas.results import LoadResult
from eventsync.services.catalog_service import CatalogService

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("/", response_model=LoadResult[EventView])
async def trigger_sync_endpoint(
    force_full: bool = Query(False),
    service: CatalogService = Depends(get_catalog_service),
):
    """
    Run an events sync and return the refreshed snapshot.
    Always 200: failures are reported in `error`, alongside the cached events.
    """
    return await service.trigger_sync(force_full=force_full)


@router.post("/reset", response_model=LoadResult[EventView])
async def reset_cache_endpoint(service: CatalogService = Depends(get_catalog_service)):
    """Wipe the local cache and watermark. Use when the store reports a failure."""
    return await service.reset_cache()
