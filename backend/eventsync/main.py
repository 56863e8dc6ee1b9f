"""
Event Catalog Sync - Application Entry Point

Local cache and incremental-synchronization engine for the event catalog:
- Delta sync against the remote catalog with an explicit tombstone list
- Upsert-by-identifier merges committed atomically to a local SQLite cache
- Single-flight sync runs per entity family
- Bounded, observable snapshot served to a UI shell over HTTP
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from eventsync.api.middleware import RequestLoggingMiddleware
from eventsync.api.router import api_router
from eventsync.core.config import get_settings
from eventsync.core.logging import get_logger, setup_logging
from eventsync.core.metrics import metrics_endpoint
from eventsync.db.session import create_engine, create_session_factory, init_models
from eventsync.infrastructure.catalog_client import HttpCatalogClient
from eventsync.services.catalog_service import CatalogService
from eventsync.services.interfaces.catalog import CatalogSource
from eventsync.services.snapshot import EventSnapshot
from eventsync.services.sync_coordinator import EVENTS_FAMILY, SyncCoordinator

settings = get_settings()


def create_app(catalog: Optional[CatalogSource] = None, database_url: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle: build the store, client and coordinator; warm the snapshot."""
        setup_logging()
        logger = get_logger(__name__)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )

        engine = create_engine(database_url)
        await init_models(engine)
        session_factory = create_session_factory(engine)

        owned_client = None
        source = catalog
        if source is None:
            owned_client = HttpCatalogClient()
            source = owned_client

        coordinator = SyncCoordinator(source, session_factory, EventSnapshot())
        service = CatalogService(coordinator)
        app.state.catalog_service = service

        # Stale cache first, then refresh in the background
        await service.load_cached_snapshot()
        sync_task = None
        if settings.SYNC_ON_STARTUP:
            sync_task = asyncio.create_task(service.trigger_sync())

        yield

        if sync_task is not None and not sync_task.done():
            sync_task.cancel()
            try:
                await sync_task
            except asyncio.CancelledError:
                pass
        if owned_client is not None:
            await owned_client.aclose()
        await engine.dispose()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Local event catalog cache with incremental sync",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check with the state of the events sync."""
        service: Optional[CatalogService] = getattr(app.state, "catalog_service", None)
        if service is None:
            return {"status": "starting", "version": settings.APP_VERSION}
        coordinator = service.coordinator
        last = coordinator.last_outcome(EVENTS_FAMILY)
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "sync": {
                "state": coordinator.state(EVENTS_FAMILY).value,
                "last_status": last.status.value if last else None,
                "needs_full_resync": coordinator.needs_full_resync,
                "cached_events": len(service.snapshot.events),
            },
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    return app


app = create_app()
