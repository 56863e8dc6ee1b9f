"""
Versioned API router for the UI shell: cached reads and sync triggers.
"""

from fastapi import APIRouter
from eventsync.api.routes import events, sync

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(events.router)
api_router.include_router(sync.router)
