"""
FastAPI dependencies. The catalog service is built once in the app lifespan
and read from app state, so tests can swap it with dependency_overrides.
"""

from fastapi import Request

from eventsync.services.catalog_service import CatalogService


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service
