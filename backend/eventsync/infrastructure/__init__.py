"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .catalog_client import HttpCatalogClient

__all__ = ['HttpCatalogClient']
