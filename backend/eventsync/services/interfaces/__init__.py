"""
Contracts the sync engine depends on, so the remote catalog can be swapped
(HTTP client in production, in-process fakes in tests).
"""

from .catalog import CatalogSource

__all__ = ['CatalogSource']
