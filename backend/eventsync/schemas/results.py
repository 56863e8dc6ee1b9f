"""
Result envelopes handed to the UI layer.
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel, Field

T = TypeVar("T")


class LoadResult(BaseModel, Generic[T]):
    """
    Items plus loading/error flags.

    `items` always carries whatever the cache holds, even when `error` is set;
    stale data is preferred over a blank screen.
    """

    items: list[T] = Field(default_factory=list)
    is_loading: bool = False
    status: str = "idle"
    error: Optional[str] = None
    error_kind: Optional[str] = None
