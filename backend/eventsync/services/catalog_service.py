"""
UI-facing boundary of the sync engine.

Every call returns a LoadResult carrying whatever the cache currently holds
plus loading and error flags. SyncErrors are turned into messages here and
never reach the caller; cached data is returned even when the refresh failed.
"""

from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventsync.core.errors import StoreError
from eventsync.core.logging import get_logger
from eventsync.schemas.event import EventView
from eventsync.schemas.panthi import PanthiView
from eventsync.schemas.program import ProgramView
from eventsync.schemas.results import LoadResult
from eventsync.schemas.ticket_type import TicketTypeView
from eventsync.services import store_service
from eventsync.services.sync_coordinator import SyncCoordinator, SyncOutcome, SyncStatus

logger = get_logger(__name__)

T = TypeVar("T")


def _apply_outcome(result: LoadResult, outcome: SyncOutcome) -> LoadResult:
    result.is_loading = outcome.status is SyncStatus.BUSY
    if result.error_kind == StoreError.kind:
        return result
    result.status = outcome.status.value
    if outcome.error is not None:
        result.error = outcome.error.user_message
        result.error_kind = outcome.error.kind
    return result


class CatalogService:
    def __init__(self, coordinator: SyncCoordinator):
        self.coordinator = coordinator

    @property
    def snapshot(self):
        return self.coordinator.snapshot

    async def trigger_sync(self, force_full: bool = False) -> LoadResult[EventView]:
        """Sync the event catalog and return the refreshed snapshot."""
        outcome = await self.coordinator.sync_events(force_full=force_full)
        if not outcome.ok and not self.snapshot.loaded:
            # Show whatever is cached while the retry is pending
            result = await self.load_cached_snapshot()
        else:
            result = LoadResult[EventView](items=list(self.snapshot.events))
        return _apply_outcome(result, outcome)

    async def reset_cache(self) -> LoadResult[EventView]:
        """Drop every cached row; the next sync rebuilds the catalog from scratch."""
        try:
            await self.coordinator.reset_store()
        except StoreError as e:
            return LoadResult[EventView](
                items=list(self.snapshot.events),
                status="failed",
                error=e.user_message,
                error_kind=e.kind,
            )
        return LoadResult[EventView](items=list(self.snapshot.events), status="reset")

    async def load_cached_snapshot(self, limit: Optional[int] = None) -> LoadResult[EventView]:
        """Bounded, date-descending view of cached events. No network."""
        try:
            events = await self.snapshot.reload(self.coordinator.session_factory, limit=limit)
        except StoreError as e:
            return LoadResult[EventView](
                items=list(self.snapshot.events),
                is_loading=self.snapshot.is_loading,
                status="failed",
                error=e.user_message,
                error_kind=e.kind,
            )
        return LoadResult[EventView](
            items=events,
            is_loading=self.snapshot.is_loading,
            error=self.snapshot.last_error,
        )

    async def load_ticket_types(self, event_id: str, force_full: bool = False) -> LoadResult[TicketTypeView]:
        outcome = await self.coordinator.sync_ticket_types(event_id, force_full=force_full)
        result = await self._load_cached(
            lambda db: store_service.get_ticket_types(db, event_id),
            TicketTypeView.model_validate,
        )
        return _apply_outcome(result, outcome)

    async def load_slots(self, event_id: str, force_full: bool = False) -> LoadResult[PanthiView]:
        outcome = await self.coordinator.sync_slots(event_id, force_full=force_full)
        result = await self._load_cached(
            lambda db: store_service.get_panthis(db, event_id),
            PanthiView.model_validate,
        )
        return _apply_outcome(result, outcome)

    async def load_programs(self, event_id: str, timeout: Optional[float] = None) -> LoadResult[ProgramView]:
        outcome = await self.coordinator.sync_programs(event_id, timeout=timeout)
        result = await self._load_cached(
            lambda db: store_service.get_programs(db, event_id),
            ProgramView.from_record,
        )
        return _apply_outcome(result, outcome)

    async def _load_cached(
        self,
        query: Callable[[AsyncSession], Awaitable[list]],
        to_view: Callable[[object], T],
    ) -> LoadResult[T]:
        try:
            async with self.coordinator.session_factory() as db:
                records = await query(db)
                items = [to_view(record) for record in records]
        except SQLAlchemyError:
            logger.exception("cached_load_failed")
            error = StoreError("Local store read failed")
            return LoadResult(status="failed", error=error.user_message, error_kind=error.kind)
        return LoadResult(items=items)
