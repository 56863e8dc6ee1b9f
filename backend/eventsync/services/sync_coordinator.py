"""
Sync coordinator: one logical sync run per entity family.

CONCURRENCY STRATEGY: single-flight per family
==============================================

Problem:
  The UI can ask for a sync from several places at once (pull-to-refresh,
  app foregrounding, opening a detail screen). Two runs of the same family
  would both read the same watermark, fetch the same delta and race to merge.

Solution:
  Each family (`events`, `ticket_types:<event>`, `slots:<event>`,
  `programs:<event>`) has a state machine

      IDLE -> RUNNING -> {COMMITTED, FAILED} -> IDLE

  A request for a family that is RUNNING returns a BUSY outcome immediately,
  without touching the network. The check-and-mark happens with no await in
  between, so on a single event loop it cannot interleave. Different
  families touch disjoint rows and run concurrently.

Ordering:
  1. fetch (the only suspension point on the network)
  2. merge, then advance the watermark, in one transaction
  3. commit

  The watermark is the time the fetch was requested, so a record changed
  while the fetch was in flight is fetched again by the next delta. A failed
  commit leaves both records and watermark as they were; re-applying the
  overlap is idempotent.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventsync.core.config import get_settings
from eventsync.core.errors import StoreError, SyncError, SyncTimeoutError
from eventsync.core.logging import get_logger
from eventsync.core.metrics import (
    family_label,
    record_merge,
    record_sync_run,
    store_failures,
    sync_busy_skips,
    sync_duration,
)
from eventsync.models.event import CachedEvent
from eventsync.services import merge_service, store_service
from eventsync.services.interfaces.catalog import CatalogSource
from eventsync.services.merge_service import MergeResult
from eventsync.services.snapshot import EventSnapshot

logger = get_logger(__name__)

T = TypeVar("T")

EVENTS_FAMILY = "events"


def ticket_types_family(event_id: str) -> str:
    return f"ticket_types:{event_id}"


def slots_family(event_id: str) -> str:
    return f"slots:{event_id}"


def programs_family(event_id: str) -> str:
    return f"programs:{event_id}"


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMMITTED = "committed"
    FAILED = "failed"


class SyncStatus(str, Enum):
    COMMITTED = "committed"
    FAILED = "failed"
    BUSY = "busy"
    SKIPPED = "skipped"


@dataclass
class SyncOutcome:
    family: str
    status: SyncStatus
    merge: MergeResult = field(default_factory=MergeResult)
    error: Optional[SyncError] = None
    forced_full: bool = False

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.COMMITTED, SyncStatus.SKIPPED)


class SyncCoordinator:
    """
    Owns every write to the local store.

    Constructed explicitly and injected wherever it is needed; there is no
    module-level instance.
    """

    def __init__(
        self,
        catalog: CatalogSource,
        session_factory: async_sessionmaker[AsyncSession],
        snapshot: Optional[EventSnapshot] = None,
        subresource_timeout: Optional[float] = None,
    ):
        self.catalog = catalog
        self.session_factory = session_factory
        self.snapshot = snapshot or EventSnapshot()
        self.subresource_timeout = subresource_timeout or get_settings().SUBRESOURCE_TIMEOUT_SECONDS
        self.needs_full_resync = False
        self._running: set[str] = set()
        self._states: dict[str, SyncState] = {}
        self._last_outcomes: dict[str, SyncOutcome] = {}

    def state(self, family: str) -> SyncState:
        return self._states.get(family, SyncState.IDLE)

    def is_running(self, family: str) -> bool:
        return family in self._running

    def last_outcome(self, family: str) -> Optional[SyncOutcome]:
        return self._last_outcomes.get(family)

    # ------------------------------------------------------------------
    # Families
    # ------------------------------------------------------------------

    async def sync_events(self, force_full: bool = False) -> SyncOutcome:
        """Delta (or forced full) sync of the event catalog, then snapshot reload."""
        outcome = await self._run(EVENTS_FAMILY, lambda: self._sync_events(force_full))
        if outcome.status is SyncStatus.FAILED:
            self.snapshot.set_error(outcome.error.user_message)
        return outcome

    async def sync_ticket_types(
        self,
        event_id: str,
        force_full: bool = False,
        timeout: Optional[float] = None,
    ) -> SyncOutcome:
        family = ticket_types_family(event_id)
        return await self._run(family, lambda: self._sync_ticket_types(family, event_id, force_full, timeout))

    async def sync_slots(
        self,
        event_id: str,
        force_full: bool = False,
        timeout: Optional[float] = None,
    ) -> SyncOutcome:
        family = slots_family(event_id)
        return await self._run(family, lambda: self._sync_slots(family, event_id, force_full, timeout))

    async def sync_programs(self, event_id: str, timeout: Optional[float] = None) -> SyncOutcome:
        family = programs_family(event_id)
        return await self._run(family, lambda: self._sync_programs(family, event_id, timeout))

    async def reset_store(self) -> None:
        """Wipe the cache and watermarks; the next events sync is a full one."""
        await self._write(store_service.reset_store)
        self.needs_full_resync = False
        await self.snapshot.reload(self.session_factory)
        logger.warning("store_reset")

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    async def _run(self, family: str, work: Callable[[], Awaitable[SyncOutcome]]) -> SyncOutcome:
        if family in self._running:
            sync_busy_skips.labels(family=family_label(family)).inc()
            record_sync_run(family, SyncStatus.BUSY.value)
            logger.info("sync_already_running", family=family)
            return SyncOutcome(family=family, status=SyncStatus.BUSY)

        self._running.add(family)
        self._states[family] = SyncState.RUNNING
        started = time.perf_counter()
        try:
            with structlog.contextvars.bound_contextvars(family=family, sync_id=uuid.uuid4().hex[:8]):
                logger.info("sync_started")
                try:
                    outcome = await work()
                except SyncError as e:
                    self._states[family] = SyncState.FAILED
                    outcome = SyncOutcome(family=family, status=SyncStatus.FAILED, error=e)
                    logger.warning(
                        "sync_failed",
                        error_kind=e.kind,
                        error=e.message,
                        recoverable=e.recoverable,
                    )
                else:
                    self._states[family] = SyncState.COMMITTED
                    record_merge(
                        family,
                        inserted=outcome.merge.inserted,
                        updated=outcome.merge.updated,
                        deleted=outcome.merge.deleted,
                        skipped=outcome.merge.stale,
                    )
                    logger.info(
                        "sync_finished",
                        status=outcome.status.value,
                        inserted=outcome.merge.inserted,
                        updated=outcome.merge.updated,
                        unchanged=outcome.merge.unchanged,
                        stale=outcome.merge.stale,
                        deleted=outcome.merge.deleted,
                        forced_full=outcome.forced_full,
                    )
                sync_duration.labels(family=family_label(family)).observe(time.perf_counter() - started)
                record_sync_run(family, outcome.status.value)
                self._last_outcomes[family] = outcome
                return outcome
        finally:
            self._running.discard(family)
            self._states[family] = SyncState.IDLE

    async def _write(self, merge: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run `merge` inside one transaction; any store failure becomes StoreError."""
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    return await merge(db)
        except SQLAlchemyError as e:
            store_failures.inc()
            self.needs_full_resync = True
            logger.exception("store_commit_failed")
            raise StoreError(f"Local store commit failed: {e.__class__.__name__}") from e

    async def _read(self, query: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_factory() as db:
                return await query(db)
        except SQLAlchemyError as e:
            store_failures.inc()
            logger.exception("store_read_failed")
            raise StoreError(f"Local store read failed: {e.__class__.__name__}") from e

    async def _fetch(self, fetch: Awaitable[T], timeout: Optional[float], resource: str) -> T:
        """Await a sub-resource fetch, abandoning it once `timeout` seconds pass."""
        limit = timeout if timeout is not None else self.subresource_timeout
        try:
            return await asyncio.wait_for(fetch, timeout=limit)
        except asyncio.TimeoutError as e:
            raise SyncTimeoutError(f"Loading {resource} timed out after {limit:g}s", timeout=limit) from e

    # ------------------------------------------------------------------
    # Family implementations
    # ------------------------------------------------------------------

    async def _sync_events(self, force_full: bool) -> SyncOutcome:
        forced = force_full or self.needs_full_resync
        since = None if forced else await self._read(
            lambda db: store_service.get_watermark(db, EVENTS_FAMILY)
        )
        self.snapshot.set_loading(True)
        try:
            requested_at = datetime.now(timezone.utc)
            changes = await self.catalog.fetch_events(since=since)
            logger.info(
                "events_fetched",
                since=since.isoformat() if since else None,
                changed=len(changes.changed),
                deleted=len(changes.deleted_ids),
            )

            async def merge_and_advance(db: AsyncSession) -> MergeResult:
                result = await merge_service.apply_event_changes(db, changes, overwrite=forced)
                # Same transaction: records and watermark land together or not at all
                await store_service.set_watermark(db, EVENTS_FAMILY, requested_at)
                return result

            merge = await self._write(merge_and_advance)
            self.needs_full_resync = False

            try:
                await self.snapshot.reload(self.session_factory)
            except StoreError:
                logger.warning("snapshot_reload_after_sync_failed")
            else:
                self.snapshot.set_error(None)
        finally:
            self.snapshot.set_loading(False)

        return SyncOutcome(family=EVENTS_FAMILY, status=SyncStatus.COMMITTED, merge=merge, forced_full=forced)

    async def _cached_event(self, event_id: str) -> Optional[CachedEvent]:
        return await self._read(lambda db: store_service.get_event(db, event_id))

    async def _sync_ticket_types(
        self,
        family: str,
        event_id: str,
        force_full: bool,
        timeout: Optional[float],
    ) -> SyncOutcome:
        if await self._cached_event(event_id) is None:
            logger.warning("parent_event_not_cached", event_id=event_id)
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)

        items = await self._fetch(self.catalog.fetch_ticket_types(event_id), timeout, "ticket types")

        async def merge(db: AsyncSession) -> Optional[MergeResult]:
            if await store_service.get_event(db, event_id) is None:
                return None
            return await merge_service.merge_ticket_types(db, event_id, items, prune=force_full)

        result = await self._write(merge)
        if result is None:
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)
        return SyncOutcome(family=family, status=SyncStatus.COMMITTED, merge=result, forced_full=force_full)

    async def _sync_slots(
        self,
        family: str,
        event_id: str,
        force_full: bool,
        timeout: Optional[float],
    ) -> SyncOutcome:
        event = await self._cached_event(event_id)
        if event is None:
            logger.warning("parent_event_not_cached", event_id=event_id)
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)

        items = await self._fetch(self.catalog.fetch_slots(event_id), timeout, "slots")
        if not event.uses_panthi and not items:
            logger.info("event_has_no_panthis", event_id=event_id)
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)

        async def merge(db: AsyncSession) -> Optional[MergeResult]:
            if await store_service.get_event(db, event_id) is None:
                return None
            return await merge_service.merge_panthis(db, event_id, items, prune=force_full)

        result = await self._write(merge)
        if result is None:
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)
        return SyncOutcome(family=family, status=SyncStatus.COMMITTED, merge=result, forced_full=force_full)

    async def _sync_programs(self, family: str, event_id: str, timeout: Optional[float]) -> SyncOutcome:
        if await self._cached_event(event_id) is None:
            logger.warning("parent_event_not_cached", event_id=event_id)
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)

        programs = await self._fetch(self.catalog.fetch_programs(event_id), timeout, "programs")

        async def replace(db: AsyncSession) -> Optional[MergeResult]:
            if await store_service.get_event(db, event_id) is None:
                return None
            return await merge_service.replace_programs(db, event_id, programs)

        result = await self._write(replace)
        if result is None:
            return SyncOutcome(family=family, status=SyncStatus.SKIPPED)
        return SyncOutcome(family=family, status=SyncStatus.COMMITTED, merge=result)
