"""
Local store access: point lookups, bounded scans, cascading deletes and the
per-family sync watermark.

Functions take an AsyncSession and never commit; the caller owns the
transaction so one sync run lands atomically.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventsync.models.event import CachedEvent
from eventsync.models.panthi import CachedPanthi
from eventsync.models.program import CachedProgram
from eventsync.models.ticket_type import CachedTicketType
from eventsync.models.watermark import SyncWatermark

# Keeps IN (...) lists under SQLite's bound-parameter limit
IN_CLAUSE_CHUNK = 500


def _chunks(values: Sequence, size: int = IN_CLAUSE_CHUNK) -> Iterable[Sequence]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


async def get_event(db: AsyncSession, event_id: str) -> Optional[CachedEvent]:
    result = await db.execute(select(CachedEvent).where(CachedEvent.id == event_id))
    return result.scalar_one_or_none()


async def get_events_by_ids(db: AsyncSession, event_ids: Iterable[str]) -> dict[str, CachedEvent]:
    """Batch lookup of cached events whose id is in `event_ids`."""
    ids = sorted(set(event_ids))
    found: dict[str, CachedEvent] = {}
    for chunk in _chunks(ids):
        result = await db.execute(select(CachedEvent).where(CachedEvent.id.in_(chunk)))
        for event in result.scalars():
            found[event.id] = event
    return found


async def list_events(db: AsyncSession, limit: int) -> list[CachedEvent]:
    """
    Bounded snapshot scan.

    Ordering: date descending, events with no date ("to be announced") after
    every dated event, ties broken by id ascending.
    """
    result = await db.execute(
        select(CachedEvent)
        .order_by(
            CachedEvent.date.is_(None),
            CachedEvent.date.desc(),
            CachedEvent.id.asc(),
        )
        .limit(limit)
    )
    return list(result.scalars().all())


async def delete_events(db: AsyncSession, event_ids: Iterable[str]) -> list[str]:
    """
    Delete events and, through ON DELETE CASCADE, everything they own.

    Ids with no cached row are ignored. Returns the ids actually removed.
    """
    existing = sorted((await get_events_by_ids(db, event_ids)).keys())
    for chunk in _chunks(existing):
        await db.execute(
            delete(CachedEvent)
            .where(CachedEvent.id.in_(chunk))
            .execution_options(synchronize_session="fetch")
        )
    return existing


async def get_ticket_types(db: AsyncSession, event_id: str) -> list[CachedTicketType]:
    result = await db.execute(
        select(CachedTicketType)
        .where(CachedTicketType.event_id == event_id)
        .order_by(CachedTicketType.id)
    )
    return list(result.scalars().all())


async def get_panthis(db: AsyncSession, event_id: str) -> list[CachedPanthi]:
    result = await db.execute(
        select(CachedPanthi)
        .where(CachedPanthi.event_id == event_id)
        .order_by(CachedPanthi.id)
    )
    return list(result.scalars().all())


async def get_programs(db: AsyncSession, event_id: str) -> list[CachedProgram]:
    result = await db.execute(
        select(CachedProgram)
        .where(CachedProgram.event_id == event_id)
        .order_by(CachedProgram.position, CachedProgram.row_id)
    )
    return list(result.scalars().all())


async def delete_programs(db: AsyncSession, event_id: str) -> int:
    """Delete all programs of an event; categories and locations cascade."""
    result = await db.execute(
        delete(CachedProgram)
        .where(CachedProgram.event_id == event_id)
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def delete_ticket_types_except(db: AsyncSession, event_id: str, keep_ids: Iterable[int]) -> int:
    result = await db.execute(
        delete(CachedTicketType)
        .where(
            CachedTicketType.event_id == event_id,
            CachedTicketType.id.not_in(list(keep_ids)),
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def delete_panthis_except(db: AsyncSession, event_id: str, keep_ids: Iterable[int]) -> int:
    result = await db.execute(
        delete(CachedPanthi)
        .where(
            CachedPanthi.event_id == event_id,
            CachedPanthi.id.not_in(list(keep_ids)),
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount or 0


async def get_watermark(db: AsyncSession, family: str) -> Optional[datetime]:
    result = await db.execute(select(SyncWatermark.synced_at).where(SyncWatermark.family == family))
    return result.scalar_one_or_none()


async def set_watermark(db: AsyncSession, family: str, synced_at: datetime) -> None:
    watermark = await db.get(SyncWatermark, family)
    if watermark is None:
        db.add(SyncWatermark(family=family, synced_at=synced_at))
    else:
        watermark.synced_at = synced_at


async def reset_store(db: AsyncSession) -> None:
    """Drop every cached row and watermark; the next sync rebuilds from scratch."""
    await db.execute(delete(CachedEvent).execution_options(synchronize_session=False))
    await db.execute(delete(SyncWatermark).execution_options(synchronize_session=False))
