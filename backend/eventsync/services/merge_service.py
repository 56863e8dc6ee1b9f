"""
Merge remote catalog results into the local store.

MERGE POLICIES
==============

Two consistency strategies coexist, chosen per entity family:

  INCREMENTAL_UPSERT (events, ticket types, panthis)
    1. Batch-lookup cached rows whose identifier is in the incoming set
    2. Update matches in place, insert the rest
    3. Never infer deletion from absence; events are removed only through the
       server's tombstone list

    A row whose stored `last_updated_at` is newer than the incoming one is
    left alone, so an out-of-order response cannot regress it. Timestamps
    are only compared when both the stored and the incoming record carry one
    from the server; a missing timestamp is stored as NULL, never as local
    time. A forced full resync overwrites regardless.

  REPLACE_ALL (programs)
    Programs change rarely and always as a group: every cached program of the
    event (with its categories and practice locations) is deleted and the
    fetched list inserted fresh.

Nothing here commits. The coordinator wraps each call in one transaction so
readers see either the pre-merge or the post-merge state.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from eventsync.core.logging import get_logger
from eventsync.models.event import CachedEvent
from eventsync.models.panthi import CachedPanthi
from eventsync.models.program import CachedPracticeLocation, CachedProgram, CachedProgramCategory
from eventsync.models.ticket_type import CachedTicketType
from eventsync.schemas.event import EventChanges, RemoteEvent
from eventsync.schemas.panthi import RemotePanthi
from eventsync.schemas.program import RemoteProgram
from eventsync.schemas.ticket_type import RemoteTicketType
from eventsync.services import store_service

logger = get_logger(__name__)


class MergePolicy(str, Enum):
    INCREMENTAL_UPSERT = "incremental_upsert"
    REPLACE_ALL = "replace_all"


FAMILY_POLICIES = {
    "events": MergePolicy.INCREMENTAL_UPSERT,
    "ticket_types": MergePolicy.INCREMENTAL_UPSERT,
    "slots": MergePolicy.INCREMENTAL_UPSERT,
    "programs": MergePolicy.REPLACE_ALL,
}


@dataclass
class MergeResult:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    stale: int = 0
    deleted: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.inserted or self.updated or self.deleted)


def _assign(record: Any, values: dict) -> bool:
    """Copy values onto an ORM row. Returns True if any field actually changed."""
    changed = False
    for field, value in values.items():
        if getattr(record, field) != value:
            setattr(record, field, value)
            changed = True
    return changed


def _is_stale(stored: Optional[datetime], incoming: Optional[datetime]) -> bool:
    return stored is not None and incoming is not None and incoming < stored


def _event_values(remote: RemoteEvent) -> dict:
    return {
        "title": remote.title,
        "plain_description": remote.plain_description,
        "html_description": remote.html_description,
        "location": remote.location,
        "category_name": remote.category_name,
        "category_id": remote.category_id,
        "image_url": remote.image_url,
        "is_registration_on": bool(remote.is_registration_on),
        "is_ticketing_on": bool(remote.is_ticketing_on),
        "show_buy_tickets": bool(remote.show_buy_tickets),
        "date": remote.date,
        "time_label": remote.time_label,
        "event_link": remote.event_link,
        "uses_panthi": bool(remote.uses_panthi),
        "last_updated_at": remote.last_updated_at,
        "parent_event_id": remote.parent_event_id,
    }


def _ticket_type_values(remote: RemoteTicketType) -> dict:
    return {
        "type_name": remote.type_name,
        "public_price": remote.public_price,
        "member_price": remote.member_price,
        "early_bird_public_price": remote.early_bird_public_price,
        "early_bird_member_price": remote.early_bird_member_price,
        "early_bird_end_date": remote.early_bird_end_date,
        "currency_code": remote.currency_code,
        "is_member_exclusive": bool(remote.is_member_exclusive),
        "last_updated_at": remote.last_updated_at,
    }


def _panthi_values(remote: RemotePanthi) -> dict:
    return {
        "name": remote.name,
        "description": remote.description,
        "available_slots": remote.available_slots,
        "total_slots": remote.total_slots,
        "last_updated_at": remote.last_updated_at,
    }


def _dedupe(items: list, key) -> list:
    """Keep the last occurrence of each identifier, preserving first-seen order."""
    by_key: dict = {}
    for item in items:
        by_key[key(item)] = item
    return list(by_key.values())


async def apply_event_changes(
    db: AsyncSession,
    changes: EventChanges,
    overwrite: bool = False,
) -> MergeResult:
    """Upsert changed events, then delete tombstoned ids with cascade."""
    result = MergeResult()
    changed = _dedupe(changes.changed, key=lambda e: e.id)

    if changed:
        existing = await store_service.get_events_by_ids(db, (e.id for e in changed))
        for remote in changed:
            values = _event_values(remote)
            record = existing.get(remote.id)
            if record is None:
                db.add(CachedEvent(id=remote.id, **values))
                result.inserted += 1
            elif not overwrite and _is_stale(record.last_updated_at, remote.last_updated_at):
                result.stale += 1
            elif _assign(record, values):
                result.updated += 1
            else:
                result.unchanged += 1
        await db.flush()

    if changes.deleted_ids:
        deleted = await store_service.delete_events(db, changes.deleted_ids)
        result.deleted = len(deleted)
        missing = len(set(changes.deleted_ids)) - len(deleted)
        if missing:
            logger.debug("tombstones_already_absent", count=missing)

    return result


async def merge_ticket_types(
    db: AsyncSession,
    event_id: str,
    items: list[RemoteTicketType],
    prune: bool = False,
) -> MergeResult:
    """Upsert the event's ticket types; with `prune`, drop ones the server no longer returns."""
    result = MergeResult()
    items = _dedupe(items, key=lambda t: t.id)
    existing = {t.id: t for t in await store_service.get_ticket_types(db, event_id)}

    for remote in items:
        values = _ticket_type_values(remote)
        record = existing.get(remote.id)
        if record is None:
            db.add(CachedTicketType(event_id=event_id, id=remote.id, **values))
            result.inserted += 1
        elif not prune and _is_stale(record.last_updated_at, remote.last_updated_at):
            result.stale += 1
        elif _assign(record, values):
            result.updated += 1
        else:
            result.unchanged += 1
    await db.flush()

    if prune:
        result.deleted = await store_service.delete_ticket_types_except(
            db, event_id, [t.id for t in items]
        )
    return result


async def merge_panthis(
    db: AsyncSession,
    event_id: str,
    items: list[RemotePanthi],
    prune: bool = False,
) -> MergeResult:
    """Upsert the event's panthi inventory; with `prune`, drop ones the server no longer returns."""
    result = MergeResult()
    items = _dedupe(items, key=lambda p: p.id)
    existing = {p.id: p for p in await store_service.get_panthis(db, event_id)}

    for remote in items:
        values = _panthi_values(remote)
        record = existing.get(remote.id)
        if record is None:
            db.add(CachedPanthi(event_id=event_id, id=remote.id, **values))
            result.inserted += 1
        elif not prune and _is_stale(record.last_updated_at, remote.last_updated_at):
            result.stale += 1
        elif _assign(record, values):
            result.updated += 1
        else:
            result.unchanged += 1
    await db.flush()

    if prune:
        result.deleted = await store_service.delete_panthis_except(
            db, event_id, [p.id for p in items]
        )
    return result


def _build_program(event_id: str, position: int, remote: RemoteProgram) -> CachedProgram:
    penalty = remote.penalty_details
    program = CachedProgram(
        event_id=event_id,
        id=remote.id,
        position=position,
        name=remote.name,
        time_label=remote.time_label,
        rules_and_guidelines=remote.rules_and_guidelines,
        rules_description_html=remote.rules_description_html,
        instructions_html=remote.instructions_html,
        refund_policy_html=remote.refund_policy_html,
        registration_status=remote.registration_status,
        reg_close_date=penalty.reg_close_date if penalty else None,
        withdrawal_penalty_text=penalty.withdrawal_penalty_text if penalty else None,
        penalty_amount=penalty.penalty_amount if penalty else None,
        penalty_type=penalty.penalty_type if penalty else None,
        show_penalty=penalty.show_penalty if penalty else None,
        others_fee=remote.others_fee,
        paid_member_fee=remote.paid_member_fee,
        penalty=remote.penalty,
        currency_code=remote.currency_code,
        reg_type=remote.reg_type,
        min_team_size=remote.min_team_size,
        max_team_size=remote.max_team_size,
        show_guru_option=remote.show_guru_option,
        show_group_name_option=remote.show_group_name_option,
        show_age_option=remote.show_age_option,
    )
    program.categories = [
        CachedProgramCategory(
            id=category.id,
            position=index,
            name=category.name,
            min_age=category.min_age,
            max_age=category.max_age,
        )
        for index, category in enumerate(_dedupe(remote.categories, key=lambda c: c.id))
    ]
    program.practice_locations = [
        CachedPracticeLocation(id=location.id, position=index, location=location.location)
        for index, location in enumerate(_dedupe(remote.practice_locations or [], key=lambda p: p.id))
    ]
    return program


async def replace_programs(
    db: AsyncSession,
    event_id: str,
    programs: list[RemoteProgram],
) -> MergeResult:
    """Delete every cached program of the event and insert the fetched list."""
    result = MergeResult()
    result.deleted = await store_service.delete_programs(db, event_id)
    for position, remote in enumerate(_dedupe(programs, key=lambda p: p.id)):
        db.add(_build_program(event_id, position, remote))
        result.inserted += 1
    await db.flush()
    return result
