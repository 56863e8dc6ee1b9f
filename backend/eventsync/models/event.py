"""
Cached event with its owned sub-resources.

Key design decisions:
- `id` is the server's stable identifier, so re-syncs update rows in place
- Children reference the event with ON DELETE CASCADE; a tombstoned event
  takes its ticket types, panthis and programs with it
- `parent_event_id` links multi-day sub-events without a foreign key, since
  the parent may never have been cached
- Index on `date` backs the snapshot scan (date descending)
"""

from sqlalchemy import Column, String, Text, Integer, Boolean, Index
from sqlalchemy.orm import relationship

from eventsync.db.base import Base, TimestampMixin, UTCDateTime


class CachedEvent(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    plain_description = Column(Text, nullable=True)
    html_description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    category_name = Column(String(255), nullable=True)
    category_id = Column(Integer, nullable=True)
    image_url = Column(String(1000), nullable=True)
    is_registration_on = Column(Boolean, nullable=False, default=False)
    is_ticketing_on = Column(Boolean, nullable=False, default=False)
    show_buy_tickets = Column(Boolean, nullable=False, default=False)
    # NULL means "to be announced"
    date = Column(UTCDateTime(), nullable=True)
    time_label = Column(String(100), nullable=True)
    event_link = Column(String(1000), nullable=True)
    uses_panthi = Column(Boolean, nullable=False, default=False)
    # Server timestamp; NULL when the wire carried none
    last_updated_at = Column(UTCDateTime(), nullable=True)
    parent_event_id = Column(String(64), nullable=True, index=True)

    # Relationships
    ticket_types = relationship(
        "CachedTicketType",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    panthis = relationship(
        "CachedPanthi",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )
    programs = relationship(
        "CachedProgram",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<CachedEvent(id={self.id}, title={self.title}, date={self.date})>"
