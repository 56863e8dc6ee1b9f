"""
Ticket type offered for a cached event.

Identifiers are only unique within one event, so the primary key is
(event_id, id).
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from eventsync.db.base import Base, TimestampMixin, UTCDateTime


class CachedTicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    event_id = Column(String(64), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)
    type_name = Column(String(255), nullable=False)
    public_price = Column(Float, nullable=False)
    member_price = Column(Float, nullable=True)
    early_bird_public_price = Column(Float, nullable=True)
    early_bird_member_price = Column(Float, nullable=True)
    early_bird_end_date = Column(UTCDateTime(), nullable=True)
    currency_code = Column(String(8), nullable=False, default="USD")
    is_member_exclusive = Column(Boolean, nullable=False, default=False)
    # Server timestamp; NULL when the wire carried none
    last_updated_at = Column(UTCDateTime(), nullable=True)

    event = relationship("CachedEvent", back_populates="ticket_types")

    def __repr__(self) -> str:
        return f"<CachedTicketType(event={self.event_id}, id={self.id}, name={self.type_name})>"
