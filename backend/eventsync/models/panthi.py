"""
Panthi: a time-slot allocation with limited capacity, owned by one event.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from eventsync.db.base import Base, TimestampMixin, UTCDateTime


class CachedPanthi(Base, TimestampMixin):
    __tablename__ = "panthis"

    event_id = Column(String(64), ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    id = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    available_slots = Column(Integer, nullable=False, default=0)
    total_slots = Column(Integer, nullable=True)
    # Server timestamp; NULL when the wire carried none
    last_updated_at = Column(UTCDateTime(), nullable=True)

    event = relationship("CachedEvent", back_populates="panthis")

    __table_args__ = (
        CheckConstraint("available_slots >= 0", name="check_panthi_available_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CachedPanthi(event={self.event_id}, id={self.id}, available={self.available_slots}/{self.total_slots})>"
