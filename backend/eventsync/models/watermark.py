"""
Per-family sync watermark, kept in the cache database so it survives restarts.
"""

from sqlalchemy import Column, String

from eventsync.db.base import Base, UTCDateTime


class SyncWatermark(Base):
    __tablename__ = "sync_watermarks"

    family = Column(String(100), primary_key=True)
    synced_at = Column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"<SyncWatermark(family={self.family}, synced_at={self.synced_at})>"
