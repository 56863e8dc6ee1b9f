"""
Sub-programs of an event (competitions, performances) with their categories
and practice locations.

Programs are replaced wholesale on every sync, so rows carry a surrogate key
and `position` preserves the server's ordering.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Float,
    Boolean,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from eventsync.db.base import Base, TimestampMixin


class CachedProgram(Base, TimestampMixin):
    __tablename__ = "programs"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(64), ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    time_label = Column(String(100), nullable=True)
    rules_and_guidelines = Column(Text, nullable=True)
    rules_description_html = Column(Text, nullable=True)
    instructions_html = Column(Text, nullable=True)
    refund_policy_html = Column(Text, nullable=True)
    registration_status = Column(String(100), nullable=True)

    # Withdrawal penalty details
    reg_close_date = Column(String(50), nullable=True)
    withdrawal_penalty_text = Column(Text, nullable=True)
    penalty_amount = Column(Float, nullable=True)
    penalty_type = Column(String(50), nullable=True)
    show_penalty = Column(Boolean, nullable=True)

    # Pricing
    others_fee = Column(Float, nullable=True)
    paid_member_fee = Column(Float, nullable=True)
    penalty = Column(Float, nullable=True)
    currency_code = Column(String(8), nullable=True)
    reg_type = Column(Integer, nullable=True)
    min_team_size = Column(Integer, nullable=True)
    max_team_size = Column(Integer, nullable=True)
    show_guru_option = Column(Boolean, nullable=True)
    show_group_name_option = Column(Boolean, nullable=True)
    show_age_option = Column(Boolean, nullable=True)

    event = relationship("CachedEvent", back_populates="programs")
    categories = relationship(
        "CachedProgramCategory",
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CachedProgramCategory.position",
        lazy="selectin",
    )
    practice_locations = relationship(
        "CachedPracticeLocation",
        back_populates="program",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CachedPracticeLocation.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("event_id", "id", name="uq_program_event_id"),
    )

    def __repr__(self) -> str:
        return f"<CachedProgram(event={self.event_id}, id={self.id}, name={self.name})>"


class CachedProgramCategory(Base):
    __tablename__ = "program_categories"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    program_row_id = Column(Integer, ForeignKey("programs.row_id", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    min_age = Column(Integer, nullable=True)
    max_age = Column(Integer, nullable=True)

    program = relationship("CachedProgram", back_populates="categories")

    __table_args__ = (
        UniqueConstraint("program_row_id", "id", name="uq_category_program_id"),
    )


class CachedPracticeLocation(Base):
    __tablename__ = "practice_locations"

    row_id = Column(Integer, primary_key=True, autoincrement=True)
    program_row_id = Column(Integer, ForeignKey("programs.row_id", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)
    location = Column(String(500), nullable=False)

    program = relationship("CachedProgram", back_populates="practice_locations")
