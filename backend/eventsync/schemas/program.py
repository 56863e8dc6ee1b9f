"""
Pydantic schemas for event sub-programs, their categories and practice
locations.

The derived pricing and team-size rules mirror what the registration screens
need, so a UI never has to reimplement them.
"""

from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, computed_field

from eventsync.schemas.common import WireBool, WireId

WAITLIST_STATUS = "Join Waitlist"
GROUP_REG_TYPE = 2


class PenaltyDetails(BaseModel):
    reg_close_date: Optional[str] = None
    withdrawal_penalty_text: Optional[str] = None
    penalty_amount: Optional[float] = None
    penalty_type: Optional[str] = None
    show_penalty: WireBool = None

    model_config = {"from_attributes": True}


class ProgramCategory(BaseModel):
    id: int
    name: str
    min_age: Optional[int] = None
    max_age: Optional[int] = None

    model_config = {"from_attributes": True}


class PracticeLocation(BaseModel):
    id: int
    location: str

    model_config = {"from_attributes": True}


class ProgramFields(BaseModel):
    id: WireId
    name: str
    time_label: Optional[str] = Field(None, validation_alias=AliasChoices("time_label", "time"))
    rules_and_guidelines: Optional[str] = None
    rules_description_html: Optional[str] = Field(
        None, validation_alias=AliasChoices("rules_description_html", "rules_desc")
    )
    instructions_html: Optional[str] = None
    refund_policy_html: Optional[str] = None
    penalty_details: Optional[PenaltyDetails] = None
    registration_status: Optional[str] = None
    categories: list[ProgramCategory] = Field(default_factory=list)
    practice_locations: Optional[list[PracticeLocation]] = None

    others_fee: Optional[float] = None
    paid_member_fee: Optional[float] = None
    penalty: Optional[float] = None
    currency_code: Optional[str] = None
    reg_type: Optional[int] = None
    min_team_size: Optional[int] = None
    max_team_size: Optional[int] = None
    show_guru_option: WireBool = None
    show_group_name_option: WireBool = None
    show_age_option: WireBool = None


class RemoteProgram(ProgramFields):
    pass


class ProgramView(ProgramFields):
    event_id: str

    @classmethod
    def from_record(cls, record) -> "ProgramView":
        penalty_details = None
        if any(
            value is not None
            for value in (
                record.reg_close_date,
                record.withdrawal_penalty_text,
                record.penalty_amount,
                record.penalty_type,
                record.show_penalty,
            )
        ):
            penalty_details = PenaltyDetails.model_validate(record)
        return cls(
            id=record.id,
            event_id=record.event_id,
            name=record.name,
            time_label=record.time_label,
            rules_and_guidelines=record.rules_and_guidelines,
            rules_description_html=record.rules_description_html,
            instructions_html=record.instructions_html,
            refund_policy_html=record.refund_policy_html,
            penalty_details=penalty_details,
            registration_status=record.registration_status,
            categories=[ProgramCategory.model_validate(c) for c in record.categories],
            practice_locations=[PracticeLocation.model_validate(p) for p in record.practice_locations] or None,
            others_fee=record.others_fee,
            paid_member_fee=record.paid_member_fee,
            penalty=record.penalty,
            currency_code=record.currency_code,
            reg_type=record.reg_type,
            min_team_size=record.min_team_size,
            max_team_size=record.max_team_size,
            show_guru_option=record.show_guru_option,
            show_group_name_option=record.show_group_name_option,
            show_age_option=record.show_age_option,
        )

    @computed_field
    @property
    def min_team_size_value(self) -> int:
        return max(1, self.min_team_size or 1)

    @computed_field
    @property
    def max_team_size_value(self) -> int:
        return max(self.min_team_size_value, self.max_team_size or self.min_team_size_value)

    @computed_field
    @property
    def is_group_program(self) -> bool:
        return (
            self.max_team_size_value > 1
            or self.min_team_size_value > 1
            or (self.reg_type or 0) == GROUP_REG_TYPE
        )

    @computed_field
    @property
    def is_paid_program(self) -> bool:
        return (self.others_fee or 0.0) > 0.0 or (self.paid_member_fee or 0.0) > 0.0

    @computed_field
    @property
    def is_waitlist_program(self) -> bool:
        return self.registration_status == WAITLIST_STATUS

    @computed_field
    @property
    def requires_payment(self) -> bool:
        return self.is_paid_program and not self.is_waitlist_program

    def price(self, is_member: bool) -> float:
        if is_member and (self.paid_member_fee or 0.0) > 0.0:
            return self.paid_member_fee
        return self.others_fee or 0.0

    @computed_field
    @property
    def formatted_price(self) -> str:
        member_price = self.paid_member_fee or 0.0
        public_price = self.others_fee or 0.0

        if member_price > 0.0 and public_price > 0.0:
            if member_price == public_price:
                return f"${member_price:.0f}"
            return f"${member_price:.0f} (Members) / ${public_price:.0f} (Non-Members)"
        if member_price > 0.0:
            return f"${member_price:.0f} (Members Only)"
        if public_price > 0.0:
            return f"${public_price:.0f}"
        return "Free"
