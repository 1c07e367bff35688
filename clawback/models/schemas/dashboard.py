"""
Pydantic schemas for the per-user dashboard (saved cards, credit flags, progress).
"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator
from clawback.config import REMINDER_SETTINGS
from ..db.enums import CreditFrequency, PlanTier

class ProfileRead(BaseModel):
    id: str
    full_name: Optional[str]
    email: Optional[str]
    phone_e164: Optional[str]
    notif_email_enabled: bool
    notif_sms_enabled: bool
    sms_consent: bool
    default_offsets_days: Optional[List[int]]
    plan: PlanTier
    pro_activated_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    phone_e164: Optional[str] = Field(None, pattern=r"^\+[1-9]\d{6,14}$")
    notif_email_enabled: Optional[bool] = None
    notif_sms_enabled: Optional[bool] = None
    sms_consent: Optional[bool] = None
    default_offsets_days: Optional[List[int]] = None

    @field_validator("notif_email_enabled", "notif_sms_enabled", "sms_consent")
    @classmethod
    def validate_flags_not_null(cls, v: Optional[bool]) -> Optional[bool]:
        # Omit a flag to leave it unchanged; the columns are not nullable
        if v is None:
            raise ValueError("must be true or false")
        return v

    @field_validator("default_offsets_days")
    @classmethod
    def validate_offsets(cls, v: Optional[List[int]]) -> Optional[List[int]]:
        if v is None:
            return v
        max_offset = int(REMINDER_SETTINGS["max_offset_days"])  # type: ignore[arg-type]
        for offset in v:
            if offset < 1 or offset > max_offset:
                raise ValueError(f"offsets must be between 1 and {max_offset} days")
        # Keep order stable but drop duplicates
        return list(dict.fromkeys(v))

class UserCardCreate(BaseModel):
    card_key: str = Field(min_length=1)
    card_start_date: Optional[date] = None

class UserCardUpdate(BaseModel):
    """Omitted fields are left unchanged; an explicit null clears the start date."""
    card_start_date: Optional[date] = None

class UserCardRead(BaseModel):
    card_key: str
    card_start_date: Optional[date]

    model_config = ConfigDict(from_attributes=True)

class CreditStateUpdate(BaseModel):
    used: Optional[bool] = None
    dont_care: Optional[bool] = None
    remind: Optional[bool] = None

class CreditStateRead(BaseModel):
    state_key: str
    used: bool
    dont_care: bool
    remind: bool

    model_config = ConfigDict(from_attributes=True)

class CardProgress(BaseModel):
    card_key: str
    total: float
    used: float
    pct: int = Field(ge=0, le=100)

class UpcomingCredit(BaseModel):
    card_key: str
    credit_id: str
    state_key: str
    title: str
    frequency: CreditFrequency
    amount: float
    next_reset: date
    days_until: int
