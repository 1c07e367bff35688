"""Central Enum definitions for core domain states.

These replace scattered string literals to ensure consistency across
DB models, schemas, the credit catalog and the reminder scheduler.
"""
from __future__ import annotations
import enum


class CreditFrequency(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"
    EVERY_4_YEARS = "every4years"
    EVERY_5_YEARS = "every5years"
    ONE_TIME = "onetime"


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    SMS = "sms"


class PlanTier(str, enum.Enum):
    FREE = "free"
    PRO = "pro"

# Display ordering used when listing credits (shortest cycle first).
FREQUENCY_ORDER: dict[CreditFrequency, int] = {
    CreditFrequency.MONTHLY: 1,
    CreditFrequency.QUARTERLY: 2,
    CreditFrequency.SEMIANNUAL: 3,
    CreditFrequency.ANNUAL: 4,
    CreditFrequency.EVERY_4_YEARS: 5,
    CreditFrequency.EVERY_5_YEARS: 6,
    CreditFrequency.ONE_TIME: 7,
}

__all__ = [
    "CreditFrequency",
    "NotificationChannel",
    "PlanTier",
    "FREQUENCY_ORDER",
]
