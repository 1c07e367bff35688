from .base import ResponseBase
from .catalog import CreditDefinition, CardDefinition, CatalogDocument, CardSummary, Multiplier, WelcomeOffer
from .reminders import NotificationIntent, ReminderRunResult
from .billing import CheckoutSessionResponse
from .dashboard import (
    ProfileRead, ProfileUpdate,
    UserCardCreate, UserCardUpdate, UserCardRead,
    CreditStateUpdate, CreditStateRead,
    CardProgress, UpcomingCredit,
)

__all__ = [
    # Base
    "ResponseBase",

    # Catalog
    "CreditDefinition",
    "CardDefinition",
    "CatalogDocument",
    "CardSummary",
    "Multiplier",
    "WelcomeOffer",

    # Reminders
    "NotificationIntent",
    "ReminderRunResult",

    # Billing
    "CheckoutSessionResponse",

    # Dashboard
    "ProfileRead",
    "ProfileUpdate",
    "UserCardCreate",
    "UserCardUpdate",
    "UserCardRead",
    "CreditStateUpdate",
    "CreditStateRead",
    "CardProgress",
    "UpcomingCredit",
]
