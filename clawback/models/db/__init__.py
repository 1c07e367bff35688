from .profiles import Profile
from .user_cards import UserCard
from .credit_states import CreditState, make_state_key
from .notification_log import NotificationLog
from .enums import CreditFrequency, NotificationChannel, PlanTier

__all__ = [
    "Profile",
    "UserCard",
    "CreditState",
    "make_state_key",
    "NotificationLog",
    "CreditFrequency",
    "NotificationChannel",
    "PlanTier",
]
