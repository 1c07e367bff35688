"""Core application configuration & tunable product rules.

Rules that may evolve (default reminder offsets, free plan limits, point
valuations, checkout redirect paths) are module constants so tests can
monkeypatch them. Secrets and service endpoints are read from the environment
exactly once into a frozen ``Settings`` object which the app stores on
``app.state`` and hands to the batch job / CLI explicitly.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

# ------------------------------- Reminders -------------------------------- #
REMINDER_SETTINGS: dict[str, list[int] | int | str] = {
	# Days before a reset date at which reminders fire when a profile has none.
	"default_offsets_days": [7, 1],
	# Saved cards allowed on the free plan before the paywall kicks in.
	"free_plan_card_limit": 1,
	# Largest offset accepted from profile updates (roughly one year).
	"max_offset_days": 366,
	"message_template": "Reminder: {title} resets on {due_date} ({offset} day(s) before)",
}

# -------------------------------- Checkout -------------------------------- #
CHECKOUT_SETTINGS: dict[str, str | bool | int] = {
	"mode": "payment",
	"quantity": 1,
	"success_path": "/app?upgrade=success",
	"cancel_path": "/app?upgrade=cancel",
	"allow_promotion_codes": True,
	# Metadata key carrying our user id through Stripe to the webhook.
	"user_metadata_key": "supabase_user_id",
}

# Legacy metadata spelling still honoured by the webhook.
LEGACY_USER_METADATA_KEYS: tuple[str, ...] = ("supabaseUserId",)

# ------------------------------ Point values ------------------------------ #
# Rough USD-per-point valuations used to estimate welcome offer value.
DEFAULT_POINT_VALUES_USD: dict[str, float] = {
	"USD": 1.0,
	"MR": 0.015,       # Amex Membership Rewards
	"UR": 0.015,       # Chase Ultimate Rewards
	"C1": 0.0125,      # Capital One miles
	"TYP": 0.0125,     # Citi ThankYou
	"HH": 0.005,       # Hilton Honors
	"MB": 0.008,       # Marriott Bonvoy
	"SKYMILES": 0.011,
	"AA": 0.013,
}


def _env(environ: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        value = environ.get(name)
        if value and value.strip():
            return value.strip()
    return default


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration built once at start-up."""

    cron_secret: str = ""
    supabase_url: str = ""
    supabase_anon_key: str = ""
    stripe_secret_key: str = ""
    stripe_price_id: str = ""
    stripe_webhook_secret: str = ""
    app_url: str = "http://localhost:3000"
    reminder_timezone: str = "UTC"
    identity_timeout_seconds: float = 10.0
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    def missing(self, *names: str) -> list[str]:
        """Return the subset of ``names`` whose values are empty."""
        return [name for name in names if not getattr(self, name)]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    return Settings(
        cron_secret=_env(env, "CRON_SECRET"),
        supabase_url=_env(env, "SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL").rstrip("/"),
        supabase_anon_key=_env(env, "SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
        stripe_secret_key=_env(env, "STRIPE_SECRET_KEY"),
        stripe_price_id=_env(env, "STRIPE_PRICE_ID"),
        stripe_webhook_secret=_env(env, "STRIPE_WEBHOOK_SECRET"),
        app_url=_env(env, "APP_URL", default="http://localhost:3000").rstrip("/"),
        reminder_timezone=_env(env, "REMINDER_TIMEZONE", default="UTC"),
        identity_timeout_seconds=float(_env(env, "IDENTITY_TIMEOUT_SECONDS", default="10")),
        cors_origins=[o.strip() for o in _env(env, "CORS_ORIGINS", default="*").split(",") if o.strip()],
    )


__all__ = [
	"REMINDER_SETTINGS",
	"CHECKOUT_SETTINGS",
	"LEGACY_USER_METADATA_KEYS",
	"DEFAULT_POINT_VALUES_USD",
	"Settings",
	"load_settings",
]
