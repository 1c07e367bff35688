"""Stripe checkout & upgrade handling.

* `create_checkout_session(settings, user)` creates a one-time payment
  Checkout Session tagged with our user id in ``metadata`` and returns the
  hosted redirect URL.
* `parse_webhook_event(payload, signature, secret)` verifies the
  ``stripe-signature`` header and decodes the event body.
* `apply_checkout_completed(session, checkout)` marks the tagged profile as
  upgraded. The write is conditional on the checkout session id so a
  redelivered webhook for a session we already applied changes nothing.
"""
from __future__ import annotations

import enum
import json
from datetime import datetime, timezone
from typing import Any, Mapping

import stripe
from sqlalchemy import or_
from sqlalchemy.orm import Session

from clawback.config import CHECKOUT_SETTINGS, LEGACY_USER_METADATA_KEYS, Settings
from clawback.models.db import Profile
from clawback.services.errors import CheckoutError, ConfigurationError, UpgradeError
from clawback.services.identity import AuthUser
from clawback.utils import get_logger

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class UpgradeOutcome(str, enum.Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    PROFILE_MISSING = "profile_missing"


class MissingUserTagError(ValueError):
    """Completed checkout carries no user id in its metadata."""


def create_checkout_session(settings: Settings, user: AuthUser) -> str:
    missing = settings.missing("stripe_secret_key", "stripe_price_id", "app_url")
    if missing:
        raise ConfigurationError(missing)

    params: dict[str, Any] = {
        "mode": CHECKOUT_SETTINGS["mode"],
        "line_items": [{"price": settings.stripe_price_id, "quantity": CHECKOUT_SETTINGS["quantity"]}],
        "success_url": f"{settings.app_url}{CHECKOUT_SETTINGS['success_path']}",
        "cancel_url": f"{settings.app_url}{CHECKOUT_SETTINGS['cancel_path']}",
        "metadata": {str(CHECKOUT_SETTINGS["user_metadata_key"]): user.id},
        "allow_promotion_codes": bool(CHECKOUT_SETTINGS["allow_promotion_codes"]),
    }
    if user.email:
        params["customer_email"] = user.email

    try:
        checkout = stripe.checkout.Session.create(api_key=settings.stripe_secret_key, **params)
    except stripe.StripeError as e:
        logger.error("Stripe checkout session creation failed", user_id=user.id, error=str(e))
        raise CheckoutError(str(e) or "Stripe checkout session creation failed") from e

    url = getattr(checkout, "url", None)
    if not url:
        logger.error("Stripe returned checkout session without url", user_id=user.id, session_id=getattr(checkout, "id", None))
        raise CheckoutError("No session.url returned by Stripe")

    logger.info("Created Stripe checkout session", user_id=user.id, session_id=getattr(checkout, "id", None))
    return url


def parse_webhook_event(payload: bytes, signature: str, secret: str) -> dict[str, Any]:
    """Verify the signature header and return the event as a plain dict.

    Raises:
        stripe.SignatureVerificationError: signature mismatch / stale timestamp
        ValueError: body is not valid JSON
    """
    body = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(body, signature, secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE)
    event = json.loads(body)
    if not isinstance(event, dict):
        raise ValueError("Webhook payload is not a JSON object")
    return event


def user_id_from_metadata(checkout: Mapping[str, Any]) -> str:
    metadata = checkout.get("metadata") or {}
    keys = (str(CHECKOUT_SETTINGS["user_metadata_key"]), *LEGACY_USER_METADATA_KEYS)
    for key in keys:
        value = metadata.get(key)
        if value:
            return str(value)
    raise MissingUserTagError(f"Missing {keys[0]} in metadata")


def _customer_id(checkout: Mapping[str, Any]) -> str | None:
    customer = checkout.get("customer")
    if isinstance(customer, str):
        return customer
    if isinstance(customer, Mapping):
        return customer.get("id")
    return None


def apply_checkout_completed(
    session: Session,
    checkout: Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> tuple[str, UpgradeOutcome]:
    """Mark the tagged profile as pro. Returns (user_id, outcome)."""
    user_id = user_id_from_metadata(checkout)
    checkout_session_id = checkout.get("id")
    activated_at = now or datetime.now(timezone.utc)

    try:
        updated = (
            session.query(Profile)
            .filter(
                Profile.id == user_id,
                or_(
                    Profile.stripe_checkout_session_id.is_(None),
                    Profile.stripe_checkout_session_id != checkout_session_id,
                ),
            )
            .update(
                {
                    Profile.is_pro: True,
                    Profile.pro_activated_at: activated_at,
                    Profile.stripe_customer_id: _customer_id(checkout),
                    Profile.stripe_checkout_session_id: checkout_session_id,
                },
                synchronize_session=False,
            )
        )
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Profile upgrade update failed", user_id=user_id, session_id=checkout_session_id, error=str(e), exc_info=True)
        raise UpgradeError(str(e)) from e

    if updated:
        return user_id, UpgradeOutcome.APPLIED

    exists = session.query(Profile.id).filter(Profile.id == user_id).first() is not None
    if exists:
        return user_id, UpgradeOutcome.ALREADY_APPLIED
    logger.error("Completed checkout for unknown profile", user_id=user_id, session_id=checkout_session_id)
    return user_id, UpgradeOutcome.PROFILE_MISSING


__all__ = [
    "CHECKOUT_COMPLETED",
    "UpgradeOutcome",
    "MissingUserTagError",
    "create_checkout_session",
    "parse_webhook_event",
    "user_id_from_metadata",
    "apply_checkout_completed",
]
