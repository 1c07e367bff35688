import hashlib
import hmac
import json
import time

import pytest

from clawback.models.db import Profile

WEBHOOK_PATH = "/api/stripe/webhook"


def sign(payload: str, secret: str, timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def checkout_completed_event(session_id="cs_test_1", metadata=None, customer="cus_123", event_type="checkout.session.completed"):
    return json.dumps({
        "id": f"evt_{session_id}",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "customer": customer,
                "metadata": metadata if metadata is not None else {},
            }
        },
    })


@pytest.fixture()
def post_event(client, webhook_secret):
    def _post(payload: str, signature: str | None = "sign"):
        headers = {"Content-Type": "application/json"}
        if signature == "sign":
            headers["stripe-signature"] = sign(payload, webhook_secret)
        elif signature is not None:
            headers["stripe-signature"] = signature
        return client.post(WEBHOOK_PATH, content=payload, headers=headers)
    return _post


def fetch_profile(db_session, user_id):
    db_session.expire_all()
    return db_session.query(Profile).filter(Profile.id == user_id).first()


def test_webhook_liveness(client):
    r = client.get(WEBHOOK_PATH)
    assert r.status_code == 200
    assert "live" in r.text


def test_webhook_missing_signature_rejected(post_event):
    r = post_event(checkout_completed_event(), signature=None)
    assert r.status_code == 400
    assert r.text == "Missing stripe-signature header"


def test_webhook_bad_signature_rejected(db_session, post_event, profile_factory):
    profile = profile_factory()
    payload = checkout_completed_event(metadata={"supabase_user_id": profile.id})
    forged = sign(payload, "whsec_someone_else")
    r = post_event(payload, signature=forged)
    assert r.status_code == 400
    assert r.text.startswith("Webhook Error")
    assert fetch_profile(db_session, profile.id).is_pro is False


def test_webhook_stale_timestamp_rejected(post_event, webhook_secret):
    payload = checkout_completed_event(metadata={"supabase_user_id": "user-x"})
    stale = sign(payload, webhook_secret, timestamp=int(time.time()) - 3600)
    r = post_event(payload, signature=stale)
    assert r.status_code == 400


def test_webhook_missing_user_tag_rejected(post_event):
    r = post_event(checkout_completed_event(metadata={}))
    assert r.status_code == 400
    assert "supabase_user_id" in r.text


def test_webhook_upgrades_tagged_profile(db_session, post_event, profile_factory):
    profile = profile_factory()
    r = post_event(checkout_completed_event(metadata={"supabase_user_id": profile.id}))
    assert r.status_code == 200
    assert r.text == "ok"

    upgraded = fetch_profile(db_session, profile.id)
    assert upgraded.is_pro is True
    assert upgraded.pro_activated_at is not None
    assert upgraded.stripe_customer_id == "cus_123"
    assert upgraded.stripe_checkout_session_id == "cs_test_1"


def test_webhook_accepts_legacy_metadata_key(db_session, post_event, profile_factory):
    profile = profile_factory()
    r = post_event(checkout_completed_event(metadata={"supabaseUserId": profile.id}))
    assert r.status_code == 200
    assert fetch_profile(db_session, profile.id).is_pro is True


def test_webhook_redelivery_is_idempotent(db_session, post_event, profile_factory):
    profile = profile_factory()
    payload = checkout_completed_event(metadata={"supabase_user_id": profile.id})

    assert post_event(payload).status_code == 200
    first = fetch_profile(db_session, profile.id)
    activated_at = first.pro_activated_at

    r = post_event(payload)
    assert r.status_code == 200
    assert r.text == "ok"
    again = fetch_profile(db_session, profile.id)
    assert again.pro_activated_at == activated_at
    assert again.stripe_checkout_session_id == "cs_test_1"


def test_webhook_ignores_other_event_types(db_session, post_event, profile_factory):
    profile = profile_factory()
    r = post_event(checkout_completed_event(metadata={"supabase_user_id": profile.id}, event_type="payment_intent.created"))
    assert r.status_code == 200
    assert r.text == "ok"
    assert fetch_profile(db_session, profile.id).is_pro is False


def test_webhook_unknown_profile_still_acknowledged(post_event):
    r = post_event(checkout_completed_event(metadata={"supabase_user_id": "user-never-seen"}))
    assert r.status_code == 200


def test_webhook_store_failure_returns_500(post_event, profile_factory, monkeypatch):
    import clawback.api.v1.endpoints.billing as billing_endpoint
    from clawback.services.errors import UpgradeError

    def _fail(session, checkout, **kwargs):
        raise UpgradeError("database is locked")
    monkeypatch.setattr(billing_endpoint, "apply_checkout_completed", _fail)

    profile = profile_factory()
    r = post_event(checkout_completed_event(metadata={"supabase_user_id": profile.id}))
    assert r.status_code == 500


def test_webhook_requires_configured_secret(post_event, settings_override):
    settings_override(stripe_webhook_secret="")
    r = post_event(checkout_completed_event(metadata={"supabase_user_id": "user-x"}), signature="t=1,v1=abc")
    assert r.status_code == 500
