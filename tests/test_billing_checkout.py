from types import SimpleNamespace

import pytest
import stripe

CHECKOUT_PATH = "/api/stripe/create-checkout-session"


@pytest.fixture()
def stripe_calls(monkeypatch):
    """Capture Checkout Session create calls; the response is set per test."""
    calls = []
    state = {"response": SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/cs_test_1"), "error": None}

    def _create(**params):
        calls.append(params)
        if state["error"] is not None:
            raise state["error"]
        return state["response"]

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)
    return SimpleNamespace(calls=calls, state=state)


def test_checkout_requires_bearer_token(client, stripe_calls):
    r = client.post(CHECKOUT_PATH)
    assert r.status_code == 401
    assert r.json()["message"] == "Missing Authorization Bearer token"
    r2 = client.post(CHECKOUT_PATH, headers={"Authorization": "Basic abc"})
    assert r2.status_code == 401
    assert stripe_calls.calls == []


def test_checkout_rejects_unknown_token(client, stripe_calls):
    r = client.post(CHECKOUT_PATH, headers={"Authorization": "Bearer not-a-session"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid session"
    assert stripe_calls.calls == []


def test_checkout_creates_tagged_session(client, auth_header, stripe_calls):
    headers, user = auth_header
    r = client.post(CHECKOUT_PATH, headers=headers)
    assert r.status_code == 200
    assert r.json() == {"url": "https://checkout.stripe.test/cs_test_1"}

    assert len(stripe_calls.calls) == 1
    params = stripe_calls.calls[0]
    assert params["api_key"] == "sk_test_123"
    assert params["mode"] == "payment"
    assert params["line_items"] == [{"price": "price_test_123", "quantity": 1}]
    assert params["success_url"] == "https://clawback.test/app?upgrade=success"
    assert params["cancel_url"] == "https://clawback.test/app?upgrade=cancel"
    assert params["metadata"] == {"supabase_user_id": user.id}
    assert params["customer_email"] == user.email
    assert params["allow_promotion_codes"] is True


def test_checkout_without_email_omits_customer_email(client, auth_user, stripe_calls):
    headers, _user = auth_user(with_email=False)
    r = client.post(CHECKOUT_PATH, headers=headers)
    assert r.status_code == 200
    assert "customer_email" not in stripe_calls.calls[0]


def test_checkout_stripe_error_returns_500(client, auth_header, stripe_calls):
    headers, _user = auth_header
    stripe_calls.state["error"] = stripe.InvalidRequestError("No such price: 'price_test_123'", param="line_items")
    r = client.post(CHECKOUT_PATH, headers=headers)
    assert r.status_code == 500
    assert "No such price" in r.json()["message"]


def test_checkout_missing_url_returns_500(client, auth_header, stripe_calls):
    headers, _user = auth_header
    stripe_calls.state["response"] = SimpleNamespace(id="cs_test_2", url=None)
    r = client.post(CHECKOUT_PATH, headers=headers)
    assert r.status_code == 500
    assert r.json()["message"] == "No session.url returned by Stripe"


def test_checkout_missing_configuration_returns_500(client, auth_header, stripe_calls, settings_override):
    settings_override(stripe_price_id="")
    headers, _user = auth_header
    r = client.post(CHECKOUT_PATH, headers=headers)
    assert r.status_code == 500
    assert "stripe_price_id" in r.json()["message"]
    assert stripe_calls.calls == []
