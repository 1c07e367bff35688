import dataclasses
import os
import secrets
import sys
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'clawback' resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from clawback.main import app  # type: ignore
from clawback.database import Base  # type: ignore
from clawback.api import deps  # type: ignore
"""Pytest fixtures and factories.

Important: SQLAlchemy relationship configuration requires all model modules to be imported
before Base.metadata.create_all(), otherwise back_populates targets might not exist yet.
"""
from clawback.config import Settings
from clawback.models.db import Profile, UserCard, CreditState, NotificationLog, make_state_key
from clawback.services.identity import AuthUser

# File-based SQLite so the TestClient thread and the test thread share data
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_clawback.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

import clawback.database as _clawback_database  # noqa: E402
_clawback_database.SessionLocal = TestingSessionLocal  # type: ignore

TEST_CRON_SECRET = "cron-test-secret"
TEST_WEBHOOK_SECRET = "whsec_test_secret"

TEST_SETTINGS = Settings(
    cron_secret=TEST_CRON_SECRET,
    supabase_url="https://identity.test",
    supabase_anon_key="anon-test-key",
    stripe_secret_key="sk_test_123",
    stripe_price_id="price_test_123",
    stripe_webhook_secret=TEST_WEBHOOK_SECRET,
    app_url="https://clawback.test",
    reminder_timezone="UTC",
)

# access token -> identity provider user
KNOWN_TOKENS: dict[str, AuthUser] = {}

class FakeIdentityClient:
    """Stands in for the hosted identity provider; unknown tokens are rejected."""

    async def get_user(self, access_token: str):
        return KNOWN_TOKENS.get(access_token)

@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_clawback.db")
    except OSError:
        pass

@pytest.fixture(autouse=True)
def _isolate_test_state(create_test_db):  # type: ignore[unused-argument]
    """Empty every table and restore settings/identity between tests."""
    app.state.settings = TEST_SETTINGS
    KNOWN_TOKENS.clear()
    yield
    app.state.settings = TEST_SETTINGS
    KNOWN_TOKENS.clear()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())

@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

# Override dependencies
def _override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

app.dependency_overrides[deps.get_db] = _override_get_db
app.dependency_overrides[deps.get_identity_client] = lambda: FakeIdentityClient()

@pytest.fixture()
def client():
    return TestClient(app)

@pytest.fixture()
def settings_override():
    """Swap individual settings for one test: ``settings_override(cron_secret="")``."""
    def _apply(**changes):
        app.state.settings = dataclasses.replace(TEST_SETTINGS, **changes)
        return app.state.settings
    return _apply

# ---------- Data factory helpers ----------

@pytest.fixture()
def auth_user():
    """Register an access token for a fresh user and return (headers, user)."""
    def _create(email: str | None = None, *, with_email: bool = True):
        if with_email and email is None:
            email = f"{secrets.token_hex(4)}@example.com"
        user = AuthUser(id=f"user-{secrets.token_hex(6)}", email=email if with_email else None)
        token = f"token-{secrets.token_hex(12)}"
        KNOWN_TOKENS[token] = user
        return {"Authorization": f"Bearer {token}"}, user
    return _create

@pytest.fixture()
def auth_header(auth_user):
    return auth_user()

@pytest.fixture()
def profile_factory(db_session):
    def _create(
        user_id: str | None = None,
        *,
        email_enabled: bool = True,
        sms_enabled: bool = False,
        sms_consent: bool = False,
        phone: str | None = None,
        offsets: list[int] | None = None,
        is_pro: bool = False,
    ):
        profile = Profile(
            id=user_id or f"user-{secrets.token_hex(6)}",
            email=f"{secrets.token_hex(4)}@example.com",
            notif_email_enabled=email_enabled,
            notif_sms_enabled=sms_enabled,
            sms_consent=sms_consent,
            phone_e164=phone,
            default_offsets_days=offsets,
            is_pro=is_pro,
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile
    return _create

@pytest.fixture()
def user_card_factory(db_session):
    def _create(profile: Profile, card_key: str, card_start_date=None):
        user_card = UserCard(user_id=profile.id, card_key=card_key, card_start_date=card_start_date)
        db_session.add(user_card)
        db_session.commit()
        db_session.refresh(user_card)
        return user_card
    return _create

@pytest.fixture()
def credit_state_factory(db_session):
    def _create(profile: Profile, card_key: str, credit_id: str, *, used=False, dont_care=False, remind=True):
        state = CreditState(
            user_id=profile.id,
            state_key=make_state_key(card_key, credit_id),
            used=used,
            dont_care=dont_care,
            remind=remind,
        )
        db_session.add(state)
        db_session.commit()
        db_session.refresh(state)
        return state
    return _create

@pytest.fixture()
def notification_log_rows(db_session):
    def _fetch():
        db_session.expire_all()
        return db_session.query(NotificationLog).order_by(NotificationLog.id).all()
    return _fetch

@pytest.fixture()
def cron_secret():
    return TEST_CRON_SECRET

@pytest.fixture()
def webhook_secret():
    return TEST_WEBHOOK_SECRET
