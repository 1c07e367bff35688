"""
Dependencies for settings, database sessions, identity and shared-secret checks.
"""
import hmac
import re
from typing import Generator, Optional
from fastapi import Depends, HTTPException, status, Request, Query
from sqlalchemy.orm import Session
from clawback.config import Settings, load_settings
from clawback.database import SessionLocal
from clawback.models.db import Profile
from clawback.services.errors import ConfigurationError, IdentityServiceError
from clawback.services.identity import AuthUser, IdentityClient
from clawback.utils import get_logger

logger = get_logger(__name__)

_BEARER_RE = re.compile(r"^Bearer (.+)$", re.IGNORECASE)

def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    One session per request, always closed; rolled back if the handler raises.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()

def get_settings(request: Request) -> Settings:
    """Settings built once at app construction and stored on ``app.state``."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = load_settings()
        request.app.state.settings = settings
    return settings

def get_identity_client(settings: Settings = Depends(get_settings)) -> IdentityClient:
    return IdentityClient(settings)

def extract_bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    match = _BEARER_RE.match(header)
    if not match:
        return None
    token = match.group(1).strip()
    return token or None

async def get_current_user(
    request: Request,
    identity: IdentityClient = Depends(get_identity_client),
) -> AuthUser:
    """
    Resolve the identity-provider user behind the Bearer access token.

    Raises:
        HTTPException: 401 when the token is missing or rejected,
            500 when the identity provider is misconfigured or unreachable
    """
    token = extract_bearer_token(request)
    if not token:
        logger.warning("Authentication failed: missing bearer token", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization Bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user = await identity.get_user(token)
    except ConfigurationError as e:
        logger.error("Identity provider not configured", missing=e.missing)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    except IdentityServiceError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if user is None:
        logger.warning("Authentication failed: invalid session", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.debug("User authenticated", user_id=user.id)
    return user

def get_current_profile(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Profile:
    """Profile row for the authenticated user, created on first use."""
    profile = db.query(Profile).filter(Profile.id == user.id).first()
    if profile is None:
        profile = Profile(
            id=user.id,
            email=user.email,
            notif_email_enabled=True,
            notif_sms_enabled=False,
            sms_consent=False,
            is_pro=False,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        logger.info("Profile created on first access", user_id=user.id)
    return profile

def require_cron_secret(
    secret: str = Query("", description="Shared secret configured as CRON_SECRET"),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Guard for scheduler-invoked endpoints.

    Raises:
        HTTPException: 500 if CRON_SECRET is not configured (fail closed),
            401 if the supplied secret does not match
    """
    if not settings.cron_secret:
        logger.error("Reminder endpoint called but CRON_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Missing configuration: CRON_SECRET",
        )
    if not hmac.compare_digest(secret.encode("utf-8"), settings.cron_secret.encode("utf-8")):
        logger.warning("Reminder endpoint rejected: bad shared secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
