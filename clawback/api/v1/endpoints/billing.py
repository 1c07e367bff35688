"""
Stripe checkout and webhook endpoints for the one-time Pro upgrade.
"""
import time
import stripe
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from clawback.api.deps import get_db, get_settings, get_current_user
from clawback.config import Settings
from clawback.models.schemas.billing import CheckoutSessionResponse
from clawback.services.billing import (
    CHECKOUT_COMPLETED,
    MissingUserTagError,
    UpgradeOutcome,
    apply_checkout_completed,
    create_checkout_session,
    parse_webhook_event,
)
from clawback.services.errors import CheckoutError, ConfigurationError, UpgradeError
from clawback.services.identity import AuthUser
from clawback.utils import get_logger, log_business_event, log_performance
from clawback.utils.observability import current_request_id

router = APIRouter()
logger = get_logger(__name__)

SIGNATURE_HEADER = "stripe-signature"

@router.post(
    "/create-checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Start Pro upgrade checkout",
    description="Create a hosted Stripe Checkout Session for the signed-in user and return its redirect URL"
)
async def create_checkout(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings)
) -> CheckoutSessionResponse:
    start_time = time.time()
    request_id = current_request_id(request)

    logger.info("Checkout session requested", user_id=user.id, request_id=request_id)

    try:
        url = await run_in_threadpool(create_checkout_session, settings, user)
    except (ConfigurationError, CheckoutError) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    except Exception as e:
        logger.error(
            "Checkout session creation failed with unexpected error",
            user_id=user.id,
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Unknown error"
        )

    log_business_event(
        event_type="checkout_session_created",
        details={"app_url": settings.app_url},
        user_id=user.id,
        request_id=request_id
    )
    log_performance(
        operation="create_checkout_session",
        duration_ms=(time.time() - start_time) * 1000
    )
    return CheckoutSessionResponse(url=url)

@router.post(
    "/webhook",
    response_class=PlainTextResponse,
    summary="Stripe webhook receiver",
    description="Verify the Stripe signature and apply completed checkouts to the tagged profile"
)
async def stripe_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
) -> PlainTextResponse:
    """
    Plain-text responses so Stripe's dashboard shows the reason for a failed delivery.
    Redelivery of an already-applied checkout is a no-op and still answers 200.
    """
    request_id = current_request_id(request)

    if not settings.stripe_webhook_secret:
        logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not configured", request_id=request_id)
        return PlainTextResponse("Missing configuration: STRIPE_WEBHOOK_SECRET", status_code=500)

    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("Webhook rejected: missing signature header", request_id=request_id)
        return PlainTextResponse("Missing stripe-signature header", status_code=400)

    payload = await request.body()
    try:
        event = parse_webhook_event(payload, signature, settings.stripe_webhook_secret)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning("Webhook rejected: signature verification failed", error=str(e), request_id=request_id)
        return PlainTextResponse(f"Webhook Error: {str(e) or 'Invalid signature'}", status_code=400)

    event_type = event.get("type")
    logger.info("Webhook event received", event_type=event_type, event_id=event.get("id"), request_id=request_id)

    if event_type != CHECKOUT_COMPLETED:
        return PlainTextResponse("ok", status_code=200)

    checkout = (event.get("data") or {}).get("object") or {}
    try:
        user_id, outcome = apply_checkout_completed(db, checkout)
    except MissingUserTagError as e:
        logger.warning("Completed checkout without user tag", session_id=checkout.get("id"), request_id=request_id)
        return PlainTextResponse(str(e), status_code=400)
    except UpgradeError:
        return PlainTextResponse("Profile update failed", status_code=500)
    except Exception as e:
        logger.error("Webhook handler failed", error=str(e), request_id=request_id, exc_info=True)
        return PlainTextResponse("Webhook handler failed", status_code=500)

    if outcome == UpgradeOutcome.APPLIED:
        log_business_event(
            event_type="profile_upgraded",
            details={"checkout_session_id": checkout.get("id")},
            user_id=user_id,
            request_id=request_id
        )
    else:
        logger.info("Completed checkout not applied", user_id=user_id, outcome=outcome.value, request_id=request_id)

    return PlainTextResponse("ok", status_code=200)

@router.get(
    "/webhook",
    response_class=PlainTextResponse,
    summary="Webhook liveness"
)
async def stripe_webhook_liveness() -> PlainTextResponse:
    return PlainTextResponse("Stripe webhook endpoint is live. Use POST from Stripe.", status_code=200)
