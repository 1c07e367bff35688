"""
Signed-in user dashboard endpoints (profile, saved cards, credit flags, progress).
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from clawback.api.deps import get_db, get_settings, get_current_profile
from clawback.config import REMINDER_SETTINGS, Settings
from clawback.models.db import CreditState, Profile, UserCard, make_state_key
from clawback.models.schemas.base import ResponseBase
from clawback.models.schemas.dashboard import (
    ProfileRead, ProfileUpdate,
    UserCardCreate, UserCardUpdate, UserCardRead,
    CreditStateUpdate, CreditStateRead,
    CardProgress, UpcomingCredit,
)
from clawback.services.catalog import get_catalog, card_progress
from clawback.services.recurrence import next_reset_date
from clawback.utils import get_logger, log_business_event
from clawback.utils.observability import current_request_id
from clawback.utils.time import local_now

router = APIRouter()
logger = get_logger(__name__)

def _get_saved_card(db: Session, profile: Profile, card_key: str) -> UserCard:
    user_card = (
        db.query(UserCard)
        .filter(UserCard.user_id == profile.id, UserCard.card_key == card_key)
        .first()
    )
    if user_card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_key}' is not saved"
        )
    return user_card

@router.get("/profile", response_model=ProfileRead, summary="Get my profile")
async def get_profile(profile: Profile = Depends(get_current_profile)) -> ProfileRead:
    return ProfileRead.model_validate(profile)

@router.patch("/profile", response_model=ProfileRead, summary="Update my profile")
async def update_profile(
    update: ProfileUpdate,
    request: Request,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> ProfileRead:
    """Update notification preferences. An empty offsets list falls back to the defaults at send time."""
    request_id = current_request_id(request)
    changes = update.model_dump(exclude_unset=True)

    try:
        for field, value in changes.items():
            setattr(profile, field, value)
        db.commit()
        db.refresh(profile)
    except Exception as e:
        db.rollback()
        logger.error(
            "Profile update failed",
            user_id=profile.id,
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )

    logger.info("Profile updated", user_id=profile.id, fields=sorted(changes), request_id=request_id)
    return ProfileRead.model_validate(profile)

@router.get("/cards", response_model=List[UserCardRead], summary="List my saved cards")
async def list_my_cards(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> List[UserCardRead]:
    cards = (
        db.query(UserCard)
        .filter(UserCard.user_id == profile.id)
        .order_by(UserCard.id)
        .all()
    )
    return [UserCardRead.model_validate(c) for c in cards]

@router.post(
    "/cards",
    response_model=UserCardRead,
    status_code=status.HTTP_201_CREATED,
    summary="Save a card",
    description="Save a catalog card to the dashboard; the free plan allows a single card"
)
async def add_my_card(
    card_data: UserCardCreate,
    request: Request,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> UserCardRead:
    request_id = current_request_id(request)

    if get_catalog().get_card(card_data.card_key) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_data.card_key}' not found"
        )

    try:
        existing = db.query(UserCard).filter(UserCard.user_id == profile.id).all()
        if any(c.card_key == card_data.card_key for c in existing):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Card '{card_data.card_key}' is already saved"
            )

        card_limit = int(REMINDER_SETTINGS["free_plan_card_limit"])  # type: ignore[arg-type]
        if not profile.is_pro and len(existing) >= card_limit:
            logger.info(
                "Card save blocked by free plan limit",
                user_id=profile.id,
                saved=len(existing),
                limit=card_limit,
                request_id=request_id
            )
            raise HTTPException(
                status_code=status.HTTP_402_PAYMENT_REQUIRED,
                detail="Upgrade to Pro to track more than one card"
            )

        user_card = UserCard(
            user_id=profile.id,
            card_key=card_data.card_key,
            card_start_date=card_data.card_start_date,
        )
        db.add(user_card)
        db.commit()
        db.refresh(user_card)

        log_business_event(
            event_type="card_saved",
            details={"card_key": user_card.card_key},
            user_id=profile.id,
            request_id=request_id
        )
        return UserCardRead.model_validate(user_card)

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(
            "Card save failed with unexpected error",
            user_id=profile.id,
            card_key=card_data.card_key,
            error=str(e),
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save card"
        )

@router.patch("/cards/{card_key}", response_model=UserCardRead, summary="Set card start date")
async def update_my_card(
    card_key: str,
    update: UserCardUpdate,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> UserCardRead:
    user_card = _get_saved_card(db, profile, card_key)
    changes = update.model_dump(exclude_unset=True)
    if not changes:
        return UserCardRead.model_validate(user_card)

    for field, value in changes.items():
        setattr(user_card, field, value)
    db.commit()
    db.refresh(user_card)
    logger.info("Card start date updated", user_id=profile.id, card_key=card_key, cleared=user_card.card_start_date is None)
    return UserCardRead.model_validate(user_card)

@router.delete("/cards/{card_key}", response_model=ResponseBase, summary="Remove a saved card")
async def remove_my_card(
    card_key: str,
    request: Request,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> ResponseBase:
    """Remove the card and the credit flags tracked under it."""
    request_id = current_request_id(request)
    user_card = _get_saved_card(db, profile, card_key)

    removed_states = (
        db.query(CreditState)
        .filter(CreditState.user_id == profile.id, CreditState.state_key.startswith(f"{card_key}:"))
        .delete(synchronize_session=False)
    )
    db.delete(user_card)
    db.commit()

    log_business_event(
        event_type="card_removed",
        details={"card_key": card_key, "credit_states_removed": removed_states},
        user_id=profile.id,
        request_id=request_id
    )
    return ResponseBase(success=True, message=f"Card '{card_key}' removed")

@router.put(
    "/credits/{card_key}/{credit_id}",
    response_model=CreditStateRead,
    summary="Set credit flags",
    description="Upsert used / don't care / remind flags for one credit; marking don't care clears the other two"
)
async def set_credit_state(
    card_key: str,
    credit_id: str,
    update: CreditStateUpdate,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> CreditStateRead:
    _get_saved_card(db, profile, card_key)
    if get_catalog().get_credit(card_key, credit_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Credit '{credit_id}' not found on card '{card_key}'"
        )

    state_key = make_state_key(card_key, credit_id)
    state = (
        db.query(CreditState)
        .filter(CreditState.user_id == profile.id, CreditState.state_key == state_key)
        .first()
    )
    if state is None:
        state = CreditState(user_id=profile.id, state_key=state_key, used=False, dont_care=False, remind=False)
        db.add(state)

    for field, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(state, field, value)
    if state.dont_care:
        state.used = False
        state.remind = False

    db.commit()
    db.refresh(state)
    logger.debug("Credit state saved", user_id=profile.id, state_key=state_key)
    return CreditStateRead.model_validate(state)

@router.get("/progress", response_model=List[CardProgress], summary="Credit usage progress per saved card")
async def get_progress(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db)
) -> List[CardProgress]:
    catalog = get_catalog()
    states = db.query(CreditState).filter(CreditState.user_id == profile.id).all()
    used_keys = [s.state_key for s in states if s.used]
    dont_care_keys = [s.state_key for s in states if s.dont_care]

    results: List[CardProgress] = []
    for user_card in db.query(UserCard).filter(UserCard.user_id == profile.id).order_by(UserCard.id):
        card = catalog.get_card(user_card.card_key)
        if card is None:
            continue
        progress = card_progress(card, used_keys, dont_care_keys)
        results.append(CardProgress(card_key=card.key, **progress))
    return results

@router.get("/upcoming", response_model=List[UpcomingCredit], summary="Upcoming credit resets")
async def get_upcoming(
    profile: Profile = Depends(get_current_profile),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
) -> List[UpcomingCredit]:
    """Credits with reminders on (not used, not ignored), soonest reset first."""
    catalog = get_catalog()
    today = local_now(settings.reminder_timezone).date()
    states = {
        s.state_key: s
        for s in db.query(CreditState).filter(CreditState.user_id == profile.id).all()
    }

    upcoming: List[UpcomingCredit] = []
    for user_card in db.query(UserCard).filter(UserCard.user_id == profile.id).all():
        card = catalog.get_card(user_card.card_key)
        if card is None or user_card.card_start_date is None:
            continue
        for credit in card.credits:
            state_key = make_state_key(card.key, credit.id)
            state = states.get(state_key)
            if state is None or not state.wants_reminder:
                continue
            due = next_reset_date(credit.frequency, user_card.card_start_date, today)
            if due is None:
                continue
            upcoming.append(
                UpcomingCredit(
                    card_key=card.key,
                    credit_id=credit.id,
                    state_key=state_key,
                    title=credit.title,
                    frequency=credit.frequency,
                    amount=credit.amount,
                    next_reset=due,
                    days_until=(due - today).days,
                )
            )
    upcoming.sort(key=lambda u: (u.next_reset, u.card_key, u.credit_id))
    return upcoming
