"""Reminder fan-out batch.

`build_notification_intents(...)` is the pure core: given a snapshot of
profiles, card assignments and credit states it returns every reminder that
should go out *today*. `run_reminder_batch(session, ...)` loads the snapshot,
calls the core and either returns the intents (dry run) or appends them to
``notification_log`` (commit).

Policy notes:
* A reminder fires only when ``due - offset == today`` exactly. A skipped
  scheduled run therefore skips that reminder for good; there is no
  "on or before, not yet sent" catch-up.
* Commit mode never deduplicates against earlier runs. Each intent is its own
  insert + commit; a failed insert is logged and the loop moves on.
* Loading errors propagate: the whole batch aborts with nothing persisted.
"""
from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from clawback.config import REMINDER_SETTINGS
from clawback.models.db import CreditState, NotificationLog, Profile, UserCard, make_state_key
from clawback.models.db.enums import NotificationChannel
from clawback.models.schemas.reminders import NotificationIntent, ReminderRunResult
from clawback.services.catalog import Catalog, get_catalog
from clawback.services.recurrence import next_reset_date
from clawback.utils import get_logger, log_business_event, log_performance
from clawback.utils.time import as_day

logger = get_logger(__name__)


@dataclass(slots=True)
class ReminderSnapshot:
    profiles: Sequence[Profile]
    user_cards: Sequence[UserCard]
    credit_states: Sequence[CreditState]


def effective_offsets(profile: Profile) -> list[int]:
    offsets = profile.default_offsets_days
    if isinstance(offsets, list) and len(offsets) > 0:
        return [int(o) for o in offsets]
    return list(REMINDER_SETTINGS["default_offsets_days"])  # type: ignore[arg-type]


def eligible_channels(profile: Profile) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    if profile.notif_email_enabled:
        channels.append(NotificationChannel.EMAIL)
    if profile.notif_sms_enabled and profile.sms_consent and profile.phone_e164:
        channels.append(NotificationChannel.SMS)
    return channels


def format_message(title: str, due: date, offset: int) -> str:
    template = str(REMINDER_SETTINGS["message_template"])
    return template.format(title=title, due_date=due.isoformat(), offset=offset)


def build_notification_intents(
    profiles: Iterable[Profile],
    user_cards: Iterable[UserCard],
    credit_states: Iterable[CreditState],
    catalog: Catalog,
    now: date | datetime,
) -> list[NotificationIntent]:
    """Compute every notification intent due today.

    Args:
        profiles: all user profiles
        user_cards: all card assignments (any user)
        credit_states: all per-user credit flags (any user)
        catalog: credit reference data
        now: current moment in the reminder timezone; only the day is used
    """
    today = as_day(now)

    cards_by_user: dict[str, list[UserCard]] = defaultdict(list)
    for uc in user_cards:
        cards_by_user[uc.user_id].append(uc)

    state_map: dict[tuple[str, str], CreditState] = {
        (s.user_id, s.state_key): s for s in credit_states
    }

    intents: list[NotificationIntent] = []
    for profile in profiles:
        offsets = effective_offsets(profile)
        channels = eligible_channels(profile)

        for uc in cards_by_user.get(profile.id, []):
            if uc.card_start_date is None:
                continue
            card = catalog.get_card(uc.card_key)
            if card is None:
                continue

            for credit in card.credits:
                state_key = make_state_key(uc.card_key, credit.id)
                state = state_map.get((profile.id, state_key))
                if state is None or not state.wants_reminder:
                    continue

                due = next_reset_date(credit.frequency, uc.card_start_date, today)
                if due is None:
                    continue

                for offset in offsets:
                    if due - timedelta(days=offset) != today:
                        continue
                    message = format_message(credit.title, due, offset)
                    for channel in channels:
                        intents.append(
                            NotificationIntent(
                                user_id=profile.id,
                                channel=channel,
                                state_key=state_key,
                                due_date=due,
                                offset_days=offset,
                                message=message,
                            )
                        )
    return intents


def load_snapshot(session: Session) -> ReminderSnapshot:
    """Load profiles, card assignments and credit states. Errors propagate."""
    return ReminderSnapshot(
        profiles=session.query(Profile).all(),
        user_cards=session.query(UserCard).all(),
        credit_states=session.query(CreditState).all(),
    )


def persist_intents(session: Session, intents: Iterable[NotificationIntent]) -> int:
    """Append one notification_log row per intent; returns how many were attempted.

    Each row is committed on its own. A failing insert is rolled back and
    logged; it is not reported back in the returned count.
    """
    attempted = 0
    for intent in intents:
        attempted += 1
        try:
            session.add(
                NotificationLog(
                    user_id=intent.user_id,
                    state_key=intent.state_key,
                    due_date=intent.due_date,
                    offset_days=intent.offset_days,
                    channel=intent.channel,
                )
            )
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(
                "Notification log insert failed",
                user_id=intent.user_id,
                state_key=intent.state_key,
                channel=intent.channel.value,
                error=str(e),
            )
    return attempted


def run_reminder_batch(
    session: Session,
    *,
    dry_run: bool,
    now: date | datetime,
    catalog: Catalog | None = None,
    request_id: str | None = None,
) -> ReminderRunResult:
    start_time = time.time()
    catalog = catalog or get_catalog()

    snapshot = load_snapshot(session)
    intents = build_notification_intents(
        snapshot.profiles, snapshot.user_cards, snapshot.credit_states, catalog, now
    )
    logger.info(
        "Reminder intents computed",
        profiles=len(snapshot.profiles),
        user_cards=len(snapshot.user_cards),
        intents=len(intents),
        dry_run=dry_run,
        today=as_day(now).isoformat(),
        request_id=request_id,
    )

    if dry_run:
        result = ReminderRunResult(dry_run=True, count=len(intents), to_send=intents)
    else:
        logged = persist_intents(session, intents)
        log_business_event(
            event_type="reminder_batch_committed",
            details={"logged": logged, "today": as_day(now).isoformat()},
            request_id=request_id,
        )
        result = ReminderRunResult(dry_run=False, count=len(intents), logged=logged)

    log_performance(
        operation="run_reminder_batch",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"intents": len(intents), "dry_run": dry_run},
    )
    return result


__all__ = [
    "ReminderSnapshot",
    "effective_offsets",
    "eligible_channels",
    "format_message",
    "build_notification_intents",
    "load_snapshot",
    "persist_intents",
    "run_reminder_batch",
]
