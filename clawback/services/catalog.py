"""Credit catalog loading & derived value math.

One versioned JSON resource (``clawback/data/cards.json``) is the only copy of
the card / credit reference data; both the dashboard endpoints and the reminder
scheduler read it through `get_catalog()`.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Iterable

from clawback.config import DEFAULT_POINT_VALUES_USD
from clawback.models.db.enums import CreditFrequency, FREQUENCY_ORDER
from clawback.models.schemas.catalog import CardDefinition, CatalogDocument, CardSummary, CreditDefinition
from clawback.utils import get_logger

logger = get_logger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "cards.json"

# Periods per year; every-N-years and one-time credits count once.
ANNUALIZATION_FACTORS: dict[CreditFrequency, int] = {
    CreditFrequency.MONTHLY: 12,
    CreditFrequency.QUARTERLY: 4,
    CreditFrequency.SEMIANNUAL: 2,
    CreditFrequency.ANNUAL: 1,
    CreditFrequency.EVERY_4_YEARS: 1,
    CreditFrequency.EVERY_5_YEARS: 1,
    CreditFrequency.ONE_TIME: 1,
}


class CatalogError(Exception):
    """Raised when the catalog resource is missing or malformed."""


@dataclass(slots=True)
class Catalog:
    version: str
    cards: list[CardDefinition]
    _by_key: dict[str, CardDefinition] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        for card in self.cards:
            if card.key in self._by_key:
                raise CatalogError(f"duplicate card key '{card.key}'")
            self._by_key[card.key] = card

    def get_card(self, key: str) -> CardDefinition | None:
        return self._by_key.get(key)

    def get_credit(self, card_key: str, credit_id: str) -> CreditDefinition | None:
        card = self.get_card(card_key)
        if card is None:
            return None
        return next((c for c in card.credits if c.id == credit_id), None)

    def search(self, query: str | None) -> list[CardDefinition]:
        q = (query or "").strip().lower()
        if not q:
            return list(self.cards)
        return [c for c in self.cards if q in f"{c.name} {c.issuer} {c.key}".lower()]


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Parse and validate the catalog JSON."""
    source = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
        document = CatalogDocument.model_validate(raw)
    except (OSError, ValueError) as e:
        logger.error("Credit catalog failed to load", path=str(source), error=str(e))
        raise CatalogError(f"Unable to load credit catalog from {source}: {e}") from e
    catalog = Catalog(version=document.version, cards=document.cards)
    logger.info("Credit catalog loaded", version=catalog.version, cards=len(catalog.cards))
    return catalog


@lru_cache(maxsize=1)
def get_catalog() -> Catalog:
    return load_catalog()


def annualized_amount(credit: CreditDefinition) -> float:
    return credit.amount * ANNUALIZATION_FACTORS[credit.frequency]


def sum_credits_annual(card: CardDefinition) -> float:
    return sum(annualized_amount(c) for c in card.credits)


def sorted_credits(card: CardDefinition) -> list[CreditDefinition]:
    return sorted(card.credits, key=lambda c: FREQUENCY_ORDER.get(c.frequency, 999))


def estimate_welcome_value_usd(card: CardDefinition) -> int | None:
    offer = card.welcome_offer
    if offer is None:
        return None
    per_point = DEFAULT_POINT_VALUES_USD.get(offer.currency)
    if not per_point:
        return None
    return round(offer.amount * per_point)


def card_progress(
    card: CardDefinition,
    used_keys: Iterable[str],
    dont_care_keys: Iterable[str],
) -> dict[str, float | int]:
    """Share of the card's annualized credit value already used.

    Credits flagged "don't care" are excluded from both sides. Keys are
    state keys (``<card_key>:<credit_id>``).
    """
    used = set(used_keys)
    ignored = set(dont_care_keys)
    cared = [c for c in card.credits if f"{card.key}:{c.id}" not in ignored]
    total = sum(annualized_amount(c) for c in cared)
    used_total = sum(annualized_amount(c) for c in cared if f"{card.key}:{c.id}" in used)
    pct = 0 if total == 0 else round(used_total / total * 100)
    return {"total": total, "used": used_total, "pct": max(0, min(100, pct))}


def summarize_card(card: CardDefinition) -> CardSummary:
    return CardSummary(
        key=card.key,
        name=card.name,
        issuer=card.issuer,
        annual_fee=card.annual_fee,
        annualized_credits=sum_credits_annual(card),
        welcome_offer=card.welcome_offer,
        estimated_welcome_value_usd=estimate_welcome_value_usd(card),
        multipliers=card.multipliers,
        credits=sorted_credits(card),
    )


__all__ = [
    "Catalog",
    "CatalogError",
    "load_catalog",
    "get_catalog",
    "annualized_amount",
    "sum_credits_annual",
    "sorted_credits",
    "estimate_welcome_value_usd",
    "card_progress",
    "summarize_card",
]
