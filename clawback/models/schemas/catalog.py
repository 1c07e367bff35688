"""
Pydantic schemas for the static card / credit catalog.

The catalog JSON is validated through these models on load so a malformed
entry fails at start-up instead of inside the nightly reminder run.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from ..db.enums import CreditFrequency

class CreditDefinition(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    frequency: CreditFrequency
    amount: float = Field(ge=0, default=0.0, description="USD value per period")

class Multiplier(BaseModel):
    label: str
    rate: str = Field(description='e.g. "4x", "5% up to $X"')

class WelcomeOffer(BaseModel):
    amount: int = Field(ge=0)
    currency: str
    spend: str
    source_label: str
    notes: Optional[str] = None

class CardDefinition(BaseModel):
    key: str = Field(min_length=1)
    name: str
    issuer: str
    annual_fee: float = Field(ge=0, default=0.0)
    credits: List[CreditDefinition] = Field(default_factory=list)
    welcome_offer: Optional[WelcomeOffer] = None
    multipliers: List[Multiplier] = Field(default_factory=list)

    @field_validator("credits")
    @classmethod
    def validate_unique_credit_ids(cls, v: List[CreditDefinition]) -> List[CreditDefinition]:
        seen: set[str] = set()
        for credit in v:
            if credit.id in seen:
                raise ValueError(f"duplicate credit id '{credit.id}'")
            seen.add(credit.id)
        return v

class CatalogDocument(BaseModel):
    version: str
    cards: List[CardDefinition]

class CardSummary(BaseModel):
    """Catalog card as returned to the dashboard (with derived totals)."""
    key: str
    name: str
    issuer: str
    annual_fee: float
    annualized_credits: float
    welcome_offer: Optional[WelcomeOffer] = None
    estimated_welcome_value_usd: Optional[int] = None
    multipliers: List[Multiplier] = Field(default_factory=list)
    credits: List[CreditDefinition] = Field(default_factory=list)
