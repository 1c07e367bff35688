"""
Public credit card catalog endpoints.
"""
from typing import List, Optional
from fastapi import APIRouter, HTTPException, status, Query
from clawback.models.schemas.catalog import CardSummary
from clawback.services.catalog import get_catalog, summarize_card
from clawback.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)

@router.get(
    "/",
    response_model=List[CardSummary],
    summary="List catalog cards",
    description="List every card in the catalog; q filters by name, issuer or key (case-insensitive)"
)
async def list_cards(
    q: Optional[str] = Query(None, max_length=100)
) -> List[CardSummary]:
    catalog = get_catalog()
    cards = catalog.search(q)
    logger.debug("Catalog search", query=q, results=len(cards), catalog_version=catalog.version)
    return [summarize_card(card) for card in cards]

@router.get(
    "/{card_key}",
    response_model=CardSummary,
    summary="Get catalog card"
)
async def get_card(card_key: str) -> CardSummary:
    card = get_catalog().get_card(card_key)
    if card is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Card '{card_key}' not found"
        )
    return summarize_card(card)
