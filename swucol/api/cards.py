"""
Card API endpoints.

Exposes lookup, search, owned-count adjustment, CSV import and the
wishlist. Handlers only translate between HTTP and the services; known
errors are turned into responses by the KnownError handler in main.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.db import adjust_owned, card_to_record, get_card, search_cards
from swucol.db.database import get_session
from swucol.models.card import CardRecord
from swucol.models.failure import CardNotFoundError
from swucol.services.card_import import import_card_csv
from swucol.services.wishlist import get_wishlist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cards", tags=["cards"])


class CardResponse(BaseModel):
    """Response model for a single card."""

    id: int
    name: str
    image: str | None = None
    owned: int = 0
    mainboard: bool = True

    @classmethod
    def from_record(cls, record: CardRecord) -> "CardResponse":
        return cls(
            id=record.id,
            name=record.name,
            image=record.image_path,
            owned=record.owned,
            mainboard=record.mainboard,
        )


class WishlistEntryResponse(CardResponse):
    """A card below its ownership threshold."""

    deficit: int = Field(..., ge=1, description="Copies still missing")


class ImportResponse(BaseModel):
    """Response model for a CSV import."""

    inserted: int
    skipped_in_store: int
    skipped_duplicate_in_batch: int
    images_downloaded: int = 0
    images_cached: int = 0
    images_unavailable: int = 0


@router.get("/search", response_model=list[CardResponse])
async def search(
    session: Annotated[AsyncSession, Depends(get_session)],
    q: str = "",
) -> list[CardResponse]:
    """
    Search cards by name.

    Case-insensitive substring match; an empty query returns every card.
    """
    cards = await search_cards(session, q)
    return [CardResponse.from_record(card_to_record(card)) for card in cards]


@router.get("/wishlist", response_model=list[WishlistEntryResponse])
async def wishlist(
    session: Annotated[AsyncSession, Depends(get_session)],
    q: str = "",
) -> list[WishlistEntryResponse]:
    """List cards owned below their threshold, with the deficit."""
    entries = await get_wishlist(session, q)
    return [
        WishlistEntryResponse(
            **CardResponse.from_record(entry.card).model_dump(),
            deficit=entry.deficit,
        )
        for entry in entries
    ]


@router.post("/import", response_model=ImportResponse)
async def import_csv(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ImportResponse:
    """
    Import cards from a raw CSV request body.

    Cards already stored, or repeated within the file, are skipped.
    New cards start with owned = 0. Returns 400 for malformed or empty
    CSV and 500 for database errors.
    """
    body = await request.body()
    logger.info("CSV import received, size_bytes=%d", len(body))

    summary = await import_card_csv(session, body)

    return ImportResponse(
        inserted=summary.inserted,
        skipped_in_store=summary.skipped_in_store,
        skipped_duplicate_in_batch=summary.skipped_duplicate_in_batch,
        images_downloaded=summary.images_downloaded,
        images_cached=summary.images_cached,
        images_unavailable=summary.images_unavailable,
    )


@router.get("/{card_id}", response_model=CardResponse)
async def get_card_by_id(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Get a single card. Returns 404 if it does not exist."""
    card = await get_card(session, card_id)
    if card is None:
        raise CardNotFoundError(card_id)
    return CardResponse.from_record(card_to_record(card))


@router.post("/{card_id}/increment", response_model=CardResponse)
async def increment_owned(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Add one owned copy."""
    card = await adjust_owned(session, card_id, 1)
    if card is None:
        raise CardNotFoundError(card_id)
    logger.info("Owned count incremented, card_id=%d owned=%d", card_id, card.owned)
    return CardResponse.from_record(card_to_record(card))


@router.post("/{card_id}/decrement", response_model=CardResponse)
async def decrement_owned(
    card_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CardResponse:
    """Remove one owned copy, stopping at zero."""
    card = await adjust_owned(session, card_id, -1)
    if card is None:
        raise CardNotFoundError(card_id)
    logger.info("Owned count decremented, card_id=%d owned=%d", card_id, card.owned)
    return CardResponse.from_record(card_to_record(card))
