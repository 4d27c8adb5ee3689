"""
Database CRUD operations for the card collection.

Provides async functions for checking, inserting, reading, searching
and adjusting owned counts of cards. Functions flush but never commit;
committing is the caller's decision.
"""

import logging

from sqlalchemy import ColumnElement, String, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.db.migrations import NAME_UNIQUE_INDEX
from swucol.models.card import CardRecord
from swucol.models.db import CardDB
from swucol.models.failure import InvalidInputError

logger = logging.getLogger(__name__)


def _require_name(name: str) -> None:
    if not name:
        raise InvalidInputError("card name must not be empty")


def is_name_conflict(error: IntegrityError) -> bool:
    """
    True if error comes from the unique index on card name.

    SQLite reports the column ("UNIQUE constraint failed: cards.name"),
    PostgreSQL the index name.
    """
    message = str(error.orig)
    return NAME_UNIQUE_INDEX in message or "UNIQUE constraint failed: cards.name" in message


def _require_card_id(card_id: int) -> None:
    if card_id <= 0:
        raise InvalidInputError("card id must be a positive integer")


def name_matches(query: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on card name, LIKE wildcards escaped."""
    return func.lower(CardDB.name, type_=String).contains(query.lower(), autoescape=True)


async def card_exists_by_name(session: AsyncSession, name: str) -> bool:
    """Check whether a card with exactly this name is stored."""
    _require_name(name)

    result = await session.execute(select(exists().where(CardDB.name == name)))
    return bool(result.scalar())


async def insert_card(
    session: AsyncSession,
    name: str,
    image_path: str | None = None,
    mainboard: bool = True,
) -> CardDB | None:
    """
    Insert a new card with owned = 0.

    The unique index on name is the final word on duplicates: if another
    writer stored the same name since the caller's existence check, the
    insert is rolled back and None is returned instead of a second row.
    Any other integrity violation propagates.

    Note:
        A rejected insert rolls back the session's current transaction,
        so commit anything worth keeping before calling this.

    Returns:
        The stored card, or None if the name was already taken.

    Raises:
        InvalidInputError: If name is empty
        IntegrityError: If the row breaks a constraint other than the
            unique name
    """
    _require_name(name)

    card = CardDB(name=name, image_path=image_path, owned=0, mainboard=mainboard)
    session.add(card)
    try:
        await session.flush()
    except IntegrityError as e:
        if not is_name_conflict(e):
            raise
        await session.rollback()
        logger.info("Card %r already stored, insert rejected", name)
        return None

    return card


async def get_card(session: AsyncSession, card_id: int) -> CardDB | None:
    """
    Get a card by id.

    Returns None if no card has this id.
    """
    _require_card_id(card_id)

    return await session.get(CardDB, card_id)


async def search_cards(session: AsyncSession, query: str = "") -> list[CardDB]:
    """
    Find cards whose name contains query, ignoring case.

    An empty query returns every card. Results are ordered by name.
    """
    stmt = select(CardDB).order_by(CardDB.name, CardDB.id)
    if query:
        stmt = stmt.where(name_matches(query))

    result = await session.execute(stmt)
    return list(result.scalars().all())


async def adjust_owned(
    session: AsyncSession,
    card_id: int,
    delta: int,
    clamp_at_zero: bool = True,
) -> CardDB | None:
    """
    Change a card's owned count by delta.

    Args:
        card_id: Card to update
        delta: Copies gained (positive) or lost (negative)
        clamp_at_zero: Stop at 0 instead of refusing a negative result

    Returns:
        The updated card, or None if no card has this id.

    Raises:
        InvalidInputError: If the count would go negative and
            clamp_at_zero is False
    """
    card = await get_card(session, card_id)
    if card is None:
        return None

    owned = card.owned + delta
    if owned < 0:
        if not clamp_at_zero:
            raise InvalidInputError(f"owned count of card {card_id} cannot go below 0")
        owned = 0

    card.owned = owned
    await session.flush()
    return card


def card_to_record(card: CardDB) -> CardRecord:
    """Convert a database card to a domain model."""
    return CardRecord(
        id=card.id,
        name=card.name,
        image_path=card.image_path,
        owned=card.owned,
        mainboard=card.mainboard,
    )
