"""
Wishlist service.

Lists cards owned below their threshold: MAINBOARD_MINIMUM copies for
mainboard cards, NON_MAINBOARD_MINIMUM for leaders and bases. The deficit
is computed per query and never stored.
"""

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.config import MAINBOARD_MINIMUM, NON_MAINBOARD_MINIMUM
from swucol.db.operations import card_to_record, name_matches
from swucol.models.card import WishlistEntry
from swucol.models.db import CardDB


def ownership_threshold(mainboard: bool) -> int:
    """Copies of a card the collection should hold."""
    return MAINBOARD_MINIMUM if mainboard else NON_MAINBOARD_MINIMUM


def below_threshold() -> ColumnElement[bool]:
    """SQL predicate selecting cards owned below their threshold."""
    return or_(
        and_(CardDB.mainboard, CardDB.owned < MAINBOARD_MINIMUM),
        and_(~CardDB.mainboard, CardDB.owned < NON_MAINBOARD_MINIMUM),
    )


async def get_wishlist(session: AsyncSession, query: str = "") -> list[WishlistEntry]:
    """
    Get cards that still need copies, with how many are missing.

    Args:
        query: Case-insensitive substring filter on card name; empty for all

    Returns:
        Entries ordered by card name. Every deficit is at least 1.
    """
    stmt = select(CardDB).where(below_threshold()).order_by(CardDB.name, CardDB.id)
    if query:
        stmt = stmt.where(name_matches(query))

    result = await session.execute(stmt)

    entries: list[WishlistEntry] = []
    for card in result.scalars():
        deficit = ownership_threshold(card.mainboard) - card.owned
        if deficit > 0:
            entries.append(WishlistEntry(card=card_to_record(card), deficit=deficit))

    return entries
