"""
Card import service.

Turns normalized CSV rows into stored cards, exactly once per card name:

- A name repeated within the batch is skipped after its first row.
- A name already in the store is skipped; stored cards are never updated.
- Every new card gets an image (cached, downloaded, or none) and is
  committed on its own with owned = 0.

A store failure aborts the rest of the batch. Cards committed before the
failure stay committed.
"""

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from swucol.config import settings
from swucol.db.operations import card_exists_by_name, insert_card
from swucol.models.card import ImportRow, ImportSummary
from swucol.models.failure import EmptyInputError, StoreError
from swucol.parsers.card_csv import parse_card_csv
from swucol.services.card_images import CardImageCache, DownloadRateLimiter, ImageSource

logger = logging.getLogger(__name__)

# Leaders and bases are played one per deck, so they never need a playset
NON_MAINBOARD_CARD_TYPES = frozenset({"leader", "base"})

MainboardRule = Callable[[ImportRow], bool]


def derive_mainboard(row: ImportRow) -> bool:
    """True unless the card type is Leader or Base."""
    return row.card_type.strip().lower() not in NON_MAINBOARD_CARD_TYPES


@contextmanager
def _store_operation(action: str, name: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Database error while %s %r: %s", action, name, e)
        raise StoreError("database error", detail=f"{action} {name!r}: {e}") from e


def _count_image(summary: ImportSummary, source: ImageSource) -> None:
    if source is ImageSource.DOWNLOADED:
        summary.images_downloaded += 1
    elif source is ImageSource.CACHED:
        summary.images_cached += 1
    else:
        summary.images_unavailable += 1


async def import_cards(
    session: AsyncSession,
    rows: Sequence[ImportRow],
    images_dir: str | Path,
    image_base_url: str,
    client: httpx.AsyncClient | None = None,
    mainboard_rule: MainboardRule = derive_mainboard,
    limiter: DownloadRateLimiter | None = None,
) -> ImportSummary:
    """
    Store every card in rows that is not stored yet.

    Args:
        session: Database session; committed after each inserted card
        rows: Normalized rows, in file order
        images_dir: Directory holding cached card images
        image_base_url: Base URL of the image server
        client: HTTP client for image downloads; a new one if omitted
        mainboard_rule: Classifies a row as mainboard or not
        limiter: Download gate; a fresh one per call if omitted

    Returns:
        Counts of inserted and skipped cards and of image outcomes.

    Raises:
        EmptyInputError: If rows is empty
        StoreError: If the database fails; later rows are not processed
    """
    if not rows:
        raise EmptyInputError()

    if client is None:
        async with httpx.AsyncClient(
            timeout=settings.image_fetch_timeout, follow_redirects=True
        ) as own_client:
            return await import_cards(
                session,
                rows,
                images_dir,
                image_base_url,
                client=own_client,
                mainboard_rule=mainboard_rule,
                limiter=limiter,
            )

    images = CardImageCache(client, images_dir, image_base_url, limiter)
    summary = ImportSummary()
    seen: set[str] = set()

    logger.info("Importing %d rows", len(rows))

    for row in rows:
        name = row.display_name

        if name in seen:
            logger.debug("Skipping duplicate in CSV: %s", name)
            summary.skipped_duplicate_in_batch += 1
            continue
        seen.add(name)

        with _store_operation("checking", name):
            exists = await card_exists_by_name(session, name)
        if exists:
            logger.debug("Skipping card already stored: %s", name)
            summary.skipped_in_store += 1
            continue

        image = await images.acquire(row.set, row.card_number)
        _count_image(summary, image.source)

        logger.info("Inserting card %s (image: %s)", name, image.image_path)
        with _store_operation("inserting", name):
            card = await insert_card(
                session,
                name,
                image_path=image.image_path,
                mainboard=mainboard_rule(row),
            )
            if card is not None:
                await session.commit()

        if card is None:
            summary.skipped_in_store += 1
            continue
        summary.inserted += 1

    logger.info(
        "Import complete: inserted=%d skipped_in_store=%d skipped_duplicate_in_batch=%d "
        "images downloaded=%d cached=%d unavailable=%d",
        summary.inserted,
        summary.skipped_in_store,
        summary.skipped_duplicate_in_batch,
        summary.images_downloaded,
        summary.images_cached,
        summary.images_unavailable,
    )
    return summary


async def import_card_csv(
    session: AsyncSession,
    data: bytes | BinaryIO,
    images_dir: str | Path | None = None,
    image_base_url: str | None = None,
    client: httpx.AsyncClient | None = None,
    mainboard_rule: MainboardRule = derive_mainboard,
) -> ImportSummary:
    """
    Parse a collection CSV export and import its cards.

    The whole file is parsed before anything is written, so malformed or
    empty input never leaves a partial import behind.

    Args:
        data: Raw CSV bytes or a binary stream
        images_dir: Defaults to settings.images_dir
        image_base_url: Defaults to settings.image_base_url

    Raises:
        MalformedInputError: If the CSV does not match the export format
        EmptyInputError: If the CSV has no card rows
        StoreError: If the database fails mid-import
    """
    rows = parse_card_csv(data)
    logger.info("CSV parsed, row_count=%d", len(rows))

    return await import_cards(
        session,
        rows,
        images_dir=images_dir if images_dir is not None else settings.images_dir,
        image_base_url=image_base_url if image_base_url is not None else settings.image_base_url,
        client=client,
        mainboard_rule=mainboard_rule,
    )
