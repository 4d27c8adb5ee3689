"""
Import cards from a collection CSV export.

Run as `python -m swucol.jobs.import_cards collection.csv` to add every
card of the export that is not stored yet, downloading missing images.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from swucol.config import settings
from swucol.db.database import async_session_factory, init_db
from swucol.models.card import ImportSummary
from swucol.models.failure import KnownError
from swucol.services.card_import import import_card_csv

logger = logging.getLogger(__name__)


async def run_import(
    csv_path: Path,
    images_dir: str | None = None,
    image_base_url: str | None = None,
) -> ImportSummary:
    """
    Migrate the schema, then import a CSV file.

    Args:
        csv_path: CSV export to import
        images_dir: Defaults to settings.images_dir
        image_base_url: Defaults to settings.image_base_url

    Returns:
        Summary of the import
    """
    await init_db()

    data = csv_path.read_bytes()

    async with async_session_factory() as session:
        summary = await import_card_csv(
            session,
            data,
            images_dir=images_dir,
            image_base_url=image_base_url,
        )
        await session.commit()

    return summary


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the process exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Import cards from a collection CSV export")
    parser.add_argument("csv_path", type=Path, help="Path to the CSV export")
    parser.add_argument(
        "--images-dir",
        default=settings.images_dir,
        help="Directory for cached card images",
    )
    parser.add_argument(
        "--image-base-url",
        default=settings.image_base_url,
        help="Base URL of the card image server",
    )
    args = parser.parse_args(argv)

    if not args.csv_path.exists():
        logger.error("CSV file not found: %s", args.csv_path)
        return 1

    try:
        summary = asyncio.run(run_import(args.csv_path, args.images_dir, args.image_base_url))
    except KnownError as e:
        logger.error("Failed to import %s: %s", args.csv_path, e.message)
        return 1

    logger.info(
        "Imported cards from %s: %d new, %d already stored, %d duplicate rows",
        args.csv_path,
        summary.inserted,
        summary.skipped_in_store,
        summary.skipped_duplicate_in_batch,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
