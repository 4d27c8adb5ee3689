from swucol.db.database import get_session, init_db
from swucol.db.migrations import MIGRATION_STEPS, MigrationStep, ensure_schema
from swucol.db.operations import (
    adjust_owned,
    card_exists_by_name,
    card_to_record,
    get_card,
    insert_card,
    search_cards,
)

__all__ = [
    "MIGRATION_STEPS",
    "MigrationStep",
    "adjust_owned",
    "card_exists_by_name",
    "card_to_record",
    "ensure_schema",
    "get_card",
    "get_session",
    "init_db",
    "insert_card",
    "search_cards",
]
