"""
Additive schema migrations for the cards table.

Each step checks live schema metadata before issuing DDL, so running
ensure_schema() any number of times converges on the same schema and
never touches existing rows. Existence is probed through the SQLAlchemy
inspector instead of "IF NOT EXISTS" DDL, which not every engine or
version supports for columns.

New schema changes are appended to MIGRATION_STEPS; steps are never
reordered or removed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import (
    Boolean,
    Column,
    Connection,
    Integer,
    MetaData,
    String,
    Table,
    inspect,
    text,
    true,
)
from sqlalchemy.engine.reflection import Inspector
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateColumn

logger = logging.getLogger(__name__)

CARDS_TABLE = "cards"
NAME_UNIQUE_INDEX = "uq_cards_name"

# The cards table as first released. Later columns arrive through
# MIGRATION_STEPS, never by editing this definition.
_baseline_metadata = MetaData()
_baseline_cards = Table(
    CARDS_TABLE,
    _baseline_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("image", String, nullable=True),
    Column("owned", Integer, nullable=False, server_default="0"),
    sqlite_autoincrement=True,
)


@dataclass(frozen=True, slots=True)
class MigrationStep:
    """
    One idempotent schema change.

    Attributes:
        name: Identifier used in logs and in ensure_schema's result
        is_applied: Inspects the live schema, True if nothing needs doing
        apply: Issues the DDL; returns False if it chose to skip
    """

    name: str
    is_applied: Callable[[Inspector], bool]
    apply: Callable[[Connection], bool]


def _has_table(table_name: str) -> Callable[[Inspector], bool]:
    def check(inspector: Inspector) -> bool:
        return inspector.has_table(table_name)

    return check


def _has_column(table_name: str, column_name: str) -> Callable[[Inspector], bool]:
    def check(inspector: Inspector) -> bool:
        return any(col["name"] == column_name for col in inspector.get_columns(table_name))

    return check


def _has_index(table_name: str, index_name: str) -> Callable[[Inspector], bool]:
    def check(inspector: Inspector) -> bool:
        return any(ix["name"] == index_name for ix in inspector.get_indexes(table_name))

    return check


def _create_baseline_cards(conn: Connection) -> bool:
    _baseline_cards.create(conn, checkfirst=False)
    return True


def _add_column(table_name: str, column: Column) -> Callable[[Connection], bool]:
    """
    Build an apply function issuing ALTER TABLE ... ADD COLUMN.

    The column must carry a server default when it is NOT NULL, since
    rows that predate it receive that default.
    """
    # CreateColumn needs the column bound to a table to render
    Table(table_name, MetaData(), column)

    def apply(conn: Connection) -> bool:
        column_ddl = CreateColumn(column).compile(dialect=conn.dialect)
        conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_ddl}"))
        return True

    return apply


def _create_name_unique_index(conn: Connection) -> bool:
    duplicate = conn.execute(
        text(f"SELECT name FROM {CARDS_TABLE} GROUP BY name HAVING COUNT(*) > 1 LIMIT 1")
    ).scalar()
    if duplicate is not None:
        logger.warning(
            "Not creating %s: duplicate card names already stored (e.g. %r)",
            NAME_UNIQUE_INDEX,
            duplicate,
        )
        return False

    conn.execute(text(f"CREATE UNIQUE INDEX {NAME_UNIQUE_INDEX} ON {CARDS_TABLE} (name)"))
    return True


MIGRATION_STEPS: tuple[MigrationStep, ...] = (
    MigrationStep(
        name="create_cards_table",
        is_applied=_has_table(CARDS_TABLE),
        apply=_create_baseline_cards,
    ),
    MigrationStep(
        # Cards stored before this column existed were all mainboard cards
        name="add_mainboard_column",
        is_applied=_has_column(CARDS_TABLE, "mainboard"),
        apply=_add_column(
            CARDS_TABLE,
            Column("mainboard", Boolean, nullable=False, server_default=true()),
        ),
    ),
    MigrationStep(
        name="add_name_unique_index",
        is_applied=_has_index(CARDS_TABLE, NAME_UNIQUE_INDEX),
        apply=_create_name_unique_index,
    ),
)


def _run_step(conn: Connection, step: MigrationStep) -> bool:
    if step.is_applied(inspect(conn)):
        return False

    logger.info("Applying schema migration %s", step.name)
    return step.apply(conn)


async def ensure_schema(
    engine: AsyncEngine, steps: tuple[MigrationStep, ...] = MIGRATION_STEPS
) -> list[str]:
    """
    Apply every pending migration step, in order.

    Each step runs in its own transaction, so a failure leaves earlier
    steps committed and a later call resumes where this one stopped.

    Args:
        engine: Engine of the database to migrate
        steps: Ordered migration steps

    Returns:
        Names of the steps applied by this call. Empty when the schema
        was already current.

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If any DDL fails. Not retried.
    """
    applied: list[str] = []

    for step in steps:
        async with engine.begin() as conn:
            changed = await conn.run_sync(_run_step, step)
        if changed:
            applied.append(step.name)

    if applied:
        logger.info("Schema migrations applied: %s", ", ".join(applied))
    else:
        logger.debug("Schema already up to date")

    return applied
