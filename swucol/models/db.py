"""
SQLAlchemy ORM models for persistent storage.

The schema itself is owned by swucol.db.migrations; this mapping must
describe the table as it looks after every migration step has run.
"""

from sqlalchemy import Boolean, Index, Integer, String, true
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardDB(Base):
    """
    A card in the collection.

    name is unique; the import never overwrites an existing row.
    """

    __tablename__ = "cards"
    __table_args__ = (Index("uq_cards_name", "name", unique=True),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    image_path: Mapped[str | None] = mapped_column("image", String, nullable=True)
    owned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    mainboard: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=true()
    )

    def __repr__(self) -> str:
        return f"<CardDB(id={self.id}, name={self.name}, owned={self.owned})>"
