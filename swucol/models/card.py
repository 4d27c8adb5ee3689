"""
Card domain models.

ImportRow is untrusted data read from a collection CSV export.
CardRecord mirrors a stored card; WishlistEntry and ImportSummary are
derived and never persisted.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ImportRow:
    """
    One data row of a collection CSV export.

    Only set, card_number, card_name, card_title and card_type drive the
    import. The remaining columns are carried through untouched.
    """

    set: str
    card_number: str
    card_name: str
    card_title: str
    card_type: str
    aspects: str = ""
    variant_type: str = ""
    rarity: str = ""
    foil: str = ""
    stamp: str = ""
    artist: str = ""
    owned_count: str = ""
    group_owned_count: str = ""

    @property
    def display_name(self) -> str:
        """
        Name the card is stored and deduplicated under.

        "Chewbacca" + "Hero of Kessel" -> "Chewbacca, Hero of Kessel".
        A blank title leaves the card name alone.
        """
        if not self.card_title.strip():
            return self.card_name
        return f"{self.card_name}, {self.card_title}"


@dataclass(frozen=True, slots=True)
class CardRecord:
    """
    A card stored in the collection.

    Attributes:
        id: Store-assigned identifier
        name: Unique display name
        image_path: Local image file, None when no image was acquired
        owned: Copies owned, never negative
        mainboard: True for playset cards, False for leaders and bases
    """

    id: int
    name: str
    image_path: str | None
    owned: int
    mainboard: bool


@dataclass(frozen=True, slots=True)
class WishlistEntry:
    """A card owned below its threshold, with the copies still missing."""

    card: CardRecord
    deficit: int


@dataclass
class ImportSummary:
    """Counters describing what an import did. Used for logging only."""

    inserted: int = 0
    skipped_duplicate_in_batch: int = 0
    skipped_in_store: int = 0
    images_downloaded: int = 0
    images_cached: int = 0
    images_unavailable: int = 0

    @property
    def processed(self) -> int:
        """Number of rows looked at."""
        return self.inserted + self.skipped_duplicate_in_batch + self.skipped_in_store
