from swucol.services.card_images import (
    CardImageCache,
    DownloadRateLimiter,
    ImageResult,
    ImageSource,
)
from swucol.services.card_import import derive_mainboard, import_card_csv, import_cards
from swucol.services.wishlist import get_wishlist, ownership_threshold

__all__ = [
    "CardImageCache",
    "DownloadRateLimiter",
    "ImageResult",
    "ImageSource",
    "derive_mainboard",
    "get_wishlist",
    "import_card_csv",
    "import_cards",
    "ownership_threshold",
]
