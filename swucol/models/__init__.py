from swucol.models.card import CardRecord, ImportRow, ImportSummary, WishlistEntry
from swucol.models.failure import (
    CardNotFoundError,
    EmptyInputError,
    FailureDetail,
    FailureKind,
    InvalidInputError,
    KnownError,
    MalformedInputError,
    StoreError,
)

__all__ = [
    "CardNotFoundError",
    "CardRecord",
    "EmptyInputError",
    "FailureDetail",
    "FailureKind",
    "ImportRow",
    "ImportSummary",
    "InvalidInputError",
    "KnownError",
    "MalformedInputError",
    "StoreError",
    "WishlistEntry",
]
