"""
Failure classification for the import and collection operations.

Every error the core raises on purpose is a KnownError carrying a
FailureKind and the HTTP status the API layer should answer with.

Image download failures are deliberately absent: they degrade to
"no image" and never reach the caller.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """What kind of failure a KnownError reports."""

    # Input validation failures
    MALFORMED_INPUT = "malformed_input"
    EMPTY_INPUT = "empty_input"
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"

    # Persistence failures
    STORE_ERROR = "store_error"


class FailureDetail(BaseModel):
    """Serializable explanation of a failure, as returned by the API."""

    kind: FailureKind = Field(
        ...,
        description="Failure category",
    )
    message: str = Field(
        ...,
        description="Short explanation safe to show a user",
    )
    detail: str | None = Field(
        default=None,
        description="Technical context such as a line number or card id",
    )
    suggestion: str | None = Field(
        default=None,
        description="What the caller can do about it",
    )


class KnownError(Exception):
    """
    An error the import or collection code raises on purpose.

    Carries the FailureKind and the HTTP status the API answers with.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a FailureDetail for API responses."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class MalformedInputError(KnownError):
    """
    The CSV does not look like a card collection export.

    Raised for a bad header, a bad data row or undecodable bytes,
    always before anything is written to the store.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.MALFORMED_INPUT,
            message=message,
            detail=detail,
            suggestion="Export the collection again as CSV and retry the import.",
            status_code=400,
        )


class EmptyInputError(KnownError):
    """The CSV has a valid header but no card rows."""

    def __init__(self) -> None:
        super().__init__(
            kind=FailureKind.EMPTY_INPUT,
            message="CSV contains no card rows",
            status_code=400,
        )


class InvalidInputError(KnownError):
    """An argument to a store operation is out of range."""

    def __init__(self, message: str):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            status_code=400,
        )


class CardNotFoundError(KnownError):
    """No card with the requested id exists."""

    def __init__(self, card_id: int):
        self.card_id = card_id
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message="card not found",
            detail=f"card_id={card_id}",
            status_code=404,
        )


class StoreError(KnownError):
    """
    A persistence operation failed.

    Aborts the rest of an import batch. Cards committed earlier in the
    batch stay in the store.
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.STORE_ERROR,
            message=message,
            detail=detail,
            status_code=500,
        )
