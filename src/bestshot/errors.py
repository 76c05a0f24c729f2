"""Error taxonomy shared by the scoring core and its collaborators."""

from typing import Optional


class BestShotError(Exception):
    """Base class for bestshot errors."""


class UnavailableInput(BestShotError):
    """Preview bytes for an asset could not be fetched."""


class DecodeFailure(BestShotError):
    """Fetched bytes are not a decodable image."""


class MetadataUnavailable(BestShotError):
    """Optional scene metadata for an asset is missing."""


class InvalidBuffer(BestShotError, ValueError):
    """A pixel buffer violates its structural invariant.

    Raised for decoder bugs (e.g. a length that does not match width*height*4),
    never for expected real-world absence of data.
    """


class ImmichAPIError(BestShotError):
    """Non-retryable failure returned by the Immich server."""

    def __init__(self, message: str, status: Optional[int] = None, details: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.details = details
