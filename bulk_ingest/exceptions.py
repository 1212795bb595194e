"""Exception types raised across the ingestion pipeline."""
from typing import Optional


class IngestError(Exception):
    """Base class for all ingestion errors."""


class ForestError(IngestError, ValueError):
    """Raised when a structural forest invariant would be broken."""


class PayloadReleasedError(IngestError):
    """Raised when reading a payload whose handle was already released."""


class UploadError(IngestError):
    """Raised by an object store when a single payload upload fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StoreError(IngestError):
    """Raised by a project store when reading or writing records fails."""
