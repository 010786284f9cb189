"""Error taxonomy for ingestion, indexing and link generation.

Per-day fetch errors (``FareSourceError`` subclasses) are recoverable up to the
attempt ceiling and never abort sibling days. ``IngestionError`` subclasses are
fatal to a run but are raised before any persisted state is touched.
"""

from datetime import date
from typing import Optional


class RailfareError(Exception):
    """Base class for all errors raised by railfare."""


class FareSourceError(RailfareError):
    """A single upstream interaction failed."""


class UpstreamUnavailable(FareSourceError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialParseError(FareSourceError):
    """The credential response carried no token."""


class MaxAttemptsExceeded(FareSourceError):
    def __init__(self, day: date, direction_key: str, attempts: int):
        super().__init__(
            f"No fares for {direction_key} on {day.isoformat()} after {attempts} attempts"
        )
        self.day = day
        self.direction_key = direction_key
        self.attempts = attempts


class IngestionError(RailfareError):
    """A whole ingestion run was aborted; persisted state is untouched."""


class InsufficientFareCount(IngestionError):
    def __init__(self, count: int, threshold: int):
        super().__init__(f"Fares fetched, but count too low: {count} < {threshold}")
        self.count = count
        self.threshold = threshold


class EmptyIndex(IngestionError):
    def __init__(self, fare_count: int = 0):
        super().__init__(f"Indexing produced no round trips from {fare_count} fares")
        self.fare_count = fare_count


class RunInProgress(IngestionError):
    """Another ingestion run has not finished yet."""


class LinkUnavailable(RailfareError):
    """Deep link could not be shortened."""
