"""Error taxonomy for the harvest pipeline and the batch ingest engine."""

from __future__ import annotations

from typing import Any


class HarvestError(RuntimeError):
    """Base class for every error raised by :mod:`adharvest`."""


class ValidationError(HarvestError):
    """A batch payload is malformed; raised before anything is written."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

    @property
    def details(self) -> dict[str, Any]:
        return {"field": self.field} if self.field else {}


class CollectionTimeout(HarvestError):
    """The transparency page never produced extractable content in time."""


class EnrichmentFailure(HarvestError):
    """A single creative could not be described. Logged and swallowed by callers."""


class IntegrityError(HarvestError):
    """An upserted ad could not be read back by its natural key."""


class TransportError(HarvestError):
    """Delivering a batch to the ingest service failed."""

    def __init__(self, message: str, *, status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


__all__ = [
    "CollectionTimeout",
    "EnrichmentFailure",
    "HarvestError",
    "IntegrityError",
    "TransportError",
    "ValidationError",
]
