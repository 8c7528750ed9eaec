"""Exception hierarchy raised by World backends."""

from __future__ import annotations

from typing import Optional


class WorldError(Exception):
    """Base class for every failure surfaced by a World backend."""


class NotFoundError(WorldError):
    """The requested record has no backing entry in the store."""

    def __init__(self, entity: str, *ids: str, message: Optional[str] = None) -> None:
        self.entity = entity
        self.ids = ids
        super().__init__(message or self._describe(entity, ids))

    @staticmethod
    def _describe(entity: str, ids: tuple[str, ...]) -> str:
        if not ids:
            return f"{entity} not found"
        return f"{entity} {' '.join(ids)} not found"


class ValidationError(WorldError):
    """A payload or record does not match the expected shape."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        self.field = field
        super().__init__(message)


class SerializationError(WorldError):
    """Payload bytes could not be classified as current or legacy format."""


class ConflictError(WorldError):
    """A record with the same identity already exists."""


class WorldAPIError(WorldError):
    """The remote World API failed or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


__all__ = [
    "WorldError",
    "NotFoundError",
    "ValidationError",
    "SerializationError",
    "ConflictError",
    "WorldAPIError",
]
