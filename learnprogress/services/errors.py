from __future__ import annotations

from uuid import UUID


class ProgressError(Exception):
    """Base class for errors surfaced to callers of the progress services."""


class InvalidInputError(ProgressError, ValueError):
    pass


class NotFoundError(ProgressError, LookupError):
    def __init__(self, entity: str, entity_id: UUID | str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
