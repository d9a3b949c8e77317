from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID, uuid4

PATH_COMPLETION = "path_completion"


@dataclass(frozen=True, slots=True)
class Achievement:
    """An award earned by a learner.

    (learner_id, type, title) is unique; a second award with the same
    triple is dropped by the store.
    """

    id: UUID
    learner_id: UUID
    type: str
    title: str
    points: int
    awarded_at: int
    description: str = ""
    metadata: dict = field(default_factory=dict)

    @staticmethod
    def new(
        *,
        learner_id: UUID,
        type: str,
        title: str,
        points: int,
        awarded_at: int,
        description: str = "",
        metadata: dict | None = None,
    ) -> Achievement:
        return Achievement(
            id=uuid4(),
            learner_id=learner_id,
            type=type,
            title=title,
            points=points,
            awarded_at=awarded_at,
            description=description,
            metadata=dict(metadata or {}),
        )

    @property
    def key(self) -> tuple[UUID, str, str]:
        return (self.learner_id, self.type, self.title)
