"""Domain entities describing in-app notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class NotificationType(str, Enum):
    """Closed set of event categories a notification can describe."""

    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    INCOME_ADDED = "income_added"
    INCOME_UPDATED = "income_updated"
    INCOME_DELETED = "income_deleted"
    PHASE_ADDED = "phase_added"
    PHASE_UPDATED = "phase_updated"
    PHASE_DELETED = "phase_deleted"
    MATERIAL_ADDED = "material_added"
    MATERIAL_UPDATED = "material_updated"
    MATERIAL_DELETED = "material_deleted"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    USER_JOINED = "user_joined"
    USER_UPDATED = "user_updated"

    @property
    def subject(self) -> str:
        """Return the entity part of the kind (``expense``, ``phase``...)."""

        return self.value.rsplit("_", 1)[0]

    @property
    def action(self) -> str:
        """Return the verb part of the kind (``added``, ``updated``...)."""

        return self.value.rsplit("_", 1)[1]


@dataclass(frozen=True)
class Notification:
    """Attributed event record addressed to exactly one recipient."""

    id: str
    recipient_id: str
    actor_id: str
    kind: NotificationType
    title: str
    message: str
    subject_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    seq: int | None = None

    def sort_key(self) -> tuple[datetime, int, str]:
        """Key that orders notifications oldest first; reverse it for display.

        Equal timestamps fall back to insertion order (``seq``).
        """

        return (self.created_at or _EPOCH, self.seq or 0, self.id)


class ChangeKind(str, Enum):
    """Row-level change classes delivered by a change subscription."""

    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to a single row of a record store table."""

    kind: ChangeKind
    table: str
    row: dict[str, Any]


__all__ = ["ChangeEvent", "ChangeKind", "Notification", "NotificationType"]
