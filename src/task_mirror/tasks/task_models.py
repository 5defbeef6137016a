# src/task_mirror/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

DEFAULT_NAME = "Unnamed Task"
DEFAULT_STATUS = "To Do"

# Remote document field names.
FIELD_NAME = "name"
FIELD_STATUS = "status"
FIELD_DATE = "date"
FIELD_GROUP_CODE = "groupCode"
FIELD_ASSIGNED_TO = "assignedTo"
FIELD_ASSIGNED_USER_ID = "assignedUserId"
FIELD_IS_FAVORITE = "isFavorite"
FIELD_PRIORITY = "priority"
FIELD_UPDATED_AT = "updatedAt"

# Never changed by a cache patch.
IMMUTABLE_FIELDS = frozenset({"id", "group_code"})


class FailurePolicy(StrEnum):
    """What a mutation does with a remote write failure after rolling back."""

    SWALLOW = "swallow"  # log only
    RAISE = "raise"


def local_date_str(today: date | None = None) -> str:
    """Client-local date as M/D/YYYY (no zero padding)."""
    today = today or date.today()
    return f"{today.month}/{today.day}/{today.year}"


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    name: str
    status: str
    date: str
    group_code: str
    assigned_to: str | None = None
    is_favorite: bool = False
    priority: str | None = None

    @classmethod
    def from_remote(cls, doc_id: str, data: dict[str, Any], *, today: date | None = None) -> Task:
        """
        Map a remote document to a Task, filling defaults.

        Falsy upstream values count as absent for name/status/date/isFavorite/priority,
        so an empty name still renders as the placeholder.
        """
        assigned = data.get(FIELD_ASSIGNED_TO)
        priority = data.get(FIELD_PRIORITY)
        return cls(
            id=str(doc_id),
            name=str(data.get(FIELD_NAME) or DEFAULT_NAME),
            status=str(data.get(FIELD_STATUS) or DEFAULT_STATUS),
            date=str(data.get(FIELD_DATE) or local_date_str(today)),
            group_code=str(data.get(FIELD_GROUP_CODE) or ""),
            assigned_to=None if assigned is None else str(assigned),
            is_favorite=bool(data.get(FIELD_IS_FAVORITE) or False),
            priority=str(priority) if priority else None,
        )
