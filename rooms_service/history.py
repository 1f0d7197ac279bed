from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HistoryAction(str, PyEnum):
    """
    Enumeration of the mutations recorded in a room's update history.

    Values
    ------
    created
        The room document was inserted.
    updated
        Fields were changed, or an inactive room was reactivated.
    deleted
        The room was soft-deleted (marked inactive).
    """
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class HistoryEntry:
    """
    Immutable description of one history record, built before it is stored.

    Attributes
    ----------
    updated_by : Optional[str]
        Identifier of the user who performed the change.
    action : HistoryAction
        Kind of mutation.
    academic_year : Optional[str]
        Academic year of the active term at the time of the change.
    updated_at : datetime
        When the change happened (UTC).
    """
    updated_by: Optional[str]
    action: HistoryAction
    academic_year: Optional[str] = None
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def record(cls, actor, action, academic_year=None) -> "HistoryEntry":
        return cls(
            updated_by=None if actor is None else str(actor),
            action=HistoryAction(action),
            academic_year=academic_year,
        )

    def stamped(self, academic_year: str) -> "HistoryEntry":
        """Return a copy tagged with ``academic_year`` unless one is already set."""
        if self.academic_year:
            return self
        return replace(self, academic_year=academic_year)
