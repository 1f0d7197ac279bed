from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .history import HistoryAction, HistoryEntry, utcnow


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class TermStatus(str, PyEnum):
    """
    Enumeration of academic term states.

    Values
    ------
    Active
        The current term. Exactly one term is expected to be active.
    Inactive
        Past or upcoming term.
    """
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class Department(Base):
    """
    SQLAlchemy model for an academic department.

    Rooms reference departments by id only; a department does not own its
    rooms.
    """
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    department_code = Column(String(20), unique=True, nullable=False, index=True)
    department_name = Column(String(255), nullable=False)


class Term(Base):
    """
    SQLAlchemy model for an academic term.

    Attributes
    ----------
    id : int
        Primary key.
    academic_year : str
        Academic-year label, e.g. '2024-2025'.
    term : str
        Optional term label, e.g. 'First Semester'.
    status : TermStatus
        Whether this is the currently active term.
    """
    __tablename__ = "terms"

    id = Column(Integer, primary_key=True, index=True)
    academic_year = Column(String(20), nullable=False)
    term = Column(String(50), nullable=True)
    status = Column(
        Enum(TermStatus, values_callable=_enum_values),
        nullable=False,
        default=TermStatus.INACTIVE,
        index=True,
    )


class RoomHistoryEntry(Base):
    """
    One row of a room's append-only update history.

    Rows are ordered by ``position`` within their room and are never updated
    or removed once written.
    """
    __tablename__ = "room_update_history"
    __table_args__ = (
        UniqueConstraint("room_id", "position", name="uq_room_history_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    updated_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    action = Column(Enum(HistoryAction, values_callable=_enum_values), nullable=False)
    academic_year = Column(String(20), nullable=True)


class Room(Base):
    """
    SQLAlchemy model representing a teaching room.

    Attributes
    ----------
    id : int
        Primary key, stable across deactivation and reactivation.
    room_code : str
        Human-readable code. At most one *active* room may hold a code.
    room_name : str
        Display name.
    capacity : int
        Number of seats.
    type : str
        Room type, e.g. 'Lecture' or 'Laboratory'.
    floor : str
        Floor label.
    department_id : Optional[int]
        Owning department, or None for shared rooms.
    academic_year : str
        Academic year of the active term at the last mutation.
    is_active : bool
        Soft-delete flag; inactive rooms are hidden and may be reactivated.
    created_at, updated_at : datetime
        Row timestamps (UTC).
    """
    __tablename__ = "rooms"
    __table_args__ = (
        Index("ix_rooms_room_code", "room_code"),
        Index(
            "uq_rooms_active_room_code",
            "room_code",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_code = Column(String(50), nullable=False)
    room_name = Column(String(100), nullable=True)
    capacity = Column(Integer, nullable=False)
    type = Column(String(50), nullable=True)
    floor = Column(String(50), nullable=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    academic_year = Column(String(20), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    department = relationship("Department", lazy="joined")
    _history = relationship(
        "RoomHistoryEntry",
        order_by="RoomHistoryEntry.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def update_history(self):
        """Ordered, read-only view of the history rows."""
        return tuple(self._history)

    def append_history(self, entry: HistoryEntry) -> RoomHistoryEntry:
        """
        Append ``entry`` at the end of the history.

        This is the only write path into the history; existing rows keep
        their position and content.
        """
        row = RoomHistoryEntry(
            position=len(self._history),
            updated_by=entry.updated_by,
            updated_at=entry.updated_at,
            action=entry.action,
            academic_year=entry.academic_year,
        )
        self._history.append(row)
        return row
