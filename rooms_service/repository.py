import logging
from typing import List, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import InvalidRoomData
from .history import HistoryAction, HistoryEntry, utcnow

logger = logging.getLogger(__name__)

# Input field name -> Room column for values a caller may set.
EDITABLE_FIELDS = {
    "room_code": "room_code",
    "room_name": "room_name",
    "capacity": "capacity",
    "type": "type",
    "floor": "floor",
    "department": "department_id",
    "department_id": "department_id",
    "academic_year": "academic_year",
}


def _column_values(fields: dict) -> dict:
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise InvalidRoomData(f"Unknown room fields: {', '.join(unknown)}")
    return {EDITABLE_FIELDS[key]: value for key, value in fields.items()}


class RoomRepository(Protocol):
    """
    Storage operations the room lifecycle depends on.

    Lookups return ``None`` when nothing matches; turning that into a named
    error is the caller's job. Every mutation commits its field changes and
    its history entry together.
    """

    def create_room(self, room_data: dict, actor, academic_year: Optional[str]) -> models.Room:
        ...

    def get_active_room_by_code(self, room_code: str) -> Optional[models.Room]:
        ...

    def get_inactive_room_by_code(self, room_code: str) -> Optional[models.Room]:
        ...

    def reactivate_room(self, room_code: str, actor, academic_year: Optional[str] = None) -> Optional[models.Room]:
        ...

    def update_room(self, room_code: str, patch: dict, history_entry: Optional[HistoryEntry] = None) -> Optional[models.Room]:
        ...

    def delete_room(self, room_code: str, patch: dict, history_entry: HistoryEntry) -> Optional[models.Room]:
        ...

    def list_active_rooms(self) -> List[models.Room]:
        ...

    def list_rooms_by_department(self, department_id: Optional[int]) -> List[models.Room]:
        ...


class SqlAlchemyRoomRepository:
    """
    ``RoomRepository`` backed by a SQLAlchemy session.

    Parameters
    ----------
    db : Session
        Request-scoped session. Each mutating call ends with a commit, or a
        rollback if the commit fails.
    """

    def __init__(self, db: Session):
        self.db = db

    def _by_code(self, room_code: str, active: bool):
        return self.db.query(models.Room).filter(
            models.Room.room_code == room_code,
            models.Room.is_active.is_(active),
        )

    def _commit(self, room: models.Room) -> models.Room:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to persist room %s", room.room_code)
            raise
        self.db.refresh(room)
        return room

    # ---------- Lookups ----------

    def get_active_room_by_code(self, room_code: str) -> Optional[models.Room]:
        return self._by_code(room_code, True).first()

    def get_inactive_room_by_code(self, room_code: str) -> Optional[models.Room]:
        # most recently created record wins if several were retired
        return self._by_code(room_code, False).order_by(models.Room.id.desc()).first()

    def list_active_rooms(self) -> List[models.Room]:
        return (
            self.db.query(models.Room)
            .filter(models.Room.is_active.is_(True))
            .order_by(models.Room.room_code)
            .all()
        )

    def list_rooms_by_department(self, department_id: Optional[int]) -> List[models.Room]:
        """
        Active rooms of ``department_id`` plus rooms with no department.

        With ``department_id=None`` only unassigned rooms are returned.
        """
        query = self.db.query(models.Room).filter(models.Room.is_active.is_(True))
        if department_id is None:
            query = query.filter(models.Room.department_id.is_(None))
        else:
            query = query.filter(
                or_(
                    models.Room.department_id == department_id,
                    models.Room.department_id.is_(None),
                )
            )
        rooms = query.order_by(models.Room.room_code).all()
        logger.info("Found %d rooms for department %s", len(rooms), department_id)
        return rooms

    # ---------- Mutations ----------

    def create_room(self, room_data: dict, actor, academic_year: Optional[str]) -> models.Room:
        values = _column_values(room_data)
        values["academic_year"] = academic_year
        room = models.Room(**values, is_active=True)
        room.append_history(HistoryEntry.record(actor, HistoryAction.CREATED, academic_year))
        self.db.add(room)
        return self._commit(room)

    def reactivate_room(self, room_code: str, actor, academic_year: Optional[str] = None) -> Optional[models.Room]:
        room = self.get_inactive_room_by_code(room_code)
        if room is None:
            return None

        room.is_active = True
        if academic_year:
            room.academic_year = academic_year
        room.updated_at = utcnow()
        room.append_history(HistoryEntry.record(actor, HistoryAction.UPDATED, academic_year))
        return self._commit(room)

    def update_room(
        self,
        room_code: str,
        patch: dict,
        history_entry: Optional[HistoryEntry] = None,
    ) -> Optional[models.Room]:
        room = self.get_active_room_by_code(room_code)
        if room is None:
            return None

        for column, value in _column_values(patch).items():
            setattr(room, column, value)
        if history_entry is not None:
            room.append_history(history_entry)
        room.updated_at = utcnow()
        return self._commit(room)

    def delete_room(self, room_code: str, patch: dict, history_entry: HistoryEntry) -> Optional[models.Room]:
        """
        Soft-delete the active room with ``room_code``.

        ``history_entry`` is appended as a whole, tagged with
        ``patch['academic_year']`` when it does not carry a year yet.
        """
        room = self.get_active_room_by_code(room_code)
        if room is None:
            return None

        academic_year = patch.get("academic_year")
        if academic_year:
            history_entry = history_entry.stamped(academic_year)

        for column, value in _column_values(patch).items():
            setattr(room, column, value)
        room.is_active = False
        room.append_history(history_entry)
        room.updated_at = utcnow()
        return self._commit(room)
