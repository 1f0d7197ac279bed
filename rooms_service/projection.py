"""
Conversion of stored rooms into plain, transport-safe dictionaries.

Every identifier becomes a string and every timestamp an ISO-8601 UTC
string with millisecond precision (``YYYY-MM-DDTHH:MM:SS.sssZ``). The same
projection is used for create, update, delete and list results.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from . import models


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; they were written as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def to_id(value) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    return value


def project_department(department: Optional[models.Department]) -> Optional[dict]:
    if department is None:
        return None
    return {
        "id": to_id(department.id),
        "code": department.department_code,
        "name": department.department_name,
    }


def project_history_entry(entry: models.RoomHistoryEntry) -> dict:
    return {
        "id": to_id(entry.id),
        "updatedBy": to_id(entry.updated_by),
        "updatedAt": to_iso(entry.updated_at),
        "action": _plain(entry.action),
        "academicYear": entry.academic_year,
    }


def project_room(room: models.Room) -> dict:
    """
    Project a ``Room`` and its nested department and history.

    Parameters
    ----------
    room : models.Room
        A persisted room (department and history loaded or loadable).

    Returns
    -------
    dict
        camelCase record matching ``schemas.RoomRead``.
    """
    return {
        "id": to_id(room.id),
        "roomCode": room.room_code,
        "roomName": room.room_name,
        "capacity": room.capacity,
        "type": room.type,
        "floor": room.floor,
        "department": project_department(room.department),
        "academicYear": room.academic_year,
        "isActive": bool(room.is_active),
        "updateHistory": [project_history_entry(entry) for entry in room.update_history],
        "createdAt": to_iso(room.created_at),
        "updatedAt": to_iso(room.updated_at),
    }


def project_rooms(rooms: Iterable[models.Room]) -> List[dict]:
    return [project_room(room) for room in rooms]


def project_term(term: models.Term) -> dict:
    return {
        "id": to_id(term.id),
        "academicYear": term.academic_year,
        "term": term.term,
        "status": _plain(term.status),
    }


def project_department_record(department: models.Department) -> dict:
    return {
        "id": to_id(department.id),
        "departmentCode": department.department_code,
        "departmentName": department.department_name,
    }
