from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator


def _blank_to_none(value):
    if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
        return None
    return value


def _floor_text(value):
    value = _blank_to_none(value)
    if isinstance(value, int):
        return str(value)
    return value


class RoomBase(BaseModel):
    """
    Base schema for room information.

    Accepts both the camelCase keys sent by forms (``roomCode``) and the
    snake_case attribute names.
    """
    room_code: str = Field(..., alias="roomCode", min_length=1, max_length=50)
    room_name: Optional[str] = Field(default=None, alias="roomName", max_length=100)
    capacity: int = Field(..., ge=1)
    type: Optional[str] = Field(default=None, max_length=50)
    floor: Optional[str] = Field(default=None, max_length=50)
    department: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("department", "room_name", "type", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        return _blank_to_none(value)

    @field_validator("floor", mode="before")
    @classmethod
    def floor_as_text(cls, value):
        return _floor_text(value)


class RoomCreate(RoomBase):
    """
    Schema for creating (or reactivating) a room.

    Inherits all fields from RoomBase.
    """
    pass


class RoomUpdate(BaseModel):
    """
    Schema for partial updates to an active room.

    All fields are optional and only provided values will be updated.
    ``roomCode`` and ``capacity`` may be left out but not cleared.
    The active flag and the history are not editable through this schema.
    """
    room_code: Optional[str] = Field(default=None, alias="roomCode", min_length=1, max_length=50)
    room_name: Optional[str] = Field(default=None, alias="roomName", max_length=100)
    capacity: Optional[int] = Field(default=None, ge=1)
    type: Optional[str] = Field(default=None, max_length=50)
    floor: Optional[str] = Field(default=None, max_length=50)
    department: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("room_code", "capacity", mode="before")
    @classmethod
    def not_cleared(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value

    @field_validator("department", "room_name", "type", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        return _blank_to_none(value)

    @field_validator("floor", mode="before")
    @classmethod
    def floor_as_text(cls, value):
        return _floor_text(value)


# ---------- Output schemas ----------


class DepartmentRef(BaseModel):
    """Department fields inlined into a projected room."""
    id: str
    code: str
    name: str


class HistoryEntryRead(BaseModel):
    """
    Schema of one projected history entry.

    Identifiers are strings and ``updatedAt`` is an ISO-8601 UTC timestamp.
    """
    id: str
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")
    updated_at: str = Field(..., alias="updatedAt")
    action: str
    academic_year: Optional[str] = Field(default=None, alias="academicYear")

    model_config = ConfigDict(populate_by_name=True)


class RoomRead(BaseModel):
    """
    Schema returned when reading room data.

    Mirrors the output of ``projection.project_room``: plain strings for
    identifiers and timestamps, department inlined or null.
    """
    id: str
    room_code: str = Field(..., alias="roomCode")
    room_name: Optional[str] = Field(default=None, alias="roomName")
    capacity: int
    type: Optional[str] = None
    floor: Optional[str] = None
    department: Optional[DepartmentRef] = None
    academic_year: Optional[str] = Field(default=None, alias="academicYear")
    is_active: bool = Field(..., alias="isActive")
    update_history: List[HistoryEntryRead] = Field(default_factory=list, alias="updateHistory")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class TermRead(BaseModel):
    id: str
    academic_year: str = Field(..., alias="academicYear")
    term: Optional[str] = None
    status: str

    model_config = ConfigDict(populate_by_name=True)


class DepartmentRead(BaseModel):
    id: str
    department_code: str = Field(..., alias="departmentCode")
    department_name: str = Field(..., alias="departmentName")

    model_config = ConfigDict(populate_by_name=True)
