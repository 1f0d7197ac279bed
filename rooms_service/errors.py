from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

# Lower-level persistence failures are re-raised unchanged.
StorageError = SQLAlchemyError


class RoomsError(Exception):
    """
    Base class for named failures of the room lifecycle.

    Attributes
    ----------
    status_code : int
        HTTP status used when the error reaches the API surface.
    detail : str
        Human-readable message returned to the caller.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Room operation failed"

    def __init__(self, detail: str = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NoActiveTerm(RoomsError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "No active term found"


class DuplicateRoomCode(RoomsError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Room code already exists"

    def __init__(self, room_code: str):
        self.room_code = room_code
        super().__init__(f"Room code already exists: {room_code}")


class RoomNotFound(RoomsError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Room not found"

    def __init__(self, room_code: str = None):
        self.room_code = room_code
        super().__init__()


class RoomDeletionFailed(RoomsError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Failed to delete room"

    def __init__(self, room_code: str = None):
        self.room_code = room_code
        super().__init__()


class InvalidRoomData(RoomsError):
    """Raised when caller input cannot be normalized into room fields."""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid room data"

    def __init__(self, detail: str = None, errors=None):
        self.errors = errors or []
        super().__init__(detail)
