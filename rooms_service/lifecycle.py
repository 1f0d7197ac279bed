import logging
from dataclasses import replace
from typing import Callable, List, Optional

from . import projection, schemas
from .errors import DuplicateRoomCode, InvalidRoomData, RoomDeletionFailed, RoomNotFound
from .forms import history_entry_from_payload, normalize_room_input, parse_department_id, redact
from .history import HistoryAction, HistoryEntry
from .repository import RoomRepository
from .terms import TermResolver

logger = logging.getLogger(__name__)


class RoomLifecycle:
    """
    Business rules for creating, updating and retiring rooms.

    The lifecycle resolves the active term, decides between creating and
    reactivating, builds history entries, and hands the result to the
    repository. Results leave as projected plain dictionaries.

    Parameters
    ----------
    repository : RoomRepository
        Storage adapter.
    terms : TermResolver
        Source of the active academic year.
    on_change : Optional[Callable[[dict], None]]
        Invalidation hook called after each successful mutation with the
        projected room. Failures of the hook are logged and ignored.
    """

    def __init__(
        self,
        repository: RoomRepository,
        terms: TermResolver,
        on_change: Optional[Callable[[dict], None]] = None,
    ):
        self.repository = repository
        self.terms = terms
        self.on_change = on_change

    def _notify(self, room: dict) -> dict:
        if self.on_change is None:
            return room
        try:
            self.on_change(room)
        except Exception:
            logger.warning("Room change hook failed for %s", room.get("roomCode"), exc_info=True)
        return room

    # ---------- Mutations ----------

    def process_room_creation(self, room_data, actor) -> dict:
        """
        Create a room, or reactivate a retired room with the same code.

        Raises
        ------
        NoActiveTerm
            If no academic term is active.
        DuplicateRoomCode
            If an active room already uses the code.
        InvalidRoomData
            If ``room_data`` does not validate.
        """
        normalized = normalize_room_input(room_data, schemas.RoomCreate)
        fields = dict(normalized.fields)
        academic_year = self.terms.active_academic_year()
        fields["academic_year"] = academic_year
        room_code = fields["room_code"]

        logger.info("Processing room creation: %s", redact(fields))

        if self.repository.get_active_room_by_code(room_code) is not None:
            raise DuplicateRoomCode(room_code)

        if self.repository.get_inactive_room_by_code(room_code) is not None:
            room = self.repository.reactivate_room(room_code, actor, academic_year)
            if room is not None:
                logger.info("Reactivated room %s for %s", room_code, academic_year)
                return self._notify(projection.project_room(room))

        room = self.repository.create_room(fields, actor, academic_year)
        logger.info("Created room %s for %s", room_code, academic_year)
        return self._notify(projection.project_room(room))

    def process_room_update(self, room_code: str, patch, actor) -> dict:
        """
        Apply ``patch`` to the active room with ``room_code``.

        A caller-supplied history entry (``$push[updateHistory]``) is completed
        and used; otherwise an ``updated`` entry is recorded for ``actor``.
        Either way the entry carries the active term's year.

        Raises
        ------
        InvalidRoomData
            If the patch does not validate or the supplied entry is not an
            ``updated`` entry.
        NoActiveTerm
            If no academic term is active.
        RoomNotFound
            If no active room has the code.
        DuplicateRoomCode
            If the patch renames the room to a code another active room uses.
        """
        normalized = normalize_room_input(patch, schemas.RoomUpdate)
        academic_year = self.terms.active_academic_year()

        if normalized.history is not None:
            entry = history_entry_from_payload(normalized.history, actor, HistoryAction.UPDATED)
            if entry.action is not HistoryAction.UPDATED:
                raise InvalidRoomData(f"An update cannot record a '{entry.action.value}' entry")
        else:
            entry = HistoryEntry.record(actor, HistoryAction.UPDATED)
        entry = replace(entry, academic_year=academic_year)

        fields = dict(normalized.fields)
        fields["academic_year"] = academic_year
        logger.info("Processing update of room %s: %s", room_code, redact(fields))

        new_code = fields.get("room_code")
        if new_code and new_code != room_code:
            if self.repository.get_active_room_by_code(new_code) is not None:
                raise DuplicateRoomCode(new_code)

        room = self.repository.update_room(room_code, fields, entry)
        if room is None:
            raise RoomNotFound(room_code)
        return self._notify(projection.project_room(room))

    def process_room_deletion(self, room_code: str, actor) -> dict:
        """
        Soft-delete the active room with ``room_code``.

        Raises
        ------
        NoActiveTerm
            If no academic term is active.
        RoomDeletionFailed
            If no active room has the code.
        """
        academic_year = self.terms.active_academic_year()
        entry = HistoryEntry.record(actor, HistoryAction.DELETED, academic_year)

        room = self.repository.delete_room(room_code, {"academic_year": academic_year}, entry)
        if room is None:
            raise RoomDeletionFailed(room_code)
        logger.info("Deleted room %s for %s", room_code, academic_year)
        return self._notify(projection.project_room(room))

    # ---------- Reads ----------

    def get_room(self, room_code: str) -> dict:
        room = self.repository.get_active_room_by_code(room_code)
        if room is None:
            raise RoomNotFound(room_code)
        return projection.project_room(room)

    def list_active_rooms(self) -> List[dict]:
        return projection.project_rooms(self.repository.list_active_rooms())

    def list_rooms_by_department(self, department_id=None) -> List[dict]:
        rooms = self.repository.list_rooms_by_department(parse_department_id(department_id))
        return projection.project_rooms(rooms)
