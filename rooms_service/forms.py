"""
Normalization of caller input into room fields.

Callers send either structured objects (pydantic models or JSON dicts) or
form-encoded key/value data. Both shapes are reduced to the same validated
field set before anything reaches the repository.
"""
import json
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from .errors import InvalidRoomData
from .history import HistoryAction, HistoryEntry

# Form field carrying a JSON-encoded history entry.
HISTORY_FORM_KEY = "$push[updateHistory]"

# The actor always comes from the authenticated caller, never the payload.
ACTOR_FIELDS = frozenset({"userId", "user_id", "updatedBy", "updated_by"})

SENSITIVE_FIELDS = frozenset({"password", "hashed_password", "token", "access_token", "secret"})


@dataclass
class NormalizedRoomInput:
    fields: dict
    history: Optional[Mapping[str, Any]] = None


def redact(data: Mapping[str, Any]) -> dict:
    """Copy of ``data`` with credential-like values masked, safe for logging."""
    return {
        key: "[REDACTED]" if str(key).lower() in SENSITIVE_FIELDS else value
        for key, value in data.items()
    }


def _as_dict(data) -> dict:
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    if hasattr(data, "multi_items"):
        # starlette FormData: last value wins for repeated keys
        return {key: value for key, value in data.multi_items()}
    if isinstance(data, Mapping):
        return dict(data)
    raise InvalidRoomData(f"Unsupported room payload: {type(data).__name__}")


def _pop_history(raw: dict) -> Optional[Mapping[str, Any]]:
    payload = raw.pop(HISTORY_FORM_KEY, None)
    push = raw.pop("$push", None)
    if payload is None and isinstance(push, Mapping):
        payload = push.get("updateHistory")
    if payload is None:
        return None

    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as exc:
            raise InvalidRoomData("updateHistory must be a JSON object") from exc
    if not isinstance(payload, Mapping):
        raise InvalidRoomData("updateHistory must be a JSON object")
    return payload


def normalize_room_input(data, schema: Type[BaseModel]) -> NormalizedRoomInput:
    """
    Validate ``data`` against ``schema`` and split off any history entry.

    Parameters
    ----------
    data : BaseModel | Mapping | FormData
        Raw caller input. Keys may be camelCase or snake_case.
    schema : Type[BaseModel]
        ``schemas.RoomCreate`` or ``schemas.RoomUpdate``.

    Returns
    -------
    NormalizedRoomInput
        Snake_case fields that were actually supplied, plus the raw
        caller-supplied history entry if one was present.

    Raises
    ------
    InvalidRoomData
        If the payload shape or any field value is invalid.
    """
    raw = _as_dict(data)
    history = _pop_history(raw)
    for key in ACTOR_FIELDS | SENSITIVE_FIELDS:
        raw.pop(key, None)

    try:
        model = schema.model_validate(raw)
    except ValidationError as exc:
        messages = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise InvalidRoomData("Invalid room data", errors=messages) from exc

    return NormalizedRoomInput(fields=model.model_dump(exclude_unset=True), history=history)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise InvalidRoomData(f"Invalid updatedAt timestamp: {value}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def history_entry_from_payload(
    payload: Mapping[str, Any],
    actor,
    default_action: HistoryAction,
) -> HistoryEntry:
    """
    Build a complete ``HistoryEntry`` from a caller-supplied one.

    ``updatedBy`` is the authenticated actor whenever one is known. A missing
    ``action`` or ``updatedAt`` falls back to ``default_action`` or the
    current time. A supplied ``academicYear`` is ignored; the lifecycle sets
    the active term's year.
    """
    try:
        action = HistoryAction(payload.get("action") or default_action)
    except ValueError as exc:
        raise InvalidRoomData(f"Unknown history action: {payload.get('action')}") from exc

    entry = HistoryEntry.record(actor if actor is not None else payload.get("updatedBy"), action)
    if payload.get("updatedAt"):
        entry = replace(entry, updated_at=_parse_timestamp(payload["updatedAt"]))
    return entry


def parse_department_id(value) -> Optional[int]:
    """Turn a department id from a query string or form into an int or None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if value.lower() in ("", "null", "none"):
            return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRoomData(f"Invalid department id: {value}") from exc
