import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, HTTPException, Query, status, Request
from fastapi.responses import JSONResponse

from sqlalchemy.orm import Session

from common.cache import invalidate_views

from . import models, projection, schemas
from .auth import ROLE_ADMINISTRATOR, STAFF_ROLES, actor_id, require_roles
from .database import get_db, init_db
from .errors import InvalidRoomData, RoomsError
from .lifecycle import RoomLifecycle
from .repository import SqlAlchemyRoomRepository
from .terms import TermResolver

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "rooms"


@asynccontextmanager
async def lifespan(_: FastAPI):
    "lifespan for initing database"
    init_db()
    yield


app = FastAPI(title="Rooms Service", version="1.0.0", lifespan=lifespan)

router_v1 = APIRouter(prefix="/api/v1")


def _error_body(request: Request, status_code: int, detail) -> dict:
    return {
        "service": SERVICE_NAME,
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "detail": detail,
    }


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RoomsError)
async def rooms_error_handler(request: Request, exc: RoomsError):
    content = _error_body(request, exc.status_code, exc.detail)
    if isinstance(exc, InvalidRoomData) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "Internal server error"),
    )


@app.get("/")
def root():
    """
    Health-check endpoint for the Rooms service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": "rooms", "status": "running"}


room_managers = require_roles(ROLE_ADMINISTRATOR)

room_viewers = require_roles(ROLE_ADMINISTRATOR, *STAFF_ROLES)


def invalidate_room_views(room: dict) -> None:
    invalidate_views("rooms:", f"room:{room['roomCode']}")


def get_room_lifecycle(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> RoomLifecycle:
    """
    Build the room lifecycle for one request.

    Parameters
    ----------
    background_tasks : BackgroundTasks
        Tasks run after the response is sent. View invalidation is queued
        here so the caller never waits on the cache.
    db : Session
        Request-scoped database session.

    Returns
    -------
    RoomLifecycle
        Lifecycle wired to the SQLAlchemy repository, the term resolver and
        the view invalidation hook.
    """
    return RoomLifecycle(
        SqlAlchemyRoomRepository(db),
        TermResolver(db),
        on_change=lambda room: background_tasks.add_task(invalidate_room_views, room),
    )


async def room_payload(request: Request):
    """
    Read a room payload sent either as JSON or as form data.

    Returns
    -------
    Mapping
        The decoded JSON object or the parsed form.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        return await request.form()
    try:
        return await request.json()
    except ValueError:
        raise InvalidRoomData("Request body must be a JSON object or form data")


# ---------- Create room ----------


@router_v1.post("/rooms", response_model=schemas.RoomRead, status_code=status.HTTP_201_CREATED)
def create_room(
    claims: dict = Depends(room_managers),
    payload=Depends(room_payload),
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
):
    """
    Create a room, or reactivate a deleted room with the same code.

    Access
    ------
    - Allowed roles: Administrator.

    Behavior
    --------
    - Stamps the room with the active term's academic year.
    - Rejects the code if an active room already uses it.
    - Reactivates the inactive room with that code instead of inserting a
      duplicate, appending an 'updated' history entry.

    Raises
    ------
    HTTPException
        409 if no term is active, 400 on a duplicate code, 422 on bad input.
    """
    return lifecycle.process_room_creation(payload, actor_id(claims))


# ---------- List / read rooms ----------


@router_v1.get("/rooms", response_model=List[schemas.RoomRead])
def list_rooms(
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
    _: dict = Depends(room_viewers),
):
    """
    Retrieve all active rooms ordered by room code.

    Returns
    -------
    List[RoomRead]
        Projected rooms with department info and history.
    """
    return lifecycle.list_active_rooms()


@router_v1.get("/rooms/by-department", response_model=List[schemas.RoomRead])
def list_rooms_by_department(
    department_id: Optional[str] = Query(default=None),
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
    _: dict = Depends(room_viewers),
):
    """
    Retrieve active rooms of a department together with unassigned rooms.

    Parameters
    ----------
    department_id : Optional[str]
        Department identifier. When omitted only rooms without a department
        are returned.
    """
    return lifecycle.list_rooms_by_department(department_id)


@router_v1.get("/rooms/{room_code}", response_model=schemas.RoomRead)
def get_room(
    room_code: str,
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
    _: dict = Depends(room_viewers),
):
    """
    Retrieve the active room with the given code.

    Raises
    ------
    HTTPException
        404 if no active room has this code.
    """
    return lifecycle.get_room(room_code)


# ---------- Update / delete rooms (Administrator) ----------


@router_v1.put("/rooms/{room_code}", response_model=schemas.RoomRead)
def update_room(
    room_code: str,
    claims: dict = Depends(room_managers),
    payload=Depends(room_payload),
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
):
    """
    Update an active room.

    Behavior
    --------
    - Only supplied fields change.
    - An 'updated' history entry stamped with the active academic year is
      appended in the same transaction.

    Raises
    ------
    HTTPException
        404 if no active room has this code, 409 if no term is active.
    """
    return lifecycle.process_room_update(room_code, payload, actor_id(claims))


@router_v1.delete("/rooms/{room_code}", response_model=schemas.RoomRead)
def delete_room(
    room_code: str,
    lifecycle: RoomLifecycle = Depends(get_room_lifecycle),
    claims: dict = Depends(room_managers),
):
    """
    Soft-delete a room by marking it inactive.

    Behavior
    --------
    - Sets is_active = False; the room keeps its history and can be
      reactivated by creating a room with the same code.

    Returns
    -------
    RoomRead
        The deactivated room.
    """
    return lifecycle.process_room_deletion(room_code, actor_id(claims))


# ---------- Lookups used by room forms ----------


@router_v1.get("/terms/active", response_model=schemas.TermRead)
def get_active_term(
    db: Session = Depends(get_db),
    _: dict = Depends(room_viewers),
):
    """Return the currently active academic term."""
    return projection.project_term(TermResolver(db).get_active_term())


@router_v1.get("/departments", response_model=List[schemas.DepartmentRead])
def list_departments(
    db: Session = Depends(get_db),
    _: dict = Depends(room_viewers),
):
    """Return all departments ordered by code."""
    departments = db.query(models.Department).order_by(models.Department.department_code).all()
    return [projection.project_department_record(d) for d in departments]


app.include_router(router_v1)
