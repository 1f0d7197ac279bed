import json
import re

import pytest
from fastapi import BackgroundTasks
from fastapi.testclient import TestClient

from rooms_service import models
from rooms_service.main import app, get_room_lifecycle, invalidate_room_views

client = TestClient(app)

ISO_MS = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def create_room(headers, **overrides):
    payload = {
        "roomCode": "R101",
        "roomName": "Lecture Hall 1",
        "capacity": 30,
        "type": "Lecture",
        "floor": "1",
        "department": None,
    }
    payload.update(overrides)
    return client.post("/api/v1/rooms", json=payload, headers=headers)


def test_health_check():
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"service": "rooms", "status": "running"}


def test_create_room_requires_auth(active_term):
    res = client.post("/api/v1/rooms", json={"roomCode": "R101", "capacity": 30})
    assert res.status_code in (401, 403)


def test_faculty_cannot_create_room(active_term, faculty_headers):
    res = create_room(faculty_headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Not enough permissions"


def test_admin_creates_room_with_seeded_history(active_term, admin_headers):
    res = create_room(admin_headers)
    assert res.status_code == 201
    body = res.json()

    assert body["roomCode"] == "R101"
    assert body["capacity"] == 30
    assert body["department"] is None
    assert body["isActive"] is True
    assert body["academicYear"] == "2024-2025"
    assert len(body["updateHistory"]) == 1

    entry = body["updateHistory"][0]
    assert entry["action"] == "created"
    assert entry["updatedBy"] == "1"
    assert entry["academicYear"] == "2024-2025"
    assert ISO_MS.match(entry["updatedAt"])
    assert isinstance(body["id"], str)
    assert ISO_MS.match(body["createdAt"])
    assert ISO_MS.match(body["updatedAt"])


def test_create_room_without_active_term_fails(admin_headers, db):
    res = create_room(admin_headers)
    assert res.status_code == 409
    body = res.json()
    assert body["detail"] == "No active term found"
    assert body["service"] == "rooms"
    assert db.query(models.Room).count() == 0


def test_duplicate_active_room_code_is_rejected(active_term, admin_headers, db):
    assert create_room(admin_headers).status_code == 201

    res = create_room(admin_headers, roomName="Another Hall")
    assert res.status_code == 400
    assert "already exists" in res.json()["detail"]

    rooms = db.query(models.Room).all()
    assert len(rooms) == 1
    assert rooms[0].room_name == "Lecture Hall 1"


def test_delete_then_recreate_reactivates_same_room(active_term, admin_headers, db):
    created = create_room(admin_headers).json()

    res_delete = client.delete("/api/v1/rooms/R101", headers=admin_headers)
    assert res_delete.status_code == 200
    deleted = res_delete.json()
    assert deleted["isActive"] is False
    assert len(deleted["updateHistory"]) == 2
    assert deleted["updateHistory"][1]["action"] == "deleted"
    assert deleted["updateHistory"][1]["academicYear"] == "2024-2025"

    res_get = client.get("/api/v1/rooms/R101", headers=admin_headers)
    assert res_get.status_code == 404

    res_again = create_room(admin_headers)
    assert res_again.status_code == 201
    again = res_again.json()
    assert again["id"] == created["id"]
    assert again["isActive"] is True
    assert [h["action"] for h in again["updateHistory"]] == ["created", "deleted", "updated"]
    assert again["updateHistory"][0]["id"] == created["updateHistory"][0]["id"]

    assert db.query(models.Room).count() == 1


def test_update_room_with_json(active_term, admin_headers):
    create_room(admin_headers)

    res = client.put(
        "/api/v1/rooms/R101",
        json={"capacity": 45, "roomName": "Renovated Hall"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["capacity"] == 45
    assert body["roomName"] == "Renovated Hall"
    assert body["type"] == "Lecture"
    assert [h["action"] for h in body["updateHistory"]] == ["created", "updated"]


def test_update_room_with_form_data(active_term, admin_headers):
    create_room(admin_headers)

    history = json.dumps({"action": "updated", "updatedBy": "999"})
    res = client.put(
        "/api/v1/rooms/R101",
        data={"capacity": "50", "floor": "2", "userId": "999", "$push[updateHistory]": history},
        headers=admin_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["capacity"] == 50
    assert body["floor"] == "2"
    last = body["updateHistory"][-1]
    assert last["action"] == "updated"
    assert last["updatedBy"] == "1"
    assert last["academicYear"] == "2024-2025"


def test_create_room_with_form_data(active_term, admin_headers, departments):
    res = client.post(
        "/api/v1/rooms",
        data={
            "roomCode": "LAB2",
            "roomName": "Computer Lab 2",
            "capacity": "25",
            "type": "Laboratory",
            "floor": "3",
            "department": str(departments["CS"].id),
        },
        headers=admin_headers,
    )
    assert res.status_code == 201
    body = res.json()
    assert body["capacity"] == 25
    assert body["department"] == {
        "id": str(departments["CS"].id),
        "code": "CS",
        "name": "Computer Science",
    }


def test_invalid_capacity_is_rejected(active_term, admin_headers, db):
    res = create_room(admin_headers, capacity=0)
    assert res.status_code == 422
    body = res.json()
    assert body["detail"] == "Invalid room data"
    assert any("capacity" in message for message in body["errors"])
    assert db.query(models.Room).count() == 0


def test_update_room_code_to_existing_one_fails(active_term, admin_headers):
    create_room(admin_headers, roomCode="R1")
    create_room(admin_headers, roomCode="R2")

    res = client.put("/api/v1/rooms/R2", json={"roomCode": "R1"}, headers=admin_headers)
    assert res.status_code == 400
    assert "exists" in res.json()["detail"].lower()

    res_get = client.get("/api/v1/rooms/R2", headers=admin_headers)
    assert res_get.status_code == 200
    assert len(res_get.json()["updateHistory"]) == 1


def test_update_with_null_capacity_is_rejected(active_term, admin_headers):
    create_room(admin_headers)

    res = client.put("/api/v1/rooms/R101", json={"capacity": None}, headers=admin_headers)
    assert res.status_code == 422
    assert res.json()["detail"] == "Invalid room data"

    res_get = client.get("/api/v1/rooms/R101", headers=admin_headers)
    assert res_get.json()["capacity"] == 30


def test_update_with_forged_history_action_is_rejected(active_term, admin_headers):
    create_room(admin_headers)

    history = json.dumps({"action": "deleted", "academicYear": "1999-2000"})
    res = client.put(
        "/api/v1/rooms/R101",
        data={"capacity": "12", "$push[updateHistory]": history},
        headers=admin_headers,
    )
    assert res.status_code == 422

    body = client.get("/api/v1/rooms/R101", headers=admin_headers).json()
    assert body["isActive"] is True
    assert [h["action"] for h in body["updateHistory"]] == ["created"]


def test_update_missing_room_returns_404(active_term, admin_headers):
    res = client.put("/api/v1/rooms/NOPE", json={"capacity": 10}, headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Room not found"


def test_delete_missing_room_returns_404(active_term, admin_headers):
    res = client.delete("/api/v1/rooms/NOPE", headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Failed to delete room"


def test_list_rooms_excludes_inactive_and_sorts_by_code(active_term, admin_headers, faculty_headers):
    create_room(admin_headers, roomCode="R300")
    create_room(admin_headers, roomCode="R100")
    create_room(admin_headers, roomCode="R200")
    client.delete("/api/v1/rooms/R200", headers=admin_headers)

    res = client.get("/api/v1/rooms", headers=faculty_headers)
    assert res.status_code == 200
    codes = [room["roomCode"] for room in res.json()]
    assert codes == ["R100", "R300"]


def test_list_rooms_by_department_includes_unassigned(active_term, admin_headers, departments):
    cs_id = departments["CS"].id
    math_id = departments["MATH"].id
    create_room(admin_headers, roomCode="CS-2", department=cs_id)
    create_room(admin_headers, roomCode="CS-1", department=cs_id)
    create_room(admin_headers, roomCode="M-1", department=math_id)
    create_room(admin_headers, roomCode="GEN-1", department=None)

    res = client.get(
        "/api/v1/rooms/by-department",
        params={"department_id": str(cs_id)},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert [room["roomCode"] for room in res.json()] == ["CS-1", "CS-2", "GEN-1"]

    res_none = client.get("/api/v1/rooms/by-department", headers=admin_headers)
    assert [room["roomCode"] for room in res_none.json()] == ["GEN-1"]


def test_list_rooms_by_invalid_department_id(active_term, admin_headers):
    res = client.get(
        "/api/v1/rooms/by-department",
        params={"department_id": "not-a-number"},
        headers=admin_headers,
    )
    assert res.status_code == 422


def test_active_term_and_departments_lookups(active_term, departments, faculty_headers):
    res_term = client.get("/api/v1/terms/active", headers=faculty_headers)
    assert res_term.status_code == 200
    assert res_term.json()["academicYear"] == "2024-2025"
    assert res_term.json()["status"] == "Active"

    res_depts = client.get("/api/v1/departments", headers=faculty_headers)
    assert [d["departmentCode"] for d in res_depts.json()] == ["CS", "MATH"]


def test_mutations_invalidate_cached_views(active_term, admin_headers, monkeypatch):
    invalidated = []
    monkeypatch.setattr(
        "rooms_service.main.invalidate_views",
        lambda *prefixes: invalidated.append(prefixes),
    )

    create_room(admin_headers)
    client.delete("/api/v1/rooms/R101", headers=admin_headers)

    assert invalidated == [("rooms:", "room:R101"), ("rooms:", "room:R101")]


@pytest.mark.parametrize("path", ["/api/v1/rooms", "/api/v1/rooms/R101"])
def test_read_endpoints_require_auth(path):
    res = client.get(path)
    assert res.status_code in (401, 403)


def test_view_invalidation_is_queued_as_background_task(db, monkeypatch):
    invalidated = []
    monkeypatch.setattr(
        "rooms_service.main.invalidate_views",
        lambda *prefixes: invalidated.append(prefixes),
    )
    tasks = BackgroundTasks()

    lifecycle = get_room_lifecycle(tasks, db)
    lifecycle.on_change({"roomCode": "R101"})

    assert invalidated == []
    assert [(task.func, task.args) for task in tasks.tasks] == [
        (invalidate_room_views, ({"roomCode": "R101"},))
    ]
