"""Queue API routes with role checks."""

from datetime import datetime

import httpx
import pytest

from clinicqueue.main import app
from clinicqueue.models.user import User, UserRole
from clinicqueue.routers.dependencies import get_current_user
from clinicqueue.services.auth_service import AuthService


def as_role(role):
    async def override():
        return User(_id="u1", username=role.value, full_name="Test User", role=role, created_at=datetime.utcnow())
    return override


@pytest.fixture
async def client(mongo):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def patient_id(mongo):
    result = await mongo.patients.insert_one({"name": "Amal Haddad", "phone": "0551234567"})
    return str(result.inserted_id)


async def test_requires_token(client):
    response = await client.get("/queue")
    assert response.status_code in (401, 403)


async def test_check_in_and_list(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.SECRETARY)

    response = await client.post("/queue", json={"patient_id": patient_id, "is_walk_in": True})
    assert response.status_code == 201
    assert response.json()["ticket_number"] == 1

    response = await client.get("/queue")
    body = response.json()
    assert body["source"] == "live"
    assert [e["patient_id"]["name"] for e in body["entries"]] == ["Amal Haddad"]

    stats = (await client.get("/queue/stats")).json()
    assert stats["waiting_patients"] == 1
    assert stats["next_ticket_number"] == 2


async def test_invalid_check_in(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.SECRETARY)

    response = await client.post("/queue", json={"patient_id": patient_id, "is_walk_in": True, "appointment_id": "a1"})
    assert response.status_code == 422

    response = await client.post("/queue", json={"patient_id": "64f000000000000000000001"})
    assert response.status_code == 400


async def test_illegal_transition_is_conflict(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.DOCTOR)
    entry = (await client.post("/queue", json={"patient_id": patient_id})).json()

    response = await client.put(f"/queue/{entry['id']}", json={"status": "Completed"})
    assert response.status_code == 409

    response = await client.put(f"/queue/{entry['id']}", json={"status": "In Progress"})
    assert response.status_code == 200
    assert response.json()["status"] == "In Progress"

    response = await client.put("/queue/64f000000000000000000001", json={"status": "In Progress"})
    assert response.status_code == 404


async def test_role_gates(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.DOCTOR)
    entry = (await client.post("/queue", json={"patient_id": patient_id})).json()

    assert (await client.delete(f"/queue/{entry['id']}")).status_code == 403
    assert (await client.delete("/queue/completed")).status_code == 403
    assert (await client.put("/queue/reorder", json={"queueOrder": []})).status_code == 403
    assert (await client.get("/queue/next")).json()["id"] == entry["id"]

    app.dependency_overrides[get_current_user] = as_role(UserRole.SECRETARY)
    assert (await client.get("/queue/next")).status_code == 403
    assert (await client.delete(f"/queue/{entry['id']}")).status_code == 204
    assert (await client.delete("/queue/completed")).status_code == 204

    app.dependency_overrides[get_current_user] = as_role(UserRole.ADMIN)
    assert (await client.get("/queue/next")).status_code == 404


async def test_reorder(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.SECRETARY)
    first = (await client.post("/queue", json={"patient_id": patient_id})).json()
    second = (await client.post("/queue", json={"patient_id": patient_id})).json()

    response = await client.put("/queue/reorder", json={"queueOrder": [
        {"id": second["id"], "position": 1},
        {"id": first["id"], "position": 2},
    ]})

    assert response.status_code == 200
    assert [e["id"] for e in response.json()["entries"]] == [second["id"], first["id"]]


async def test_patient_and_appointment_lookup(client, patient_id):
    app.dependency_overrides[get_current_user] = as_role(UserRole.SECRETARY)

    response = await client.get(f"/patients/{patient_id}")
    assert response.json()["name"] == "Amal Haddad"
    assert (await client.get("/patients/64f000000000000000000001")).status_code == 404
    assert (await client.get("/appointments/64f000000000000000000001")).status_code == 404
    assert (await client.get("/appointments/today")).json() == []


async def test_login(client):
    await AuthService.create_user("Desk", "Front Desk", "s3cret", UserRole.SECRETARY)

    response = await client.post("/auth/login", json={"username": "desk", "password": "s3cret"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["username"] == "desk"

    response = await client.post("/auth/login", json={"username": "desk", "password": "wrong"})
    assert response.status_code == 401
