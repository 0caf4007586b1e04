"""FastAPI endpoint tests using httpx.AsyncClient."""

import pytest
from httpx import ASGITransport, AsyncClient

from api.deps import get_workspace
from main import app
from services.gateway import OfflineGateway
from services.mutation_coordinator import Notifier
from services.workspace import Workspace

MASTER_COOKIE = {"Cookie": "als_token=t; als_user_role=master_admin"}
POBLACION_COOKIE = {
    "Cookie": "als_token=t; als_user_role=admin; als_assigned_barangay=brgy-poblacion",
}
LRN = "136512140001"


@pytest.fixture
async def api_workspace():
    ws = Workspace(OfflineGateway(), notifier=Notifier(ttl=60), merge_bundled_modules=False)
    await ws.load()
    app.dependency_overrides[get_workspace] = lambda: ws
    yield ws
    app.dependency_overrides.clear()
    await ws.close()


@pytest.fixture
async def client(api_workspace):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["collections"]["students"]["count"] == 4
    assert data["collections"]["progress"]["count"] == 0


@pytest.mark.asyncio
async def test_signed_out_requests_rejected(client):
    resp = await client.get("/api/students")
    assert resp.status_code == 401


# ── Students ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_students_for_master(client):
    resp = await client.get("/api/students", headers=MASTER_COOKIE)
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 4

    resp = await client.get("/api/students", params={"barangay": "brgy-sta-cruz"}, headers=MASTER_COOKIE)
    assert [s["lrn"] for s in resp.json()["data"]] == ["136512140004"]


@pytest.mark.asyncio
async def test_list_students_scoped_admin(client):
    resp = await client.get("/api/students", params={"barangay": "all"}, headers=POBLACION_COOKIE)
    lrns = [s["lrn"] for s in resp.json()["data"]]
    assert lrns == ["136512140001", "136512140002"]


@pytest.mark.asyncio
async def test_list_barangays_scoped_admin(client):
    resp = await client.get("/api/barangays", headers=POBLACION_COOKIE)
    assert [b["_id"] for b in resp.json()["data"]] == ["brgy-poblacion"]


@pytest.mark.asyncio
async def test_get_unknown_student_error_envelope(client):
    resp = await client.get("/api/students/000000000000", headers=MASTER_COOKIE)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Student not found", "field": None}


@pytest.mark.asyncio
async def test_register_student_and_duplicate_lrn(client):
    body = {
        "lrn": "136512140099",
        "name": "Lopez, Ana",
        "lastName": "Lopez",
        "firstName": "Ana",
        "barangayId": "brgy-poblacion",
        "program": "A&E Elementary",
    }
    resp = await client.post("/api/students", json=body, headers=MASTER_COOKIE)
    assert resp.status_code == 201
    assert resp.json()["data"]["lrn"] == "136512140099"

    resp = await client.post("/api/students", json=body, headers=MASTER_COOKIE)
    assert resp.status_code == 409
    assert resp.json()["field"] == "lrn"


@pytest.mark.asyncio
async def test_update_student_keeps_lrn(client):
    resp = await client.patch(
        f"/api/students/{LRN}",
        json={"lrn": "999", "name": "Dela Cruz, Juan"},
        headers=MASTER_COOKIE,
    )
    assert resp.status_code == 400
    assert resp.json()["field"] == "lrn"


@pytest.mark.asyncio
async def test_summary_includes_navigation(client):
    resp = await client.get(
        f"/api/students/{LRN}/summary",
        params={"barangay": "brgy-poblacion"},
        headers=MASTER_COOKIE,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["barangayName"] == "Poblacion"
    assert data["navigation"]["hasPrevious"] is False
    assert data["navigation"]["nextLrn"] == "136512140002"
    literacy = next(m for m in data["modules"] if m["moduleId"] == "mod-lit-01")
    assert literacy["percentage"] == 80.0


# ── Activities ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_add_then_edit_activity(client):
    url = f"/api/students/{LRN}/modules/mod-lit-01/activities"
    activity = {"type": "Quiz", "name": "Quiz 2", "score": 9, "total": 10, "date": "2025-09-01"}

    resp = await client.post(url, json={"activity": activity, "activityIndex": -1}, headers=MASTER_COOKIE)
    assert resp.status_code == 201
    names = [a["name"] for a in resp.json()["data"]["activities"]]
    assert names == ["Reading Comprehension Quiz", "Quiz 2"]

    resp = await client.put(f"{url}/1", json={**activity, "score": 10}, headers=MASTER_COOKIE)
    assert resp.status_code == 200
    assert resp.json()["data"]["activities"][1]["score"] == 10


@pytest.mark.asyncio
async def test_first_activity_creates_record(client):
    url = "/api/students/136512140002/modules/mod-lit-01/activities"
    resp = await client.post(
        url,
        json={"activity": {"type": "Activity", "name": "Essay", "score": 5, "total": 10}},
        headers=MASTER_COOKIE,
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["studentId"] == "136512140002"
    assert len(data["activities"]) == 1


@pytest.mark.asyncio
async def test_edit_out_of_range_activity(client):
    resp = await client.put(
        f"/api/students/{LRN}/modules/mod-lit-01/activities/5",
        json={"name": "X", "score": 1, "total": 1},
        headers=MASTER_COOKIE,
    )
    assert resp.status_code == 400
    assert resp.json()["field"] == "activity_index"


@pytest.mark.asyncio
async def test_delete_only_activity_keeps_empty_record(client):
    resp = await client.delete(
        f"/api/students/{LRN}/modules/mod-lit-01/activities/0", headers=MASTER_COOKIE
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["activities"] == []


# ── Modules ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_modules_by_program(client):
    resp = await client.get("/api/modules", params={"program": "Basic Literacy (BLP)"}, headers=MASTER_COOKIE)
    ids = [m["_id"] for m in resp.json()["data"]]
    assert "mod-blp-01" in ids
    assert "mod-num-01" not in ids


@pytest.mark.asyncio
async def test_scoped_admin_creates_stamped_module(client, api_workspace):
    body = {
        "title": "Barangay Reading Circle",
        "levels": ["A&E Elementary"],
        "predefinedActivities": [{"name": "Read aloud", "type": "participation", "total": 5}],
    }
    resp = await client.post("/api/modules", json=body, headers=POBLACION_COOKIE)
    assert resp.status_code == 201
    module = resp.json()["data"]
    assert module["barangayId"] == "brgy-poblacion"
    assert module["predefinedActivities"][0]["type"] == "Participation"
    assert any(m.id == module["_id"] for m in api_workspace.store.state.modules.data)


@pytest.mark.asyncio
async def test_invalid_module_rejected_with_field(client):
    resp = await client.post("/api/modules", json={"title": " ", "levels": ["A&E Elementary"]}, headers=MASTER_COOKIE)
    assert resp.status_code == 400
    assert resp.json()["field"] == "title"


@pytest.mark.asyncio
async def test_scoped_admin_cannot_touch_other_barangay_module(client):
    created = await client.post(
        "/api/modules",
        json={"title": "Santa Cruz only", "levels": ["All Programs"], "barangayId": "brgy-sta-cruz"},
        headers=MASTER_COOKIE,
    )
    module_id = created.json()["data"]["_id"]

    resp = await client.delete(f"/api/modules/{module_id}", headers=POBLACION_COOKIE)
    assert resp.status_code == 403

    resp = await client.delete(f"/api/modules/{module_id}", headers=MASTER_COOKIE)
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_delete_unknown_module(client):
    resp = await client.delete("/api/modules/nope", headers=MASTER_COOKIE)
    assert resp.status_code == 404
    assert resp.json()["error"] == "Module not found"


@pytest.mark.asyncio
async def test_update_unknown_module(client):
    resp = await client.patch(
        "/api/modules/nope",
        json={"title": "Overwritten", "levels": ["All Programs"]},
        headers=POBLACION_COOKIE,
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Module not found"
