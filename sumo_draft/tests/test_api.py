"""
API integration tests.
Uses TestClient to avoid starting a server.
Requires: pip install httpx (for TestClient)
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

try:
    from fastapi.testclient import TestClient
    HAS_HTTPX = True
except (ImportError, RuntimeError):
    HAS_HTTPX = False

# Ensure project root on path
import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

pytestmark = pytest.mark.skipif(not HAS_HTTPX, reason="httpx required for TestClient")

from sumo_draft.api import create_app
from sumo_draft.config import DraftSettings
from sumo_draft.models import Rikishi
from sumo_draft.persistence import RikishiRepository, get_connection, init_db

ADMIN_PASSWORD = "test-admin"

CATALOG = [
    Rikishi(id=1, name="Alpha", ranking_group="Yellow", draft_value=50),
    Rikishi(id=2, name="Bravo", ranking_group="Blue", draft_value=100),
    Rikishi(id=3, name="Charlie", ranking_group="Green", draft_value=5),
    Rikishi(id=4, name="Delta", ranking_group="White", draft_value=3),
    Rikishi(id=5, name="Echo", ranking_group="Green", draft_value=4),
]


@pytest.fixture
def settings(tmp_path):
    return DraftSettings(
        db_path=tmp_path / "test.db",
        catalog_path=None,
        draft_budget=140,
        max_slots=6,
        session_secret="test-secret",
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def client(settings):
    """Use a temporary DB for each test."""
    init_db(settings.db_path, default_budget=settings.draft_budget)
    conn = get_connection(settings.db_path)
    try:
        repo = RikishiRepository()
        for r in CATALOG:
            repo.upsert(conn, r)
    finally:
        conn.close()
    with TestClient(create_app(settings)) as c:
        yield c


def _login(client, name: str) -> dict:
    """Log in and return Bearer headers; cookies are cleared so each caller picks its identity."""
    resp = client.post("/auth/login", json={"sumo_name": name})
    assert resp.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _admin(client) -> dict:
    resp = client.post("/auth/admin", json={"password": ADMIN_PASSWORD})
    assert resp.status_code == 200
    client.cookies.clear()
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def test_health_and_config(client):
    assert client.get("/health").json() == {"status": "ok"}
    rules = client.get("/config").json()
    assert rules["budget"] == 140
    assert rules["max_slots"] == 6
    assert rules["reserved_tier"] == "White"


def test_login_sets_cookie_and_me(client):
    resp = client.post("/auth/login", json={"sumo_name": "Tester"})
    assert resp.status_code == 200
    user = resp.json()["user"]
    assert user["budget"] == 140
    assert "session" in resp.cookies
    me = client.get("/auth/me").json()
    assert me["id"] == user["id"]
    assert me["is_draft_finalized"] is False
    # Same name, same participant
    again = client.post("/auth/login", json={"sumo_name": "Tester"}).json()["user"]
    assert again["id"] == user["id"]


def test_login_blank_name(client):
    resp = client.post("/auth/login", json={"sumo_name": "   "})
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_name"


def test_logout_clears_session(client):
    client.post("/auth/login", json={"sumo_name": "Tester"})
    client.post("/auth/logout")
    assert client.get("/draft/status").status_code == 401


def test_requires_session(client):
    assert client.get("/draft/status").status_code == 401
    assert client.post("/draft/select/1").status_code == 401
    assert client.get("/rikishi", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_rikishi_grouped_with_flags(client):
    h = _login(client, "Tester")
    client.post("/draft/select/3", headers=h)
    client.post("/draft/hater-pick", json={"rikishi_id": 5, "hater_cost": 2}, headers=h)
    data = client.get("/rikishi", headers=h).json()
    assert list(data) == ["Yellow", "Blue", "Green", "White"]
    green = {r["id"]: r for r in data["Green"]}
    assert green[3]["is_selected"] is True
    assert green[5]["is_hater_pick"] is True
    assert client.get("/rikishi/3", headers=h).json()["is_selected"] is True
    assert client.get("/rikishi/99", headers=h).status_code == 404


def test_budget_flow(client):
    h = _login(client, "Tester")
    resp = client.post("/draft/select/1", headers=h)
    assert resp.status_code == 200
    assert resp.json()["total_spent"] == 50
    assert resp.json()["remaining_points"] == 90
    resp = client.post("/draft/select/2", headers=h)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "budget_exceeded"
    assert body["would_spend"] == 150
    assert body["budget"] == 140
    resp = client.delete("/draft/deselect/1", headers=h)
    assert resp.json()["total_spent"] == 0


def test_error_status_codes(client):
    h = _login(client, "Tester")
    assert client.post("/draft/select/99", headers=h).status_code == 404
    client.post("/draft/select/3", headers=h)
    resp = client.post("/draft/select/3", headers=h)
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_selected"
    resp = client.delete("/draft/deselect/4", headers=h)
    assert resp.status_code == 400
    assert resp.json()["error"] == "not_selected"
    resp = client.delete("/draft/hater-pick", headers=h)
    assert resp.json()["error"] == "no_hater_pick"
    resp = client.post("/draft/hater-pick", json={"rikishi_id": 5, "hater_cost": 0}, headers=h)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_cost"


def test_tier_conflict_flow(client):
    h = _login(client, "Tester")
    client.post("/draft/select/4", headers=h)
    resp = client.post("/draft/hater-pick", json={"rikishi_id": 3, "hater_cost": 5}, headers=h)
    assert resp.status_code == 400
    assert resp.json()["error"] == "tier_conflict"
    client.delete("/draft/deselect/4", headers=h)
    resp = client.post("/draft/hater-pick", json={"rikishi_id": 3, "hater_cost": 5}, headers=h)
    assert resp.status_code == 200
    assert resp.json()["hater_pick_cost"] == 5
    status = client.get("/draft/status", headers=h).json()
    assert status["hater_pick"]["rikishi"]["id"] == 3
    assert status["total_spent"] == 5
    assert status["selected_count"] == 1


def test_finalize_flow(client):
    h = _login(client, "Tester")
    resp = client.post("/draft/finalize", headers=h)
    assert resp.status_code == 400
    assert resp.json()["error"] == "empty_draft"
    client.post("/draft/select/3", headers=h)
    resp = client.post("/draft/finalize", headers=h)
    assert resp.status_code == 200
    assert resp.json()["is_draft_finalized"] is True
    resp = client.post("/draft/select/5", headers=h)
    assert resp.status_code == 409
    assert resp.json()["error"] == "already_finalized"
    drafts = client.get("/draft/all-finalized", headers=h).json()["drafts"]
    assert [d["sumo_name"] for d in drafts] == ["Tester"]


def test_admin_login(client):
    assert client.post("/auth/admin", json={"password": "wrong"}).status_code == 401
    h = _admin(client)
    assert client.get("/auth/me", headers=h).json()["is_admin"] is True
    # Admin sessions do not draft
    assert client.post("/draft/select/1", headers=h).status_code == 403


def test_admin_endpoints_require_admin(client):
    h = _login(client, "Tester")
    assert client.put("/rikishi/1/value", json={"draft_value": 5}, headers=h).status_code == 403
    assert client.post("/admin/reset-drafts", headers=h).status_code == 403
    assert client.post("/admin/reset-drafts").status_code == 401


def test_admin_price_update(client):
    h = _login(client, "Tester")
    client.post("/draft/select/3", headers=h)
    admin = _admin(client)
    resp = client.put("/rikishi/3/value", json={"draft_value": 9}, headers=admin)
    assert resp.status_code == 200
    assert client.get("/draft/status", headers=h).json()["total_spent"] == 9
    assert client.put("/rikishi/3/value", json={"draft_value": 21}, headers=admin).status_code == 422
    assert client.put("/rikishi/99/value", json={"draft_value": 5}, headers=admin).status_code == 404


def test_admin_reset(client):
    h = _login(client, "Tester")
    pid = client.get("/auth/me", headers=h).json()["id"]
    client.post("/draft/select/3", headers=h)
    client.post("/draft/finalize", headers=h)
    admin = _admin(client)
    resp = client.post(f"/draft/reset/{pid}", headers=admin)
    assert resp.status_code == 200
    assert resp.json()["is_draft_finalized"] is False
    assert resp.json()["selected_count"] == 0
    assert client.post("/draft/reset/nobody", headers=admin).status_code == 404
    assert client.post("/draft/select/3", headers=h).status_code == 200


def test_admin_reset_all(client):
    a = _login(client, "A")
    b = _login(client, "B")
    client.post("/draft/select/3", headers=a)
    client.post("/draft/select/5", headers=b)
    client.post("/draft/finalize", headers=b)
    admin = _admin(client)
    resp = client.post("/admin/reset-drafts", headers=admin)
    assert resp.json()["participants_reset"] == 2
    assert client.get("/draft/status", headers=a).json()["selected_rikishi"] == []
    assert client.get("/draft/all-finalized", headers=a).json()["drafts"] == []


def test_admin_browses_catalog_then_updates_price(client):
    admin = _admin(client)
    resp = client.get("/rikishi", headers=admin)
    assert resp.status_code == 200
    green = resp.json()["Green"]
    assert all(r["is_selected"] is False and r["is_hater_pick"] is False for r in green)
    target = green[0]["id"]
    one = client.get(f"/rikishi/{target}", headers=admin).json()
    assert one["is_selected"] is False
    resp = client.put(f"/rikishi/{target}/value", json={"draft_value": 7}, headers=admin)
    assert resp.status_code == 200
    assert client.get(f"/rikishi/{target}", headers=admin).json()["draft_value"] == 7


def test_create_app_leaves_root_logging_alone(settings):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    create_app(settings)
    assert root.handlers == handlers
    assert root.level == level
