"""
HTTP surface tests against an in-memory engine.
"""

import pytest
from fastapi.testclient import TestClient

from api.main import app
from api.routes import get_engine

from conftest import NEGATIVE, POSITIVE, WORKSPACE

BASE = "/api/v1"


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSystem:
    def test_health(self, client):
        resp = client.get(f"{BASE}/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"


class TestTrendRoutes:
    def test_detect_then_list(self, client, mention, seed):
        seed(mention.many(40, "#launch", 5, 23 * 60))
        seed(mention.many(5, "#launch", 25 * 60, 20 * 60))

        detected = client.post(f"{BASE}/workspaces/{WORKSPACE}/trends/detect", json={}).json()
        assert detected["summary"]["viral"] == 1

        listed = client.get(f"{BASE}/workspaces/{WORKSPACE}/trends", params={"status": "viral"}).json()
        assert listed["total"] == 1
        assert listed["trends"][0]["term"] == "#launch"

    def test_unknown_sort_field_is_422(self, client):
        resp = client.get(f"{BASE}/workspaces/{WORKSPACE}/trends", params={"sort_by": "password"})
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "invalid_config"

    def test_hashtag_without_mentions(self, client):
        resp = client.post(f"{BASE}/workspaces/{WORKSPACE}/trends/hashtags", json={"hashtag": "#quiet"})
        assert resp.status_code == 200
        assert resp.json() == {"trend": None}


class TestCrisisRoutes:
    def test_monitor_rejects_short_window(self, client):
        resp = client.post(f"{BASE}/workspaces/{WORKSPACE}/crisis/monitor", json={"time_window": 4})
        assert resp.status_code == 422

    def test_monitor_detects_crisis(self, client, mention, seed):
        seed(mention.many(30, "outage everywhere #down", 5, 50, **NEGATIVE))
        seed(mention.many(5, "all good", 70, 40, **POSITIVE))

        body = client.post(f"{BASE}/workspaces/{WORKSPACE}/crisis/monitor", json={}).json()

        assert body["crisis_detected"] is True
        assert body["crisis"]["severity"] == "critical"
        crisis_id = body["crisis"]["id"]
        assert client.get(f"{BASE}/crises/{crisis_id}").json()["status"] == "detected"

    def test_unknown_crisis_is_404(self, client):
        resp = client.get(f"{BASE}/crises/does-not-exist")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "crisis_not_found"

    def test_post_mortem_before_resolution_is_409(self, client, make_crisis):
        crisis = make_crisis()
        resp = client.post(f"{BASE}/crises/{crisis.id}/post-mortem", json={
            "root_cause": "bad deploy", "response_effectiveness": 70, "created_by": "lead",
        })
        assert resp.status_code == 409

    def test_lifecycle_flow(self, client, make_crisis):
        crisis = make_crisis()
        url = f"{BASE}/crises/{crisis.id}"

        assert client.post(f"{url}/status", json={"status": "acknowledged", "user_id": "alice"}).status_code == 200
        assert client.post(f"{url}/responses", json={"user_id": "bob", "action": "replied"}).status_code == 200
        assert client.post(f"{url}/assign", json={"user_ids": ["bob"]}).status_code == 200
        alerts = client.post(f"{url}/alerts", json={"channels": ["email"], "recipients": ["ops@example.com"]})
        assert alerts.json()["success"] is True
        assert client.post(f"{url}/status", json={"status": "resolved"}).status_code == 200

        # terminal state
        assert client.post(f"{url}/status", json={"status": "responding"}).status_code == 409

        body = client.post(f"{url}/post-mortem", json={
            "root_cause": "bad deploy", "response_effectiveness": 70, "created_by": "lead",
        }).json()
        assert body["post_mortem"]["root_cause"] == "bad deploy"
        assert body["team_members"] == ["bob"]

        history = client.get(f"{BASE}/workspaces/{WORKSPACE}/crisis/history").json()
        assert history["total"] == 1
        assert history["has_more"] is False

    def test_alerts_require_a_channel(self, client, make_crisis):
        crisis = make_crisis()
        resp = client.post(f"{BASE}/crises/{crisis.id}/alerts", json={"channels": []})
        assert resp.status_code == 422

    def test_dashboard(self, client, make_crisis):
        make_crisis()
        body = client.get(f"{BASE}/workspaces/{WORKSPACE}/crisis/dashboard").json()
        assert body["statistics"]["total_crises"] == 1
        assert len(body["active_crises"]) == 1
