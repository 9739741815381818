import pytest
from fastapi.testclient import TestClient

from database import DatabaseStatus

DATA_ENDPOINTS = [
    "/api/votes/totals",
    "/api/bets/totals",
    "/api/votes/recent",
    "/api/bets/recent?limit=5",
    "/api/users/alice",
]


def test_health_reports_ok(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "db": {"status": "ok", "error": None}}


def test_health_before_connect(offline_client):
    res = offline_client.get("/api/health")
    assert res.status_code == 200
    assert res.json() == {"ok": True, "db": {"status": "init", "error": None}}


@pytest.mark.parametrize("path", DATA_ENDPOINTS)
def test_data_endpoints_gated(failing_client, path):
    res = failing_client.get(path)
    assert res.status_code == 503
    assert res.json() == {"status": "error", "error": "connection refused"}


def test_health_while_failing(failing_client):
    res = failing_client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["db"] == {"status": "error", "error": "connection refused"}


def test_writes_gated_while_connecting(offline_client):
    database = offline_client.app.state.database
    database.status = DatabaseStatus(status="connecting")
    res = offline_client.post("/api/votes", json={"voterName": "alice", "votedFor": "player1"})
    assert res.status_code == 503
    assert res.json()["status"] == "connecting"
    res = offline_client.post("/api/bets", json={"betterName": "alice", "betOn": "player1", "amount": 1})
    assert res.status_code == 503


def test_unexpected_error_is_generic(client, database, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(database, "get_documents", boom)
    res = TestClient(client.app, raise_server_exceptions=False).get("/api/votes/recent")
    assert res.status_code == 500
    assert res.json() == {"error": "Server error"}


def test_unknown_route_uses_error_body(client):
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.json() == {"error": "Not Found"}
