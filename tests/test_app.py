from fastapi.testclient import TestClient

from fieldops.main import app


def test_lifespan_runs_and_health_answers(test_engine):
    with TestClient(app) as client:
        resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_request_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"


def test_request_id_generated_when_missing(client):
    resp = client.get("/health")
    assert len(resp.headers["X-Request-ID"]) == 32


def test_unknown_route_uses_error_body(client):
    resp = client.get("/tidak-ada")
    assert resp.status_code == 404
    assert "error" in resp.json()
