from fastapi.testclient import TestClient

from main import app
from services.scheduler_service import scheduler_service


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["uptime"] >= 0
    assert body["services"]["analytics"] == "ready"


def test_lifespan_starts_and_stops_scheduler():
    with TestClient(app) as client:
        assert scheduler_service.running
        job = scheduler_service.scheduler.get_job("reset_daily_analytics")
        assert job is not None
        assert client.get("/health").json()["services"]["scheduler"] == "running"
    assert not scheduler_service.running
