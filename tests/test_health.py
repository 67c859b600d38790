from fastapi.testclient import TestClient

from eventbot.health.server import create_app
from conftest import TODAY


def test_health_reports_event_count(store):
    store.create(title="Picnic", description="", date=TODAY)
    client = TestClient(create_app(store))

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "events": 1}


def test_health_without_store():
    assert TestClient(create_app()).get("/health").json() == {"ok": True}
