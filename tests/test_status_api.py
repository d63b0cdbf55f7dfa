import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from server.routers.BackfillRouter import router as backfill_router
from server.routers.StatusRouter import router as status_router
from services.vector_sync.VectorSyncService import VectorSyncService
from tests.fakes import FakeEmbedClient, FakeStore

API_KEY = "test-key"


@pytest.fixture
def app(helper_config, settings, monkeypatch):
    monkeypatch.setenv("API_SERVER_API_KEY", API_KEY)
    store = FakeStore({"notes": [{"_id": "n1", "type": "note", "title": "Shopping list for the weekend"}]})
    app = FastAPI()
    app.include_router(status_router)
    app.include_router(backfill_router)
    app.state.logging = helper_config.get_logger()
    app.state.helper_config = helper_config
    app.state.backfill_running = False
    app.state.vector_sync = VectorSyncService(helper_config, store, FakeEmbedClient(), None, settings)
    app.state.store = store
    return app


def test_health_is_unhealthy_before_watching(app):
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 503
    assert response.json() == {"healthy": False, "running": False, "watchers": {}}


def test_metrics_require_api_key(app):
    with TestClient(app) as client:
        assert client.get("/metrics").status_code == 401
        assert client.get("/metrics", headers={"X-Api-Key": "wrong"}).status_code == 401
        response = client.get("/metrics", headers={"X-Api-Key": API_KEY})

    assert response.status_code == 200
    assert response.json()["documents_processed"] == 0


def test_backfill_runs_in_background(app):
    with TestClient(app) as client:
        response = client.post("/backfill", json={"collections": ["notes"]}, headers={"X-Api-Key": API_KEY})
        profiles = client.get("/profiles", headers={"X-Api-Key": API_KEY}).json()

    assert response.status_code == 202
    assert response.json()["status"] == "accepted"
    assert app.state.store.updates[0][1] == "n1"
    assert app.state.backfill_running is False
    assert profiles["total"] == 1
    assert profiles["profiles"][0]["text_fields"] == ["title"]


def test_second_backfill_is_rejected_while_running(app):
    app.state.backfill_running = True

    with TestClient(app) as client:
        response = client.post("/backfill", json={}, headers={"X-Api-Key": API_KEY})

    assert response.status_code == 409
