"""Tests for API routes."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.helpers import HASH_A, HASH_B, magnet
from torrentdesk.api.routes import router
from torrentdesk.main import app as main_app
from torrentdesk.session.coordinator import SessionCoordinator


@pytest.fixture
def client(engine):
    app = FastAPI()
    app.include_router(router)
    app.state.coordinator = SessionCoordinator(engine, tick_interval=2.0)
    return TestClient(app)


def test_root():
    """Test root endpoint."""
    response = TestClient(main_app).get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "torrentdesk"
    assert data["version"] == "1.0.0"


def test_health_without_session():
    """Test health check endpoint."""
    response = TestClient(main_app).get("/health")
    assert response.status_code == 200
    assert response.json()["session"] == "stopped"


def test_torrents_without_session():
    app = FastAPI()
    app.include_router(router)
    response = TestClient(app).get("/api/torrents")
    assert response.status_code == 503


def test_add_and_list(client):
    response = client.post("/api/torrents", json={"uri": magnet(HASH_A, "Ubuntu")})
    assert response.status_code == 201
    assert response.json() == {"identity": HASH_A}

    client.post("/api/torrents", json={"uri": magnet(HASH_B)})

    data = client.get("/api/torrents").json()
    assert data["revision"] == 2
    assert [row["identity"] for row in data["rows"]] == [HASH_B, HASH_A]
    assert data["rows"][1]["name"] == "Ubuntu"
    assert data["rows"][1]["status"] == "starting"
    assert data["limits"] == {"upload": None, "download": None}


def test_add_invalid_magnet(client):
    response = client.post("/api/torrents", json={"uri": "http://example.com"})
    assert response.status_code == 400
    assert client.get("/api/torrents").json()["rows"] == []


def test_add_rejected(client, engine):
    engine.reject = True
    response = client.post("/api/torrents", json={"uri": magnet(HASH_A)})
    assert response.status_code == 502


def test_toggle(client):
    client.post("/api/torrents", json={"uri": magnet(HASH_A)})

    response = client.post(f"/api/torrents/{HASH_A}/toggle")
    assert response.status_code == 200
    assert response.json() == {"identity": HASH_A, "desired": "paused"}

    assert client.post(f"/api/torrents/{HASH_B}/toggle").status_code == 404


def test_details(client, engine):
    client.post("/api/torrents", json={"uri": magnet(HASH_A)})

    data = client.get(f"/api/torrents/{HASH_A}").json()
    assert data["fetching"] is True

    engine.resolve(HASH_A)
    data = client.get(f"/api/torrents/{HASH_A}").json()
    assert data["fetching"] is False
    assert data["pieces"] == 4

    assert client.get(f"/api/torrents/{HASH_B}").status_code == 404


def test_delete(client, engine):
    client.post("/api/torrents", json={"uri": magnet(HASH_A)})

    assert client.delete(f"/api/torrents/{HASH_A}").status_code == 204
    assert ("drop", HASH_A) in engine.calls
    assert client.delete(f"/api/torrents/{HASH_A}").status_code == 404


def test_limits(client, engine):
    response = client.put("/api/limits/download", json={"value": "100"})
    assert response.status_code == 200
    assert response.json() == {"upload": None, "download": 102400}
    assert engine.download_limit == 102400

    response = client.put("/api/limits/upload", json={"value": "0"})
    assert response.json()["upload"] is None


@pytest.mark.parametrize("value", ["abc", "-5", ""])
def test_invalid_limits(client, engine, value):
    """Test bad rates are rejected without touching the limiter."""
    response = client.put("/api/limits/download", json={"value": value})
    assert response.status_code == 400
    assert engine.download_limit is None
