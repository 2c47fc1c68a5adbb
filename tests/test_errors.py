import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError

from conftest import API
from routes.config import settings
from routes.errors import NotFound, register_exception_handlers


class Payload(BaseModel):
    count: int = Field(ge=1)


@pytest.fixture
def error_client():
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    @app.get("/missing")
    async def missing():
        raise NotFound("Widget not found")

    @app.get("/conflict")
    async def conflict():
        raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    @app.post("/payload")
    async def payload(data: Payload):
        return {"count": data.count}

    return TestClient(app, raise_server_exceptions=False)


def test_app_error_envelope(error_client):
    response = error_client.get("/missing")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Widget not found"}


def test_unknown_route_uses_envelope(error_client):
    response = error_client.get("/nowhere")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found"}


def test_validation_envelope(error_client):
    response = error_client.post("/payload", json={"count": 0})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert body["errors"][0]["field"] == "count"


def test_integrity_error_envelope(error_client):
    response = error_client.get("/conflict")
    assert response.status_code == 400
    assert response.json()["error"] == "Duplicate field value. Please use another value."


def test_unhandled_error_in_development(error_client, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")

    response = error_client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "kaboom", "type": "RuntimeError"}


def test_unhandled_error_in_production_hides_details(error_client, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")

    response = error_client.get("/boom")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Server Error"}


def test_health_and_index(client):
    health = client.get(f"{API}/health")
    assert health.status_code == 200
    assert health.json()["success"] is True

    index = client.get(f"{API}/")
    assert index.json()["endpoints"]["mood"] == f"{API}/mood"
