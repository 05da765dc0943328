"""Shared fixtures: an isolated database and upload directory per test."""

import json
import os
from datetime import datetime, timedelta, timezone

# Must be set before the application modules read their settings.
os.environ["ERROR_LOG_FILE"] = ""
os.environ["SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient

from service_marketplace_api.app.core.config import settings
from service_marketplace_api.app.main import create_app


ADDRESS = {
    "street": "Rua das Flores",
    "city": "Curitiba",
    "state": "PR",
    "postalCode": "80000-000",
    "country": "Brazil",
    "number": "42",
}

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def app(tmp_path, upload_dir, monkeypatch):
    monkeypatch.setattr(settings, "database_url", str(tmp_path / "marketplace.db"))
    monkeypatch.setattr(settings, "upload_dir", str(upload_dir))
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def future_date(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def register(client, email: str, password: str = "secret", **extra) -> dict:
    form = {
        "name": email.split("@")[0].title(),
        "email": email,
        "phoneNumber": "+55 41 99999-0000",
        "address": json.dumps(ADDRESS),
        "password": password,
    }
    form.update(extra)
    response = client.post("/users/register", data=form)
    assert response.status_code == 201, response.text
    return response.json()


def create_service(client, creator: int, value: float = 150.0, service_type: str = "plumber", **extra) -> dict:
    form = {
        "name": "Fix kitchen sink",
        "description": "The sink drains very slowly",
        "value": str(value),
        "serviceType": service_type,
        "creator": str(creator),
        "location": json.dumps(ADDRESS),
    }
    form.update(extra)
    response = client.post("/services/create", data=form)
    assert response.status_code == 201, response.text
    return response.json()


def propose(client, service: int, proposer: int, value: float = 120.0, date: str | None = None):
    return client.post(
        "/service-requests/request",
        json={
            "service": service,
            "proposer": proposer,
            "proposedValue": value,
            "proposedDate": date or future_date(),
        },
    )


@pytest.fixture
def users(client):
    """Three registered users: a creator and two prospective providers."""
    return {
        "alice": register(client, "alice@example.com"),
        "bob": register(client, "bob@example.com"),
        "carol": register(client, "carol@example.com"),
    }
