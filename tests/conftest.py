from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

import database
from config import settings
from tests.helpers import RecordingDispatcher


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(settings, "MIN_ORDER_QUANTITY", 3)
    monkeypatch.setattr(settings, "MIN_ORDER_AMOUNT", 30.0)
    monkeypatch.setattr(settings, "BONUS_PER_REFERRAL", 100.0)
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    monkeypatch.setattr(settings, "ADMIN_TOKEN", "admin-secret")
    monkeypatch.setattr(settings, "NOTIFICATION_RETRY_DELAY_SECONDS", 0.0)
    return settings


@pytest.fixture
def db(monkeypatch):
    mock_db = AsyncMongoMockClient()["storefront_test"]
    monkeypatch.setattr(database, "_db", mock_db)
    return mock_db


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def client(db, dispatcher):
    from main import app, get_dispatcher

    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
