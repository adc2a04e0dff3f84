import json
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from app.core.config import settings
from app.core.logging_middleware import StructuredLoggingMiddleware, should_log
from tests.utils import API, signup

# Bare app for the failure path, without the main app's error handlers
bare_app = FastAPI()
bare_app.add_middleware(StructuredLoggingMiddleware)


@bare_app.get("/error")
async def error_request():
    raise ValueError("planned error")


@pytest.fixture
def mock_logger():
    with patch("app.core.logging_middleware.structured_logger") as mock:
        yield mock


def logged_events(mock_logger):
    return [json.loads(call.args[0]) for call in mock_logger.info.call_args_list]


def test_should_log_rules(monkeypatch):
    monkeypatch.setattr(settings, "LOG_SLOW_REQUEST_MS", 500)
    monkeypatch.setattr(settings, "LOG_SAMPLE_RATE", 0.05)

    assert should_log(500, 1.0)
    assert should_log(200, 600.0)
    with patch("app.core.logging_middleware.random.random", return_value=0.01):
        assert should_log(200, 10.0)
    with patch("app.core.logging_middleware.random.random", return_value=0.10):
        assert not should_log(404, 10.0)


def test_logs_unhandled_error(mock_logger):
    with pytest.raises(ValueError):
        TestClient(bare_app).get("/error")

    (event,) = logged_events(mock_logger)
    assert event["status_code"] == 500
    assert "planned error" in event["error"]
    assert event["user_id"] is None


def test_logs_authenticated_user(client, mock_logger, monkeypatch):
    monkeypatch.setattr(settings, "LOG_SAMPLE_RATE", 1.0)
    user, headers = signup(client, name="Alice", email="alice@example.com")
    mock_logger.reset_mock()

    client.get(f"{API}/auth/me", headers=headers, params={"verbose": "1"})

    (event,) = logged_events(mock_logger)
    assert event["method"] == "GET"
    assert event["path"] == f"{API}/auth/me"
    assert event["status_code"] == 200
    assert event["query_params"] == {"verbose": "1"}
    assert event["user_id"] == user["id"]
    assert event["user_email"] == "alice@example.com"
    assert event["user_name"] == "Alice"


def test_anonymous_request_has_no_user(client, mock_logger, monkeypatch):
    monkeypatch.setattr(settings, "LOG_SAMPLE_RATE", 1.0)
    client.get(f"{API}/recipes/")

    (event,) = logged_events(mock_logger)
    assert event["status_code"] == 200
    assert event["user_id"] is None


def test_unsampled_fast_request_is_skipped(client, mock_logger, monkeypatch):
    monkeypatch.setattr(settings, "LOG_SAMPLE_RATE", 0.0)
    monkeypatch.setattr(settings, "LOG_SLOW_REQUEST_MS", 60_000)
    client.get("/")
    assert not mock_logger.info.called
