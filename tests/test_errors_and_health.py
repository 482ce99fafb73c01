"""Tests for error codes and the health endpoint."""

import pytest
from fastapi.testclient import TestClient

from relaychat.api.app import create_app
from relaychat.domain.errors import ChatError, message_for


@pytest.mark.parametrize(
    "code,status",
    [
        ("bad_request:api", 400),
        ("unauthorized:chat", 401),
        ("forbidden:chat", 403),
        ("not_found:stream", 404),
        ("rate_limit:chat", 429),
        ("offline:chat", 503),
    ],
)
def test_status_follows_error_type(code, status):
    error = ChatError(code)

    assert error.status_code == status
    assert error.to_dict() == {
        "code": code,
        "message": message_for(code),
        "cause": None,
    }


def test_invalid_code_is_rejected():
    with pytest.raises(ValueError):
        ChatError("teapot:chat")
    with pytest.raises(ValueError):
        ChatError("bad_request")


def test_fallback_messages():
    assert "database" in message_for("bad_request:database")
    assert message_for("not_found:document").startswith("Something went wrong")


def test_health_reports_resumability_and_config(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = TestClient(create_app())

    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["service"] == "relaychat-server"
    assert body["resumable_streams"] is False
    assert body["config_valid"] is False
    assert body["config_errors"]
    assert response.headers["x-request-id"]


def test_health_with_buffer_backend(monkeypatch, tmp_path):
    monkeypatch.setenv("STREAM_BUFFER_URL", f"sqlite:///{tmp_path / 'buf.sqlite'}")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    client = TestClient(create_app())

    body = client.get("/health").json()

    assert body["resumable_streams"] is True
    assert body["config_valid"] is True
    assert body["config_errors"] is None
