"""Tests for the promptarena-server entry point and settings."""

import os

import pytest
import uvicorn

from promptarena import server_cli
from promptarena.config import Settings, settings


@pytest.fixture
def uvicorn_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.delenv("PROMPTARENA_LOCAL_MODE", raising=False)
    monkeypatch.delenv("PROMPTARENA_LOG_LEVEL", raising=False)
    # main() updates the live settings; restore them afterwards
    monkeypatch.setattr(settings, "local_mode", settings.local_mode)
    monkeypatch.setattr(settings, "log_level", settings.log_level)
    yield calls
    os.environ.pop("PROMPTARENA_LOCAL_MODE", None)
    os.environ.pop("PROMPTARENA_LOG_LEVEL", None)


def test_defaults(uvicorn_calls):
    server_cli.main([])

    assert uvicorn_calls == [
        (
            "promptarena.main:app",
            {"host": settings.host, "port": settings.port, "reload": False, "log_level": "info"},
        )
    ]
    assert "PROMPTARENA_LOCAL_MODE" not in os.environ


def test_local_mode_port_and_log_level(uvicorn_calls):
    server_cli.main(["--local", "--port", "9000", "--host", "127.0.0.1", "--reload", "--log-level", "debug"])

    assert uvicorn_calls[0][1] == {"host": "127.0.0.1", "port": 9000, "reload": True, "log_level": "debug"}
    assert os.environ["PROMPTARENA_LOCAL_MODE"] == "1"
    assert os.environ["PROMPTARENA_LOG_LEVEL"] == "debug"
    assert settings.local_mode is True
    assert settings.effective_database_url.startswith("sqlite+aiosqlite://")


def test_unknown_log_level_rejected(uvicorn_calls):
    with pytest.raises(SystemExit):
        server_cli.main(["--log-level", "chatty"])
    assert uvicorn_calls == []


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("PROMPTARENA_LOCAL_MODE", "1")
    monkeypatch.setenv("PROMPTARENA_INVITE_FLOW_ENABLED", "false")
    monkeypatch.setenv("PROMPTARENA_LLM_MAX_RETRIES", "3")

    configured = Settings(_env_file=None)

    assert configured.effective_database_url.startswith("sqlite+aiosqlite://")
    assert configured.invite_flow_enabled is False
    assert configured.llm_max_retries == 3
    assert configured.json_logs is False


def test_postgres_and_json_logs_by_default(monkeypatch):
    monkeypatch.delenv("PROMPTARENA_LOCAL_MODE", raising=False)
    monkeypatch.delenv("PROMPTARENA_DATABASE_URL", raising=False)
    monkeypatch.delenv("PROMPTARENA_LOG_JSON", raising=False)
    configured = Settings(_env_file=None)
    assert configured.effective_database_url.startswith("postgresql+asyncpg://")
    assert configured.json_logs is True


def test_negative_retries_rejected(monkeypatch):
    monkeypatch.setenv("PROMPTARENA_LLM_MAX_RETRIES", "-1")
    with pytest.raises(ValueError):
        Settings(_env_file=None)
