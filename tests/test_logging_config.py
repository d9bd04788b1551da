"""Logging setup and secret redaction."""

import logging

import pytest
import structlog

from promptarena.logging_config import (
    REDACTED,
    bind_request_context,
    clear_request_context,
    configure_logging,
    redact_secrets,
)


def test_secret_keys_are_redacted():
    event = {"event": "saved key", "api_key": "sk-live-123", "Authorization": "Bearer x", "provider": "openai"}
    redacted = redact_secrets(None, "info", event)
    assert redacted["api_key"] == REDACTED
    assert redacted["Authorization"] == REDACTED
    assert redacted["provider"] == "openai"


def test_missing_secrets_stay_none():
    assert redact_secrets(None, "info", {"token": None})["token"] is None


def test_request_context_binding():
    clear_request_context()
    bind_request_context(trace_id="trc_1", user_id=None, org_id="org_1")
    assert structlog.contextvars.get_contextvars() == {"trace_id": "trc_1", "org_id": "org_1"}
    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.parametrize("level,expected", [("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("bogus", logging.INFO)])
def test_configure_logging_sets_root_level(level, expected):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(log_level=level, json_output=True)
        assert root.level == expected
        assert len(root.handlers) == 1
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
