"""Unit tests for environment configuration, JSON logging and the gatekeeper."""

import json
import logging
import os
from datetime import timedelta

import pytest

from src.api.auth import decode_identity, issue_identity_token
from src.common.config import (
    AuthConfig,
    ConfigError,
    load_delivery_config,
    load_email_config,
    load_leave_settings,
)
from src.common.env import load_env
from src.common.logging import MASK, JsonFormatter
from src.leave.errors import UnauthorizedError

CONFIG_VARS = (
    "STORAGE_BACKEND",
    "EMAIL_API_KEY",
    "EMAIL_API_URL",
    "EMAIL_TIMEOUT_SECONDS",
    "DELIVERY_MAX_ATTEMPTS",
    "DELIVERY_INITIAL_BACKOFF_SECONDS",
    "FIRESTORE_COLLECTION_PREFIX",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in CONFIG_VARS:
        monkeypatch.delenv(var, raising=False)


# =============================================================================
# Configuration
# =============================================================================


def test_defaults():
    settings = load_leave_settings()

    assert settings.storage_backend == "firestore"
    assert settings.firestore.collection_prefix == "leave_"
    assert settings.email.api_url == "https://api.resend.com/emails"
    assert settings.email.api_key is None
    assert settings.delivery.max_attempts == 3
    assert settings.delivery.initial_backoff_seconds == 1.0


def test_storage_backend_is_case_insensitive(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "Memory")
    assert load_leave_settings().storage_backend == "memory"


def test_unknown_storage_backend(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
    with pytest.raises(ConfigError, match="STORAGE_BACKEND"):
        load_leave_settings()


def test_blank_secret_is_treated_as_unset(monkeypatch):
    monkeypatch.setenv("EMAIL_API_KEY", "   ")
    assert load_email_config().api_key is None


def test_invalid_numbers(monkeypatch):
    monkeypatch.setenv("EMAIL_TIMEOUT_SECONDS", "soon")
    with pytest.raises(ConfigError, match="EMAIL_TIMEOUT_SECONDS"):
        load_email_config()


@pytest.mark.parametrize("value", ["0", "-2"])
def test_delivery_needs_at_least_one_attempt(monkeypatch, value):
    monkeypatch.setenv("DELIVERY_MAX_ATTEMPTS", value)
    with pytest.raises(ConfigError):
        load_delivery_config()


def test_load_env_reads_file_without_overriding_shell(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("FIRESTORE_COLLECTION_PREFIX=fromfile_\nDELIVERY_MAX_ATTEMPTS=7\n")
    monkeypatch.setenv("DELIVERY_MAX_ATTEMPTS", "2")

    try:
        assert load_env(str(env_file)) is True

        assert load_leave_settings().firestore.collection_prefix == "fromfile_"
        assert load_delivery_config().max_attempts == 2
    finally:
        os.environ.pop("FIRESTORE_COLLECTION_PREFIX", None)


def test_load_env_missing_file(tmp_path):
    assert load_env(str(tmp_path / "absent.env")) is False


# =============================================================================
# Logging
# =============================================================================


def _render(**extra):
    record = logging.LogRecord("leave.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(JsonFormatter().format(record))


def test_json_formatter_includes_extra_fields():
    payload = _render(request_id="LEAVE-1-abcdef01", to_state="RESOLVED")

    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "leave.test"
    assert payload["request_id"] == "LEAVE-1-abcdef01"
    assert payload["to_state"] == "RESOLVED"
    assert "pathname" not in payload


def test_json_formatter_masks_secrets_and_drops_none():
    payload = _render(token="s3cret", api_key="re_live", request_id=None)

    assert payload["token"] == MASK
    assert payload["api_key"] == MASK
    assert "request_id" not in payload


# =============================================================================
# Gatekeeper
# =============================================================================


AUTH = AuthConfig(jwt_secret="test-secret", algorithm="HS256", identity_claim="email")


def test_identity_round_trip():
    token = issue_identity_token("alice@example.com", AUTH)
    assert decode_identity(token, AUTH) == "alice@example.com"


def test_expired_token_is_rejected():
    token = issue_identity_token("alice@example.com", AUTH, expires_delta=timedelta(seconds=-5))
    with pytest.raises(UnauthorizedError):
        decode_identity(token, AUTH)


def test_unconfigured_secret_rejects_everything():
    token = issue_identity_token("alice@example.com", AUTH)
    with pytest.raises(UnauthorizedError):
        decode_identity(token, AuthConfig(jwt_secret=None, algorithm="HS256", identity_claim="email"))
