"""Configuration for the leave approval service, read from the environment.

Every setting has a default except the secrets (JWT_SECRET, EMAIL_API_KEY),
which stay None until provided. Invalid values raise ConfigError.

Exports:
    - ConfigError
    - FirestoreConfig, EmailConfig, AuthConfig, DeliveryConfig, LeaveSettings
    - load_firestore_config, load_email_config, load_auth_config,
      load_delivery_config, load_leave_settings
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

N = TypeVar("N", int, float)


class ConfigError(Exception):
    """Raised when a configuration value is invalid."""


def _optional_env(key: str) -> Optional[str]:
    value = os.getenv(key, "").strip()
    return value or None


def _env(key: str, default: str) -> str:
    return _optional_env(key) or default


def _number_env(key: str, default: N, cast: Callable[[str], N]) -> N:
    raw = _optional_env(key)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid {cast.__name__} for {key}: {raw}") from exc


STORAGE_BACKENDS = ("firestore", "memory")

DEFAULT_COLLECTION_PREFIX = "leave_"
DEFAULT_EMAIL_API_URL = "https://api.resend.com/emails"
DEFAULT_EMAIL_SENDER = "leave-approvals@example.com"
DEFAULT_EMAIL_TIMEOUT_SECONDS = 5.0
DEFAULT_JWT_ALGORITHM = "HS256"
DEFAULT_JWT_IDENTITY_CLAIM = "email"
DEFAULT_DELIVERY_MAX_ATTEMPTS = 3
DEFAULT_DELIVERY_INITIAL_BACKOFF_SECONDS = 1.0
DEFAULT_DELIVERY_MAX_BACKOFF_SECONDS = 10.0


@dataclass
class FirestoreConfig:
    """Firestore connection configuration for the request and token collections."""

    collection_prefix: str
    project_id: Optional[str] = None
    database_id: str = "(default)"


@dataclass
class EmailConfig:
    """Transactional email API settings.

    When api_key is None the service falls back to logging messages instead
    of sending them, which keeps local development usable without credentials.
    """

    api_url: str
    sender: str
    timeout_seconds: float
    api_key: Optional[str] = None


@dataclass
class AuthConfig:
    """Bearer token verification settings for the gatekeeper."""

    jwt_secret: Optional[str]
    algorithm: str
    identity_claim: str


@dataclass
class DeliveryConfig:
    """Retry policy used by the substrate when delivering notifications."""

    max_attempts: int
    initial_backoff_seconds: float
    max_backoff_seconds: float


@dataclass
class LeaveSettings:
    """Combined settings for the leave approval service."""

    storage_backend: str
    firestore: FirestoreConfig
    email: EmailConfig
    auth: AuthConfig
    delivery: DeliveryConfig


def load_firestore_config() -> FirestoreConfig:
    """Load Firestore configuration from environment variables."""
    return FirestoreConfig(
        collection_prefix=_env("FIRESTORE_COLLECTION_PREFIX", DEFAULT_COLLECTION_PREFIX),
        project_id=_optional_env("GOOGLE_CLOUD_PROJECT"),
        database_id=_env("FIRESTORE_DATABASE_ID", "(default)"),
    )


def load_email_config() -> EmailConfig:
    """Load email API configuration from environment variables."""
    return EmailConfig(
        api_url=_env("EMAIL_API_URL", DEFAULT_EMAIL_API_URL),
        sender=_env("EMAIL_SENDER", DEFAULT_EMAIL_SENDER),
        timeout_seconds=_number_env("EMAIL_TIMEOUT_SECONDS", DEFAULT_EMAIL_TIMEOUT_SECONDS, float),
        api_key=_optional_env("EMAIL_API_KEY"),
    )


def load_auth_config() -> AuthConfig:
    """Load gatekeeper configuration from environment variables.

    Note:
        jwt_secret is optional here so the service can start without it;
        the gatekeeper rejects every authenticated call until it is set.
    """
    return AuthConfig(
        jwt_secret=_optional_env("JWT_SECRET"),
        algorithm=_env("JWT_ALGORITHM", DEFAULT_JWT_ALGORITHM),
        identity_claim=_env("JWT_IDENTITY_CLAIM", DEFAULT_JWT_IDENTITY_CLAIM),
    )


def load_delivery_config() -> DeliveryConfig:
    """Load substrate retry configuration from environment variables."""
    max_attempts = _number_env("DELIVERY_MAX_ATTEMPTS", DEFAULT_DELIVERY_MAX_ATTEMPTS, int)
    if max_attempts < 1:
        raise ConfigError(f"DELIVERY_MAX_ATTEMPTS must be at least 1, got {max_attempts}")
    return DeliveryConfig(
        max_attempts=max_attempts,
        initial_backoff_seconds=_number_env(
            "DELIVERY_INITIAL_BACKOFF_SECONDS", DEFAULT_DELIVERY_INITIAL_BACKOFF_SECONDS, float
        ),
        max_backoff_seconds=_number_env(
            "DELIVERY_MAX_BACKOFF_SECONDS", DEFAULT_DELIVERY_MAX_BACKOFF_SECONDS, float
        ),
    )


def load_leave_settings() -> LeaveSettings:
    """Load the full service configuration from environment variables.

    Returns:
        LeaveSettings with storage, email, auth and delivery settings.

    Raises:
        ConfigError: If a variable is invalid or STORAGE_BACKEND is unknown.
    """
    backend = _env("STORAGE_BACKEND", "firestore").lower()
    if backend not in STORAGE_BACKENDS:
        raise ConfigError(
            f"Invalid STORAGE_BACKEND: {backend} (expected one of {', '.join(STORAGE_BACKENDS)})"
        )

    return LeaveSettings(
        storage_backend=backend,
        firestore=load_firestore_config(),
        email=load_email_config(),
        auth=load_auth_config(),
        delivery=load_delivery_config(),
    )
