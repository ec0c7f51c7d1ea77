"""Helpers for tests that run against a live Firestore or the emulator."""

from __future__ import annotations

import os
from uuid import uuid4

import pytest

from src.common.config import FirestoreConfig
from src.common.firestore import (
    callback_tokens_collection,
    delete_collection,
    leave_requests_collection,
)

LIVE_TESTS_FLAG = "RUN_LIVE_TESTS"

FIRESTORE_CREDENTIAL_HINTS = (
    "GOOGLE_APPLICATION_CREDENTIALS",
    "GOOGLE_CLOUD_PROJECT",
    "FIRESTORE_EMULATOR_HOST",
)


def require_live_firestore() -> None:
    """Skip the calling test unless live Firestore tests are enabled and reachable."""
    if os.getenv(LIVE_TESTS_FLAG) != "1":
        pytest.skip(f"Set {LIVE_TESTS_FLAG}=1 to enable live integration tests.")
    if not any(os.getenv(hint) for hint in FIRESTORE_CREDENTIAL_HINTS):
        pytest.skip(f"Live Firestore tests need one of: {', '.join(FIRESTORE_CREDENTIAL_HINTS)}.")


def isolated_firestore_config(*, label: str) -> FirestoreConfig:
    """Config whose collection prefix is unique to this test run.

    LIVE_TEST_COLLECTION_PREFIX, when set, namespaces all runs of a CI job.
    """
    run = f"{label}_{uuid4().hex[:6]}_"
    base = os.getenv("LIVE_TEST_COLLECTION_PREFIX", "test").rstrip("_")
    return FirestoreConfig(
        collection_prefix=f"{base}_{run}",
        project_id=os.getenv("GOOGLE_CLOUD_PROJECT") or None,
        database_id=os.getenv("FIRESTORE_DATABASE_ID", "(default)"),
    )


def purge_isolated_collections(client, config: FirestoreConfig) -> int:
    """Delete the request and token collections created under config's prefix."""
    return sum(
        delete_collection(client, name)
        for name in (
            leave_requests_collection(config.collection_prefix),
            callback_tokens_collection(config.collection_prefix),
        )
    )
