"""Wiring of the workflow engine for the HTTP API.

Collaborators are built lazily on first use (avoids connecting to Firestore at
import time) and cached for the life of the process. Tests replace them with
app.dependency_overrides.
"""

from __future__ import annotations

from typing import Optional

from src.api.settings import get_settings
from src.common.config import LeaveSettings
from src.common.firestore import get_firestore_client
from src.common.logging import get_logger
from src.leave.engine import WorkflowEngine
from src.leave.notifications import HttpEmailNotifier, LoggingNotifier, NotificationPort
from src.leave.repository import FirestoreRequestStore, InMemoryRequestStore
from src.leave.substrate import RetryingSubstrate
from src.leave.tokens import FirestoreCallbackTokens, InMemoryCallbackTokens

logger = get_logger(__name__)

_substrate: Optional[RetryingSubstrate] = None


def build_notifier(settings: LeaveSettings) -> NotificationPort:
    if settings.email.api_key:
        return HttpEmailNotifier(settings.email)
    logger.warning("EMAIL_API_KEY not configured, notifications will only be logged")
    return LoggingNotifier()


def build_engine(settings: LeaveSettings) -> WorkflowEngine:
    """Assemble the engine for the configured storage backend."""
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage, requests will not survive a restart")
        store = InMemoryRequestStore()
        tokens = InMemoryCallbackTokens()
    else:
        client = get_firestore_client(settings.firestore)
        store = FirestoreRequestStore(settings.firestore, client=client)
        tokens = FirestoreCallbackTokens(settings.firestore, client=client)

    return WorkflowEngine(store=store, tokens=tokens, notifier=build_notifier(settings))


def get_substrate() -> RetryingSubstrate:
    """Get or create the substrate singleton."""
    global _substrate
    if _substrate is None:
        settings = get_settings()
        _substrate = RetryingSubstrate(build_engine(settings), settings.delivery)
    return _substrate
