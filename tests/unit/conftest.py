"""In-memory collaborators shared by the unit tests."""

import pytest

from fakes import FlakyRequestStore, RecordingNotifier
from src.common.config import DeliveryConfig
from src.leave.engine import WorkflowEngine
from src.leave.models import LeaveDetails
from src.leave.repository import InMemoryRequestStore
from src.leave.substrate import RetryingSubstrate
from src.leave.tokens import InMemoryCallbackTokens


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def tokens():
    return InMemoryCallbackTokens()


@pytest.fixture
def notifier(store):
    return RecordingNotifier(store)


@pytest.fixture
def engine(store, tokens, notifier):
    return WorkflowEngine(store=store, tokens=tokens, notifier=notifier)


@pytest.fixture
def flaky_engine(tokens):
    """Engine whose store can be told to fail status commits (store.fail_updates)."""
    store = FlakyRequestStore(fail_updates=0)
    return WorkflowEngine(store=store, tokens=tokens, notifier=RecordingNotifier(store))


@pytest.fixture
def substrate(engine):
    return RetryingSubstrate(
        engine,
        DeliveryConfig(max_attempts=3, initial_backoff_seconds=0, max_backoff_seconds=0),
    )


@pytest.fixture
def flaky_substrate(flaky_engine):
    return RetryingSubstrate(
        flaky_engine,
        DeliveryConfig(max_attempts=3, initial_backoff_seconds=0, max_backoff_seconds=0),
    )


@pytest.fixture
def vacation():
    return LeaveDetails(leave_type="Vacation", start_date="2025-04-01", end_date="2025-04-05")
