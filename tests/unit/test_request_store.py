"""Unit tests for the in-memory request store and the record model."""

import re
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.leave.errors import (
    DuplicateKeyError,
    InvalidStatusTransitionError,
    RequestNotFoundError,
)
from src.leave.models import (
    LeaveDetails,
    LeaveRequest,
    LeaveStatus,
    WorkflowState,
    decision_to_status,
    generate_request_id,
)
from src.leave.repository import InMemoryRequestStore


def _record(request_id="LEAVE-1735689600000-0a1b2c3d", **overrides):
    data = {
        "request_id": request_id,
        "requester_address": "alice@example.com",
        "approver_address": "bob@example.com",
        "leave_details": LeaveDetails(
            leave_type="Vacation",
            start_date="2025-04-01",
            end_date="2025-04-05",
            reason="Family trip",
        ),
    }
    data.update(overrides)
    return LeaveRequest(**data)


# =============================================================================
# Model
# =============================================================================


def test_generate_request_id_format():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    request_id = generate_request_id(now)

    assert re.match(r"^LEAVE-\d{13}-[0-9a-f]{8}$", request_id)
    assert request_id.startswith("LEAVE-1735689600000-")


def test_generated_request_ids_are_unique_within_a_millisecond():
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert len({generate_request_id(now) for _ in range(200)}) == 200


def test_decision_to_status_is_exact_match():
    assert decision_to_status("approve") == LeaveStatus.APPROVED
    assert decision_to_status("reject") == LeaveStatus.REJECTED
    assert decision_to_status("Approve") == LeaveStatus.REJECTED
    assert decision_to_status("") == LeaveStatus.REJECTED


def test_record_document_shape():
    record = _record()

    data = record.to_dict()

    assert data["requestId"] == record.request_id
    assert data["status"] == "PENDING"
    assert data["leaveDetails"] == {
        "leaveType": "Vacation",
        "startDate": "2025-04-01",
        "endDate": "2025-04-05",
        "reason": "Family trip",
    }
    assert data["askSentAt"] is None
    assert data["decidedAt"] is None
    assert LeaveRequest.from_dict(data) == record


def test_from_dict_defaults_missing_reason():
    data = _record().to_dict()
    data["leaveDetails"].pop("reason")

    assert LeaveRequest.from_dict(data).leave_details.reason == "Not provided"


def test_workflow_state_is_derived_from_stored_fields():
    now = datetime.now(timezone.utc)

    assert _record().workflow_state == WorkflowState.CREATED
    assert _record(ask_sent_at=now).workflow_state == WorkflowState.AWAITING_DECISION
    assert _record(ask_sent_at=now, status=LeaveStatus.REJECTED).workflow_state == WorkflowState.RESOLVED


def test_leave_details_are_immutable():
    details = _record().leave_details
    with pytest.raises(PydanticValidationError):
        details.reason = "changed"


# =============================================================================
# Store
# =============================================================================


def test_put_then_get():
    store = InMemoryRequestStore()
    record = _record()

    store.put(record)

    assert store.get(record.request_id) == record
    assert len(store) == 1


def test_put_never_overwrites():
    store = InMemoryRequestStore()
    store.put(_record())

    with pytest.raises(DuplicateKeyError):
        store.put(_record(approver_address="mallory@example.com"))

    assert store.get("LEAVE-1735689600000-0a1b2c3d").approver_address == "bob@example.com"


def test_get_unknown_raises_not_found():
    with pytest.raises(RequestNotFoundError) as exc_info:
        InMemoryRequestStore().get("LEAVE-0-00000000")
    assert exc_info.value.request_id == "LEAVE-0-00000000"


def test_update_status_from_pending_sets_decided_at():
    store = InMemoryRequestStore()
    store.put(_record())

    updated = store.update_status("LEAVE-1735689600000-0a1b2c3d", LeaveStatus.APPROVED)

    assert updated.status == LeaveStatus.APPROVED
    assert updated.decided_at is not None
    assert store.get(updated.request_id).status == LeaveStatus.APPROVED


def test_update_status_twice_is_refused():
    store = InMemoryRequestStore()
    store.put(_record())
    store.update_status("LEAVE-1735689600000-0a1b2c3d", LeaveStatus.REJECTED)

    with pytest.raises(InvalidStatusTransitionError) as exc_info:
        store.update_status("LEAVE-1735689600000-0a1b2c3d", LeaveStatus.APPROVED)

    assert exc_info.value.current_status == "REJECTED"
    assert store.get("LEAVE-1735689600000-0a1b2c3d").status == LeaveStatus.REJECTED


def test_update_status_back_to_pending_is_refused():
    store = InMemoryRequestStore()
    store.put(_record())

    with pytest.raises(InvalidStatusTransitionError):
        store.update_status("LEAVE-1735689600000-0a1b2c3d", LeaveStatus.PENDING)


def test_update_status_unknown_request_raises_not_found():
    with pytest.raises(RequestNotFoundError):
        InMemoryRequestStore().update_status("LEAVE-0-00000000", LeaveStatus.APPROVED)


def test_mark_ask_sent():
    store = InMemoryRequestStore()
    store.put(_record())
    sent_at = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)

    store.mark_ask_sent("LEAVE-1735689600000-0a1b2c3d", at=sent_at)

    record = store.get("LEAVE-1735689600000-0a1b2c3d")
    assert record.ask_sent_at == sent_at
    assert record.status == LeaveStatus.PENDING

    with pytest.raises(RequestNotFoundError):
        store.mark_ask_sent("LEAVE-0-00000000")


def test_concurrent_status_updates_commit_once():
    store = InMemoryRequestStore()
    store.put(_record())
    workers = 6
    barrier = threading.Barrier(workers)
    targets = [LeaveStatus.APPROVED, LeaveStatus.REJECTED] * (workers // 2)

    def attempt(target):
        barrier.wait()
        try:
            return store.update_status("LEAVE-1735689600000-0a1b2c3d", target).status
        except InvalidStatusTransitionError:
            return None

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, targets))

    committed = [r for r in results if r is not None]
    assert len(committed) == 1
    assert store.get("LEAVE-1735689600000-0a1b2c3d").status == committed[0]
