"""Durable ledger of leave requests.

One document per request keyed by request_id. Status changes go through a
compare-and-set on status == PENDING so that at most one transition ever
commits, even when duplicate resume attempts race each other.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import firestore

from src.common.config import FirestoreConfig
from src.common.firestore import get_firestore_client, leave_requests_collection
from src.common.logging import get_logger
from src.leave.errors import (
    DuplicateKeyError,
    InvalidStatusTransitionError,
    RequestNotFoundError,
)
from src.leave.models import LeaveRequest, LeaveStatus

logger = get_logger(__name__)


class RequestStore(Protocol):
    """Passive ledger of leave requests, written only by the workflow engine."""

    def put(self, record: LeaveRequest) -> None: ...

    def get(self, request_id: str) -> LeaveRequest: ...

    def update_status(
        self,
        request_id: str,
        new_status: LeaveStatus,
        decided_at: Optional[datetime] = None,
    ) -> LeaveRequest: ...

    def mark_ask_sent(self, request_id: str, at: Optional[datetime] = None) -> None: ...


def _check_transition(request_id: str, current: str, target: LeaveStatus) -> None:
    if target is LeaveStatus.PENDING or current != LeaveStatus.PENDING.value:
        logger.warning(
            "Rejected status transition",
            extra={"request_id": request_id, "current_status": current, "target_status": target.value},
        )
        raise InvalidStatusTransitionError(current, target.value)


class InMemoryRequestStore:
    """Process-local store for development and tests.

    Every operation holds one lock, which makes update_status an atomic
    compare-and-set.
    """

    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def put(self, record: LeaveRequest) -> None:
        with self._lock:
            if record.request_id in self._docs:
                raise DuplicateKeyError(record.request_id)
            self._docs[record.request_id] = record.to_dict()

    def get(self, request_id: str) -> LeaveRequest:
        with self._lock:
            data = self._docs.get(request_id)
            if data is None:
                raise RequestNotFoundError(request_id)
            return LeaveRequest.from_dict(data)

    def update_status(
        self,
        request_id: str,
        new_status: LeaveStatus,
        decided_at: Optional[datetime] = None,
    ) -> LeaveRequest:
        decided_at = decided_at or datetime.now(timezone.utc)
        with self._lock:
            data = self._docs.get(request_id)
            if data is None:
                raise RequestNotFoundError(request_id)
            _check_transition(request_id, data.get("status", "unknown"), new_status)
            data["status"] = new_status.value
            data["decidedAt"] = decided_at.isoformat()
            return LeaveRequest.from_dict(data)

    def mark_ask_sent(self, request_id: str, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        with self._lock:
            data = self._docs.get(request_id)
            if data is None:
                raise RequestNotFoundError(request_id)
            data["askSentAt"] = at.isoformat()

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)


@firestore.transactional
def _update_status_in_transaction(
    transaction: firestore.Transaction,
    doc_ref: firestore.DocumentReference,
    new_status: LeaveStatus,
    decided_at: datetime,
) -> Dict[str, Any]:
    """Atomically move a pending request to a terminal status.

    Raises:
        RequestNotFoundError: If the request doesn't exist.
        InvalidStatusTransitionError: If the request is no longer PENDING.
    """
    # Reads must happen before writes inside a transaction
    snapshot = doc_ref.get(transaction=transaction)

    if not snapshot.exists:
        raise RequestNotFoundError(doc_ref.id)

    data = snapshot.to_dict()
    _check_transition(doc_ref.id, data.get("status", "unknown"), new_status)

    update = {
        "status": new_status.value,
        "decidedAt": decided_at.isoformat(),
    }
    transaction.update(doc_ref, update)

    data.update(update)
    return data


class FirestoreRequestStore:
    """Firestore-backed request ledger.

    Collection used:
    - {prefix}requests: one document per leave request, ID = request_id
    """

    def __init__(self, config: FirestoreConfig, client: Optional[firestore.Client] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> firestore.Client:
        """Lazy-load the Firestore client using shared helper."""
        if self._client is None:
            self._client = get_firestore_client(self.config)
        return self._client

    @property
    def collection_name(self) -> str:
        return leave_requests_collection(self.config.collection_prefix)

    def _doc_ref(self, request_id: str) -> firestore.DocumentReference:
        return self._get_client().collection(self.collection_name).document(request_id)

    def put(self, record: LeaveRequest) -> None:
        """Create the record; never overwrites an existing document."""
        try:
            self._doc_ref(record.request_id).create(record.to_dict())
        except AlreadyExists as e:
            raise DuplicateKeyError(record.request_id) from e

    def get(self, request_id: str) -> LeaveRequest:
        doc = self._doc_ref(request_id).get()
        if not doc.exists:
            raise RequestNotFoundError(request_id)
        return LeaveRequest.from_dict(doc.to_dict())

    def update_status(
        self,
        request_id: str,
        new_status: LeaveStatus,
        decided_at: Optional[datetime] = None,
    ) -> LeaveRequest:
        transaction = self._get_client().transaction()
        data = _update_status_in_transaction(
            transaction,
            self._doc_ref(request_id),
            new_status,
            decided_at or datetime.now(timezone.utc),
        )
        return LeaveRequest.from_dict(data)

    def mark_ask_sent(self, request_id: str, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        try:
            self._doc_ref(request_id).update({"askSentAt": at.isoformat()})
        except NotFound as e:
            raise RequestNotFoundError(request_id) from e
