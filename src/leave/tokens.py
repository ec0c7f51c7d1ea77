"""Single-use callback tokens.

A token is the capability that lets an unauthenticated approver resume exactly
one suspended request. Tokens are random (secrets.token_urlsafe) and only
their SHA-256 digest is persisted. Each request owns a single token slot, so
issuing again replaces the previous unconsumed token. Redeeming checks and
consumes the slot in one atomic step, and records the decision it carried so a
commit interrupted after the redeem can still be completed.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from google.cloud import firestore

from src.common.config import FirestoreConfig
from src.common.firestore import callback_tokens_collection, get_firestore_client
from src.leave.errors import TokenAlreadyConsumedError, TokenNotFoundError

TOKEN_BYTES = 32


class CallbackTokens(Protocol):
    """Issues and redeems single-use callback tokens."""

    def issue(self, request_id: str) -> str: ...

    def redeem(self, request_id: str, token: str, decision: Optional[str] = None) -> str: ...

    def recorded_decision(self, request_id: str) -> Optional[str]: ...


def mint_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def digest_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _new_slot(token: str, now: datetime) -> Dict[str, Any]:
    return {
        "tokenHash": digest_token(token),
        "consumed": False,
        "issuedAt": now.isoformat(),
        "consumedAt": None,
        "decision": None,
    }


def _redeem_slot(request_id: str, slot: Optional[Dict[str, Any]], token: str) -> None:
    """Validate a stored slot against a presented token.

    Raises:
        TokenNotFoundError: If no slot exists or the digest differs.
        TokenAlreadyConsumedError: If the slot was already redeemed.
    """
    if slot is None:
        raise TokenNotFoundError(request_id)
    if not hmac.compare_digest(slot.get("tokenHash", ""), digest_token(token)):
        raise TokenNotFoundError(request_id)
    if slot.get("consumed"):
        raise TokenAlreadyConsumedError(request_id)


def _consumed_fields(decision: Optional[str]) -> Dict[str, Any]:
    return {
        "consumed": True,
        "consumedAt": datetime.now(timezone.utc).isoformat(),
        "decision": decision,
    }


def _decision_of(slot: Optional[Dict[str, Any]]) -> Optional[str]:
    if not slot or not slot.get("consumed"):
        return None
    return slot.get("decision")


class InMemoryCallbackTokens:
    """Lock-guarded token slots for development and tests."""

    def __init__(self) -> None:
        self._slots: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def issue(self, request_id: str) -> str:
        token = mint_token()
        with self._lock:
            existing = self._slots.get(request_id)
            if existing and existing.get("consumed"):
                raise TokenAlreadyConsumedError(request_id)
            self._slots[request_id] = _new_slot(token, datetime.now(timezone.utc))
        return token

    def redeem(self, request_id: str, token: str, decision: Optional[str] = None) -> str:
        with self._lock:
            slot = self._slots.get(request_id)
            _redeem_slot(request_id, slot, token)
            slot.update(_consumed_fields(decision))
        return request_id

    def recorded_decision(self, request_id: str) -> Optional[str]:
        with self._lock:
            return _decision_of(self._slots.get(request_id))


@firestore.transactional
def _issue_in_transaction(
    transaction: firestore.Transaction,
    doc_ref: firestore.DocumentReference,
    token: str,
) -> None:
    snapshot = doc_ref.get(transaction=transaction)
    if snapshot.exists and (snapshot.to_dict() or {}).get("consumed"):
        raise TokenAlreadyConsumedError(doc_ref.id)
    transaction.set(doc_ref, _new_slot(token, datetime.now(timezone.utc)))


@firestore.transactional
def _redeem_in_transaction(
    transaction: firestore.Transaction,
    doc_ref: firestore.DocumentReference,
    token: str,
    decision: Optional[str],
) -> None:
    # A contended transaction is re-run, so the losing redeem re-reads consumed=True
    snapshot = doc_ref.get(transaction=transaction)
    slot = snapshot.to_dict() if snapshot.exists else None
    _redeem_slot(doc_ref.id, slot, token)
    transaction.update(doc_ref, _consumed_fields(decision))


class FirestoreCallbackTokens:
    """Firestore-backed token slots.

    Collection used:
    - {prefix}callback_tokens: one document per request, ID = request_id
    """

    def __init__(self, config: FirestoreConfig, client: Optional[firestore.Client] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> firestore.Client:
        if self._client is None:
            self._client = get_firestore_client(self.config)
        return self._client

    @property
    def collection_name(self) -> str:
        return callback_tokens_collection(self.config.collection_prefix)

    def _doc_ref(self, request_id: str) -> firestore.DocumentReference:
        return self._get_client().collection(self.collection_name).document(request_id)

    def issue(self, request_id: str) -> str:
        token = mint_token()
        _issue_in_transaction(self._get_client().transaction(), self._doc_ref(request_id), token)
        return token

    def redeem(self, request_id: str, token: str, decision: Optional[str] = None) -> str:
        _redeem_in_transaction(
            self._get_client().transaction(), self._doc_ref(request_id), token, decision
        )
        return request_id

    def recorded_decision(self, request_id: str) -> Optional[str]:
        snapshot = self._doc_ref(request_id).get()
        return _decision_of(snapshot.to_dict() if snapshot.exists else None)
