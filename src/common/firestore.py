"""Firestore client and collection naming for the leave approval service.

Two collections live under the configured prefix:

    {prefix}requests          one document per leave request
    {prefix}callback_tokens   one token slot per leave request

Both are keyed by request_id.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any, Dict, Optional

from src.common.config import FirestoreConfig, load_firestore_config
from src.common.logging import get_logger

if TYPE_CHECKING:
    from google.cloud.firestore import Client as FirestoreClient

logger = get_logger(__name__)

REQUESTS_SUFFIX = "requests"
CALLBACK_TOKENS_SUFFIX = "callback_tokens"


class FirestoreError(Exception):
    """Raised when a Firestore client cannot be created."""


def get_firestore_client(config: Optional[FirestoreConfig] = None) -> "FirestoreClient":
    """Create a Firestore client for the configured project and database.

    Raises:
        FirestoreError: If the client cannot be initialized (e.g. no credentials).
    """
    from google.cloud import firestore

    config = config or load_firestore_config()
    kwargs: Dict[str, Any] = {"database": config.database_id}
    if config.project_id:
        kwargs["project"] = config.project_id

    emulator = os.getenv("FIRESTORE_EMULATOR_HOST")
    if emulator:
        logger.info("Connecting to Firestore emulator", extra={"emulator_host": emulator})

    try:
        return firestore.Client(**kwargs)
    except Exception as e:
        raise FirestoreError(f"Failed to initialize Firestore client: {e}") from e


def _collection(suffix: str, prefix: Optional[str]) -> str:
    if prefix is None:
        prefix = load_firestore_config().collection_prefix
    return f"{prefix}{suffix}"


def leave_requests_collection(prefix: Optional[str] = None) -> str:
    return _collection(REQUESTS_SUFFIX, prefix)


def callback_tokens_collection(prefix: Optional[str] = None) -> str:
    return _collection(CALLBACK_TOKENS_SUFFIX, prefix)


def delete_collection(client: "FirestoreClient", name: str, batch_size: int = 200) -> int:
    """Delete every document in a collection, in batches.

    Returns:
        Number of documents deleted.
    """
    deleted = 0
    collection = client.collection(name)
    while True:
        docs = list(collection.limit(batch_size).stream())
        if not docs:
            return deleted
        batch = client.batch()
        for doc in docs:
            batch.delete(doc.reference)
        batch.commit()
        deleted += len(docs)
