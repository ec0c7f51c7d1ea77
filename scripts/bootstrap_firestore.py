"""Utility script to create the Firestore collections used by the leave service."""

from __future__ import annotations

from datetime import datetime, timezone

from google.cloud import firestore

from src.common.config import load_firestore_config
from src.common.env import load_env
from src.common.firestore import (
    callback_tokens_collection,
    get_firestore_client,
    leave_requests_collection,
)


def ensure_collection(client: firestore.Client, name: str) -> None:
    """Create a collection by writing a bootstrap document if it doesn't exist."""
    doc_ref = client.collection(name).document("_bootstrap_placeholder")
    doc_ref.set(
        {
            "note": "Leave approval bootstrap placeholder",
            "createdAt": datetime.now(tz=timezone.utc).isoformat(),
        },
        merge=True,
    )


def main() -> None:
    load_env()
    config = load_firestore_config()
    client = get_firestore_client(config)

    requests = leave_requests_collection(config.collection_prefix)
    tokens = callback_tokens_collection(config.collection_prefix)

    ensure_collection(client, requests)
    ensure_collection(client, tokens)
    print(f"Created/verified collections: {requests}, {tokens}")


if __name__ == "__main__":
    main()
