"""Firestore-backed blob store: one document per planner collection.

Credentials are read from the ``FIREBASE_CREDENTIALS`` environment variable
(path to a service account JSON) unless a path is given explicitly.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from planner_app.planner.storage import PersistenceError

LOGGER = logging.getLogger(__name__)


def init_firestore(creds_path: Optional[str] = None):
    """Initialize the default Firebase app once and return a Firestore client."""

    path = creds_path or os.getenv("FIREBASE_CREDENTIALS")
    if not path:
        raise PersistenceError("Firestore storage needs FIREBASE_CREDENTIALS or firebase_credentials")
    try:
        if not firebase_admin._apps:  # type: ignore[attr-defined]
            firebase_admin.initialize_app(credentials.Certificate(path))
        return firestore.client()
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to initialize Firebase")
        raise PersistenceError("Unable to initialize Firestore") from exc


class FirestoreBlobStore:
    """Store each collection as ``{"payload": <json>}`` in ``<root>/<collection>``."""

    def __init__(self, client: Any = None, root: str = "study_planner", creds_path: Optional[str] = None):
        self._client = client if client is not None else init_firestore(creds_path)
        self.root = root

    def _doc(self, collection: str):
        return self._client.collection(self.root).document(collection)

    def get(self, collection: str) -> Optional[Any]:
        try:
            snapshot = self._doc(collection).get()
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError(f"Unable to read {collection} from Firestore") from exc
        if not snapshot.exists:
            return None
        return (snapshot.to_dict() or {}).get("payload")

    def set(self, collection: str, payload: Any) -> None:
        try:
            self._doc(collection).set({"payload": payload})
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError(f"Unable to write {collection} to Firestore") from exc
        LOGGER.debug("Stored %s in Firestore under %s", collection, self.root)
