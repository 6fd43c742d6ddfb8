"""Key-value persistence for planner collections.

Every collection is stored as one JSON document. Writes wrap the payload in a
small envelope (``schema`` + ``version``) so a reader can tell a foreign or
outdated document apart from its own data and fall back to baseline data
instead of crashing.
"""
from __future__ import annotations

import json
import logging
import shutil
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, TypeVar

LOGGER = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SYLLABUS = "syllabus"
TESTS = "tests"
CLASSES = "classes"
TODAY_TODOS = "todayTodos"
LOGS = "logs"
WEEKLY_SUMMARIES = "weeklySummaries"
COLLECTIONS = (SYLLABUS, TESTS, CLASSES, TODAY_TODOS, LOGS, WEEKLY_SUMMARIES)

T = TypeVar("T")


class PersistenceError(RuntimeError):
    """The backing store could not be read or written."""


class SchemaMismatchError(ValueError):
    """A stored document does not have the shape this version expects."""


class BlobStore(Protocol):
    def get(self, collection: str) -> Optional[Any]:
        ...

    def set(self, collection: str, payload: Any) -> None:
        ...


def wrap(collection: str, data: Any) -> Dict[str, Any]:
    return {"schema": collection, "version": SCHEMA_VERSION, "data": data}


def unwrap(collection: str, payload: Any) -> Any:
    """Return the data part of ``payload``.

    Unversioned payloads (plain lists or objects written by older clients) are
    passed through unchanged.
    """
    if isinstance(payload, dict) and "version" in payload and "data" in payload:
        schema = payload.get("schema")
        version = payload.get("version")
        if schema != collection:
            raise SchemaMismatchError(f"expected schema {collection!r}, found {schema!r}")
        if version != SCHEMA_VERSION:
            raise SchemaMismatchError(f"unsupported {collection} version {version!r}")
        return payload["data"]
    return payload


class MemoryBlobStore:
    """Dictionary-backed store for tests and offline sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._documents: Dict[str, str] = {name: json.dumps(payload) for name, payload in (initial or {}).items()}
        self.writes: Dict[str, int] = {}

    def get(self, collection: str) -> Optional[Any]:
        raw = self._documents.get(collection)
        return json.loads(raw) if raw is not None else None

    def set(self, collection: str, payload: Any) -> None:
        self._documents[collection] = json.dumps(payload)
        self.writes[collection] = self.writes.get(collection, 0) + 1


class SQLiteBlobStore:
    """SQLite file holding one JSON document per collection."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _get_conn(self) -> Iterable[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            LOGGER.exception("Database operation failed")
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS collections (
                    name TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, collection: str) -> Optional[Any]:
        try:
            with self._get_conn() as conn:
                row = conn.execute("SELECT payload FROM collections WHERE name = ?", (collection,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to read {collection}") from exc
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise SchemaMismatchError(f"{collection} is not valid JSON") from exc

    def set(self, collection: str, payload: Any) -> None:
        text = json.dumps(payload, ensure_ascii=False)
        try:
            with self._get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO collections (name, payload, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET payload = excluded.payload, updated_at = excluded.updated_at
                    """,
                    (collection, text, datetime.now().isoformat(timespec="seconds")),
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to write {collection}") from exc
        LOGGER.debug("Stored %s (%s bytes)", collection, len(text))

    def backup_database(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        target = self.db_path.with_name(f"{self.db_path.stem}-backup-{timestamp}{self.db_path.suffix}")
        shutil.copy2(self.db_path, target)
        LOGGER.info("Database backed up to %s", target)
        return target


class CollectionGateway:
    """Typed load/save of whole collections on top of a ``BlobStore``."""

    def __init__(self, backend: BlobStore) -> None:
        self.backend = backend

    def load(
        self,
        name: str,
        parse: Callable[[Any], T],
        baseline: Callable[[], Optional[T]],
        encode: Callable[[T], Any],
    ) -> Optional[T]:
        try:
            raw = self.backend.get(name)
        except PersistenceError:
            LOGGER.exception("Failed to read %s; using baseline data for this session", name)
            return baseline()
        except SchemaMismatchError as exc:
            LOGGER.warning("Stored %s is malformed (%s); using baseline data", name, exc)
            return baseline()

        if raw is None:
            seeded = baseline()
            if seeded is not None:
                LOGGER.info("Initializing %s with baseline data", name)
                self.save(name, encode(seeded))
            return seeded

        try:
            return parse(unwrap(name, raw))
        except (SchemaMismatchError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Stored %s does not match the expected shape (%s); using baseline data", name, exc)
            return baseline()

    def save(self, name: str, data: Any) -> bool:
        try:
            self.backend.set(name, wrap(name, data))
        except PersistenceError:
            LOGGER.exception("Failed to save %s", name)
            return False
        return True
