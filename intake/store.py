"""Session document storage.

A session document is a JSON object keyed by conversation key. Writes are
merge patches: top-level or dotted keys (``"collected.current.onset"``) are
set, and ``DELETE`` removes the addressed field. Concurrent writers for the
same key are not coordinated; the last patch applied wins field by field.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import sqlite3
import threading
from typing import Any, Dict, Optional

from intake.errors import StoreUnavailable

logger = logging.getLogger(__name__)


class _DeleteMarker:
    def __repr__(self) -> str:
        return "DELETE"


# Field deletion marker for merge patches
DELETE = _DeleteMarker()


def apply_patch(doc: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a dotted-path merge patch to ``doc`` in place and return it."""
    for dotted, value in patch.items():
        parts = dotted.split(".")
        target = doc
        for p in parts[:-1]:
            nxt = target.get(p)
            if not isinstance(nxt, dict):
                if value is DELETE:
                    target = None
                    break
                nxt = {}
                target[p] = nxt
            target = nxt
        if target is None:
            continue
        leaf = parts[-1]
        if value is DELETE:
            target.pop(leaf, None)
        else:
            target[leaf] = copy.deepcopy(value)
    return doc


class SessionStore:
    """Interface for the durable per-conversation document store."""

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, key: str, patch: Dict[str, Any], merge: bool = True) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-local store for development and tests."""

    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def put(self, key: str, patch: Dict[str, Any], merge: bool = True) -> None:
        with self._lock:
            base = self._docs.get(key, {}) if merge else {}
            self._docs[key] = apply_patch(copy.deepcopy(base), patch)
            self.writes += 1


def _init_db(path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    con = sqlite3.connect(path)
    try:
        cur = con.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS session_documents (
                session_key TEXT PRIMARY KEY,
                document TEXT NOT NULL DEFAULT '{}',
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        con.commit()
    finally:
        con.close()


class SqliteSessionStore(SessionStore):
    """SQLite-backed store; the merge runs inside one immediate transaction."""

    def __init__(self, path: str) -> None:
        self._path = path
        try:
            _init_db(path)
        except (sqlite3.Error, OSError) as e:
            raise StoreUnavailable(f"session store init failed: {e}") from e

    def _connect(self) -> sqlite3.Connection:
        # autocommit mode; transactions are opened explicitly
        return sqlite3.connect(self._path, timeout=5.0, isolation_level=None)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        con = None
        try:
            con = self._connect()
            cur = con.cursor()
            cur.execute("SELECT document FROM session_documents WHERE session_key = ?", (key,))
            row = cur.fetchone()
            return json.loads(row[0]) if row and row[0] else None
        except (sqlite3.Error, ValueError) as e:
            logger.error("session read failed for %s: %s", key, e)
            raise StoreUnavailable("session read failed") from e
        finally:
            if con is not None:
                con.close()

    def put(self, key: str, patch: Dict[str, Any], merge: bool = True) -> None:
        con = None
        try:
            con = self._connect()
            cur = con.cursor()
            cur.execute("BEGIN IMMEDIATE")
            doc: Dict[str, Any] = {}
            if merge:
                cur.execute("SELECT document FROM session_documents WHERE session_key = ?", (key,))
                row = cur.fetchone()
                if row and row[0]:
                    doc = json.loads(row[0])
            apply_patch(doc, patch)
            cur.execute(
                "INSERT INTO session_documents(session_key, document) VALUES(?, ?)\n"
                "ON CONFLICT(session_key) DO UPDATE SET document=excluded.document, updated_at=CURRENT_TIMESTAMP",
                (key, json.dumps(doc, ensure_ascii=False)),
            )
            cur.execute("COMMIT")
        except (sqlite3.Error, ValueError) as e:
            if con is not None and con.in_transaction:
                con.execute("ROLLBACK")
            logger.error("session write failed for %s: %s", key, e)
            raise StoreUnavailable("session write failed") from e
        finally:
            if con is not None:
                con.close()
