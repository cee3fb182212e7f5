"""
SQLite-backed snapshot of one user's karma-journey progress.

A lineage is stored under a key as a zlib-compressed JSON blob, with the
life count and last update time in columns for fast listing.

Persistence failures are logged as warnings and never crash the caller:
the store degrades gracefully to a no-op.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import zlib
from datetime import datetime, timezone
from typing import Any

from fourlife.core.lifecycle import Lineage, LifeRecord

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/fourlife.db"


# ---------------------------------------------------------------------------
# Lineage blob compress / decompress
# ---------------------------------------------------------------------------

def serialize_lineage(lineage: Lineage) -> list[dict[str, Any]]:
    return [life.to_dict() for life in lineage]


def deserialize_lineage(data: list[dict[str, Any]]) -> Lineage:
    return tuple(LifeRecord.from_dict(d) for d in data)


def compress_lineage(lineage: Lineage) -> bytes:
    """Serialize a lineage to zlib-compressed JSON bytes."""
    json_bytes = json.dumps(serialize_lineage(lineage)).encode("utf-8")
    return zlib.compress(json_bytes, level=6)


def decompress_lineage(blob: bytes) -> Lineage:
    return deserialize_lineage(json.loads(zlib.decompress(blob).decode("utf-8")))


# ---------------------------------------------------------------------------
# SQLite ProgressStore
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS progress (
    key TEXT PRIMARY KEY,
    lives INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL,
    lineage_blob BLOB NOT NULL
);
"""


class ProgressStore:
    """Local key-value store for single-life progress."""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or os.environ.get("FOURLIFE_DB_PATH", DEFAULT_DB_PATH)
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _init_db(self) -> None:
        """Open connection and create table if needed."""
        try:
            parent = os.path.dirname(self.db_path)
            if parent and self.db_path != ":memory:":
                os.makedirs(parent, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.execute(_SCHEMA)
            self._conn.commit()
        except Exception:
            logger.warning(
                "Failed to open SQLite database at %s; progress will not be saved",
                self.db_path,
                exc_info=True,
            )
            self._conn = None

    @property
    def available(self) -> bool:
        """True if the database connection is open."""
        return self._conn is not None

    # ---- Write operations ----

    def save(self, key: str, lineage: Lineage) -> None:
        """Insert or replace the lineage stored under ``key``."""
        if not self.available:
            return
        now = datetime.now(timezone.utc).isoformat()
        try:
            self._conn.execute(  # type: ignore[union-attr]
                """
                INSERT INTO progress (key, lives, updated_at, lineage_blob)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    lives = excluded.lives,
                    updated_at = excluded.updated_at,
                    lineage_blob = excluded.lineage_blob
                """,
                (key, len(lineage), now, compress_lineage(lineage)),
            )
            self._conn.commit()  # type: ignore[union-attr]
        except Exception:
            logger.warning("Failed to save progress %s", key, exc_info=True)

    def delete(self, key: str) -> None:
        if not self.available:
            return
        try:
            self._conn.execute("DELETE FROM progress WHERE key = ?", (key,))  # type: ignore[union-attr]
            self._conn.commit()  # type: ignore[union-attr]
        except Exception:
            logger.warning("Failed to delete progress %s", key, exc_info=True)

    # ---- Read operations ----

    def load(self, key: str) -> Lineage | None:
        """Return the stored lineage, or ``None`` if missing or unreadable."""
        if not self.available:
            return None
        try:
            row = self._conn.execute(  # type: ignore[union-attr]
                "SELECT lineage_blob FROM progress WHERE key = ?", (key,),
            ).fetchone()
            if row is None:
                return None
            return decompress_lineage(row[0])
        except Exception:
            logger.warning("Failed to load progress %s", key, exc_info=True)
            return None

    def list_keys(self) -> list[str]:
        """Stored keys, most recently updated first."""
        if not self.available:
            return []
        try:
            rows = self._conn.execute(  # type: ignore[union-attr]
                "SELECT key FROM progress ORDER BY updated_at DESC, key",
            ).fetchall()
            return [r[0] for r in rows]
        except Exception:
            logger.warning("Failed to list progress keys", exc_info=True)
            return []

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
