"""SQLiteStore — local file-based store for the cache, progress and history.

Why SQLite as the default store:
- Batteries included: ships with Python, no extra dependencies.
- Survives between CLI invocations, so `wtfy progress` and `wtfy history`
  can read what a previous `wtfy analyze` wrote, and cached GitHub and
  model results are reused across runs.

Schema:
  cache     — key/value rows with an absolute expiry (ISO-8601 UTC).
  progress  — one row per in-flight or finished request.
  requests  — one row per accepted submission.
  results   — one row per completed analysis (append-only).

Timestamps are stored as ISO-8601 strings in UTC so that string comparison
orders them correctly.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any

from wtfy_store.base import BaseStore
from wtfy_store.models import CacheEntry, ProgressRecord, RequestRecord, ResultRecord, utcnow

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache (
    key             TEXT PRIMARY KEY,
    data            TEXT NOT NULL,
    expires_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache (expires_at);

CREATE TABLE IF NOT EXISTS progress (
    request_id      TEXT PRIMARY KEY,
    current_step    INTEGER NOT NULL DEFAULT 0,
    total_steps     INTEGER NOT NULL DEFAULT 6,
    step_title      TEXT NOT NULL DEFAULT 'Starting analysis...',
    step_description TEXT,
    is_completed    INTEGER NOT NULL DEFAULT 0,
    error           TEXT,
    updated_at      TEXT NOT NULL,
    step_results    TEXT DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS requests (
    request_id      TEXT PRIMARY KEY,
    sdk             TEXT NOT NULL,
    version         TEXT NOT NULL,
    description     TEXT NOT NULL,
    created_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS results (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    request_id      TEXT NOT NULL,
    sdk             TEXT NOT NULL,
    version         TEXT NOT NULL,
    status          TEXT NOT NULL,
    confidence      INTEGER NOT NULL,
    summary         TEXT,
    prs_json        TEXT DEFAULT '[]',
    created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_results_sdk ON results (sdk);
"""

_PROGRESS_COLUMNS = (
    "current_step",
    "total_steps",
    "step_title",
    "step_description",
    "is_completed",
    "error",
    "updated_at",
    "step_results",
)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


class SQLiteStore(BaseStore):
    """Stores everything in one SQLite database file.

    The database file path defaults to `.wtfy.db` in the current working
    directory. Configure via .wtfy.yml: `store_path: /path/to/wtfy.db`.
    One connection is shared between threads and serialised with a lock.
    """

    def __init__(self, db_path: str = ".wtfy.db"):
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor

    def _fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    # -- cache --------------------------------------------------------------

    def get_entry(self, key: str) -> CacheEntry | None:
        row = self._fetchone("SELECT key, data, expires_at FROM cache WHERE key=?", (key,))
        if row is None:
            return None
        return CacheEntry(key=row["key"], data=json.loads(row["data"]), expires_at=_parse_iso(row["expires_at"]))

    def put_entry(self, entry: CacheEntry) -> None:
        self._execute(
            """
            INSERT INTO cache (key, data, expires_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET data=excluded.data, expires_at=excluded.expires_at
            """,
            (entry.key, json.dumps(entry.data), _iso(entry.expires_at)),
        )

    def delete_entry(self, key: str) -> None:
        self._execute("DELETE FROM cache WHERE key=?", (key,))

    def delete_expired(self, now: datetime) -> int:
        return self._execute("DELETE FROM cache WHERE expires_at < ?", (_iso(now),)).rowcount

    def delete_prefix(self, prefix: str) -> int:
        # substr() rather than LIKE: namespaces contain ':' and may contain '_'.
        return self._execute("DELETE FROM cache WHERE substr(key, 1, ?) = ?", (len(prefix), prefix)).rowcount

    def count_entries(self, now: datetime) -> tuple[int, int]:
        row = self._fetchone(
            "SELECT COUNT(*) AS total, SUM(CASE WHEN expires_at < ? THEN 1 ELSE 0 END) AS expired FROM cache",
            (_iso(now),),
        )
        return row["total"], row["expired"] or 0

    # -- progress -----------------------------------------------------------

    def create_progress(self, record: ProgressRecord) -> None:
        self._execute(
            """
            INSERT OR REPLACE INTO progress
              (request_id, current_step, total_steps, step_title, step_description,
               is_completed, error, updated_at, step_results)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.request_id,
                record.current_step,
                record.total_steps,
                record.step_title,
                record.step_description,
                int(record.is_completed),
                record.error,
                _iso(record.updated_at),
                json.dumps(record.step_results),
            ),
        )

    def update_progress(self, request_id: str, **fields: Any) -> None:
        unknown = set(fields) - set(_PROGRESS_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")
        fields.setdefault("updated_at", utcnow())

        columns, values = [], []
        for name, value in fields.items():
            if name == "updated_at":
                value = _iso(value)
            elif name == "is_completed":
                value = int(value)
            elif name == "step_results":
                value = json.dumps(value)
            columns.append(f"{name}=?")
            values.append(value)

        self._execute(f"UPDATE progress SET {', '.join(columns)} WHERE request_id=?", (*values, request_id))

    def get_progress(self, request_id: str) -> ProgressRecord | None:
        row = self._fetchone("SELECT * FROM progress WHERE request_id=?", (request_id,))
        if row is None:
            return None
        try:
            step_results = json.loads(row["step_results"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt step_results for request %s", request_id)
            step_results = {}
        return ProgressRecord(
            request_id=row["request_id"],
            current_step=row["current_step"],
            total_steps=row["total_steps"],
            step_title=row["step_title"],
            step_description=row["step_description"],
            is_completed=bool(row["is_completed"]),
            error=row["error"],
            updated_at=_parse_iso(row["updated_at"]),
            step_results=step_results,
        )

    def delete_progress_before(self, cutoff: datetime) -> int:
        return self._execute("DELETE FROM progress WHERE updated_at < ?", (_iso(cutoff),)).rowcount

    # -- requests / results -------------------------------------------------

    def save_request(self, record: RequestRecord) -> None:
        self._execute(
            """
            INSERT OR REPLACE INTO requests (request_id, sdk, version, description, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (record.request_id, record.sdk, record.version, record.description, _iso(record.created_at)),
        )

    def save_result(self, record: ResultRecord) -> None:
        self._execute(
            """
            INSERT INTO results
              (request_id, sdk, version, status, confidence, summary, prs_json, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.request_id,
                record.sdk,
                record.version,
                record.status,
                record.confidence,
                record.summary,
                json.dumps(record.prs),
                _iso(record.created_at),
            ),
        )

    def list_results(self, sdk: str | None = None, limit: int = 20) -> list[ResultRecord]:
        if sdk is not None:
            rows = self._fetchall(
                "SELECT * FROM results WHERE sdk=? ORDER BY created_at DESC, id DESC LIMIT ?",
                (sdk, limit),
            )
        else:
            rows = self._fetchall("SELECT * FROM results ORDER BY created_at DESC, id DESC LIMIT ?", (limit,))
        return [self._row_to_result(r) for r in rows]

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _row_to_result(row: sqlite3.Row) -> ResultRecord:
        return ResultRecord(
            request_id=row["request_id"],
            sdk=row["sdk"],
            version=row["version"],
            status=row["status"],
            confidence=row["confidence"],
            summary=row["summary"] or "",
            prs=json.loads(row["prs_json"] or "[]"),
            created_at=_parse_iso(row["created_at"]),
        )
