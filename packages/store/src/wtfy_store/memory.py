"""MemoryStore — process-local store for tests and single-shot CLI runs.

Payloads are copied through a JSON round-trip on the way in and out so the
store behaves like a real backend: callers never share mutable state with it
and non-serialisable values fail at write time, not later.
"""

from __future__ import annotations

import copy
import json
import threading
from dataclasses import fields as dataclass_fields
from typing import TYPE_CHECKING, Any

from wtfy_store.base import BaseStore
from wtfy_store.models import CacheEntry, ProgressRecord, RequestRecord, ResultRecord, utcnow

if TYPE_CHECKING:
    from datetime import datetime

_PROGRESS_FIELDS = {f.name for f in dataclass_fields(ProgressRecord)} - {"request_id"}


class MemoryStore(BaseStore):
    """Dict-backed store guarded by a single lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._progress: dict[str, ProgressRecord] = {}
        self._requests: dict[str, RequestRecord] = {}
        self._results: list[ResultRecord] = []

    def get_entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return CacheEntry(key=entry.key, data=json.loads(json.dumps(entry.data)), expires_at=entry.expires_at)

    def put_entry(self, entry: CacheEntry) -> None:
        data = json.loads(json.dumps(entry.data))
        with self._lock:
            self._entries[entry.key] = CacheEntry(key=entry.key, data=data, expires_at=entry.expires_at)

    def delete_entry(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at < now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            matched = [k for k in self._entries if k.startswith(prefix)]
            for key in matched:
                del self._entries[key]
        return len(matched)

    def count_entries(self, now: datetime) -> tuple[int, int]:
        with self._lock:
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.expires_at < now)
        return total, expired

    def create_progress(self, record: ProgressRecord) -> None:
        with self._lock:
            self._progress[record.request_id] = copy.deepcopy(record)

    def update_progress(self, request_id: str, **fields: Any) -> None:
        unknown = set(fields) - _PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")
        with self._lock:
            record = self._progress.get(request_id)
            if record is None:
                return
            for name, value in fields.items():
                setattr(record, name, copy.deepcopy(value))
            if "updated_at" not in fields:
                record.updated_at = utcnow()

    def get_progress(self, request_id: str) -> ProgressRecord | None:
        with self._lock:
            record = self._progress.get(request_id)
            return copy.deepcopy(record) if record is not None else None

    def delete_progress_before(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [rid for rid, r in self._progress.items() if r.updated_at < cutoff]
            for rid in stale:
                del self._progress[rid]
        return len(stale)

    def save_request(self, record: RequestRecord) -> None:
        with self._lock:
            self._requests[record.request_id] = copy.deepcopy(record)

    def save_result(self, record: ResultRecord) -> None:
        with self._lock:
            self._results.append(copy.deepcopy(record))

    def list_results(self, sdk: str | None = None, limit: int = 20) -> list[ResultRecord]:
        with self._lock:
            results = [r for r in self._results if sdk is None or r.sdk == sdk]
            results.sort(key=lambda r: r.created_at, reverse=True)
            return copy.deepcopy(results[:limit])
