"""No-op store — every read misses and every write is discarded.

Useful when caching and history are not wanted at all: the engine still runs
end to end, it just recomputes everything and progress cannot be polled.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from wtfy_store.base import BaseStore

if TYPE_CHECKING:
    from datetime import datetime

    from wtfy_store.models import CacheEntry, ProgressRecord, RequestRecord, ResultRecord


class NoOpStore(BaseStore):
    """Silently discards all records — zero configuration required."""

    def get_entry(self, key: str) -> CacheEntry | None:
        return None

    def put_entry(self, entry: CacheEntry) -> None:
        pass  # intentional no-op

    def delete_entry(self, key: str) -> None:
        pass

    def delete_expired(self, now: datetime) -> int:
        return 0

    def delete_prefix(self, prefix: str) -> int:
        return 0

    def count_entries(self, now: datetime) -> tuple[int, int]:
        return 0, 0

    def create_progress(self, record: ProgressRecord) -> None:
        pass

    def update_progress(self, request_id: str, **fields: Any) -> None:
        pass

    def get_progress(self, request_id: str) -> ProgressRecord | None:
        return None

    def delete_progress_before(self, cutoff: datetime) -> int:
        return 0

    def save_request(self, record: RequestRecord) -> None:
        pass

    def save_result(self, record: ResultRecord) -> None:
        pass

    def list_results(self, sdk: str | None = None, limit: int = 20) -> list[ResultRecord]:
        return []
