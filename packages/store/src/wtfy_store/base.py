"""Abstract store interface.

wtfy needs two storage contracts: a key/value table with expiry for the
cache, and create/update rows for progress tracking and result history.
Backends (SQLite, in-memory, no-op) implement both behind BaseStore so the
engine never depends on a concrete backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from wtfy_store.models import CacheEntry, ProgressRecord, RequestRecord, ResultRecord


class BaseStore(ABC):
    """Pluggable persistence for cache entries, progress and results.

    Implementations may raise on I/O failure. Callers in wtfy_core treat
    every store call as best-effort and catch those errors themselves.
    """

    # ------------------------------------------------------------------ #
    # Key/value cache                                                     #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_entry(self, key: str) -> CacheEntry | None:
        """Return the entry stored under key, expired or not."""

    @abstractmethod
    def put_entry(self, entry: CacheEntry) -> None:
        """Insert or replace the entry with the same key."""

    @abstractmethod
    def delete_entry(self, key: str) -> None:
        """Remove one entry. Deleting a missing key is not an error."""

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Remove entries whose expiry is before now and return how many."""

    @abstractmethod
    def delete_prefix(self, prefix: str) -> int:
        """Remove entries whose key starts with prefix and return how many."""

    @abstractmethod
    def count_entries(self, now: datetime) -> tuple[int, int]:
        """Return (total entries, expired entries)."""

    # ------------------------------------------------------------------ #
    # Progress                                                            #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def create_progress(self, record: ProgressRecord) -> None:
        """Create (or replace) the progress row for record.request_id."""

    @abstractmethod
    def update_progress(self, request_id: str, **fields: Any) -> None:
        """Overwrite the given ProgressRecord fields for request_id."""

    @abstractmethod
    def get_progress(self, request_id: str) -> ProgressRecord | None:
        """Return the progress row or None."""

    @abstractmethod
    def delete_progress_before(self, cutoff: datetime) -> int:
        """Remove progress rows last updated before cutoff."""

    # ------------------------------------------------------------------ #
    # Requests and results                                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def save_request(self, record: RequestRecord) -> None:
        """Persist a submitted request."""

    @abstractmethod
    def save_result(self, record: ResultRecord) -> None:
        """Append a completed analysis result."""

    @abstractmethod
    def list_results(self, sdk: str | None = None, limit: int = 20) -> list[ResultRecord]:
        """Return the most recent results first, optionally for one SDK.

        Returns an empty list if there are none — never raises for a miss.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
