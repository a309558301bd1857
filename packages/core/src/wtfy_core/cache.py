"""Content-addressed cache over the store's key/value table.

Keys are ``"<namespace>:<sha256 of the params as sorted-key JSON>"`` so the
same parameters always land on the same row regardless of dict order.

Caching is an optimisation only: every store error is logged and treated as
a miss (reads) or a no-op (writes).
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable

from wtfy_core.config import CacheTTLs
from wtfy_store.models import CacheEntry, utcnow

if TYPE_CHECKING:
    from wtfy_store.base import BaseStore

logger = logging.getLogger(__name__)


class CacheNamespace:
    GITHUB_TAGS = "github:tags"
    GITHUB_COMMITS = "github:commits"
    GITHUB_PRS = "github:prs"
    ANALYSIS = "analysis"


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    expired_entries: int


def make_key(namespace: str, params: dict[str, Any]) -> str:
    param_string = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.sha256(param_string.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class CacheService:
    def __init__(
        self,
        store: BaseStore,
        ttls: CacheTTLs | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._ttls = ttls or CacheTTLs()
        self._clock = clock

    def set(self, namespace: str, params: dict[str, Any], value: Any, ttl: float | None = None) -> None:
        """Upsert value under (namespace, params), expiring ttl seconds from now."""
        key = make_key(namespace, params)
        seconds = ttl if ttl is not None else self._ttls.for_namespace(namespace)
        expires_at = self._clock() + timedelta(seconds=seconds)
        try:
            self._store.put_entry(CacheEntry(key=key, data=value, expires_at=expires_at))
        except Exception as e:
            logger.warning("Failed to store cache entry %s: %s", key, e)

    def get(self, namespace: str, params: dict[str, Any]) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        key = make_key(namespace, params)
        try:
            entry = self._store.get_entry(key)
        except Exception as e:
            logger.warning("Failed to retrieve cache entry %s: %s", key, e)
            return None

        if entry is None:
            logger.debug("Cache miss: %s", key)
            return None

        if self._clock() > entry.expires_at:
            self._delete(key)
            logger.debug("Cache expired: %s", key)
            return None

        logger.debug("Cache hit: %s", key)
        return entry.data

    def _delete(self, key: str) -> None:
        try:
            self._store.delete_entry(key)
        except Exception as e:
            logger.warning("Failed to delete cache entry %s: %s", key, e)

    def cleanup(self) -> int:
        """Remove every expired entry. Run periodically."""
        try:
            return self._store.delete_expired(self._clock())
        except Exception as e:
            logger.warning("Failed to cleanup cache: %s", e)
            return 0

    def clear_namespace(self, namespace: str) -> int:
        try:
            return self._store.delete_prefix(f"{namespace}:")
        except Exception as e:
            logger.warning("Failed to clear namespace %s: %s", namespace, e)
            return 0

    def stats(self) -> CacheStats:
        try:
            total, expired = self._store.count_entries(self._clock())
        except Exception as e:
            logger.warning("Failed to get cache stats: %s", e)
            return CacheStats(total_entries=0, expired_entries=0)
        return CacheStats(total_entries=total, expired_entries=expired)
