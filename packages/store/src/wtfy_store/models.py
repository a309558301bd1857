"""Persistence records.

These are the rows the store layer reads and writes. wtfy_core builds them
from its own domain types before handing them over, so a backend never needs
to know how an analysis is computed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """A single cached payload. ``data`` must be JSON-serialisable."""

    key: str
    data: Any
    expires_at: datetime


@dataclass
class ProgressRecord:
    """Live progress of one analysis request, polled by clients.

    ``is_completed`` is also set on failure; check ``error`` to tell the two apart.
    """

    request_id: str
    current_step: int = 0
    total_steps: int = 6
    step_title: str = "Starting analysis..."
    step_description: str | None = None
    is_completed: bool = False
    error: str | None = None
    updated_at: datetime = field(default_factory=utcnow)
    # step number (as str, JSON keys) -> {"title": ..., "description": ...}
    step_results: dict[str, dict[str, str]] = field(default_factory=dict)


@dataclass
class RequestRecord:
    """A user submission, stored once when the analysis starts."""

    request_id: str
    sdk: str
    version: str
    description: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ResultRecord:
    """A completed analysis, appended once per request."""

    request_id: str
    sdk: str
    version: str
    status: str  # "fixed" | "not_fixed" | "unknown"
    confidence: int
    summary: str
    prs: list[dict] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
