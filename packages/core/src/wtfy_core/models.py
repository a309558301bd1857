"""Domain types shared by the analysis components."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from wtfy_core.errors import InvalidRequestError

FIXED = "fixed"
NOT_FIXED = "not_fixed"
UNKNOWN = "unknown"
STATUSES = (FIXED, NOT_FIXED, UNKNOWN)
UNKNOWN_RELEASE = "Unknown"

_MIN_DESCRIPTION_CHARS = 10


def clamp_confidence(value: Any) -> float:
    """Coerce anything the model returns into a confidence in [0, 100].

    Non-numeric and NaN values become 0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(100.0, number))


def normalize_status(value: Any) -> str:
    """Map free-form status text onto one of STATUSES, defaulting to unknown."""
    if not isinstance(value, str):
        return UNKNOWN
    status = value.strip().lower().replace("-", "_").replace(" ", "_")
    return status if status in STATUSES else UNKNOWN


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class AnalysisRequest:
    """One user submission. Immutable once created."""

    request_id: str
    sdk: str
    version: str
    description: str

    def validate(self) -> None:
        problems = []
        if not self.request_id.strip():
            problems.append("request_id: Request ID is required")
        if not self.sdk.strip():
            problems.append("sdk: SDK is required")
        if not self.version.strip():
            problems.append("version: Version is required")
        if len(self.description.strip()) < _MIN_DESCRIPTION_CHARS:
            problems.append(f"description: Description must be at least {_MIN_DESCRIPTION_CHARS} characters")
        if problems:
            raise InvalidRequestError("Invalid request data: " + ", ".join(problems))

    @property
    def cache_params(self) -> dict[str, str]:
        return {"sdk": self.sdk, "version": self.version, "description": self.description}


@dataclass(frozen=True)
class Tag:
    name: str
    commit_sha: str

    def to_dict(self) -> dict:
        return {"name": self.name, "commit_sha": self.commit_sha}

    @classmethod
    def from_dict(cls, d: dict) -> Tag:
        return cls(name=d["name"], commit_sha=d["commit_sha"])


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    authored_at: datetime | None
    url: str

    @property
    def title(self) -> str:
        return self.message.split("\n", 1)[0]

    def to_dict(self) -> dict:
        return {
            "sha": self.sha,
            "message": self.message,
            "authored_at": self.authored_at.isoformat() if self.authored_at else None,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, d: dict) -> Commit:
        return cls(
            sha=d["sha"],
            message=d.get("message", ""),
            authored_at=_parse_datetime(d.get("authored_at")),
            url=d.get("url", ""),
        )


@dataclass(frozen=True)
class PullRequest:
    number: int
    title: str
    url: str
    body: str | None = None
    merged_at: datetime | None = None
    merge_commit_sha: str | None = None
    # First tag containing the merge commit, UNKNOWN_RELEASE when none does, None until looked up.
    release_version: str | None = None

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "body": self.body,
            "merged_at": self.merged_at.isoformat() if self.merged_at else None,
            "merge_commit_sha": self.merge_commit_sha,
            "release_version": self.release_version,
        }

    @classmethod
    def from_dict(cls, d: dict) -> PullRequest:
        return cls(
            number=int(d["number"]),
            title=d.get("title", ""),
            url=d.get("url", ""),
            body=d.get("body"),
            merged_at=_parse_datetime(d.get("merged_at")),
            merge_commit_sha=d.get("merge_commit_sha"),
            release_version=d.get("release_version"),
        )


@dataclass
class Verdict:
    """Judgment for one shard, or the fold of several.

    relevant_ids holds commit SHAs (str) for commit analysis and PR numbers
    (int) for pull-request analysis.
    """

    status: str = UNKNOWN
    confidence: float = 0.0
    reasoning: str = ""
    relevant_ids: list = field(default_factory=list)

    def __post_init__(self):
        self.status = normalize_status(self.status)
        self.confidence = clamp_confidence(self.confidence)


@dataclass
class CombinedResult:
    """Final answer for one (sdk, version, description)."""

    status: str
    confidence: int
    summary: str
    prs: list[PullRequest] = field(default_factory=list)
    request_id: str | None = None
    from_cache: bool = False

    def __post_init__(self):
        self.status = normalize_status(self.status)
        self.confidence = int(round(clamp_confidence(self.confidence)))

    def to_dict(self) -> dict:
        """Cacheable payload. request_id and from_cache are per-response, not cached."""
        return {
            "status": self.status,
            "confidence": self.confidence,
            "summary": self.summary,
            "prs": [pr.to_dict() for pr in self.prs],
        }

    @classmethod
    def from_dict(cls, d: dict, from_cache: bool = False) -> CombinedResult:
        return cls(
            status=d.get("status", UNKNOWN),
            confidence=d.get("confidence", 0),
            summary=d.get("summary", ""),
            prs=[PullRequest.from_dict(p) for p in d.get("prs", [])],
            from_cache=from_cache,
        )


@dataclass(frozen=True)
class Admission:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds


@dataclass
class AnalysisOutcome:
    """What ``AnalysisPipeline.submit`` hands back to a transport layer."""

    kind: str  # "completed" | "rate_limited" | "invalid" | "failed"
    admission: Admission
    result: CombinedResult | None = None
    error: str | None = None
