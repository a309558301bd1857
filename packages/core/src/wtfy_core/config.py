import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from wtfy_core.errors import ConfigurationError

_HOUR = 60 * 60

DEFAULT_CONFIG: dict = {
    "model": "openai",
    "llm_model": None,  # provider default when unset
    "llm_timeout_seconds": 60,
    "store": "sqlite",  # "sqlite" | "memory" | "noop"
    "store_path": ".wtfy.db",
    "max_requests_per_hour": 20,
    "rate_limit_window_seconds": _HOUR,
    "rate_limit_sweep_seconds": 10 * 60,
    "commit_batch_size": 100,
    "pr_batch_size": 5,
    "max_parallel_shards": 8,
    "confidence_weighting": "equal",  # "equal" | "size"
    "commit_weight": 0.3,
    "pr_weight": 0.7,
    "max_tags": 1000,
    "max_commits": 20000,
    "github_backoff_seconds": 5,
    "fallback_lookback_days": 365,
    # Seconds. Tags rarely change, PR metadata does, whole analyses are stable enough for a day.
    "cache_ttl": {
        "tags": 6 * _HOUR,
        "commits": 1 * _HOUR,
        "prs": 30 * 60,
        "analysis": 24 * _HOUR,
    },
}


@dataclass(frozen=True)
class CacheTTLs:
    """Per-namespace cache lifetimes in seconds."""

    tags: int = 6 * _HOUR
    commits: int = 1 * _HOUR
    prs: int = 30 * 60
    analysis: int = 24 * _HOUR
    default: int = 24 * _HOUR

    def for_namespace(self, namespace: str) -> int:
        return {
            "github:tags": self.tags,
            "github:commits": self.commits,
            "github:prs": self.prs,
            "analysis": self.analysis,
        }.get(namespace, self.default)


@dataclass(frozen=True)
class RateLimitSettings:
    max_requests: int = 20
    window_seconds: float = _HOUR
    sweep_interval_seconds: float = 10 * 60


@dataclass(frozen=True)
class GitHubSettings:
    per_page: int = 100
    max_tags: int = 1000
    max_commits: int = 20000
    backoff_seconds: float = 5
    fallback_lookback_days: int = 365


@dataclass(frozen=True)
class ShardSettings:
    commit_batch_size: int = 100
    pr_batch_size: int = 5
    max_workers: int = 8
    weighting: str = "equal"
    max_body_chars: int = 4000


@dataclass(frozen=True)
class CombineWeights:
    commit: float = 0.3
    pr: float = 0.7


@dataclass(frozen=True)
class Settings:
    """Immutable view of a loaded config, split per component."""

    cache_ttls: CacheTTLs = field(default_factory=CacheTTLs)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)
    shards: ShardSettings = field(default_factory=ShardSettings)
    weights: CombineWeights = field(default_factory=CombineWeights)


def load_config(config_path: str = ".wtfy.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .wtfy.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "cache_ttl": dict(DEFAULT_CONFIG["cache_ttl"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        # cache_ttl is merged key by key so a file can override a single namespace.
        file_ttl = file_config.pop("cache_ttl", None) or {}
        config.update(file_config)
        config["cache_ttl"].update(file_ttl)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    max_requests = os.environ.get("MAX_REQUESTS_PER_HOUR")
    if max_requests:
        config["max_requests_per_hour"] = int(max_requests)

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_settings(config: dict) -> Settings:
    """Build the immutable per-component settings from a config dict."""
    ttl = {**DEFAULT_CONFIG["cache_ttl"], **(config.get("cache_ttl") or {})}
    weighting = config.get("confidence_weighting", "equal")
    if weighting not in ("equal", "size"):
        raise ConfigurationError(f"Unknown confidence_weighting: {weighting!r}. Choose 'equal' or 'size'.")

    return Settings(
        cache_ttls=CacheTTLs(
            tags=int(ttl["tags"]),
            commits=int(ttl["commits"]),
            prs=int(ttl["prs"]),
            analysis=int(ttl["analysis"]),
        ),
        rate_limit=RateLimitSettings(
            max_requests=int(config.get("max_requests_per_hour", 20)),
            window_seconds=float(config.get("rate_limit_window_seconds", _HOUR)),
            sweep_interval_seconds=float(config.get("rate_limit_sweep_seconds", 10 * 60)),
        ),
        github=GitHubSettings(
            max_tags=int(config.get("max_tags", 1000)),
            max_commits=int(config.get("max_commits", 20000)),
            backoff_seconds=float(config.get("github_backoff_seconds", 5)),
            fallback_lookback_days=int(config.get("fallback_lookback_days", 365)),
        ),
        shards=ShardSettings(
            commit_batch_size=int(config.get("commit_batch_size", 100)),
            pr_batch_size=int(config.get("pr_batch_size", 5)),
            max_workers=int(config.get("max_parallel_shards", 8)),
            weighting=weighting,
        ),
        weights=CombineWeights(
            commit=float(config.get("commit_weight", 0.3)),
            pr=float(config.get("pr_weight", 0.7)),
        ),
    )


def require_credentials(config: dict) -> None:
    """Fail fast when the GitHub token or the selected provider's key is missing."""
    if not config.get("github_token"):
        raise ConfigurationError("GitHub token not configured. Set GITHUB_TOKEN or run `gh auth login`.")
    model = config.get("model")
    if model == "openai" and not config.get("openai_api_key"):
        raise ConfigurationError("OPENAI_API_KEY environment variable is not set.")
    if model == "anthropic" and not config.get("anthropic_api_key"):
        raise ConfigurationError("ANTHROPIC_API_KEY environment variable is not set.")
    if model not in ("openai", "anthropic"):
        raise ConfigurationError(f"Unknown model provider: {model!r}. Choose 'anthropic' or 'openai'.")
