"""Tests for configuration loading."""

import pytest

from wtfy_core.config import CacheTTLs, load_config, load_settings, require_credentials
from wtfy_core.errors import ConfigurationError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("GITHUB_TOKEN", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "MAX_REQUESTS_PER_HOUR"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["model"] == "openai"
    assert config["store"] == "sqlite"
    assert config["max_requests_per_hour"] == 20
    assert config["commit_batch_size"] == 100
    assert config["pr_batch_size"] == 5
    assert config["cache_ttl"]["analysis"] == 24 * 60 * 60


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".wtfy.yml"
    cfg.write_text("model: anthropic\ncommit_batch_size: 50\n")
    config = load_config(config_path=str(cfg))
    assert config["model"] == "anthropic"
    assert config["commit_batch_size"] == 50


def test_cache_ttl_merged_per_namespace(tmp_path):
    cfg = tmp_path / ".wtfy.yml"
    cfg.write_text("cache_ttl:\n  prs: 60\n")
    config = load_config(config_path=str(cfg))
    assert config["cache_ttl"]["prs"] == 60
    assert config["cache_ttl"]["tags"] == 6 * 60 * 60


def test_defaults_not_mutated_between_loads(tmp_path):
    cfg = tmp_path / ".wtfy.yml"
    cfg.write_text("cache_ttl:\n  prs: 60\n")
    load_config(config_path=str(cfg))
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["cache_ttl"]["prs"] == 30 * 60


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".wtfy.yml"
    cfg.write_text("model: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": "anthropic"})
    assert config["model"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".wtfy.yml"
    cfg.write_text("model: anthropic\n")
    config = load_config(config_path=str(cfg), cli_overrides={"model": None})
    assert config["model"] == "anthropic"


def test_credentials_and_limit_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_x")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-x")
    monkeypatch.setenv("MAX_REQUESTS_PER_HOUR", "5")
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["github_token"] == "ghp_x"
    assert config["openai_api_key"] == "sk-x"
    assert config["anthropic_api_key"] is None
    assert config["max_requests_per_hour"] == 5


class TestLoadSettings:
    def test_defaults(self, tmp_path):
        settings = load_settings(load_config(config_path=str(tmp_path / "nonexistent.yml")))
        assert settings.rate_limit.max_requests == 20
        assert settings.rate_limit.window_seconds == 3600
        assert settings.shards.commit_batch_size == 100
        assert settings.shards.weighting == "equal"
        assert settings.weights.commit == 0.3
        assert settings.weights.pr == 0.7
        assert settings.github.max_commits == 20000
        assert settings.cache_ttls == CacheTTLs()

    def test_unknown_weighting_rejected(self):
        with pytest.raises(ConfigurationError, match="confidence_weighting"):
            load_settings({"confidence_weighting": "median"})

    def test_settings_are_frozen(self):
        settings = load_settings({})
        with pytest.raises(AttributeError):
            settings.shards.commit_batch_size = 1


class TestCacheTTLs:
    def test_namespace_lookup(self):
        ttls = CacheTTLs()
        assert ttls.for_namespace("github:tags") == 6 * 60 * 60
        assert ttls.for_namespace("github:commits") == 60 * 60
        assert ttls.for_namespace("github:prs") == 30 * 60
        assert ttls.for_namespace("analysis") == 24 * 60 * 60

    def test_unknown_namespace_uses_default(self):
        assert CacheTTLs(default=42).for_namespace("other") == 42


class TestRequireCredentials:
    def test_missing_github_token(self):
        with pytest.raises(ConfigurationError, match="GitHub token"):
            require_credentials({"model": "openai", "openai_api_key": "sk"})

    def test_missing_openai_key(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            require_credentials({"model": "openai", "github_token": "tok"})

    def test_missing_anthropic_key(self):
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            require_credentials({"model": "anthropic", "github_token": "tok", "openai_api_key": "sk"})

    def test_unknown_model(self):
        with pytest.raises(ConfigurationError, match="Unknown model provider"):
            require_credentials({"model": "llama", "github_token": "tok"})

    def test_complete_credentials_pass(self):
        require_credentials({"model": "openai", "github_token": "tok", "openai_api_key": "sk"})
