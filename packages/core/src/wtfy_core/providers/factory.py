from __future__ import annotations

from wtfy_core.providers.anthropic import AnthropicClient
from wtfy_core.providers.base import BaseLLMClient
from wtfy_core.providers.openai import OpenAIClient

_PROVIDERS = {
    "openai": (OpenAIClient, "openai_api_key"),
    "anthropic": (AnthropicClient, "anthropic_api_key"),
}


def get_llm_client(config: dict) -> BaseLLMClient:
    """Build the client for config["model"], honouring llm_model and llm_timeout_seconds."""
    provider = config["model"]
    if provider not in _PROVIDERS:
        raise ValueError(f"Unknown model provider: {provider!r}. Choose 'anthropic' or 'openai'.")
    client_cls, key_name = _PROVIDERS[provider]
    return client_cls(
        api_key=config[key_name],
        model=config.get("llm_model"),
        timeout=float(config.get("llm_timeout_seconds", 60)),
    )
