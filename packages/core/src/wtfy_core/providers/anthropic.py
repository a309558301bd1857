from __future__ import annotations

from wtfy_core.providers.base import BaseLLMClient


class AnthropicClient(BaseLLMClient):
    MODEL = "claude-sonnet-4-20250514"
    TEMPERATURE = 0.3

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 60.0):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'wtfy[anthropic]'"
            )
        self.model = model or self.MODEL
        self.client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        message = self.client.messages.create(
            model=self.model,
            system=system_prompt,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            messages=[{"role": "user", "content": user_prompt}],
        )
        if message.stop_reason == "max_tokens":
            raise RuntimeError(f"{self.model} stopped at the {self.MAX_TOKENS}-token limit")
        # Only text blocks carry the JSON answer.
        return "".join(getattr(block, "text", "") for block in message.content if block.type == "text").strip()
