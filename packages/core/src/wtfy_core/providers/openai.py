from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from wtfy_core.providers.base import BaseLLMClient


class OpenAIClient(BaseLLMClient):
    MODEL = "gpt-4o"
    # Every prompt asks for a single JSON verdict, so keep sampling tight.
    TEMPERATURE = 0.2

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 60.0):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. "
                "Install it with: pip install 'wtfy[openai]'"
            )
        self.model = model or self.MODEL
        # Retries belong to BaseLLMClient; the SDK's own would multiply them.
        self.client = _OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        completion = self.client.chat.completions.create(
            model=self.model,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        )
        choice = completion.choices[0]
        if choice.finish_reason == "length":
            raise RuntimeError(f"{self.model} stopped at the {self.MAX_TOKENS}-token limit")
        return choice.message.content or ""
