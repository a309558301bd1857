"""Base LLM client implementing the Template Method pattern.

All providers share the same completion algorithm:
    complete() → _call_with_retry() → _call_api()   ← only this differs per provider
               → _parse()

Subclasses implement two things only:
  - __init__: validate and store the SDK client
  - _call_api: make one raw API call and return the text response

complete() never raises. It returns either Parsed (a JSON object) or
Unparseable (the raw text and why it was rejected); each caller decides what
its conservative fallback looks like.
"""

from __future__ import annotations

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)

# One retry after a fixed pause. Model calls are the slowest thing in the
# pipeline; a longer backoff ladder would just push the request past its timeout.
_MAX_ATTEMPTS = 2
_RETRY_DELAY_SECONDS = 2
_MAX_TOKENS = 4096


@dataclass(frozen=True)
class Parsed:
    data: dict


@dataclass(frozen=True)
class Unparseable:
    raw: str
    reason: str


LLMResponse = Union[Parsed, Unparseable]


class BaseLLMClient(ABC):
    MAX_ATTEMPTS: int = _MAX_ATTEMPTS
    RETRY_DELAY_SECONDS: float = _RETRY_DELAY_SECONDS
    MAX_TOKENS: int = _MAX_TOKENS

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        """Ask the model for a JSON object and return it parsed, or why it could not be."""
        raw = self._call_with_retry(system_prompt, user_prompt)
        if raw is None:
            return Unparseable(raw="", reason=f"{self.__class__.__name__} request failed")
        return self._parse(raw)

    # ------------------------------------------------------------------ #
    # Abstract — implement in each provider                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        """Make a single API call and return the raw text response.

        It should raise on failure — _call_with_retry handles retries and logging.
        """

    # ------------------------------------------------------------------ #
    # Shared implementations                                               #
    # ------------------------------------------------------------------ #

    def _call_with_retry(self, system_prompt: str, user_prompt: str) -> str | None:
        for attempt in range(self.MAX_ATTEMPTS):
            try:
                return self._call_api(system_prompt, user_prompt)
            except Exception as e:
                if attempt == self.MAX_ATTEMPTS - 1:
                    logger.error(
                        "%s API failed after %d attempts: %s",
                        self.__class__.__name__,
                        self.MAX_ATTEMPTS,
                        e,
                    )
                    return None
                logger.warning(
                    "%s API error (attempt %d/%d): %s. Retrying in %ss...",
                    self.__class__.__name__,
                    attempt + 1,
                    self.MAX_ATTEMPTS,
                    e,
                    self.RETRY_DELAY_SECONDS,
                )
                time.sleep(self.RETRY_DELAY_SECONDS)
        return None

    def _parse(self, raw: str | None) -> LLMResponse:
        """Turn the model's text into a JSON object.

        Strips an outer ```json fence, then falls back to the outermost {...}
        span for answers that wrap the object in prose.
        """
        if not raw or not raw.strip():
            return Unparseable(raw=raw or "", reason="empty response")

        cleaned = re.sub(r"^```(?:json)?\s*", "", raw.strip())
        cleaned = re.sub(r"\s*```$", "", cleaned.strip())

        for candidate in (cleaned, _outermost_object(cleaned)):
            if candidate is None:
                continue
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict):
                return Parsed(data=data)
            return Unparseable(raw=raw, reason=f"expected a JSON object, got {type(data).__name__}")

        logger.warning("%s: failed to parse response as JSON: %s", self.__class__.__name__, raw[:200])
        return Unparseable(raw=raw, reason="invalid JSON")


def _outermost_object(text: str) -> str | None:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]
