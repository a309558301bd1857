from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wtfy_core.prompts import KEYWORDS_SYSTEM_PROMPT, build_keywords_prompt
from wtfy_core.providers.base import Parsed

if TYPE_CHECKING:
    from wtfy_core.providers.base import BaseLLMClient

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 5


class KeywordExtractor:
    """Derive commit-search terms from an issue description.

    An empty list means "do not narrow the commit search" and is what the
    caller gets when the model's answer is unusable.
    """

    def __init__(self, llm: BaseLLMClient):
        self._llm = llm

    def extract(self, description: str) -> list[str]:
        response = self._llm.complete(KEYWORDS_SYSTEM_PROMPT, build_keywords_prompt(description))
        if not isinstance(response, Parsed):
            logger.warning("Keyword extraction failed (%s); searching without keywords", response.reason)
            return []

        raw = response.data.get("keywords")
        if isinstance(raw, str):
            raw = [raw]
        if not isinstance(raw, list):
            return []

        keywords: list[str] = []
        seen: set[str] = set()
        for term in raw:
            if not isinstance(term, str):
                continue
            term = term.strip()
            if not term or term.lower() in seen:
                continue
            seen.add(term.lower())
            keywords.append(term)
            if len(keywords) == MAX_KEYWORDS:
                break

        logger.info("Extracted keywords: %s", keywords)
        return keywords
