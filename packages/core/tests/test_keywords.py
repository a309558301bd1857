"""Tests for keyword extraction."""

from wtfy_core.keywords import MAX_KEYWORDS, KeywordExtractor
from wtfy_core.prompts import KEYWORDS_SYSTEM_PROMPT
from wtfy_core.providers.base import BaseLLMClient, Parsed, Unparseable


class _FixedLLM(BaseLLMClient):
    def __init__(self, response):
        self.response = response
        self.prompts = []

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        raise AssertionError("complete() is stubbed")

    def complete(self, system_prompt, user_prompt):
        self.prompts.append((system_prompt, user_prompt))
        return self.response


def test_returns_model_keywords():
    llm = _FixedLLM(Parsed({"keywords": ["django", "middleware"]}))
    assert KeywordExtractor(llm).extract("Django middleware crashes") == ["django", "middleware"]
    system_prompt, user_prompt = llm.prompts[0]
    assert system_prompt is KEYWORDS_SYSTEM_PROMPT
    assert "Django middleware crashes" in user_prompt


def test_trims_deduplicates_and_caps():
    raw = [" Django ", "django", "", 7, "celery", "redis", "rq", "flask", "fastapi"]
    keywords = KeywordExtractor(_FixedLLM(Parsed({"keywords": raw}))).extract("x" * 20)
    assert keywords == ["Django", "celery", "redis", "rq", "flask"]
    assert len(keywords) == MAX_KEYWORDS


def test_single_string_is_accepted():
    assert KeywordExtractor(_FixedLLM(Parsed({"keywords": "tracing"}))).extract("x" * 20) == ["tracing"]


def test_unparseable_answer_means_no_keywords():
    llm = _FixedLLM(Unparseable(raw="nope", reason="invalid JSON"))
    assert KeywordExtractor(llm).extract("x" * 20) == []


def test_wrong_shape_means_no_keywords():
    assert KeywordExtractor(_FixedLLM(Parsed({"keywords": {"a": 1}}))).extract("x" * 20) == []
    assert KeywordExtractor(_FixedLLM(Parsed({"terms": ["a"]}))).extract("x" * 20) == []
