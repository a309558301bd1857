"""Tests for LLM client implementations.

Shared behaviour (_parse, _call_with_retry, complete) lives in BaseLLMClient
and is tested once via a stub. Provider tests cover only the SDK call.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from wtfy_core.providers.anthropic import AnthropicClient
from wtfy_core.providers.base import BaseLLMClient, Parsed, Unparseable
from wtfy_core.providers.factory import get_llm_client
from wtfy_core.providers.openai import OpenAIClient

VALID_JSON = json.dumps({"status": "fixed", "confidence": 90})


class _StubClient(BaseLLMClient):
    def __init__(self, raw=VALID_JSON):
        self.raw = raw

    def _call_api(self, system_prompt: str, user_prompt: str) -> str:
        return self.raw


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


class TestParse:
    def test_parses_json_object(self):
        result = _StubClient()._parse(VALID_JSON)
        assert result == Parsed(data={"status": "fixed", "confidence": 90})

    def test_strips_markdown_code_fences(self):
        result = _StubClient()._parse(f"```json\n{VALID_JSON}\n```")
        assert isinstance(result, Parsed)
        assert result.data["status"] == "fixed"

    def test_extracts_object_wrapped_in_prose(self):
        result = _StubClient()._parse(f"Here is my answer:\n{VALID_JSON}\nHope that helps.")
        assert isinstance(result, Parsed)
        assert result.data["confidence"] == 90

    def test_invalid_json_is_unparseable(self):
        result = _StubClient()._parse("not json at all")
        assert isinstance(result, Unparseable)
        assert result.reason == "invalid JSON"
        assert result.raw == "not json at all"

    def test_empty_response_is_unparseable(self):
        result = _StubClient()._parse("   ")
        assert isinstance(result, Unparseable)
        assert result.reason == "empty response"

    def test_array_is_not_an_object(self):
        result = _StubClient()._parse("[1, 2]")
        assert isinstance(result, Unparseable)
        assert "expected a JSON object" in result.reason


class TestComplete:
    def test_returns_parsed(self):
        assert isinstance(_StubClient().complete("sys", "user"), Parsed)

    def test_request_failure_is_unparseable(self):
        class _AlwaysFail(BaseLLMClient):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                raise RuntimeError("network error")

        with patch("wtfy_core.providers.base.time.sleep"):
            result = _AlwaysFail().complete("sys", "user")
        assert isinstance(result, Unparseable)
        assert "request failed" in result.reason

    def test_retries_on_transient_failure(self):
        call_count = 0

        class _FailOnceThenSucceed(BaseLLMClient):
            def _call_api(self, system_prompt: str, user_prompt: str) -> str:
                nonlocal call_count
                call_count += 1
                if call_count == 1:
                    raise RuntimeError("transient")
                return VALID_JSON

        with patch("wtfy_core.providers.base.time.sleep") as mock_sleep:
            result = _FailOnceThenSucceed().complete("sys", "user")
        assert isinstance(result, Parsed)
        assert call_count == 2
        mock_sleep.assert_called_once_with(BaseLLMClient.RETRY_DELAY_SECONDS)


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class TestOpenAIClient:
    def test_raises_import_error_without_sdk(self, mocker):
        mocker.patch("wtfy_core.providers.openai._OpenAI", None)
        with pytest.raises(ImportError, match="openai"):
            OpenAIClient(api_key="key")

    def test_requests_json_object_output(self, mocker):
        sdk = mocker.patch("wtfy_core.providers.openai._OpenAI")
        create = sdk.return_value.chat.completions.create
        create.return_value.choices = [MagicMock(message=MagicMock(content=VALID_JSON))]

        result = OpenAIClient(api_key="key").complete("sys", "user")

        assert isinstance(result, Parsed)
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == OpenAIClient.MODEL
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIClient.MODEL

    def test_model_override_and_no_sdk_retries(self, mocker):
        sdk = mocker.patch("wtfy_core.providers.openai._OpenAI")
        create = sdk.return_value.chat.completions.create
        create.return_value.choices = [MagicMock(message=MagicMock(content=VALID_JSON))]

        OpenAIClient(api_key="key", model="gpt-4o-mini", timeout=5).complete("sys", "user")

        assert sdk.call_args.kwargs == {"api_key": "key", "timeout": 5, "max_retries": 0}
        assert create.call_args.kwargs["model"] == "gpt-4o-mini"

    def test_truncated_answer_is_unparseable(self, mocker):
        mocker.patch("wtfy_core.providers.base.time.sleep")
        sdk = mocker.patch("wtfy_core.providers.openai._OpenAI")
        create = sdk.return_value.chat.completions.create
        create.return_value.choices = [MagicMock(finish_reason="length", message=MagicMock(content="{\"sta"))]

        result = OpenAIClient(api_key="key").complete("sys", "user")

        assert isinstance(result, Unparseable)
        assert create.call_count == 2


class TestAnthropicClient:
    def test_joins_text_blocks(self, mocker):
        from anthropic.types import TextBlock

        sdk = mocker.patch("anthropic.Anthropic")
        create = sdk.return_value.messages.create
        create.return_value.content = [TextBlock(type="text", text=VALID_JSON)]

        result = AnthropicClient(api_key="key").complete("sys", "user")

        assert isinstance(result, Parsed)
        assert create.call_args.kwargs["system"] == "sys"

    def test_model_is_claude(self):
        assert "claude" in AnthropicClient.MODEL

    def test_ignores_non_text_blocks(self, mocker):
        sdk = mocker.patch("anthropic.Anthropic")
        create = sdk.return_value.messages.create
        create.return_value.stop_reason = "end_turn"
        create.return_value.content = [MagicMock(type="thinking"), MagicMock(type="text", text=VALID_JSON)]

        result = AnthropicClient(api_key="key", model="claude-x").complete("sys", "user")

        assert result == Parsed({"status": "fixed", "confidence": 90})
        assert create.call_args.kwargs["model"] == "claude-x"


class TestFactory:
    def test_openai(self, mocker):
        mocker.patch("wtfy_core.providers.openai._OpenAI")
        client = get_llm_client({"model": "openai", "openai_api_key": "sk"})
        assert isinstance(client, OpenAIClient)

    def test_anthropic(self, mocker):
        mocker.patch("anthropic.Anthropic")
        client = get_llm_client({"model": "anthropic", "anthropic_api_key": "ak"})
        assert isinstance(client, AnthropicClient)

    def test_passes_model_and_timeout(self, mocker):
        sdk = mocker.patch("wtfy_core.providers.openai._OpenAI")
        client = get_llm_client(
            {"model": "openai", "openai_api_key": "sk", "llm_model": "gpt-4.1", "llm_timeout_seconds": 30}
        )
        assert client.model == "gpt-4.1"
        assert sdk.call_args.kwargs["timeout"] == 30.0

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown model provider"):
            get_llm_client({"model": "llama"})
