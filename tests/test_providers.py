"""
Unit tests for provider backends.

SDK clients are mocked; errors are built from real SDK exception types so
classification follows what the APIs actually raise.
"""

from unittest.mock import Mock, patch

import anthropic
import httpx
import openai
import pytest

from academic_workflow.core.errors import ProviderError
from academic_workflow.core.pricing import TaskType
from academic_workflow.providers import (
    AnthropicProvider,
    OpenAIProvider,
    classify_status,
    system_prompt_for,
)
from academic_workflow.providers.base import DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"


def _status_error(error_cls, url, status, headers=None):
    request = httpx.Request("POST", url)
    response = httpx.Response(status, headers=headers or {}, request=request)
    return error_cls("upstream said no", response=response, body=None)


class TestClassification:
    """Test retryable vs non-retryable classification."""

    @pytest.mark.parametrize("status", [None, 429, 500, 502, 503])
    def test_retryable(self, status):
        assert classify_status(status) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_not_retryable(self, status):
        assert classify_status(status) is False

    def test_system_prompt_per_task(self):
        assert "researcher" in system_prompt_for(TaskType.RESEARCH)
        assert "reviewer" in system_prompt_for(TaskType.REVIEW)
        assert system_prompt_for(TaskType.OUTLINE) != system_prompt_for(TaskType.WRITING)


class TestOpenAIProvider:
    """Test OpenAI provider behavior."""

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_init(self, mock_openai_class):
        provider = OpenAIProvider(api_key="sk-test")

        assert provider.name == "openai"
        assert provider.model == "gpt-4o"
        assert provider.is_available()
        assert provider.timeout == DEFAULT_TIMEOUT
        mock_openai_class.assert_called_once_with(api_key="sk-test", timeout=DEFAULT_TIMEOUT, max_retries=0)

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_timeout_never_unbounded(self, mock_openai_class):
        OpenAIProvider(api_key="sk-test", timeout=None)
        OpenAIProvider(api_key="sk-test", timeout=15.0)

        timeouts = [call.kwargs["timeout"] for call in mock_openai_class.call_args_list]
        assert timeouts == [DEFAULT_TIMEOUT, 15.0]

    def test_real_client_has_finite_timeout(self):
        provider = OpenAIProvider(api_key="sk-test")

        assert provider.client.timeout == DEFAULT_TIMEOUT

    def test_missing_api_key(self):
        with pytest.raises(ValueError, match="openai API key is required"):
            OpenAIProvider(api_key="  ")

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_complete(self, mock_openai_class):
        mock_response = Mock()
        mock_response.id = "chatcmpl-1"
        mock_response.usage.prompt_tokens = 100
        mock_response.usage.completion_tokens = 50
        mock_response.choices = [Mock()]
        mock_response.choices[0].message.content = "A literature review"
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = mock_response
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test", model="gpt-4o-mini")
        response = provider.complete("Review this", TaskType.REVIEW, temperature=0.3)

        assert response.content == "A literature review"
        assert response.usage.input_tokens == 100
        assert response.usage.output_tokens == 50
        assert response.cost == pytest.approx(0.00125)
        assert response.request_id == "chatcmpl-1"

        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_tokens"] == DEFAULT_MAX_TOKENS
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][0] == {"role": "system", "content": system_prompt_for(TaskType.REVIEW)}
        assert kwargs["messages"][1] == {"role": "user", "content": "Review this"}

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_rate_limit_is_retryable(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = _status_error(
            openai.RateLimitError, OPENAI_URL, 429, {"retry-after": "7"}
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        with pytest.raises(ProviderError) as exc_info:
            provider.complete("hello", TaskType.RESEARCH)

        assert exc_info.value.provider == "openai"
        assert exc_info.value.status_code == 429
        assert exc_info.value.retryable is True
        assert exc_info.value.retry_after == 7.0

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_bad_request_not_retryable(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = _status_error(
            openai.BadRequestError, OPENAI_URL, 400
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        with pytest.raises(ProviderError) as exc_info:
            provider.complete("hello", TaskType.RESEARCH)

        assert exc_info.value.status_code == 400
        assert exc_info.value.retryable is False

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_connection_error_is_retryable(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=httpx.Request("POST", OPENAI_URL)
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        with pytest.raises(ProviderError) as exc_info:
            provider.complete("hello", TaskType.RESEARCH)

        assert exc_info.value.status_code is None
        assert exc_info.value.retryable is True

    @patch('academic_workflow.providers.openai_provider.OpenAI')
    def test_missing_usage(self, mock_openai_class):
        mock_response = Mock()
        mock_response.usage = None
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = mock_response
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        with pytest.raises(ProviderError, match="missing usage"):
            provider.complete("hello", TaskType.RESEARCH)


class TestAnthropicProvider:
    """Test Anthropic provider behavior."""

    @patch('academic_workflow.providers.anthropic_provider.anthropic.Anthropic')
    def test_init(self, mock_anthropic_class):
        provider = AnthropicProvider(api_key="sk-ant", timeout=None)

        assert provider.model == "claude-sonnet-4-5-20250929"
        mock_anthropic_class.assert_called_once_with(api_key="sk-ant", timeout=DEFAULT_TIMEOUT, max_retries=0)

    def test_real_client_has_finite_timeout(self):
        provider = AnthropicProvider(api_key="sk-ant", timeout=30.0)

        assert provider.client.timeout == 30.0

    @patch('academic_workflow.providers.anthropic_provider.anthropic.Anthropic')
    def test_complete(self, mock_anthropic_class):
        mock_response = Mock()
        mock_response.id = "msg_1"
        mock_response.usage.input_tokens = 1000
        mock_response.usage.output_tokens = 1000
        mock_response.content = [
            Mock(type="thinking"),
            Mock(type="text", text="An outline"),
        ]
        mock_client = Mock()
        mock_client.messages.create.return_value = mock_response
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant")
        response = provider.complete("Outline this", TaskType.OUTLINE, max_tokens=512)

        assert response.content == "An outline"
        assert response.usage.total_tokens == 2000
        assert response.cost == pytest.approx(0.018)

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-sonnet-4-5-20250929"
        assert kwargs["max_tokens"] == 512
        assert kwargs["system"] == system_prompt_for(TaskType.OUTLINE)
        assert kwargs["messages"] == [{"role": "user", "content": "Outline this"}]

    @patch('academic_workflow.providers.anthropic_provider.anthropic.Anthropic')
    def test_overloaded_is_retryable(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create.side_effect = _status_error(
            anthropic.InternalServerError, ANTHROPIC_URL, 529
        )
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant")
        with pytest.raises(ProviderError) as exc_info:
            provider.complete("hello", TaskType.WRITING)

        assert exc_info.value.provider == "anthropic"
        assert exc_info.value.status_code == 529
        assert exc_info.value.retryable is True
        assert exc_info.value.retry_after is None

    @patch('academic_workflow.providers.anthropic_provider.anthropic.Anthropic')
    def test_auth_error_not_retryable(self, mock_anthropic_class):
        mock_client = Mock()
        mock_client.messages.create.side_effect = _status_error(
            anthropic.AuthenticationError, ANTHROPIC_URL, 401
        )
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant")
        with pytest.raises(ProviderError) as exc_info:
            provider.complete("hello", TaskType.WRITING)

        assert exc_info.value.retryable is False
