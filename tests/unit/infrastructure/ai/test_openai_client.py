import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError

from leadsight.domain.models.common import ApiKeySecret, GenerationRequest
from leadsight.domain.models.errors import AuthFailure, RateLimited, Transient, UpstreamError
from leadsight.infrastructure.ai.openai_client import GEMINI_OPENAI_BASE_URL, OpenAICompatibleClient
from leadsight.infrastructure.resilience.error_classifier import classify

from conftest import run

REQUEST = httpx.Request("POST", "https://example.test/v1/chat/completions")


def completion_with(content):
    choice = MagicMock()
    choice.message.content = content
    completion = MagicMock()
    completion.choices = [choice]
    return completion


@pytest.fixture
def mock_async_client():
    client = MagicMock(spec=AsyncOpenAI)
    client.chat = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion_with('  {"prospectInsights": []}  '))
    return client


@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_generate_sends_chat_completion(mock_constructor, mock_async_client, sample_request):
    mock_constructor.return_value = mock_async_client
    client = OpenAICompatibleClient(base_url=GEMINI_OPENAI_BASE_URL, timeout_s=30.0)

    text = run(client.generate(sample_request, ApiKeySecret("secret-1")))

    assert text == '{"prospectInsights": []}'
    mock_constructor.assert_called_once_with(
        api_key="secret-1", base_url=GEMINI_OPENAI_BASE_URL, timeout=30.0, max_retries=0,
    )
    kwargs = mock_async_client.chat.completions.create.call_args.kwargs
    assert kwargs['model'] == "test-model"
    assert kwargs['messages'] == [
        {'role': 'system', 'content': "Be helpful."},
        {'role': 'user', 'content': "Analyze these prospects"},
    ]
    assert kwargs['temperature'] == 0.7
    assert kwargs['response_format'] == {"type": "json_object"}


@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_plain_text_request_omits_response_format(mock_constructor, mock_async_client):
    mock_constructor.return_value = mock_async_client
    request = GenerationRequest(
        model="m", system_instruction="s", user_prompt="u", response_format="text/plain"
    )

    run(OpenAICompatibleClient().generate(request, ApiKeySecret("k")))

    assert 'response_format' not in mock_async_client.chat.completions.create.call_args.kwargs


@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_one_sdk_client_per_key(mock_constructor, mock_async_client, sample_request):
    mock_constructor.return_value = mock_async_client
    client = OpenAICompatibleClient()

    for key in ("a", "b", "a"):
        run(client.generate(sample_request, ApiKeySecret(key)))

    assert [c.kwargs['api_key'] for c in mock_constructor.call_args_list] == ["a", "b"]


@pytest.mark.parametrize("content", [None, "", "   "])
@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_empty_reply_is_an_upstream_error(mock_constructor, mock_async_client, sample_request, content):
    mock_constructor.return_value = mock_async_client
    mock_async_client.chat.completions.create.return_value = completion_with(content)

    with pytest.raises(UpstreamError, match="Failed to extract text"):
        run(OpenAICompatibleClient().generate(sample_request, ApiKeySecret("k")))


@pytest.mark.parametrize(
    "sdk_error, expected_kind",
    [
        (
            RateLimitError(
                "Resource has been exhausted",
                response=httpx.Response(429, headers={"retry-after": "7"}, request=REQUEST),
                body=None,
            ),
            RateLimited,
        ),
        (APITimeoutError(request=REQUEST), Transient),
        (APIConnectionError(message="Connection refused", request=REQUEST), Transient),
    ]
)
@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_sdk_errors_become_classifiable(mock_constructor, mock_async_client, sample_request, sdk_error, expected_kind):
    mock_constructor.return_value = mock_async_client
    mock_async_client.chat.completions.create.side_effect = sdk_error

    with pytest.raises(UpstreamError) as exc_info:
        run(OpenAICompatibleClient().generate(sample_request, ApiKeySecret("k")))

    assert exc_info.value.__cause__ is sdk_error
    assert isinstance(classify(exc_info.value), expected_kind)


@patch('leadsight.infrastructure.ai.openai_client.AsyncOpenAI')
def test_rate_limit_keeps_status_and_retry_after(mock_constructor, mock_async_client, sample_request):
    mock_constructor.return_value = mock_async_client
    mock_async_client.chat.completions.create.side_effect = RateLimitError(
        "quota", response=httpx.Response(429, headers={"retry-after": "7"}, request=REQUEST), body=None,
    )

    with pytest.raises(UpstreamError) as exc_info:
        run(OpenAICompatibleClient().generate(sample_request, ApiKeySecret("k")))

    assert exc_info.value.status_code == 429
    assert classify(exc_info.value).retry_after == 7.0


def test_classifier_reads_bad_key_message_on_400():
    error = UpstreamError("API key not valid. Please pass a valid API key.", status_code=400)
    assert isinstance(classify(error), AuthFailure)
