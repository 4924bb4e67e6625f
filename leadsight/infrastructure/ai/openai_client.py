"""Concrete TextGenerator using the OpenAI SDK.

Serves both OpenAI and any OpenAI-compatible endpoint. Gemini is reached
through Google's OpenAI-compatible base URL, so one adapter covers the
default provider and OpenAI itself.
"""

import logging
from typing import Dict, Optional

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from leadsight.domain.interfaces.text_generator import TextGenerator
from leadsight.domain.models.common import JSON_RESPONSE_FORMAT, ApiKeySecret, GenerationRequest
from leadsight.domain.models.errors import UpstreamError
from leadsight.infrastructure.ai.sdk_errors import extract_text, retry_after_from_response

logger = logging.getLogger(__name__)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class OpenAICompatibleClient(TextGenerator):
    """Performs single chat-completion attempts, one SDK client per key."""

    def __init__(self, base_url: Optional[str] = None, timeout_s: float = 120.0):
        """Initializes the adapter.

        Args:
            base_url: Endpoint root; None means api.openai.com.
            timeout_s: Per-request timeout passed to the SDK.
        """
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._clients: Dict[str, AsyncOpenAI] = {}
        logger.info(f"OpenAICompatibleClient initialized (base_url={base_url or 'default'})")

    def _client_for(self, api_key: ApiKeySecret) -> AsyncOpenAI:
        client = self._clients.get(api_key)
        if client is None:
            # SDK retries are disabled; the resilient caller owns retrying
            client = AsyncOpenAI(
                api_key=api_key, base_url=self.base_url,
                timeout=self.timeout_s, max_retries=0,
            )
            self._clients[api_key] = client
        return client

    async def generate(self, request: GenerationRequest, api_key: ApiKeySecret) -> str:
        """Sends one chat completion; translates SDK failures into UpstreamError."""
        kwargs = {}
        if request.response_format == JSON_RESPONSE_FORMAT:
            kwargs['response_format'] = {"type": "json_object"}

        logger.debug(f"Sending request to model: {request.model}")
        try:
            completion = await self._client_for(api_key).chat.completions.create(
                model=request.model,
                messages=[
                    {'role': 'system', 'content': request.system_instruction},
                    {'role': 'user', 'content': request.user_prompt},
                ],
                temperature=request.temperature,
                **kwargs,
            )
        except APIStatusError as e:
            raise UpstreamError(
                str(e), status_code=e.status_code,
                retry_after=retry_after_from_response(e.response),
            ) from e
        except APITimeoutError as e:
            raise UpstreamError(f"Upstream timeout: {e}") from e
        except APIConnectionError as e:
            raise UpstreamError(f"Upstream network error: {e}") from e

        text = extract_text(completion)
        if text is None:
            raise UpstreamError("Failed to extract text from upstream response")
        return text
