"""Concrete TextGenerator using the Groq API.

Hides the specifics of the Groq client library and translates its
failures into UpstreamError for classification.
"""

import logging
from typing import Dict

from groq import APIConnectionError, APIStatusError, APITimeoutError, AsyncGroq

from leadsight.domain.interfaces.text_generator import TextGenerator
from leadsight.domain.models.common import JSON_RESPONSE_FORMAT, ApiKeySecret, GenerationRequest
from leadsight.domain.models.errors import UpstreamError
from leadsight.infrastructure.ai.sdk_errors import extract_text, retry_after_from_response

logger = logging.getLogger(__name__)

DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"


class GroqClient(TextGenerator):
    """Groq implementation of the TextGenerator interface."""

    def __init__(self, timeout_s: float = 120.0):
        self.timeout_s = timeout_s
        self._clients: Dict[str, AsyncGroq] = {}
        logger.info("GroqClient initialized")

    def _client_for(self, api_key: ApiKeySecret) -> AsyncGroq:
        client = self._clients.get(api_key)
        if client is None:
            client = AsyncGroq(api_key=api_key, timeout=self.timeout_s, max_retries=0)
            self._clients[api_key] = client
        return client

    async def generate(self, request: GenerationRequest, api_key: ApiKeySecret) -> str:
        kwargs = {}
        if request.response_format == JSON_RESPONSE_FORMAT:
            kwargs['response_format'] = {"type": "json_object"}

        logger.debug(f"Sending request to Groq model: {request.model}")
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
            raise UpstreamError("Failed to extract text from Groq response")
        return text
