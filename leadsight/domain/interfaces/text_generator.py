"""Interface for upstream text-generation endpoints.

Defines the contract the resilient caller uses to perform one attempt with
one credential. Implementations hide the SDK and translate its failures.
"""

import abc

from leadsight.domain.models.common import ApiKeySecret, GenerationRequest


class TextGenerator(abc.ABC):
    """Abstract Base Class for a single-attempt text generation call."""

    @abc.abstractmethod
    async def generate(self, request: GenerationRequest, api_key: ApiKeySecret) -> str:
        """Performs exactly one upstream call using the given key.

        Args:
            request: What to generate.
            api_key: The credential secret to authenticate with.

        Returns:
            The generated text, stripped of surrounding whitespace.

        Raises:
            UpstreamError: With the status code and message the upstream exposed.
            Exception: Anything else the SDK raises; the caller classifies it.
        """
        pass
