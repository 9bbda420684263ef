"""
OpenAI chat completion client.
Failures are raised as CompletionError so callers can answer the user softly.
"""

import logging
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError, RateLimitError

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """The completion API call failed."""


class RateLimitedError(CompletionError):
    """The completion API answered HTTP 429."""


class CompletionClient:
    """Thin wrapper around the OpenAI chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int,
        timeout: float = 50.0,
        base_url: Optional[str] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        # No client-side retries
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(self, messages: List[dict]) -> str:
        """
        Generate the assistant reply for a prompt window.

        Args:
            messages: Ordered {role, content} chat messages

        Returns:
            Generated text

        Raises:
            RateLimitedError: The API rate-limited the request
            CompletionError: Any other API or transport failure
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )
        except RateLimitError as e:
            logger.error(f"OpenAI rate limited the request: {e.body}")
            raise RateLimitedError(str(e)) from e
        except OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise CompletionError(str(e)) from e

        if not response.choices:
            raise CompletionError("OpenAI returned no choices")
        return response.choices[0].message.content or ""
