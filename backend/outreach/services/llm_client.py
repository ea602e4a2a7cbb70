"""
Anthropic Claude client shared by the company enricher and the prospect scorer.

Transient API errors (rate limits, timeouts, 5xx) are retried with
exponential backoff; everything else propagates to the caller.
"""

import json
import logging
import re
from typing import Any, Optional

import anthropic
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from outreach.config import settings

logger = logging.getLogger(__name__)


def is_retryable(exc: BaseException) -> bool:
    """Return True for transient API errors worth retrying."""
    if isinstance(exc, (anthropic.RateLimitError, anthropic.APIConnectionError, anthropic.InternalServerError)):
        return True
    status_code = getattr(exc, "status_code", None)
    return status_code in (429, 500, 502, 503, 504, 529)


class LLMClient:
    """Thin async wrapper around anthropic.AsyncAnthropic."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, max_tokens: int = 4096):
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.model = model or settings.ENRICHER_MODEL
        self.max_tokens = max_tokens
        self._client = anthropic.AsyncAnthropic(api_key=self.api_key) if self.api_key else None

    def is_available(self) -> bool:
        return self._client is not None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Send a single-turn prompt and return the text of the reply."""
        if not self._client:
            raise RuntimeError("ANTHROPIC_API_KEY not configured")

        message = await self._client.messages.create(
            model=self.model,
            max_tokens=max_tokens or self.max_tokens,
            temperature=0,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(block.text for block in message.content if getattr(block, "type", "") == "text")

    @staticmethod
    def parse_json(response: str, expect: str = "object") -> Any:
        """
        Extract the first JSON object (or array) from a model reply.

        Handles markdown code fences and leading/trailing prose.
        Raises ValueError when nothing parseable is found.
        """
        if not response:
            raise ValueError("Empty response")

        text = response.strip()
        fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
        if fenced:
            text = fenced.group(1).strip()

        pattern = r"\[[\s\S]*\]" if expect == "array" else r"\{[\s\S]*\}"
        match = re.search(pattern, text)
        if not match:
            raise ValueError(f"No JSON {expect} found in response")

        return json.loads(match.group(0))
