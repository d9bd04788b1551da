"""Chat-completion adapter over the OpenAI SDK with timeout and bounded retry."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from promptarena.config import settings

logger = logging.getLogger(__name__)

BACKOFF_BASE_SECONDS = 0.5


class ChatClient(Protocol):
    async def chat_completion(
        self,
        model: str,
        messages: list[dict[str, str]],
        options: dict[str, Any] | None = None,
    ) -> str: ...


ChatClientFactory = Callable[[str], ChatClient]


def is_retriable(exc: BaseException) -> bool:
    """Timeouts, rate limits and provider 5xx are worth another attempt."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, openai.APITimeoutError)):
        return True
    if isinstance(exc, openai.RateLimitError):
        return True
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code == 429 or exc.status_code >= 500
    return False


class OpenAIChatClient:
    """Calls ``chat.completions.create`` and returns the first choice's text.

    ``max_retries`` counts retries after the first attempt; backoff starts at
    500ms and doubles. Non-retriable errors propagate immediately.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        client: AsyncOpenAI | None = None,
    ):
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self.max_retries = max(0, max_retries if max_retries is not None else settings.llm_max_retries)
        self._sleep = sleep
        # Retries are ours; the SDK's own retry loop is disabled
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url or settings.llm_base_url,
            max_retries=0,
        )

    async def chat_completion(
        self,
        model: str,
        messages: list[dict[str, str]],
        options: dict[str, Any] | None = None,
    ) -> str:
        attempt = 0
        while True:
            try:
                response = await asyncio.wait_for(
                    self._client.chat.completions.create(
                        model=model,
                        messages=messages,
                        timeout=self.timeout,
                        **(options or {}),
                    ),
                    timeout=self.timeout,
                )
                if not response.choices:
                    return ""
                return response.choices[0].message.content or ""
            except Exception as exc:
                if attempt >= self.max_retries or not is_retriable(exc):
                    raise
                delay = BACKOFF_BASE_SECONDS * (2**attempt)
                logger.warning(
                    "LLM call to %s failed (%s), retrying in %.1fs (%d/%d)",
                    model,
                    type(exc).__name__,
                    delay,
                    attempt + 1,
                    self.max_retries,
                )
                await self._sleep(delay)
                attempt += 1


def openai_client_factory(api_key: str) -> OpenAIChatClient:
    return OpenAIChatClient(api_key)
