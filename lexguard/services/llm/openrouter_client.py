"""OpenRouter LLM client with retry logic.

OpenAI-compatible client with exponential backoff. The client knows nothing
about circuit breaking; callers wrap ``complete`` in the breaker of the
provider they talk to.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable

import structlog
from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from ...core.config import LLMConfig, settings
from .schemas import ChatMessage, LLMClientError

logger = structlog.get_logger()


class OpenRouterClient:
    """OpenRouter chat-completion client.

    Features:
    - Exponential backoff with jitter on rate limits, timeouts and 5xx
    - No retry on 400 Bad Request
    - Per-request timeout taken from the LLM config

    Example:
        >>> client = OpenRouterClient(config=settings.generation_llm_config)
        >>> text = await client.complete("Eres un redactor...", "Genera 5 preguntas...", 4000)
    """

    def __init__(
        self,
        config: LLMConfig,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int | None = None,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
    ) -> None:
        """Initialize OpenRouter client.

        Args:
            config: Model, temperature, token and timeout settings
            api_key: OpenRouter API key (defaults to settings.OPENROUTER_API_KEY)
            base_url: Base URL for OpenRouter API
            max_retries: Retries after the first attempt (defaults to settings)
            base_delay: First backoff delay (seconds)
            max_delay: Maximum delay between retries (seconds)
            exponential_base: Base for exponential backoff calculation

        Raises:
            ValueError: If API key is not provided
        """
        self.api_key = api_key or settings.OPENROUTER_API_KEY
        if not self.api_key:
            raise ValueError(
                "API key is required. Set OPENROUTER_API_KEY or pass api_key parameter."
            )

        self.config = config
        self.model = config.model
        self.base_url = base_url or settings.OPENROUTER_BASE_URL
        self.max_retries = settings.PROVIDER_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.timeout = float(config.timeout)

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=0,  # retries are handled here
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int | None = None,
    ) -> str:
        """Run one chat completion and return the raw assistant text.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            max_tokens: Token cap (defaults to the config's max_tokens)

        Returns:
            Assistant message content (may be empty)

        Raises:
            LLMClientError: If the request fails after all retries
        """
        messages = [
            ChatMessage(role="system", content=system_prompt).model_dump(),
            ChatMessage(role="user", content=user_prompt).model_dump(),
        ]
        tokens = max_tokens or self.config.max_tokens

        async def _execute() -> str:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                temperature=self.config.temperature,
                max_tokens=tokens,
                response_format={"type": "json_object"},
            )
            total_tokens = response.usage.total_tokens if response.usage else 0
            if not response.choices:
                # Upstream refusals and moderation blocks come back without choices
                logger.warning("llm_empty_choices", model=self.model, total_tokens=total_tokens)
                return ""
            choice = response.choices[0]
            logger.info(
                "llm_response",
                model=self.model,
                total_tokens=total_tokens,
                finish_reason=choice.finish_reason,
            )
            return choice.message.content or ""

        logger.info("llm_request", model=self.model, max_tokens=tokens)
        result: str = await self._retry_with_backoff(_execute)
        return result

    async def _retry_with_backoff(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Execute function with exponential backoff retry.

        Raises:
            LLMClientError: If all retries are exhausted or the error is not retriable
        """
        delay = self.base_delay
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                return await fn()

            # RateLimitError and APITimeoutError are subclasses of APIError
            except (RateLimitError, APITimeoutError) as e:
                last_error = e
                logger.warning(
                    "llm_transient_error",
                    model=self.model,
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1,
                )

            except APIError as e:
                last_error = e
                if getattr(e, "status_code", None) == 400:
                    logger.error("llm_bad_request", model=self.model, error=str(e))
                    raise LLMClientError(f"Bad request: {e}") from e
                logger.warning(
                    "llm_api_error",
                    model=self.model,
                    error=str(e)[:200],
                    attempt=attempt + 1,
                    max_attempts=self.max_retries + 1,
                )

            if attempt < self.max_retries:
                await self._sleep_with_backoff(delay)
                delay = min(delay * self.exponential_base, self.max_delay)

        raise LLMClientError(
            f"Maximum number of retries ({self.max_retries}) exceeded. Last error: {last_error}"
        ) from last_error

    async def _sleep_with_backoff(self, delay: float) -> None:
        jitter = 1.0 + random.random()
        actual_delay = min(delay, self.max_delay) * jitter
        logger.debug("llm_backoff", delay=round(actual_delay, 2))
        await asyncio.sleep(actual_delay)
