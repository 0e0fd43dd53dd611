"""LLM client factory and per-provider circuit breakers.

Clients are cached by ``provider:model``. Breakers are cached by provider
name only, so every model served by one provider shares its health state
while distinct providers never affect each other.
"""

from __future__ import annotations

import structlog

from ...core.circuit_breaker import CircuitBreaker
from ...core.config import LLMConfig, settings
from .openrouter_client import OpenRouterClient

logger = structlog.get_logger()


class LLMFactory:
    """Factory for creating and caching LLM clients and their breakers.

    Example:
        >>> client = LLMFactory.create_client(settings.generation_llm_config)
        >>> breaker = LLMFactory.get_breaker("openrouter")
    """

    _clients: dict[str, OpenRouterClient] = {}
    _breakers: dict[str, CircuitBreaker] = {}

    @classmethod
    def create_client(cls, config: LLMConfig) -> OpenRouterClient:
        """Create or retrieve cached LLM client.

        Raises:
            ValueError: If provider is not supported
        """
        cache_key = f"{config.provider}:{config.model}"
        if cache_key in cls._clients:
            return cls._clients[cache_key]

        if config.provider != "openrouter":
            raise ValueError(
                f"Unknown provider: {config.provider}. Supported providers: openrouter"
            )

        logger.info(
            "llm_client_created",
            provider=config.provider,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        client = OpenRouterClient(config=config)
        cls._clients[cache_key] = client
        return client

    @classmethod
    def get_breaker(cls, provider: str) -> CircuitBreaker:
        """Get the process-lifetime breaker of a provider."""
        if provider not in cls._breakers:
            cls._breakers[provider] = CircuitBreaker(
                name=provider,
                failure_threshold=settings.CIRCUIT_BREAKER_THRESHOLD,
                timeout=settings.CIRCUIT_BREAKER_TIMEOUT,
            )
        return cls._breakers[provider]

    @classmethod
    def breaker_states(cls) -> dict[str, str]:
        """Current circuit state per provider."""
        return {name: breaker.state.value for name, breaker in cls._breakers.items()}

    @classmethod
    def clear_cache(cls) -> None:
        """Clear all cached clients and breakers."""
        cls._clients.clear()
        cls._breakers.clear()


def get_generation_llm() -> tuple[OpenRouterClient, CircuitBreaker]:
    """Get the client and breaker used for question batches."""
    config = settings.generation_llm_config
    return LLMFactory.create_client(config), LLMFactory.get_breaker(config.provider)


def get_correction_llm() -> tuple[OpenRouterClient, CircuitBreaker]:
    """Get the client and breaker used for written-answer corrections."""
    config = settings.correction_llm_config
    return LLMFactory.create_client(config), LLMFactory.get_breaker(config.provider)
