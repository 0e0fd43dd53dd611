"""LLM provider client, factory, prompts and validated JSON completions."""

from .json_completion import JsonCompletion
from .llm_factory import LLMFactory, get_correction_llm, get_generation_llm
from .openrouter_client import OpenRouterClient
from .schemas import LLMClientError, MalformedOutputError

__all__ = [
    "JsonCompletion",
    "LLMFactory",
    "get_generation_llm",
    "get_correction_llm",
    "OpenRouterClient",
    "LLMClientError",
    "MalformedOutputError",
]
