"""Schema-validated JSON completions with one corrective retry.

Every call runs through a small state machine:

    FIRST_ATTEMPT -> validate -> CORRECTIVE_ATTEMPT -> validate -> FAILED

Each provider call passes through the provider's circuit breaker. Invalid
JSON is a content-quality problem, not a provider failure, so it never
counts against the breaker.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Protocol, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from ...core.circuit_breaker import CircuitBreaker
from .schemas import MalformedOutputError

logger = structlog.get_logger()

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)

CORRECTIVE_TEMPLATE = (
    "Tu respuesta anterior no era JSON válido. Responde SOLO con JSON.\n\n"
    "Error de validación: {error}\n\n"
    "Prompt original:\n{prompt}"
)


class TextCompleter(Protocol):
    """Anything that can turn a prompt pair into raw text."""

    async def complete(
        self, system_prompt: str, user_prompt: str, max_tokens: int | None = None
    ) -> str: ...


class AttemptState(str, Enum):
    """Position in the two-attempt state machine."""

    FIRST_ATTEMPT = "first_attempt"
    CORRECTIVE_ATTEMPT = "corrective_attempt"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    match = _FENCE_RE.match(raw)
    return match.group(1) if match else raw.strip()


def parse_json_output(raw: str, schema: type[SchemaT]) -> SchemaT:
    """Validate raw provider text against a schema.

    Raises:
        ValidationError: If the text is not JSON or does not fit the schema
    """
    return schema.model_validate_json(strip_code_fences(raw))


def _summarize(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'root'}: {err['msg']}"
        for err in error.errors()[:5]
    )


class JsonCompletion:
    """Runs a prompt through a provider and returns a validated model.

    Example:
        >>> completion = JsonCompletion(client, breaker)
        >>> batch = await completion.complete(system, user, RawQuestionBatch, max_tokens=4000)
    """

    def __init__(self, client: TextCompleter, breaker: CircuitBreaker) -> None:
        self.client = client
        self.breaker = breaker

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: type[SchemaT],
        max_tokens: int | None = None,
    ) -> SchemaT:
        """Request JSON matching ``schema``, correcting once on invalid output.

        Raises:
            ProviderUnavailableError: If the breaker rejects an attempt
            LLMClientError: If a provider call fails after client retries
            MalformedOutputError: If both attempts return invalid JSON
        """
        state = AttemptState.FIRST_ATTEMPT
        prompt = user_prompt
        attempts = 0
        last_error = ""
        result: SchemaT | None = None

        while state in (AttemptState.FIRST_ATTEMPT, AttemptState.CORRECTIVE_ATTEMPT):
            attempts += 1
            raw = await self.breaker.call(self.client.complete, system_prompt, prompt, max_tokens)
            try:
                result = parse_json_output(raw, schema)
            except ValidationError as e:
                last_error = _summarize(e)
                logger.warning(
                    "llm_output_invalid",
                    schema=schema.__name__,
                    attempt=attempts,
                    state=state.value,
                    error=last_error[:300],
                )
                if state == AttemptState.FIRST_ATTEMPT:
                    state = AttemptState.CORRECTIVE_ATTEMPT
                    prompt = CORRECTIVE_TEMPLATE.format(error=last_error, prompt=user_prompt)
                else:
                    state = AttemptState.FAILED
            else:
                state = AttemptState.SUCCEEDED

        if state == AttemptState.FAILED or result is None:
            raise MalformedOutputError(attempts, last_error)
        return result
