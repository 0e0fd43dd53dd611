"""Tests for the two-attempt JSON completion state machine."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from lexguard.core.circuit_breaker import CircuitState
from lexguard.core.errors import ProviderUnavailableError
from lexguard.models.items import RawQuestionBatch
from lexguard.services.llm.json_completion import (
    CORRECTIVE_TEMPLATE,
    JsonCompletion,
    parse_json_output,
    strip_code_fences,
)
from lexguard.services.llm.schemas import LLMClientError, MalformedOutputError


@pytest.mark.unit
class TestParsing:
    def test_strip_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_text_is_untouched(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parse_fenced_batch(self, factories):
        raw = "```json\n" + factories.questions_json(factories.question()) + "\n```"

        batch = parse_json_output(raw, RawQuestionBatch)

        assert len(batch.questions) == 1
        assert batch.questions[0].citation.law == "LPAC"


@pytest.mark.unit
class TestJsonCompletion:
    """JsonCompletion.complete attempts and breaker accounting."""

    @pytest.mark.asyncio
    async def test_valid_first_attempt(self, mock_provider, breaker, factories):
        mock_provider.complete = AsyncMock(return_value=factories.questions_json(factories.question()))

        batch = await JsonCompletion(mock_provider, breaker).complete(
            "sys", "user", RawQuestionBatch, max_tokens=4000
        )

        assert len(batch.questions) == 1
        mock_provider.complete.assert_awaited_once_with("sys", "user", 4000)

    @pytest.mark.asyncio
    async def test_corrective_attempt_recovers(self, mock_provider, breaker, factories):
        """Given invalid JSON first, When retried, Then the corrective prompt carries the error."""
        mock_provider.complete = AsyncMock(
            side_effect=["esto no es JSON", factories.questions_json(factories.question())]
        )

        batch = await JsonCompletion(mock_provider, breaker).complete("sys", "user", RawQuestionBatch)

        assert len(batch.questions) == 1
        second_prompt = mock_provider.complete.await_args_list[1].args[1]
        assert second_prompt.startswith(CORRECTIVE_TEMPLATE.split("{error}")[0])
        assert second_prompt.endswith("Prompt original:\nuser")

    @pytest.mark.asyncio
    async def test_two_invalid_attempts_raise(self, mock_provider, breaker):
        mock_provider.complete = AsyncMock(return_value='{"questions": []}')

        with pytest.raises(MalformedOutputError) as exc_info:
            await JsonCompletion(mock_provider, breaker).complete("sys", "user", RawQuestionBatch)

        assert exc_info.value.attempts == 2
        assert mock_provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_output_is_not_a_breaker_failure(self, mock_provider, breaker):
        mock_provider.complete = AsyncMock(return_value="nope")

        for _ in range(3):
            with pytest.raises(MalformedOutputError):
                await JsonCompletion(mock_provider, breaker).complete("s", "u", RawQuestionBatch)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_transport_failure_counts_against_breaker(self, mock_provider, breaker):
        mock_provider.complete = AsyncMock(side_effect=LLMClientError("503"))

        with pytest.raises(LLMClientError):
            await JsonCompletion(mock_provider, breaker).complete("s", "u", RawQuestionBatch)

        assert breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_breaker_skips_provider(self, mock_provider, breaker):
        """Given an open circuit, When completing, Then the provider is never called."""
        for _ in range(breaker.failure_threshold):
            breaker.on_failure()

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await JsonCompletion(mock_provider, breaker).complete("s", "u", RawQuestionBatch)

        assert exc_info.value.provider == "test-provider"
        mock_provider.complete.assert_not_awaited()
