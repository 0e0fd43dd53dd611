"""Errors and message shapes for the LLM service."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """Single chat message."""

    role: Literal["system", "user", "assistant"] = Field(..., description="Message role")
    content: str = Field(..., description="Message content")


class LLMClientError(Exception):
    """Transport, rate-limit or timeout failure after the client's own retries."""

    pass


class MalformedOutputError(Exception):
    """Provider output failed schema validation on both attempts.

    Attributes:
        attempts: Number of provider calls made
        last_error: Validation message of the final attempt
    """

    def __init__(self, attempts: int, last_error: str) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Invalid JSON after {attempts} attempts: {last_error}")
