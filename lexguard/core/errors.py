"""Caller-facing error taxonomy.

Only these errors cross the service boundary. Transient provider failures and
individual verification rejections are recovered inside the generation loop
and surface, at most, as a smaller yield.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for errors surfaced to callers of the generation service."""

    pass


class InvalidInputError(GenerationError):
    """Raised for a malformed topic id or an out-of-range count/difficulty."""

    pass


class ProviderUnavailableError(GenerationError):
    """Raised when a provider's circuit breaker rejects the call.

    Attributes:
        provider: Name of the provider whose circuit is open
        retry_after: Seconds until the breaker allows a probe call
    """

    def __init__(self, provider: str, retry_after: float = 0.0) -> None:
        self.provider = provider
        self.retry_after = max(retry_after, 0.0)
        super().__init__(
            f"Provider '{provider}' temporarily unavailable, retry in {self.retry_after:.0f}s"
        )


class CorpusUnavailableError(GenerationError):
    """Raised when the corpus store cannot be reached."""

    pass


class InsufficientVerifiedItemsError(GenerationError):
    """Raised when every generation round finished with zero accepted items.

    Attributes:
        topic_id: Topic the batch was requested for
        rounds: Number of provider rounds attempted
    """

    def __init__(self, topic_id: str, rounds: int) -> None:
        self.topic_id = topic_id
        self.rounds = rounds
        super().__init__(
            f"No verified items for topic {topic_id} after {rounds} rounds; "
            "the topic context may be empty"
        )


class PersistenceError(GenerationError):
    """Raised when the verified batch could not be stored."""

    pass


class ProviderResponseError(GenerationError):
    """Raised when a single-shot provider call (correction) yields no usable output."""

    pass


class TrapSessionNotFoundError(GenerationError):
    """Raised when a trap exercise id does not exist."""

    pass


class TrapSessionForbiddenError(GenerationError):
    """Raised when a trap exercise is graded by someone other than its requester."""

    pass


class TrapSessionCompletedError(GenerationError):
    """Raised when a trap exercise that was already graded is submitted again."""

    pass
