"""Mapping of caller-facing errors to HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status

from ...core.errors import (
    CorpusUnavailableError,
    GenerationError,
    InsufficientVerifiedItemsError,
    InvalidInputError,
    PersistenceError,
    ProviderResponseError,
    ProviderUnavailableError,
    TrapSessionCompletedError,
    TrapSessionForbiddenError,
    TrapSessionNotFoundError,
)

RETRY_SHORTLY = "Servicio temporalmente no disponible, inténtalo de nuevo en unos minutos"


def to_http_exception(error: GenerationError) -> HTTPException:
    """Translate a pipeline error into an HTTPException."""
    if isinstance(error, InvalidInputError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))

    if isinstance(error, TrapSessionNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))

    if isinstance(error, TrapSessionForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))

    if isinstance(error, TrapSessionCompletedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))

    if isinstance(error, ProviderUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=RETRY_SHORTLY,
            headers={"Retry-After": str(max(1, round(error.retry_after)))},
        )

    if isinstance(error, CorpusUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=RETRY_SHORTLY)

    if isinstance(error, (InsufficientVerifiedItemsError, ProviderResponseError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))

    if isinstance(error, PersistenceError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="El resultado se generó pero no pudo guardarse",
        )

    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
