"""LexGuard - FastAPI Application Entry Point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.v1.dependencies import get_embedding_service
from .api.v1.endpoints.corrections import router as corrections_router
from .api.v1.endpoints.generation import router as generation_router
from .api.v1.endpoints.traps import router as traps_router
from .api.v1.schemas import HealthResponse
from .core.config import settings
from .core.logging_config import configure_logging
from .database.session import engine
from .services.embedding.embedding_service import EmbeddingError
from .services.llm.llm_factory import LLMFactory

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging()
    logger.info(
        "service_starting",
        port=settings.API_PORT,
        generation_model=settings.GENERATION_LLM_MODEL,
        correction_model=settings.CORRECTION_LLM_MODEL,
        prompt_version=settings.PROMPT_VERSION,
    )
    if settings.EMBEDDING_WARM_UP:
        try:
            await get_embedding_service().warm_up()
        except EmbeddingError as e:
            # Semantic retrieval falls back to full-text search until the model loads
            logger.warning("embedding_warm_up_failed", error=str(e))

    yield

    await engine.dispose()
    logger.info("service_stopped")


app = FastAPI(
    title="LexGuard API",
    description="Verified generation of legal multiple-choice questions and answer corrections",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/v1/health", tags=["Health"], response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Service health, including the state of each provider circuit."""
    return HealthResponse(
        status="healthy",
        service="lexguard",
        version=__version__,
        environment="development" if settings.DEBUG else "production",
        provider_circuits=LLMFactory.breaker_states(),
    )


app.include_router(generation_router, prefix="/api")
app.include_router(corrections_router, prefix="/api")
app.include_router(traps_router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lexguard.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
