"""Vinexport AI orchestration API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from vinexport.api.config import Settings
from vinexport.core.ai.adapters import ProviderRegistry
from vinexport.core.ai.errors import (
    AdmissionRejectedError,
    AllProvidersFailedError,
    CircuitOpenError,
    InvalidTaskError,
    OrchestrationError,
    ProviderTimeoutError,
    RetriesExhaustedError,
    SchemaValidationError,
)
from vinexport.core.ai.guardrails import Guardrails
from vinexport.core.ai.orchestrator import AIOrchestrator
from vinexport.core.cache import CacheStats
from vinexport.core.diagnostics import ErrorReporter, format_error_message, format_provider_digest

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    providers: list[str]
    cache: CacheStats


# =============================================================================
# Error mapping
# =============================================================================


def _error_response(status_code: int, exc: OrchestrationError, **extra) -> JSONResponse:
    content = {"error": exc.code, "message": exc.message, "category": exc.category.value}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def _admission_rejected(request: Request, exc: AdmissionRejectedError) -> JSONResponse:
    return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, exc, reason=exc.reason)


async def _circuit_open(request: Request, exc: CircuitOpenError) -> JSONResponse:
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc, provider=exc.provider)


async def _timeout(request: Request, exc: ProviderTimeoutError) -> JSONResponse:
    return _error_response(status.HTTP_504_GATEWAY_TIMEOUT, exc)


async def _all_failed(request: Request, exc: AllProvidersFailedError) -> JSONResponse:
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc, digest=exc.digest)


async def _retries_exhausted(request: Request, exc: RetriesExhaustedError) -> JSONResponse:
    cause = exc.last_error if exc.last_error is not None else exc
    return _error_response(
        status.HTTP_502_BAD_GATEWAY,
        exc,
        message=format_error_message(cause, f"{exc.provider} failed after {exc.attempts} attempt(s)"),
        digest=format_provider_digest(exc.runs),
    )


async def _schema_invalid(request: Request, exc: SchemaValidationError) -> JSONResponse:
    errors = [{k: v for k, v in error.items() if k != "ctx"} for error in exc.errors]
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc, errors=errors)


async def _invalid_task(request: Request, exc: InvalidTaskError) -> JSONResponse:
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


async def _orchestration_error(request: Request, exc: OrchestrationError) -> JSONResponse:
    logger.error(f"Unhandled orchestration error: {exc.message}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)


# =============================================================================
# FastAPI App
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.orchestrator.registry.aclose()


def create_app(
    settings: Settings | None = None,
    registry: ProviderRegistry | None = None,
    guardrails: Guardrails | None = None,
) -> FastAPI:
    """Build the API with its orchestrator, guardrails, cache and reporter.

    Args:
        settings: Application settings (loaded from the environment if omitted)
        registry: Provider registry (built from settings if omitted)
        guardrails: Guardrails instance (built from settings if omitted)

    Returns:
        Configured FastAPI application
    """
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.api_title,
        description="Multi-provider AI orchestration for wine export analyses: "
        "guardrails, response cache, evidence verification and error diagnostics.",
        version=settings.api_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

    app.state.settings = settings
    app.state.orchestrator = AIOrchestrator(
        registry=registry if registry is not None else settings.build_registry(),
        guardrails=guardrails or Guardrails(settings.guardrails_config()),
        cache=settings.build_cache(),
        reporter=ErrorReporter(capacity=settings.error_history),
        chunk_max_chars=settings.chunk_max_chars,
    )

    # Resolved by the exception MRO, so subclasses win over OrchestrationError
    app.add_exception_handler(AdmissionRejectedError, _admission_rejected)
    app.add_exception_handler(CircuitOpenError, _circuit_open)
    app.add_exception_handler(ProviderTimeoutError, _timeout)
    app.add_exception_handler(AllProvidersFailedError, _all_failed)
    app.add_exception_handler(RetriesExhaustedError, _retries_exhausted)
    app.add_exception_handler(SchemaValidationError, _schema_invalid)
    app.add_exception_handler(InvalidTaskError, _invalid_task)
    app.add_exception_handler(OrchestrationError, _orchestration_error)

    from vinexport.api.analyses import router as analyses_router
    from vinexport.api.system import router as system_router

    app.include_router(analyses_router)
    app.include_router(system_router)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        orchestrator: AIOrchestrator = app.state.orchestrator
        return HealthResponse(
            status="ok",
            version=settings.api_version,
            providers=orchestrator.registry.names(),
            cache=orchestrator.cache.get_stats(),
        )

    return app


app = create_app()
