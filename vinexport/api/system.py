"""Operational endpoints: diagnostics, cost ledgers, cache and provider self-test."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from vinexport.core.ai.orchestrator import AIOrchestrator
from vinexport.core.ai.types import LLMRun
from vinexport.core.cache import CacheStats
from vinexport.core.diagnostics import ClassifiedError, format_provider_digest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


class DiagnosticsResponse(BaseModel):
    """Recent provider errors and the operator report."""

    counts: dict[str, int] = Field(description="Errors per category")
    summary: str
    recent: list[ClassifiedError] = Field(description="Most recent errors, oldest first")
    report: str = Field(description="Plain-text diagnostic report")


class CostsResponse(BaseModel):
    """Cost ledgers and circuit breaker states."""

    tasks: dict[str, float]
    projects: dict[str, float]
    organizations: dict[str, float]
    breakers: dict[str, dict[str, Any]]


class SelfTestResponse(BaseModel):
    """Outcome of probing every configured provider."""

    ok: bool
    digest: str
    runs: list[LLMRun]


def _orchestrator(request: Request) -> AIOrchestrator:
    return request.app.state.orchestrator


@router.get("/diagnostics/errors", response_model=DiagnosticsResponse)
async def diagnostics(request: Request, count: int = 10) -> DiagnosticsResponse:
    reporter = _orchestrator(request).reporter
    return DiagnosticsResponse(
        counts=reporter.get_error_counts(),
        summary=reporter.get_error_summary(),
        recent=reporter.get_last_errors(count),
        report=reporter.generate_diagnostic_report(),
    )


@router.get("/guardrails/costs", response_model=CostsResponse)
async def guardrail_costs(request: Request) -> CostsResponse:
    guardrails = _orchestrator(request).guardrails
    breakers = {
        provider: state.model_dump(mode="json")
        for provider, state in guardrails.breaker.get_states().items()
    }
    return CostsResponse(**guardrails.get_costs(), breakers=breakers)


@router.get("/cache/stats", response_model=CacheStats)
async def cache_stats(request: Request) -> CacheStats:
    return _orchestrator(request).cache.get_stats()


@router.post("/cache/clear")
async def cache_clear(request: Request) -> dict[str, str]:
    _orchestrator(request).cache.clear()
    return {"status": "cleared"}


@router.post("/ai/self-test", response_model=SelfTestResponse)
async def self_test(request: Request) -> SelfTestResponse:
    """Send a tiny prompt to each configured provider.

    The digest lists one line per provider (OK, QUOTA, AUTH, MODEL or KO).
    """
    runs = await _orchestrator(request).self_test()
    return SelfTestResponse(
        ok=bool(runs) and all(run.success for run in runs),
        digest=format_provider_digest(runs, header="AI self-test"),
        runs=runs,
    )


@router.post("/guardrails/breakers/reset", response_model=dict[str, dict[str, Any]])
async def reset_breakers(request: Request, provider: str | None = None) -> dict[str, dict[str, Any]]:
    """Close one provider's circuit breaker, or all of them when no provider is given."""
    breaker = _orchestrator(request).guardrails.breaker
    breaker.reset(provider)
    logger.info(f"Circuit breaker reset for {provider or 'all providers'}")
    return {name: state.model_dump(mode="json") for name, state in breaker.get_states().items()}


@router.get("/providers/health")
async def providers_health(request: Request) -> dict[str, dict[str, Any]]:
    """Call each adapter's health check directly, outside breakers and ledgers."""
    return await _orchestrator(request).registry.check_health()
