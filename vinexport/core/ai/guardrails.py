"""Guardrails: admission checks, cost ledgers and runtime protections.

Admission checks return decisions instead of raising; timeouts, retries and
circuit breaking wrap provider calls at runtime.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, TypeVar

from vinexport.core.ai.circuit_breaker import CircuitBreaker
from vinexport.core.ai.errors import (
    AdmissionRejectedError,
    CircuitOpenError,
    ProviderTimeoutError,
)
from vinexport.core.ai.types import (
    AdmissionDecision,
    CircuitBreakerState,
    GuardrailsConfig,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that must surface immediately without consuming retry budget
NON_RETRYABLE: tuple[type[BaseException], ...] = (CircuitOpenError, AdmissionRejectedError)


class Guardrails:
    """Cost ceilings, cost ledgers, timeouts, retries and circuit breakers.

    One instance is shared by every task that runs against it; ledger and
    breaker state are guarded by locks that are never held across an await.
    """

    def __init__(
        self,
        config: GuardrailsConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or GuardrailsConfig()
        self._sleep = sleep
        self._task_costs: dict[str, float] = {}
        self._project_costs: dict[str, float] = {}
        self._org_costs: dict[str, float] = {}
        self._lock = threading.Lock()
        self.breaker = CircuitBreaker(
            failure_threshold=self.config.failure_threshold,
            cooldown_ms=self.config.cooldown_ms,
            clock=clock,
        )

    # =========================================================================
    # Admission
    # =========================================================================

    def estimate_cost(self, estimated_tokens: int | None) -> float:
        """Placeholder admission estimate: tokens / 1000 * fixed rate."""
        if not estimated_tokens:
            return 0.0
        return (estimated_tokens / 1000) * self.config.estimated_cost_per_1k_tokens

    def check_pre_execution(
        self,
        task_id: str,
        project_id: str | None = None,
        organization_id: str | None = None,
        estimated_tokens: int | None = None,
    ) -> AdmissionDecision:
        """Check ceilings before a task runs.

        Checks short-circuit in order: token ceiling, task cost, project
        cost-to-date plus estimate, organization cost-to-date plus estimate.

        Args:
            task_id: Task being admitted
            project_id: Project ledger to check, if any
            organization_id: Organization ledger to check, if any
            estimated_tokens: Estimated prompt + completion tokens

        Returns:
            AdmissionDecision with the first failing reason
        """
        config = self.config

        if estimated_tokens and estimated_tokens > config.max_tokens_per_task:
            return AdmissionDecision(
                allowed=False,
                reason=(
                    f"Estimated tokens ({estimated_tokens}) exceed task limit "
                    f"({config.max_tokens_per_task})"
                ),
            )

        estimated_cost = self.estimate_cost(estimated_tokens)
        if estimated_cost > config.max_cost_per_task:
            return AdmissionDecision(
                allowed=False,
                reason=(
                    f"Estimated cost (${estimated_cost:.4f}) exceeds task limit "
                    f"(${config.max_cost_per_task})"
                ),
            )

        with self._lock:
            project_cost = self._project_costs.get(project_id, 0.0) if project_id else 0.0
            org_cost = self._org_costs.get(organization_id, 0.0) if organization_id else 0.0

        if project_id and project_cost + estimated_cost > config.max_cost_per_project:
            return AdmissionDecision(
                allowed=False,
                reason=f"Project cost would exceed limit (${config.max_cost_per_project})",
            )

        if organization_id and org_cost + estimated_cost > config.max_cost_per_organization:
            return AdmissionDecision(
                allowed=False,
                reason=f"Organization cost would exceed limit (${config.max_cost_per_organization})",
            )

        return AdmissionDecision(allowed=True)

    # =========================================================================
    # Cost ledgers
    # =========================================================================

    def update_costs(
        self,
        task_id: str,
        cost: float,
        project_id: str | None = None,
        organization_id: str | None = None,
    ) -> None:
        """Add a completed run's cost to the task, project and org ledgers."""
        with self._lock:
            self._task_costs[task_id] = self._task_costs.get(task_id, 0.0) + cost
            if project_id:
                self._project_costs[project_id] = self._project_costs.get(project_id, 0.0) + cost
            if organization_id:
                self._org_costs[organization_id] = self._org_costs.get(organization_id, 0.0) + cost

    def get_costs(self) -> dict[str, dict[str, float]]:
        with self._lock:
            return {
                "tasks": dict(self._task_costs),
                "projects": dict(self._project_costs),
                "organizations": dict(self._org_costs),
            }

    def reset_costs(
        self,
        task_id: str | None = None,
        project_id: str | None = None,
        organization_id: str | None = None,
    ) -> None:
        """Reset ledgers.

        With no arguments every ledger is cleared; otherwise only the named
        entries are dropped.
        """
        with self._lock:
            if task_id is None and project_id is None and organization_id is None:
                self._task_costs.clear()
                self._project_costs.clear()
                self._org_costs.clear()
                return
            if task_id is not None:
                self._task_costs.pop(task_id, None)
            if project_id is not None:
                self._project_costs.pop(project_id, None)
            if organization_id is not None:
                self._org_costs.pop(organization_id, None)

    # =========================================================================
    # Runtime protections
    # =========================================================================

    async def with_timeout(
        self,
        awaitable: Awaitable[T],
        timeout_ms: float | None = None,
        provider: str | None = None,
    ) -> T:
        """Await with a deadline; the pending operation is cancelled on expiry."""
        timeout = timeout_ms if timeout_ms is not None else self.config.timeout_ms
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout / 1000)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(timeout, provider) from None

    async def with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
        base_delay_ms: float | None = None,
    ) -> T:
        """Run ``operation`` up to ``max_retries + 1`` times.

        Backoff between attempts is ``base_delay_ms * 2 ** attempt`` and uses
        a non-blocking sleep. Circuit-open and admission errors, and errors
        flagged ``retryable = False``, are raised immediately. The last error
        is re-raised once attempts run out.
        """
        retries = self.config.max_retries if max_retries is None else max_retries
        delay_ms = self.config.retry_base_delay_ms if base_delay_ms is None else base_delay_ms

        attempt = 0
        while True:
            try:
                return await operation()
            except NON_RETRYABLE:
                raise
            except Exception as e:
                if attempt >= retries or not getattr(e, "retryable", True):
                    raise
                backoff_ms = delay_ms * (2 ** attempt)
                logger.warning(
                    f"Attempt {attempt + 1}/{retries + 1} failed: {e}. "
                    f"Retrying in {backoff_ms:g}ms"
                )
                await self._sleep(backoff_ms / 1000)
                attempt += 1

    async def with_circuit_breaker(
        self,
        provider: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``operation`` through the provider's circuit breaker."""
        return await self.breaker.call(provider, operation)

    def get_breaker_state(self, provider: str) -> CircuitBreakerState:
        return self.breaker.get_state(provider)
