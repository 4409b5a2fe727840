"""Tests for guardrails: admission, ledgers, timeouts, retries and circuit breakers."""

from __future__ import annotations

import asyncio

import pytest

from conftest import provider_failure
from vinexport.core.ai.circuit_breaker import CircuitBreaker
from vinexport.core.ai.errors import (
    AdmissionRejectedError,
    CircuitOpenError,
    ProviderTimeoutError,
)
from vinexport.core.ai.guardrails import Guardrails
from vinexport.core.ai.types import BreakerState, GuardrailsConfig


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestAdmission:
    """Tests for pre-execution checks."""

    def test_allowed_within_limits(self) -> None:
        """A small task is admitted."""
        guardrails = Guardrails()
        decision = guardrails.check_pre_execution("t1", "p1", "o1", estimated_tokens=10_000)
        assert decision.allowed is True
        assert decision.reason is None

    def test_token_ceiling(self) -> None:
        """Estimated tokens above the ceiling are rejected first."""
        guardrails = Guardrails()
        decision = guardrails.check_pre_execution("t1", estimated_tokens=150_001)
        assert decision.allowed is False
        assert decision.reason == "Estimated tokens (150001) exceed task limit (150000)"

    def test_task_cost_ceiling(self) -> None:
        """An estimate above the per-task cost ceiling is rejected."""
        guardrails = Guardrails(GuardrailsConfig(max_cost_per_task=1.0))
        decision = guardrails.check_pre_execution("t1", estimated_tokens=100_000)
        assert decision.allowed is False
        assert decision.reason == "Estimated cost ($3.0000) exceeds task limit ($1.0)"

    def test_project_ceiling(self) -> None:
        """Project cost-to-date plus the estimate may not exceed the project ceiling."""
        guardrails = Guardrails()
        guardrails.update_costs("old", 49.9, project_id="p1")
        decision = guardrails.check_pre_execution("t1", project_id="p1", estimated_tokens=10_000)
        assert decision.allowed is False
        assert decision.reason == "Project cost would exceed limit ($50.0)"

    def test_organization_ceiling(self) -> None:
        """Organization cost-to-date plus the estimate may not exceed the org ceiling."""
        guardrails = Guardrails()
        guardrails.update_costs("old", 499.9, organization_id="o1")
        decision = guardrails.check_pre_execution("t1", organization_id="o1", estimated_tokens=10_000)
        assert decision.allowed is False
        assert decision.reason == "Organization cost would exceed limit ($500.0)"

    def test_other_project_unaffected(self) -> None:
        """Spending in one project does not block another."""
        guardrails = Guardrails()
        guardrails.update_costs("old", 50.0, project_id="p1")
        decision = guardrails.check_pre_execution("t1", project_id="p2", estimated_tokens=10_000)
        assert decision.allowed is True

    def test_estimate_cost(self) -> None:
        """Estimates use the fixed per-1k rate."""
        assert Guardrails().estimate_cost(2000) == pytest.approx(0.06)
        assert Guardrails().estimate_cost(None) == 0.0


class TestCostLedgers:
    """Tests for running cost totals."""

    def test_update_all_three(self) -> None:
        """One update reaches the task, project and organization ledgers."""
        guardrails = Guardrails()
        guardrails.update_costs("t1", 0.25, "p1", "o1")
        guardrails.update_costs("t2", 0.5, "p1", "o1")
        costs = guardrails.get_costs()
        assert costs["tasks"] == {"t1": 0.25, "t2": 0.5}
        assert costs["projects"] == {"p1": 0.75}
        assert costs["organizations"] == {"o1": 0.75}

    def test_get_costs_returns_copies(self) -> None:
        """Mutating the returned dicts does not touch the ledgers."""
        guardrails = Guardrails()
        guardrails.update_costs("t1", 1.0)
        guardrails.get_costs()["tasks"]["t1"] = 99.0
        assert guardrails.get_costs()["tasks"]["t1"] == 1.0

    def test_reset_single_entry(self) -> None:
        """Resetting a project leaves other ledgers alone."""
        guardrails = Guardrails()
        guardrails.update_costs("t1", 1.0, "p1", "o1")
        guardrails.reset_costs(project_id="p1")
        costs = guardrails.get_costs()
        assert costs["projects"] == {}
        assert costs["tasks"] == {"t1": 1.0}
        assert costs["organizations"] == {"o1": 1.0}

    def test_reset_all(self) -> None:
        """Resetting with no arguments clears every ledger."""
        guardrails = Guardrails()
        guardrails.update_costs("t1", 1.0, "p1", "o1")
        guardrails.reset_costs()
        assert guardrails.get_costs() == {"tasks": {}, "projects": {}, "organizations": {}}


class TestTimeout:
    """Tests for with_timeout."""

    @pytest.mark.asyncio
    async def test_returns_result_in_time(self) -> None:
        """Fast operations return their value."""

        async def fast() -> str:
            return "done"

        assert await Guardrails().with_timeout(fast(), timeout_ms=100) == "done"

    @pytest.mark.asyncio
    async def test_raises_and_cancels(self) -> None:
        """Slow operations raise ProviderTimeoutError and are cancelled."""
        cancelled = asyncio.Event()

        async def slow() -> None:
            try:
                await asyncio.sleep(1)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await Guardrails().with_timeout(slow(), timeout_ms=10, provider="openai")

        assert exc_info.value.message == "Operation timed out after 10ms"
        assert exc_info.value.provider == "openai"
        assert cancelled.is_set()


class TestRetry:
    """Tests for with_retry."""

    @pytest.mark.asyncio
    async def test_always_failing_makes_four_attempts(self, make_guardrails, sleeps) -> None:
        """Default max_retries=3 means four attempts with doubling backoff."""
        guardrails = make_guardrails()
        attempts = []

        async def operation() -> None:
            attempts.append(1)
            raise provider_failure("openai", f"failure {len(attempts)}")

        with pytest.raises(Exception) as exc_info:
            await guardrails.with_retry(operation)

        assert len(attempts) == 4
        assert str(exc_info.value) == "failure 4"
        assert sleeps == [0.01, 0.02, 0.04]

    @pytest.mark.asyncio
    async def test_default_backoff(self, sleeps) -> None:
        """The default base delay is one second."""

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        guardrails = Guardrails(sleep=fake_sleep)

        async def operation() -> None:
            raise provider_failure("openai")

        with pytest.raises(Exception):
            await guardrails.with_retry(operation, max_retries=2)

        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self, make_guardrails) -> None:
        """The first successful attempt's value is returned."""
        guardrails = make_guardrails()
        outcomes = [provider_failure("openai"), provider_failure("openai"), "ok"]

        async def operation() -> str:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        assert await guardrails.with_retry(operation) == "ok"
        assert outcomes == []

    @pytest.mark.asyncio
    async def test_circuit_open_not_retried(self, make_guardrails, sleeps) -> None:
        """CircuitOpenError consumes no retry budget."""
        guardrails = make_guardrails()
        attempts = []

        async def operation() -> None:
            attempts.append(1)
            raise CircuitOpenError("openai")

        with pytest.raises(CircuitOpenError):
            await guardrails.with_retry(operation)

        assert len(attempts) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_admission_rejection_not_retried(self, make_guardrails) -> None:
        """AdmissionRejectedError is raised on the first attempt."""
        guardrails = make_guardrails()
        attempts = []

        async def operation() -> None:
            attempts.append(1)
            raise AdmissionRejectedError("over budget")

        with pytest.raises(AdmissionRejectedError):
            await guardrails.with_retry(operation)

        assert len(attempts) == 1


class TestCircuitBreaker:
    """Tests for the per-provider circuit breaker state machine."""

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self) -> None:
        """Five consecutive failures open the breaker and further calls are rejected."""
        clock = FakeClock()
        breaker = CircuitBreaker(clock=clock)
        calls = []

        async def failing() -> None:
            calls.append(1)
            raise provider_failure("openai")

        for _ in range(5):
            with pytest.raises(Exception):
                await breaker.call("openai", failing)

        state = breaker.get_state("openai")
        assert state.state == BreakerState.OPEN
        assert state.failures == 5

        with pytest.raises(CircuitOpenError):
            await breaker.call("openai", failing)
        assert len(calls) == 5

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self) -> None:
        """After the cooldown one trial call is allowed; success closes the breaker."""
        clock = FakeClock()
        breaker = CircuitBreaker(clock=clock)
        for _ in range(5):
            breaker.record_failure("openai")

        clock.advance(61)

        async def ok() -> str:
            return "ok"

        assert await breaker.call("openai", ok) == "ok"
        state = breaker.get_state("openai")
        assert state.state == BreakerState.CLOSED
        assert state.failures == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self) -> None:
        """A failed trial call re-opens the breaker and restarts the cooldown."""
        clock = FakeClock()
        breaker = CircuitBreaker(clock=clock)
        for _ in range(5):
            breaker.record_failure("openai")

        clock.advance(61)

        async def failing() -> None:
            raise provider_failure("openai")

        with pytest.raises(Exception):
            await breaker.call("openai", failing)

        state = breaker.get_state("openai")
        assert state.state == BreakerState.OPEN
        assert state.failures == 6
        assert state.last_failure == clock.now

        clock.advance(30)
        with pytest.raises(CircuitOpenError):
            breaker.before_call("openai")

    def test_still_open_within_cooldown(self) -> None:
        """Exactly at the cooldown boundary the breaker stays open."""
        clock = FakeClock()
        breaker = CircuitBreaker(clock=clock)
        for _ in range(5):
            breaker.record_failure("openai")

        clock.advance(60)
        with pytest.raises(CircuitOpenError):
            breaker.before_call("openai")

    def test_success_while_closed_resets_count(self) -> None:
        """Failures must be consecutive to open the breaker."""
        breaker = CircuitBreaker()
        for _ in range(4):
            breaker.record_failure("openai")
        breaker.record_success("openai")
        breaker.record_failure("openai")

        state = breaker.get_state("openai")
        assert state.state == BreakerState.CLOSED
        assert state.failures == 1

    def test_providers_are_independent(self) -> None:
        """Failures on one provider do not affect another."""
        breaker = CircuitBreaker()
        for _ in range(5):
            breaker.record_failure("openai")

        assert breaker.get_state("openai").state == BreakerState.OPEN
        assert breaker.get_state("anthropic").state == BreakerState.CLOSED
        breaker.before_call("anthropic")

    def test_get_state_returns_copy(self) -> None:
        """Mutating a snapshot does not change the breaker."""
        breaker = CircuitBreaker()
        breaker.record_failure("openai")
        snapshot = breaker.get_state("openai")
        snapshot.failures = 42
        assert breaker.get_state("openai").failures == 1

    @pytest.mark.asyncio
    async def test_guardrails_wrapper(self) -> None:
        """Guardrails exposes the breaker through with_circuit_breaker."""
        guardrails = Guardrails(GuardrailsConfig(failure_threshold=2))

        async def failing() -> None:
            raise provider_failure("google")

        for _ in range(2):
            with pytest.raises(Exception):
                await guardrails.with_circuit_breaker("google", failing)

        assert guardrails.get_breaker_state("google").state == BreakerState.OPEN
