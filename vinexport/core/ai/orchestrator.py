"""Orchestrator policy layer.

Runs one task under a policy:

- single-source: one logical call to one provider
- self-consistency: N sequential calls to one provider, reconciled field by field
- cross-critique: one call per provider, concurrently, primary picked by priority

Every logical call goes retry -> circuit breaker -> timeout -> adapter, and
every attempt is recorded as an LLMRun in the order it completed.
"""

from __future__ import annotations

import asyncio
import copy
import hashlib
import logging
import time
from typing import Any

from vinexport.core.ai.adapters.base import ProviderAdapter
from vinexport.core.ai.adapters.registry import ProviderRegistry
from vinexport.core.ai.consensus import field_agreement, majority_value, reconcile_results
from vinexport.core.ai.errors import (
    AdmissionRejectedError,
    AllProvidersFailedError,
    CircuitOpenError,
    InvalidResponseError,
    InvalidTaskError,
    OrchestrationError,
    ProviderCallError,
    ProviderTimeoutError,
    RetriesExhaustedError,
)
from vinexport.core.ai.guardrails import Guardrails
from vinexport.core.ai.quality import compute_quality_score
from vinexport.core.ai.schemas import (
    AnalysisDefinition,
    get_analysis,
    schema_field_names,
    validate_analysis,
)
from vinexport.core.ai.types import (
    CrossCritiquePolicy,
    DocumentInput,
    ExecutionContext,
    LLMOptions,
    LLMResponse,
    LLMRun,
    SelfConsistencyPolicy,
    SingleSourcePolicy,
    TaskInput,
    TaskMetadata,
    TaskOutput,
    provider_rank,
)
from vinexport.core.cache import ResponseCache
from vinexport.core.diagnostics import ErrorReporter, format_provider_digest
from vinexport.core.documents import (
    DEFAULT_CHUNK_CHARS,
    PageText,
    TextChunk,
    chunk_by_pages,
    document_pages,
)
from vinexport.core.evidence import verify_evidence

logger = logging.getLogger(__name__)

SELF_TEST_PROMPT = "Reply with the single word: ok"


class AIOrchestrator:
    """Executes tasks against the configured providers.

    Guardrails, cache and error reporter are shared instances injected at
    construction; the orchestrator itself holds no per-task state.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        guardrails: Guardrails | None = None,
        cache: ResponseCache | None = None,
        reporter: ErrorReporter | None = None,
        chunk_max_chars: int = DEFAULT_CHUNK_CHARS,
    ):
        self.registry = registry
        self.guardrails = guardrails or Guardrails()
        self.cache = cache or ResponseCache()
        self.reporter = reporter or ErrorReporter()
        self.chunk_max_chars = chunk_max_chars

    # =========================================================================
    # Public API
    # =========================================================================

    async def run_task(
        self,
        task_input: TaskInput,
        context: ExecutionContext | None = None,
    ) -> TaskOutput:
        """Run a task under its orchestration policy.

        Args:
            task_input: Input, schema or analysis kind, policy and options
            context: Ledger identifiers and optional task-wide timeout

        Returns:
            TaskOutput with the result and run metadata

        Raises:
            AdmissionRejectedError: A guardrail ceiling would be breached
            RetriesExhaustedError: Single-source provider failed every attempt
            CircuitOpenError: The provider's breaker rejected the call
            AllProvidersFailedError: No run of a multi-run policy succeeded
            ProviderTimeoutError: The task-wide timeout expired
            SchemaValidationError: The result does not fit the analysis model
        """
        context = context or ExecutionContext()
        if context.timeout_ms is None:
            return await self._run(task_input, context)

        try:
            return await asyncio.wait_for(
                self._run(task_input, context),
                timeout=context.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.error(f"Task {context.task_id} timed out after {context.timeout_ms}ms")
            raise ProviderTimeoutError(context.timeout_ms) from None

    async def self_test(self) -> list[LLMRun]:
        """Send a tiny prompt to every configured provider once.

        Self-test calls bypass the circuit breaker and the cost ledgers; failures are
        reported to the error reporter.

        Returns:
            One LLMRun per provider, in priority order
        """
        providers = self.registry.names()
        runs = await asyncio.gather(*(self._self_test_provider(p) for p in providers))
        logger.info(
            f"Self-test: {sum(1 for r in runs if r.success)}/{len(runs)} provider(s) healthy"
        )
        return list(runs)

    async def _self_test_provider(self, provider: str) -> LLMRun:
        adapter = self.registry.get(provider)
        options = LLMOptions(max_tokens=16, temperature=0)
        start_time = time.time()
        try:
            response = await self.guardrails.with_timeout(
                adapter.complete(SELF_TEST_PROMPT, options),
                provider=provider,
            )
        except Exception as e:
            error_code = e.error_code if isinstance(e, ProviderCallError) else getattr(e, "code", None)
            self.reporter.report(provider, str(e), details={"self_test": True})
            return LLMRun(
                provider=provider,
                model=adapter.resolve_model(options),
                latency_ms=(time.time() - start_time) * 1000,
                success=False,
                error=str(e),
                status_code=getattr(e, "status_code", None),
                error_code=error_code,
            )

        return LLMRun(
            provider=provider,
            model=response.model or adapter.resolve_model(options),
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost=adapter.get_cost(response.input_tokens, response.output_tokens, response.model or None),
            latency_ms=(time.time() - start_time) * 1000,
            success=response.success,
            error=response.error,
        )

    # =========================================================================
    # Task pipeline
    # =========================================================================

    async def _run(self, task: TaskInput, ctx: ExecutionContext) -> TaskOutput:
        definition = get_analysis(task.analysis) if task.analysis else None
        schema = task.schema_
        if schema is None and definition is not None:
            schema = definition.json_schema()

        policy = task.policy
        if definition is not None and "policy" not in task.model_fields_set:
            policy = definition.policy

        options = self._resolve_options(task.options, schema, definition)
        if isinstance(policy, CrossCritiquePolicy) and len(policy.providers) > 1 and options.model:
            raise InvalidTaskError(
                f"options.model ({options.model}) names a single model but cross-critique "
                f"calls {', '.join(policy.providers)}; use options.models per provider"
            )

        source_text = task.source_text
        chunks: list[TextChunk] = []
        if isinstance(task.input, DocumentInput):
            pages = await asyncio.to_thread(document_pages, task.input.data, task.input.filename)
            if source_text is None and pages:
                source_text = "\n".join(page.text for page in pages)
            if not pages and source_text:
                pages = [PageText(page=1, text=source_text)]
            chunks = chunk_by_pages(pages, self.chunk_max_chars)

        # Admission
        estimated_tokens = self._estimate_tokens(source_text, options, policy)
        decision = self.guardrails.check_pre_execution(
            ctx.task_id,
            project_id=ctx.project_id,
            organization_id=ctx.organization_id,
            estimated_tokens=estimated_tokens,
        )
        if not decision.allowed:
            logger.warning(f"Task {ctx.task_id} rejected: {decision.reason}")
            raise AdmissionRejectedError(decision.reason or "rejected")

        # Cache
        cache_prompt = self._cache_prompt(task, options)
        model_key = self._model_key(policy, options)
        cached = self.cache.get(cache_prompt, schema, model_key, task.language)
        if cached is not None:
            logger.info(f"Cache hit for task {ctx.task_id} ({model_key})")
            return TaskOutput(
                result=copy.deepcopy(cached["result"]),
                metadata=TaskMetadata(
                    policy=policy,
                    cache_hit=True,
                    quality_score=cached.get("quality_score"),
                    validation_report=cached.get("validation_report"),
                    agreement=cached.get("agreement"),
                ),
            )

        prompt_hash = self.cache.make_key(cache_prompt, schema, model_key, task.language)[:16]
        runs: list[LLMRun] = []
        fields = schema_field_names(schema) or None

        if isinstance(policy, SingleSourcePolicy):
            result = await self._call_provider(policy.provider, task, options, ctx, runs, prompt_hash, chunks)
            agreement = None
        elif isinstance(policy, SelfConsistencyPolicy):
            result, agreement = await self._self_consistency(
                policy, task, options, ctx, runs, prompt_hash, fields, chunks
            )
        elif isinstance(policy, CrossCritiquePolicy):
            result, agreement = await self._cross_critique(
                policy, task, options, ctx, runs, prompt_hash, fields, chunks
            )
        else:
            raise OrchestrationError(f"Unknown policy: {policy!r}", "unknown_policy")

        result, validation_report = self._finalize(task, definition, result, source_text)
        quality_score = compute_quality_score(result, schema, agreement)

        metadata = TaskMetadata(
            policy=policy,
            runs=runs,
            total_cost=sum(run.cost for run in runs),
            total_latency_ms=sum(run.latency_ms for run in runs),
            cache_hit=False,
            quality_score=quality_score,
            validation_report=validation_report,
            agreement=agreement,
        )

        self.cache.set(
            cache_prompt,
            schema,
            model_key,
            {
                "result": copy.deepcopy(result),
                "quality_score": quality_score,
                "validation_report": validation_report,
                "agreement": agreement,
            },
            lang=task.language,
        )

        logger.info(
            f"Task {ctx.task_id} completed: policy={policy.type}, runs={len(runs)}, "
            f"cost=${metadata.total_cost:.4f}, quality={quality_score}"
        )
        return TaskOutput(result=result, metadata=metadata)

    async def _self_consistency(
        self,
        policy: SelfConsistencyPolicy,
        task: TaskInput,
        options: LLMOptions,
        ctx: ExecutionContext,
        runs: list[LLMRun],
        prompt_hash: str,
        fields: list[str] | None,
        chunks: list[TextChunk],
    ) -> tuple[Any, dict[str, float] | None]:
        results: list[Any] = []
        for index in range(policy.runs):
            try:
                parsed = await self._call_provider(
                    policy.provider, task, options, ctx, runs, prompt_hash, chunks
                )
            except CircuitOpenError:
                if not results:
                    raise
                logger.warning(
                    f"Circuit opened for {policy.provider} after {len(results)} "
                    f"successful run(s); reconciling what we have"
                )
                break
            except RetriesExhaustedError as e:
                logger.warning(f"Self-consistency run {index + 1}/{policy.runs} failed: {e}")
                continue
            results.append(parsed)

        if not results:
            raise AllProvidersFailedError(list(runs), format_provider_digest(runs))

        if all(isinstance(r, dict) for r in results):
            consensus = reconcile_results(results, fields)
            return consensus.result, consensus.agreement
        return majority_value(results), None

    async def _cross_critique(
        self,
        policy: CrossCritiquePolicy,
        task: TaskInput,
        options: LLMOptions,
        ctx: ExecutionContext,
        runs: list[LLMRun],
        prompt_hash: str,
        fields: list[str] | None,
        chunks: list[TextChunk],
    ) -> tuple[Any, dict[str, float] | None]:
        providers = list(policy.providers)

        async def critique(provider: str) -> Any:
            try:
                return await self._call_provider(provider, task, options, ctx, runs, prompt_hash, chunks)
            except (CircuitOpenError, RetriesExhaustedError) as e:
                logger.warning(f"Cross-critique provider {provider} failed: {e}")
                return e

        outcomes = await asyncio.gather(*(critique(p) for p in providers))
        successes = {
            provider: outcome
            for provider, outcome in zip(providers, outcomes)
            if not isinstance(outcome, OrchestrationError)
        }
        if not successes:
            raise AllProvidersFailedError(list(runs), format_provider_digest(runs))

        ordered = sorted(successes, key=lambda p: (provider_rank(p), providers.index(p)))
        primary = ordered[0]
        logger.info(f"Cross-critique primary: {primary} ({len(successes)}/{len(providers)} succeeded)")

        dict_results = [successes[p] for p in ordered if isinstance(successes[p], dict)]
        agreement = field_agreement(dict_results, fields) if len(dict_results) > 1 else None
        return successes[primary], agreement

    def _finalize(
        self,
        task: TaskInput,
        definition: AnalysisDefinition | None,
        result: Any,
        source_text: str | None,
    ) -> tuple[Any, dict[str, Any] | None]:
        """Validate against the analysis model and drop ungrounded fields.

        Evidence is checked on the fields the provider actually returned;
        model defaults are filled in only after verification.
        """
        if definition is not None:
            result = validate_analysis(definition.kind, result, exclude_unset=True)

        report = None
        if isinstance(result, dict) and source_text and isinstance(result.get("citations"), dict):
            if isinstance(task.input, DocumentInput):
                label = task.input.filename
            else:
                label = task.analysis or "task"
            verification = verify_evidence(result, source_text, label)
            result = verification.extracted_data
            report = verification.validation_report.model_dump()

        if definition is not None:
            provided = {name: value for name, value in result.items() if value is not None}
            result = validate_analysis(definition.kind, provided)
        return result, report

    # =========================================================================
    # Provider calls
    # =========================================================================

    async def _call_provider(
        self,
        provider: str,
        task: TaskInput,
        options: LLMOptions,
        ctx: ExecutionContext,
        runs: list[LLMRun],
        prompt_hash: str,
        chunks: list[TextChunk],
    ) -> Any:
        """One logical call: retry(breaker(timeout(adapter.complete)))."""
        attempts = 0

        async def attempt() -> Any:
            nonlocal attempts
            attempts += 1
            return await self._attempt(provider, task, options, ctx, runs, prompt_hash, chunks, attempts)

        try:
            return await self.guardrails.with_retry(attempt)
        except CircuitOpenError:
            raise
        except Exception as e:
            raise RetriesExhaustedError(provider, attempts, e, runs=list(runs)) from e

    async def _attempt(
        self,
        provider: str,
        task: TaskInput,
        options: LLMOptions,
        ctx: ExecutionContext,
        runs: list[LLMRun],
        prompt_hash: str,
        chunks: list[TextChunk],
        attempt: int,
    ) -> Any:
        start_time = time.time()

        try:
            adapter = self.registry.get(provider)
        except KeyError as e:
            error = ProviderCallError(provider, str(e.args[0]), error_code="not_configured", retryable=False)
            self._record_failure(provider, None, options, error, start_time, ctx, runs, prompt_hash, attempt)
            raise error from None

        async def call() -> tuple[LLMResponse, Any]:
            if chunks and isinstance(task.input, DocumentInput) and not adapter.supports_pdf:
                return await self._complete_chunks(provider, adapter, chunks, options)
            response = await self.guardrails.with_timeout(
                adapter.complete(task.input, options),
                provider=provider,
            )
            return response, self._parse(provider, adapter, response, options)

        try:
            response, parsed = await self.guardrails.with_circuit_breaker(provider, call)
        except Exception as e:
            self._record_failure(provider, adapter, options, e, start_time, ctx, runs, prompt_hash, attempt)
            raise

        run = LLMRun(
            provider=provider,
            model=response.model or adapter.resolve_model(options),
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
            cost=adapter.get_cost(response.input_tokens, response.output_tokens, response.model or None),
            latency_ms=(time.time() - start_time) * 1000,
            success=True,
            prompt_hash=prompt_hash,
        )
        self._append_run(run, response.billable, ctx, runs)
        return parsed

    async def _complete_chunks(
        self,
        provider: str,
        adapter: ProviderAdapter,
        chunks: list[TextChunk],
        options: LLMOptions,
    ) -> tuple[LLMResponse, Any]:
        """Send a document's text layer to a text-only provider, one request per chunk.

        Chunks go out sequentially. Token usage is summed into one response;
        JSON results are reconciled field by field, text results joined in
        page order.
        """
        usage = LLMResponse(model=adapter.resolve_model(options))
        results: list[Any] = []
        for index, chunk in enumerate(chunks, start=1):
            try:
                response = await self.guardrails.with_timeout(
                    adapter.complete(chunk.as_prompt(), options),
                    provider=provider,
                )
            except ProviderCallError as e:
                # Earlier chunks were consumed; bill them with the failed attempt
                if e.response is None and usage.billable:
                    e.response = usage
                raise

            usage = LLMResponse(
                content=response.content,
                input_tokens=usage.input_tokens + response.input_tokens,
                output_tokens=usage.output_tokens + response.output_tokens,
                model=response.model or usage.model,
                success=response.success,
                error=response.error,
            )
            results.append(self._parse(provider, adapter, usage, options))
            logger.debug(
                f"{provider} chunk {index}/{len(chunks)} "
                f"(pages {chunk.page_start}-{chunk.page_end}) done"
            )

        if len(results) == 1:
            return usage, results[0]
        if not all(isinstance(r, dict) for r in results):
            return usage, "\n\n".join(str(r) for r in results)

        merged = reconcile_results(results).result
        confidence: dict[str, Any] = {}
        for result in results:
            if isinstance(result.get("confidence"), dict):
                for name, value in result["confidence"].items():
                    confidence.setdefault(name, value)
        if confidence:
            merged["confidence"] = confidence
        logger.info(f"Merged {len(results)} chunk results from {provider}")
        return usage, merged

    def _parse(
        self,
        provider: str,
        adapter: ProviderAdapter,
        response: LLMResponse,
        options: LLMOptions,
    ) -> Any:
        if not response.success:
            raise InvalidResponseError(
                provider, response.error or f"{provider} returned an unsuccessful response", response
            )
        if options.json_schema is None:
            return response.content

        parsed = adapter.parse_response(response.content)
        if isinstance(parsed, dict) and parsed.get("parse_error"):
            raise InvalidResponseError(provider, f"Invalid JSON in {provider} response", response)
        return parsed

    def _record_failure(
        self,
        provider: str,
        adapter: ProviderAdapter | None,
        options: LLMOptions,
        error: BaseException,
        start_time: float,
        ctx: ExecutionContext,
        runs: list[LLMRun],
        prompt_hash: str,
        attempt: int,
    ) -> None:
        response = error.response if isinstance(error, ProviderCallError) else None
        input_tokens = response.input_tokens if response else 0
        output_tokens = response.output_tokens if response else 0
        model = (response.model if response else "") or (adapter.resolve_model(options) if adapter else "")

        if isinstance(error, ProviderCallError):
            error_code = error.error_code
        elif isinstance(error, OrchestrationError):
            error_code = error.code
        else:
            error_code = None
        status_code = getattr(error, "status_code", None)

        run = LLMRun(
            provider=provider,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=adapter.get_cost(input_tokens, output_tokens, model or None) if adapter and response else 0.0,
            latency_ms=(time.time() - start_time) * 1000,
            success=False,
            error=str(error),
            status_code=status_code,
            error_code=error_code,
            prompt_hash=prompt_hash,
        )
        self._append_run(run, response is not None and response.billable, ctx, runs)

        self.reporter.report(
            provider,
            str(error),
            details={
                "task_id": ctx.task_id,
                "attempt": attempt,
                "status_code": status_code,
                "error_code": error_code,
            },
        )

    def _append_run(
        self,
        run: LLMRun,
        billable: bool,
        ctx: ExecutionContext,
        runs: list[LLMRun],
    ) -> None:
        runs.append(run)
        if billable:
            self.guardrails.update_costs(
                ctx.task_id,
                run.cost,
                project_id=ctx.project_id,
                organization_id=ctx.organization_id,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _resolve_options(
        options: LLMOptions,
        schema: dict[str, Any] | None,
        definition: AnalysisDefinition | None,
    ) -> LLMOptions:
        update: dict[str, Any] = {}
        if schema is not None and options.json_schema is None:
            update["json_schema"] = schema
        if definition is not None and not options.system_prompt:
            update["system_prompt"] = definition.prompt
        return options.model_copy(update=update) if update else options

    def _estimate_tokens(self, source_text: str | None, options: LLMOptions, policy: Any) -> int:
        """Prompt tokens plus the output budget, summed over every planned call."""
        text = (options.system_prompt or "") + (source_text or "")

        if isinstance(policy, SelfConsistencyPolicy):
            calls = [policy.provider] * policy.runs
        elif isinstance(policy, CrossCritiquePolicy):
            calls = list(policy.providers)
        else:
            calls = [policy.provider]

        per_provider: dict[str, int] = {}
        for provider in set(calls):
            if provider in self.registry:
                per_provider[provider] = self.registry.get(provider).estimate_tokens(text)
            else:
                per_provider[provider] = len(text) // 4
        return sum(per_provider[p] + options.max_tokens for p in calls)

    @staticmethod
    def _cache_prompt(task: TaskInput, options: LLMOptions) -> str:
        if isinstance(task.input, DocumentInput):
            digest = hashlib.sha256(task.input.data).hexdigest()
            body = f"pdf:{task.input.filename}:{digest}"
        else:
            body = task.input
        if options.system_prompt:
            return f"{options.system_prompt}\n\n{body}"
        return body

    def _model_id(self, provider: str, options: LLMOptions) -> str:
        if provider in self.registry:
            adapter = self.registry.get(provider)
            return adapter.get_model_id(adapter.resolve_model(options))
        override = (options.models or {}).get(provider) or options.model
        return f"{provider}/{override}" if override else provider

    def _model_key(self, policy: Any, options: LLMOptions) -> str:
        """Cache key component naming the policy and the models it calls."""
        if isinstance(policy, SelfConsistencyPolicy):
            return f"self-consistency:{self._model_id(policy.provider, options)}x{policy.runs}"
        if isinstance(policy, CrossCritiquePolicy):
            models = ",".join(self._model_id(p, options) for p in policy.providers)
            return f"cross-critique:{models}"
        return f"single-source:{self._model_id(policy.provider, options)}"
