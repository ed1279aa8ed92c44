"""
AppSentinel — Explanation Orchestrator

The single entry point for explaining an incident. It picks the engine,
runs the generated path with an explicit template fallback, and passes
every answer through the policy guard one final time.

Engine selection:
  generation enabled, engine registered and available → generated, with fallback
  generation enabled, engine registered but unavailable → template, marked fallback
  otherwise                                            → template
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog

from appsentinel.config import ExplainConfig, SentinelConfig
from appsentinel.systems.explain.engine import GeneratedExplanationEngine
from appsentinel.systems.explain.runtime import HttpInferenceRuntime, InferenceRuntime
from appsentinel.systems.explain.template import TemplateExplanationEngine
from appsentinel.systems.explain.types import (
    EngineSource,
    ExplanationAnswer,
    ExplanationRequest,
    FallbackReason,
    GenerationOutcome,
)
from appsentinel.systems.policy.guard import PolicyGuard
from appsentinel.systems.slots.types import ValidationMode

logger = structlog.get_logger()

Attempt = Callable[[], Awaitable[GenerationOutcome]]
Fallback = Callable[[], ExplanationAnswer]


class ExplanationOrchestrator:
    def __init__(
        self,
        template_engine: TemplateExplanationEngine,
        policy_guard: PolicyGuard,
        generated_engine: GeneratedExplanationEngine | None = None,
        config: ExplainConfig | None = None,
    ) -> None:
        self._template = template_engine
        self._guard = policy_guard
        self._generated = generated_engine
        self._config = config or ExplainConfig()
        self._logger = logger.bind(system="explain", component="orchestrator")

    @classmethod
    def from_config(
        cls,
        config: SentinelConfig,
        runtime: InferenceRuntime | None = None,
    ) -> ExplanationOrchestrator:
        """
        Wire the full explanation stack. Without an explicit runtime, an HTTP
        runtime is created only when generation is enabled.
        """
        guard = PolicyGuard()
        template = TemplateExplanationEngine(guard)
        generated: GeneratedExplanationEngine | None = None

        if runtime is None and config.explain.llm_enabled:
            runtime = HttpInferenceRuntime.from_config(config.inference)
        if runtime is not None:
            generated = GeneratedExplanationEngine(
                runtime,
                template,
                guard,
                inference=config.inference,
                validation_mode=ValidationMode(config.explain.validation_mode),
            )
        return cls(template, guard, generated_engine=generated, config=config.explain)

    # ─── Engine registration ──────────────────────────────────────

    def set_generated_engine(self, engine: GeneratedExplanationEngine) -> None:
        self._generated = engine

    def clear_generated_engine(self) -> None:
        self._generated = None

    def selected_engine(self) -> EngineSource:
        """Which engine the next call would try first."""
        if self._config.llm_enabled and self._generated is not None:
            if self._generated.is_available():
                return EngineSource.LLM_ASSISTED
            return EngineSource.LLM_FALLBACK_TO_TEMPLATE
        return EngineSource.TEMPLATE

    # ─── Explain ──────────────────────────────────────────────────

    async def explain(self, request: ExplanationRequest) -> ExplanationAnswer:
        generated = self._generated
        if not self._config.llm_enabled or generated is None:
            answer = self._template.explain(request)
        elif not generated.is_available():
            answer = await self.explain_with_fallback(
                _unavailable,
                lambda: self._template.explain(request),
            )
        else:
            answer = await self.explain_with_fallback(
                lambda: generated.generate(request),
                lambda: self._template.explain(request),
            )

        final, _ = self._guard.validate(answer, request.incident)
        return final

    def explain_with_template(self, request: ExplanationRequest) -> ExplanationAnswer:
        """Template only, whatever the configuration says."""
        return self._template.explain(request)

    async def explain_with_fallback(self, attempt: Attempt, fallback: Fallback) -> ExplanationAnswer:
        """
        Run ``attempt``; if it yields no answer, use ``fallback`` instead.

        The fallback answer is attributed LLM_FALLBACK_TO_TEMPLATE, with the
        busy flag set when the runtime was merely occupied.
        """
        outcome = await attempt()
        if outcome.answer is not None:
            return outcome.answer

        reason = outcome.fallback_reason or FallbackReason.INFERENCE_FAILED
        self._logger.info("explanation_fallback", reason=reason.value)
        return fallback().model_copy(update={
            "engine_source": EngineSource.LLM_FALLBACK_TO_TEMPLATE,
            "is_busy_fallback": reason == FallbackReason.BUSY,
        })

    async def shutdown(self) -> None:
        if self._generated is not None:
            await self._generated.shutdown()


async def _unavailable() -> GenerationOutcome:
    return GenerationOutcome.failed(FallbackReason.UNAVAILABLE, "runtime not available")
