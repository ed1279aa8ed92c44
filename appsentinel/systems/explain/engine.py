"""
AppSentinel — Generated Explanation Engine

The model-assisted path:

  constraints → prompt → inference (time-bounded) → parse → validate → render

The model only picks slots; the template engine renders them and the
policy guard checks the result. Every failure along the way becomes a
GenerationOutcome carrying a FallbackReason, never an exception, so the
orchestrator decides what happens next.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from appsentinel.config import InferenceConfig
from appsentinel.systems.explain.errors import InferenceError, InferenceFailure, PromptBuildError
from appsentinel.systems.explain.prompt import PromptBuilder
from appsentinel.systems.explain.runtime import InferenceRequest, InferenceRuntime
from appsentinel.systems.explain.template import TemplateExplanationEngine
from appsentinel.systems.explain.types import (
    ExplanationRequest,
    FallbackReason,
    GenerationOutcome,
)
from appsentinel.systems.policy.guard import PolicyGuard
from appsentinel.systems.slots.parser import SlotParser
from appsentinel.systems.slots.types import ParseError, Rejected, ValidationMode
from appsentinel.systems.slots.validator import SlotValidator

logger = structlog.get_logger()

_FAILURE_REASONS: dict[InferenceFailure, FallbackReason] = {
    InferenceFailure.BUSY: FallbackReason.BUSY,
    InferenceFailure.TIMEOUT: FallbackReason.TIMEOUT,
    InferenceFailure.UNAVAILABLE: FallbackReason.UNAVAILABLE,
}


def fallback_reason_for(failure: InferenceFailure | None, error: str | None = None) -> FallbackReason:
    if failure is None and error and "busy" in error.lower():
        return FallbackReason.BUSY
    if failure is None:
        return FallbackReason.INFERENCE_FAILED
    return _FAILURE_REASONS.get(failure, FallbackReason.INFERENCE_FAILED)


class GeneratedExplanationEngine:
    def __init__(
        self,
        runtime: InferenceRuntime,
        template_engine: TemplateExplanationEngine,
        policy_guard: PolicyGuard,
        inference: InferenceConfig | None = None,
        validation_mode: ValidationMode = ValidationMode.LENIENT,
        prompt_builder: PromptBuilder | None = None,
        parser: SlotParser | None = None,
        validator: SlotValidator | None = None,
    ) -> None:
        self._runtime = runtime
        self._template = template_engine
        self._guard = policy_guard
        self._inference = inference or InferenceConfig()
        self._validation_mode = validation_mode
        self._prompts = prompt_builder or PromptBuilder()
        self._parser = parser or SlotParser()
        self._validator = validator or SlotValidator()
        self._logger = logger.bind(system="explain", component="generated")

    @property
    def engine_id(self) -> str:
        return f"generated-{self._runtime.runtime_id}"

    def is_available(self) -> bool:
        return self._runtime.is_available()

    async def generate(self, request: ExplanationRequest) -> GenerationOutcome:
        incident = request.incident
        constraints = self._guard.determine_constraints(incident)

        try:
            prompt = self._prompts.build_prompt(incident, constraints)
        except PromptBuildError as exc:
            return self._failed(FallbackReason.PROMPT_BUILD_FAILED, str(exc), incident.id)

        inference_request = InferenceRequest.from_config(prompt, self._inference)
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._runtime.run_inference(inference_request),
                timeout=self._inference.timeout_s,
            )
        except asyncio.TimeoutError:
            return self._failed(
                FallbackReason.TIMEOUT,
                f"no output within {self._inference.timeout_s}s",
                incident.id,
            )
        except InferenceError as exc:
            return self._failed(fallback_reason_for(exc.failure), str(exc), incident.id)
        except Exception as exc:
            # Runtime bugs and transport errors alike end in the template path
            self._logger.warning(
                "inference_runtime_error",
                incident_id=incident.id,
                runtime=self._runtime.runtime_id,
                error=type(exc).__name__,
            )
            return self._failed(
                FallbackReason.INFERENCE_FAILED,
                f"{InferenceFailure.TRANSPORT.value}: {exc}",
                incident.id,
            )

        if not result.success:
            return self._failed(
                fallback_reason_for(result.failure, result.error),
                result.error or "",
                incident.id,
            )

        parsed = self._parser.parse(result.raw_output)
        if isinstance(parsed, ParseError):
            return self._failed(FallbackReason.PARSE_FAILED, parsed.message, incident.id)

        validated = self._validator.validate(parsed.slots, incident, self._validation_mode)
        if isinstance(validated, Rejected):
            return self._failed(FallbackReason.VALIDATION_REJECTED, validated.reason, incident.id)

        answer = self._template.render_from_slots(validated.slots, incident)

        self._logger.debug(
            "generated_explanation_rendered",
            incident_id=incident.id,
            runtime=self._runtime.runtime_id,
            prompt_tokens=self._prompts.estimate_token_count(prompt),
            tokens_generated=result.tokens_generated,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return GenerationOutcome(answer=answer)

    async def shutdown(self) -> None:
        await self._runtime.shutdown()

    def _failed(self, reason: FallbackReason, detail: str, incident_id: str) -> GenerationOutcome:
        # detail may quote model output; keep it out of the log line
        self._logger.debug("generation_failed", incident_id=incident_id, reason=reason.value)
        return GenerationOutcome.failed(reason, detail)
