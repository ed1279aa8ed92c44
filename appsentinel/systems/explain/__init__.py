"""
AppSentinel — Explanation Layer

Turns a resolved incident into a structured, policy-checked answer, from
deterministic templates or from model-picked slots rendered through the
same templates.
"""

from appsentinel.systems.explain.engine import GeneratedExplanationEngine, fallback_reason_for
from appsentinel.systems.explain.errors import (
    ExplanationError,
    InferenceError,
    InferenceFailure,
    PromptBuildError,
)
from appsentinel.systems.explain.orchestrator import ExplanationOrchestrator
from appsentinel.systems.explain.prompt import PromptBuilder
from appsentinel.systems.explain.runtime import (
    FakeInferenceRuntime,
    HttpInferenceRuntime,
    InferenceRequest,
    InferenceResult,
    InferenceRuntime,
)
from appsentinel.systems.explain.template import TemplateExplanationEngine
from appsentinel.systems.explain.types import (
    ActionStep,
    EngineSource,
    EvidenceReason,
    ExplanationAnswer,
    ExplanationRequest,
    FallbackReason,
    GenerationOutcome,
    SafeLanguageFlag,
)

__all__ = [
    "ActionStep",
    "EngineSource",
    "EvidenceReason",
    "ExplanationAnswer",
    "ExplanationError",
    "ExplanationOrchestrator",
    "ExplanationRequest",
    "FakeInferenceRuntime",
    "FallbackReason",
    "GeneratedExplanationEngine",
    "GenerationOutcome",
    "HttpInferenceRuntime",
    "InferenceError",
    "InferenceFailure",
    "InferenceRequest",
    "InferenceResult",
    "InferenceRuntime",
    "PromptBuildError",
    "PromptBuilder",
    "SafeLanguageFlag",
    "TemplateExplanationEngine",
    "fallback_reason_for",
]
