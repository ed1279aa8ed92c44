"""
AppSentinel -- Explanation Error Hierarchy

Exceptions raised at the text-generation boundary.

None of these ever reach a caller of the orchestrator: the generated-answer
engine turns each into a GenerationOutcome failure and the orchestrator
falls back to the template path.

  InferenceError    runtime could not produce output (typed by InferenceFailure)
  PromptBuildError  the incident could not be rendered into a prompt
"""

from __future__ import annotations

import enum


class InferenceFailure(enum.StrEnum):
    """Why a runtime produced no output."""

    INVALID_HANDLE = "invalid_handle"
    STALE_HANDLE = "stale_handle"
    ALREADY_UNLOADED = "already_unloaded"
    NULL_CONTEXT = "null_context"
    TOKENIZATION_FAILURE = "tokenization_failure"
    CONTEXT_OVERFLOW = "context_overflow"
    DECODE_FAILURE = "decode_failure"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    BUSY = "busy"  # Another inference holds the model; not a fault
    UNAVAILABLE = "unavailable"
    TRANSPORT = "transport"


class ExplanationError(RuntimeError):
    """Base for all explanation-layer errors."""


class InferenceError(ExplanationError):
    """
    The inference runtime failed.

    Recovery: the orchestrator renders the template answer instead and
    marks it LLM_FALLBACK_TO_TEMPLATE.
    """

    def __init__(self, failure: InferenceFailure, message: str = "") -> None:
        self.failure = failure
        super().__init__(f"{failure.value}: {message}" if message else failure.value)


class PromptBuildError(ExplanationError):
    """The incident has nothing a prompt can be grounded on."""
