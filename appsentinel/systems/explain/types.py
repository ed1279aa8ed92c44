"""
AppSentinel — Explanation Types

The request every engine accepts. The answer model lives with the policy
guard that validates it and is re-exported here.
"""

from __future__ import annotations

import enum

from appsentinel.primitives.common import SentinelBaseModel
from appsentinel.systems.evidence.types import SecurityIncident
from appsentinel.systems.hypothesis.types import AppContext
from appsentinel.systems.policy.types import (
    ActionStep,
    EngineSource,
    EvidenceReason,
    ExplanationAnswer,
    SafeLanguageFlag,
)


class ExplanationRequest(SentinelBaseModel):
    incident: SecurityIncident
    app_context: AppContext | None = None
    user_question: str | None = None  # Reserved for follow-up questions


class FallbackReason(enum.StrEnum):
    """Why a generated answer was replaced by the template answer."""

    PROMPT_BUILD_FAILED = "prompt_build_failed"
    INFERENCE_FAILED = "inference_failed"
    BUSY = "busy"
    TIMEOUT = "timeout"
    PARSE_FAILED = "parse_failed"
    VALIDATION_REJECTED = "validation_rejected"
    UNAVAILABLE = "unavailable"


class GenerationOutcome(SentinelBaseModel):
    """Either an answer or the reason there is none."""

    answer: ExplanationAnswer | None = None
    fallback_reason: FallbackReason | None = None
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.answer is not None

    @classmethod
    def failed(cls, reason: FallbackReason, detail: str = "") -> GenerationOutcome:
        return cls(fallback_reason=reason, detail=detail)


__all__ = [
    "ActionStep",
    "EngineSource",
    "EvidenceReason",
    "ExplanationAnswer",
    "ExplanationRequest",
    "FallbackReason",
    "GenerationOutcome",
    "SafeLanguageFlag",
]
