"""
AppSentinel — Answer Model

The single output schema every explanation engine produces and the policy
guard validates. Everything in it is structured; free generated text never
reaches the user directly.
"""

from __future__ import annotations

import enum

from pydantic import Field

from appsentinel.primitives.common import IncidentSeverity, SentinelBaseModel
from appsentinel.systems.evidence.types import ActionCategory


class SafeLanguageFlag(enum.StrEnum):
    """A claim or recommendation the answer is not allowed to make."""

    NO_VIRUS_CLAIM = "no_virus_claim"
    NO_MALWARE_CLAIM = "no_malware_claim"
    NO_COMPROMISE_CLAIM = "no_compromise_claim"
    NO_SPYING_CLAIM = "no_spying_claim"
    NO_FACTORY_RESET = "no_factory_reset"
    NO_ALARMIST_FRAMING = "no_alarmist_framing"

    @property
    def description(self) -> str:
        return _FLAG_DESCRIPTIONS[self]


_FLAG_DESCRIPTIONS: dict[SafeLanguageFlag, str] = {
    SafeLanguageFlag.NO_VIRUS_CLAIM: "Do not use the word 'virus' for an app",
    SafeLanguageFlag.NO_MALWARE_CLAIM: "Do not call the app malware without hard evidence",
    SafeLanguageFlag.NO_COMPROMISE_CLAIM: "Do not say the device is compromised without hard evidence",
    SafeLanguageFlag.NO_SPYING_CLAIM: "Do not say the app is spying without a confirmed stalkerware pattern",
    SafeLanguageFlag.NO_FACTORY_RESET: "Do not recommend a factory reset",
    SafeLanguageFlag.NO_ALARMIST_FRAMING: "Do not use alarming language for this severity",
}


class EngineSource(enum.StrEnum):
    TEMPLATE = "template"
    LLM_ASSISTED = "llm_assisted"
    LLM_FALLBACK_TO_TEMPLATE = "llm_fallback_to_template"


class EvidenceReason(SentinelBaseModel):
    """Why the finding matters, tied to one signal or event id."""

    evidence_id: str
    text: str
    severity: IncidentSeverity
    finding_tag: str
    is_hard_evidence: bool = False


class ActionStep(SentinelBaseModel):
    step_number: int  # 1-based display order
    action_category: ActionCategory
    title: str
    description: str = ""
    target_package: str | None = None
    is_urgent: bool = False


class ExplanationAnswer(SentinelBaseModel):
    incident_id: str
    severity: IncidentSeverity
    summary: str
    reasons: list[EvidenceReason] = Field(default_factory=list)
    actions: list[ActionStep] = Field(default_factory=list)
    when_to_ignore: str | None = None
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    safe_language_flags: frozenset[SafeLanguageFlag] = frozenset()
    engine_source: EngineSource = EngineSource.TEMPLATE
    policy_violations_found: int = 0
    # Another inference was already running; not an inference failure
    is_busy_fallback: bool = False

    @property
    def has_actionable_steps(self) -> bool:
        return any(
            a.action_category not in (ActionCategory.MONITOR, ActionCategory.INFORM)
            for a in self.actions
        )

    @property
    def primary_reason(self) -> EvidenceReason | None:
        return self.reasons[0] if self.reasons else None

    @property
    def primary_action(self) -> ActionStep | None:
        return self.actions[0] if self.actions else None
