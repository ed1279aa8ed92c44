"""
AppSentinel — Slot Types

Structured slots are the only thing a text generator is asked to produce.
The generator never writes user-facing prose; it picks a severity, the
evidence ids it relies on and the action categories it recommends, and the
template engine renders the rest.
"""

from __future__ import annotations

import enum

from pydantic import Field

from appsentinel.primitives.common import IncidentSeverity, SentinelBaseModel
from appsentinel.systems.evidence.types import ActionCategory

MAX_REASON_IDS = 5
MAX_ACTIONS = 4
MAX_NOTES_LENGTH = 300


class SummaryTone(enum.StrEnum):
    CALM = "calm"
    NEUTRAL = "neutral"
    STRICT = "strict"


class StructuredSlots(SentinelBaseModel):
    assessed_severity: IncidentSeverity
    summary_tone: SummaryTone = SummaryTone.NEUTRAL
    reason_ids: list[str]
    action_categories: list[ActionCategory]
    confidence: float
    notes: str | None = None
    reasoning_trace: str | None = None  # Audit only, never shown
    can_be_ignored: bool = False
    ignore_reason_key: str | None = None


# ─── Parse results ───────────────────────────────────────────────


class ParseSuccess(SentinelBaseModel):
    slots: StructuredSlots

    @property
    def is_success(self) -> bool:
        return True


class ParseError(SentinelBaseModel):
    message: str

    @property
    def is_success(self) -> bool:
        return False


ParseResult = ParseSuccess | ParseError


# ─── Validation results ──────────────────────────────────────────


class ValidationMode(enum.StrEnum):
    STRICT = "strict"  # Reject on any issue
    LENIENT = "lenient"  # Repair what can be repaired


class IssueSeverity(enum.StrEnum):
    INFO = "info"
    WARNING = "warning"  # Repaired automatically
    CRITICAL = "critical"  # Leads to rejection


class ValidationIssue(SentinelBaseModel):
    field: str
    severity: IssueSeverity
    message: str


class Valid(SentinelBaseModel):
    slots: StructuredSlots

    @property
    def is_usable(self) -> bool:
        return True


class Repaired(SentinelBaseModel):
    slots: StructuredSlots
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_usable(self) -> bool:
        return True


class Rejected(SentinelBaseModel):
    issues: list[ValidationIssue] = Field(default_factory=list)
    reason: str

    @property
    def is_usable(self) -> bool:
        return False


ValidationResult = Valid | Repaired | Rejected
