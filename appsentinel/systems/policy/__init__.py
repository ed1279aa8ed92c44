"""
AppSentinel — Policy Guard

Forbidden-claim constraints and the corrective pass over draft answers.
"""

from appsentinel.systems.policy.guard import (
    COMPROMISE_CONFIDENCE_THRESHOLD,
    MALWARE_CONFIDENCE_THRESHOLD,
    PolicyGuard,
    hard_finding_types,
    is_action_allowed,
)
from appsentinel.systems.policy.types import (
    ActionStep,
    EngineSource,
    EvidenceReason,
    ExplanationAnswer,
    SafeLanguageFlag,
)

__all__ = [
    "ActionStep",
    "COMPROMISE_CONFIDENCE_THRESHOLD",
    "EngineSource",
    "EvidenceReason",
    "ExplanationAnswer",
    "MALWARE_CONFIDENCE_THRESHOLD",
    "PolicyGuard",
    "SafeLanguageFlag",
    "hard_finding_types",
    "is_action_allowed",
]
