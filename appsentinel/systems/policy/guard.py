"""
AppSentinel — Policy Guard

Evidence-based constraints on what an explanation may claim. Not a word
filter: every constraint is tied to a check against the incident itself.

  - "virus"          never
  - "malware"        HARD evidence and top confidence > 0.6
  - "compromised"    HARD evidence and top confidence >= 0.7
  - "spying"         stalkerware combo + special access + HARD evidence,
                     and a stalkerware hypothesis on top
  - factory reset    CRITICAL severity and HARD evidence
  - alarmist tone    never for INFO or LOW incidents

Two entry points: ``determine_constraints`` before an answer is drafted and
``validate`` after, which repairs the draft and counts each repair.

Stateless, safe for concurrent use.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from appsentinel.primitives.common import IncidentSeverity
from appsentinel.systems.evidence.taxonomy import (
    FindingHardness,
    FindingType,
    SignalType,
    finding_type_for,
)
from appsentinel.systems.evidence.types import ActionCategory, SecurityIncident
from appsentinel.systems.hypothesis.resolver import STALKERWARE_HYPOTHESIS
from appsentinel.systems.policy.types import ExplanationAnswer, SafeLanguageFlag

logger = structlog.get_logger()

MALWARE_CONFIDENCE_THRESHOLD = 0.6  # strictly greater
COMPROMISE_CONFIDENCE_THRESHOLD = 0.7  # greater or equal

_STALKERWARE_SIGNALS = frozenset({SignalType.COMBO_DETECTED, SignalType.SPECIAL_ACCESS_ENABLED})
_ALARMIST_SEVERITIES = frozenset({IncidentSeverity.INFO, IncidentSeverity.LOW})
_ALARMING_SEVERITIES = frozenset({IncidentSeverity.CRITICAL, IncidentSeverity.HIGH})


def hard_finding_types(incident: SecurityIncident) -> frozenset[FindingType]:
    """
    HARD finding types evidenced by the incident's signals.

    The bridge from the evidence layer to this hardness-aware layer: each
    signal type is projected through the taxonomy and only HARD survives.
    """
    found: set[FindingType] = set()
    for signal in incident.signals:
        finding = finding_type_for(signal.type)
        if finding is not None and finding.hardness == FindingHardness.HARD:
            found.add(finding)
    return frozenset(found)


def is_action_allowed(action: ActionCategory, constraints: Iterable[SafeLanguageFlag]) -> bool:
    if action == ActionCategory.FACTORY_RESET:
        return SafeLanguageFlag.NO_FACTORY_RESET not in set(constraints)
    return True


class PolicyGuard:
    def __init__(self) -> None:
        self._logger = logger.bind(system="policy", component="guard")

    def determine_constraints(self, incident: SecurityIncident) -> frozenset[SafeLanguageFlag]:
        hard = hard_finding_types(incident)
        top_confidence = incident.top_confidence
        flags = {SafeLanguageFlag.NO_VIRUS_CLAIM}

        if not hard or top_confidence <= MALWARE_CONFIDENCE_THRESHOLD:
            flags.add(SafeLanguageFlag.NO_MALWARE_CLAIM)

        if not hard or top_confidence < COMPROMISE_CONFIDENCE_THRESHOLD:
            flags.add(SafeLanguageFlag.NO_COMPROMISE_CLAIM)

        if not self._has_confirmed_stalkerware(incident, hard):
            flags.add(SafeLanguageFlag.NO_SPYING_CLAIM)

        if incident.severity != IncidentSeverity.CRITICAL or not hard:
            flags.add(SafeLanguageFlag.NO_FACTORY_RESET)

        if incident.severity in _ALARMIST_SEVERITIES:
            flags.add(SafeLanguageFlag.NO_ALARMIST_FRAMING)

        return frozenset(flags)

    def validate(
        self,
        answer: ExplanationAnswer,
        incident: SecurityIncident,
    ) -> tuple[ExplanationAnswer, int]:
        """
        Repair ``answer`` so it satisfies the incident's constraints.

        Returns the corrected answer and the number of repairs made. The
        count is also added to the answer's running violation total, so a
        second pass over an already compliant answer adds nothing.
        """
        constraints = self.determine_constraints(incident)
        violations = 0
        actions = answer.actions
        severity = answer.severity

        if SafeLanguageFlag.NO_FACTORY_RESET in constraints:
            kept = [a for a in actions if a.action_category != ActionCategory.FACTORY_RESET]
            if len(kept) < len(actions):
                violations += 1
            actions = [
                a.model_copy(update={"step_number": i})
                for i, a in enumerate(kept, start=1)
            ]

        if SafeLanguageFlag.NO_ALARMIST_FRAMING in constraints:
            if severity in _ALARMING_SEVERITIES:
                severity = IncidentSeverity.MEDIUM
                violations += 1
        elif severity == IncidentSeverity.CRITICAL and not hard_finding_types(incident):
            # CRITICAL needs HARD evidence behind it
            severity = IncidentSeverity.HIGH
            violations += 1

        if violations:
            self._logger.info(
                "policy_violations_corrected",
                incident_id=incident.id,
                violations=violations,
                severity_before=answer.severity.value,
                severity_after=severity.value,
            )

        corrected = answer.model_copy(update={
            "severity": severity,
            "actions": actions,
            "safe_language_flags": constraints,
            "policy_violations_found": answer.policy_violations_found + violations,
        })
        return corrected, violations

    @staticmethod
    def _has_confirmed_stalkerware(
        incident: SecurityIncident,
        hard: frozenset[FindingType],
    ) -> bool:
        signal_types = {s.type for s in incident.signals}
        if not _STALKERWARE_SIGNALS <= signal_types or not hard:
            return False
        top = incident.top_hypothesis
        return top is not None and top.name == STALKERWARE_HYPOTHESIS
