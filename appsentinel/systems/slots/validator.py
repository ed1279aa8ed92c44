"""
AppSentinel — Slot Validator

Checks parsed slots against the incident they claim to explain.

  1. Every referenced evidence id must exist in the incident
  2. Severity may drop freely or rise one level; anything higher falls back
     to the incident severity
  3. Confidence is clamped to [0, 1]
  4. The ignore reason must come from a fixed allow-list
  5. Notes are length-limited

LENIENT mode repairs what it can and rejects only when no grounded
evidence id remains. STRICT mode rejects on any issue.
"""

from __future__ import annotations

import structlog

from appsentinel.primitives.common import IncidentSeverity, clamp01
from appsentinel.systems.evidence.types import SecurityIncident
from appsentinel.systems.slots.types import (
    MAX_NOTES_LENGTH,
    IssueSeverity,
    Rejected,
    Repaired,
    StructuredSlots,
    Valid,
    ValidationIssue,
    ValidationMode,
    ValidationResult,
)

logger = structlog.get_logger()

VALID_IGNORE_KEYS: frozenset[str] = frozenset({
    "user_initiated_update",
    "known_developer_tool",
    "corporate_profile",
    "power_user_sideload",
    "vpn_by_choice",
})


def bounded_severity(candidate: IncidentSeverity, incident: IncidentSeverity) -> IncidentSeverity:
    """The candidate if at most one level above the incident, else the incident."""
    if incident.ordinal - candidate.ordinal > 1:
        return incident
    return candidate


class SlotValidator:
    def __init__(self) -> None:
        self._logger = logger.bind(system="slots", component="validator")

    def validate(
        self,
        slots: StructuredSlots,
        incident: SecurityIncident,
        mode: ValidationMode = ValidationMode.LENIENT,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        evidence_ids = incident.evidence_ids

        grounded = [i for i in slots.reason_ids if i in evidence_ids]
        hallucinated = [i for i in slots.reason_ids if i not in evidence_ids]
        if hallucinated:
            issues.append(ValidationIssue(
                field="reason_ids",
                severity=IssueSeverity.WARNING,
                message=f"Removed {len(hallucinated)} unknown evidence ids: {hallucinated[:3]}",
            ))
        if not grounded:
            issues.append(ValidationIssue(
                field="reason_ids",
                severity=IssueSeverity.CRITICAL,
                message="No valid evidence ids remain after filtering",
            ))

        if not slots.action_categories:
            issues.append(ValidationIssue(
                field="action_categories",
                severity=IssueSeverity.CRITICAL,
                message="No valid action categories",
            ))

        confidence = clamp01(slots.confidence)
        if confidence != slots.confidence:
            issues.append(ValidationIssue(
                field="confidence",
                severity=IssueSeverity.WARNING,
                message=f"Confidence clamped from {slots.confidence} to {confidence}",
            ))

        severity = bounded_severity(slots.assessed_severity, incident.severity)
        if severity != slots.assessed_severity:
            issues.append(ValidationIssue(
                field="assessed_severity",
                severity=IssueSeverity.WARNING,
                message=(
                    f"Severity {slots.assessed_severity.name} exceeds incident "
                    f"{incident.severity.name} by more than one level, reset to {severity.name}"
                ),
            ))

        notes = slots.notes
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            issues.append(ValidationIssue(
                field="notes",
                severity=IssueSeverity.INFO,
                message=f"Notes truncated from {len(notes)} to {MAX_NOTES_LENGTH} chars",
            ))
            notes = notes[:MAX_NOTES_LENGTH]

        ignore_key = slots.ignore_reason_key
        if ignore_key is not None and ignore_key not in VALID_IGNORE_KEYS:
            issues.append(ValidationIssue(
                field="ignore_reason_key",
                severity=IssueSeverity.WARNING,
                message=f"Invalid ignore reason key: {ignore_key!r}",
            ))
            ignore_key = None

        if slots.can_be_ignored and ignore_key is None:
            issues.append(ValidationIssue(
                field="can_be_ignored",
                severity=IssueSeverity.WARNING,
                message="can_be_ignored requires a valid ignore reason key, cleared",
            ))

        if mode == ValidationMode.STRICT and issues:
            return self._reject(incident, issues, f"Strict mode: {len(issues)} issues found")

        if any(i.severity == IssueSeverity.CRITICAL for i in issues):
            return self._reject(
                incident, issues, "No grounded evidence or actions, cannot build an explanation"
            )

        repaired = slots.model_copy(update={
            "assessed_severity": severity,
            "reason_ids": grounded,
            "confidence": confidence,
            "notes": notes,
            "ignore_reason_key": ignore_key,
            "can_be_ignored": slots.can_be_ignored if ignore_key is not None else False,
        })
        if not issues:
            return Valid(slots=repaired)

        self._logger.debug(
            "slots_repaired",
            incident_id=incident.id,
            issues=[i.field for i in issues],
        )
        return Repaired(slots=repaired, issues=issues)

    def _reject(
        self,
        incident: SecurityIncident,
        issues: list[ValidationIssue],
        reason: str,
    ) -> Rejected:
        self._logger.debug("slots_rejected", incident_id=incident.id, reason=reason)
        return Rejected(issues=issues, reason=reason)
