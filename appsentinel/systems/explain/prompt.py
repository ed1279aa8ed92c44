"""
AppSentinel — Prompt Builder

Renders an incident and its policy constraints into a compact prompt that
asks for structured slots only, never prose.

Four sections, in order:
  A) system instruction with the JSON slot schema and its rules
  B) incident context: severity, events, signals with evidence ids,
     hypotheses, current recommendations
  C) the policy constraints as imperative lines
  D) the output instruction

Context is bounded (3 events, 5 signals per event, 3 hypotheses, 4
actions) to keep the prompt small for on-device models. The same incident
and constraints always give the same prompt.
"""

from __future__ import annotations

from collections.abc import Iterable

from appsentinel.primitives.common import IncidentSeverity
from appsentinel.systems.evidence.types import ActionCategory, SecurityIncident
from appsentinel.systems.explain.errors import PromptBuildError
from appsentinel.systems.policy.types import SafeLanguageFlag
from appsentinel.systems.slots.types import MAX_ACTIONS, MAX_REASON_IDS
from appsentinel.systems.slots.validator import VALID_IGNORE_KEYS

MAX_EVENTS = 3
MAX_SIGNALS_PER_EVENT = 5
MAX_HYPOTHESES = 3
MAX_CONTEXT_ACTIONS = 4

UNKNOWN_PACKAGE = "unknown_app"

# Written for the model, not the user
CONSTRAINT_INSTRUCTIONS: dict[SafeLanguageFlag, str] = {
    SafeLanguageFlag.NO_VIRUS_CLAIM: "NEVER use the term 'virus' (not applicable to Android apps)",
    SafeLanguageFlag.NO_MALWARE_CLAIM: "DO NOT claim this is malware (insufficient hard evidence)",
    SafeLanguageFlag.NO_COMPROMISE_CLAIM: "DO NOT claim the device is compromised (insufficient evidence)",
    SafeLanguageFlag.NO_SPYING_CLAIM: "DO NOT claim the app is spying (stalkerware pattern not confirmed)",
    SafeLanguageFlag.NO_FACTORY_RESET: "DO NOT recommend a factory reset (disproportionate for this incident)",
    SafeLanguageFlag.NO_ALARMIST_FRAMING: "Use a calm or neutral tone only (severity does not justify alarm)",
}

_OUTPUT_INSTRUCTION = (
    "Respond with ONLY the JSON object. No markdown, no explanation, no code fences."
)


def _system_instruction() -> str:
    ignore_keys = " | ".join(f'"{k}"' for k in sorted(VALID_IGNORE_KEYS))
    return "\n".join([
        "You are a security analysis assistant. Analyze the incident below and return a JSON object.",
        "",
        "OUTPUT SCHEMA (return ONLY this JSON, nothing else):",
        "{",
        '  "assessed_severity": "CRITICAL" | "HIGH" | "MEDIUM" | "LOW" | "INFO",',
        '  "summary_tone": "calm" | "neutral" | "strict",',
        '  "reason_ids": ["evidence_id_1", "evidence_id_2"],',
        '  "action_categories": ["UNINSTALL", "REVOKE_PERMISSION", "CHECK_SETTINGS", "MONITOR"],',
        '  "confidence": 0.0 to 1.0,',
        '  "can_be_ignored": true | false,',
        f'  "ignore_reason_key": {ignore_keys} | null,',
        '  "notes": "optional short note (max 2 sentences)" | null',
        "}",
        "",
        "RULES:",
        "- reason_ids MUST be from the evidence list below",
        f"- action_categories MUST be from: {', '.join(c.name for c in ActionCategory)}",
        f"- assessed_severity MUST be from: {', '.join(s.name for s in IncidentSeverity)}",
        "- confidence MUST be between 0.0 and 1.0",
        f"- Select max {MAX_REASON_IDS} reason_ids, ordered by importance",
        f"- Select max {MAX_ACTIONS} action_categories, ordered by urgency",
        "- notes MUST be max 2 sentences or null",
    ])


class PromptBuilder:
    def build_prompt(
        self,
        incident: SecurityIncident,
        constraints: Iterable[SafeLanguageFlag],
    ) -> str:
        if not incident.events:
            raise PromptBuildError(f"Incident {incident.id} has no events to ground on")
        return "\n\n".join([
            _system_instruction(),
            self.incident_context(incident),
            self.constraint_lines(constraints),
            _OUTPUT_INSTRUCTION,
        ])

    @staticmethod
    def estimate_token_count(prompt: str) -> int:
        """Rough: about four characters per token for English text."""
        return max(len(prompt) // 4, 1)

    def incident_context(self, incident: SecurityIncident) -> str:
        lines = [
            "INCIDENT:",
            f"  severity: {incident.severity.name}",
            f"  package: {incident.package_name or UNKNOWN_PACKAGE}",
        ]

        if incident.events:
            lines.append("  events:")
            for event in incident.events[:MAX_EVENTS]:
                lines.append(f"    - type: {event.type.name}")
                lines.append(f"      severity: {event.severity.name}")
                for signal in event.signals[:MAX_SIGNALS_PER_EVENT]:
                    lines.append(f"      - evidence_id: {signal.id}")
                    lines.append(f"        signal: {signal.type.name}")
                    lines.append(f"        severity: {signal.severity.name}")

        if incident.hypotheses:
            lines.append("  hypotheses:")
            for hypothesis in incident.hypotheses[:MAX_HYPOTHESES]:
                lines.append(f"    - name: {hypothesis.name}")
                lines.append(f"      confidence: {hypothesis.confidence}")
                lines.append(f"      supporting: {', '.join(hypothesis.supporting_evidence[:3])}")
                if hypothesis.contradicting_evidence:
                    lines.append(
                        f"      contradicting: {', '.join(hypothesis.contradicting_evidence[:2])}"
                    )

        if incident.recommended_actions:
            lines.append("  current_recommendations:")
            for action in incident.recommended_actions[:MAX_CONTEXT_ACTIONS]:
                lines.append(f"    - {action.category.name} (priority: {action.priority})")

        return "\n".join(lines)

    @staticmethod
    def constraint_lines(constraints: Iterable[SafeLanguageFlag]) -> str:
        active = set(constraints)
        lines = ["CONSTRAINTS (you MUST respect these):"]
        if not active:
            lines.append("  No additional constraints.")
        # Declaration order, so set iteration order never changes the prompt
        for flag in SafeLanguageFlag:
            if flag in active:
                lines.append(f"  - {CONSTRAINT_INSTRUCTIONS[flag]}")
        return "\n".join(lines)
