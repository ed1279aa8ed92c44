"""
AppSentinel — Slot Parser

Raw generated text → StructuredSlots, or a ParseError value.

Generated output is messy: preamble, markdown fences, trailing tokens after
the object. The parser takes the first balanced ``{...}`` block (braces
inside strings do not count), decodes it, and checks the required fields.
Any required-field failure is an error with no partial result.

Never raises for bad input.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from appsentinel.primitives.common import IncidentSeverity
from appsentinel.systems.evidence.types import ActionCategory
from appsentinel.systems.slots.types import (
    MAX_ACTIONS,
    MAX_NOTES_LENGTH,
    MAX_REASON_IDS,
    ParseError,
    ParseResult,
    ParseSuccess,
    StructuredSlots,
    SummaryTone,
)

logger = structlog.get_logger()

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


class SlotParseError(ValueError):
    """A required slot is missing or malformed. Converted to ParseError."""


def extract_json_object(raw: str) -> str | None:
    """Return the first balanced JSON object in ``raw``, or None."""
    cleaned = _FENCE_RE.sub("", raw).strip()
    start = cleaned.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(cleaned)):
        c = cleaned[i]
        if escaped:
            escaped = False
            continue
        if c == "\\" and in_string:
            escaped = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return cleaned[start : i + 1]
    return None  # Unbalanced


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None
    return value


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _severity(value: Any) -> IncidentSeverity:
    if isinstance(value, str):
        try:
            return IncidentSeverity[value.strip().upper()]
        except KeyError:
            pass
    raise SlotParseError(f"Invalid or missing assessed_severity: {value!r}")


def _action(value: str) -> ActionCategory | None:
    try:
        return ActionCategory(value.upper())
    except ValueError:
        return None


def _tone(value: Any) -> SummaryTone:
    if isinstance(value, str):
        try:
            return SummaryTone(value.strip().lower())
        except ValueError:
            pass
    return SummaryTone.NEUTRAL


def _confidence(value: Any) -> float:
    # bool is an int subclass; "true" is not a confidence
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SlotParseError(f"Invalid or missing confidence: {value!r}")
    confidence = float(value)
    if not 0.0 <= confidence <= 1.0:
        raise SlotParseError(f"Invalid confidence: {confidence} (must be 0.0-1.0)")
    return confidence


def _map_slots(data: dict[str, Any]) -> StructuredSlots:
    severity = _severity(data.get("assessed_severity"))

    reason_ids = _string_list(data.get("reason_ids"))
    if not reason_ids:
        raise SlotParseError("reason_ids is empty or missing")

    actions = [a for a in map(_action, _string_list(data.get("action_categories"))) if a]
    if not actions:
        raise SlotParseError("No valid action_categories found")

    confidence = _confidence(data.get("confidence"))

    can_be_ignored = data.get("can_be_ignored")
    notes = _optional_text(data.get("notes"))

    return StructuredSlots(
        assessed_severity=severity,
        summary_tone=_tone(data.get("summary_tone")),
        reason_ids=reason_ids[:MAX_REASON_IDS],
        action_categories=actions[:MAX_ACTIONS],
        confidence=confidence,
        notes=notes[:MAX_NOTES_LENGTH] if notes else None,
        can_be_ignored=can_be_ignored if isinstance(can_be_ignored, bool) else False,
        ignore_reason_key=_optional_text(data.get("ignore_reason_key")),
    )


class SlotParser:
    def __init__(self) -> None:
        self._logger = logger.bind(system="slots", component="parser")

    def parse(self, raw_output: str) -> ParseResult:
        if not raw_output or not raw_output.strip():
            return ParseError(message="Empty LLM output")

        candidate = extract_json_object(raw_output)
        if candidate is None:
            return self._fail("No valid JSON object found in output", raw_output)

        try:
            data = json.loads(candidate)
        except json.JSONDecodeError as exc:
            return self._fail(f"Malformed JSON object: {exc.msg}", raw_output)

        if not isinstance(data, dict):
            return self._fail("Top-level value is not an object", raw_output)

        try:
            slots = _map_slots(data)
        except SlotParseError as exc:
            return self._fail(f"Slot mapping error: {exc}", raw_output)

        return ParseSuccess(slots=slots)

    def _fail(self, message: str, raw_output: str) -> ParseError:
        self._logger.debug("slot_parse_failed", error=message, text_preview=raw_output[:120])
        return ParseError(message=message)
