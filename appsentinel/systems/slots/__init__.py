"""
AppSentinel — Slot Guard

Parses structured slots out of generated text and grounds them in the
incident's own evidence before anything is rendered.
"""

from appsentinel.systems.slots.parser import SlotParser, extract_json_object
from appsentinel.systems.slots.types import (
    MAX_ACTIONS,
    MAX_NOTES_LENGTH,
    MAX_REASON_IDS,
    IssueSeverity,
    ParseError,
    ParseResult,
    ParseSuccess,
    Rejected,
    Repaired,
    StructuredSlots,
    SummaryTone,
    Valid,
    ValidationIssue,
    ValidationMode,
    ValidationResult,
)
from appsentinel.systems.slots.validator import VALID_IGNORE_KEYS, SlotValidator, bounded_severity

__all__ = [
    "IssueSeverity",
    "MAX_ACTIONS",
    "MAX_NOTES_LENGTH",
    "MAX_REASON_IDS",
    "ParseError",
    "ParseResult",
    "ParseSuccess",
    "Rejected",
    "Repaired",
    "SlotParser",
    "SlotValidator",
    "StructuredSlots",
    "SummaryTone",
    "VALID_IGNORE_KEYS",
    "Valid",
    "ValidationIssue",
    "ValidationMode",
    "ValidationResult",
    "bounded_severity",
]
