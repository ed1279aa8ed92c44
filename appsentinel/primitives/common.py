"""
AppSentinel — Common Primitives

Shared enums, base classes, and utilities used across all systems.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


# ─── Enums ────────────────────────────────────────────────────────


class SignalSeverity(enum.StrEnum):
    """Severity of an atomic signal. Each level carries a numeric weight."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def weight(self) -> int:
        return _SIGNAL_WEIGHTS[self]


_SIGNAL_WEIGHTS: dict[SignalSeverity, int] = {
    SignalSeverity.CRITICAL: 40,
    SignalSeverity.HIGH: 25,
    SignalSeverity.MEDIUM: 15,
    SignalSeverity.LOW: 5,
    SignalSeverity.INFO: 1,
}


class IncidentSeverity(enum.StrEnum):
    """How bad is it? Declaration order is the ordinal, CRITICAL first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def ordinal(self) -> int:
        """0 for CRITICAL up to 4 for INFO."""
        return list(IncidentSeverity).index(self)

    @classmethod
    def from_signal(cls, severity: SignalSeverity) -> IncidentSeverity:
        return cls(severity.value)


class RiskLevel(int, enum.Enum):
    """Severity of a single finding. Higher value = more severe."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    def downgraded(self, steps: int) -> RiskLevel:
        return RiskLevel(max(self.value - steps, RiskLevel.NONE.value))


# ─── Base Models ──────────────────────────────────────────────────


class SentinelBaseModel(BaseModel):
    """Base model for all AppSentinel values. Immutable once created."""

    model_config = {"populate_by_name": True, "from_attributes": True, "frozen": True}
