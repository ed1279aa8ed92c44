"""
AppSentinel — Event Correlation

Groups signals for one package into a named SecurityEvent using the
taxonomy's event projection.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from appsentinel.systems.evidence.taxonomy import EventType, event_type_for
from appsentinel.systems.evidence.types import SecurityEvent, Signal

logger = structlog.get_logger()


def correlate(
    signals: Sequence[Signal],
    package_name: str | None = None,
    event_type: EventType | None = None,
    summary: str = "",
) -> SecurityEvent:
    """
    Build one event from a group of signals.

    The event type is the most specific type any signal projects to unless
    the caller names one. Severity is the heaviest signal severity and the
    time window spans the earliest to the latest signal.
    """
    if not signals:
        raise ValueError("Cannot correlate an empty signal group")

    if event_type is None:
        event_type = min((event_type_for(s.type) for s in signals), key=lambda t: t.priority)

    heaviest = max(signals, key=lambda s: s.weight)
    start = min(s.timestamp for s in signals)
    end = max(s.timestamp for s in signals)
    package = package_name or next((s.package_name for s in signals if s.package_name), None)

    event = SecurityEvent(
        type=event_type,
        severity=heaviest.severity,
        package_name=package,
        summary=summary or heaviest.summary,
        start_time=start,
        end_time=end,
        signals=list(signals),
    )
    logger.debug(
        "signals_correlated",
        event_type=event_type.value,
        package=package,
        signal_count=len(signals),
    )
    return event
