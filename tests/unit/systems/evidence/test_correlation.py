"""
Tests for signal correlation and the incident aggregate.

Covers:
  - Event type, severity and time window derived from the signal group
  - Explicit event type wins
  - Empty groups are rejected
  - Incident hypotheses stay sorted; status changes produce new values
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from appsentinel.primitives.common import IncidentSeverity, SignalSeverity
from appsentinel.systems.evidence import (
    EventType,
    Hypothesis,
    IncidentStatus,
    SecurityIncident,
    Signal,
    SignalSource,
    SignalType,
    correlate,
)

_T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_signal(
    signal_type: SignalType,
    severity: SignalSeverity = SignalSeverity.MEDIUM,
    package: str | None = "com.example.app",
    minutes: int = 0,
) -> Signal:
    return Signal(
        source=SignalSource.BASELINE,
        type=signal_type,
        severity=severity,
        package_name=package,
        summary=f"{signal_type.value} observed",
        timestamp=_T0 + timedelta(minutes=minutes),
    )


class TestCorrelate:
    def test_most_specific_event_type_wins(self):
        event = correlate([
            _make_signal(SignalType.NEW_APP_INSTALLED),
            _make_signal(SignalType.FRESH_INSTALL_RISKY_PERM),
        ])
        assert event.type == EventType.DROPPER_PATTERN

    def test_heaviest_severity(self):
        event = correlate([
            _make_signal(SignalType.CERT_CHANGE, SignalSeverity.LOW),
            _make_signal(SignalType.VERSION_ROLLBACK, SignalSeverity.CRITICAL),
            _make_signal(SignalType.INSTALLER_CHANGE, SignalSeverity.HIGH),
        ])
        assert event.type == EventType.SUSPICIOUS_UPDATE
        assert event.severity == SignalSeverity.CRITICAL
        assert event.summary == "VERSION_ROLLBACK observed"

    def test_time_window(self):
        event = correlate([
            _make_signal(SignalType.CERT_CHANGE, minutes=5),
            _make_signal(SignalType.INSTALLER_CHANGE, minutes=1),
            _make_signal(SignalType.VERSION_ROLLBACK, minutes=9),
        ])
        assert event.start_time == _T0 + timedelta(minutes=1)
        assert event.end_time == _T0 + timedelta(minutes=9)

    def test_package_from_signals(self):
        event = correlate([_make_signal(SignalType.CERT_CHANGE, package="com.bank.app")])
        assert event.package_name == "com.bank.app"

    def test_device_level_event(self):
        event = correlate([_make_signal(SignalType.ROOT_DETECTED, package=None)])
        assert event.package_name is None
        assert event.type == EventType.DEVICE_COMPROMISE

    def test_explicit_event_type(self):
        signals = [
            _make_signal(SignalType.COMBO_DETECTED),
            _make_signal(SignalType.SPECIAL_ACCESS_ENABLED),
        ]
        event = correlate(signals, event_type=EventType.STALKERWARE_PATTERN, summary="combo")
        assert event.type == EventType.STALKERWARE_PATTERN
        assert event.summary == "combo"
        assert len(event.signals) == 2

    def test_empty_group_rejected(self):
        with pytest.raises(ValueError, match="empty signal group"):
            correlate([])


class TestIncident:
    def _make_incident(self) -> SecurityIncident:
        event = correlate([
            _make_signal(SignalType.CERT_CHANGE),
            _make_signal(SignalType.VERSION_ROLLBACK),
        ])
        return SecurityIncident(
            severity=IncidentSeverity.HIGH,
            title="Suspicious update",
            events=[event],
            hypotheses=[
                Hypothesis(name="low", confidence=0.2),
                Hypothesis(name="high", confidence=0.9),
                Hypothesis(name="mid", confidence=0.5),
            ],
        )

    def test_hypotheses_sorted(self):
        incident = self._make_incident()
        assert [h.name for h in incident.hypotheses] == ["high", "mid", "low"]
        assert incident.top_confidence == pytest.approx(0.9)

    def test_evidence_ids_cover_events_and_signals(self):
        incident = self._make_incident()
        event = incident.events[0]
        assert event.id in incident.evidence_ids
        assert all(s.id in incident.evidence_ids for s in event.signals)
        assert len(incident.evidence_ids) == 3

    def test_with_status_is_a_new_value(self):
        incident = self._make_incident()
        updated = incident.with_status(IncidentStatus.FALSE_POSITIVE)
        assert incident.status == IncidentStatus.OPEN
        assert updated.status == IncidentStatus.FALSE_POSITIVE
        assert updated.status.is_terminal
        assert updated.id == incident.id

    def test_no_hypotheses(self):
        incident = SecurityIncident(severity=IncidentSeverity.INFO, title="empty")
        assert incident.top_hypothesis is None
        assert incident.top_confidence == 0.0
