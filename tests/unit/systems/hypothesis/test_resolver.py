"""
Tests for the HypothesisResolver.

Covers:
  - Every event type has hypothesis templates
  - Ambiguous evidence yields competing hypotheses
  - Context adjusts confidences; correlation boost is capped at 1.0
  - Hypotheses are ranked; equal confidences keep template order
  - Action set: UNINSTALL only on strong belief, MONITOR always last
  - Batch resolution grouped by package
"""

from __future__ import annotations

import pytest

from appsentinel.primitives.common import IncidentSeverity, SignalSeverity
from appsentinel.systems.evidence.taxonomy import EventType
from appsentinel.systems.evidence.types import (
    ActionCategory,
    InstallerType,
    SecurityEvent,
)
from appsentinel.systems.hypothesis import (
    HYPOTHESIS_TEMPLATES,
    AppContext,
    DeviceContext,
    HypothesisResolver,
)


def _make_event(
    event_type: EventType,
    package: str | None = "com.example.app",
    severity: SignalSeverity = SignalSeverity.HIGH,
) -> SecurityEvent:
    return SecurityEvent(type=event_type, severity=severity, package_name=package, summary="test")


def _sideloaded(trust: int = 20, **kwargs) -> AppContext:
    return AppContext(trust_score=trust, installer_type=InstallerType.SIDELOADED, **kwargs)


@pytest.fixture
def resolver() -> HypothesisResolver:
    return HypothesisResolver()


def test_every_event_type_has_templates():
    assert set(HYPOTHESIS_TEMPLATES) == set(EventType)
    assert all(HYPOTHESIS_TEMPLATES[e] for e in EventType)


# ─── Hypotheses ──────────────────────────────────────────────────


class TestHypotheses:
    def test_ca_cert_is_ambiguous(self, resolver):
        incident = resolver.resolve(_make_event(EventType.CA_CERT_INSTALLED, package=None))
        names = [h.name for h in incident.hypotheses]
        assert len(names) >= 2
        assert names == ["Man-in-the-middle interception", "Corporate / MDM configuration"]
        assert [h.confidence for h in incident.hypotheses] == [0.5, 0.4]

    def test_vpn_raises_interception(self, resolver):
        incident = resolver.resolve(
            _make_event(EventType.CA_CERT_INSTALLED, package=None),
            device=DeviceContext(vpn_active=True),
        )
        assert incident.top_confidence == pytest.approx(0.7)

    def test_stalkerware_context(self, resolver):
        event = _make_event(EventType.STALKERWARE_PATTERN)
        risky = resolver.resolve(event, app=_sideloaded(20))
        trusted = resolver.resolve(event, app=AppContext(trust_score=90))
        assert risky.top_confidence == pytest.approx(0.95)
        assert trusted.top_confidence == pytest.approx(0.55)
        assert trusted.top_hypothesis.contradicting_evidence == ["Higher trust (90)"]

    def test_no_context_uses_base_confidence(self, resolver):
        incident = resolver.resolve(_make_event(EventType.DROPPER_PATTERN))
        assert incident.top_confidence == pytest.approx(0.6)

    def test_ranked_by_confidence(self, resolver):
        incident = resolver.resolve(
            _make_event(EventType.SUSPICIOUS_UPDATE), app=AppContext(trust_score=90)
        )
        assert incident.title == "Legitimate update"
        assert incident.hypotheses[0].confidence >= incident.hypotheses[1].confidence

    def test_equal_confidence_keeps_template_order(self, resolver):
        incident = resolver.resolve(
            _make_event(EventType.SUSPICIOUS_UPDATE),
            app=AppContext(trust_score=90, is_version_rollback=True),
        )
        assert [h.confidence for h in incident.hypotheses] == [0.7, 0.7]
        assert incident.title == "Supply-chain compromise"

    def test_generic_uses_event_summary(self, resolver):
        incident = resolver.resolve(_make_event(EventType.OTHER))
        assert incident.top_hypothesis.name == "Security anomaly"
        assert incident.top_hypothesis.description == "test"

    def test_severity_follows_event(self, resolver):
        incident = resolver.resolve(_make_event(EventType.OTHER, severity=SignalSeverity.LOW))
        assert incident.severity == IncidentSeverity.LOW

    def test_deterministic(self, resolver):
        event = _make_event(EventType.OVERLAY_ATTACK_PATTERN)
        app = _sideloaded(20, is_new_app=True)
        first = resolver.resolve(event, app=app)
        second = resolver.resolve(event, app=app)
        assert first.hypotheses == second.hypotheses
        assert first.recommended_actions == second.recommended_actions


class TestCorrelationBoost:
    def test_boost_with_two_related_events(self, resolver):
        event = _make_event(EventType.DROPPER_PATTERN)
        recent = [_make_event(EventType.OTHER), _make_event(EventType.SUSPICIOUS_INSTALL)]
        incident = resolver.resolve(event, recent)
        assert incident.top_confidence == pytest.approx(0.7)
        assert incident.top_hypothesis.supporting_evidence[-1].startswith("Several security events")

    def test_boost_capped(self, resolver):
        event = _make_event(EventType.STALKERWARE_PATTERN)
        recent = [_make_event(EventType.OTHER), _make_event(EventType.OTHER)]
        incident = resolver.resolve(event, recent, app=_sideloaded(20))
        assert incident.top_confidence == 1.0

    def test_single_related_event_no_boost(self, resolver):
        event = _make_event(EventType.DROPPER_PATTERN)
        incident = resolver.resolve(event, [_make_event(EventType.OTHER)])
        assert incident.top_confidence == pytest.approx(0.6)

    def test_other_packages_do_not_corroborate(self, resolver):
        event = _make_event(EventType.DROPPER_PATTERN)
        recent = [
            _make_event(EventType.OTHER, package="com.other.a"),
            _make_event(EventType.OTHER, package="com.other.b"),
        ]
        incident = resolver.resolve(event, recent)
        assert incident.top_confidence == pytest.approx(0.6)

    def test_event_does_not_corroborate_itself(self, resolver):
        event = _make_event(EventType.DROPPER_PATTERN)
        incident = resolver.resolve(event, [event, _make_event(EventType.OTHER)])
        assert incident.top_confidence == pytest.approx(0.6)


# ─── Actions ─────────────────────────────────────────────────────


class TestActions:
    def test_uninstall_on_strong_belief(self, resolver):
        incident = resolver.resolve(_make_event(EventType.STALKERWARE_PATTERN), app=_sideloaded(20))
        categories = [a.category for a in incident.recommended_actions]
        assert categories == [ActionCategory.UNINSTALL, ActionCategory.MONITOR]
        assert incident.recommended_actions[0].target_package == "com.example.app"

    def test_no_uninstall_on_moderate_belief(self, resolver):
        incident = resolver.resolve(_make_event(EventType.DROPPER_PATTERN))
        assert [a.category for a in incident.recommended_actions] == [ActionCategory.MONITOR]
        assert incident.recommended_actions[0].priority == 1

    def test_revoke_special_access(self, resolver):
        incident = resolver.resolve(
            _make_event(EventType.STALKERWARE_PATTERN),
            app=_sideloaded(20, has_active_special_access=True),
        )
        actions = incident.recommended_actions
        assert [a.category for a in actions] == [
            ActionCategory.UNINSTALL,
            ActionCategory.REVOKE_SPECIAL_ACCESS,
            ActionCategory.MONITOR,
        ]
        assert actions[-1].priority == 3

    def test_check_settings_for_config_events(self, resolver):
        for event_type in (EventType.CONFIG_TAMPER, EventType.CA_CERT_INSTALLED):
            incident = resolver.resolve(_make_event(event_type, package=None))
            categories = [a.category for a in incident.recommended_actions]
            assert categories == [ActionCategory.CHECK_SETTINGS, ActionCategory.MONITOR]

    def test_device_event_never_uninstalls(self, resolver):
        event = _make_event(EventType.DEVICE_COMPROMISE, package=None)
        recent = [
            _make_event(EventType.OTHER, package=None),
            _make_event(EventType.OTHER, package=None),
        ]
        incident = resolver.resolve(event, recent)
        assert ActionCategory.UNINSTALL not in {a.category for a in incident.recommended_actions}
        assert incident.affected_packages == []

    @pytest.mark.parametrize("event_type", list(EventType))
    def test_monitor_always_last(self, resolver, event_type):
        incident = resolver.resolve(_make_event(event_type), app=_sideloaded(10))
        assert incident.recommended_actions[-1].category == ActionCategory.MONITOR


# ─── Batch ───────────────────────────────────────────────────────


class TestResolveAll:
    def test_one_incident_per_event(self, resolver):
        events = [
            _make_event(EventType.DROPPER_PATTERN, package="com.a"),
            _make_event(EventType.OTHER, package="com.b"),
            _make_event(EventType.CONFIG_TAMPER, package=None),
        ]
        incidents = resolver.resolve_all(events)
        assert len(incidents) == 3
        assert [i.package_name for i in incidents] == ["com.a", "com.b", None]

    def test_app_context_applied_per_package(self, resolver):
        events = [
            _make_event(EventType.STALKERWARE_PATTERN, package="com.a"),
            _make_event(EventType.STALKERWARE_PATTERN, package="com.b"),
        ]
        incidents = resolver.resolve_all(events, {"com.a": _sideloaded(20)})
        assert incidents[0].top_confidence == pytest.approx(0.95)
        assert incidents[1].top_confidence == pytest.approx(0.7)

    def test_batch_does_not_corroborate_itself(self, resolver):
        events = [_make_event(EventType.DROPPER_PATTERN, package="com.a") for _ in range(3)]
        alone = [resolver.resolve(e).top_confidence for e in events]
        batch = [i.top_confidence for i in resolver.resolve_all(events)]
        assert batch == alone
