"""
AppSentinel — Hypothesis Resolver

Event (+ recent events) → Incident with ranked causal hypotheses.

Each event type maps to a fixed set of hypothesis builders. Evidence that
is ambiguous by nature always yields competing hypotheses: a new root
certificate is an interception attempt or a managed-device enrolment, and
the resolver does not pick one narrative for the user.

Deterministic: same inputs give the same hypotheses in the same order.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Mapping, Sequence

import structlog

from appsentinel.primitives.common import IncidentSeverity, clamp01
from appsentinel.systems.evidence.taxonomy import EventType, SignalType
from appsentinel.systems.evidence.types import (
    ActionCategory,
    CapabilityCluster,
    Hypothesis,
    RecommendedAction,
    SecurityEvent,
    SecurityIncident,
)
from appsentinel.systems.hypothesis.types import AppContext, DeviceContext

logger = structlog.get_logger()

DEVICE_GROUP = "__device__"

STALKERWARE_HYPOTHESIS = "Stalkerware / monitoring app"

_HIGH_TRUST = 70
_LOW_TRUST = 40
_CORRELATION_BOOST = 0.1
_CORRELATION_MIN_EVENTS = 2
_UNINSTALL_CONFIDENCE = 0.7

_Builder = Callable[[SecurityEvent, AppContext | None, DeviceContext | None], Hypothesis]


# ─── Hypothesis builders ─────────────────────────────────────────


def _hypothesis(
    name: str,
    description: str,
    confidence: float,
    supporting: list[str],
    contradicting: list[str] | None = None,
    mitre: list[str] | None = None,
) -> Hypothesis:
    return Hypothesis(
        name=name,
        description=description,
        confidence=round(clamp01(confidence), 2),
        supporting_evidence=supporting,
        contradicting_evidence=contradicting or [],
        mitre_techniques=mitre or [],
    )


def _stalkerware(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.7
    evidence = ["Accessibility service combined with notification access"]
    contradicting: list[str] = []
    if app is not None:
        if app.is_sideloaded:
            confidence += 0.15
            evidence.append("Installed outside an app store")
        if app.trust_score < _LOW_TRUST:
            confidence += 0.1
            evidence.append(f"Low trust ({app.trust_score})")
        else:
            confidence -= 0.15
            contradicting.append(f"Higher trust ({app.trust_score})")
    return _hypothesis(
        STALKERWARE_HYPOTHESIS,
        "The app holds capabilities typical of covert monitoring software",
        confidence,
        evidence,
        contradicting,
        ["T1417", "T1513"],
    )


def _dropper(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.6
    evidence = ["Accessibility service combined with package installs"]
    contradicting: list[str] = []
    if app is not None:
        if app.trust_score < _LOW_TRUST:
            confidence += 0.15
            evidence.append(f"Low trust ({app.trust_score})")
        if app.is_sideloaded:
            confidence += 0.1
            evidence.append("Installed outside an app store")
        if app.is_new_app:
            confidence += 0.1
            evidence.append("Freshly installed")
        if app.has_cluster(CapabilityCluster.OVERLAY):
            confidence += 0.1
            evidence.append("Overlay permission, a common banking attack vector")
        if app.trust_score >= _HIGH_TRUST:
            confidence -= 0.2
            contradicting.append(f"Higher trust ({app.trust_score})")
    return _hypothesis(
        "Dropper / malware installer",
        "The app may install further malicious packages on its own",
        confidence,
        evidence,
        contradicting,
        ["T1544"],
    )


def _supply_chain(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.4
    evidence = ["Suspicious update"]
    if app is not None and app.is_version_rollback:
        confidence += 0.3
        evidence.append("Version went backwards")
    return _hypothesis(
        "Supply-chain compromise",
        "The app update may have been tampered with",
        confidence,
        evidence,
        mitre=["T1195"],
    )


def _legitimate_update(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.3
    evidence: list[str] = []
    if app is not None and app.trust_score >= _HIGH_TRUST:
        confidence += 0.4
        evidence.append("Highly trusted developer")
    return _hypothesis(
        "Legitimate update",
        "A routine update from a known developer",
        confidence,
        evidence,
    )


def _escalation(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    return _hypothesis(
        "Capability escalation",
        "The app acquired new dangerous capabilities",
        0.5,
        ["New high-risk permissions added"],
        mitre=["T1548"],
    )


def _feature_add(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.3
    if app is not None and app.trust_score >= _HIGH_TRUST:
        confidence += 0.3
    return _hypothesis(
        "New feature",
        "The developer shipped a feature that needs these permissions",
        confidence,
        ["Ordinary app development"],
    )


def _malicious_access(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.4
    evidence = ["Special access enabled"]
    if app is not None and app.is_sideloaded:
        confidence += 0.2
        evidence.append("Installed outside an app store")
    return _hypothesis(
        "Abuse of special access",
        "Special access could be used to watch or manipulate the device",
        confidence,
        evidence,
        mitre=["T1628"],
    )


def _legitimate_access(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.3
    if app is not None and app.trust_score >= _HIGH_TRUST:
        confidence += 0.4
    return _hypothesis(
        "Legitimate special access",
        "The user granted access to a trusted app",
        confidence,
        ["Enabled by the user"],
    )


def _config_tamper(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    return _hypothesis(
        "Device configuration tampering",
        "A device setting changed in a way that can weaken security",
        0.5,
        ["Configuration change detected"],
    )


def _mitm(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.5
    evidence = ["User CA certificate installed"]
    if device is not None and device.vpn_active:
        confidence += 0.2
        evidence.append("VPN active at the same time")
    return _hypothesis(
        "Man-in-the-middle interception",
        "The certificate allows encrypted traffic to be read",
        confidence,
        evidence,
        mitre=["T1557"],
    )


def _corporate(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    return _hypothesis(
        "Corporate / MDM configuration",
        "The certificate was installed for a work profile or managed device",
        0.4,
        ["Common on managed devices"],
    )


def _overlay_attack(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.6
    evidence = ["Overlay permission on a weakly trusted app"]
    contradicting: list[str] = []
    if app is not None:
        if app.is_sideloaded:
            confidence += 0.15
            evidence.append("Installed outside an app store")
        if app.trust_score < _LOW_TRUST:
            confidence += 0.1
            evidence.append(f"Low trust ({app.trust_score})")
        if app.trust_score >= _HIGH_TRUST:
            confidence -= 0.2
            contradicting.append(f"Higher trust ({app.trust_score})")
    return _hypothesis(
        "Overlay / phishing attack",
        "The app can draw a fake interface over other apps",
        confidence,
        evidence,
        contradicting,
        ["T1660"],
    )


def _banking_overlay(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.45
    evidence = ["Overlay permission with a suspicious profile"]
    contradicting: list[str] = []
    if app is not None:
        if app.has_cluster(CapabilityCluster.ACCESSIBILITY):
            confidence += 0.2
            evidence.append("Accessibility plus overlay, the banking trojan signature")
        if app.is_sideloaded:
            confidence += 0.15
            evidence.append("Installed outside an app store")
        if app.trust_score < _LOW_TRUST:
            confidence += 0.1
            evidence.append(f"Low trust ({app.trust_score})")
        if app.is_new_app:
            confidence += 0.1
            evidence.append("Freshly installed")
        if app.trust_score >= _HIGH_TRUST:
            confidence -= 0.25
            contradicting.append(f"Higher trust ({app.trust_score})")
    return _hypothesis(
        "Banking overlay attack",
        "The app matches the banking trojan pattern of overlays over financial apps",
        confidence,
        evidence,
        contradicting,
        ["T1660", "T1417"],
    )


def _staged_payload(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.55
    evidence = ["Install followed by permission escalation"]
    contradicting: list[str] = []
    if app is not None:
        if app.is_new_app:
            confidence += 0.15
            evidence.append("Freshly installed")
        if app.has_cluster(CapabilityCluster.INSTALL_PACKAGES):
            confidence += 0.15
            evidence.append("Can install other apps")
        if app.is_sideloaded:
            confidence += 0.1
            evidence.append("Installed outside an app store")
        if app.trust_score < _LOW_TRUST:
            confidence += 0.1
            evidence.append(f"Low trust ({app.trust_score})")
        if app.trust_score >= _HIGH_TRUST:
            confidence -= 0.25
            contradicting.append("Higher trust")
    return _hypothesis(
        "Staged payload dropper",
        "The app looked harmless at first and escalated its permissions later",
        confidence,
        evidence,
        contradicting,
        ["T1544", "T1407"],
    )


_NETWORK_AFTER_INSTALL = frozenset({
    SignalType.NETWORK_BURST_ANOMALY,
    SignalType.NETWORK_AFTER_INSTALL,
})


def _loader(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    confidence = 0.5
    evidence = ["Dynamic code loading after install"]
    contradicting: list[str] = []
    if app is not None:
        if app.is_new_app:
            confidence += 0.15
            evidence.append("Freshly installed")
        if app.is_sideloaded:
            confidence += 0.15
            evidence.append("Installed outside an app store")
        if app.trust_score < _LOW_TRUST:
            confidence += 0.1
            evidence.append(f"Low trust ({app.trust_score})")
        if any(s.type in _NETWORK_AFTER_INSTALL for s in event.signals):
            confidence += 0.15
            evidence.append("Network traffic right after install, likely a payload download")
        if app.trust_score >= _HIGH_TRUST:
            confidence -= 0.2
            contradicting.append("Higher trust")
    return _hypothesis(
        "Loader / runtime downloader",
        "The app downloads and runs code at runtime",
        confidence,
        evidence,
        contradicting,
        ["T1407", "T1544"],
    )


def _generic(event: SecurityEvent, app: AppContext | None, device: DeviceContext | None) -> Hypothesis:
    return _hypothesis(
        "Security anomaly",
        event.summary or "Unusual security-relevant behaviour",
        0.3,
        ["Detected automatically"],
    )


# Every event type has an entry
HYPOTHESIS_TEMPLATES: Mapping[EventType, tuple[_Builder, ...]] = {
    EventType.STALKERWARE_PATTERN: (_stalkerware,),
    EventType.OVERLAY_ATTACK_PATTERN: (_overlay_attack, _banking_overlay),
    EventType.DROPPER_PATTERN: (_dropper,),
    EventType.STAGED_PAYLOAD: (_staged_payload, _dropper),
    EventType.LOADER_BEHAVIOR: (_loader, _generic),
    EventType.DEVICE_COMPROMISE: (_generic,),
    EventType.CA_CERT_INSTALLED: (_mitm, _corporate),
    EventType.SUSPICIOUS_UPDATE: (_supply_chain, _legitimate_update),
    EventType.CAPABILITY_ESCALATION: (_escalation, _feature_add),
    EventType.SPECIAL_ACCESS_GRANT: (_malicious_access, _legitimate_access),
    EventType.CONFIG_TAMPER: (_config_tamper,),
    EventType.SUSPICIOUS_VPN: (_generic,),
    EventType.SUSPICIOUS_INSTALL: (_generic,),
    EventType.BEHAVIORAL_ANOMALY: (_generic,),
    EventType.OTHER: (_generic,),
}


# ─── Resolver ────────────────────────────────────────────────────


class HypothesisResolver:
    """Ranks hypotheses explaining why a security event happened."""

    def __init__(self) -> None:
        self._logger = logger.bind(system="hypothesis", component="resolver")

    def resolve(
        self,
        event: SecurityEvent,
        recent_events: Sequence[SecurityEvent] = (),
        app: AppContext | None = None,
        device: DeviceContext | None = None,
    ) -> SecurityIncident:
        hypotheses = [build(event, app, device) for build in HYPOTHESIS_TEMPLATES[event.type]]

        corroborating = [
            e for e in recent_events
            if e.package_name == event.package_name and e.id != event.id
        ]
        if len(corroborating) >= _CORRELATION_MIN_EVENTS:
            hypotheses = [
                h.model_copy(update={
                    "confidence": round(min(1.0, h.confidence + _CORRELATION_BOOST), 2),
                    "supporting_evidence": [
                        *h.supporting_evidence,
                        "Several security events for this app in a short window",
                    ],
                })
                for h in hypotheses
            ]

        # Stable: equal confidences keep template order
        hypotheses.sort(key=lambda h: h.confidence, reverse=True)
        top = hypotheses[0] if hypotheses else None

        incident = SecurityIncident(
            severity=IncidentSeverity.from_signal(event.severity),
            title=top.name if top else event.summary,
            summary=top.description if top else event.summary,
            package_name=event.package_name,
            affected_packages=[event.package_name] if event.package_name else [],
            events=[event],
            hypotheses=hypotheses,
            recommended_actions=self._actions(event, app, top),
        )

        self._logger.debug(
            "incident_resolved",
            event_type=event.type.value,
            package=event.package_name,
            top_hypothesis=incident.title,
            top_confidence=incident.top_confidence,
            correlated=len(corroborating),
        )
        return incident

    def resolve_all(
        self,
        events: Sequence[SecurityEvent],
        app_contexts: Mapping[str, AppContext] | None = None,
        device: DeviceContext | None = None,
    ) -> list[SecurityIncident]:
        """
        Resolve a batch, grouped by package. Device-level events form their
        own group. Each group is resolved independently: the correlation window
        is the rest of the batch, so a burst for one package never boosts
        itself.
        """
        app_contexts = app_contexts or {}
        groups: dict[str, list[SecurityEvent]] = defaultdict(list)
        for event in events:
            groups[event.package_name or DEVICE_GROUP].append(event)

        incidents: list[SecurityIncident] = []
        for key, group in groups.items():
            app = app_contexts.get(key) if key != DEVICE_GROUP else None
            group_ids = {e.id for e in group}
            recent = [e for e in events if e.id not in group_ids]
            for event in group:
                incidents.append(self.resolve(event, recent, app, device))
        return incidents

    @staticmethod
    def _actions(
        event: SecurityEvent,
        app: AppContext | None,
        top: Hypothesis | None,
    ) -> list[RecommendedAction]:
        actions: list[RecommendedAction] = []
        package = event.package_name

        if top is not None and top.confidence > _UNINSTALL_CONFIDENCE and package:
            actions.append(RecommendedAction(
                priority=1,
                category=ActionCategory.UNINSTALL,
                title="Uninstall the app",
                description="Removing this app is the safest option",
                target_package=package,
            ))

        if app is not None and app.has_active_special_access and package:
            actions.append(RecommendedAction(
                priority=2,
                category=ActionCategory.REVOKE_SPECIAL_ACCESS,
                title="Revoke special access",
                description="Turn off the app's special access in Settings",
                target_package=package,
            ))

        if event.type in (EventType.CONFIG_TAMPER, EventType.CA_CERT_INSTALLED):
            actions.append(RecommendedAction(
                priority=1,
                category=ActionCategory.CHECK_SETTINGS,
                title="Review device settings",
                description="Check the device's security settings",
            ))

        # Always at least one safe step
        actions.append(RecommendedAction(
            priority=len(actions) + 1,
            category=ActionCategory.MONITOR,
            title="Keep monitoring",
            description="Watch this app or setting in later scans",
            target_package=package,
        ))
        return actions
