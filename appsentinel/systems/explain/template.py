"""
AppSentinel — Template Explanation Engine

Deterministic English rendering of an incident into an ExplanationAnswer.

This is the baseline engine, not a degraded mode. It is:
  1. the answer whenever generation is disabled, unavailable or fails
  2. the renderer for generated slots: a model picks severity, evidence
     and actions, and the templates here turn those picks into text

Templates are keyed by event type (summary), signal type (reasons),
action category (steps) and severity (when-to-ignore). All user-facing
text lives in this module.

Stateless, safe for concurrent use.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from appsentinel.primitives.common import IncidentSeverity, clamp01
from appsentinel.systems.evidence.taxonomy import (
    EventType,
    FindingHardness,
    SignalType,
    finding_type_for,
)
from appsentinel.systems.evidence.types import (
    ActionCategory,
    Hypothesis,
    RecommendedAction,
    SecurityIncident,
    Signal,
)
from appsentinel.systems.explain.types import ExplanationRequest
from appsentinel.systems.policy.guard import (
    PolicyGuard,
    hard_finding_types,
    is_action_allowed,
)
from appsentinel.systems.policy.types import (
    ActionStep,
    EngineSource,
    EvidenceReason,
    ExplanationAnswer,
    SafeLanguageFlag,
)
from appsentinel.systems.slots.types import StructuredSlots

logger = structlog.get_logger()

APP_PLACEHOLDER = "the app"
DEFAULT_CONFIDENCE = 0.5
_HARD_HYPOTHESIS_CONFIDENCE = 0.7
_URGENT_ACTIONS = frozenset({ActionCategory.UNINSTALL, ActionCategory.FACTORY_RESET})


# ─── Template tables ─────────────────────────────────────────────


SUMMARY_TEMPLATES: dict[EventType, str] = {
    EventType.STALKERWARE_PATTERN: "{package} matches the pattern of monitoring software.",
    EventType.OVERLAY_ATTACK_PATTERN: "{package} can draw over other apps in a way used by phishing overlays.",
    EventType.DROPPER_PATTERN: "{package} can install other apps and matches a dropper pattern.",
    EventType.STAGED_PAYLOAD: "{package} asked for more access some time after it was installed.",
    EventType.LOADER_BEHAVIOR: "{package} loads code at runtime after installation.",
    EventType.DEVICE_COMPROMISE: "A problem with the device's integrity was detected.",
    EventType.CA_CERT_INSTALLED: "A new certificate authority was installed. Encrypted traffic could be inspected.",
    EventType.SUSPICIOUS_UPDATE: "{package} was updated with suspicious changes.",
    EventType.CAPABILITY_ESCALATION: "{package} gained new sensitive permissions.",
    EventType.SPECIAL_ACCESS_GRANT: "{package} was granted special access to the system.",
    EventType.CONFIG_TAMPER: "A device security setting changed.",
    EventType.SUSPICIOUS_VPN: "A VPN was turned on by an unexpected app. Traffic may be redirected.",
    EventType.SUSPICIOUS_INSTALL: "The newly installed app {package} has suspicious properties.",
    EventType.BEHAVIORAL_ANOMALY: "{package} is behaving unusually.",
    EventType.OTHER: "Security finding for {package}.",
}

SIGNAL_REASON_TEMPLATES: dict[SignalType, str] = {
    SignalType.CERT_CHANGE: "The signing certificate of {package} changed. This may be a repackaged copy.",
    SignalType.VERSION_ROLLBACK: "{package} was downgraded to an older version.",
    SignalType.INSTALLER_CHANGE: "{package} was updated from a different source than before.",
    SignalType.HIGH_RISK_PERM_ADDED: "{package} gained a new high-risk permission.",
    SignalType.SPECIAL_ACCESS_ENABLED: "{package} was given special access such as accessibility or notifications.",
    SignalType.SPECIAL_ACCESS_DISABLED: "Special access for {package} was turned off.",
    SignalType.EXPORTED_SURFACE_CHANGE: "{package} exposes more components to other apps than before.",
    SignalType.NEW_APP_INSTALLED: "{package} was newly installed.",
    SignalType.APP_REMOVED: "{package} was removed.",
    SignalType.SUSPICIOUS_NATIVE_LIB: "{package} contains suspicious native libraries.",
    SignalType.DEBUG_SIGNATURE: "{package} is signed with a debug certificate, which release apps never are.",
    SignalType.COMBO_DETECTED: "The permissions of {package} combine into a known dangerous pattern.",
    SignalType.USER_CA_CERT_ADDED: "A user certificate authority was added. Encrypted traffic could be inspected.",
    SignalType.USER_CA_CERT_REMOVED: "A user certificate authority was removed.",
    SignalType.PRIVATE_DNS_CHANGED: "The Private DNS setting changed.",
    SignalType.VPN_STATE_CHANGED: "The VPN state changed.",
    SignalType.WIFI_PROXY_DETECTED: "A proxy is configured on the current Wi-Fi network.",
    SignalType.UNKNOWN_ACCESSIBILITY_SERVICE: "An unknown accessibility service is active.",
    SignalType.DEFAULT_APP_CHANGED: "A default app such as SMS or phone was changed.",
    SignalType.ROOT_DETECTED: "Root access was detected on the device.",
    SignalType.BOOTLOADER_UNLOCKED: "The device bootloader is unlocked.",
    SignalType.DEVELOPER_OPTIONS_ENABLED: "Developer options are turned on.",
    SignalType.USB_DEBUGGING_ENABLED: "USB debugging is turned on, so the device is reachable over ADB.",
    SignalType.DYNAMIC_CODE_LOADING: "{package} loads executable code at runtime.",
    SignalType.FRESH_INSTALL_RISKY_PERM: "{package} requested risky permissions right after installation.",
    SignalType.NETWORK_AFTER_INSTALL: "{package} started heavy network activity right after installation.",
    SignalType.STAGED_PAYLOAD_PATTERN: "{package} escalated its permissions in stages after installation.",
    SignalType.BOOT_PERSISTENCE: "{package} starts itself automatically when the device boots.",
    SignalType.POST_INSTALL_PERMISSION_ESCALATION: "{package} asked for sensitive permissions long after installation.",
    SignalType.BATTERY_DRAIN_ANOMALY: "{package} uses far more battery than usual.",
    SignalType.NETWORK_BURST_ANOMALY: "{package} sent unusual bursts of network traffic.",
    SignalType.EXCESSIVE_WAKEUPS: "{package} wakes the device unusually often.",
    SignalType.UNUSUAL_CONTEXT: "{package} was active at an unusual time or in an unusual context.",
}

ACTION_TITLES: dict[ActionCategory, str] = {
    ActionCategory.UNINSTALL: "Uninstall the app",
    ActionCategory.DISABLE: "Disable the app",
    ActionCategory.REVOKE_PERMISSION: "Remove permissions",
    ActionCategory.REVOKE_SPECIAL_ACCESS: "Remove special access",
    ActionCategory.CHECK_SETTINGS: "Check settings",
    ActionCategory.REINSTALL_FROM_STORE: "Reinstall from the store",
    ActionCategory.FACTORY_RESET: "Factory reset",
    ActionCategory.MONITOR: "Keep monitoring",
    ActionCategory.INFORM: "For your information",
}

ACTION_DESCRIPTIONS: dict[ActionCategory, str] = {
    ActionCategory.UNINSTALL: (
        "Go to Settings > Apps > {package} > Uninstall. "
        "This removes the app and its data from the device."
    ),
    ActionCategory.DISABLE: (
        "Go to Settings > Apps > {package} > Disable. "
        "The app stays on the device but can no longer run."
    ),
    ActionCategory.REVOKE_PERMISSION: (
        "Go to Settings > Apps > {package} > Permissions and remove the ones it does not need."
    ),
    ActionCategory.REVOKE_SPECIAL_ACCESS: (
        "Go to Settings > Accessibility (or Notifications) and turn off access for {package}."
    ),
    ActionCategory.CHECK_SETTINGS: (
        "Review the device settings, especially Security, Network and Accessibility."
    ),
    ActionCategory.REINSTALL_FROM_STORE: (
        "Uninstall {package} and install it again from the official store."
    ),
    ActionCategory.FACTORY_RESET: (
        "Warning: this erases all data. Back up what matters, then go to "
        "Settings > System > Reset > Factory reset."
    ),
    ActionCategory.MONITOR: (
        "{package} will keep being checked. You will be told about any further changes."
    ),
    ActionCategory.INFORM: "This finding is for information only. No action is needed right now.",
}

WHEN_TO_IGNORE: dict[IncidentSeverity, str | None] = {
    IncidentSeverity.INFO: (
        "This finding is informational. If you know and trust the app, no action is needed."
    ),
    IncidentSeverity.LOW: (
        "Low severity. If you installed the app on purpose from a source you trust, "
        "you can ignore this finding."
    ),
    IncidentSeverity.MEDIUM: (
        "Review the suggested steps. If you made these changes yourself, for example a "
        "manual update or a sideload from a known site, this is probably fine."
    ),
    # Never suggest ignoring these
    IncidentSeverity.HIGH: None,
    IncidentSeverity.CRITICAL: None,
}

IGNORE_REASON_TEMPLATES: dict[str, str] = {
    "user_initiated_update": "If you updated the app yourself, you can ignore this finding.",
    "known_developer_tool": "If this is a developer tool you use on purpose, this is fine.",
    "corporate_profile": "If your organisation manages this device, these changes may be intended.",
    "power_user_sideload": (
        "If you installed the app on purpose from a mirror site or similar source, "
        "this is probably fine."
    ),
    "vpn_by_choice": "If you use this VPN on purpose, for example for privacy, this is fine.",
}


# ─── Helpers ─────────────────────────────────────────────────────


def _fill(template: str, package: str | None) -> str:
    if package is None and template.startswith("{package}"):
        return APP_PLACEHOLDER.capitalize() + template.removeprefix("{package}")
    return template.replace("{package}", package or APP_PLACEHOLDER)


def _confidence_severity(confidence: float) -> IncidentSeverity:
    if confidence >= 0.8:
        return IncidentSeverity.CRITICAL
    if confidence >= 0.6:
        return IncidentSeverity.HIGH
    if confidence >= 0.4:
        return IncidentSeverity.MEDIUM
    if confidence >= 0.2:
        return IncidentSeverity.LOW
    return IncidentSeverity.INFO


def _is_hard_signal(signal: Signal) -> bool:
    finding = finding_type_for(signal.type)
    return finding is not None and finding.hardness == FindingHardness.HARD


def _signal_reason(signal: Signal, package: str | None) -> EvidenceReason:
    return EvidenceReason(
        evidence_id=signal.id,
        text=_fill(SIGNAL_REASON_TEMPLATES[signal.type], package),
        severity=IncidentSeverity.from_signal(signal.severity),
        finding_tag=signal.type.value,
        is_hard_evidence=_is_hard_signal(signal),
    )


def _action_step(
    number: int,
    category: ActionCategory,
    package: str | None,
    target: str | None = None,
) -> ActionStep:
    return ActionStep(
        step_number=number,
        action_category=category,
        title=ACTION_TITLES[category],
        description=_fill(ACTION_DESCRIPTIONS[category], package),
        target_package=target or package,
        is_urgent=category in _URGENT_ACTIONS,
    )


# ─── Engine ──────────────────────────────────────────────────────


class TemplateExplanationEngine:
    engine_id = "template-v1"

    def __init__(self, policy_guard: PolicyGuard) -> None:
        self._guard = policy_guard
        self._logger = logger.bind(system="explain", component="template")

    def is_available(self) -> bool:
        return True

    def explain(self, request: ExplanationRequest) -> ExplanationAnswer:
        incident = request.incident
        constraints = self._guard.determine_constraints(incident)
        top = incident.top_hypothesis

        draft = ExplanationAnswer(
            incident_id=incident.id,
            severity=incident.severity,
            summary=self.summary(incident),
            reasons=self._reasons(incident),
            actions=self._actions(incident.recommended_actions, incident.package_name, constraints),
            when_to_ignore=WHEN_TO_IGNORE[incident.severity],
            confidence=top.confidence if top else DEFAULT_CONFIDENCE,
            engine_source=EngineSource.TEMPLATE,
        )
        answer, _ = self._guard.validate(draft, incident)
        self._logger.debug(
            "template_explanation_rendered",
            incident_id=incident.id,
            reasons=len(answer.reasons),
            actions=len(answer.actions),
        )
        return answer

    def render_from_slots(
        self,
        slots: StructuredSlots,
        incident: SecurityIncident,
    ) -> ExplanationAnswer:
        """
        Render generated slot decisions with the same templates.

        Reasons follow the slot's evidence order; ids the incident does not
        know are skipped. Actions are filtered through the constraints and
        renumbered.
        """
        constraints = self._guard.determine_constraints(incident)
        package = incident.package_name
        signals = {s.id: s for s in incident.signals}
        events = {e.id: e for e in incident.events}

        reasons: list[EvidenceReason] = []
        for evidence_id in slots.reason_ids:
            if evidence_id in signals:
                reasons.append(_signal_reason(signals[evidence_id], package))
            elif evidence_id in events:
                event = events[evidence_id]
                reasons.append(EvidenceReason(
                    evidence_id=event.id,
                    text=_fill(SUMMARY_TEMPLATES[event.type], package),
                    severity=IncidentSeverity.from_signal(event.severity),
                    finding_tag=event.type.value,
                    is_hard_evidence=any(_is_hard_signal(s) for s in event.signals),
                ))

        allowed = [c for c in slots.action_categories if is_action_allowed(c, constraints)]
        actions = [
            _action_step(i, category, package)
            for i, category in enumerate(allowed, start=1)
        ]

        when_to_ignore: str | None = None
        if slots.can_be_ignored:
            when_to_ignore = (
                IGNORE_REASON_TEMPLATES.get(slots.ignore_reason_key or "")
                or WHEN_TO_IGNORE[slots.assessed_severity]
            )

        draft = ExplanationAnswer(
            incident_id=incident.id,
            severity=slots.assessed_severity,
            summary=self.summary(incident),
            reasons=reasons,
            actions=actions,
            when_to_ignore=when_to_ignore,
            confidence=clamp01(slots.confidence),
            engine_source=EngineSource.LLM_ASSISTED,
        )
        answer, _ = self._guard.validate(draft, incident)
        return answer

    @staticmethod
    def summary(incident: SecurityIncident) -> str:
        if not incident.events:
            return incident.summary or _fill(SUMMARY_TEMPLATES[EventType.OTHER], incident.package_name)
        return _fill(SUMMARY_TEMPLATES[incident.events[0].type], incident.package_name)

    def _reasons(self, incident: SecurityIncident) -> list[EvidenceReason]:
        package = incident.package_name
        reasons: list[EvidenceReason] = []

        top = incident.top_hypothesis
        if top is not None and incident.events:
            reasons.append(self._hypothesis_reason(top, incident))

        seen: set[SignalType] = set()
        for signal in incident.signals:
            if signal.type in seen:
                continue
            seen.add(signal.type)
            reasons.append(_signal_reason(signal, package))

        # HARD first, then most severe; stable within ties
        reasons.sort(key=lambda r: (not r.is_hard_evidence, r.severity.ordinal))
        return reasons

    @staticmethod
    def _hypothesis_reason(hypothesis: Hypothesis, incident: SecurityIncident) -> EvidenceReason:
        percent = int(hypothesis.confidence * 100)
        return EvidenceReason(
            # Anchored on the primary event so the id is always grounded
            evidence_id=incident.events[0].id,
            text=f"{hypothesis.description} (confidence: {percent}%).",
            severity=_confidence_severity(hypothesis.confidence),
            finding_tag=hypothesis.name,
            is_hard_evidence=(
                hypothesis.confidence >= _HARD_HYPOTHESIS_CONFIDENCE
                and bool(hard_finding_types(incident))
            ),
        )

    @staticmethod
    def _actions(
        recommended: Iterable[RecommendedAction],
        package: str | None,
        constraints: frozenset[SafeLanguageFlag],
    ) -> list[ActionStep]:
        ordered = sorted(recommended, key=lambda a: a.priority)
        allowed = [a for a in ordered if is_action_allowed(a.category, constraints)]
        return [
            _action_step(i, action.category, package, action.target_package)
            for i, action in enumerate(allowed, start=1)
        ]
