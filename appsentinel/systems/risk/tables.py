"""
AppSentinel — Risk Tables

Fixed lookup tables for the risk evaluator. They are built once at import
and are read-only; nothing here is user-extensible. Every enumeration that
keys a table has an entry for each member (empty sets included).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from appsentinel.primitives.common import RiskLevel
from appsentinel.systems.evidence.taxonomy import FindingType
from appsentinel.systems.evidence.types import CapabilityCluster
from appsentinel.systems.risk.types import AppCategory, EffectiveRisk, PolicyProfile

_C = CapabilityCluster
_A = AppCategory

# ─── Trust thresholds ─────────────────────────────────────────────

HIGH_TRUST = 70
MODERATE_TRUST = 40  # Below this is the low-trust floor

# ─── Severity arithmetic ──────────────────────────────────────────

RISK_SCORE_WEIGHTS: Mapping[RiskLevel, int] = MappingProxyType({
    RiskLevel.CRITICAL: 30,
    RiskLevel.HIGH: 20,
    RiskLevel.MEDIUM: 10,
    RiskLevel.LOW: 5,
    RiskLevel.NONE: 0,
})

PROFILE_THRESHOLDS: Mapping[PolicyProfile, int] = MappingProxyType({
    PolicyProfile.SYSTEM: 5,
    PolicyProfile.USER: 1,
})

# Top-reason caps per effective risk
REASON_LIMITS: Mapping[EffectiveRisk, int] = MappingProxyType({
    EffectiveRisk.CRITICAL: 3,
    EffectiveRisk.NEEDS_ATTENTION: 2,
    EffectiveRisk.INFO: 0,
    EffectiveRisk.SAFE: 0,
})

# ─── Profile allow-list ──────────────────────────────────────────

# Hygiene findings that say nothing about a preinstalled component.
# Suppressed to NONE under the SYSTEM profile. Contains no HARD type.
SYSTEM_SUPPRESSED_FINDINGS: frozenset[FindingType] = frozenset({
    FindingType.OLD_TARGET_SDK,
    FindingType.OVER_PRIVILEGED,
    FindingType.EXPORTED_COMPONENTS,
    FindingType.HIGH_RISK_CAPABILITY,
    FindingType.INSTALLER_ANOMALY_VERIFIED,
    FindingType.NOT_PLAY_SIGNED,
})

# Categories where WEAK_SIGNAL findings are expected noise
WEAK_SIGNAL_EXEMPT_CATEGORIES: frozenset[AppCategory] = frozenset({
    _A.BROWSER,
    _A.KEYBOARD,
    _A.LAUNCHER,
    _A.SYSTEM_FRAMEWORK,
    _A.SYSTEM_TELECOM,
    _A.SYSTEM_MESSAGING,
    _A.SYSTEM_CONNECTIVITY,
})

# ─── Capability clusters ─────────────────────────────────────────

_P = "android.permission."

CLUSTER_CAPABILITIES: Mapping[CapabilityCluster, frozenset[str]] = MappingProxyType({
    _C.SMS: frozenset({
        _P + "READ_SMS",
        _P + "SEND_SMS",
        _P + "RECEIVE_SMS",
        _P + "RECEIVE_MMS",
        _P + "RECEIVE_WAP_PUSH",
    }),
    _C.CALL_LOG: frozenset({
        _P + "READ_CALL_LOG",
        _P + "WRITE_CALL_LOG",
        _P + "PROCESS_OUTGOING_CALLS",
    }),
    _C.ACCESSIBILITY: frozenset({_P + "BIND_ACCESSIBILITY_SERVICE"}),
    _C.NOTIFICATION_LISTENER: frozenset({_P + "BIND_NOTIFICATION_LISTENER_SERVICE"}),
    _C.DEVICE_ADMIN: frozenset({_P + "BIND_DEVICE_ADMIN"}),
    _C.OVERLAY: frozenset({_P + "SYSTEM_ALERT_WINDOW"}),
    _C.VPN: frozenset({_P + "BIND_VPN_SERVICE"}),
    _C.INSTALL_PACKAGES: frozenset({
        _P + "REQUEST_INSTALL_PACKAGES",
        _P + "INSTALL_PACKAGES",
    }),
    _C.BACKGROUND_LOCATION: frozenset({_P + "ACCESS_BACKGROUND_LOCATION"}),
})

CLUSTER_HIGH_RISK: Mapping[CapabilityCluster, bool] = MappingProxyType({
    cluster: cluster != _C.BACKGROUND_LOCATION for cluster in CapabilityCluster
})

# Clusters whose declaration alone does not activate them when the real
# enablement state is known. Value is the CapabilityEnablement field.
ENABLEMENT_FIELDS: Mapping[CapabilityCluster, str] = MappingProxyType({
    _C.ACCESSIBILITY: "accessibility_enabled",
    _C.NOTIFICATION_LISTENER: "notification_listener_enabled",
    _C.DEVICE_ADMIN: "device_admin_enabled",
    _C.OVERLAY: "overlay_enabled",
})

# ─── Category expectations ───────────────────────────────────────

CATEGORY_EXPECTED_CLUSTERS: Mapping[AppCategory, frozenset[CapabilityCluster]] = MappingProxyType({
    _A.OTHER: frozenset(),
    _A.BROWSER: frozenset(),
    _A.SOCIAL: frozenset(),
    _A.MESSAGING: frozenset(),
    _A.BANKING: frozenset(),
    _A.NAVIGATION: frozenset({_C.BACKGROUND_LOCATION}),
    _A.FITNESS: frozenset({_C.BACKGROUND_LOCATION}),
    _A.CAMERA: frozenset(),
    _A.UTILITY: frozenset(),
    _A.GAME: frozenset(),
    _A.KEYBOARD: frozenset(),
    _A.LAUNCHER: frozenset({_C.NOTIFICATION_LISTENER}),
    _A.SECURITY: frozenset({_C.DEVICE_ADMIN}),
    _A.VPN: frozenset({_C.VPN}),
    _A.PHONE_DIALER: frozenset({_C.SMS, _C.CALL_LOG}),
    _A.ACCESSIBILITY_TOOL: frozenset({_C.ACCESSIBILITY}),
    _A.SYSTEM_FRAMEWORK: frozenset({
        _C.OVERLAY,
        _C.ACCESSIBILITY,
        _C.NOTIFICATION_LISTENER,
        _C.DEVICE_ADMIN,
        _C.INSTALL_PACKAGES,
    }),
    _A.SYSTEM_TELECOM: frozenset({_C.SMS, _C.CALL_LOG}),
    _A.SYSTEM_MESSAGING: frozenset({_C.SMS}),
    _A.SYSTEM_CONNECTIVITY: frozenset({_C.VPN}),
})

# (category, cluster) pairs that are only expected from a sufficiently
# trusted app. Value is the minimum trust score.
TRUST_GATED_EXPECTATIONS: Mapping[tuple[AppCategory, CapabilityCluster], int] = MappingProxyType({
    (_A.ACCESSIBILITY_TOOL, _C.ACCESSIBILITY): MODERATE_TRUST,
})

# ─── Combination rules ───────────────────────────────────────────


@dataclass(frozen=True)
class ComboRule:
    """Co-occurrence of clusters that is worse than its parts."""

    name: str
    clusters: frozenset[CapabilityCluster]
    level: EffectiveRisk
    requires_sideload: bool = False
    requires_low_trust: bool = False
    # False: fires even when every cluster is expected for the category
    respects_expected: bool = True


COMBO_RULES: tuple[ComboRule, ...] = (
    ComboRule(
        name="Accessibility + overlay from a sideloaded app",
        clusters=frozenset({_C.ACCESSIBILITY, _C.OVERLAY}),
        level=EffectiveRisk.CRITICAL,
        requires_sideload=True,
    ),
    ComboRule(
        name="Accessibility + package installs with low trust",
        clusters=frozenset({_C.ACCESSIBILITY, _C.INSTALL_PACKAGES}),
        level=EffectiveRisk.CRITICAL,
        requires_low_trust=True,
    ),
    ComboRule(
        name="Accessibility + notification access, sideloaded with low trust",
        clusters=frozenset({_C.ACCESSIBILITY, _C.NOTIFICATION_LISTENER}),
        level=EffectiveRisk.CRITICAL,
        requires_sideload=True,
        requires_low_trust=True,
    ),
    ComboRule(
        name="Possible stalkerware: accessibility + notification access",
        clusters=frozenset({_C.ACCESSIBILITY, _C.NOTIFICATION_LISTENER}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_low_trust=True,
    ),
    ComboRule(
        name="SMS + call log with low trust",
        clusters=frozenset({_C.SMS, _C.CALL_LOG}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_low_trust=True,
    ),
    ComboRule(
        name="SMS access from a sideloaded app",
        clusters=frozenset({_C.SMS}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_sideload=True,
    ),
    ComboRule(
        name="VPN service from a sideloaded low-trust app",
        clusters=frozenset({_C.VPN}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_sideload=True,
        requires_low_trust=True,
        respects_expected=False,
    ),
    ComboRule(
        name="Sideloaded app can install other packages",
        clusters=frozenset({_C.INSTALL_PACKAGES}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_sideload=True,
    ),
    ComboRule(
        name="Device admin from a sideloaded low-trust app",
        clusters=frozenset({_C.DEVICE_ADMIN}),
        level=EffectiveRisk.NEEDS_ATTENTION,
        requires_sideload=True,
        requires_low_trust=True,
    ),
)

# ─── Privacy capabilities ────────────────────────────────────────

PRIVACY_CAPABILITIES: Mapping[str, str] = MappingProxyType({
    _P + "CAMERA": "Camera",
    _P + "RECORD_AUDIO": "Microphone",
    _P + "READ_CONTACTS": "Contacts",
    _P + "ACCESS_FINE_LOCATION": "Precise location",
    _P + "READ_CALENDAR": "Calendar",
    _P + "BODY_SENSORS": "Body sensors",
})

_CAMERA = _P + "CAMERA"
_MIC = _P + "RECORD_AUDIO"
_CONTACTS = _P + "READ_CONTACTS"
_LOCATION = _P + "ACCESS_FINE_LOCATION"
_CALENDAR = _P + "READ_CALENDAR"
_SENSORS = _P + "BODY_SENSORS"

CATEGORY_EXPECTED_PRIVACY: Mapping[AppCategory, frozenset[str]] = MappingProxyType({
    _A.OTHER: frozenset(),
    _A.BROWSER: frozenset({_LOCATION}),
    _A.SOCIAL: frozenset({_CAMERA, _MIC, _CONTACTS}),
    _A.MESSAGING: frozenset({_CAMERA, _MIC, _CONTACTS}),
    _A.BANKING: frozenset({_CAMERA}),
    _A.NAVIGATION: frozenset({_LOCATION}),
    _A.FITNESS: frozenset({_LOCATION, _SENSORS}),
    _A.CAMERA: frozenset({_CAMERA, _MIC, _LOCATION}),
    _A.UTILITY: frozenset(),
    _A.GAME: frozenset(),
    _A.KEYBOARD: frozenset(),
    _A.LAUNCHER: frozenset({_CONTACTS, _CALENDAR}),
    _A.SECURITY: frozenset(),
    _A.VPN: frozenset(),
    _A.PHONE_DIALER: frozenset({_CONTACTS, _MIC}),
    _A.ACCESSIBILITY_TOOL: frozenset({_MIC}),
    _A.SYSTEM_FRAMEWORK: frozenset(PRIVACY_CAPABILITIES),
    _A.SYSTEM_TELECOM: frozenset({_CONTACTS, _MIC}),
    _A.SYSTEM_MESSAGING: frozenset({_CONTACTS, _CAMERA}),
    _A.SYSTEM_CONNECTIVITY: frozenset({_LOCATION}),
})
