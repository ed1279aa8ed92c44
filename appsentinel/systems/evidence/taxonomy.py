"""
AppSentinel — Evidence Taxonomy

One canonical table describing every kind of evidence the system knows
about. Two projections are derived from it and nothing else:

  - ``finding_type_for(signal_type)``  → the FindingType (and so the
    hardness) a signal evidences. Used by the policy guard and the
    template engine.
  - ``event_type_for(signal_type)``    → the EventType a signal correlates
    into. Event types key the hypothesis templates of the resolver.

The finding-type → hardness table also lives here, since hardness is a
property of the evidence and not of any one consumer.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


# ─── Findings ─────────────────────────────────────────────────────


class FindingHardness(enum.StrEnum):
    HARD = "hard"  # Never suppressed by trust, category or policy profile
    SOFT = "soft"  # Trust/profile adjustable
    WEAK_SIGNAL = "weak_signal"  # Suppressible to nothing


class FindingType(enum.StrEnum):
    # HARD
    DEBUG_SIGNATURE = "DEBUG_SIGNATURE"
    SIGNATURE_MISMATCH = "SIGNATURE_MISMATCH"
    SIGNATURE_DRIFT = "SIGNATURE_DRIFT"
    BASELINE_SIGNATURE_CHANGE = "BASELINE_SIGNATURE_CHANGE"
    BASELINE_NEW_SYSTEM_APP = "BASELINE_NEW_SYSTEM_APP"
    INTEGRITY_FAIL_WITH_HOOKING = "INTEGRITY_FAIL_WITH_HOOKING"
    INSTALLER_ANOMALY = "INSTALLER_ANOMALY"
    VERSION_ROLLBACK = "VERSION_ROLLBACK"
    HIGH_RISK_PERMISSION_ADDED = "HIGH_RISK_PERMISSION_ADDED"
    PARTITION_ANOMALY = "PARTITION_ANOMALY"
    # SOFT
    OVER_PRIVILEGED = "OVER_PRIVILEGED"
    OLD_TARGET_SDK = "OLD_TARGET_SDK"
    SUSPICIOUS_NATIVE_LIB = "SUSPICIOUS_NATIVE_LIB"
    HIGH_RISK_CAPABILITY = "HIGH_RISK_CAPABILITY"
    NOT_PLAY_SIGNED = "NOT_PLAY_SIGNED"
    INSTALLER_ANOMALY_VERIFIED = "INSTALLER_ANOMALY_VERIFIED"
    EXPORTED_SURFACE_INCREASED = "EXPORTED_SURFACE_INCREASED"
    VERSION_ROLLBACK_TRUSTED = "VERSION_ROLLBACK_TRUSTED"
    # WEAK_SIGNAL
    EXPORTED_COMPONENTS = "EXPORTED_COMPONENTS"

    @property
    def hardness(self) -> FindingHardness:
        return FINDING_HARDNESS[self]

    @property
    def is_baseline_delta(self) -> bool:
        return self in BASELINE_DELTA_FINDINGS


_HARD = FindingHardness.HARD
_SOFT = FindingHardness.SOFT
_WEAK = FindingHardness.WEAK_SIGNAL

FINDING_HARDNESS: Mapping[FindingType, FindingHardness] = MappingProxyType({
    FindingType.DEBUG_SIGNATURE: _HARD,
    FindingType.SIGNATURE_MISMATCH: _HARD,
    FindingType.SIGNATURE_DRIFT: _HARD,
    FindingType.BASELINE_SIGNATURE_CHANGE: _HARD,
    FindingType.BASELINE_NEW_SYSTEM_APP: _HARD,
    FindingType.INTEGRITY_FAIL_WITH_HOOKING: _HARD,
    FindingType.INSTALLER_ANOMALY: _HARD,
    FindingType.VERSION_ROLLBACK: _HARD,
    FindingType.HIGH_RISK_PERMISSION_ADDED: _HARD,
    FindingType.PARTITION_ANOMALY: _HARD,
    FindingType.OVER_PRIVILEGED: _SOFT,
    FindingType.OLD_TARGET_SDK: _SOFT,
    FindingType.SUSPICIOUS_NATIVE_LIB: _SOFT,
    FindingType.HIGH_RISK_CAPABILITY: _SOFT,
    FindingType.NOT_PLAY_SIGNED: _SOFT,
    FindingType.INSTALLER_ANOMALY_VERIFIED: _SOFT,
    FindingType.EXPORTED_SURFACE_INCREASED: _SOFT,
    FindingType.VERSION_ROLLBACK_TRUSTED: _SOFT,
    FindingType.EXPORTED_COMPONENTS: _WEAK,
})

# Findings that only exist because an app changed against its recorded baseline
BASELINE_DELTA_FINDINGS: frozenset[FindingType] = frozenset({
    FindingType.SIGNATURE_DRIFT,
    FindingType.BASELINE_SIGNATURE_CHANGE,
    FindingType.BASELINE_NEW_SYSTEM_APP,
    FindingType.VERSION_ROLLBACK,
    FindingType.VERSION_ROLLBACK_TRUSTED,
    FindingType.HIGH_RISK_PERMISSION_ADDED,
    FindingType.EXPORTED_SURFACE_INCREASED,
})


# ─── Signals and Events ──────────────────────────────────────────


class SignalType(enum.StrEnum):
    # App level
    CERT_CHANGE = "CERT_CHANGE"
    VERSION_ROLLBACK = "VERSION_ROLLBACK"
    INSTALLER_CHANGE = "INSTALLER_CHANGE"
    HIGH_RISK_PERM_ADDED = "HIGH_RISK_PERM_ADDED"
    SPECIAL_ACCESS_ENABLED = "SPECIAL_ACCESS_ENABLED"
    SPECIAL_ACCESS_DISABLED = "SPECIAL_ACCESS_DISABLED"
    EXPORTED_SURFACE_CHANGE = "EXPORTED_SURFACE_CHANGE"
    NEW_APP_INSTALLED = "NEW_APP_INSTALLED"
    APP_REMOVED = "APP_REMOVED"
    SUSPICIOUS_NATIVE_LIB = "SUSPICIOUS_NATIVE_LIB"
    DEBUG_SIGNATURE = "DEBUG_SIGNATURE"
    COMBO_DETECTED = "COMBO_DETECTED"
    # Device configuration
    USER_CA_CERT_ADDED = "USER_CA_CERT_ADDED"
    USER_CA_CERT_REMOVED = "USER_CA_CERT_REMOVED"
    PRIVATE_DNS_CHANGED = "PRIVATE_DNS_CHANGED"
    VPN_STATE_CHANGED = "VPN_STATE_CHANGED"
    WIFI_PROXY_DETECTED = "WIFI_PROXY_DETECTED"
    UNKNOWN_ACCESSIBILITY_SERVICE = "UNKNOWN_ACCESSIBILITY_SERVICE"
    DEFAULT_APP_CHANGED = "DEFAULT_APP_CHANGED"
    # Device integrity
    ROOT_DETECTED = "ROOT_DETECTED"
    BOOTLOADER_UNLOCKED = "BOOTLOADER_UNLOCKED"
    DEVELOPER_OPTIONS_ENABLED = "DEVELOPER_OPTIONS_ENABLED"
    USB_DEBUGGING_ENABLED = "USB_DEBUGGING_ENABLED"
    # Dropper / loader
    DYNAMIC_CODE_LOADING = "DYNAMIC_CODE_LOADING"
    FRESH_INSTALL_RISKY_PERM = "FRESH_INSTALL_RISKY_PERM"
    NETWORK_AFTER_INSTALL = "NETWORK_AFTER_INSTALL"
    STAGED_PAYLOAD_PATTERN = "STAGED_PAYLOAD_PATTERN"
    BOOT_PERSISTENCE = "BOOT_PERSISTENCE"
    POST_INSTALL_PERMISSION_ESCALATION = "POST_INSTALL_PERMISSION_ESCALATION"
    # Behavioural
    BATTERY_DRAIN_ANOMALY = "BATTERY_DRAIN_ANOMALY"
    NETWORK_BURST_ANOMALY = "NETWORK_BURST_ANOMALY"
    EXCESSIVE_WAKEUPS = "EXCESSIVE_WAKEUPS"
    UNUSUAL_CONTEXT = "UNUSUAL_CONTEXT"


class EventType(enum.StrEnum):
    """
    Correlated event kinds. Declaration order is correlation priority:
    when a signal group spans several kinds, the earliest one names the event.
    """

    STALKERWARE_PATTERN = "STALKERWARE_PATTERN"
    OVERLAY_ATTACK_PATTERN = "OVERLAY_ATTACK_PATTERN"
    DROPPER_PATTERN = "DROPPER_PATTERN"
    STAGED_PAYLOAD = "STAGED_PAYLOAD"
    LOADER_BEHAVIOR = "LOADER_BEHAVIOR"
    DEVICE_COMPROMISE = "DEVICE_COMPROMISE"
    CA_CERT_INSTALLED = "CA_CERT_INSTALLED"
    SUSPICIOUS_UPDATE = "SUSPICIOUS_UPDATE"
    CAPABILITY_ESCALATION = "CAPABILITY_ESCALATION"
    SPECIAL_ACCESS_GRANT = "SPECIAL_ACCESS_GRANT"
    CONFIG_TAMPER = "CONFIG_TAMPER"
    SUSPICIOUS_VPN = "SUSPICIOUS_VPN"
    SUSPICIOUS_INSTALL = "SUSPICIOUS_INSTALL"
    BEHAVIORAL_ANOMALY = "BEHAVIORAL_ANOMALY"
    OTHER = "OTHER"

    @property
    def priority(self) -> int:
        """Lower is more specific."""
        return list(EventType).index(self)


@dataclass(frozen=True)
class TaxonomyEntry:
    event_type: EventType
    finding_type: FindingType | None = None


_E = EventType
_F = FindingType

TAXONOMY: Mapping[SignalType, TaxonomyEntry] = MappingProxyType({
    SignalType.CERT_CHANGE: TaxonomyEntry(_E.SUSPICIOUS_UPDATE, _F.SIGNATURE_MISMATCH),
    SignalType.VERSION_ROLLBACK: TaxonomyEntry(_E.SUSPICIOUS_UPDATE, _F.VERSION_ROLLBACK),
    SignalType.INSTALLER_CHANGE: TaxonomyEntry(_E.SUSPICIOUS_UPDATE, _F.INSTALLER_ANOMALY),
    SignalType.HIGH_RISK_PERM_ADDED: TaxonomyEntry(
        _E.CAPABILITY_ESCALATION, _F.HIGH_RISK_PERMISSION_ADDED
    ),
    SignalType.SPECIAL_ACCESS_ENABLED: TaxonomyEntry(_E.SPECIAL_ACCESS_GRANT),
    SignalType.SPECIAL_ACCESS_DISABLED: TaxonomyEntry(_E.OTHER),
    SignalType.EXPORTED_SURFACE_CHANGE: TaxonomyEntry(
        _E.CAPABILITY_ESCALATION, _F.EXPORTED_SURFACE_INCREASED
    ),
    SignalType.NEW_APP_INSTALLED: TaxonomyEntry(_E.SUSPICIOUS_INSTALL),
    SignalType.APP_REMOVED: TaxonomyEntry(_E.OTHER),
    SignalType.SUSPICIOUS_NATIVE_LIB: TaxonomyEntry(_E.SUSPICIOUS_INSTALL, _F.SUSPICIOUS_NATIVE_LIB),
    SignalType.DEBUG_SIGNATURE: TaxonomyEntry(_E.SUSPICIOUS_INSTALL, _F.DEBUG_SIGNATURE),
    # A combo names no event by itself; the signals it co-occurs with do
    SignalType.COMBO_DETECTED: TaxonomyEntry(_E.OTHER),
    SignalType.USER_CA_CERT_ADDED: TaxonomyEntry(_E.CA_CERT_INSTALLED),
    SignalType.USER_CA_CERT_REMOVED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.PRIVATE_DNS_CHANGED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.VPN_STATE_CHANGED: TaxonomyEntry(_E.SUSPICIOUS_VPN),
    SignalType.WIFI_PROXY_DETECTED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.UNKNOWN_ACCESSIBILITY_SERVICE: TaxonomyEntry(_E.SPECIAL_ACCESS_GRANT),
    SignalType.DEFAULT_APP_CHANGED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.ROOT_DETECTED: TaxonomyEntry(_E.DEVICE_COMPROMISE),
    SignalType.BOOTLOADER_UNLOCKED: TaxonomyEntry(_E.DEVICE_COMPROMISE),
    SignalType.DEVELOPER_OPTIONS_ENABLED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.USB_DEBUGGING_ENABLED: TaxonomyEntry(_E.CONFIG_TAMPER),
    SignalType.DYNAMIC_CODE_LOADING: TaxonomyEntry(_E.LOADER_BEHAVIOR),
    SignalType.FRESH_INSTALL_RISKY_PERM: TaxonomyEntry(_E.DROPPER_PATTERN),
    SignalType.NETWORK_AFTER_INSTALL: TaxonomyEntry(_E.LOADER_BEHAVIOR),
    SignalType.STAGED_PAYLOAD_PATTERN: TaxonomyEntry(_E.STAGED_PAYLOAD),
    SignalType.BOOT_PERSISTENCE: TaxonomyEntry(_E.DROPPER_PATTERN),
    SignalType.POST_INSTALL_PERMISSION_ESCALATION: TaxonomyEntry(_E.STAGED_PAYLOAD),
    SignalType.BATTERY_DRAIN_ANOMALY: TaxonomyEntry(_E.BEHAVIORAL_ANOMALY),
    SignalType.NETWORK_BURST_ANOMALY: TaxonomyEntry(_E.BEHAVIORAL_ANOMALY),
    SignalType.EXCESSIVE_WAKEUPS: TaxonomyEntry(_E.BEHAVIORAL_ANOMALY),
    SignalType.UNUSUAL_CONTEXT: TaxonomyEntry(_E.BEHAVIORAL_ANOMALY),
})


# ─── Projections ─────────────────────────────────────────────────


def finding_type_for(signal_type: SignalType) -> FindingType | None:
    return TAXONOMY[signal_type].finding_type


def hardness_for(signal_type: SignalType) -> FindingHardness | None:
    finding = TAXONOMY[signal_type].finding_type
    return finding.hardness if finding is not None else None


def event_type_for(signal_type: SignalType) -> EventType:
    return TAXONOMY[signal_type].event_type
