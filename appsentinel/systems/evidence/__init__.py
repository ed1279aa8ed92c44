"""
AppSentinel — Evidence Model

Immutable signals, events, incidents and trust evidence, plus the single
canonical taxonomy every other system reads from.
"""

from appsentinel.systems.evidence.correlation import correlate
from appsentinel.systems.evidence.taxonomy import (
    BASELINE_DELTA_FINDINGS,
    FINDING_HARDNESS,
    TAXONOMY,
    EventType,
    FindingHardness,
    FindingType,
    SignalType,
    event_type_for,
    finding_type_for,
    hardness_for,
)
from appsentinel.systems.evidence.types import (
    ActionCategory,
    AppPartition,
    CapabilityCluster,
    CertMatchResult,
    CertMatchType,
    DeviceIntegrityInfo,
    Hypothesis,
    IncidentStatus,
    InstallerInfo,
    InstallerType,
    RecommendedAction,
    SecurityEvent,
    SecurityIncident,
    Signal,
    SignalSource,
    SigningLineageInfo,
    SystemAppInfo,
    TrustEvidence,
    TrustLevel,
    VerifiedBootState,
)

__all__ = [
    "ActionCategory",
    "AppPartition",
    "BASELINE_DELTA_FINDINGS",
    "CapabilityCluster",
    "CertMatchResult",
    "CertMatchType",
    "DeviceIntegrityInfo",
    "EventType",
    "FINDING_HARDNESS",
    "FindingHardness",
    "FindingType",
    "Hypothesis",
    "IncidentStatus",
    "InstallerInfo",
    "InstallerType",
    "RecommendedAction",
    "SecurityEvent",
    "SecurityIncident",
    "Signal",
    "SignalSource",
    "SignalType",
    "SigningLineageInfo",
    "SystemAppInfo",
    "TAXONOMY",
    "TrustEvidence",
    "TrustLevel",
    "VerifiedBootState",
    "correlate",
    "event_type_for",
    "finding_type_for",
    "hardness_for",
]
