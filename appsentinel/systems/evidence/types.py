"""
AppSentinel — Evidence Model

Immutable value types shared by every downstream system: signals, events,
incidents, hypotheses, recommended actions and the trust evidence gathered
about an app.

Nothing here is ever edited in place. A corrected incident or answer is a
new value produced with ``model_copy(update=...)``.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import Field, field_validator

from appsentinel.primitives.common import (
    IncidentSeverity,
    SentinelBaseModel,
    SignalSeverity,
    new_id,
    utc_now,
)
from appsentinel.systems.evidence.taxonomy import EventType, SignalType


# ─── Enums ────────────────────────────────────────────────────────


class SignalSource(enum.StrEnum):
    """Which upstream producer emitted the signal."""

    APP_SCANNER = "app_scanner"
    BASELINE = "baseline"
    SPECIAL_ACCESS = "special_access"
    CONFIG_BASELINE = "config_baseline"
    TRUST_ENGINE = "trust_engine"
    SENTINEL = "sentinel"
    DEVICE_ANALYZER = "device_analyzer"


class IncidentStatus(enum.StrEnum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"
    FALSE_POSITIVE = "false_positive"  # Terminal

    @property
    def is_terminal(self) -> bool:
        return self in (IncidentStatus.RESOLVED, IncidentStatus.FALSE_POSITIVE)


class ActionCategory(enum.StrEnum):
    UNINSTALL = "UNINSTALL"
    DISABLE = "DISABLE"
    REVOKE_PERMISSION = "REVOKE_PERMISSION"
    REVOKE_SPECIAL_ACCESS = "REVOKE_SPECIAL_ACCESS"
    CHECK_SETTINGS = "CHECK_SETTINGS"
    REINSTALL_FROM_STORE = "REINSTALL_FROM_STORE"
    FACTORY_RESET = "FACTORY_RESET"
    MONITOR = "MONITOR"
    INFORM = "INFORM"


class CapabilityCluster(enum.StrEnum):
    """A named bundle of dangerous capabilities forming one risk surface."""

    SMS = "sms"
    CALL_LOG = "call_log"
    ACCESSIBILITY = "accessibility"
    NOTIFICATION_LISTENER = "notification_listener"
    DEVICE_ADMIN = "device_admin"
    OVERLAY = "overlay"
    VPN = "vpn"
    INSTALL_PACKAGES = "install_packages"
    BACKGROUND_LOCATION = "background_location"


# ─── Signals, Events, Incidents ──────────────────────────────────


class Signal(SentinelBaseModel):
    """Atomic evidence unit."""

    id: str = Field(default_factory=new_id)
    source: SignalSource
    type: SignalType
    severity: SignalSeverity
    package_name: str | None = None
    summary: str = ""
    details: dict[str, str] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def weight(self) -> int:
        return self.severity.weight


class SecurityEvent(SentinelBaseModel):
    """A named, time-stamped correlation of one or more signals."""

    id: str = Field(default_factory=new_id)
    type: EventType
    severity: SignalSeverity
    package_name: str | None = None
    summary: str = ""
    start_time: datetime = Field(default_factory=utc_now)
    end_time: datetime | None = None
    signals: list[Signal] = Field(default_factory=list)


class Hypothesis(SentinelBaseModel):
    """A named causal theory for why an event happened."""

    name: str
    description: str = ""
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    supporting_evidence: list[str] = Field(default_factory=list)
    contradicting_evidence: list[str] = Field(default_factory=list)
    mitre_techniques: list[str] = Field(default_factory=list)


class RecommendedAction(SentinelBaseModel):
    priority: int
    category: ActionCategory
    title: str
    description: str = ""
    target_package: str | None = None


class SecurityIncident(SentinelBaseModel):
    """
    Aggregate root produced by the hypothesis resolver.

    Hypotheses are always held sorted by confidence, highest first.
    """

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utc_now)
    severity: IncidentSeverity
    status: IncidentStatus = IncidentStatus.OPEN
    title: str
    summary: str = ""
    package_name: str | None = None
    affected_packages: list[str] = Field(default_factory=list)
    events: list[SecurityEvent] = Field(default_factory=list)
    hypotheses: list[Hypothesis] = Field(default_factory=list)
    recommended_actions: list[RecommendedAction] = Field(default_factory=list)

    @field_validator("hypotheses")
    @classmethod
    def _rank_hypotheses(cls, value: list[Hypothesis]) -> list[Hypothesis]:
        return sorted(value, key=lambda h: h.confidence, reverse=True)

    @property
    def signals(self) -> list[Signal]:
        return [s for e in self.events for s in e.signals]

    @property
    def evidence_ids(self) -> frozenset[str]:
        """Every id a grounded answer may reference: all event and signal ids."""
        ids = {e.id for e in self.events}
        ids.update(s.id for s in self.signals)
        return frozenset(ids)

    @property
    def top_hypothesis(self) -> Hypothesis | None:
        return self.hypotheses[0] if self.hypotheses else None

    @property
    def top_confidence(self) -> float:
        return self.hypotheses[0].confidence if self.hypotheses else 0.0

    def with_status(self, status: IncidentStatus) -> SecurityIncident:
        return self.model_copy(update={"status": status})


# ─── Trust Evidence ──────────────────────────────────────────────


class TrustLevel(enum.StrEnum):
    HIGH = "high"  # score >= 70
    MODERATE = "moderate"  # score >= 40
    LOW = "low"
    ANOMALOUS = "anomalous"  # Cert mismatch, or system app not platform-signed on a rooted device


class CertMatchType(enum.StrEnum):
    DEVELOPER_MATCH = "developer_match"
    APP_MATCH = "app_match"
    CERT_MISMATCH = "cert_mismatch"
    UNKNOWN = "unknown"


class InstallerType(enum.StrEnum):
    PLAY_STORE = "play_store"
    SYSTEM_INSTALLER = "system_installer"
    SAMSUNG_STORE = "samsung_store"
    HUAWEI_APPGALLERY = "huawei_appgallery"
    AMAZON_APPSTORE = "amazon_appstore"
    MDM_INSTALLER = "mdm_installer"
    SIDELOADED = "sideloaded"
    UNKNOWN = "unknown"  # Installer not recorded. Not the same as sideloaded.


class AppPartition(enum.StrEnum):
    SYSTEM = "system"
    VENDOR = "vendor"
    PRODUCT = "product"
    DATA = "data"
    UNKNOWN = "unknown"


class VerifiedBootState(enum.StrEnum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"
    UNKNOWN = "unknown"


class CertMatchResult(SentinelBaseModel):
    match_type: CertMatchType = CertMatchType.UNKNOWN
    matched_developer: str | None = None
    current_cert_digest: str = ""


class InstallerInfo(SentinelBaseModel):
    installer_package: str | None = None
    installer_type: InstallerType = InstallerType.UNKNOWN


class SystemAppInfo(SentinelBaseModel):
    is_system_app: bool = False
    is_privileged_app: bool = False
    is_updated_system_app: bool = False
    partition: AppPartition = AppPartition.DATA
    is_platform_signed: bool = False
    source_dir: str = ""


class SigningLineageInfo(SentinelBaseModel):
    has_lineage: bool = False
    lineage_length: int = 0
    lineage_trusted: bool = False


class DeviceIntegrityInfo(SentinelBaseModel):
    is_rooted: bool = False
    verified_boot_state: VerifiedBootState = VerifiedBootState.UNKNOWN


class TrustEvidence(SentinelBaseModel):
    """Everything the trust engine learned about one app's provenance."""

    package_name: str
    trust_score: int = Field(50, ge=0, le=100)
    trust_level: TrustLevel = TrustLevel.MODERATE
    cert_match: CertMatchResult = Field(default_factory=CertMatchResult)
    installer: InstallerInfo = Field(default_factory=InstallerInfo)
    system_app: SystemAppInfo = Field(default_factory=SystemAppInfo)
    signing_lineage: SigningLineageInfo = Field(default_factory=SigningLineageInfo)
    device_integrity: DeviceIntegrityInfo = Field(default_factory=DeviceIntegrityInfo)
    reasons: list[str] = Field(default_factory=list)

    @property
    def installer_type(self) -> InstallerType:
        return self.installer.installer_type

    @property
    def is_sideloaded(self) -> bool:
        return self.installer.installer_type == InstallerType.SIDELOADED
