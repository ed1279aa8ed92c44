"""
AppSentinel — Risk Evaluator Types

Inputs and outputs of the risk evaluator: raw findings as produced by the
scanners, the trust-adjusted findings, and the final verdict.
"""

from __future__ import annotations

import enum

from pydantic import Field

from appsentinel.primitives.common import RiskLevel, SentinelBaseModel
from appsentinel.systems.evidence.taxonomy import FindingHardness, FindingType
from appsentinel.systems.evidence.types import CapabilityCluster


# ─── Enums ────────────────────────────────────────────────────────


class AppCategory(enum.StrEnum):
    """Functional category, supplied by the caller."""

    OTHER = "other"
    BROWSER = "browser"
    SOCIAL = "social"
    MESSAGING = "messaging"
    BANKING = "banking"
    NAVIGATION = "navigation"
    FITNESS = "fitness"
    CAMERA = "camera"
    UTILITY = "utility"
    GAME = "game"
    KEYBOARD = "keyboard"
    LAUNCHER = "launcher"
    SECURITY = "security"
    VPN = "vpn"
    PHONE_DIALER = "phone_dialer"
    ACCESSIBILITY_TOOL = "accessibility_tool"
    SYSTEM_FRAMEWORK = "system_framework"
    SYSTEM_TELECOM = "system_telecom"
    SYSTEM_MESSAGING = "system_messaging"
    SYSTEM_CONNECTIVITY = "system_connectivity"


class InstallClass(enum.StrEnum):
    SYSTEM_PREINSTALLED = "system_preinstalled"
    ENTERPRISE_MANAGED = "enterprise_managed"
    USER_INSTALLED = "user_installed"


class PolicyProfile(enum.StrEnum):
    """Threshold regime applied to the same set of findings."""

    SYSTEM = "system"
    USER = "user"


class EffectiveRisk(int, enum.Enum):
    SAFE = 0
    INFO = 1
    NEEDS_ATTENTION = 2
    CRITICAL = 3


class ReasonKind(enum.StrEnum):
    FINDING = "finding"
    COMBO = "combo"
    RULE = "rule"


# ─── Inputs ───────────────────────────────────────────────────────


class RawFinding(SentinelBaseModel):
    finding_type: FindingType
    severity: RiskLevel
    message: str = ""
    detail: str = ""

    @property
    def hardness(self) -> FindingHardness:
        return self.finding_type.hardness


class CapabilityEnablement(SentinelBaseModel):
    """
    Real enablement state for capabilities that need an explicit user grant
    beyond the manifest declaration.
    """

    accessibility_enabled: bool = False
    notification_listener_enabled: bool = False
    device_admin_enabled: bool = False
    overlay_enabled: bool = False


# ─── Outputs ──────────────────────────────────────────────────────


class AdjustedFinding(SentinelBaseModel):
    raw: RawFinding
    adjusted_severity: RiskLevel
    was_downgraded: bool = False
    explain_priority: int = 0  # Lower ranks first

    @property
    def finding_type(self) -> FindingType:
        return self.raw.finding_type

    @property
    def hardness(self) -> FindingHardness:
        return self.raw.finding_type.hardness


class VerdictReason(SentinelBaseModel):
    kind: ReasonKind
    label: str
    severity: RiskLevel
    explain_priority: int
    finding_type: FindingType | None = None


class PrivacyCapability(SentinelBaseModel):
    """Informational only. Never raises the risk level."""

    permission: str
    label: str
    expected: bool = False


class Verdict(SentinelBaseModel):
    package_name: str
    effective_risk: EffectiveRisk
    trust_score: int
    is_system_component: bool = False
    install_class: InstallClass = InstallClass.USER_INSTALLED
    policy_profile: PolicyProfile = PolicyProfile.USER
    adjusted_findings: list[AdjustedFinding] = Field(default_factory=list)
    active_clusters: list[CapabilityCluster] = Field(default_factory=list)
    unexpected_clusters: list[CapabilityCluster] = Field(default_factory=list)
    matched_combos: list[str] = Field(default_factory=list)
    privacy_capabilities: list[PrivacyCapability] = Field(default_factory=list)
    top_reasons: list[VerdictReason] = Field(default_factory=list)
    risk_score: int = Field(0, ge=0, le=100)
    show_prominently: bool = False

    @property
    def hard_findings(self) -> list[AdjustedFinding]:
        return [f for f in self.adjusted_findings if f.hardness == FindingHardness.HARD]
