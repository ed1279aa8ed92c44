"""
AppSentinel — Risk Evaluator

Hardness-aware, trust-adjusted risk verdicts for installed apps.
"""

from appsentinel.systems.risk.evaluator import (
    RiskEvaluator,
    classify_install,
    is_cluster_expected_for_category,
    policy_profile_for,
)
from appsentinel.systems.risk.trust_domain import (
    TrustDomain,
    cert_finding_type,
    classify_signer_domain,
    detect_partition_anomaly,
    is_expected_signer_mismatch,
    match_developer_cert,
)
from appsentinel.systems.risk.types import (
    AdjustedFinding,
    AppCategory,
    CapabilityEnablement,
    EffectiveRisk,
    InstallClass,
    PolicyProfile,
    PrivacyCapability,
    RawFinding,
    ReasonKind,
    Verdict,
    VerdictReason,
)

__all__ = [
    "AdjustedFinding",
    "AppCategory",
    "CapabilityEnablement",
    "EffectiveRisk",
    "InstallClass",
    "PolicyProfile",
    "PrivacyCapability",
    "RawFinding",
    "ReasonKind",
    "RiskEvaluator",
    "TrustDomain",
    "Verdict",
    "VerdictReason",
    "cert_finding_type",
    "classify_install",
    "classify_signer_domain",
    "detect_partition_anomaly",
    "is_cluster_expected_for_category",
    "is_expected_signer_mismatch",
    "match_developer_cert",
    "policy_profile_for",
]
