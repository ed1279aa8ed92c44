"""
AppSentinel — Risk Evaluator

Evidence + trust + capability state → Verdict.

  1. Classify install origin and pick a policy profile (SYSTEM | USER)
  2. Adjust each finding by hardness: HARD passes through untouched,
     SOFT is downgraded by trust, WEAK_SIGNAL can be suppressed outright
  3. Activate capability clusters and find the unexpected ones
  4. Evaluate every rule; the verdict is the highest level any rule produces
  5. Score, rank reasons, decide prominence

Pure and deterministic. Nothing is cached between calls, so one evaluator
can be shared by any number of threads.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from appsentinel.primitives.common import RiskLevel
from appsentinel.systems.evidence.taxonomy import FindingHardness, FindingType
from appsentinel.systems.evidence.types import (
    AppPartition,
    CapabilityCluster,
    InstallerType,
    TrustEvidence,
    TrustLevel,
)
from appsentinel.systems.risk.tables import (
    CATEGORY_EXPECTED_CLUSTERS,
    CATEGORY_EXPECTED_PRIVACY,
    CLUSTER_CAPABILITIES,
    CLUSTER_HIGH_RISK,
    COMBO_RULES,
    ENABLEMENT_FIELDS,
    HIGH_TRUST,
    MODERATE_TRUST,
    PRIVACY_CAPABILITIES,
    PROFILE_THRESHOLDS,
    REASON_LIMITS,
    RISK_SCORE_WEIGHTS,
    SYSTEM_SUPPRESSED_FINDINGS,
    TRUST_GATED_EXPECTATIONS,
    WEAK_SIGNAL_EXEMPT_CATEGORIES,
    ComboRule,
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

logger = structlog.get_logger()


# ─── Public helpers ──────────────────────────────────────────────


def classify_install(trust: TrustEvidence | None) -> InstallClass:
    if trust is None:
        return InstallClass.USER_INSTALLED
    system_app = trust.system_app
    if system_app.is_system_app and (
        system_app.partition != AppPartition.DATA or system_app.is_updated_system_app
    ):
        return InstallClass.SYSTEM_PREINSTALLED
    if trust.installer_type == InstallerType.MDM_INSTALLER:
        return InstallClass.ENTERPRISE_MANAGED
    return InstallClass.USER_INSTALLED


def policy_profile_for(
    install_class: InstallClass | None,
    override: PolicyProfile | None = None,
) -> PolicyProfile:
    if override is not None:
        return override
    if install_class in (InstallClass.SYSTEM_PREINSTALLED, InstallClass.ENTERPRISE_MANAGED):
        return PolicyProfile.SYSTEM
    return PolicyProfile.USER


def is_cluster_expected_for_category(
    cluster: CapabilityCluster,
    category: AppCategory,
    trust_score: int = 100,
) -> bool:
    if cluster not in CATEGORY_EXPECTED_CLUSTERS[category]:
        return False
    min_trust = TRUST_GATED_EXPECTATIONS.get((category, cluster))
    return min_trust is None or trust_score >= min_trust


# ─── Ranking ─────────────────────────────────────────────────────

# Reason tiers, lowest first: HARD findings, combos, other rules, SOFT, WEAK
_TIER_HARD = 0
_TIER_COMBO = 1
_TIER_RULE = 2
_TIER_SOFT = 3
_TIER_WEAK = 4

_HARDNESS_TIERS: dict[FindingHardness, int] = {
    FindingHardness.HARD: _TIER_HARD,
    FindingHardness.SOFT: _TIER_SOFT,
    FindingHardness.WEAK_SIGNAL: _TIER_WEAK,
}

_RISK_TO_LEVEL: dict[EffectiveRisk, RiskLevel] = {
    EffectiveRisk.CRITICAL: RiskLevel.CRITICAL,
    EffectiveRisk.NEEDS_ATTENTION: RiskLevel.HIGH,
    EffectiveRisk.INFO: RiskLevel.LOW,
    EffectiveRisk.SAFE: RiskLevel.NONE,
}


def _explain_priority(tier: int, severity: RiskLevel) -> int:
    return tier * 10 + (RiskLevel.CRITICAL.value - severity.value)


def _rule_reason(label: str, risk: EffectiveRisk) -> VerdictReason:
    severity = _RISK_TO_LEVEL[risk]
    return VerdictReason(
        kind=ReasonKind.RULE,
        label=label,
        severity=severity,
        explain_priority=_explain_priority(_TIER_RULE, severity),
    )


# ─── Evaluator ───────────────────────────────────────────────────


class RiskEvaluator:
    """
    Computes a Verdict for one app.

    The rule set is unordered: every rule is evaluated, the final level is
    the maximum across those that fire and their reasons are merged before
    ranking. Missing optional inputs degrade to safe defaults and never
    raise.
    """

    def __init__(self) -> None:
        self._logger = logger.bind(system="risk", component="evaluator")

    def evaluate(
        self,
        package_name: str,
        trust: TrustEvidence,
        raw_findings: Sequence[RawFinding],
        is_system_app: bool = False,
        granted_capabilities: Iterable[str] = (),
        category: AppCategory = AppCategory.OTHER,
        enablement: CapabilityEnablement | None = None,
        install_class: InstallClass | None = None,
        policy_profile_override: PolicyProfile | None = None,
        is_new_app: bool = False,
    ) -> Verdict:
        install_class = install_class or InstallClass.USER_INSTALLED
        profile = policy_profile_for(install_class, policy_profile_override)
        trust_score = trust.trust_score
        granted = frozenset(granted_capabilities)

        adjusted = [self._adjust(f, trust_score, category, profile) for f in raw_findings]

        active = self._active_clusters(granted, enablement)
        unexpected = [
            c for c in active
            if CLUSTER_HIGH_RISK[c]
            and not is_cluster_expected_for_category(c, category, trust_score)
        ]
        combos = self._match_combos(trust, active, unexpected)

        levels, rule_reasons = self._evaluate_rules(
            trust=trust,
            raw_findings=raw_findings,
            adjusted=adjusted,
            active=active,
            unexpected=unexpected,
            combos=combos,
            profile=profile,
            is_new_app=is_new_app,
        )
        effective = max(levels, default=EffectiveRisk.SAFE)

        reasons = self._rank_reasons(adjusted, combos, rule_reasons)
        top_reasons = reasons[: REASON_LIMITS[effective]]

        risk_score = min(100, sum(RISK_SCORE_WEIGHTS[f.adjusted_severity] for f in adjusted))

        verdict = Verdict(
            package_name=package_name,
            effective_risk=effective,
            trust_score=trust_score,
            is_system_component=is_system_app,
            install_class=install_class,
            policy_profile=profile,
            adjusted_findings=adjusted,
            active_clusters=active,
            unexpected_clusters=unexpected,
            matched_combos=[rule.name for rule in combos],
            privacy_capabilities=self._privacy_capabilities(granted, category),
            top_reasons=top_reasons,
            risk_score=risk_score,
            show_prominently=effective >= EffectiveRisk.NEEDS_ATTENTION or not is_system_app,
        )

        self._logger.debug(
            "risk_verdict_computed",
            package=package_name,
            risk=effective.name,
            risk_score=risk_score,
            profile=profile.value,
            combos=len(combos),
            unexpected_clusters=[c.value for c in unexpected],
        )
        return verdict

    # ─── Step 2: hardness-aware adjustment ───────────────────────

    def _adjust(
        self,
        finding: RawFinding,
        trust_score: int,
        category: AppCategory,
        profile: PolicyProfile,
    ) -> AdjustedFinding:
        hardness = finding.hardness
        original = finding.severity

        if hardness == FindingHardness.HARD:
            adjusted = original
        elif profile == PolicyProfile.SYSTEM and finding.finding_type in SYSTEM_SUPPRESSED_FINDINGS:
            adjusted = RiskLevel.NONE
        elif hardness == FindingHardness.SOFT:
            if trust_score >= HIGH_TRUST:
                adjusted = original.downgraded(2)
            elif trust_score >= MODERATE_TRUST:
                adjusted = original.downgraded(1)
            else:
                adjusted = original
        else:
            suppress = trust_score >= HIGH_TRUST or category in WEAK_SIGNAL_EXEMPT_CATEGORIES
            adjusted = RiskLevel.NONE if suppress else original

        return AdjustedFinding(
            raw=finding,
            adjusted_severity=adjusted,
            was_downgraded=adjusted < original,
            explain_priority=_explain_priority(_HARDNESS_TIERS[hardness], adjusted),
        )

    # ─── Step 3: clusters ────────────────────────────────────────

    def _active_clusters(
        self,
        granted: frozenset[str],
        enablement: CapabilityEnablement | None,
    ) -> list[CapabilityCluster]:
        active: list[CapabilityCluster] = []
        for cluster in CapabilityCluster:
            if not granted & CLUSTER_CAPABILITIES[cluster]:
                continue
            # Declared but never switched on by the user does not count
            field = ENABLEMENT_FIELDS.get(cluster)
            if enablement is not None and field is not None and not getattr(enablement, field):
                continue
            active.append(cluster)
        return active

    def _match_combos(
        self,
        trust: TrustEvidence,
        active: list[CapabilityCluster],
        unexpected: list[CapabilityCluster],
    ) -> list[ComboRule]:
        active_set = frozenset(active)
        unexpected_set = frozenset(unexpected)
        low_trust = trust.trust_score < MODERATE_TRUST

        matched: list[ComboRule] = []
        for rule in COMBO_RULES:
            if not rule.clusters <= active_set:
                continue
            if rule.requires_sideload and not trust.is_sideloaded:
                continue
            if rule.requires_low_trust and not low_trust:
                continue
            if rule.respects_expected and not rule.clusters & unexpected_set:
                continue
            matched.append(rule)
        return matched

    # ─── Step 4: rules ───────────────────────────────────────────

    def _evaluate_rules(
        self,
        trust: TrustEvidence,
        raw_findings: Sequence[RawFinding],
        adjusted: list[AdjustedFinding],
        active: list[CapabilityCluster],
        unexpected: list[CapabilityCluster],
        combos: list[ComboRule],
        profile: PolicyProfile,
        is_new_app: bool,
    ) -> tuple[list[EffectiveRisk], list[VerdictReason]]:
        levels: list[EffectiveRisk] = []
        reasons: list[VerdictReason] = []
        trust_score = trust.trust_score
        low_trust = trust_score < MODERATE_TRUST

        # HARD evidence is never negotiable
        if any(
            f.hardness == FindingHardness.HARD and f.adjusted_severity >= RiskLevel.MEDIUM
            for f in adjusted
        ):
            levels.append(EffectiveRisk.CRITICAL)

        if trust.trust_level == TrustLevel.ANOMALOUS:
            levels.append(EffectiveRisk.CRITICAL)
            reasons.append(_rule_reason("Trust evidence is anomalous", EffectiveRisk.CRITICAL))

        levels.extend(rule.level for rule in combos)

        installer_anomaly = any(
            f.finding_type == FindingType.INSTALLER_ANOMALY
            or (
                f.finding_type == FindingType.INSTALLER_ANOMALY_VERIFIED
                and f.adjusted_severity > RiskLevel.NONE
            )
            for f in adjusted
        )
        if installer_anomaly and any(CLUSTER_HIGH_RISK[c] for c in active):
            levels.append(EffectiveRisk.NEEDS_ATTENTION)
            reasons.append(_rule_reason(
                "Installer anomaly on an app holding high-risk capabilities",
                EffectiveRisk.NEEDS_ATTENTION,
            ))

        if low_trust and any(
            f.finding_type == FindingType.HIGH_RISK_PERMISSION_ADDED
            and f.adjusted_severity == RiskLevel.LOW
            for f in adjusted
        ):
            levels.append(EffectiveRisk.NEEDS_ATTENTION)
            reasons.append(_rule_reason(
                "High-risk permission added to a low-trust app",
                EffectiveRisk.NEEDS_ATTENTION,
            ))

        # Combo gating: an unexpected cluster alone never gets past INFO
        if unexpected:
            names = ", ".join(c.value for c in unexpected)
            if low_trust and self._has_extra_signal(trust, raw_findings, is_new_app):
                levels.append(EffectiveRisk.NEEDS_ATTENTION)
                reasons.append(_rule_reason(
                    f"Unexpected high-risk capabilities on a low-trust app: {names}",
                    EffectiveRisk.NEEDS_ATTENTION,
                ))
            elif trust_score < HIGH_TRUST:
                levels.append(EffectiveRisk.INFO)
                reasons.append(_rule_reason(
                    f"Capabilities unusual for this kind of app: {names}",
                    EffectiveRisk.INFO,
                ))

        if low_trust and any(
            f.finding_type == FindingType.EXPORTED_SURFACE_INCREASED for f in raw_findings
        ):
            levels.append(EffectiveRisk.INFO)

        weighted = sum(
            f.adjusted_severity.value
            for f in adjusted
            if f.hardness != FindingHardness.HARD
        )
        if weighted >= PROFILE_THRESHOLDS[profile]:
            levels.append(EffectiveRisk.INFO)

        return levels, reasons

    @staticmethod
    def _has_extra_signal(
        trust: TrustEvidence,
        raw_findings: Sequence[RawFinding],
        is_new_app: bool,
    ) -> bool:
        # UNKNOWN installer is not a sideload
        if trust.is_sideloaded or is_new_app:
            return True
        if any(f.finding_type.is_baseline_delta for f in raw_findings):
            return True
        return len(raw_findings) > 0

    # ─── Steps 5-7: ranking and presentation ─────────────────────

    def _rank_reasons(
        self,
        adjusted: list[AdjustedFinding],
        combos: list[ComboRule],
        rule_reasons: list[VerdictReason],
    ) -> list[VerdictReason]:
        candidates: list[VerdictReason] = [
            VerdictReason(
                kind=ReasonKind.FINDING,
                label=f.raw.message or f.finding_type.value,
                severity=f.adjusted_severity,
                explain_priority=f.explain_priority,
                finding_type=f.finding_type,
            )
            for f in adjusted
            if f.adjusted_severity > RiskLevel.NONE
        ]
        for rule in combos:
            severity = _RISK_TO_LEVEL[rule.level]
            candidates.append(VerdictReason(
                kind=ReasonKind.COMBO,
                label=rule.name,
                severity=severity,
                explain_priority=_explain_priority(_TIER_COMBO, severity),
            ))
        candidates.extend(rule_reasons)
        # sorted() is stable: equal ranks keep findings, combos, rules order
        return sorted(candidates, key=lambda r: r.explain_priority)

    @staticmethod
    def _privacy_capabilities(
        granted: frozenset[str],
        category: AppCategory,
    ) -> list[PrivacyCapability]:
        expected = CATEGORY_EXPECTED_PRIVACY[category]
        return [
            PrivacyCapability(permission=perm, label=label, expected=perm in expected)
            for perm, label in PRIVACY_CAPABILITIES.items()
            if perm in granted
        ]
