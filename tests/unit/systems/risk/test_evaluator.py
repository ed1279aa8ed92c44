"""
Tests for the RiskEvaluator.

Covers:
  - HARD findings are never adjusted, whatever the trust, category or profile
  - SOFT downgrade by trust, SYSTEM-profile suppression, WEAK suppression
  - Cluster activation honours the real enablement state
  - Combination rules and combo gating (the extra-signal requirement)
  - Rule merging, reason ranking and per-risk truncation
  - Sideloaded overlay abuse, system versus user profiles, and a 100 system-app population
  - Purity
"""

from __future__ import annotations

import pytest

from appsentinel.primitives.common import RiskLevel
from appsentinel.systems.evidence.taxonomy import FindingHardness, FindingType
from appsentinel.systems.evidence.types import (
    AppPartition,
    CapabilityCluster,
    InstallerInfo,
    InstallerType,
    SystemAppInfo,
    TrustEvidence,
    TrustLevel,
)
from appsentinel.systems.risk.evaluator import (
    RiskEvaluator,
    classify_install,
    is_cluster_expected_for_category,
    policy_profile_for,
)
from appsentinel.systems.risk.types import (
    AppCategory,
    CapabilityEnablement,
    EffectiveRisk,
    InstallClass,
    PolicyProfile,
    RawFinding,
    ReasonKind,
)

_P = "android.permission."
ACCESSIBILITY = _P + "BIND_ACCESSIBILITY_SERVICE"
OVERLAY = _P + "SYSTEM_ALERT_WINDOW"
NOTIFICATIONS = _P + "BIND_NOTIFICATION_LISTENER_SERVICE"
INSTALLS = _P + "REQUEST_INSTALL_PACKAGES"
READ_SMS = _P + "READ_SMS"
READ_CALL_LOG = _P + "READ_CALL_LOG"

HYGIENE = (
    FindingType.OLD_TARGET_SDK,
    FindingType.EXPORTED_COMPONENTS,
    FindingType.OVER_PRIVILEGED,
    FindingType.HIGH_RISK_CAPABILITY,
)


# ─── Helpers ──────────────────────────────────────────────────────


def _make_trust(
    score: int = 50,
    installer: InstallerType = InstallerType.PLAY_STORE,
    level: TrustLevel | None = None,
    system_app: SystemAppInfo | None = None,
) -> TrustEvidence:
    if level is None:
        if score >= 70:
            level = TrustLevel.HIGH
        elif score >= 40:
            level = TrustLevel.MODERATE
        else:
            level = TrustLevel.LOW
    return TrustEvidence(
        package_name="com.example.app",
        trust_score=score,
        trust_level=level,
        installer=InstallerInfo(installer_type=installer),
        system_app=system_app or SystemAppInfo(),
    )


def _finding(finding_type: FindingType, severity: RiskLevel = RiskLevel.MEDIUM) -> RawFinding:
    return RawFinding(finding_type=finding_type, severity=severity, message=finding_type.value)


def _enabled(**overrides: bool) -> CapabilityEnablement:
    values = {
        "accessibility_enabled": True,
        "notification_listener_enabled": True,
        "device_admin_enabled": True,
        "overlay_enabled": True,
    }
    values.update(overrides)
    return CapabilityEnablement(**values)


@pytest.fixture
def evaluator() -> RiskEvaluator:
    return RiskEvaluator()


# ─── Tests: Finding adjustment ────────────────────────────────────


class TestHardnessAdjustment:
    @pytest.mark.parametrize("trust_score", [0, 45, 100])
    @pytest.mark.parametrize("profile", list(PolicyProfile))
    @pytest.mark.parametrize(
        "category", [AppCategory.OTHER, AppCategory.BROWSER, AppCategory.SYSTEM_FRAMEWORK]
    )
    def test_hard_findings_never_adjusted(self, evaluator, trust_score, profile, category):
        hard = [f for f in FindingType if f.hardness == FindingHardness.HARD]
        findings = [_finding(f, RiskLevel.HIGH) for f in hard]
        verdict = evaluator.evaluate(
            "com.example.app",
            _make_trust(trust_score),
            findings,
            category=category,
            policy_profile_override=profile,
        )
        for adjusted in verdict.adjusted_findings:
            assert adjusted.adjusted_severity == RiskLevel.HIGH
            assert not adjusted.was_downgraded
        assert verdict.effective_risk == EffectiveRisk.CRITICAL

    def test_soft_downgrade_by_trust(self, evaluator):
        finding = [_finding(FindingType.SUSPICIOUS_NATIVE_LIB, RiskLevel.HIGH)]
        high = evaluator.evaluate("a", _make_trust(90), finding)
        moderate = evaluator.evaluate("a", _make_trust(50), finding)
        low = evaluator.evaluate("a", _make_trust(20), finding)

        assert high.adjusted_findings[0].adjusted_severity == RiskLevel.LOW
        assert high.adjusted_findings[0].was_downgraded
        assert moderate.adjusted_findings[0].adjusted_severity == RiskLevel.MEDIUM
        assert low.adjusted_findings[0].adjusted_severity == RiskLevel.HIGH
        assert not low.adjusted_findings[0].was_downgraded

    def test_soft_downgrade_floors_at_none(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(90), [_finding(FindingType.OLD_TARGET_SDK, RiskLevel.LOW)]
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.NONE

    def test_system_profile_suppresses_hygiene(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(10),
            [_finding(FindingType.OLD_TARGET_SDK, RiskLevel.HIGH)],
            policy_profile_override=PolicyProfile.SYSTEM,
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.NONE

    def test_system_profile_keeps_other_soft_findings(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(10),
            [_finding(FindingType.SUSPICIOUS_NATIVE_LIB, RiskLevel.HIGH)],
            policy_profile_override=PolicyProfile.SYSTEM,
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.HIGH

    def test_weak_signal_suppressed_under_high_trust(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(90), [_finding(FindingType.EXPORTED_COMPONENTS)]
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.NONE

    def test_weak_signal_suppressed_for_exempt_category(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20),
            [_finding(FindingType.EXPORTED_COMPONENTS)],
            category=AppCategory.BROWSER,
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.NONE

    def test_weak_signal_kept_otherwise(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(20), [_finding(FindingType.EXPORTED_COMPONENTS)]
        )
        assert verdict.adjusted_findings[0].adjusted_severity == RiskLevel.MEDIUM


# ─── Tests: Clusters ──────────────────────────────────────────────


class TestClusters:
    def test_declared_but_not_enabled_does_not_activate(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20, InstallerType.SIDELOADED),
            [],
            granted_capabilities=[ACCESSIBILITY, OVERLAY],
            enablement=CapabilityEnablement(),
        )
        assert verdict.active_clusters == []
        assert verdict.matched_combos == []
        assert verdict.effective_risk == EffectiveRisk.SAFE

    def test_declaration_counts_without_enablement_snapshot(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(80), [], granted_capabilities=[OVERLAY]
        )
        assert verdict.active_clusters == [CapabilityCluster.OVERLAY]

    def test_expected_cluster_is_not_unexpected(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(50),
            [],
            granted_capabilities=[READ_SMS, READ_CALL_LOG],
            category=AppCategory.PHONE_DIALER,
        )
        assert set(verdict.active_clusters) == {CapabilityCluster.SMS, CapabilityCluster.CALL_LOG}
        assert verdict.unexpected_clusters == []
        assert verdict.effective_risk == EffectiveRisk.SAFE

    def test_background_location_is_not_high_risk(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20),
            [],
            granted_capabilities=[_P + "ACCESS_BACKGROUND_LOCATION"],
        )
        assert verdict.active_clusters == [CapabilityCluster.BACKGROUND_LOCATION]
        assert verdict.unexpected_clusters == []

    def test_accessibility_tool_expectation_is_trust_gated(self):
        cluster = CapabilityCluster.ACCESSIBILITY
        category = AppCategory.ACCESSIBILITY_TOOL
        assert is_cluster_expected_for_category(cluster, category, trust_score=60)
        assert is_cluster_expected_for_category(cluster, category, trust_score=40)
        assert not is_cluster_expected_for_category(cluster, category, trust_score=39)
        assert not is_cluster_expected_for_category(cluster, AppCategory.GAME)


# ─── Tests: Combos and gating ─────────────────────────────────────


class TestCombos:
    def test_sideloaded_accessibility_overlay_is_critical(self, evaluator):
        verdict = evaluator.evaluate(
            "com.evil.app",
            _make_trust(20, InstallerType.SIDELOADED),
            [],
            granted_capabilities=[ACCESSIBILITY, OVERLAY],
            enablement=_enabled(),
        )
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert verdict.matched_combos == ["Accessibility + overlay from a sideloaded app"]
        assert verdict.top_reasons[0].kind == ReasonKind.COMBO

    def test_stalkerware_pattern_without_sideload(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20),
            [],
            granted_capabilities=[ACCESSIBILITY, NOTIFICATIONS],
            enablement=_enabled(),
        )
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION
        assert verdict.matched_combos == [
            "Possible stalkerware: accessibility + notification access",
        ]

    def test_stalkerware_pattern_sideloaded_is_critical(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20, InstallerType.SIDELOADED),
            [],
            granted_capabilities=[ACCESSIBILITY, NOTIFICATIONS],
            enablement=_enabled(),
        )
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert "Accessibility + notification access, sideloaded with low trust" in verdict.matched_combos

    def test_sms_call_log_low_trust(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(20), [], granted_capabilities=[READ_SMS, READ_CALL_LOG]
        )
        assert verdict.matched_combos == ["SMS + call log with low trust"]
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_combo_respects_expected_clusters(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20),
            [],
            granted_capabilities=[READ_SMS, READ_CALL_LOG],
            category=AppCategory.PHONE_DIALER,
        )
        assert verdict.matched_combos == []

    def test_vpn_combo_bypasses_expectations(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20, InstallerType.SIDELOADED),
            [],
            granted_capabilities=[_P + "BIND_VPN_SERVICE"],
            category=AppCategory.VPN,
        )
        assert verdict.unexpected_clusters == []
        assert verdict.matched_combos == ["VPN service from a sideloaded low-trust app"]
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_moderate_trust_blocks_low_trust_combos(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(50),
            [],
            granted_capabilities=[ACCESSIBILITY, INSTALLS],
            enablement=_enabled(),
        )
        assert verdict.matched_combos == []
        assert verdict.effective_risk == EffectiveRisk.INFO


class TestComboGating:
    def _evaluate(self, evaluator, **kwargs):
        trust = kwargs.pop("trust", _make_trust(20))
        findings = kwargs.pop("findings", [])
        return evaluator.evaluate("a", trust, findings, granted_capabilities=[READ_SMS], **kwargs)

    def test_unexpected_cluster_alone_caps_at_info(self, evaluator):
        verdict = self._evaluate(evaluator)
        assert verdict.unexpected_clusters == [CapabilityCluster.SMS]
        assert verdict.effective_risk == EffectiveRisk.INFO

    def test_unknown_installer_is_not_a_sideload(self, evaluator):
        verdict = self._evaluate(evaluator, trust=_make_trust(20, InstallerType.UNKNOWN))
        assert verdict.effective_risk == EffectiveRisk.INFO

    def test_new_app_is_extra_signal(self, evaluator):
        verdict = self._evaluate(evaluator, is_new_app=True)
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_any_finding_is_extra_signal(self, evaluator):
        verdict = self._evaluate(
            evaluator, findings=[_finding(FindingType.OLD_TARGET_SDK, RiskLevel.LOW)]
        )
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_sideload_is_extra_signal(self, evaluator):
        verdict = self._evaluate(evaluator, trust=_make_trust(20, InstallerType.SIDELOADED))
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_moderate_trust_is_info(self, evaluator):
        verdict = self._evaluate(evaluator, trust=_make_trust(55), is_new_app=True)
        assert verdict.effective_risk == EffectiveRisk.INFO

    def test_high_trust_is_safe(self, evaluator):
        verdict = self._evaluate(evaluator, trust=_make_trust(85))
        assert verdict.effective_risk == EffectiveRisk.SAFE


# ─── Tests: Rules ─────────────────────────────────────────────────


class TestRules:
    def test_hard_medium_is_critical_regardless_of_trust(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(99), [_finding(FindingType.SIGNATURE_MISMATCH, RiskLevel.MEDIUM)]
        )
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert verdict.show_prominently
        assert len(verdict.hard_findings) == 1

    def test_hard_low_alone_is_not_critical(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(80), [_finding(FindingType.DEBUG_SIGNATURE, RiskLevel.LOW)]
        )
        assert verdict.effective_risk == EffectiveRisk.SAFE

    def test_anomalous_trust_is_critical(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(60, level=TrustLevel.ANOMALOUS), []
        )
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert verdict.top_reasons[0].label == "Trust evidence is anomalous"

    def test_installer_anomaly_with_high_risk_cluster(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(80),
            [_finding(FindingType.INSTALLER_ANOMALY, RiskLevel.LOW)],
            granted_capabilities=[OVERLAY],
        )
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION
        assert [r.kind for r in verdict.top_reasons] == [ReasonKind.FINDING, ReasonKind.RULE]

    def test_permission_added_low_with_low_trust(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(20), [_finding(FindingType.HIGH_RISK_PERMISSION_ADDED, RiskLevel.LOW)]
        )
        assert verdict.effective_risk == EffectiveRisk.NEEDS_ATTENTION

    def test_surface_increase_with_low_trust_is_info(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20),
            [_finding(FindingType.EXPORTED_SURFACE_INCREASED, RiskLevel.HIGH)],
        )
        assert verdict.effective_risk == EffectiveRisk.INFO

    def test_max_across_rules(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(20, InstallerType.SIDELOADED),
            [
                _finding(FindingType.EXPORTED_SURFACE_INCREASED, RiskLevel.LOW),
                _finding(FindingType.SIGNATURE_DRIFT, RiskLevel.HIGH),
            ],
            granted_capabilities=[READ_SMS],
        )
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert "SMS access from a sideloaded app" in verdict.matched_combos


# ─── Tests: Presentation ──────────────────────────────────────────


class TestPresentation:
    def test_reason_limit_per_risk(self, evaluator):
        findings = [
            _finding(FindingType.SIGNATURE_MISMATCH, RiskLevel.HIGH),
            _finding(FindingType.VERSION_ROLLBACK, RiskLevel.MEDIUM),
            _finding(FindingType.DEBUG_SIGNATURE, RiskLevel.CRITICAL),
            _finding(FindingType.PARTITION_ANOMALY, RiskLevel.LOW),
            _finding(FindingType.OLD_TARGET_SDK, RiskLevel.HIGH),
        ]
        verdict = evaluator.evaluate("a", _make_trust(20), findings)
        assert verdict.effective_risk == EffectiveRisk.CRITICAL
        assert [r.finding_type for r in verdict.top_reasons] == [
            FindingType.DEBUG_SIGNATURE,
            FindingType.SIGNATURE_MISMATCH,
            FindingType.VERSION_ROLLBACK,
        ]

    def test_info_has_no_reasons(self, evaluator):
        verdict = evaluator.evaluate(
            "a", _make_trust(20), [_finding(FindingType.OLD_TARGET_SDK)]
        )
        assert verdict.effective_risk == EffectiveRisk.INFO
        assert verdict.top_reasons == []

    def test_equal_rank_keeps_input_order(self, evaluator):
        findings = [
            _finding(FindingType.VERSION_ROLLBACK, RiskLevel.HIGH),
            _finding(FindingType.SIGNATURE_DRIFT, RiskLevel.HIGH),
        ]
        verdict = evaluator.evaluate("a", _make_trust(50), findings)
        assert [r.finding_type for r in verdict.top_reasons] == [
            FindingType.VERSION_ROLLBACK,
            FindingType.SIGNATURE_DRIFT,
        ]

    def test_risk_score_clamped(self, evaluator):
        hard = [f for f in FindingType if f.hardness == FindingHardness.HARD]
        verdict = evaluator.evaluate(
            "a", _make_trust(50), [_finding(f, RiskLevel.CRITICAL) for f in hard]
        )
        assert verdict.risk_score == 100

    def test_risk_score_uses_adjusted_severity(self, evaluator):
        verdict = evaluator.evaluate(
            "a",
            _make_trust(50),
            [
                _finding(FindingType.DEBUG_SIGNATURE, RiskLevel.LOW),
                _finding(FindingType.SUSPICIOUS_NATIVE_LIB, RiskLevel.HIGH),
            ],
        )
        # LOW (5) + HIGH downgraded once to MEDIUM (10)
        assert verdict.risk_score == 15

    def test_show_prominently(self, evaluator):
        system = evaluator.evaluate("a", _make_trust(90), [], is_system_app=True)
        user = evaluator.evaluate("a", _make_trust(90), [])
        assert not system.show_prominently
        assert user.show_prominently

    def test_privacy_capabilities_are_informational(self, evaluator):
        camera = _P + "CAMERA"
        as_camera = evaluator.evaluate(
            "a", _make_trust(90), [], granted_capabilities=[camera], category=AppCategory.CAMERA
        )
        as_game = evaluator.evaluate(
            "a", _make_trust(90), [], granted_capabilities=[camera], category=AppCategory.GAME
        )
        assert as_camera.privacy_capabilities[0].expected
        assert not as_game.privacy_capabilities[0].expected
        assert as_game.privacy_capabilities[0].label == "Camera"
        assert as_game.effective_risk == EffectiveRisk.SAFE

    def test_purity(self, evaluator):
        args = (
            "com.example.app",
            _make_trust(20, InstallerType.SIDELOADED),
            [_finding(FindingType.OLD_TARGET_SDK), _finding(FindingType.INSTALLER_ANOMALY)],
        )
        kwargs = {"granted_capabilities": [ACCESSIBILITY, OVERLAY, READ_SMS], "is_new_app": True}
        assert evaluator.evaluate(*args, **kwargs) == evaluator.evaluate(*args, **kwargs)


# ─── Tests: Profiles and populations ─────────────────────────────


class TestProfiles:
    def test_classify_install(self):
        preinstalled = _make_trust(
            90, system_app=SystemAppInfo(is_system_app=True, partition=AppPartition.SYSTEM)
        )
        updated = _make_trust(
            90,
            system_app=SystemAppInfo(
                is_system_app=True, partition=AppPartition.DATA, is_updated_system_app=True
            ),
        )
        assert classify_install(preinstalled) == InstallClass.SYSTEM_PREINSTALLED
        assert classify_install(updated) == InstallClass.SYSTEM_PREINSTALLED
        assert classify_install(_make_trust(50, InstallerType.MDM_INSTALLER)) == (
            InstallClass.ENTERPRISE_MANAGED
        )
        assert classify_install(_make_trust(50)) == InstallClass.USER_INSTALLED
        assert classify_install(None) == InstallClass.USER_INSTALLED

    def test_policy_profile_for(self):
        assert policy_profile_for(InstallClass.SYSTEM_PREINSTALLED) == PolicyProfile.SYSTEM
        assert policy_profile_for(InstallClass.ENTERPRISE_MANAGED) == PolicyProfile.SYSTEM
        assert policy_profile_for(InstallClass.USER_INSTALLED) == PolicyProfile.USER
        assert policy_profile_for(None) == PolicyProfile.USER
        assert policy_profile_for(
            InstallClass.SYSTEM_PREINSTALLED, PolicyProfile.USER
        ) == PolicyProfile.USER

    def test_system_component_hygiene_is_safe(self, evaluator):
        verdict = evaluator.evaluate(
            "com.android.settings",
            _make_trust(90),
            [_finding(f, RiskLevel.MEDIUM) for f in HYGIENE],
            is_system_app=True,
            install_class=InstallClass.SYSTEM_PREINSTALLED,
        )
        assert verdict.policy_profile == PolicyProfile.SYSTEM
        assert verdict.effective_risk == EffectiveRisk.SAFE
        assert not verdict.show_prominently

    def test_same_findings_under_user_profile_is_info(self, evaluator):
        verdict = evaluator.evaluate(
            "com.example.app",
            _make_trust(20),
            [_finding(f, RiskLevel.MEDIUM) for f in HYGIENE],
        )
        assert verdict.policy_profile == PolicyProfile.USER
        assert verdict.effective_risk == EffectiveRisk.INFO

    def test_system_app_population_stays_quiet(self, evaluator):
        severities = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
        soft_and_weak = [f for f in FindingType if f.hardness != FindingHardness.HARD]
        verdicts = []
        for i in range(100):
            findings = [
                _finding(soft_and_weak[(i + k) % len(soft_and_weak)], severities[(i + k) % 3])
                for k in range(3)
            ]
            category = AppCategory.SYSTEM_FRAMEWORK if i % 2 else AppCategory.OTHER
            granted = [ACCESSIBILITY, OVERLAY, INSTALLS] if i % 2 else []
            verdicts.append(evaluator.evaluate(
                f"com.android.component{i}",
                _make_trust(i, InstallerType.SYSTEM_INSTALLER, level=TrustLevel.MODERATE),
                findings,
                is_system_app=True,
                granted_capabilities=granted,
                category=category,
                install_class=InstallClass.SYSTEM_PREINSTALLED,
            ))

        critical = [v for v in verdicts if v.effective_risk == EffectiveRisk.CRITICAL]
        attention = [v for v in verdicts if v.effective_risk == EffectiveRisk.NEEDS_ATTENTION]
        assert critical == []
        assert len(attention) < 5
