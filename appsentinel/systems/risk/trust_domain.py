"""
AppSentinel — Trust Domains

Every app is signed under some authority: the platform key, an APEX module
key, an OEM key, or a store developer key. Comparing a certificate against
a developer entry is only meaningful when both sit in the same domain. A
platform-signed component that differs from a store-signed entry is
expected and must never read as a mismatch.

A real drift against a previously recorded baseline certificate is a
different matter: it is HARD evidence in every domain.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from appsentinel.systems.evidence.taxonomy import FindingType
from appsentinel.systems.evidence.types import AppPartition, CertMatchType


class TrustDomain(enum.StrEnum):
    PLATFORM_SIGNED = "platform_signed"
    APEX_MODULE = "apex_module"
    OEM_VENDOR = "oem_vendor"
    PLAY_SIGNED = "play_signed"
    UNKNOWN = "unknown"


def classify_signer_domain(
    is_system_app: bool,
    is_apex: bool,
    is_platform_signed: bool,
    partition: AppPartition,
    source_dir: str | None = None,
) -> TrustDomain:
    """Infer the expected signing authority from install location and flags."""
    if is_apex or (source_dir or "").startswith("/apex/"):
        return TrustDomain.APEX_MODULE
    if is_platform_signed:
        return TrustDomain.PLATFORM_SIGNED
    if is_system_app and partition in (AppPartition.VENDOR, AppPartition.PRODUCT):
        return TrustDomain.OEM_VENDOR
    if is_system_app:
        # GMS on /system is Google-signed, still not a store cert
        return TrustDomain.PLATFORM_SIGNED
    return TrustDomain.PLAY_SIGNED


def is_expected_signer_mismatch(domain: TrustDomain) -> bool:
    return domain not in (TrustDomain.PLAY_SIGNED, TrustDomain.UNKNOWN)


# ─── Developer Certificate Registry ──────────────────────────────


@dataclass(frozen=True)
class DeveloperEntry:
    name: str
    cert_digests: tuple[str, ...]  # Current first, then rotated
    package_prefixes: tuple[str, ...]
    domain: TrustDomain = TrustDomain.PLAY_SIGNED


@dataclass(frozen=True)
class DeveloperCertMatch:
    developer_name: str
    expected_cert: str
    cert_matches: bool
    entry_domain: TrustDomain

    @property
    def match_type(self) -> CertMatchType:
        return CertMatchType.DEVELOPER_MATCH if self.cert_matches else CertMatchType.CERT_MISMATCH


# com.android.* is deliberately absent: those packages are platform or
# APEX signed and never carry the store key.
DEVELOPER_REGISTRY: tuple[DeveloperEntry, ...] = (
    DeveloperEntry(
        name="Google",
        cert_digests=("38918A453D07199354F8B19AF05EC6562CED5788",),
        package_prefixes=("com.google.",),
    ),
    DeveloperEntry(
        name="Meta",
        cert_digests=("A4B94B07E5D7D8E3E7D5B5B5B5B5B5B5B5B5B5B5",),
        package_prefixes=("com.facebook.", "com.instagram.", "com.whatsapp", "com.meta."),
    ),
    DeveloperEntry(
        name="Microsoft",
        cert_digests=("C3D3E3F3F3F3F3F3F3F3F3F3F3F3F3F3F3F3F3F3",),
        package_prefixes=("com.microsoft.",),
    ),
    DeveloperEntry(
        name="Samsung",
        cert_digests=("34DF0E7A9F1B2C3D4E5F6A7B8C9D0E1F2A3B4C5D",),
        package_prefixes=("com.samsung.", "com.sec.android."),
    ),
)


def _normalise_digest(digest: str) -> str:
    return digest.replace(":", "").upper()


def match_developer_cert(
    package_name: str,
    cert_prefix: str,
    caller_domain: TrustDomain | None = None,
) -> DeveloperCertMatch | None:
    """
    Match a package against the registry by package prefix.

    Returns None when no entry owns the package. With ``caller_domain`` set,
    entries from other domains are skipped entirely.
    """
    prefix = _normalise_digest(cert_prefix)
    for entry in DEVELOPER_REGISTRY:
        if not any(package_name.startswith(p) for p in entry.package_prefixes):
            continue
        if caller_domain is not None and entry.domain != caller_domain:
            continue
        matches = bool(prefix) and any(
            known.startswith(prefix) or prefix.startswith(known) for known in entry.cert_digests
        )
        return DeveloperCertMatch(
            developer_name=entry.name,
            expected_cert=entry.cert_digests[0],
            cert_matches=matches,
            entry_domain=entry.domain,
        )
    return None


def cert_finding_type(
    domain: TrustDomain,
    match_type: CertMatchType,
    current_digest: str = "",
    baseline_digest: str | None = None,
) -> FindingType | None:
    """
    Turn a certificate comparison into at most one finding.

    Baseline drift wins over everything and is never domain-excused. A
    registry mismatch is HARD only where the comparison is meaningful; in a
    platform, APEX or OEM domain it is at most a non-canonical signer.
    """
    if baseline_digest and current_digest and (
        _normalise_digest(baseline_digest) != _normalise_digest(current_digest)
    ):
        return FindingType.SIGNATURE_DRIFT
    if match_type == CertMatchType.CERT_MISMATCH:
        if is_expected_signer_mismatch(domain):
            return FindingType.NOT_PLAY_SIGNED
        return FindingType.SIGNATURE_MISMATCH
    return None


def detect_partition_anomaly(
    package_name: str,
    is_system_app: bool,
    source_dir: str | None,
    partition: AppPartition,
    is_updated_system_app: bool = False,
) -> str | None:
    """Describe a system component living somewhere it should not, or None."""
    if not is_system_app or is_updated_system_app:
        return None
    if (source_dir or "").startswith("/data/app"):
        return (
            f"System component {package_name} runs from /data/app instead of a "
            "system partition and may have been replaced"
        )
    if partition == AppPartition.DATA:
        return f"System component {package_name} sits on the data partition"
    return None
