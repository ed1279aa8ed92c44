"""
AppSentinel — Hypothesis Resolver Context

Optional knowledge the resolver can use to move confidences away from
their base values. Absent context means base confidences only.
"""

from __future__ import annotations

from pydantic import Field

from appsentinel.primitives.common import SentinelBaseModel
from appsentinel.systems.evidence.types import CapabilityCluster, InstallerType


class AppContext(SentinelBaseModel):
    """What is known about the app an event concerns."""

    trust_score: int = Field(50, ge=0, le=100)
    installer_type: InstallerType = InstallerType.UNKNOWN
    is_new_app: bool = False
    active_high_risk_clusters: list[CapabilityCluster] = Field(default_factory=list)
    has_active_special_access: bool = False
    is_version_rollback: bool = False

    @property
    def is_sideloaded(self) -> bool:
        return self.installer_type == InstallerType.SIDELOADED

    def has_cluster(self, cluster: CapabilityCluster) -> bool:
        return cluster in self.active_high_risk_clusters


class DeviceContext(SentinelBaseModel):
    vpn_active: bool = False
