"""
AppSentinel — Hypothesis Resolver

Ranked causal hypotheses and a minimum safe action set for each event.
"""

from appsentinel.systems.hypothesis.resolver import (
    DEVICE_GROUP,
    HYPOTHESIS_TEMPLATES,
    HypothesisResolver,
)
from appsentinel.systems.hypothesis.types import AppContext, DeviceContext

__all__ = [
    "AppContext",
    "DEVICE_GROUP",
    "DeviceContext",
    "HYPOTHESIS_TEMPLATES",
    "HypothesisResolver",
]
