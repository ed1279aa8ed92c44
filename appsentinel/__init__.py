"""
AppSentinel — Evidence → Verdict → Explanation

Turns per-application security observations into a deterministic risk
verdict and a policy-constrained explanation.
"""

__version__ = "0.4.0"
