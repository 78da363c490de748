"""
Vetting pipeline: result models, the concurrent check runner, aggregation
and the VettingService entry point (backend_vetting.vetting.service).
"""

from backend_vetting.vetting.aggregator import RiskThresholds, aggregate
from backend_vetting.vetting.models import (
    CheckResult,
    CheckStatus,
    RiskLevel,
    Severity,
    Verdict,
    VerdictStatus,
    VettingEnvelope,
)

__all__ = [
    "CheckResult",
    "CheckStatus",
    "RiskLevel",
    "RiskThresholds",
    "Severity",
    "Verdict",
    "VerdictStatus",
    "VettingEnvelope",
    "aggregate",
]
