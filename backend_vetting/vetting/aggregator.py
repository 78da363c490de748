"""
Verdict aggregation.

Rules:
    score       sum of contributions of pass/fail/warn results; error adds 0
    confidence  executed / total, where executed excludes error results
    status      fail if any check failed; otherwise warn if any warned or
                confidence is below the threshold; otherwise pass
    risk_level  LOW / MEDIUM / HIGH / EXTREME from the score and RiskThresholds

All-error or empty input raises InsufficientData. aggregate() is pure: equal
input gives an equal Verdict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from backend_vetting.core.exceptions import InsufficientData
from backend_vetting.vetting.models import CheckResult, CheckStatus, RiskLevel, Verdict, VerdictStatus

DEFAULT_CONFIDENCE_THRESHOLD = 0.75


@dataclass(frozen=True)
class RiskThresholds:
    """Minimum verdict score for each risk level; anything below high_min is EXTREME."""

    low_min: float = 70.0
    medium_min: float = 40.0
    high_min: float = 0.0

    def __post_init__(self) -> None:
        if not (self.low_min >= self.medium_min >= self.high_min):
            raise ValueError("risk thresholds must satisfy low_min >= medium_min >= high_min")

    def classify(self, score: float) -> RiskLevel:
        if score >= self.low_min:
            return RiskLevel.LOW
        if score >= self.medium_min:
            return RiskLevel.MEDIUM
        if score >= self.high_min:
            return RiskLevel.HIGH
        return RiskLevel.EXTREME


DEFAULT_RISK_THRESHOLDS = RiskThresholds()


def aggregate(
    results: Sequence[CheckResult],
    *,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    risk_thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
    snapshot_fetched_at: float | None = None,
    providers: Sequence[str] = (),
    provider_errors: Sequence[tuple[str, str]] = (),
) -> Verdict:
    if not results:
        raise InsufficientData("no checks were run")

    names = [r.name for r in results]
    if len(set(names)) != len(names):
        raise ValueError("check names must be unique within a verdict")
    stamps = {r.computed_at for r in results}
    if len(stamps) != 1:
        raise ValueError("all check results of a verdict must share one computed timestamp")

    executed = [r for r in results if r.status is not CheckStatus.ERROR]
    if not executed:
        raise InsufficientData(f"all {len(results)} checks errored")

    score = round(sum(r.score for r in executed), 6)
    confidence = round(len(executed) / len(results), 6)

    if any(r.status is CheckStatus.FAIL for r in executed):
        status = VerdictStatus.FAIL
    elif any(r.status is CheckStatus.WARN for r in executed) or confidence < confidence_threshold:
        status = VerdictStatus.WARN
    else:
        status = VerdictStatus.PASS

    return Verdict(
        score=score,
        status=status,
        confidence=confidence,
        checks=tuple(results),
        computed_at=stamps.pop(),
        snapshot_fetched_at=snapshot_fetched_at,
        risk_level=risk_thresholds.classify(score),
        providers=tuple(providers),
        provider_errors=tuple(provider_errors),
    )
