"""
Tests for verdict aggregation (aggregator.aggregate).
"""

from __future__ import annotations

import pytest

from backend_vetting.core.exceptions import InsufficientData
from backend_vetting.vetting.aggregator import RiskThresholds, aggregate
from backend_vetting.vetting.models import CheckResult, CheckStatus, RiskLevel, Verdict, VerdictStatus

TS = 1_700_000_000.0


def _r(name: str, status: str, score: float = 0.0, ts: float = TS) -> CheckResult:
    return CheckResult(name=name, status=CheckStatus(status), score=score, detail=f"{name} {status}", computed_at=ts)


def test_aggregate_all_pass():
    verdict = aggregate([_r("a", "pass", 10), _r("b", "pass", 5)])
    assert verdict.status is VerdictStatus.PASS
    assert verdict.score == 15
    assert verdict.confidence == 1.0
    assert verdict.computed_at == TS
    assert [c.name for c in verdict.checks] == ["a", "b"]


def test_any_fail_means_fail():
    verdict = aggregate([_r("a", "pass", 10), _r("b", "warn", -5), _r("c", "fail", -50)])
    assert verdict.status is VerdictStatus.FAIL
    assert verdict.score == -45


def test_warn_without_fail_means_warn():
    verdict = aggregate([_r("a", "pass", 10), _r("b", "warn", -5)])
    assert verdict.status is VerdictStatus.WARN


def test_errors_contribute_zero_and_lower_confidence():
    verdict = aggregate([_r("a", "pass", 10), _r("b", "pass", 10), _r("c", "pass", 10), _r("d", "error", 0)])
    assert verdict.score == 30
    assert verdict.confidence == 0.75
    # 0.75 is not below the default threshold
    assert verdict.status is VerdictStatus.PASS


def test_low_confidence_downgrades_pass_to_warn():
    verdict = aggregate([_r("a", "pass", 10), _r("b", "error"), _r("c", "error")])
    assert verdict.confidence == pytest.approx(1 / 3, abs=1e-6)
    assert verdict.status is VerdictStatus.WARN


def test_confidence_threshold_is_configurable():
    results = [_r("a", "pass", 10), _r("b", "error")]
    assert aggregate(results, confidence_threshold=0.5).status is VerdictStatus.PASS
    assert aggregate(results, confidence_threshold=0.75).status is VerdictStatus.WARN


def test_all_error_is_insufficient_data():
    with pytest.raises(InsufficientData):
        aggregate([_r("a", "error"), _r("b", "error")])


def test_empty_input_is_insufficient_data():
    with pytest.raises(InsufficientData):
        aggregate([])


def test_aggregate_is_deterministic():
    results = [_r("a", "pass", 10), _r("b", "warn", -5), _r("c", "error")]
    assert aggregate(results, snapshot_fetched_at=TS - 1) == aggregate(list(results), snapshot_fetched_at=TS - 1)


def test_mixed_timestamps_rejected():
    with pytest.raises(ValueError, match="timestamp"):
        aggregate([_r("a", "pass", 1, ts=TS), _r("b", "pass", 1, ts=TS + 1)])


def test_duplicate_names_rejected():
    with pytest.raises(ValueError, match="unique"):
        aggregate([_r("a", "pass", 1), _r("a", "fail", -1)])


def test_red_and_green_flags():
    verdict = aggregate([_r("liquidity_threshold", "fail", -50), _r("honeypot", "pass", 10), _r("x", "warn", -1)])
    assert [f["check"] for f in verdict.red_flags] == ["liquidity_threshold"]
    assert verdict.green_flags == ["honeypot"]


def test_check_score_is_clamped():
    assert _r("a", "pass", 250).score == 100
    assert _r("a", "fail", -250).score == -100


@pytest.mark.parametrize(
    "score, level",
    [
        (100, RiskLevel.LOW),
        (70, RiskLevel.LOW),
        (69.9, RiskLevel.MEDIUM),
        (40, RiskLevel.MEDIUM),
        (0, RiskLevel.HIGH),
        (-0.5, RiskLevel.EXTREME),
    ],
)
def test_risk_level_boundaries(score, level):
    assert aggregate([_r("a", "pass", score)]).risk_level is level


def test_risk_thresholds_are_configurable():
    thresholds = RiskThresholds(low_min=20, medium_min=10, high_min=5)
    assert aggregate([_r("a", "pass", 15)], risk_thresholds=thresholds).risk_level is RiskLevel.MEDIUM
    with pytest.raises(ValueError):
        RiskThresholds(low_min=10, medium_min=20)


def test_provider_provenance_survives_wire_shape():
    verdict = aggregate(
        [_r("a", "pass", 10)],
        providers=("dexscreener",),
        provider_errors=(("goplus", "ProviderError"), ("rugcheck", "Timeout")),
    )
    body = verdict.to_dict()
    assert body["riskLevel"] == "HIGH"
    assert body["providerErrors"] == [
        {"provider": "goplus", "kind": "ProviderError"},
        {"provider": "rugcheck", "kind": "Timeout"},
    ]
    assert Verdict.from_dict(body) == verdict


def test_verdict_without_risk_level_loads():
    body = aggregate([_r("a", "pass", 10)]).to_dict()
    for key in ("riskLevel", "providers", "providerErrors"):
        body.pop(key)
    loaded = Verdict.from_dict(body)
    assert loaded.risk_level is None
    assert loaded.provider_errors == ()
