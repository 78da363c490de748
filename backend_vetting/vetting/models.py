"""
Vetting domain models: CheckResult, Verdict and the result envelope.

All are frozen; a Verdict is replaced whole on every re-run, never patched.
to_dict() produces the wire shape (camelCase keys) that the API returns and
the store persists; from_dict() is its inverse.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

SCORE_MIN = -100.0
SCORE_MAX = 100.0


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    ERROR = "error"


class VerdictStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


def clamp_score(score: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, float(score)))


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def _from_iso(value: Any) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return datetime.fromisoformat(str(value)).timestamp()


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check for one run."""

    name: str
    status: CheckStatus
    score: float
    detail: str
    duration_ms: float = 0.0
    computed_at: float = 0.0
    """Run timestamp shared by every result of the same run (Unix seconds)."""
    severity: Severity = Severity.MEDIUM

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", CheckStatus(self.status))
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "score", clamp_score(self.score))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "score": self.score,
            "detail": self.detail,
            "durationMs": self.duration_ms,
            "severity": self.severity.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], computed_at: float) -> "CheckResult":
        return cls(
            name=data["name"],
            status=CheckStatus(data["status"]),
            score=float(data["score"]),
            detail=data.get("detail", ""),
            duration_ms=float(data.get("durationMs", 0.0)),
            computed_at=computed_at,
            severity=Severity(data.get("severity", Severity.MEDIUM.value)),
        )


@dataclass(frozen=True)
class Verdict:
    """
    Aggregate outcome of one run.

    score and status are derived by the aggregator from checks; nothing else
    sets them. fresh is evaluated against the TTL when the verdict is read.
    """

    score: float
    status: VerdictStatus
    confidence: float
    checks: tuple[CheckResult, ...]
    computed_at: float
    snapshot_fetched_at: float | None = None
    fresh: bool = True
    risk_level: RiskLevel | None = None
    providers: tuple[str, ...] = ()
    """Providers that contributed to the snapshot this verdict was computed from."""
    provider_errors: tuple[tuple[str, str], ...] = ()
    """(provider, error kind) for supplementary providers that failed during the fetch."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", VerdictStatus(self.status))
        object.__setattr__(self, "checks", tuple(self.checks))
        if self.risk_level is not None:
            object.__setattr__(self, "risk_level", RiskLevel(self.risk_level))
        object.__setattr__(self, "providers", tuple(self.providers))
        object.__setattr__(self, "provider_errors", tuple(tuple(e) for e in self.provider_errors))

    @property
    def red_flags(self) -> list[dict[str, str]]:
        return [
            {"check": c.name, "severity": c.severity.value, "detail": c.detail}
            for c in self.checks
            if c.status is CheckStatus.FAIL
        ]

    @property
    def green_flags(self) -> list[str]:
        return [c.name for c in self.checks if c.status is CheckStatus.PASS]

    def age_sec(self, now: float) -> float:
        return max(0.0, now - self.computed_at)

    def with_freshness(self, now: float, ttl_sec: float) -> "Verdict":
        return replace(self, fresh=self.age_sec(now) <= ttl_sec)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "status": self.status.value,
            "confidence": self.confidence,
            "checks": [c.to_dict() for c in self.checks],
            "computedAt": _iso(self.computed_at),
            "computedAtTs": self.computed_at,
            "snapshotFetchedAt": self.snapshot_fetched_at,
            "fresh": self.fresh,
            "redFlags": self.red_flags,
            "greenFlags": self.green_flags,
            "riskLevel": self.risk_level.value if self.risk_level else None,
            "providers": list(self.providers),
            "providerErrors": [{"provider": p, "kind": k} for p, k in self.provider_errors],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Verdict":
        computed_at = _from_iso(data.get("computedAtTs", data["computedAt"]))
        return cls(
            score=float(data["score"]),
            status=VerdictStatus(data["status"]),
            confidence=float(data["confidence"]),
            checks=tuple(CheckResult.from_dict(c, computed_at) for c in data["checks"]),
            computed_at=computed_at,
            snapshot_fetched_at=data.get("snapshotFetchedAt"),
            fresh=bool(data.get("fresh", True)),
            risk_level=RiskLevel(data["riskLevel"]) if data.get("riskLevel") else None,
            providers=tuple(data.get("providers") or ()),
            provider_errors=tuple((e["provider"], e["kind"]) for e in data.get("providerErrors") or ()),
        )


@dataclass(frozen=True)
class VettingEnvelope:
    """Result of run_automated_checks: success flag, verdict or error, and whether checks ran."""

    token_id: str
    success: bool
    ran_checks: bool
    verdict: Verdict | None = None
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "success": self.success,
            "tokenId": self.token_id,
            "ranChecks": self.ran_checks,
            "verdict": self.verdict.to_dict() if self.verdict else None,
        }
        if self.error is not None:
            out["error"] = self.error
        return out
