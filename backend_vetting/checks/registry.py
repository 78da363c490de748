"""
Ordered check registry.

A check is a plain callable ``(token_id, snapshot) -> CheckResult``. Names are
stable keys into stored verdicts, so a name is registered once and, once
retired, is reserved for good.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from backend_vetting.market_data.models import MarketSnapshot
from backend_vetting.vetting.models import CheckResult, Severity

CheckFn = Callable[[str, MarketSnapshot], CheckResult]

DEFAULT_CHECK_TIMEOUT_SEC = 5.0

# Names that existed in earlier catalogs; never reuse them for new checks.
RETIRED_CHECK_NAMES: frozenset[str] = frozenset({"price_impact", "rugcheck_score"})


@dataclass(frozen=True)
class CheckDefinition:
    name: str
    evaluate: CheckFn
    severity: Severity = Severity.MEDIUM
    timeout_sec: float | None = None
    """Per-check override; None uses the registry default."""


class CheckRegistry:
    """Insertion-ordered name -> CheckDefinition mapping."""

    def __init__(
        self,
        *,
        default_timeout_sec: float = DEFAULT_CHECK_TIMEOUT_SEC,
        retired: frozenset[str] | set[str] = RETIRED_CHECK_NAMES,
    ) -> None:
        if default_timeout_sec <= 0:
            raise ValueError("default_timeout_sec must be positive")
        self.default_timeout_sec = default_timeout_sec
        self._checks: dict[str, CheckDefinition] = {}
        self._retired: set[str] = set(retired)

    def register(
        self,
        name: str,
        evaluate: CheckFn,
        *,
        severity: Severity | str = Severity.MEDIUM,
        timeout_sec: float | None = None,
    ) -> CheckDefinition:
        if not name:
            raise ValueError("check name must be non-empty")
        if name in self._retired:
            raise ValueError(f"check name {name!r} is retired and cannot be reused")
        if name in self._checks:
            raise ValueError(f"check {name!r} is already registered")
        if timeout_sec is not None and timeout_sec <= 0:
            raise ValueError("timeout_sec must be positive")
        definition = CheckDefinition(name, evaluate, Severity(severity), timeout_sec)
        self._checks[name] = definition
        return definition

    def retire(self, name: str) -> None:
        """Remove a check and reserve its name."""
        self._checks.pop(name, None)
        self._retired.add(name)

    def timeout_for(self, definition: CheckDefinition) -> float:
        return definition.timeout_sec if definition.timeout_sec is not None else self.default_timeout_sec

    def get(self, name: str) -> CheckDefinition:
        return self._checks[name]

    @property
    def names(self) -> list[str]:
        return list(self._checks)

    @property
    def retired(self) -> frozenset[str]:
        return frozenset(self._retired)

    def __iter__(self) -> Iterator[CheckDefinition]:
        return iter(list(self._checks.values()))

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, name: object) -> bool:
        return name in self._checks
