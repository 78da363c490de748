"""
CheckRunner: fan out every registered check against one snapshot.

Each check runs on its own daemon thread with an explicit deadline. The runner
is the join barrier: it waits for each thread up to that thread's remaining
budget, then substitutes an ``error`` result for anything that missed its
deadline or raised. A check that overruns is abandoned; if it finishes later
its result is discarded. Results come back in registry order.
"""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Callable

from backend_vetting.core.exceptions import CheckExecutionError
from backend_vetting.vetting.models import CheckResult, CheckStatus
from backend_vetting.vetting_logging import get_logger

if TYPE_CHECKING:
    from backend_vetting.checks.registry import CheckDefinition, CheckRegistry
    from backend_vetting.market_data.models import MarketSnapshot

logger = get_logger(__name__)


class _CheckTask:
    """One check invocation; the result slot is closed once the barrier reads it."""

    def __init__(self, definition: "CheckDefinition", timeout_sec: float) -> None:
        self.definition = definition
        self.timeout_sec = timeout_sec
        self.thread: threading.Thread | None = None
        self.deadline = 0.0
        self.duration_ms = 0.0
        self._lock = threading.Lock()
        self._closed = False
        self._done = False
        self._result: object = None
        self._error: BaseException | None = None

    def run(self, token_id: str, snapshot: "MarketSnapshot") -> None:
        start = time.monotonic()
        try:
            value = self.definition.evaluate(token_id, snapshot)
            error = None
        except Exception as e:  # reported as an error result by the barrier
            value, error = None, e
        with self._lock:
            if self._closed:
                logger.debug("check_late_result_discarded", check=self.definition.name, token_id=token_id)
                return
            self.duration_ms = (time.monotonic() - start) * 1000.0
            self._result, self._error = value, error
            self._done = True

    def close(self) -> tuple[object, BaseException | None, bool]:
        """Return (result, error, finished) and reject any later write."""
        with self._lock:
            self._closed = True
            return self._result, self._error, self._done


class CheckRunner:
    """Run checks concurrently with per-check timeouts and failure isolation."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def run(self, token_id: str, snapshot: "MarketSnapshot", registry: "CheckRegistry") -> list[CheckResult]:
        """
        Return one CheckResult per registered check, in registry order.

        Blocks until every check has completed or hit its deadline. Never raises
        for a check failure; an all-error list is returned as is.
        """
        computed_at = self._clock()
        tasks = [_CheckTask(d, registry.timeout_for(d)) for d in registry]

        for task in tasks:
            task.deadline = time.monotonic() + task.timeout_sec
            task.thread = threading.Thread(
                target=task.run,
                args=(token_id, snapshot),
                name=f"check-{task.definition.name}",
                daemon=True,
            )
            task.thread.start()

        results = []
        for task in tasks:
            task.thread.join(max(0.0, task.deadline - time.monotonic()))
            results.append(self._collect(token_id, task, computed_at))

        errors = [r.name for r in results if r.status is CheckStatus.ERROR]
        logger.info(
            "checks_completed",
            token_id=token_id,
            total=len(results),
            errors=len(errors),
            error_checks=errors,
        )
        return results

    def _collect(self, token_id: str, task: _CheckTask, computed_at: float) -> CheckResult:
        definition = task.definition
        value, error, finished = task.close()

        if not finished:
            logger.warning(
                "check_timeout",
                token_id=token_id,
                check=definition.name,
                timeout_sec=task.timeout_sec,
            )
            return self._error_result(
                definition,
                f"Timed out after {task.timeout_sec:g}s",
                task.timeout_sec * 1000.0,
                computed_at,
            )

        if error is not None:
            kind = error.kind if isinstance(error, CheckExecutionError) else type(error).__name__
            logger.warning(
                "check_failed",
                token_id=token_id,
                check=definition.name,
                kind=kind,
                error=str(error),
            )
            return self._error_result(definition, f"{kind}: {error}", task.duration_ms, computed_at)

        if not isinstance(value, CheckResult):
            logger.warning(
                "check_invalid_result",
                token_id=token_id,
                check=definition.name,
                result_type=type(value).__name__,
            )
            return self._error_result(
                definition,
                f"Check returned {type(value).__name__}, not a CheckResult",
                task.duration_ms,
                computed_at,
            )

        return replace(
            value,
            name=definition.name,
            severity=definition.severity,
            duration_ms=round(task.duration_ms, 3),
            computed_at=computed_at,
        )

    @staticmethod
    def _error_result(definition: "CheckDefinition", detail: str, duration_ms: float, computed_at: float) -> CheckResult:
        return CheckResult(
            name=definition.name,
            status=CheckStatus.ERROR,
            score=0.0,
            detail=detail,
            duration_ms=round(duration_ms, 3),
            computed_at=computed_at,
            severity=definition.severity,
        )
