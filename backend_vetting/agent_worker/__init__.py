"""Background refresh of stale verdicts."""

from backend_vetting.agent_worker.runner import (
    PeriodicRefreshConfig,
    run_periodic_refresh,
    run_refresh_tick,
)

__all__ = ["PeriodicRefreshConfig", "run_periodic_refresh", "run_refresh_tick"]
