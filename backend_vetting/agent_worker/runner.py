"""
Periodic refresh runner.

run_periodic_refresh(): every interval_sec, re-vet stored tokens whose latest
verdict is older than the service TTL, oldest first. Started by the FastAPI
lifespan in a background thread when PERIODIC_INTERVAL_SEC > 0; never blocks
the API. A failing token is logged and skipped; the loop continues.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from backend_vetting.config.settings import VettingSettings
from backend_vetting.vetting.service import VettingService
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS_PER_TICK = 500
SHUTDOWN_JOIN_TIMEOUT_SEC = 15.0
MIN_INTERVAL_SEC = 1.0


@dataclass
class PeriodicRefreshConfig:
    interval_sec: float = 300.0
    max_tokens_per_tick: int = DEFAULT_MAX_TOKENS_PER_TICK

    @classmethod
    def from_settings(cls, settings: VettingSettings) -> "PeriodicRefreshConfig":
        return cls(interval_sec=settings.periodic_interval_sec, max_tokens_per_tick=settings.periodic_max_tokens)


@dataclass
class TickStats:
    tokens: int = 0
    refreshed: int = 0
    failed: int = 0


def run_refresh_tick(
    service: VettingService,
    config: PeriodicRefreshConfig,
    stop_event: threading.Event | None = None,
) -> TickStats:
    """Re-vet one batch of stale tokens. Returns per-tick counters."""
    stats = TickStats()
    tokens = service.stale_tokens(limit=config.max_tokens_per_tick)
    stats.tokens = len(tokens)
    for token_id in tokens:
        if stop_event is not None and stop_event.is_set():
            break
        try:
            envelope = service.run_automated_checks(token_id, force_refresh=True)
        except Exception as e:
            stats.failed += 1
            logger.warning("periodic_token_crashed", token_id=token_id, error=str(e))
            continue
        if envelope.success:
            stats.refreshed += 1
        else:
            stats.failed += 1
            logger.info(
                "periodic_token_failed",
                token_id=token_id,
                kind=(envelope.error or {}).get("kind"),
            )
    return stats


def run_periodic_refresh(
    service: VettingService,
    config: PeriodicRefreshConfig,
    stop_event: threading.Event,
) -> None:
    """Loop run_refresh_tick until stop_event is set."""
    interval = max(MIN_INTERVAL_SEC, config.interval_sec)
    logger.info(
        "periodic_refresh_started",
        interval_sec=interval,
        max_tokens_per_tick=config.max_tokens_per_tick,
        ttl_sec=service.ttl_sec,
    )
    tick_count = 0
    while not stop_event.is_set():
        tick_start = time.monotonic()
        tick_count += 1
        try:
            stats = run_refresh_tick(service, config, stop_event)
            if stats.tokens:
                logger.info(
                    "periodic_tick_done",
                    tick=tick_count,
                    tokens=stats.tokens,
                    refreshed=stats.refreshed,
                    failed=stats.failed,
                )
            else:
                logger.debug("periodic_tick_no_stale_tokens", tick=tick_count)
        except Exception as e:
            logger.exception("periodic_tick_failed", tick=tick_count, error=str(e))
        stop_event.wait(timeout=max(0.0, tick_start + interval - time.monotonic()))
    logger.info("periodic_refresh_stopped", tick_count=tick_count)
