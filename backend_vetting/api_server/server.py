"""
FastAPI server for the vetting engine.

The service is built in the lifespan from settings unless one was injected
through create_app(). When PERIODIC_INTERVAL_SEC > 0 the periodic refresh
runner starts in a background thread and is stopped on shutdown.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend_vetting import __version__
from backend_vetting.agent_worker.runner import (
    SHUTDOWN_JOIN_TIMEOUT_SEC,
    PeriodicRefreshConfig,
    run_periodic_refresh,
)
from backend_vetting.api_server.routes import router as tokens_router
from backend_vetting.config import VettingSettings, get_settings
from backend_vetting.vetting.service import VettingService
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)


def _start_refresh_thread(
    service: VettingService, settings: VettingSettings
) -> tuple[threading.Thread, threading.Event]:
    stop_event = threading.Event()
    config = PeriodicRefreshConfig.from_settings(settings)
    thread = threading.Thread(
        target=run_periodic_refresh,
        args=(service, config, stop_event),
        name="periodic-refresh",
        daemon=True,
    )
    thread.start()
    logger.info("api_periodic_refresh_started", interval_sec=config.interval_sec)
    return thread, stop_event


def create_app(
    service: VettingService | None = None,
    settings: VettingSettings | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or get_settings()
        owns_service = service is None
        svc = service or VettingService.from_settings(cfg)
        app.state.service = svc
        app.state.api_key = cfg.api_key

        refresh = None
        if cfg.periodic_interval_sec > 0:
            refresh = _start_refresh_thread(svc, cfg)
        logger.info("api_started", auth=bool(cfg.api_key), ttl_sec=svc.ttl_sec)

        yield

        if refresh is not None:
            thread, stop_event = refresh
            stop_event.set()
            thread.join(timeout=SHUTDOWN_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                logger.warning("api_periodic_refresh_shutdown_timeout", timeout_sec=SHUTDOWN_JOIN_TIMEOUT_SEC)
            else:
                logger.info("api_periodic_refresh_stopped")
        if owns_service:
            svc.close()
        app.state.service = None

    app = FastAPI(
        title="Token Vetting API",
        description="Automated token vetting: run checks, read verdicts and history.",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(tokens_router, prefix="/api")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app
