"""
Structured JSON logging: timestamp, token_id, event_type, check context.

structlog with ISO timestamps, log level and consistent keys for
aggregation. Engine modules call get_logger(__name__) and log a snake_case
event_type plus keyword context (token_id, check, duration_ms, ...).

Uses only stdlib logging and structlog; no backend_vetting imports to avoid circular imports.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog


def _env_level() -> int:
    raw = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    return getattr(logging, raw, logging.INFO)


def _env_format() -> str:
    # json for production; anything else renders for a terminal
    return os.getenv("LOG_FORMAT", "json").strip().lower()


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _normalize_event(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rename structlog 'event' to event_type so every line is keyed the same way."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def configure_structlog(level: int | None = None, fmt: str | None = None) -> None:
    """
    Configure structlog processors and renderer.

    Called once on import with values from LOG_LEVEL / LOG_FORMAT; call again
    with explicit arguments to reconfigure (e.g. the CLI switching to console output).
    """
    level = _env_level() if level is None else level
    fmt = _env_format() if fmt is None else fmt
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger for the given module name.

        logger = get_logger(__name__)
        logger.info("check_completed", token_id=tid, check="liquidity_threshold", duration_ms=3.1)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_token(token_id: str) -> structlog.BoundLogger:
    """Return a logger with token_id bound to all subsequent log calls."""
    return get_logger("backend_vetting").bind(token_id=token_id)


@contextmanager
def log_duration(logger: Any, event_type: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """
    Log event_type with duration_ms once the block exits.

    The yielded dict can be filled with extra fields inside the block. If the
    block raises, the event is logged with ok=False and the exception re-raised.
    """
    extra: dict[str, Any] = {}
    start = time.perf_counter()
    ok = True
    try:
        yield extra
    except Exception:
        ok = False
        raise
    finally:
        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.debug(event_type, duration_ms=duration_ms, ok=ok, **fields, **extra)
