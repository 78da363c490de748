"""
Structured logging for Backend Vetting.

JSON logs with timestamp, token_id, event_type and check context.
Use get_logger() in every module for aggregation-friendly output.
"""

from backend_vetting.vetting_logging.logger import (
    bind_token,
    configure_structlog,
    get_logger,
    log_duration,
)

__all__ = ["bind_token", "configure_structlog", "get_logger", "log_duration"]
