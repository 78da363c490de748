"""
Core utilities: exception taxonomy and token identifier handling.

Shared by market data, checks, the vetting service and the API server.
"""

from backend_vetting.core.exceptions import (
    CheckExecutionError,
    DataUnavailable,
    InsufficientData,
    InvalidTokenId,
    MissingData,
    NotFound,
    ProviderError,
    Timeout,
    VettingError,
)
from backend_vetting.core.token_id import TokenRef, parse_token_id

__all__ = [
    "CheckExecutionError",
    "DataUnavailable",
    "InsufficientData",
    "InvalidTokenId",
    "MissingData",
    "NotFound",
    "ProviderError",
    "Timeout",
    "TokenRef",
    "VettingError",
    "parse_token_id",
]
