"""
Application settings.

Loads configuration from environment variables (and .env via load_vetting_env),
validates numeric values and exposes a single frozen VettingSettings object
for the store, the runner, the service, the API server and the refresh worker.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass

from backend_vetting.config.env import (
    DEXSCREENER_BASE_URL,
    GOPLUS_BASE_URL,
    JUPITER_BASE_URL,
    RUGCHECK_BASE_URL,
    env_bool,
    env_float,
    env_int,
    env_str,
    get_database_url,
    load_vetting_env,
)
from backend_vetting.core.token_id import normalize_chain


@dataclass(frozen=True)
class ProviderConfig:
    """Explicit provider endpoints and timeouts passed to the market-data providers."""

    dexscreener_base_url: str = DEXSCREENER_BASE_URL
    goplus_base_url: str = GOPLUS_BASE_URL
    rugcheck_base_url: str = RUGCHECK_BASE_URL
    jupiter_base_url: str = JUPITER_BASE_URL
    timeout_sec: float = 10.0
    user_agent: str = "backend-vetting/0.1"
    enable_goplus: bool = True
    enable_rugcheck: bool = True
    enable_jupiter: bool = True
    jupiter_cache_ttl_sec: float = 300.0


@dataclass(frozen=True)
class VettingSettings:
    database_url: str = "sqlite:///vetting.db"
    ttl_sec: float = 600.0
    check_timeout_sec: float = 5.0
    confidence_threshold: float = 0.75
    history_limit: int = 20
    default_chain: str = "solana"
    api_key: str | None = None
    periodic_interval_sec: float = 0.0
    periodic_max_tokens: int = 500
    risk_low_min: float = 70.0
    risk_medium_min: float = 40.0
    risk_high_min: float = 0.0
    providers: ProviderConfig = ProviderConfig()

    def __post_init__(self) -> None:
        if self.ttl_sec < 0:
            raise ValueError("ttl_sec must be >= 0")
        if self.check_timeout_sec <= 0:
            raise ValueError("check_timeout_sec must be positive")
        if not (0.0 <= self.confidence_threshold <= 1.0):
            raise ValueError("confidence_threshold must be between 0 and 1")
        if self.history_limit < 0:
            raise ValueError("history_limit must be >= 0")
        if self.providers.timeout_sec <= 0:
            raise ValueError("provider timeout must be positive")
        if not (self.risk_low_min >= self.risk_medium_min >= self.risk_high_min):
            raise ValueError("risk thresholds must satisfy low >= medium >= high")


def load_settings() -> VettingSettings:
    """Build settings from the current environment (no caching)."""
    load_vetting_env()
    providers = ProviderConfig(
        dexscreener_base_url=env_str("DEXSCREENER_BASE_URL", DEXSCREENER_BASE_URL).rstrip("/"),
        goplus_base_url=env_str("GOPLUS_BASE_URL", GOPLUS_BASE_URL).rstrip("/"),
        rugcheck_base_url=env_str("RUGCHECK_BASE_URL", RUGCHECK_BASE_URL).rstrip("/"),
        jupiter_base_url=env_str("JUPITER_BASE_URL", JUPITER_BASE_URL).rstrip("/"),
        timeout_sec=env_float("PROVIDER_TIMEOUT_SEC", 10.0),
        enable_goplus=env_bool("GOPLUS_ENABLED", True),
        enable_rugcheck=env_bool("RUGCHECK_ENABLED", True),
        enable_jupiter=env_bool("JUPITER_ENABLED", True),
        jupiter_cache_ttl_sec=env_float("JUPITER_CACHE_TTL_SEC", 300.0),
    )
    return VettingSettings(
        database_url=get_database_url(),
        ttl_sec=env_float("VETTING_TTL_SEC", 600.0),
        check_timeout_sec=env_float("VETTING_CHECK_TIMEOUT_SEC", 5.0),
        confidence_threshold=env_float("VETTING_CONFIDENCE_THRESHOLD", 0.75),
        history_limit=env_int("VETTING_HISTORY_LIMIT", 20),
        default_chain=normalize_chain(env_str("VETTING_DEFAULT_CHAIN", "solana")),
        api_key=env_str("VETTING_API_KEY") or None,
        periodic_interval_sec=env_float("PERIODIC_INTERVAL_SEC", 0.0),
        periodic_max_tokens=env_int("PERIODIC_MAX_TOKENS", 500),
        risk_low_min=env_float("VETTING_RISK_LOW_MIN", 70.0),
        risk_medium_min=env_float("VETTING_RISK_MEDIUM_MIN", 40.0),
        risk_high_min=env_float("VETTING_RISK_HIGH_MIN", 0.0),
        providers=providers,
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> VettingSettings:
    """
    Return the process-wide settings, loaded once.

    Tests that change the environment call get_settings.cache_clear().
    """
    return load_settings()
