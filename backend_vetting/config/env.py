"""
Environment variable loading for Backend Vetting.

- Loads .env from the project root when present (python-dotenv).
- Typed readers for the numeric / boolean env vars used by settings.
- Provider endpoint defaults (DexScreener, GoPlus, RugCheck).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_vetting/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEXSCREENER_BASE_URL = "https://api.dexscreener.com"
GOPLUS_BASE_URL = "https://api.gopluslabs.io/api/v1"
RUGCHECK_BASE_URL = "https://api.rugcheck.xyz/v1"
JUPITER_BASE_URL = "https://lite-api.jup.ag"

DEFAULT_DB_FILE = "vetting.db"

_TRUE = ("1", "true", "yes", "on")


def load_vetting_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides real env."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def env_bool(name: str, default: bool = False) -> bool:
    raw = env_str(name).lower()
    if not raw:
        return default
    return raw in _TRUE


def get_database_url() -> str:
    """
    Resolve the store URL.
    Order: VETTING_DB_URL > DATABASE_URL > sqlite file from VETTING_DB_PATH (default vetting.db).
    """
    load_vetting_env()
    url = env_str("VETTING_DB_URL") or env_str("DATABASE_URL")
    if url:
        return url
    path = env_str("VETTING_DB_PATH", DEFAULT_DB_FILE)
    return f"sqlite:///{path}"


def mask_url(url: str) -> str:
    """Strip credentials and query string for logging."""
    without_query = url.split("?")[0]
    if "@" in without_query:
        scheme, _, rest = without_query.partition("://")
        return f"{scheme}://***@{rest.split('@', 1)[1]}"
    return without_query
