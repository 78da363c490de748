"""
Pytest fixtures for vetting tests: fake clock, fake market-data client,
snapshot factory, temporary SQLite store, service and FastAPI TestClient.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from backend_vetting.core.token_id import TokenRef, parse_token_id
from backend_vetting.market_data.models import ContractFlags, MarketSnapshot, PairInfo

MINT = "So11111111111111111111111111111111111111112"
TOKEN_KEY = f"solana:{MINT}"
EVM_TOKEN = "0x6982508145454Ce325dDbE47a25d4ec3d2311933"
NOW = 1_700_000_000.0


class FakeClock:
    def __init__(self, start: float = NOW) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_snapshot(ref: TokenRef, fetched_at: float, **overrides) -> MarketSnapshot:
    """A snapshot on which every default check passes."""
    pair = PairInfo(
        pair_address="PairAddr1111111111111111111111111111111111",
        dex="raydium",
        chain=ref.chain,
        base_address=ref.address,
        quote_symbol="SOL",
        liquidity_usd=250_000.0,
        volume_24h_usd=20_000.0,
        buys_24h=300,
        sells_24h=250,
        price_usd=0.42,
        created_at=fetched_at - 30 * 86400,
    )
    snapshot = MarketSnapshot(
        token_id=ref.key,
        chain=ref.chain,
        address=ref.address,
        fetched_at=fetched_at,
        liquidity_usd=250_000.0,
        volume_24h_usd=20_000.0,
        buys_24h=300,
        sells_24h=250,
        price_usd=0.42,
        main_pair=pair,
        pairs=(pair,),
        pair_created_at=pair.created_at,
        holder_count=5_000,
        top10_holder_pct=20.0,
        creator_pct=2.0,
        buy_tax_pct=0.0,
        sell_tax_pct=0.0,
        lp_locked_pct=95.0,
        flags=ContractFlags(
            mintable=False,
            freezable=False,
            proxy=False,
            honeypot=False,
            hidden_owner=False,
            can_reclaim_ownership=False,
            ownership_renounced=True,
            mutable_metadata=False,
            blacklist=False,
            open_source=True,
        ),
        jupiter_verified=True,
        token_name="Example",
        token_symbol="EXM",
        websites=("https://example.org",),
        socials=(("twitter", "https://x.com/example"),),
        providers=("dexscreener", "goplus", "rugcheck", "jupiter"),
    )
    return replace(snapshot, **overrides) if overrides else snapshot


class FakeMarketDataClient:
    """Stands in for MarketDataClient; records calls and can be told to fail."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[str] = []
        self.error: Exception | None = None
        self.overrides: dict = {}
        self.closed = False

    def fetch(self, token_id):
        ref = token_id if isinstance(token_id, TokenRef) else parse_token_id(token_id)
        self.calls.append(ref.key)
        if self.error is not None:
            raise self.error
        return build_snapshot(ref, self.clock(), **self.overrides)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_ref():
    return parse_token_id(MINT)


@pytest.fixture
def make_snapshot(token_ref, clock):
    def _make(**overrides) -> MarketSnapshot:
        return build_snapshot(token_ref, clock(), **overrides)

    return _make


@pytest.fixture
def fake_client(clock):
    return FakeMarketDataClient(clock)


@pytest.fixture
def sql_store(tmp_path):
    """SqlVettingStore on a temporary SQLite file."""
    from backend_vetting.database.store import SqlVettingStore

    store = SqlVettingStore(f"sqlite:///{tmp_path / 'vetting.db'}", history_limit=5)
    yield store
    store.close()


@pytest.fixture
def service(fake_client, sql_store, clock):
    from backend_vetting.vetting.service import VettingService

    return VettingService(fake_client, sql_store, ttl_sec=600.0, clock=clock)


@pytest.fixture
def vetting_env(tmp_path, monkeypatch):
    """Clean vetting environment pointing at a temporary SQLite DB; settings cache cleared."""
    from backend_vetting.config import get_settings

    for name in (
        "DATABASE_URL",
        "VETTING_DB_URL",
        "VETTING_API_KEY",
        "VETTING_TTL_SEC",
        "VETTING_CHECK_TIMEOUT_SEC",
        "VETTING_CONFIDENCE_THRESHOLD",
        "VETTING_HISTORY_LIMIT",
        "VETTING_DEFAULT_CHAIN",
        "PERIODIC_INTERVAL_SEC",
        "PROVIDER_TIMEOUT_SEC",
        "JUPITER_ENABLED",
        "VETTING_RISK_LOW_MIN",
        "VETTING_RISK_MEDIUM_MIN",
        "VETTING_RISK_HIGH_MIN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VETTING_DB_PATH", str(tmp_path / "env_vetting.db"))
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def api_client(service):
    """FastAPI TestClient over the fixture service, no API key."""
    from fastapi.testclient import TestClient

    from backend_vetting.api_server.server import create_app
    from backend_vetting.config import VettingSettings

    app = create_app(service, settings=VettingSettings(database_url="memory://"))
    with TestClient(app) as client:
        yield client
