"""
Tests for market data providers, payload normalization and snapshot merging.

Provider HTTP is served by httpx.MockTransport with recorded-shape payloads.
"""

from __future__ import annotations

import httpx
import pytest

from backend_vetting.config.settings import ProviderConfig
from backend_vetting.core.exceptions import DataUnavailable, ProviderError, Timeout
from backend_vetting.core.token_id import parse_token_id
from backend_vetting.market_data.client import MarketDataClient
from backend_vetting.market_data.normalizer import (
    _shape_guard,
    normalize_dexscreener,
    normalize_goplus,
    normalize_rugcheck,
)
from backend_vetting.market_data.providers import (
    DexScreenerProvider,
    GoPlusProvider,
    JupiterProvider,
    RugCheckProvider,
    default_providers,
)
from backend_vetting.vetting.service import VettingService

MINT = "So11111111111111111111111111111111111111112"
CREATED_MS = 1_690_000_000_000
FETCHED_AT = 1_700_000_000.0


def _pair(address: str, liquidity: float, volume: float, base: str = MINT, chain: str = "solana") -> dict:
    return {
        "chainId": chain,
        "dexId": "raydium",
        "pairAddress": address,
        "baseToken": {"address": base, "name": "Wrapped SOL", "symbol": "SOL"},
        "quoteToken": {"address": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "symbol": "USDC"},
        "priceUsd": "152.31",
        "txns": {"h24": {"buys": 120, "sells": 80}},
        "volume": {"h24": volume},
        "liquidity": {"usd": liquidity},
        "pairCreatedAt": CREATED_MS,
        "info": {
            "websites": [{"label": "Website", "url": "https://solana.com"}],
            "socials": [{"type": "twitter", "url": "https://x.com/solana"}],
        },
    }


DEX_PAYLOAD = {
    "schemaVersion": "1.0.0",
    "pairs": [
        _pair("PairB", 50_000.0, 9_000.0),
        _pair("PairA", 50_000.0, 1_000.0),
        _pair("PairC", 900_000.0, 80_000.0, base="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"),
    ],
}

GOPLUS_PAYLOAD = {
    "code": 1,
    "message": "OK",
    "result": {
        MINT: {
            "mintable": {"status": "0"},
            "freezable": {"status": "1"},
            "metadata_mutable": {"status": "0"},
            "holder_count": "1500",
            "holders": [{"percent": "0.12"}, {"percent": "0.08"}],
        }
    },
}

RUGCHECK_PAYLOAD = {
    "mintAuthority": None,
    "freezeAuthority": None,
    "tokenMeta": {"name": "Wrapped SOL", "symbol": "SOL", "mutable": False},
    "topHolders": [{"pct": 11.0}, {"pct": 9.5}],
    "markets": [{"lp": {"lpLockedPct": 100.0}}, {"lp": {"lpLockedPct": 50.0}}],
    "totalHolders": 2000,
}

JUPITER_PAYLOAD = [
    {"id": MINT, "name": "Wrapped SOL", "symbol": "SOL", "tags": ["verified"]},
    {"id": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v", "symbol": "USDC"},
]


def _router(routes: dict[str, object]):
    """MockTransport handler: first route whose key is in the URL path answers."""

    def handler(request: httpx.Request) -> httpx.Response:
        for fragment, answer in routes.items():
            if fragment in request.url.path:
                if isinstance(answer, Exception):
                    raise answer
                if isinstance(answer, httpx.Response):
                    return answer
                return httpx.Response(200, json=answer)
        return httpx.Response(404, json={"error": "not found"})

    return handler


def _client(routes: dict[str, object], config: ProviderConfig | None = None) -> MarketDataClient:
    http = httpx.Client(transport=httpx.MockTransport(_router(routes)))
    return MarketDataClient(default_providers(config or ProviderConfig(), http), clock=lambda: FETCHED_AT)


def test_fetch_merges_all_providers():
    client = _client(
        {
            "/latest/dex/tokens/": DEX_PAYLOAD,
            "/solana/token_security": GOPLUS_PAYLOAD,
            "/report": RUGCHECK_PAYLOAD,
            "/tokens/v2/tag": JUPITER_PAYLOAD,
        }
    )
    snapshot = client.fetch(MINT)

    assert snapshot.token_id == f"solana:{MINT}"
    assert snapshot.fetched_at == FETCHED_AT
    # only pairs where the token is the base; PairC is excluded
    assert snapshot.pair_addresses == ("PairA", "PairB")
    # equal liquidity: main pair chosen by pair address
    assert snapshot.main_pair.pair_address == "PairA"
    assert snapshot.liquidity_usd == 100_000.0
    assert snapshot.volume_24h_usd == 10_000.0
    assert snapshot.buys_24h == 240
    assert snapshot.pair_created_at == CREATED_MS / 1000.0
    # GoPlus is earlier in provider order than RugCheck
    assert snapshot.holder_count == 1500
    assert snapshot.top10_holder_pct == 20.0
    assert snapshot.lp_locked_pct == 75.0
    # risk flags OR-ed: GoPlus says freezable, RugCheck says not
    assert snapshot.flags.freezable is True
    assert snapshot.flags.mintable is False
    assert snapshot.websites == ("https://solana.com",)
    assert snapshot.socials == (("twitter", "https://x.com/solana"),)
    assert snapshot.jupiter_verified is True
    assert snapshot.token_name == "Wrapped SOL"
    assert snapshot.providers == ("dexscreener", "goplus", "rugcheck", "jupiter")
    assert snapshot.provider_errors == ()


def test_supplementary_failure_is_recorded():
    client = _client(
        {
            "/latest/dex/tokens/": DEX_PAYLOAD,
            "/solana/token_security": httpx.Response(500, text="upstream down"),
            "/report": httpx.ReadTimeout("slow"),
            "/tokens/v2/tag": {"unexpected": "object"},
        }
    )
    snapshot = client.fetch(MINT)

    assert snapshot.providers == ("dexscreener",)
    assert snapshot.provider_errors == (
        ("goplus", "ProviderError"),
        ("jupiter", "ProviderError"),
        ("rugcheck", "Timeout"),
    )
    assert snapshot.jupiter_verified is None
    assert snapshot.holder_count is None
    assert snapshot.flags.honeypot is None


def test_required_provider_timeout_fails_fetch():
    client = _client({"/latest/dex/tokens/": httpx.ConnectTimeout("no route")})
    with pytest.raises(Timeout) as exc:
        client.fetch(MINT)
    assert exc.value.kind == "Timeout"
    assert exc.value.provider == "dexscreener"


def test_unknown_token_is_data_unavailable():
    client = _client({"/latest/dex/tokens/": {"schemaVersion": "1.0.0", "pairs": None}})
    with pytest.raises(DataUnavailable):
        client.fetch(MINT)


def test_provider_404_is_data_unavailable():
    client = _client({})
    with pytest.raises(DataUnavailable):
        client.fetch(MINT)


def test_schema_drift_is_provider_error():
    client = _client({"/latest/dex/tokens/": {"pairs": {"unexpected": "object"}}})
    with pytest.raises(ProviderError):
        client.fetch(MINT)


def test_invalid_json_is_provider_error():
    client = _client({"/latest/dex/tokens/": httpx.Response(200, text="<html>oops</html>")})
    with pytest.raises(ProviderError, match="invalid JSON"):
        client.fetch(MINT)


def test_evm_token_skips_rugcheck_and_uses_chain_id():
    seen: list[str] = []
    address = "0x6982508145454ce325ddbe47a25d4ec3d2311933"

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        if "/latest/dex/tokens/" in request.url.path:
            return httpx.Response(200, json={"pairs": [_pair("0xpair", 40_000.0, 5_000.0, base=address, chain="ethereum")]})
        return httpx.Response(200, json={"code": 1, "result": {address: {"is_honeypot": "0", "buy_tax": "0.05", "sell_tax": "0.1", "owner_address": "0x0000000000000000000000000000000000000000"}}})

    http = httpx.Client(transport=httpx.MockTransport(handler))
    client = MarketDataClient(default_providers(ProviderConfig(), http), clock=lambda: FETCHED_AT)
    snapshot = client.fetch(f"eth:{address.upper().replace('0X', '0x')}")

    assert snapshot.chain == "ethereum"
    assert any(p.endswith("/token_security/1") for p in seen)
    assert not any("rugcheck" in p or p.endswith("/report") for p in seen)
    assert snapshot.flags.honeypot is False
    assert snapshot.flags.ownership_renounced is True
    assert snapshot.buy_tax_pct == pytest.approx(5.0)
    assert snapshot.sell_tax_pct == pytest.approx(10.0)


def test_disabled_supplementary_providers_are_not_called():
    config = ProviderConfig(enable_goplus=False, enable_rugcheck=False, enable_jupiter=False)
    ref = parse_token_id(MINT)
    assert GoPlusProvider(config).supports(ref) is False
    assert RugCheckProvider(config).supports(ref) is False
    assert JupiterProvider(config).supports(ref) is False
    assert DexScreenerProvider(config).supports(ref) is True


def test_client_requires_a_required_provider():
    with pytest.raises(ValueError):
        MarketDataClient([GoPlusProvider(ProviderConfig())])


def test_normalize_goplus_error_code():
    ref = parse_token_id(MINT)
    with pytest.raises(ProviderError):
        normalize_goplus({"code": 2, "message": "bad chain"}, ref)
    with pytest.raises(DataUnavailable):
        normalize_goplus({"code": 1, "result": {}}, ref)


def test_normalize_rugcheck_authorities():
    ref = parse_token_id(MINT)
    data = normalize_rugcheck({"mintAuthority": "SomeAuthority", "freezeAuthority": None}, ref)
    assert data.flags.mintable is True
    assert data.flags.freezable is False
    assert data.lp_locked_pct is None


def test_goplus_entry_of_wrong_shape_is_recorded_not_raised():
    client = _client(
        {
            "/latest/dex/tokens/": DEX_PAYLOAD,
            "/solana/token_security": {"code": 1, "result": {MINT: "unexpected-string"}},
            "/report": RUGCHECK_PAYLOAD,
            "/tokens/v2/tag": JUPITER_PAYLOAD,
        }
    )
    snapshot = client.fetch(MINT)

    assert ("goplus", "ProviderError") in snapshot.provider_errors
    assert snapshot.holder_count == 2000


def test_rugcheck_token_meta_of_wrong_shape_is_recorded_not_raised():
    client = _client(
        {
            "/latest/dex/tokens/": DEX_PAYLOAD,
            "/solana/token_security": GOPLUS_PAYLOAD,
            "/report": {"mintAuthority": None, "tokenMeta": "oops"},
            "/tokens/v2/tag": JUPITER_PAYLOAD,
        }
    )
    snapshot = client.fetch(MINT)

    assert snapshot.provider_errors == (("rugcheck", "ProviderError"),)
    assert snapshot.holder_count == 1500


def test_rugcheck_market_lp_of_wrong_shape_counts_as_unlocked():
    ref = parse_token_id(MINT)
    data = normalize_rugcheck({"markets": [{"lp": "n/a"}, {"lp": {"lpLockedPct": 80.0}}]}, ref)
    assert data.lp_locked_pct == 40.0


@pytest.mark.parametrize(
    "payload",
    [
        {"code": 1, "result": {MINT: 42}},
        {"code": 1, "result": {MINT: ["a", "list"]}},
    ],
)
def test_goplus_shape_errors_are_provider_errors(payload):
    ref = parse_token_id(MINT)
    with pytest.raises(ProviderError) as exc:
        normalize_goplus(payload, ref)
    assert exc.value.provider == "goplus"


def test_dexscreener_takes_token_name_from_first_parseable_pair():
    ref = parse_token_id(MINT)
    broken = dict(_pair("PairX", 10.0, 1.0), baseToken="not-an-object")
    data = normalize_dexscreener({"pairs": [broken, _pair("PairA", 50_000.0, 1_000.0)]}, ref)

    assert [p.pair_address for p in data.pairs] == ["PairA"]
    assert data.token_name == "Wrapped SOL"
    assert data.token_symbol == "SOL"


def test_dexscreener_first_pair_of_wrong_shape_still_fetches():
    broken = dict(_pair("PairX", 10.0, 1.0), baseToken="not-an-object")
    client = _client(
        {
            "/latest/dex/tokens/": {"pairs": [broken, _pair("PairA", 50_000.0, 1_000.0)]},
            "/solana/token_security": GOPLUS_PAYLOAD,
            "/report": RUGCHECK_PAYLOAD,
            "/tokens/v2/tag": JUPITER_PAYLOAD,
        }
    )
    snapshot = client.fetch(MINT)
    assert snapshot.pair_addresses == ("PairA",)


def test_dexscreener_link_lists_of_wrong_shape_are_ignored():
    ref = parse_token_id(MINT)
    pair = dict(_pair("PairA", 50_000.0, 1_000.0), info={"websites": 7, "socials": "x"})
    data = normalize_dexscreener({"pairs": [pair]}, ref)
    assert data.websites == ()
    assert data.socials == ()


def test_jupiter_verified_list_is_cached():
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.params.get("query"))
        return httpx.Response(200, json=JUPITER_PAYLOAD)

    now = [0.0]
    provider = JupiterProvider(
        ProviderConfig(jupiter_cache_ttl_sec=300.0),
        httpx.Client(transport=httpx.MockTransport(handler)),
        clock=lambda: now[0],
    )
    ref = parse_token_id(MINT)
    other = parse_token_id("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v")

    assert provider.fetch(ref).jupiter_verified is True
    assert provider.fetch(other).jupiter_verified is True
    assert calls == ["verified"]

    now[0] = 301.0
    assert provider.fetch(parse_token_id("Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB")).jupiter_verified is False
    assert calls == ["verified", "verified"]


def test_shape_guard_maps_shape_errors_to_provider_error():
    @_shape_guard("example")
    def normalize(payload, ref):
        return payload.get("x")

    with pytest.raises(ProviderError) as exc:
        normalize("text", parse_token_id(MINT))
    assert exc.value.provider == "example"
    assert isinstance(exc.value.__cause__, AttributeError)


def test_service_returns_envelope_when_supplementary_payloads_are_malformed(sql_store):
    client = _client(
        {
            "/latest/dex/tokens/": DEX_PAYLOAD,
            "/solana/token_security": {"code": 1, "result": {MINT: "unexpected-string"}},
            "/report": {"tokenMeta": "oops"},
            "/tokens/v2/tag": JUPITER_PAYLOAD,
        }
    )
    service = VettingService(client, sql_store, clock=lambda: FETCHED_AT)

    envelope = service.run_automated_checks(MINT)

    assert envelope.success is True
    assert envelope.verdict.provider_errors == (("goplus", "ProviderError"), ("rugcheck", "ProviderError"))
    assert envelope.verdict.confidence < 1.0
