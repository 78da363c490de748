"""
Provider payload normalizer: raw provider JSON to ProviderData, then merge.

- normalize_dexscreener / normalize_goplus / normalize_rugcheck / normalize_jupiter convert one
  provider's response into a ProviderData with canonical field names and units
  (USD floats, percentages 0–100, Unix seconds).
- merge_snapshot folds several ProviderData into one MarketSnapshot with a
  deterministic policy: main pair = highest liquidity (ties: pair address
  ascending), liquidity/volume summed over the token's own pairs, scalar fields
  first-non-missing in provider order, risk flags OR-ed.

Schema drift: malformed individual entries are skipped; a payload or section whose
shape is wrong raises ProviderError, never a bare AttributeError or TypeError.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Iterable

from backend_vetting.core.exceptions import DataUnavailable, ProviderError
from backend_vetting.core.token_id import TokenRef
from backend_vetting.market_data.models import (
    ContractFlags,
    MarketSnapshot,
    PairInfo,
    ProviderData,
)
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)

DEXSCREENER = "dexscreener"
GOPLUS = "goplus"
RUGCHECK = "rugcheck"
JUPITER = "jupiter"

PROVIDER_ORDER = (DEXSCREENER, GOPLUS, RUGCHECK, JUPITER)

_ZERO_ADDRESSES = {
    "",
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dead",
}


def _safe_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _safe_int(value: Any) -> int | None:
    f = _safe_float(value)
    return int(f) if f is not None else None


def _flag(value: Any) -> bool | None:
    """GoPlus style flag: "1"/"0", 1/0, bool, or {"status": "1"} (Solana endpoint)."""
    if isinstance(value, dict):
        value = value.get("status")
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    s = str(value).strip()
    if s == "1":
        return True
    if s == "0":
        return False
    return None


def _same_address(a: str, b: str, chain: str) -> bool:
    if chain == "solana":
        return a == b
    return a.lower() == b.lower()


def _obj(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _shape_guard(provider: str) -> Callable:
    """Map shape errors raised while walking a payload to ProviderError for provider."""

    def decorate(fn: Callable[[Any, TokenRef], ProviderData]) -> Callable[[Any, TokenRef], ProviderData]:
        @functools.wraps(fn)
        def wrapper(payload: Any, ref: TokenRef) -> ProviderData:
            try:
                return fn(payload, ref)
            except (AttributeError, TypeError, KeyError) as e:
                logger.debug("provider_payload_malformed", provider=provider, token_id=ref.key, error=repr(e))
                raise ProviderError(
                    f"{provider} payload has an unexpected shape",
                    provider=provider,
                    token_id=ref.key,
                ) from e

        return wrapper

    return decorate


# -----------------------------------------------------------------------------
# DexScreener: GET /latest/dex/tokens/{address}
# -----------------------------------------------------------------------------


def _parse_pair(raw: dict[str, Any]) -> PairInfo:
    base = raw.get("baseToken") or {}
    quote = raw.get("quoteToken") or {}
    txns = (raw.get("txns") or {}).get("h24") or {}
    created_ms = _safe_float(raw.get("pairCreatedAt"))
    return PairInfo(
        pair_address=str(raw["pairAddress"]),
        dex=str(raw.get("dexId") or "unknown"),
        chain=str(raw.get("chainId") or "unknown"),
        base_address=str(base.get("address") or ""),
        quote_symbol=quote.get("symbol"),
        liquidity_usd=_safe_float((raw.get("liquidity") or {}).get("usd")) or 0.0,
        volume_24h_usd=_safe_float((raw.get("volume") or {}).get("h24")) or 0.0,
        buys_24h=_safe_int(txns.get("buys")) or 0,
        sells_24h=_safe_int(txns.get("sells")) or 0,
        price_usd=_safe_float(raw.get("priceUsd")),
        created_at=created_ms / 1000.0 if created_ms else None,
    )


@_shape_guard(DEXSCREENER)
def normalize_dexscreener(payload: Any, ref: TokenRef) -> ProviderData:
    """
    Normalize a DexScreener token-pairs response.

    Only pairs on the token's chain where it is the base token are kept; if none
    match, all parseable pairs on the chain are used. No pairs at all means the
    token is unknown upstream (DataUnavailable).
    """
    if not isinstance(payload, dict):
        raise ProviderError("DexScreener returned a non-object payload", provider=DEXSCREENER, token_id=ref.key)
    raw_pairs = payload.get("pairs")
    if raw_pairs is None or raw_pairs == []:
        raise DataUnavailable(f"No trading pairs found for {ref.key}", token_id=ref.key)
    if not isinstance(raw_pairs, list):
        raise ProviderError("DexScreener 'pairs' is not a list", provider=DEXSCREENER, token_id=ref.key)

    parsed: list[PairInfo] = []
    first_base: dict[str, Any] | None = None
    skipped = 0
    for raw in raw_pairs:
        if not isinstance(raw, dict):
            skipped += 1
            continue
        try:
            parsed.append(_parse_pair(raw))
        except (KeyError, TypeError, AttributeError):
            skipped += 1
            continue
        if first_base is None:
            first_base = raw.get("baseToken")
    if skipped:
        logger.debug("dexscreener_pairs_skipped", token_id=ref.key, skipped=skipped)
    if not parsed:
        raise ProviderError("DexScreener pairs could not be parsed", provider=DEXSCREENER, token_id=ref.key)

    on_chain = [p for p in parsed if p.chain == ref.chain] or parsed
    as_base = [p for p in on_chain if _same_address(p.base_address, ref.address, ref.chain)]
    pairs = as_base or on_chain

    websites: list[str] = []
    socials: list[tuple[str, str]] = []
    for raw in raw_pairs:
        info = raw.get("info") if isinstance(raw, dict) else None
        if not isinstance(info, dict):
            continue
        for w in _list(info.get("websites")):
            url = w.get("url") if isinstance(w, dict) else None
            if url and url not in websites:
                websites.append(str(url))
        for s in _list(info.get("socials")):
            if not isinstance(s, dict):
                continue
            platform = s.get("type") or s.get("platform")
            url = s.get("url") or s.get("handle")
            if platform and url and (platform, url) not in socials:
                socials.append((str(platform), str(url)))

    base = _obj(first_base)
    return ProviderData(
        provider=DEXSCREENER,
        pairs=tuple(pairs),
        token_name=base.get("name"),
        token_symbol=base.get("symbol"),
        websites=tuple(websites),
        socials=tuple(socials),
    )


# -----------------------------------------------------------------------------
# GoPlus: GET /token_security/{chain_id}?contract_addresses=... (and /solana/token_security)
# -----------------------------------------------------------------------------


@_shape_guard(GOPLUS)
def normalize_goplus(payload: Any, ref: TokenRef) -> ProviderData:
    """Normalize a GoPlus token security response (EVM or Solana endpoint)."""
    if not isinstance(payload, dict):
        raise ProviderError("GoPlus returned a non-object payload", provider=GOPLUS, token_id=ref.key)
    if payload.get("code") not in (1, "1"):
        raise ProviderError(
            f"GoPlus error: {payload.get('message') or payload.get('code')}",
            provider=GOPLUS,
            token_id=ref.key,
        )
    result = payload.get("result") or {}
    if not isinstance(result, dict):
        raise ProviderError("GoPlus 'result' is not an object", provider=GOPLUS, token_id=ref.key)
    data = result.get(ref.address) or result.get(ref.address.lower())
    if not data:
        raise DataUnavailable(f"GoPlus has no data for {ref.key}", token_id=ref.key)
    if not isinstance(data, dict):
        raise ProviderError(f"GoPlus entry for {ref.address} is not an object", provider=GOPLUS, token_id=ref.key)

    holders = data.get("holders") or []
    top10: float | None = None
    if isinstance(holders, list) and holders:
        pcts = [_safe_float(h.get("percent")) for h in holders[:10] if isinstance(h, dict)]
        top10 = round(sum(p for p in pcts if p is not None) * 100.0, 4)

    lp_locked: float | None = None
    lp_holders = data.get("lp_holders")
    if isinstance(lp_holders, list) and lp_holders:
        locked = [
            _safe_float(h.get("percent")) or 0.0
            for h in lp_holders
            if isinstance(h, dict) and _flag(h.get("is_locked"))
        ]
        lp_locked = round(min(100.0, sum(locked) * 100.0), 4)

    owner = data.get("owner_address")
    renounced: bool | None = None
    if owner is not None:
        renounced = str(owner).lower() in _ZERO_ADDRESSES

    creator_pct = _safe_float(data.get("creator_percent"))
    buy_tax = _safe_float(data.get("buy_tax"))
    sell_tax = _safe_float(data.get("sell_tax"))

    flags = ContractFlags(
        mintable=_flag(data.get("is_mintable", data.get("mintable"))),
        freezable=_flag(data.get("transfer_pausable", data.get("freezable"))),
        proxy=_flag(data.get("is_proxy")),
        honeypot=_flag(data.get("is_honeypot")),
        hidden_owner=_flag(data.get("hidden_owner")),
        can_reclaim_ownership=_flag(data.get("can_take_back_ownership")),
        ownership_renounced=renounced,
        mutable_metadata=_flag(data.get("metadata_mutable")),
        blacklist=_flag(data.get("is_blacklisted")),
        open_source=_flag(data.get("is_open_source")),
    )
    return ProviderData(
        provider=GOPLUS,
        flags=flags,
        holder_count=_safe_int(data.get("holder_count")),
        top10_holder_pct=top10,
        creator_pct=creator_pct * 100.0 if creator_pct is not None else None,
        buy_tax_pct=buy_tax * 100.0 if buy_tax is not None else None,
        sell_tax_pct=sell_tax * 100.0 if sell_tax is not None else None,
        lp_locked_pct=lp_locked,
        token_name=data.get("token_name"),
        token_symbol=data.get("token_symbol"),
    )


# -----------------------------------------------------------------------------
# RugCheck (Solana only): GET /tokens/{mint}/report
# -----------------------------------------------------------------------------


@_shape_guard(RUGCHECK)
def normalize_rugcheck(payload: Any, ref: TokenRef) -> ProviderData:
    """Normalize a RugCheck report. Authorities set to null mean revoked."""
    if not isinstance(payload, dict):
        raise ProviderError("RugCheck returned a non-object payload", provider=RUGCHECK, token_id=ref.key)

    mintable = (payload["mintAuthority"] is not None) if "mintAuthority" in payload else None
    freezable = (payload["freezeAuthority"] is not None) if "freezeAuthority" in payload else None
    meta = payload.get("tokenMeta") or {}
    if not isinstance(meta, dict):
        raise ProviderError("RugCheck 'tokenMeta' is not an object", provider=RUGCHECK, token_id=ref.key)
    mutable = meta.get("mutable") if isinstance(meta.get("mutable"), bool) else None

    top_holders = payload.get("topHolders")
    top10: float | None = None
    if isinstance(top_holders, list) and top_holders:
        pcts = [_safe_float(h.get("pct")) for h in top_holders[:10] if isinstance(h, dict)]
        top10 = round(sum(p for p in pcts if p is not None), 4)

    markets = payload.get("markets")
    lp_locked: float | None = None
    if isinstance(markets, list) and markets:
        locked = [
            _safe_float(_obj(m.get("lp")).get("lpLockedPct")) or 0.0
            for m in markets
            if isinstance(m, dict)
        ]
        lp_locked = round(sum(locked) / max(len(locked), 1), 4)

    return ProviderData(
        provider=RUGCHECK,
        flags=ContractFlags(mintable=mintable, freezable=freezable, mutable_metadata=mutable),
        holder_count=_safe_int(payload.get("totalHolders")),
        top10_holder_pct=top10,
        lp_locked_pct=lp_locked,
        token_name=meta.get("name"),
        token_symbol=meta.get("symbol"),
    )


# -----------------------------------------------------------------------------
# Jupiter (Solana only): GET /tokens/v2/tag?query=verified
# -----------------------------------------------------------------------------


def parse_jupiter_verified(payload: Any, ref: TokenRef) -> frozenset[str]:
    """Mint addresses on Jupiter's verified list. Entries carry ``id`` (v2) or ``address`` (legacy list)."""
    if not isinstance(payload, list):
        raise ProviderError("Jupiter verified list is not a list", provider=JUPITER, token_id=ref.key)
    mints = set()
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        mint = entry.get("id") or entry.get("address")
        if isinstance(mint, str) and mint:
            mints.add(mint)
    return frozenset(mints)


def normalize_jupiter(verified: frozenset[str], ref: TokenRef) -> ProviderData:
    return ProviderData(provider=JUPITER, jupiter_verified=ref.address in verified)


# -----------------------------------------------------------------------------
# Merge
# -----------------------------------------------------------------------------


def _first(values: Iterable[Any]) -> Any:
    for v in values:
        if v is not None:
            return v
    return None


def _any_flag(values: Iterable[bool | None]) -> bool | None:
    """True if any provider says True, False if at least one says False and none True, else None."""
    seen = [v for v in values if v is not None]
    if not seen:
        return None
    return any(seen)


def _merge_flags(parts: list[ProviderData]) -> ContractFlags:
    def risk(name: str) -> bool | None:
        return _any_flag(getattr(p.flags, name) for p in parts)

    # renounced is a safety property: every provider that knows must agree
    renounced_votes = [p.flags.ownership_renounced for p in parts if p.flags.ownership_renounced is not None]
    return ContractFlags(
        mintable=risk("mintable"),
        freezable=risk("freezable"),
        proxy=risk("proxy"),
        honeypot=risk("honeypot"),
        hidden_owner=risk("hidden_owner"),
        can_reclaim_ownership=risk("can_reclaim_ownership"),
        ownership_renounced=all(renounced_votes) if renounced_votes else None,
        mutable_metadata=risk("mutable_metadata"),
        blacklist=risk("blacklist"),
        open_source=_first(p.flags.open_source for p in parts),
    )


def merge_snapshot(
    ref: TokenRef,
    parts: list[ProviderData],
    fetched_at: float,
    provider_errors: list[tuple[str, str]] | None = None,
) -> MarketSnapshot:
    """Deterministically merge provider parts into one MarketSnapshot."""
    rank = {name: i for i, name in enumerate(PROVIDER_ORDER)}
    ordered = sorted(parts, key=lambda p: (rank.get(p.provider, len(rank)), p.provider))

    pairs: list[PairInfo] = []
    for p in ordered:
        pairs.extend(p.pairs)
    pairs.sort(key=lambda x: (-x.liquidity_usd, x.pair_address))
    main_pair = pairs[0] if pairs else None

    created = [p.created_at for p in pairs if p.created_at is not None]
    websites: list[str] = []
    socials: list[tuple[str, str]] = []
    for p in ordered:
        websites.extend(w for w in p.websites if w not in websites)
        socials.extend(s for s in p.socials if s not in socials)

    return MarketSnapshot(
        token_id=ref.key,
        chain=ref.chain,
        address=ref.address,
        fetched_at=fetched_at,
        liquidity_usd=round(sum(p.liquidity_usd for p in pairs), 2) if pairs else None,
        volume_24h_usd=round(sum(p.volume_24h_usd for p in pairs), 2) if pairs else None,
        buys_24h=sum(p.buys_24h for p in pairs) if pairs else None,
        sells_24h=sum(p.sells_24h for p in pairs) if pairs else None,
        price_usd=main_pair.price_usd if main_pair else None,
        main_pair=main_pair,
        pairs=tuple(pairs),
        pair_created_at=min(created) if created else None,
        holder_count=_first(p.holder_count for p in ordered),
        top10_holder_pct=_first(p.top10_holder_pct for p in ordered),
        creator_pct=_first(p.creator_pct for p in ordered),
        buy_tax_pct=_first(p.buy_tax_pct for p in ordered),
        sell_tax_pct=_first(p.sell_tax_pct for p in ordered),
        lp_locked_pct=_first(p.lp_locked_pct for p in ordered),
        jupiter_verified=_first(p.jupiter_verified for p in ordered),
        flags=_merge_flags(ordered),
        token_name=_first(p.token_name for p in ordered),
        token_symbol=_first(p.token_symbol for p in ordered),
        websites=tuple(websites),
        socials=tuple(socials),
        providers=tuple(p.provider for p in ordered),
        provider_errors=tuple(sorted(provider_errors or [])),
    )
