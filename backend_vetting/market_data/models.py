"""
Canonical market data models.

Provider responses (DexScreener, GoPlus, RugCheck, Jupiter) are normalized into these
frozen dataclasses so checks never see provider-specific structure. A field a
provider could not supply is None (missing), never a fabricated zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PairInfo:
    """One trading pair / pool for the token, as reported by a DEX aggregator."""

    pair_address: str
    dex: str
    chain: str
    base_address: str
    quote_symbol: str | None
    liquidity_usd: float
    volume_24h_usd: float
    buys_24h: int = 0
    sells_24h: int = 0
    price_usd: float | None = None
    created_at: float | None = None
    """Unix seconds the pair was created; None if the provider omits it."""


@dataclass(frozen=True)
class ContractFlags:
    """
    Contract / mint capabilities relevant to risk.

    Each flag is True (capability present), False (absent) or None (unknown).
    """

    mintable: bool | None = None
    freezable: bool | None = None
    """Pausable (EVM) or freeze authority active (Solana)."""
    proxy: bool | None = None
    honeypot: bool | None = None
    hidden_owner: bool | None = None
    can_reclaim_ownership: bool | None = None
    ownership_renounced: bool | None = None
    mutable_metadata: bool | None = None
    blacklist: bool | None = None
    open_source: bool | None = None
    """Contract source code is verified (EVM). None on chains without source verification."""


@dataclass(frozen=True)
class ProviderData:
    """
    Partial snapshot contributed by one provider before merging.

    Only the fields the provider knows are set; the client merges several of these.
    """

    provider: str
    pairs: tuple[PairInfo, ...] = ()
    flags: ContractFlags = ContractFlags()
    holder_count: int | None = None
    top10_holder_pct: float | None = None
    creator_pct: float | None = None
    buy_tax_pct: float | None = None
    sell_tax_pct: float | None = None
    lp_locked_pct: float | None = None
    jupiter_verified: bool | None = None
    token_name: str | None = None
    token_symbol: str | None = None
    websites: tuple[str, ...] = ()
    socials: tuple[tuple[str, str], ...] = ()
    """(platform, url) pairs, e.g. ("twitter", "https://x.com/...")."""


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Immutable market-data input to exactly one check run.

    Built by MarketDataClient.fetch(); shared read-only by every check of the run.
    """

    token_id: str
    chain: str
    address: str
    fetched_at: float
    liquidity_usd: float | None = None
    volume_24h_usd: float | None = None
    buys_24h: int | None = None
    sells_24h: int | None = None
    price_usd: float | None = None
    main_pair: PairInfo | None = None
    pairs: tuple[PairInfo, ...] = ()
    pair_created_at: float | None = None
    """Creation time of the oldest pair, Unix seconds."""
    holder_count: int | None = None
    top10_holder_pct: float | None = None
    creator_pct: float | None = None
    buy_tax_pct: float | None = None
    sell_tax_pct: float | None = None
    lp_locked_pct: float | None = None
    flags: ContractFlags = ContractFlags()
    jupiter_verified: bool | None = None
    """On Jupiter's verified token list (Solana only)."""
    token_name: str | None = None
    token_symbol: str | None = None
    websites: tuple[str, ...] = ()
    socials: tuple[tuple[str, str], ...] = ()
    providers: tuple[str, ...] = ()
    provider_errors: tuple[tuple[str, str], ...] = field(default=())
    """(provider, error kind) for supplementary providers that failed."""

    @property
    def pair_addresses(self) -> tuple[str, ...]:
        return tuple(p.pair_address for p in self.pairs)

    def pair_age_days(self, now: float) -> float | None:
        if self.pair_created_at is None:
            return None
        return max(0.0, (now - self.pair_created_at) / 86400.0)
