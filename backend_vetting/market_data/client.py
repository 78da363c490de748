"""
MarketDataClient: one snapshot per fetch, merged from several providers.

Providers are queried concurrently (they are I/O bound and each carries its
own HTTP timeout). A required provider's failure fails the fetch with its
typed error; a supplementary provider's failure is recorded on the snapshot
and its fields stay missing. Merge order is fixed, so identical provider
responses always give an identical snapshot.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from backend_vetting.config.settings import ProviderConfig
from backend_vetting.core.exceptions import VettingError
from backend_vetting.core.token_id import TokenRef, parse_token_id
from backend_vetting.market_data.models import MarketSnapshot, ProviderData
from backend_vetting.market_data.normalizer import merge_snapshot
from backend_vetting.market_data.providers import MarketDataProvider, default_providers
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)


class MarketDataClient:
    """Fetch normalized market/liquidity/ownership data for a token."""

    def __init__(
        self,
        providers: list[MarketDataProvider],
        *,
        default_chain: str = "solana",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not any(p.required for p in providers):
            raise ValueError("at least one required provider must be configured")
        self._providers = list(providers)
        self._default_chain = default_chain
        self._clock = clock

    @classmethod
    def from_config(cls, config: ProviderConfig, *, default_chain: str = "solana") -> "MarketDataClient":
        return cls(default_providers(config), default_chain=default_chain)

    @property
    def providers(self) -> list[MarketDataProvider]:
        return list(self._providers)

    def fetch(self, token_id: str | TokenRef) -> MarketSnapshot:
        """
        Return a MarketSnapshot for token_id.

        Raises DataUnavailable, ProviderError or Timeout (from the required provider),
        or InvalidTokenId for a malformed identifier.
        """
        ref = token_id if isinstance(token_id, TokenRef) else parse_token_id(token_id, self._default_chain)
        active = [p for p in self._providers if p.supports(ref)]
        fetched_at = self._clock()

        with ThreadPoolExecutor(max_workers=max(1, len(active)), thread_name_prefix="market-data") as pool:
            outcomes = list(pool.map(lambda p: self._fetch_one(p, ref), active))

        parts: list[ProviderData] = []
        errors: list[tuple[str, str]] = []
        for provider, outcome in zip(active, outcomes):
            if isinstance(outcome, VettingError):
                if provider.required:
                    logger.warning(
                        "market_data_required_provider_failed",
                        token_id=ref.key,
                        provider=provider.name,
                        kind=outcome.kind,
                        error=outcome.message,
                    )
                    raise outcome
                logger.info(
                    "market_data_provider_skipped",
                    token_id=ref.key,
                    provider=provider.name,
                    kind=outcome.kind,
                    error=outcome.message,
                )
                errors.append((provider.name, outcome.kind))
                continue
            parts.append(outcome)

        snapshot = merge_snapshot(ref, parts, fetched_at, errors)
        logger.info(
            "market_data_fetched",
            token_id=ref.key,
            providers=list(snapshot.providers),
            provider_errors=[f"{n}:{k}" for n, k in snapshot.provider_errors],
            liquidity_usd=snapshot.liquidity_usd,
            pair_count=len(snapshot.pairs),
        )
        return snapshot

    @staticmethod
    def _fetch_one(provider: MarketDataProvider, ref: TokenRef) -> ProviderData | VettingError:
        # typed errors come back as values so one provider cannot cancel the others
        try:
            return provider.fetch(ref)
        except VettingError as e:
            return e

    def close(self) -> None:
        for p in self._providers:
            p.close()
