"""
Market data providers: one class per external source.

Every provider shares the same contract: fetch(ref) -> ProviderData, raising
DataUnavailable / ProviderError / Timeout. HTTP transport errors are mapped
here, at the boundary, so nothing above this module sees httpx exceptions.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import httpx

from backend_vetting.config.settings import ProviderConfig
from backend_vetting.core.exceptions import DataUnavailable, ProviderError, Timeout
from backend_vetting.core.token_id import GOPLUS_CHAIN_IDS, TokenRef
from backend_vetting.market_data.models import ProviderData
from backend_vetting.market_data.normalizer import (
    DEXSCREENER,
    GOPLUS,
    JUPITER,
    RUGCHECK,
    normalize_dexscreener,
    normalize_goplus,
    normalize_jupiter,
    normalize_rugcheck,
    parse_jupiter_verified,
)
from backend_vetting.vetting_logging import get_logger

logger = get_logger(__name__)


class MarketDataProvider(ABC):
    """
    Base class for market data providers.

    required providers fail the whole fetch on error; supplementary providers
    only enrich the snapshot and their failures are recorded instead.
    """

    name: str = "provider"
    required: bool = False

    def __init__(self, config: ProviderConfig, http: httpx.Client | None = None) -> None:
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.Client(
            timeout=httpx.Timeout(config.timeout_sec),
            headers={"Accept": "application/json", "User-Agent": config.user_agent},
        )
        self.request_count = 0

    def supports(self, ref: TokenRef) -> bool:
        return True

    @abstractmethod
    def fetch(self, ref: TokenRef) -> ProviderData:
        """Fetch and normalize this provider's view of the token."""
        ...

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def _get_json(self, url: str, ref: TokenRef, params: dict[str, Any] | None = None) -> Any:
        """GET url and decode JSON, mapping transport failures to engine errors."""
        self.request_count += 1
        try:
            resp = self._http.get(url, params=params)
        except httpx.TimeoutException as e:
            raise Timeout(
                f"{self.name} timed out after {self.config.timeout_sec}s",
                provider=self.name,
                token_id=ref.key,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e}", provider=self.name, token_id=ref.key) from e

        if resp.status_code == 404:
            raise DataUnavailable(f"{self.name} does not know {ref.key}", token_id=ref.key)
        if resp.status_code >= 400:
            raise ProviderError(
                f"{self.name} API error: {resp.status_code}",
                provider=self.name,
                status_code=resp.status_code,
                token_id=ref.key,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON", provider=self.name, token_id=ref.key) from e


class DexScreenerProvider(MarketDataProvider):
    """Pairs, liquidity, volume, pair age and social links. Required."""

    name = DEXSCREENER
    required = True

    def fetch(self, ref: TokenRef) -> ProviderData:
        url = f"{self.config.dexscreener_base_url}/latest/dex/tokens/{ref.address}"
        payload = self._get_json(url, ref)
        return normalize_dexscreener(payload, ref)


class GoPlusProvider(MarketDataProvider):
    """Contract flags, taxes, holder distribution and LP locks."""

    name = GOPLUS

    def supports(self, ref: TokenRef) -> bool:
        return self.config.enable_goplus and ref.chain in GOPLUS_CHAIN_IDS

    def fetch(self, ref: TokenRef) -> ProviderData:
        if ref.is_solana:
            url = f"{self.config.goplus_base_url}/solana/token_security"
        else:
            url = f"{self.config.goplus_base_url}/token_security/{GOPLUS_CHAIN_IDS[ref.chain]}"
        payload = self._get_json(url, ref, params={"contract_addresses": ref.address})
        return normalize_goplus(payload, ref)


class RugCheckProvider(MarketDataProvider):
    """Solana mint/freeze authority, LP lock and top holders."""

    name = RUGCHECK

    def supports(self, ref: TokenRef) -> bool:
        return self.config.enable_rugcheck and ref.is_solana

    def fetch(self, ref: TokenRef) -> ProviderData:
        url = f"{self.config.rugcheck_base_url}/tokens/{ref.address}/report"
        payload = self._get_json(url, ref)
        return normalize_rugcheck(payload, ref)


class JupiterProvider(MarketDataProvider):
    """
    Solana verified-token listing.

    The verified list is shared by every token, so it is downloaded once and
    kept for jupiter_cache_ttl_sec before the next download.
    """

    name = JUPITER

    def __init__(
        self,
        config: ProviderConfig,
        http: httpx.Client | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(config, http)
        self._clock = clock
        self._cache_lock = threading.Lock()
        self._verified: frozenset[str] | None = None
        self._loaded_at = 0.0

    def supports(self, ref: TokenRef) -> bool:
        return self.config.enable_jupiter and ref.is_solana

    def _verified_mints(self, ref: TokenRef) -> frozenset[str]:
        with self._cache_lock:
            now = self._clock()
            if self._verified is None or now - self._loaded_at >= self.config.jupiter_cache_ttl_sec:
                url = f"{self.config.jupiter_base_url}/tokens/v2/tag"
                payload = self._get_json(url, ref, params={"query": "verified"})
                self._verified = parse_jupiter_verified(payload, ref)
                self._loaded_at = now
                logger.debug("jupiter_verified_list_loaded", size=len(self._verified))
            return self._verified

    def fetch(self, ref: TokenRef) -> ProviderData:
        return normalize_jupiter(self._verified_mints(ref), ref)


def default_providers(config: ProviderConfig, http: httpx.Client | None = None) -> list[MarketDataProvider]:
    """DexScreener (required) followed by the supplementary security providers."""
    return [
        DexScreenerProvider(config, http),
        GoPlusProvider(config, http),
        RugCheckProvider(config, http),
        JupiterProvider(config, http),
    ]
