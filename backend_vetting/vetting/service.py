"""
VettingService: the public entry point of the vetting engine.

run_automated_checks(token_id) sequences store lookup -> market data fetch ->
check runner -> aggregation -> store save, and reports the outcome as a
VettingEnvelope instead of raising for engine errors. A fresh stored verdict
short-circuits the whole pipeline unless a refresh is forced.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from backend_vetting.checks.definitions import build_default_registry
from backend_vetting.checks.policy import VettingPolicy
from backend_vetting.checks.registry import CheckRegistry
from backend_vetting.config.settings import VettingSettings
from backend_vetting.core.exceptions import InsufficientData, NotFound, VettingError
from backend_vetting.core.token_id import parse_token_id
from backend_vetting.database.store import VettingStore, get_store
from backend_vetting.market_data.client import MarketDataClient
from backend_vetting.vetting.aggregator import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_RISK_THRESHOLDS,
    RiskThresholds,
    aggregate,
)
from backend_vetting.vetting.models import Verdict, VettingEnvelope
from backend_vetting.vetting.runner import CheckRunner
from backend_vetting.vetting_logging import bind_token, log_duration

DEFAULT_TTL_SEC = 600.0


class VettingService:
    def __init__(
        self,
        client: MarketDataClient,
        store: VettingStore,
        registry: CheckRegistry | None = None,
        *,
        runner: CheckRunner | None = None,
        ttl_sec: float = DEFAULT_TTL_SEC,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        risk_thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
        default_chain: str = "solana",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.store = store
        self.registry = registry if registry is not None else build_default_registry()
        self.runner = runner if runner is not None else CheckRunner(clock=clock)
        self.ttl_sec = ttl_sec
        self.confidence_threshold = confidence_threshold
        self.risk_thresholds = risk_thresholds
        self.default_chain = default_chain
        self._clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: VettingSettings,
        *,
        policy: VettingPolicy | None = None,
        store: VettingStore | None = None,
        client: MarketDataClient | None = None,
    ) -> "VettingService":
        """Wire a service from settings: SQL store, default providers and the default catalog."""
        registry = build_default_registry(
            policy or VettingPolicy(),
            default_timeout_sec=settings.check_timeout_sec,
        )
        return cls(
            client or MarketDataClient.from_config(settings.providers, default_chain=settings.default_chain),
            store or get_store(settings.database_url, history_limit=settings.history_limit),
            registry,
            ttl_sec=settings.ttl_sec,
            confidence_threshold=settings.confidence_threshold,
            risk_thresholds=RiskThresholds(settings.risk_low_min, settings.risk_medium_min, settings.risk_high_min),
            default_chain=settings.default_chain,
        )

    def _lock_for(self, token_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(token_key)
            if lock is None:
                lock = self._locks[token_key] = threading.Lock()
            return lock

    def _fresh_verdict(self, token_key: str, now: float) -> Verdict | None:
        try:
            verdict = self.store.get_latest(token_key)
        except NotFound:
            return None
        verdict = verdict.with_freshness(now, self.ttl_sec)
        return verdict if verdict.fresh else None

    def run_automated_checks(self, token_id: str, *, force_refresh: bool = False) -> VettingEnvelope:
        """
        Vet token_id and return an envelope.

        Fresh stored verdict and not forced: returned with ran_checks=False and
        no provider call. Otherwise the full pipeline runs and the new verdict
        replaces the stored one. Engine errors (DataUnavailable, ProviderError,
        Timeout, InsufficientData, InvalidTokenId) give success=False and leave
        the stored verdict untouched; anything else propagates.
        """
        try:
            ref = parse_token_id(token_id, self.default_chain)
        except VettingError as e:
            bind_token(str(token_id)).info("vetting_rejected", kind=e.kind, error=e.message)
            return VettingEnvelope(token_id=str(token_id), success=False, ran_checks=False, error=e.to_dict())

        key = ref.key
        log = bind_token(key)

        if not force_refresh:
            cached = self._fresh_verdict(key, self._clock())
            if cached is not None:
                log.info("vetting_cache_hit", age_sec=round(cached.age_sec(self._clock()), 3))
                return VettingEnvelope(token_id=key, success=True, ran_checks=False, verdict=cached)

        with self._lock_for(key):
            if not force_refresh:
                # another caller may have refreshed while we waited on the lock
                cached = self._fresh_verdict(key, self._clock())
                if cached is not None:
                    log.info("vetting_cache_hit_after_wait")
                    return VettingEnvelope(token_id=key, success=True, ran_checks=False, verdict=cached)

            try:
                with log_duration(log, "vetting_run", forced=force_refresh) as extra:
                    snapshot = self.client.fetch(ref)
                    results = self.runner.run(key, snapshot, self.registry)
                    verdict = aggregate(
                        results,
                        confidence_threshold=self.confidence_threshold,
                        risk_thresholds=self.risk_thresholds,
                        snapshot_fetched_at=snapshot.fetched_at,
                        providers=snapshot.providers,
                        provider_errors=snapshot.provider_errors,
                    )
                    self.store.save(key, verdict)
                    extra.update(status=verdict.status.value, score=verdict.score, confidence=verdict.confidence)
            except VettingError as e:
                log.warning("vetting_failed", kind=e.kind, error=e.message, retryable=e.retryable)
                # only an all-error run got as far as executing checks
                ran = isinstance(e, InsufficientData)
                return VettingEnvelope(token_id=key, success=False, ran_checks=ran, error=e.to_dict())

        log.info(
            "vetting_completed",
            status=verdict.status.value,
            score=verdict.score,
            confidence=verdict.confidence,
            red_flags=len(verdict.red_flags),
            risk_level=verdict.risk_level.value,
            provider_errors=[f"{p}:{k}" for p, k in verdict.provider_errors],
        )
        return VettingEnvelope(token_id=key, success=True, ran_checks=True, verdict=verdict)

    def get_verdict(self, token_id: str) -> Verdict:
        """Stored verdict with its freshness evaluated now. Raises NotFound or InvalidTokenId."""
        key = parse_token_id(token_id, self.default_chain).key
        return self.store.get_latest(key).with_freshness(self._clock(), self.ttl_sec)

    def history(self, token_id: str, limit: int | None = None) -> list[Verdict]:
        key = parse_token_id(token_id, self.default_chain).key
        now = self._clock()
        return [v.with_freshness(now, self.ttl_sec) for v in self.store.history(key, limit)]

    def stale_tokens(self, limit: int | None = None) -> list[str]:
        """Stored tokens whose latest verdict is older than the TTL, oldest first."""
        now = self._clock()
        stale = [token for token, computed_at in self.store.list_tokens() if now - computed_at > self.ttl_sec]
        return stale if limit is None else stale[:limit]

    def close(self) -> None:
        self.client.close()
        self.store.close()
