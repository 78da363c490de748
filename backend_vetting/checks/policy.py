"""
VettingPolicy: thresholds and score weights for the check catalog.

Defaults follow the listing criteria the dashboard has always used
(10k USD liquidity, 10% tax ceiling, 80% LP lock, 100 holders, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True)
class VettingPolicy:
    # liquidity_threshold
    min_liquidity_usd: float = 10_000.0
    liquidity_pass_score: float = 20.0
    liquidity_fail_score: float = -50.0

    # ownership_concentration (top-10 holders, percent of supply)
    concentration_fail_pct: float = 50.0
    concentration_warn_pct: float = 30.0
    creator_warn_pct: float = 10.0
    concentration_pass_score: float = 10.0
    concentration_warn_score: float = -10.0
    concentration_fail_score: float = -40.0

    # contract_mutability
    mutability_pass_score: float = 10.0
    mutability_warn_score: float = -10.0
    mutability_fail_score: float = -40.0

    # pair_age
    pair_age_fail_days: float = 1.0
    pair_age_warn_days: float = 7.0
    pair_age_pass_score: float = 10.0
    pair_age_warn_score: float = -10.0
    pair_age_fail_score: float = -30.0

    # volume_plausibility
    min_volume_24h_usd: float = 1_000.0
    max_volume_liquidity_ratio: float = 10.0
    volume_pass_score: float = 10.0
    volume_warn_score: float = -15.0

    # honeypot
    honeypot_pass_score: float = 10.0
    honeypot_fail_score: float = -100.0

    # trade_tax (percent)
    max_tax_pct: float = 10.0
    tax_warn_pct: float = 5.0
    tax_pass_score: float = 5.0
    tax_warn_score: float = -5.0
    tax_fail_score: float = -30.0

    # ownership_control
    ownership_pass_score: float = 10.0
    ownership_warn_score: float = -5.0
    ownership_fail_score: float = -40.0

    # lp_lock (percent of LP locked or burned)
    min_lp_locked_pct: float = 80.0
    lp_lock_warn_pct: float = 50.0
    lp_lock_pass_score: float = 15.0
    lp_lock_warn_score: float = -10.0
    lp_lock_fail_score: float = -30.0

    # holder_count
    min_holders: int = 100
    holder_fail_count: int = 20
    holders_pass_score: float = 5.0
    holders_warn_score: float = -5.0
    holders_fail_score: float = -20.0

    # social_presence
    social_pass_score: float = 5.0
    social_warn_score: float = -5.0

    # token_verified (Jupiter list on Solana, verified source on EVM)
    verified_pass_score: float = 5.0
    unlisted_warn_score: float = -10.0
    unverified_fail_score: float = -20.0

    def __post_init__(self) -> None:
        if self.concentration_warn_pct > self.concentration_fail_pct:
            raise ValueError("concentration_warn_pct must not exceed concentration_fail_pct")
        if self.pair_age_fail_days > self.pair_age_warn_days:
            raise ValueError("pair_age_fail_days must not exceed pair_age_warn_days")
        if self.tax_warn_pct > self.max_tax_pct:
            raise ValueError("tax_warn_pct must not exceed max_tax_pct")
        if self.lp_lock_warn_pct > self.min_lp_locked_pct:
            raise ValueError("lp_lock_warn_pct must not exceed min_lp_locked_pct")
        if self.holder_fail_count > self.min_holders:
            raise ValueError("holder_fail_count must not exceed min_holders")

    @classmethod
    def from_dict(cls, data: dict) -> "VettingPolicy":
        """Build a policy from a partial mapping; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"unknown policy fields: {sorted(unknown)}")
        return cls(**data)


DEFAULT_POLICY = VettingPolicy()
