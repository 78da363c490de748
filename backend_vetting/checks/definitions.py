"""
Check catalog: one pure function per check.

Every check has the shape ``check(token_id, snapshot, policy) -> CheckResult``
and is bound to a policy with functools.partial when the registry is built.
A check whose input fields are missing from the snapshot raises MissingData;
the runner turns that into an ``error`` result. Checks use
``snapshot.fetched_at`` as "now" so they stay pure.
"""

from __future__ import annotations

from functools import partial

from backend_vetting.checks.policy import DEFAULT_POLICY, VettingPolicy
from backend_vetting.checks.registry import CheckRegistry, DEFAULT_CHECK_TIMEOUT_SEC
from backend_vetting.core.exceptions import MissingData
from backend_vetting.market_data.models import MarketSnapshot
from backend_vetting.vetting.models import CheckResult, CheckStatus, Severity

LIQUIDITY_THRESHOLD = "liquidity_threshold"
OWNERSHIP_CONCENTRATION = "ownership_concentration"
CONTRACT_MUTABILITY = "contract_mutability"
PAIR_AGE = "pair_age"
VOLUME_PLAUSIBILITY = "volume_plausibility"
HONEYPOT = "honeypot"
TRADE_TAX = "trade_tax"
OWNERSHIP_CONTROL = "ownership_control"
LP_LOCK = "lp_lock"
HOLDER_COUNT = "holder_count"
SOCIAL_PRESENCE = "social_presence"
TOKEN_VERIFIED = "token_verified"


def _result(name: str, status: CheckStatus, score: float, detail: str) -> CheckResult:
    return CheckResult(name=name, status=status, score=score, detail=detail)


def _require(name: str, value, field_name: str):
    if value is None:
        raise MissingData(f"snapshot has no {field_name}", check=name)
    return value


def _usd(value: float) -> str:
    return f"${value:,.0f}"


def check_liquidity(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    liquidity = _require(LIQUIDITY_THRESHOLD, snapshot.liquidity_usd, "liquidity_usd")
    if liquidity < policy.min_liquidity_usd:
        return _result(
            LIQUIDITY_THRESHOLD,
            CheckStatus.FAIL,
            policy.liquidity_fail_score,
            f"Liquidity {_usd(liquidity)} is below the {_usd(policy.min_liquidity_usd)} minimum",
        )
    return _result(
        LIQUIDITY_THRESHOLD,
        CheckStatus.PASS,
        policy.liquidity_pass_score,
        f"Liquidity {_usd(liquidity)} meets the {_usd(policy.min_liquidity_usd)} minimum",
    )


def check_ownership_concentration(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    top10 = _require(OWNERSHIP_CONCENTRATION, snapshot.top10_holder_pct, "top10_holder_pct")
    if top10 > policy.concentration_fail_pct:
        return _result(
            OWNERSHIP_CONCENTRATION,
            CheckStatus.FAIL,
            policy.concentration_fail_score,
            f"Top 10 holders own {top10:.1f}% of supply (limit {policy.concentration_fail_pct:.0f}%)",
        )
    creator = snapshot.creator_pct
    if top10 > policy.concentration_warn_pct or (creator is not None and creator > policy.creator_warn_pct):
        creator_note = f", creator holds {creator:.1f}%" if creator is not None else ""
        return _result(
            OWNERSHIP_CONCENTRATION,
            CheckStatus.WARN,
            policy.concentration_warn_score,
            f"Top 10 holders own {top10:.1f}% of supply{creator_note}",
        )
    return _result(
        OWNERSHIP_CONCENTRATION,
        CheckStatus.PASS,
        policy.concentration_pass_score,
        f"Top 10 holders own {top10:.1f}% of supply",
    )


def check_contract_mutability(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    flags = snapshot.flags
    known = [flags.mintable, flags.freezable, flags.proxy, flags.mutable_metadata]
    if all(v is None for v in known):
        raise MissingData("snapshot has no contract mutability flags", check=CONTRACT_MUTABILITY)

    hard = [label for label, v in (("mintable", flags.mintable), ("freezable", flags.freezable)) if v]
    if hard:
        return _result(
            CONTRACT_MUTABILITY,
            CheckStatus.FAIL,
            policy.mutability_fail_score,
            "Contract is " + " and ".join(hard),
        )
    soft = [label for label, v in (("upgradeable proxy", flags.proxy), ("mutable metadata", flags.mutable_metadata)) if v]
    if soft:
        return _result(
            CONTRACT_MUTABILITY,
            CheckStatus.WARN,
            policy.mutability_warn_score,
            "Contract has " + " and ".join(soft),
        )
    return _result(
        CONTRACT_MUTABILITY,
        CheckStatus.PASS,
        policy.mutability_pass_score,
        "No mint, freeze or upgrade capability detected",
    )


def check_pair_age(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    age_days = snapshot.pair_age_days(snapshot.fetched_at)
    if age_days is None:
        raise MissingData("snapshot has no pair_created_at", check=PAIR_AGE)
    if age_days < policy.pair_age_fail_days:
        return _result(
            PAIR_AGE,
            CheckStatus.FAIL,
            policy.pair_age_fail_score,
            f"Pair is {age_days * 24:.1f} hours old",
        )
    if age_days < policy.pair_age_warn_days:
        return _result(PAIR_AGE, CheckStatus.WARN, policy.pair_age_warn_score, f"Pair is {age_days:.1f} days old")
    return _result(PAIR_AGE, CheckStatus.PASS, policy.pair_age_pass_score, f"Pair is {age_days:.0f} days old")


def check_volume_plausibility(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    volume = _require(VOLUME_PLAUSIBILITY, snapshot.volume_24h_usd, "volume_24h_usd")
    liquidity = _require(VOLUME_PLAUSIBILITY, snapshot.liquidity_usd, "liquidity_usd")

    if volume < policy.min_volume_24h_usd:
        return _result(
            VOLUME_PLAUSIBILITY,
            CheckStatus.WARN,
            policy.volume_warn_score,
            f"24h volume {_usd(volume)} is below {_usd(policy.min_volume_24h_usd)}",
        )
    if liquidity > 0 and volume / liquidity > policy.max_volume_liquidity_ratio:
        return _result(
            VOLUME_PLAUSIBILITY,
            CheckStatus.WARN,
            policy.volume_warn_score,
            f"24h volume is {volume / liquidity:.1f}x liquidity, possible wash trading",
        )
    return _result(
        VOLUME_PLAUSIBILITY,
        CheckStatus.PASS,
        policy.volume_pass_score,
        f"24h volume {_usd(volume)} against {_usd(liquidity)} liquidity",
    )


def check_honeypot(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    honeypot = _require(HONEYPOT, snapshot.flags.honeypot, "honeypot flag")
    if honeypot:
        return _result(HONEYPOT, CheckStatus.FAIL, policy.honeypot_fail_score, "Token is flagged as a honeypot")
    return _result(HONEYPOT, CheckStatus.PASS, policy.honeypot_pass_score, "Not a honeypot")


def check_trade_tax(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    taxes = [t for t in (snapshot.buy_tax_pct, snapshot.sell_tax_pct) if t is not None]
    if not taxes:
        raise MissingData("snapshot has no buy or sell tax", check=TRADE_TAX)
    worst = max(taxes)
    detail = f"Buy tax {_pct(snapshot.buy_tax_pct)}, sell tax {_pct(snapshot.sell_tax_pct)}"
    if worst > policy.max_tax_pct:
        return _result(TRADE_TAX, CheckStatus.FAIL, policy.tax_fail_score, detail)
    if worst > policy.tax_warn_pct:
        return _result(TRADE_TAX, CheckStatus.WARN, policy.tax_warn_score, detail)
    return _result(TRADE_TAX, CheckStatus.PASS, policy.tax_pass_score, detail)


def _pct(value: float | None) -> str:
    return "unknown" if value is None else f"{value:.1f}%"


def check_ownership_control(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    flags = snapshot.flags
    if flags.hidden_owner is None and flags.can_reclaim_ownership is None and flags.ownership_renounced is None:
        raise MissingData("snapshot has no ownership flags", check=OWNERSHIP_CONTROL)

    risks = []
    if flags.hidden_owner:
        risks.append("hidden owner")
    if flags.can_reclaim_ownership:
        risks.append("ownership can be reclaimed")
    if flags.blacklist:
        risks.append("blacklist function")
    if risks:
        return _result(OWNERSHIP_CONTROL, CheckStatus.FAIL, policy.ownership_fail_score, "; ".join(risks).capitalize())
    if flags.ownership_renounced:
        return _result(OWNERSHIP_CONTROL, CheckStatus.PASS, policy.ownership_pass_score, "Ownership renounced")
    return _result(
        OWNERSHIP_CONTROL,
        CheckStatus.WARN,
        policy.ownership_warn_score,
        "Ownership not renounced",
    )


def check_lp_lock(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    locked = _require(LP_LOCK, snapshot.lp_locked_pct, "lp_locked_pct")
    detail = f"{locked:.1f}% of liquidity is locked or burned"
    if locked >= policy.min_lp_locked_pct:
        return _result(LP_LOCK, CheckStatus.PASS, policy.lp_lock_pass_score, detail)
    if locked >= policy.lp_lock_warn_pct:
        return _result(LP_LOCK, CheckStatus.WARN, policy.lp_lock_warn_score, detail)
    return _result(LP_LOCK, CheckStatus.FAIL, policy.lp_lock_fail_score, detail)


def check_holder_count(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    holders = _require(HOLDER_COUNT, snapshot.holder_count, "holder_count")
    if holders < policy.holder_fail_count:
        return _result(HOLDER_COUNT, CheckStatus.FAIL, policy.holders_fail_score, f"Only {holders} holders")
    if holders < policy.min_holders:
        return _result(
            HOLDER_COUNT,
            CheckStatus.WARN,
            policy.holders_warn_score,
            f"{holders} holders, below {policy.min_holders}",
        )
    return _result(HOLDER_COUNT, CheckStatus.PASS, policy.holders_pass_score, f"{holders:,} holders")


def check_social_presence(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    platforms = sorted({platform for platform, _ in snapshot.socials})
    if snapshot.websites:
        platforms.insert(0, "website")
    if not platforms:
        return _result(SOCIAL_PRESENCE, CheckStatus.WARN, policy.social_warn_score, "No website or social links")
    return _result(
        SOCIAL_PRESENCE,
        CheckStatus.PASS,
        policy.social_pass_score,
        "Links: " + ", ".join(platforms),
    )


def check_token_verified(token_id: str, snapshot: MarketSnapshot, policy: VettingPolicy) -> CheckResult:
    """Solana: listed on Jupiter's verified list. EVM: contract source is verified."""
    if snapshot.chain == "solana":
        listed = _require(TOKEN_VERIFIED, snapshot.jupiter_verified, "jupiter_verified")
        if listed:
            return _result(TOKEN_VERIFIED, CheckStatus.PASS, policy.verified_pass_score, "On Jupiter's verified token list")
        return _result(
            TOKEN_VERIFIED,
            CheckStatus.WARN,
            policy.unlisted_warn_score,
            "Not on Jupiter's verified token list",
        )
    verified = _require(TOKEN_VERIFIED, snapshot.flags.open_source, "open_source flag")
    if verified:
        return _result(TOKEN_VERIFIED, CheckStatus.PASS, policy.verified_pass_score, "Contract source code is verified")
    return _result(
        TOKEN_VERIFIED,
        CheckStatus.FAIL,
        policy.unverified_fail_score,
        "Contract source code is not verified",
    )


CATALOG = (
    (LIQUIDITY_THRESHOLD, check_liquidity, Severity.CRITICAL),
    (OWNERSHIP_CONCENTRATION, check_ownership_concentration, Severity.HIGH),
    (CONTRACT_MUTABILITY, check_contract_mutability, Severity.CRITICAL),
    (PAIR_AGE, check_pair_age, Severity.MEDIUM),
    (VOLUME_PLAUSIBILITY, check_volume_plausibility, Severity.MEDIUM),
    (HONEYPOT, check_honeypot, Severity.CRITICAL),
    (TRADE_TAX, check_trade_tax, Severity.HIGH),
    (OWNERSHIP_CONTROL, check_ownership_control, Severity.HIGH),
    (LP_LOCK, check_lp_lock, Severity.HIGH),
    (HOLDER_COUNT, check_holder_count, Severity.MEDIUM),
    (SOCIAL_PRESENCE, check_social_presence, Severity.LOW),
    (TOKEN_VERIFIED, check_token_verified, Severity.MEDIUM),
)


def build_default_registry(
    policy: VettingPolicy = DEFAULT_POLICY,
    *,
    default_timeout_sec: float = DEFAULT_CHECK_TIMEOUT_SEC,
) -> CheckRegistry:
    """Registry with the full catalog, in catalog order, bound to policy."""
    registry = CheckRegistry(default_timeout_sec=default_timeout_sec)
    for name, fn, severity in CATALOG:
        registry.register(name, partial(fn, policy=policy), severity=severity)
    return registry
