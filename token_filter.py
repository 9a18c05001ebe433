"""
Token Filter - pure eligibility predicate over a candidate snapshot
"""

import time
from typing import Optional

import config
from models import Candidate, TokenFilter


def passes(candidate: Candidate, token_filter: TokenFilter,
           now: Optional[float] = None, sol_price_usd: Optional[float] = None) -> bool:
    """
    Return True when the candidate satisfies every configured bound.

    A disabled filter always passes. Checks run in a fixed order and the first
    failing one rejects.
    """
    if not token_filter.enabled:
        return True

    now = time.time() if now is None else now
    sol_price = sol_price_usd or config.APPROX_SOL_PRICE_USD

    if token_filter.min_liquidity and token_filter.min_liquidity > 0:
        liquidity_sol = candidate.liquidity / sol_price
        if liquidity_sol < token_filter.min_liquidity:
            return False

    if token_filter.min_market_cap is not None and candidate.market_cap < token_filter.min_market_cap:
        return False
    if token_filter.max_market_cap is not None and candidate.market_cap > token_filter.max_market_cap:
        return False

    progress = candidate.bonding_curve_progress
    if token_filter.min_bonding_curve is not None and progress < token_filter.min_bonding_curve:
        return False
    if token_filter.max_bonding_curve is not None and progress > token_filter.max_bonding_curve:
        return False

    age_minutes = (now - candidate.created_at) / 60
    if token_filter.min_age and token_filter.min_age > 0 and age_minutes < token_filter.min_age:
        return False
    if token_filter.max_age is not None and age_minutes > token_filter.max_age:
        return False

    if token_filter.min_holders and token_filter.min_holders > 0 and candidate.holders < token_filter.min_holders:
        return False

    if token_filter.min_volume_24h and token_filter.min_volume_24h > 0 and candidate.volume_24h < token_filter.min_volume_24h:
        return False

    name_needle = (token_filter.name_contains or "").strip().lower()
    if name_needle and name_needle not in candidate.name.lower():
        return False

    symbol_needle = (token_filter.symbol_contains or "").strip().lower()
    if symbol_needle and symbol_needle not in candidate.symbol.lower():
        return False

    name = candidate.name.lower()
    for excluded in token_filter.exclude_names:
        term = excluded.strip().lower()
        if term and term in name:
            return False

    return True


def passes_baseline(candidate: Candidate) -> bool:
    """Fallback gate used when a wallet's own filter is switched off"""
    if not config.BASELINE_GATE_ENABLED:
        return True
    if candidate.market_cap < config.BASELINE_MIN_MARKET_CAP:
        return False
    if candidate.market_cap > config.BASELINE_MAX_MARKET_CAP:
        return False
    return candidate.liquidity >= config.BASELINE_MIN_LIQUIDITY_USD
