"""
Market data for open positions: live pump.fun coin data, then the cached candidate snapshot
"""

import certifi
import httpx
import logging
from dataclasses import dataclass
from typing import List, Optional

import config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketReading:
    market_cap: float
    source: str


class PumpFunCoinSource:
    name = "pump.fun"

    def __init__(self, base_url: str = None, timeout: float = None):
        self.base_url = (base_url or config.PUMPFUN_COIN_API_URL).rstrip("/")
        self.timeout = timeout or config.PRICE_FEED_TIMEOUT

    async def market_cap(self, mint: str) -> Optional[float]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, verify=certifi.where()) as client:
                response = await client.get(f"{self.base_url}/{mint}")
            if response.status_code != 200:
                return None
            data = response.json()
        except Exception as e:
            logger.debug(f"pump.fun coin lookup failed for {mint[:8]}...: {e}")
            return None
        value = data.get("usd_market_cap") if isinstance(data, dict) else None
        return float(value) if value else None


class CachedCandidateSource:
    name = "candidate-cache"

    def __init__(self, store):
        self.store = store

    async def market_cap(self, mint: str) -> Optional[float]:
        candidate = await self.store.get_candidate(mint)
        if candidate and candidate.market_cap > 0:
            return candidate.market_cap
        return None


class MarketDataSource:
    """First source with a positive market cap wins"""

    def __init__(self, sources: List):
        self.sources = sources

    async def get_reading(self, mint: str) -> Optional[MarketReading]:
        for source in self.sources:
            value = await source.market_cap(mint)
            if value and value > 0:
                return MarketReading(market_cap=value, source=source.name)
        return None
