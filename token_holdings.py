"""
Token holdings cache - long TTL, one in-flight fetch per wallet, stale fallback
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List

import config
from chain_client import is_rate_limited
from models import WalletToken

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    tokens: List[WalletToken]
    fetched_at: float


class TokenHoldingsCache:

    def __init__(self, chain, ttl: float = None, max_attempts: int = None, retry_delays=None,
                 program_ids=None):
        self.chain = chain
        self.ttl = config.HOLDINGS_CACHE_TTL if ttl is None else ttl
        self.max_attempts = max_attempts or config.HOLDINGS_MAX_ATTEMPTS
        self.retry_delays = config.HOLDINGS_RETRY_DELAYS if retry_delays is None else retry_delays
        self.program_ids = program_ids or [config.TOKEN_PROGRAM_ID, config.TOKEN_2022_PROGRAM_ID]
        self._cache: Dict[str, _CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def get_holdings(self, wallet: str) -> List[WalletToken]:
        """Positive balances held by wallet; never raises"""
        entry = self._cache.get(wallet)
        if entry and time.time() - entry.fetched_at < self.ttl:
            return list(entry.tokens)

        task = self._in_flight.get(wallet)
        if task is None:
            task = asyncio.create_task(self._fetch(wallet))
            self._in_flight[wallet] = task
            task.add_done_callback(lambda t, w=wallet: self._release(w, t))
        return list(await task)

    def invalidate(self, wallet: str):
        self._cache.pop(wallet, None)

    def _release(self, wallet: str, task: asyncio.Task):
        if self._in_flight.get(wallet) is task:
            del self._in_flight[wallet]

    async def _fetch(self, wallet: str) -> List[WalletToken]:
        primary, extras = self.program_ids[0], self.program_ids[1:]
        for attempt in range(self.max_attempts):
            try:
                tokens = await self.chain.get_token_accounts(wallet, primary)
            except Exception as e:
                if is_rate_limited(e) and attempt < self.max_attempts - 1:
                    delay = self.retry_delays[min(attempt, len(self.retry_delays) - 1)] if self.retry_delays else 0
                    logger.warning(f"⚠️ Holdings fetch rate limited, retrying in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"❌ Holdings fetch failed for {wallet[:8]}...: {e}")
                break

            # Token-2022 and other programs are best-effort
            for program_id in extras:
                try:
                    tokens.extend(await self.chain.get_token_accounts(wallet, program_id))
                except Exception as e:
                    logger.warning(f"⚠️ Skipping {program_id[:8]}... holdings for {wallet[:8]}...: {e}")
            tokens = [t for t in tokens if t.balance > 0]
            self._cache[wallet] = _CacheEntry(tokens=tokens, fetched_at=time.time())
            logger.debug(f"Holdings refreshed for {wallet[:8]}...: {len(tokens)} tokens")
            return tokens

        stale = self._cache.get(wallet)
        if stale:
            logger.info(f"Serving stale holdings for {wallet[:8]}...")
            return stale.tokens
        return []
