"""
Trade Queue - one buy at a time, FIFO, deduplicated by (wallet, mint)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

import config
from models import Candidate, PositionStatus, TradeIntent, token_key

logger = logging.getLogger(__name__)


@dataclass
class QueuedBuy:
    intent: TradeIntent
    candidate: Candidate
    entry_market_cap: float
    target_market_cap: float
    stop_loss_market_cap: float
    max_positions: int
    queued_at: float = field(default_factory=time.time)

    @property
    def key(self) -> str:
        return token_key(self.intent.wallet, self.intent.mint)


class TradeQueue:

    def __init__(self, store, cooldown, handler: Callable[[QueuedBuy], Awaitable[None]],
                 min_trade_interval: float = None, dedup_window: float = None):
        self.store = store
        self.cooldown = cooldown
        self.handler = handler
        self.min_trade_interval = config.MIN_TRADE_INTERVAL if min_trade_interval is None else min_trade_interval
        self.dedup_window = config.DEDUP_WINDOW if dedup_window is None else dedup_window
        self.last_trade_time = 0.0
        self._items: List[QueuedBuy] = []
        self._processed: Dict[str, float] = {}
        self._drain_task: Optional[asyncio.Task] = None

    def __len__(self):
        return len(self._items)

    @property
    def is_processing(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def pending_for(self, wallet: str) -> List[QueuedBuy]:
        return [item for item in self._items if item.intent.wallet == wallet]

    def mark_processed(self, key: str):
        self._processed[key] = time.time() + self.dedup_window

    def is_recently_processed(self, key: str) -> bool:
        expires_at = self._processed.get(key)
        if expires_at is None:
            return False
        if time.time() >= expires_at:
            del self._processed[key]
            return False
        return True

    def enqueue(self, item: QueuedBuy) -> bool:
        """Append item unless the same (wallet, mint) is already waiting"""
        if any(queued.key == item.key for queued in self._items):
            logger.debug(f"Duplicate queue entry dropped for {item.intent.mint[:8]}...")
            return False

        self._items.append(item)
        logger.info(f"📥 Queued buy {item.candidate.symbol or item.intent.mint[:8]} (queue: {len(self._items)})")

        if not self.is_processing:
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return True

    def discard_wallet(self, wallet: str) -> int:
        kept = [item for item in self._items if item.intent.wallet != wallet]
        dropped = len(self._items) - len(kept)
        self._items[:] = kept
        return dropped

    def clear(self):
        if self._items:
            logger.info(f"🧹 Discarding {len(self._items)} queued buys")
        self._items.clear()

    async def wait_idle(self):
        if self._drain_task is not None:
            await self._drain_task

    async def close(self):
        self.clear()
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass

    async def _drain(self):
        while self._items:
            if self.cooldown.is_in_cooldown:
                self.clear()
                return

            wait = self.last_trade_time + self.min_trade_interval - time.time()
            if wait > 0:
                await asyncio.sleep(wait)
                continue

            item = self._items.pop(0)
            if not await self._still_eligible(item):
                continue

            self.last_trade_time = time.time()
            try:
                await self.handler(item)
            except Exception as e:
                logger.error(f"❌ Queued buy for {item.intent.mint[:8]}... raised: {e}")

    async def _still_eligible(self, item: QueuedBuy) -> bool:
        wallet, mint = item.intent.wallet, item.intent.mint
        active = await self.store.list_positions(wallet, PositionStatus.ACTIVE)
        if len(active) >= item.max_positions:
            logger.info(f"Max positions reached for {wallet[:8]}..., skipping {mint[:8]}...")
            return False
        if any(p.mint == mint for p in active):
            logger.info(f"Already holding an active position in {mint[:8]}..., skipping")
            return False
        return True
