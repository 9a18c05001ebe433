"""
Candidate Feed - where discovered token snapshots enter the engine.

Discovery itself (polling listing APIs) lives outside this process; it
publishes normalized Candidate snapshots here. While the feed is paused
(scanner disabled or cooldown) snapshots are still cached for price lookups
but no new-candidate callbacks fire.
"""

import logging
from typing import Awaitable, Callable, List

from models import Candidate

logger = logging.getLogger(__name__)

CandidateCallback = Callable[[Candidate], Awaitable[None]]


class CandidateFeed:

    def __init__(self, store):
        self.store = store
        self.active = False
        self._callbacks: List[CandidateCallback] = []

    def on_new_candidate(self, callback: CandidateCallback):
        self._callbacks.append(callback)

    def set_active(self, active: bool):
        if active != self.active:
            logger.info("🔎 Candidate feed resumed" if active else "Candidate feed paused")
        self.active = active

    async def latest(self) -> List[Candidate]:
        return await self.store.list_candidates()

    async def publish(self, candidate: Candidate, is_new: bool = True) -> bool:
        """Cache the snapshot; returns True when callbacks were notified"""
        await self.store.upsert_candidate(candidate)

        if not self.active or not is_new:
            return False

        logger.info(f"🆕 New candidate {candidate.symbol or candidate.mint[:8]} | MC ${candidate.market_cap:,.0f}")
        for callback in list(self._callbacks):
            try:
                await callback(candidate)
            except Exception as e:
                logger.error(f"❌ Candidate callback failed for {candidate.mint[:8]}...: {e}")
        return True
