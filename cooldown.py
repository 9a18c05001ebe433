"""
Cooldown Controller - global pause after each successful buy
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

import config

logger = logging.getLogger(__name__)


class CooldownController:
    """
    idle -> cooldown -> idle.

    While cooling down, discovery is paused and queued buys are discarded.
    Selling is not affected. Listeners:
      - discard listeners run on cooldown onset and on disable (queue clearing)
      - scanning listeners get True/False whenever discovery should resume/pause
    """

    def __init__(self, duration: float = None):
        self.duration = config.COOLDOWN_DURATION if duration is None else duration
        self.scanning_enabled = False
        self.cooldown_end_time: Optional[float] = None
        self._timer: Optional[asyncio.Task] = None
        self._discard_listeners: List[Callable[[], None]] = []
        self._scanning_listeners: List[Callable[[bool], None]] = []

    def add_discard_listener(self, callback: Callable[[], None]):
        self._discard_listeners.append(callback)

    def add_scanning_listener(self, callback: Callable[[bool], None]):
        self._scanning_listeners.append(callback)

    @property
    def is_in_cooldown(self) -> bool:
        return self.cooldown_end_time is not None and time.time() < self.cooldown_end_time

    @property
    def is_scanning(self) -> bool:
        return self.scanning_enabled and not self.is_in_cooldown

    @property
    def remaining_seconds(self) -> float:
        if not self.is_in_cooldown:
            return 0.0
        return max(0.0, self.cooldown_end_time - time.time())

    def start(self):
        """Enter cooldown. Called once for every confirmed buy."""
        self.cooldown_end_time = time.time() + self.duration
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._expire_after(self.duration))

        logger.info(f"⏸️ Cooldown started for {self.duration / 60:.0f} minutes")
        self._notify_discard()
        self._notify_scanning(False)

    def end(self):
        """Leave cooldown early or on timer expiry"""
        self._cancel_timer()
        self.cooldown_end_time = None
        logger.info("▶️ Cooldown ended")
        if self.scanning_enabled:
            self._notify_scanning(True)

    def enable(self):
        self.scanning_enabled = True
        if self.is_in_cooldown:
            # Timer finishes the cooldown and resumes scanning then
            logger.info(f"Scanner enabled, still cooling down for {self.remaining_seconds:.0f}s")
            return
        logger.info("✅ Scanner enabled")
        self._notify_scanning(True)

    def disable(self):
        self.scanning_enabled = False
        logger.info("Scanner disabled")
        self._notify_discard()
        self._notify_scanning(False)

    def status(self) -> dict:
        return {
            "is_in_cooldown": self.is_in_cooldown,
            "cooldown_end_time": self.cooldown_end_time if self.is_in_cooldown else None,
            "remaining_seconds": self.remaining_seconds,
            "scanning_enabled": self.scanning_enabled,
        }

    def close(self):
        self._cancel_timer()

    async def _expire_after(self, delay: float):
        await asyncio.sleep(delay)
        self._timer = None
        self.end()

    def _cancel_timer(self):
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    def _notify_discard(self):
        for callback in self._discard_listeners:
            callback()

    def _notify_scanning(self, active: bool):
        for callback in self._scanning_listeners:
            callback(active)
