"""
Client channel - per-wallet callbacks for messages that need the UI (external signatures, trade notices)
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ClientCallback = Callable[[Dict[str, Any]], Any]


class ClientChannel:

    def __init__(self):
        self._clients: Dict[str, List[ClientCallback]] = {}

    def register(self, wallet: str, callback: ClientCallback):
        self._clients.setdefault(wallet, []).append(callback)

    def unregister(self, wallet: str, callback: ClientCallback = None):
        if callback is None:
            self._clients.pop(wallet, None)
            return
        callbacks = self._clients.get(wallet, [])
        if callback in callbacks:
            callbacks.remove(callback)
        if not callbacks:
            self._clients.pop(wallet, None)

    def has_client(self, wallet: str) -> bool:
        return bool(self._clients.get(wallet))

    async def notify(self, wallet: str, message_type: str, data: Dict[str, Any]) -> int:
        """Deliver to every callback of wallet; returns how many received it"""
        message = {"type": message_type, "data": data}
        delivered = 0
        for callback in list(self._clients.get(wallet, [])):
            try:
                result = callback(message)
                if asyncio.iscoroutine(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.warning(f"⚠️ Client callback failed for {wallet[:8]}...: {e}")
        if not delivered:
            logger.debug(f"No client listening for {message_type} on {wallet[:8]}...")
        return delivered
