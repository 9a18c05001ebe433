
"""
Telegram notifications for the auto trader
"""

import asyncio
import logging
import time
from typing import Optional

import aiohttp

import config

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends HTML alerts to one chat; silent when credentials are missing"""

    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None):
        self.token = token if token is not None else config.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else config.TELEGRAM_CHAT_ID
        self.enabled = bool(self.token and self.chat_id)
        self.base_url = f"https://api.telegram.org/bot{self.token}"
        self.last_message_time = 0.0
        self.min_interval = 0.5
        self.max_attempts = 2

        if self.enabled:
            logger.info("✅ Telegram notifications enabled")

    async def send_message(self, text: str, parse_mode: str = "HTML"):
        if not self.enabled:
            return

        wait = self.min_interval - (time.time() - self.last_message_time)
        if wait > 0:
            await asyncio.sleep(wait)

        payload = {'chat_id': self.chat_id, 'text': text[:4096], 'parse_mode': parse_mode}
        try:
            async with aiohttp.ClientSession() as session:
                for attempt in range(self.max_attempts):
                    status, retry_after, body = await self._post(session, payload)
                    if status == 200:
                        return
                    if status != 429 or attempt == self.max_attempts - 1:
                        logger.error(f"Telegram send failed ({status}): {body[:200]}")
                        return
                    logger.warning(f"Telegram rate limited, retrying in {retry_after}s")
                    await asyncio.sleep(retry_after)
        except Exception as e:
            logger.error(f"Telegram send error: {e}")

    async def _post(self, session, payload):
        async with session.post(f"{self.base_url}/sendMessage", json=payload,
                                timeout=aiohttp.ClientTimeout(total=10)) as resp:
            self.last_message_time = time.time()
            retry_after = int(resp.headers.get('Retry-After', 5))
            return resp.status, retry_after, await resp.text()

    async def notify_buy(self, position):
        message = f"""
<b>🟢 AUTO BUY</b>
Token: {position.symbol} <code>{position.mint[:16]}...</code>
Amount: {position.amount_sol} SOL
Entry MC: ${position.entry_market_cap:,.0f}
Target: ${position.target_market_cap:,.0f} | Stop: ${position.stop_loss_market_cap:,.0f}
<a href="https://solscan.io/tx/{position.buy_tx_signature}">View TX</a>
        """
        await self.send_message(message)

    async def notify_sell(self, position, reason: str, pnl_percent: Optional[float]):
        emoji = "💰" if (pnl_percent or 0) > 0 else "🔴"
        pnl_line = f"P&L: {pnl_percent:+.1f}%" if pnl_percent is not None else "P&L: n/a"

        message = f"""
<b>{emoji} SELL EXECUTED</b>
Token: {position.symbol} <code>{position.mint[:16]}...</code>
{pnl_line}
Reason: {reason.replace('_', ' ')}
        """
        await self.send_message(message)

    async def notify_error(self, error_type: str, details: str):
        message = f"""
<b>⚠️ ERROR ALERT</b>
Type: {error_type}
Details: {details}
        """
        await self.send_message(message)
