"""
PumpPortal Trader
Builds unsigned bonding-curve trades through PumpPortal's trade-local endpoint
"""

import aiohttp
import asyncio
import base64
import json
import logging
from typing import Optional

import config

logger = logging.getLogger(__name__)


class PumpPortalTrader:
    """Bonding-curve venue: raw SOL/token amounts in, unsigned transaction out"""

    def __init__(self, api_url: str = None, priority_fee: float = None, timeout: float = None):
        self.api_url = api_url or config.PUMPPORTAL_API_URL
        self.priority_fee = config.PUMPPORTAL_PRIORITY_FEE if priority_fee is None else priority_fee
        self.timeout = timeout or config.VENUE_TIMEOUT

    async def build_trade(
        self,
        signer: str,
        action: str,
        mint: str,
        amount: float,
        slippage_pct: float,
        priority_fee: Optional[float] = None,
    ) -> Optional[str]:
        """
        Request a trade transaction. Buys are denominated in SOL, sells in tokens.
        Returns the base64 unsigned transaction, or None on any failure.
        """
        payload = {
            "publicKey": signer,
            "action": action,
            "mint": mint,
            "denominatedInSol": "true" if action == "buy" else "false",
            "amount": amount,
            "slippage": slippage_pct,
            "priorityFee": self.priority_fee if priority_fee is None else priority_fee,
            "pool": "pump"
        }

        logger.info(f"Requesting {action} transaction for {mint[:8]}... amount: {amount}, slippage: {slippage_pct}%")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.api_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"PumpPortal API error ({response.status}): {error_text[:200]}")
                        return None

                    content_type = response.headers.get('content-type', '')

                    if 'application/json' in content_type:
                        data = json.loads(await response.text())
                        tx_base64 = data.get("transaction") if isinstance(data, dict) else None
                        if not tx_base64:
                            logger.error("No transaction field in JSON response")
                            return None
                        return tx_base64

                    raw_tx_bytes = await response.read()
                    if not raw_tx_bytes:
                        logger.error("Empty transaction from PumpPortal")
                        return None
                    logger.debug(f"Received raw binary transaction ({len(raw_tx_bytes)} bytes)")
                    return base64.b64encode(raw_tx_bytes).decode('utf-8')

        except asyncio.TimeoutError:
            logger.warning(f"⚠️ PumpPortal timeout for {mint[:8]}...")
            return None
        except Exception as e:
            logger.error(f"PumpPortal request failed: {e}")
            return None
