import httpx
import certifi
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import config


@dataclass(frozen=True)
class JupiterQuote:
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: float = 0.0
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


class JupiterAggregatorClient:
    def __init__(self, base_url: str = None, timeout: float = None,
                 priority_fee_lamports: int = 500000, compute_unit_price: int = 500000):
        self.base_url = (base_url or config.JUPITER_API_URL).rstrip("/")
        self.timeout = timeout or config.VENUE_TIMEOUT
        self.priority_fee_lamports = priority_fee_lamports
        self.compute_unit_price = compute_unit_price

    def _client(self):
        return httpx.AsyncClient(timeout=self.timeout, verify=certifi.where(), follow_redirects=True)

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: int = 100,
    ) -> Optional[JupiterQuote]:
        params = {
            "inputMint": input_mint,
            "outputMint": output_mint,
            "amount": amount,
            "slippageBps": slippage_bps,
            "swapMode": "ExactIn"
        }
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/quote", params=params)
            if response.status_code != 200:
                logging.warning(f"[JUPITER] Quote HTTP {response.status_code} - {response.text[:200]}")
                return None
            data = response.json()
            if not data or "outAmount" not in data:
                logging.info(f"[JUPITER] No route for {output_mint[:8]}...")
                return None
            return JupiterQuote(
                input_mint=data.get("inputMint", input_mint),
                output_mint=data.get("outputMint", output_mint),
                in_amount=int(data.get("inAmount") or amount),
                out_amount=int(data["outAmount"]),
                price_impact_pct=float(data.get("priceImpactPct") or 0),
                raw=data,
            )
        except Exception as e:
            logging.warning(f"[JUPITER] Quote error: {e}")
            return None

    async def get_swap_transaction(self, quote: JupiterQuote, user_pubkey: str,
                                   mev_protection: bool = True) -> Optional[str]:
        """Base64 unsigned swap transaction for the quote, or None"""
        body = {
            "quoteResponse": quote.raw,
            "userPublicKey": user_pubkey,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
        }
        if mev_protection:
            body["computeUnitPriceMicroLamports"] = self.compute_unit_price
        else:
            body["prioritizationFeeLamports"] = self.priority_fee_lamports
        try:
            async with self._client() as client:
                response = await client.post(f"{self.base_url}/swap", json=body)
            if response.status_code != 200:
                logging.warning(f"[JUPITER] Swap build HTTP {response.status_code} - {response.text[:200]}")
                return None
            swap_tx = response.json().get("swapTransaction")
            if not swap_tx:
                logging.warning("[JUPITER] Swap build returned no transaction")
                return None
            return swap_tx
        except Exception as e:
            logging.warning(f"[JUPITER] Swap build error: {e}")
            return None
