"""
Chain RPC boundary - translates solana-py responses into plain values
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TokenAccountOpts, TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature

import config
from models import WalletToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureStatus:
    confirmation_status: Optional[str]
    err: Any = None

    @property
    def landed(self) -> bool:
        """Processed or better, without an execution error"""
        return self.confirmation_status in ("processed", "confirmed", "finalized") and self.err is None

    @property
    def confirmed(self) -> bool:
        return self.confirmation_status in ("confirmed", "finalized")


def is_rate_limited(error: Exception) -> bool:
    text = str(error).lower()
    return "429" in text or "too many requests" in text or "rate limit" in text


def _status_name(value) -> Optional[str]:
    # solders exposes an enum (TransactionConfirmationStatus.Confirmed), older clients a plain string
    if value is None:
        return None
    return str(value).split(".")[-1].lower()


def _parsed(account_data) -> Dict[str, Any]:
    parsed = getattr(account_data, "parsed", None)
    if parsed is None and isinstance(account_data, dict):
        parsed = account_data.get("parsed")
    return parsed if isinstance(parsed, dict) else {}


class ChainClient:
    """Thin async wrapper over the RPC node"""

    def __init__(self, rpc_url: str = None, client: AsyncClient = None):
        self.rpc_url = rpc_url or config.RPC_ENDPOINT
        self.client = client or AsyncClient(self.rpc_url, commitment=Confirmed, timeout=config.RPC_TIMEOUT)
        self._decimals_cache: Dict[str, int] = {}

    async def close(self):
        await self.client.close()

    async def get_signature_status(self, signature: str) -> Optional[SignatureStatus]:
        try:
            resp = await self.client.get_signature_statuses([Signature.from_string(signature)])
        except Exception as e:
            logger.debug(f"Status lookup failed for {signature[:16]}...: {e}")
            return None

        status = resp.value[0] if resp.value else None
        if status is None:
            return None
        return SignatureStatus(
            confirmation_status=_status_name(status.confirmation_status),
            err=status.err,
        )

    async def send_raw_transaction(self, raw_tx: bytes) -> Optional[str]:
        try:
            resp = await self.client.send_raw_transaction(
                raw_tx, opts=TxOpts(skip_preflight=False, preflight_commitment=Confirmed, max_retries=3)
            )
            return str(resp.value)
        except Exception as e:
            logger.warning(f"⚠️ Direct broadcast failed: {e}")
            return None

    async def get_token_balance(self, wallet: str, mint: str) -> Optional[float]:
        """UI balance of one mint, 0.0 when no account exists, None when the RPC call fails"""
        try:
            resp = await self.client.get_token_accounts_by_owner_json_parsed(
                Pubkey.from_string(wallet), TokenAccountOpts(mint=Pubkey.from_string(mint))
            )
        except Exception as e:
            logger.warning(f"⚠️ Token balance check failed for {mint[:8]}...: {e}")
            return None

        total = 0.0
        for account in resp.value or []:
            info = _parsed(account.account.data).get("info", {})
            amount = info.get("tokenAmount", {}).get("uiAmount")
            total += float(amount or 0)
        return total

    async def get_token_accounts(self, wallet: str, program_id: str) -> List[WalletToken]:
        """Raises on RPC failure so callers can decide about retries"""
        resp = await self.client.get_token_accounts_by_owner_json_parsed(
            Pubkey.from_string(wallet), TokenAccountOpts(program_id=Pubkey.from_string(program_id))
        )
        tokens = []
        for account in resp.value or []:
            info = _parsed(account.account.data).get("info", {})
            token_amount = info.get("tokenAmount", {})
            mint = info.get("mint")
            if not mint:
                continue
            tokens.append(WalletToken(
                mint=mint,
                balance=float(token_amount.get("uiAmount") or 0),
                decimals=int(token_amount.get("decimals") or 0),
                raw_amount=int(token_amount.get("amount") or 0),
            ))
        return tokens

    async def get_token_decimals(self, mint: str) -> Optional[int]:
        if mint in self._decimals_cache:
            return self._decimals_cache[mint]
        try:
            resp = await self.client.get_account_info_json_parsed(Pubkey.from_string(mint))
        except Exception as e:
            logger.debug(f"Mint info lookup failed for {mint[:8]}...: {e}")
            return None
        if resp.value is None:
            return None
        decimals = _parsed(resp.value.data).get("info", {}).get("decimals")
        if decimals is None:
            return None
        self._decimals_cache[mint] = int(decimals)
        return int(decimals)
