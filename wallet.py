"""
Wallet Management - server-held trading keypair and transaction signing
"""

import base58
import base64
import json
import logging
from typing import Optional

from solders.keypair import Keypair
from solders.signature import Signature
from solders.transaction import VersionedTransaction

import config
from errors import SigningUnavailableError

logger = logging.getLogger(__name__)


def load_keypair(private_key: str) -> Keypair:
    """Accept either a JSON byte array or a base58 secret key"""
    private_key = private_key.strip()
    if private_key.startswith('[') and private_key.endswith(']'):
        key_array = json.loads(private_key)
        return Keypair.from_bytes(bytes(key_array))
    return Keypair.from_bytes(base58.b58decode(private_key))


def transaction_signature(raw_tx: bytes) -> Optional[str]:
    """
    Signature of a signed transaction, read from its first signature slot.

    The fee payer's signature is the transaction id on Solana, so this is the
    exact id the relay or RPC would report. Unsigned slots are all zeroes and
    yield None.
    """
    try:
        tx = VersionedTransaction.from_bytes(raw_tx)
    except Exception as e:
        logger.warning(f"⚠️ Could not decode signed transaction: {e}")
        return None
    if not tx.signatures:
        return None
    signature = tx.signatures[0]
    if signature == Signature.default():
        return None
    return str(signature)


class WalletManager:
    """Holds the one keypair allowed to sign without the UI"""

    def __init__(self, private_key: str = None, keypair: Keypair = None):
        self.keypair = keypair
        if self.keypair is None:
            private_key = config.TRADING_WALLET_PRIVATE_KEY if private_key is None else private_key
            if private_key:
                try:
                    self.keypair = load_keypair(private_key)
                except Exception as e:
                    logger.error(f"❌ Failed to load trading wallet: {e}")
                    raise

        self.pubkey = self.keypair.pubkey() if self.keypair else None
        if self.pubkey:
            logger.info(f"✅ Trading wallet loaded: {self.pubkey}")
        else:
            logger.warning("⚠️ No trading wallet configured - every trade needs an external signature")

    @property
    def address(self) -> Optional[str]:
        return str(self.pubkey) if self.pubkey else None

    def can_auto_sign(self, wallet: str) -> bool:
        return self.pubkey is not None and wallet == str(self.pubkey)

    def sign_transaction(self, unsigned_tx_b64: str, wallet: str) -> bytes:
        """Sign a base64 v0 transaction built for wallet; returns the serialized signed bytes"""
        if not self.can_auto_sign(wallet):
            raise SigningUnavailableError(f"Wallet {wallet[:8]}... cannot be auto-signed")
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(unsigned_tx_b64))
        signed = VersionedTransaction(unsigned.message, [self.keypair])
        return bytes(signed)
