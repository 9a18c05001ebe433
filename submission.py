"""
Submission Engine - Jito relays with multi-endpoint fallback, direct RPC broadcast, on-chain confirmation.

The protected path is an ordered plan of strategies. Each strategy returns a
StrategyOutcome; the first one that says stop decides the result.
"""

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Awaitable, Callable, List, Optional, Union

import config
from jito_relay import JitoRelayClient, RelayOutcome
from wallet import transaction_signature

logger = logging.getLogger(__name__)


class ConfirmationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class StrategyOutcome:
    signature: Optional[str] = None
    should_continue: bool = True


CONTINUE = StrategyOutcome()

Strategy = Callable[[], Awaitable[StrategyOutcome]]


class SubmissionEngine:

    def __init__(self, chain, relay=None, endpoints: List[str] = None, relay_passes: int = None,
                 retry_delay: float = None, settle_delay: float = None,
                 confirm_timeout: float = None, poll_interval: float = None):
        self.chain = chain
        self.relay = relay or JitoRelayClient()
        if endpoints is None:
            endpoints = config.JITO_ENDPOINTS if config.JITO_ENABLED else []
        self.endpoints = list(endpoints)
        self.relay_passes = config.RELAY_PASSES if relay_passes is None else relay_passes
        self.retry_delay = config.RELAY_RETRY_DELAY if retry_delay is None else retry_delay
        self.settle_delay = config.RELAY_SETTLE_DELAY if settle_delay is None else settle_delay
        self.confirm_timeout = config.CONFIRM_TIMEOUT if confirm_timeout is None else confirm_timeout
        self.poll_interval = config.CONFIRM_POLL_INTERVAL if poll_interval is None else poll_interval

    async def submit(self, signed_tx: Union[bytes, str], mev_protection: bool = True) -> Optional[str]:
        """Send a signed transaction; returns its signature or None when every path failed"""
        raw = signed_tx if isinstance(signed_tx, bytes) else base64.b64decode(signed_tx)

        if not mev_protection or not self.endpoints:
            return await self.chain.send_raw_transaction(raw)

        own_signature = transaction_signature(raw)
        for strategy in self._protected_plan(raw, own_signature):
            outcome = await strategy()
            if not outcome.should_continue:
                return outcome.signature

        return None

    def _protected_plan(self, raw: bytes, own_signature: Optional[str]) -> List[Strategy]:
        tx_base64 = base64.b64encode(raw).decode('utf-8')
        plan: List[Strategy] = []
        for attempt in range(self.relay_passes):
            if attempt > 0:
                plan.append(self._pause_between_passes)
            plan.extend(
                partial(self._via_relay, endpoint, tx_base64, raw, own_signature)
                for endpoint in self.endpoints
            )
        plan.append(partial(self._via_direct, raw))
        plan.append(partial(self._via_landed_check, own_signature))
        return plan

    async def _pause_between_passes(self) -> StrategyOutcome:
        logger.info(f"All relays failed this pass, retrying in {self.retry_delay}s")
        await asyncio.sleep(self.retry_delay)
        return CONTINUE

    async def _via_relay(self, endpoint: str, tx_base64: str, raw: bytes,
                         own_signature: Optional[str]) -> StrategyOutcome:
        response = await self.relay.send(endpoint, tx_base64)

        if response.outcome == RelayOutcome.ALREADY_PROCESSED:
            if own_signature and await self.is_landed(own_signature):
                logger.info(f"✅ Relay reported already processed, verified on-chain: {own_signature[:16]}...")
                return StrategyOutcome(own_signature, False)
            return CONTINUE

        if response.outcome != RelayOutcome.ACCEPTED:
            return CONTINUE

        signature = response.signature or own_signature
        await asyncio.sleep(self.settle_delay)
        if await self.is_landed(signature):
            return StrategyOutcome(signature, False)

        # Not visible yet: race a direct broadcast of the same bytes
        direct = await self.chain.send_raw_transaction(raw)
        if direct:
            logger.info(f"Direct broadcast raced relay: {direct[:16]}...")
        return StrategyOutcome(direct or signature, False)

    async def _via_direct(self, raw: bytes) -> StrategyOutcome:
        logger.warning("⚠️ All relay endpoints failed, falling back to direct broadcast")
        signature = await self.chain.send_raw_transaction(raw)
        if signature:
            return StrategyOutcome(signature, False)
        return CONTINUE

    async def _via_landed_check(self, own_signature: Optional[str]) -> StrategyOutcome:
        if own_signature and await self.is_landed(own_signature):
            logger.info(f"✅ Transaction found on-chain after failed submissions: {own_signature[:16]}...")
            return StrategyOutcome(own_signature, False)
        logger.error("❌ Submission failed on every path")
        return StrategyOutcome(None, False)

    async def is_landed(self, signature: str) -> bool:
        status = await self.chain.get_signature_status(signature)
        return bool(status and status.landed)

    async def confirm(self, signature: str) -> ConfirmationOutcome:
        """Poll until confirmed/finalized, an execution error, or the timeout"""
        start = time.time()
        while time.time() - start < self.confirm_timeout:
            outcome = await self._check(signature)
            if outcome is not None:
                return outcome
            await asyncio.sleep(self.poll_interval)

        outcome = await self._check(signature)
        if outcome is not None:
            return outcome
        logger.warning(f"⏱️ Confirmation timed out for {signature[:16]}...")
        return ConfirmationOutcome.TIMEOUT

    async def _check(self, signature: str) -> Optional[ConfirmationOutcome]:
        status = await self.chain.get_signature_status(signature)
        if status is None:
            return None
        if status.err is not None:
            logger.error(f"❌ Transaction failed on-chain: {status.err}")
            return ConfirmationOutcome.FAILED
        if status.confirmed:
            return ConfirmationOutcome.CONFIRMED
        return None
