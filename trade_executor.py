"""
Trade Executor - order lifecycle around resolve -> sign -> submit -> confirm
"""

import logging
from typing import Optional, Tuple, Union

from errors import ExecutionFailedError, NoRouteError, SubmissionError
from models import Order, OrderStatus, TradeIntent, TradeResult
from submission import ConfirmationOutcome

logger = logging.getLogger(__name__)


class TradeExecutor:

    def __init__(self, store, resolver, submitter, wallet_manager, holdings=None):
        self.store = store
        self.resolver = resolver
        self.submitter = submitter
        self.wallet = wallet_manager
        self.holdings = holdings

    def can_auto_sign(self, wallet: str) -> bool:
        return self.wallet.can_auto_sign(wallet)

    async def prepare_trade(self, intent: TradeIntent, symbol: str = "",
                            token_decimals: Optional[int] = None) -> TradeResult:
        """Create a pending order and resolve an unsigned transaction for it"""
        order = await self.store.create_order(Order(
            wallet=intent.wallet,
            mint=intent.mint,
            side=intent.side,
            amount=intent.amount,
            slippage=intent.slippage_bps / 100,
            mev_protection=intent.mev_protection,
            symbol=symbol,
        ))

        try:
            swap = await self.resolver.resolve(intent, token_decimals)
        except NoRouteError as e:
            logger.warning(f"❌ No route for {intent.side.value} {intent.mint[:8]}...: {e}")
            await self.store.update_order(order.id, status=OrderStatus.FAILED, error=str(e))
            return TradeResult(success=False, order_id=order.id, error=str(e))

        await self.store.update_order(order.id, price=swap.price, venue=swap.venue)
        return TradeResult(
            success=True,
            order_id=order.id,
            unsigned_transaction=swap.unsigned_transaction,
            venue=swap.venue,
            requires_signature=True,
        )

    async def submit_signed_trade(self, order_id: str, signed_tx: Union[bytes, str],
                                  mev_protection: Optional[bool] = None) -> TradeResult:
        order = await self.store.get_order(order_id)
        if order is None:
            return TradeResult(success=False, order_id=order_id, error="Order not found")
        if order.status != OrderStatus.PENDING:
            return TradeResult(success=False, order_id=order_id, error=f"Order already {order.status.value}")

        protection = order.mev_protection if mev_protection is None else mev_protection
        try:
            signature, outcome = await self._land(signed_tx, protection)
        except SubmissionError as e:
            return await self._fail(order, str(e))
        except ExecutionFailedError as e:
            return await self._fail(order, str(e), e.signature)

        if outcome != ConfirmationOutcome.CONFIRMED:
            return await self._fail(order, "Transaction not confirmed in time", signature)

        await self.store.update_order(order.id, status=OrderStatus.CONFIRMED, tx_signature=signature)
        if self.holdings is not None:
            self.holdings.invalidate(order.wallet)
        logger.info(f"✅ {order.side.value.upper()} confirmed {order.mint[:8]}...: {signature[:16]}...")
        return TradeResult(success=True, order_id=order.id, signature=signature, venue=order.venue)

    async def _land(self, signed_tx, protection: bool) -> Tuple[str, ConfirmationOutcome]:
        signature = await self.submitter.submit(signed_tx, protection)
        if not signature:
            raise SubmissionError("Transaction submission failed")
        outcome = await self.submitter.confirm(signature)
        if outcome == ConfirmationOutcome.FAILED:
            raise ExecutionFailedError(signature)
        return signature, outcome

    async def execute_auto_trade(self, intent: TradeIntent, symbol: str = "",
                                 token_decimals: Optional[int] = None) -> TradeResult:
        """Resolve, sign with the trading wallet and submit"""
        if not self.can_auto_sign(intent.wallet):
            return TradeResult(success=False, requires_signature=True, error="Wallet cannot auto-sign")

        prepared = await self.prepare_trade(intent, symbol, token_decimals)
        if not prepared.success:
            return prepared

        try:
            signed = self.wallet.sign_transaction(prepared.unsigned_transaction, intent.wallet)
        except Exception as e:
            order = await self.store.get_order(prepared.order_id)
            return await self._fail(order, f"Signing failed: {e}")

        result = await self.submit_signed_trade(prepared.order_id, signed, intent.mev_protection)
        result.venue = prepared.venue
        return result

    async def _fail(self, order: Order, error: str, signature: Optional[str] = None) -> TradeResult:
        await self.store.update_order(order.id, status=OrderStatus.FAILED, error=error, tx_signature=signature)
        logger.error(f"❌ {order.side.value.upper()} {order.mint[:8]}... failed: {error}")
        return TradeResult(success=False, order_id=order.id, signature=signature, error=error)
