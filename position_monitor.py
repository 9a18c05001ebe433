"""
Position Monitor - polls active positions and sells on target or stop-loss.

All sells, whether triggered here, by the batch liquidator or manually, go
through execute_sell so there is exactly one place that mutates a position on
exit.
"""

import asyncio
import logging
from typing import Optional, Set

import config
from models import (
    AutoTradeEvent, AutoTradePosition, EventKind, PositionStatus, Side,
    TradeIntent, TradeResult, TradingSettings,
)

logger = logging.getLogger(__name__)


def realized_pnl_percent(position: AutoTradePosition, exit_market_cap: Optional[float]) -> Optional[float]:
    if not exit_market_cap or not position.entry_market_cap:
        return None
    return (exit_market_cap / position.entry_market_cap - 1) * 100


class PositionMonitor:

    def __init__(self, store, executor, chain, market_data, channel,
                 notifier=None, trade_logger=None, interval: float = None):
        self.store = store
        self.executor = executor
        self.chain = chain
        self.market_data = market_data
        self.channel = channel
        self.notifier = notifier
        self.trade_logger = trade_logger
        self.interval = config.MONITOR_INTERVAL if interval is None else interval
        self.running = False
        self._task: Optional[asyncio.Task] = None
        self._selling: Set[str] = set()

    def start(self):
        if self._task and not self._task.done():
            return
        self.running = True
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"👀 Position monitor started ({self.interval}s interval)")

    async def stop(self):
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Position monitor stopped")

    async def _loop(self):
        while self.running:
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(f"❌ Monitor cycle error: {e}")
            await asyncio.sleep(self.interval)

    async def run_cycle(self):
        for wallet in await self.store.auto_trade_enabled_wallets():
            settings = await self.store.get_settings(wallet)
            if not settings.auto_trade_enabled:
                continue
            for position in await self.store.list_positions(wallet, PositionStatus.ACTIVE):
                try:
                    await self.evaluate_position(position, settings)
                except Exception as e:
                    logger.error(f"❌ Error evaluating {position.symbol}: {e}")
                    await self.record_event(wallet, EventKind.ERROR, f"Error evaluating {position.symbol}: {e}",
                                            position=position)

    async def evaluate_position(self, position: AutoTradePosition, settings: TradingSettings) -> str:
        """Returns what happened: closed, skipped, hold, target_hit or stop_loss"""
        balance = await self.chain.get_token_balance(position.wallet, position.mint)
        if balance is not None and balance <= 0:
            await self.close_vanished(position)
            return "closed"

        reading = await self.market_data.get_reading(position.mint)
        if reading is None:
            logger.debug(f"No market data for {position.symbol}, skipping this cycle")
            return "skipped"

        current = reading.market_cap
        if current >= position.target_market_cap:
            message = (f"Target hit for {position.symbol}: ${current:,.0f} >= "
                       f"${position.target_market_cap:,.0f} ({reading.source})")
            logger.info(f"🎯 {message}")
            await self.record_event(position.wallet, EventKind.SELL_ATTEMPT, message, position=position,
                                    details={"reason": "target_hit", "market_cap": current})
            await self.execute_sell(position, "target_hit", settings=settings, market_cap=current)
            return "target_hit"

        if current <= position.stop_loss_market_cap:
            message = (f"Stop loss for {position.symbol}: ${current:,.0f} <= "
                       f"${position.stop_loss_market_cap:,.0f} ({reading.source})")
            logger.info(f"🛑 {message}")
            await self.record_event(position.wallet, EventKind.STOP_LOSS, message, position=position,
                                    details={"reason": "stop_loss", "market_cap": current})
            await self.execute_sell(position, "stop_loss", settings=settings, market_cap=current)
            return "stop_loss"

        return "hold"

    async def execute_sell(
        self,
        position: AutoTradePosition,
        reason: str,
        settings: TradingSettings = None,
        market_cap: Optional[float] = None,
        slippage_bps: Optional[int] = None,
        mev_protection: Optional[bool] = None,
        sell_percent: float = 100,
        signal_client: bool = True,
    ) -> TradeResult:
        """Sell sell_percent of the wallet's balance for position"""
        if position.id in self._selling:
            return TradeResult(success=False, error="Sell already in progress")

        self._selling.add(position.id)
        try:
            return await self._execute_sell(position, reason, settings, market_cap, slippage_bps,
                                            mev_protection, sell_percent, signal_client)
        finally:
            self._selling.discard(position.id)

    async def _execute_sell(self, position, reason, settings, market_cap, slippage_bps,
                            mev_protection, sell_percent, signal_client) -> TradeResult:
        current = await self.store.get_position(position.id)
        if current is None or current.status != PositionStatus.ACTIVE:
            return TradeResult(success=False, error="Position is not active")
        position = current
        settings = settings or await self.store.get_settings(position.wallet)

        if not self.executor.can_auto_sign(position.wallet):
            if signal_client:
                await self.channel.notify(position.wallet, "auto_trade_sell_signal", {
                    "position_id": position.id,
                    "mint": position.mint,
                    "symbol": position.symbol,
                    "reason": reason,
                    "market_cap": market_cap,
                })
            return TradeResult(success=False, requires_signature=True, error="Wallet cannot auto-sign")

        balance = await self.chain.get_token_balance(position.wallet, position.mint)
        if balance is None:
            await self.record_event(position.wallet, EventKind.SELL_FAILED,
                                    f"Sell {position.symbol} failed: could not read token balance",
                                    position=position, details={"reason": reason})
            return TradeResult(success=False, error="Could not read token balance")
        if balance <= 0:
            await self.close_vanished(position)
            return TradeResult(success=False, error="No tokens to sell")

        decimals = await self.chain.get_token_decimals(position.mint)
        if decimals is None:
            decimals = config.DEFAULT_TOKEN_DECIMALS

        if slippage_bps is None:
            slippage_bps = max(int(settings.default_slippage * 100), config.AUTO_SELL_MIN_SLIPPAGE_BPS)
        protection = settings.mev_protection if mev_protection is None else mev_protection
        sell_fraction = min(max(sell_percent, 0), 100) / 100

        intent = TradeIntent(
            wallet=position.wallet,
            mint=position.mint,
            side=Side.SELL,
            amount=balance * sell_fraction,
            slippage_bps=slippage_bps,
            mev_protection=protection,
        )
        result = await self.executor.execute_auto_trade(intent, position.symbol, decimals)

        if not result.success:
            await self.record_event(position.wallet, EventKind.SELL_FAILED,
                                    f"Sell {position.symbol} failed: {result.error}",
                                    position=position, details={"reason": reason, "order_id": result.order_id})
            return result

        if sell_fraction < 1:
            await self.store.update_position(position.id, token_amount=balance - intent.amount)
            await self.record_event(position.wallet, EventKind.SELL_SUCCESS,
                                    f"Sold {sell_percent:.0f}% of {position.symbol}", position=position,
                                    details={"reason": reason, "signature": result.signature})
            return result

        if market_cap is None:
            reading = await self.market_data.get_reading(position.mint)
            market_cap = reading.market_cap if reading else None
        await self.close_sold(position, result.signature, market_cap, reason)
        return result

    async def close_sold(self, position: AutoTradePosition, signature: str,
                         exit_market_cap: Optional[float], reason: str):
        pnl = realized_pnl_percent(position, exit_market_cap)
        closed = await self.store.update_position(
            position.id, status=PositionStatus.SOLD, sell_tx_signature=signature, pnl_percent=pnl
        )
        pnl_text = f" ({pnl:+.1f}%)" if pnl is not None else ""
        message = f"Sold {position.symbol}{pnl_text} - {reason.replace('_', ' ')}"
        await self.record_event(position.wallet, EventKind.SELL_SUCCESS, message, position=position,
                                details={"reason": reason, "signature": signature, "pnl_percent": pnl})
        logger.info(f"💰 {message}")

        if self.trade_logger is not None and closed is not None:
            self.trade_logger.log_trade(closed, exit_market_cap, reason)
        if self.notifier is not None:
            await self.notifier.notify_sell(closed or position, reason, pnl)

    async def close_vanished(self, position: AutoTradePosition):
        """Token left the wallet some other way; close without a sell transaction"""
        logger.info(f"{position.symbol} has 0 balance - removing from monitoring")
        await self.store.update_position(position.id, status=PositionStatus.SOLD)
        await self.record_event(position.wallet, EventKind.SELL_SUCCESS,
                                f"{position.symbol} removed (0 balance)", position=position,
                                details={"reason": "balance_vanished"})

    async def record_event(self, wallet: str, kind: EventKind, message: str,
                           position: AutoTradePosition = None, details: dict = None):
        await self.store.append_event(AutoTradeEvent(
            wallet=wallet,
            kind=kind,
            message=message,
            mint=position.mint if position else None,
            symbol=position.symbol if position else None,
            details=details or {},
        ))
        if kind == EventKind.ERROR and self.notifier is not None:
            await self.notifier.notify_error("Position monitor", message)
