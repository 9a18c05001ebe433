"""
Auto Trader - candidate evaluation, queued buys, manual trades and lifecycle status.

Owns the per-process state that is not persisted: the trade queue, pending
manual approvals and the set of buys in flight. Everything durable goes
through the position store.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Set, Union

import config
from errors import PositionConflictError
from models import (
    AutoTradeEvent, AutoTradePosition, Candidate, EventKind, PendingTrade,
    PositionStatus, Side, TokenFilter, TradeIntent, TradeResult, TradingSettings,
    compute_exit_bounds, token_key,
)
from token_filter import passes, passes_baseline
from trade_queue import QueuedBuy, TradeQueue

logger = logging.getLogger(__name__)


class AutoTrader:

    def __init__(self, store, executor, chain, holdings, monitor, liquidator, cooldown, feed,
                 channel, market_data, notifier=None, min_trade_interval: float = None,
                 dedup_window: float = None):
        self.store = store
        self.executor = executor
        self.chain = chain
        self.holdings = holdings
        self.monitor = monitor
        self.liquidator = liquidator
        self.cooldown = cooldown
        self.feed = feed
        self.channel = channel
        self.market_data = market_data
        self.notifier = notifier

        self.queue = TradeQueue(store, cooldown, self._execute_queued_buy,
                                min_trade_interval=min_trade_interval, dedup_window=dedup_window)
        self.pending_trades: Dict[str, PendingTrade] = {}
        self.skip_reasons = Counter()
        self._buys_in_flight: Set[str] = set()

        cooldown.add_discard_listener(self.queue.clear)
        cooldown.add_scanning_listener(feed.set_active)
        feed.on_new_candidate(self.process_candidate)

    # ============================================
    # LIFECYCLE
    # ============================================

    async def start(self, scanning: bool = True):
        self.monitor.start()
        if scanning:
            self.cooldown.enable()
        wallets = await self.store.auto_trade_enabled_wallets()
        logger.info(f"🚀 Auto trader started ({len(wallets)} wallets enabled)")

    async def stop(self):
        self.cooldown.disable()
        self.cooldown.close()
        await self.queue.close()
        await self.monitor.stop()
        logger.info("Auto trader stopped")

    async def set_auto_trade(self, wallet: str, enabled: bool) -> TradingSettings:
        settings = await self.store.update_settings(wallet, auto_trade_enabled=enabled)
        logger.info(f"Auto trading {'enabled' if enabled else 'disabled'} for {wallet[:8]}...")
        if not enabled:
            self.queue.discard_wallet(wallet)
        return settings

    def enable_scanner(self):
        self.cooldown.enable()

    def disable_scanner(self):
        self.cooldown.disable()

    def scanner_status(self) -> dict:
        return self.cooldown.status()

    async def get_settings(self, wallet: str) -> TradingSettings:
        return await self.store.get_settings(wallet)

    async def update_settings(self, wallet: str, **changes) -> TradingSettings:
        return await self.store.update_settings(wallet, **changes)

    async def get_filter(self, wallet: str) -> TokenFilter:
        return await self.store.get_filter(wallet)

    async def update_filter(self, wallet: str, **changes) -> TokenFilter:
        return await self.store.update_filter(wallet, **changes)

    async def reset_filter(self, wallet: str) -> TokenFilter:
        return await self.store.reset_filter(wallet)

    # ============================================
    # CANDIDATE EVALUATION
    # ============================================

    async def process_candidate(self, candidate: Candidate):
        for wallet in await self.store.auto_trade_enabled_wallets():
            try:
                await self.evaluate_candidate(candidate, wallet)
            except Exception as e:
                logger.error(f"❌ Error evaluating {candidate.symbol} for {wallet[:8]}...: {e}")
                await self._event(wallet, EventKind.ERROR, f"Error evaluating {candidate.symbol}: {e}",
                                  mint=candidate.mint, symbol=candidate.symbol)

    async def evaluate_candidate(self, candidate: Candidate, wallet: str) -> str:
        """Decide whether candidate becomes a buy for wallet; returns the outcome or skip reason"""
        key = token_key(wallet, candidate.mint)

        if self.cooldown.is_in_cooldown:
            return self._skip("cooldown")
        if await self.store.is_blacklisted(wallet, candidate.mint):
            return self._skip("blacklisted")
        if self.queue.is_recently_processed(key):
            return self._skip("recently_processed")
        if any(token_key(p.wallet, p.mint) == key for p in self.pending_trades.values()):
            return self._skip("already_pending")

        settings = await self.store.get_settings(wallet)
        if not settings.auto_trade_enabled:
            return self._skip("disabled")

        token_filter = await self.store.get_filter(wallet)
        if token_filter.enabled:
            if not passes(candidate, token_filter):
                return self._skip("filter")
        elif not passes_baseline(candidate):
            return self._skip("baseline")

        active = await self.store.list_positions(wallet, PositionStatus.ACTIVE)
        if len(active) >= settings.max_concurrent_positions:
            return self._skip("max_positions")
        if any(p.mint == candidate.mint for p in active):
            return self._skip("active_position")

        holdings = await self.holdings.get_holdings(wallet)
        if any(t.mint == candidate.mint and t.balance > 0 for t in holdings):
            return self._skip("already_held")

        target, stop = compute_exit_bounds(candidate.market_cap, settings)
        self.queue.mark_processed(key)

        if self.executor.can_auto_sign(wallet):
            queued = self.queue.enqueue(QueuedBuy(
                intent=self._buy_intent(wallet, candidate.mint, settings),
                candidate=candidate,
                entry_market_cap=candidate.market_cap,
                target_market_cap=target,
                stop_loss_market_cap=stop,
                max_positions=settings.max_concurrent_positions,
            ))
            return "queued" if queued else self._skip("already_queued")

        pending = PendingTrade(
            wallet=wallet,
            mint=candidate.mint,
            symbol=candidate.symbol,
            name=candidate.name,
            amount_sol=settings.auto_buy_amount_sol,
            market_cap=candidate.market_cap,
            target_market_cap=target,
            stop_loss_market_cap=stop,
        )
        self.pending_trades[pending.id] = pending
        await self._event(wallet, EventKind.BUY_ATTEMPT, f"Pending approval: {candidate.symbol}",
                          mint=candidate.mint, symbol=candidate.symbol,
                          details={"pending_trade_id": pending.id, "market_cap": candidate.market_cap})
        await self.channel.notify(wallet, "pending_trade", {
            "id": pending.id,
            "mint": pending.mint,
            "symbol": pending.symbol,
            "amount_sol": pending.amount_sol,
            "market_cap": pending.market_cap,
            "target_market_cap": target,
            "stop_loss_market_cap": stop,
        })
        return "pending_approval"

    def _skip(self, reason: str) -> str:
        self.skip_reasons[reason] += 1
        return reason

    def _buy_intent(self, wallet: str, mint: str, settings: TradingSettings,
                    amount_sol: Optional[float] = None) -> TradeIntent:
        return TradeIntent(
            wallet=wallet,
            mint=mint,
            side=Side.BUY,
            amount=settings.auto_buy_amount_sol if amount_sol is None else amount_sol,
            slippage_bps=int(settings.default_slippage * 100) or config.DEFAULT_BUY_SLIPPAGE_BPS,
            mev_protection=settings.mev_protection,
            priority_fee=settings.priority_fee,
        )

    async def _execute_queued_buy(self, item: QueuedBuy):
        intent, candidate = item.intent, item.candidate
        wallet = intent.wallet
        key = item.key

        if key in self._buys_in_flight or await self.store.is_blacklisted(wallet, intent.mint):
            return

        self._buys_in_flight.add(key)
        try:
            await self._event(wallet, EventKind.BUY_ATTEMPT,
                              f"Buying {candidate.symbol} for {intent.amount} SOL",
                              mint=intent.mint, symbol=candidate.symbol,
                              details={"market_cap": candidate.market_cap})
            result = await self.executor.execute_auto_trade(intent, candidate.symbol)
            if not result.success:
                await self._event(wallet, EventKind.BUY_FAILED, f"Buy {candidate.symbol} failed: {result.error}",
                                  mint=intent.mint, symbol=candidate.symbol,
                                  details={"order_id": result.order_id})
                return
            await self._open_position(
                wallet, intent.mint, candidate.symbol, candidate.name, intent.amount, result,
                item.entry_market_cap, item.target_market_cap, item.stop_loss_market_cap,
            )
        except Exception as e:
            logger.error(f"❌ Auto buy error for {candidate.symbol}: {e}")
            await self._event(wallet, EventKind.ERROR, f"Auto buy error for {candidate.symbol}: {e}",
                              mint=intent.mint, symbol=candidate.symbol)
        finally:
            self._buys_in_flight.discard(key)

    async def _open_position(self, wallet: str, mint: str, symbol: str, name: str, amount_sol: float,
                             result: TradeResult, entry_market_cap: float, target_market_cap: float,
                             stop_loss_market_cap: float) -> Optional[AutoTradePosition]:
        """Record a confirmed buy: position, event, blacklist, cooldown, notifications"""
        order = await self.store.get_order(result.order_id) if result.order_id else None
        token_amount = await self.chain.get_token_balance(wallet, mint)

        position = None
        try:
            position = await self.store.create_position(AutoTradePosition(
                wallet=wallet,
                mint=mint,
                symbol=symbol,
                name=name,
                entry_price=order.price if order else 0.0,
                entry_market_cap=entry_market_cap,
                target_market_cap=target_market_cap,
                stop_loss_market_cap=stop_loss_market_cap,
                amount_sol=amount_sol,
                token_amount=token_amount or 0.0,
                buy_tx_signature=result.signature,
            ))
        except PositionConflictError as e:
            await self._event(wallet, EventKind.ERROR, f"Bought {symbol} but could not track it: {e}",
                              mint=mint, symbol=symbol, details={"signature": result.signature})

        await self.store.blacklist_token(wallet, mint)
        self.cooldown.start()

        if position is None:
            return None

        await self._event(wallet, EventKind.BUY_SUCCESS, f"Bought {symbol} for {amount_sol} SOL",
                          mint=mint, symbol=symbol,
                          details={"signature": result.signature, "venue": result.venue,
                                   "entry_market_cap": entry_market_cap,
                                   "target_market_cap": target_market_cap,
                                   "stop_loss_market_cap": stop_loss_market_cap})
        await self.channel.notify(wallet, "auto_trade_executed", {
            "position_id": position.id,
            "mint": mint,
            "symbol": symbol,
            "amount_sol": amount_sol,
            "signature": result.signature,
        })
        if self.notifier is not None:
            await self.notifier.notify_buy(position)
        logger.info(f"✅ Position opened: {symbol} | entry ${entry_market_cap:,.0f} | "
                    f"target ${target_market_cap:,.0f} | stop ${stop_loss_market_cap:,.0f}")
        return position

    # ============================================
    # MANUAL TRADES
    # ============================================

    async def execute_buy(self, wallet: str, mint: str, amount_sol: Optional[float] = None,
                          signed_transaction: Union[bytes, str, None] = None,
                          order_id: Optional[str] = None) -> TradeResult:
        """
        Manual buy. Without a signed transaction the trading wallet signs it,
        or, for any other wallet, the unsigned transaction is returned for the
        client to sign and send back with its order id.
        """
        settings = await self.store.get_settings(wallet)
        candidate = await self.store.get_candidate(mint)
        market_cap = candidate.market_cap if candidate else 0.0
        if market_cap <= 0:
            reading = await self.market_data.get_reading(mint)
            market_cap = reading.market_cap if reading else 0.0
        if market_cap <= 0:
            return TradeResult(success=False, error="No market data for token")

        target, stop = compute_exit_bounds(market_cap, settings)
        return await self._buy(
            wallet, mint,
            candidate.symbol if candidate else mint[:8],
            candidate.name if candidate else "",
            self._buy_intent(wallet, mint, settings, amount_sol),
            market_cap, target, stop, signed_transaction, order_id,
        )

    async def _buy(self, wallet, mint, symbol, name, intent: TradeIntent, entry_market_cap,
                   target, stop, signed_transaction, order_id) -> TradeResult:
        key = token_key(wallet, mint)
        if await self.store.is_blacklisted(wallet, mint):
            return TradeResult(success=False, error="Token already traded by this wallet")
        if await self.store.get_active_position(wallet, mint):
            return TradeResult(success=False, error="Active position already exists")
        if key in self._buys_in_flight:
            return TradeResult(success=False, error="Trade already in progress")

        self._buys_in_flight.add(key)
        try:
            amount_sol = intent.amount
            if signed_transaction is not None:
                if not order_id:
                    return TradeResult(success=False, error="order_id is required with a signed transaction")
                order = await self.store.get_order(order_id)
                if order is None or order.wallet != wallet or order.mint != mint or order.side != Side.BUY:
                    return TradeResult(success=False, order_id=order_id, error="Order does not match this buy")
                amount_sol = order.amount
                result = await self.executor.submit_signed_trade(order_id, signed_transaction)
            elif self.executor.can_auto_sign(wallet):
                result = await self.executor.execute_auto_trade(intent, symbol)
            else:
                return await self.executor.prepare_trade(intent, symbol)

            if not result.success:
                await self._event(wallet, EventKind.BUY_FAILED, f"Buy {symbol} failed: {result.error}",
                                  mint=mint, symbol=symbol, details={"order_id": result.order_id})
                return result

            await self._open_position(wallet, mint, symbol, name, amount_sol, result,
                                      entry_market_cap, target, stop)
            return result
        finally:
            self._buys_in_flight.discard(key)

    async def approve_pending_trade(self, trade_id: str, signed_transaction: Union[bytes, str, None] = None,
                                    order_id: Optional[str] = None) -> TradeResult:
        pending = self.pending_trades.get(trade_id)
        if pending is None:
            return TradeResult(success=False, error="Pending trade not found")

        settings = await self.store.get_settings(pending.wallet)
        result = await self._buy(
            pending.wallet, pending.mint, pending.symbol, pending.name,
            self._buy_intent(pending.wallet, pending.mint, settings, pending.amount_sol),
            pending.market_cap, pending.target_market_cap, pending.stop_loss_market_cap,
            signed_transaction, order_id,
        )
        if result.success and not result.requires_signature:
            self.pending_trades.pop(trade_id, None)
        return result

    def reject_pending_trade(self, trade_id: str) -> bool:
        return self.pending_trades.pop(trade_id, None) is not None

    def get_pending_trades(self, wallet: str) -> List[PendingTrade]:
        return [p for p in self.pending_trades.values() if p.wallet == wallet]

    async def execute_sell(self, wallet: str, position_id: str, sell_percent: float = 100,
                           signed_transaction: Union[bytes, str, None] = None,
                           order_id: Optional[str] = None) -> TradeResult:
        position = await self.store.get_position(position_id)
        if position is None or position.wallet != wallet:
            return TradeResult(success=False, error="Position not found")
        if position.status != PositionStatus.ACTIVE:
            return TradeResult(success=False, error=f"Position is {position.status.value}")

        if signed_transaction is not None:
            if not order_id:
                return TradeResult(success=False, error="order_id is required with a signed transaction")
            order = await self.store.get_order(order_id)
            if order is None or order.wallet != wallet or order.mint != position.mint or order.side != Side.SELL:
                return TradeResult(success=False, order_id=order_id, error="Order does not match this sell")
            result = await self.executor.submit_signed_trade(order_id, signed_transaction)
            if not result.success:
                await self._event(wallet, EventKind.SELL_FAILED, f"Sell {position.symbol} failed: {result.error}",
                                  mint=position.mint, symbol=position.symbol)
                return result
            if sell_percent >= 100:
                reading = await self.market_data.get_reading(position.mint)
                await self.monitor.close_sold(position, result.signature,
                                              reading.market_cap if reading else None, "manual_sell")
            return result

        if self.executor.can_auto_sign(wallet):
            return await self.monitor.execute_sell(
                position, "manual_sell", slippage_bps=config.DEFAULT_SELL_SLIPPAGE_BPS,
                sell_percent=sell_percent, signal_client=False,
            )

        balance = await self.chain.get_token_balance(wallet, position.mint)
        if not balance:
            return TradeResult(success=False, error="No tokens to sell")
        decimals = await self.chain.get_token_decimals(position.mint)
        settings = await self.store.get_settings(wallet)
        intent = TradeIntent(
            wallet=wallet,
            mint=position.mint,
            side=Side.SELL,
            amount=balance * min(max(sell_percent, 0), 100) / 100,
            slippage_bps=config.DEFAULT_SELL_SLIPPAGE_BPS,
            mev_protection=settings.mev_protection,
        )
        return await self.executor.prepare_trade(intent, position.symbol, decimals)

    # ============================================
    # LIQUIDATION
    # ============================================

    async def execute_instant_sell(self, position_id: str, slippage_bps: int = None) -> TradeResult:
        return await self.liquidator.instant_sell(position_id, slippage_bps)

    async def force_stop_all(self, wallet: str) -> int:
        """Stop tracking every active position without selling"""
        stopped = 0
        for position in await self.store.list_positions(wallet, PositionStatus.ACTIVE):
            await self.store.update_position(position.id, status=PositionStatus.STOPPED)
            stopped += 1
        for trade_id in [p.id for p in self.get_pending_trades(wallet)]:
            self.pending_trades.pop(trade_id, None)
        self.queue.discard_wallet(wallet)
        logger.info(f"🛑 Force stopped {stopped} positions for {wallet[:8]}...")
        return stopped

    async def sell_all_positions(self, wallet: str, slippage_bps: int = None):
        return await self.liquidator.sell_all_positions(wallet, slippage_bps)

    async def batch_sell_positions(self, wallet: str, batch_size: int = None, slippage_bps: int = None,
                                   delay: float = None, on_progress=None):
        return await self.liquidator.batch_sell_positions(wallet, batch_size, slippage_bps, delay, on_progress)

    async def batch_sell_wallet_holdings(self, wallet: str, batch_size: int = None, slippage_bps: int = None,
                                         delay: float = None, on_progress=None):
        return await self.liquidator.batch_sell_wallet_holdings(wallet, batch_size, slippage_bps, delay,
                                                                on_progress)

    # ============================================
    # STATUS
    # ============================================

    async def get_status(self, wallet: str) -> dict:
        settings = await self.store.get_settings(wallet)
        active = await self.store.list_positions(wallet, PositionStatus.ACTIVE)
        events = await self.store.list_events(wallet)

        total_buys = sum(1 for e in events if e.kind == EventKind.BUY_SUCCESS)
        total_sells = sum(
            1 for e in events
            if e.kind == EventKind.SELL_SUCCESS and e.mint and e.details.get("reason") != "balance_vanished"
        )
        pending = len(self.get_pending_trades(wallet)) + len(self.queue.pending_for(wallet))

        return {
            "enabled": settings.auto_trade_enabled,
            "active_positions": len(active),
            "pending_buys": pending,
            "total_buys": total_buys,
            "total_sells": total_sells,
            "last_activity": events[0].message if events else None,
            "last_activity_at": events[0].created_at if events else None,
            "cooldown": self.cooldown.status(),
        }

    async def get_events(self, wallet: str, limit: int = 50) -> List[AutoTradeEvent]:
        return await self.store.list_events(wallet, limit)

    async def get_active_positions(self, wallet: str) -> List[AutoTradePosition]:
        return await self.store.list_positions(wallet, PositionStatus.ACTIVE)

    def register_client(self, wallet: str, callback):
        self.channel.register(wallet, callback)

    def unregister_client(self, wallet: str, callback=None):
        self.channel.unregister(wallet, callback)

    async def _event(self, wallet: str, kind: EventKind, message: str, mint: str = None,
                     symbol: str = None, details: dict = None):
        await self.store.append_event(AutoTradeEvent(
            wallet=wallet, kind=kind, message=message, mint=mint, symbol=symbol, details=details or {},
        ))
        if kind == EventKind.ERROR and self.notifier is not None:
            await self.notifier.notify_error("Auto trader", message)
