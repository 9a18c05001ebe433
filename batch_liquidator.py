"""
Batch Liquidator - instant, sequential and batched exits for positions and raw wallet holdings
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

import config
from models import (
    BatchItemOutcome, BatchSellResult, EventKind, PositionStatus,
    Side, TradeIntent, TradeResult, WalletToken,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ProgressCallback = Callable[[int, int, int, int], None]


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    size = max(1, int(size))
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchLiquidator:

    def __init__(self, store, executor, chain, monitor, holdings):
        self.store = store
        self.executor = executor
        self.chain = chain
        self.monitor = monitor
        self.holdings = holdings

    async def instant_sell(self, position_id: str, slippage_bps: int = None) -> TradeResult:
        """High-slippage exit of one position, relay protection forced on"""
        slippage_bps = config.INSTANT_SELL_SLIPPAGE_BPS if slippage_bps is None else slippage_bps
        slippage_bps = min(int(slippage_bps), config.INSTANT_SELL_MAX_SLIPPAGE_BPS)

        position = await self.store.get_position(position_id)
        if position is None:
            return TradeResult(success=False, error="Position not found")
        if position.status != PositionStatus.ACTIVE:
            return TradeResult(success=False, error=f"Position is {position.status.value}")
        if not self.executor.can_auto_sign(position.wallet):
            return TradeResult(success=False, requires_signature=True, error="Wallet cannot auto-sign")

        logger.info(f"⚡ Instant sell {position.symbol} at {slippage_bps / 100:.0f}% slippage")
        await self.monitor.record_event(position.wallet, EventKind.SELL_ATTEMPT,
                                        f"Instant sell {position.symbol}", position=position,
                                        details={"slippage_bps": slippage_bps})
        return await self.monitor.execute_sell(
            position, "instant_sell", slippage_bps=slippage_bps, mev_protection=True, signal_client=False
        )

    async def sell_all_positions(self, wallet: str, slippage_bps: int = None) -> BatchSellResult:
        """One position at a time with a short spacing"""
        return await self.batch_sell_positions(wallet, batch_size=1, slippage_bps=slippage_bps,
                                               delay=config.SELL_ALL_SPACING)

    async def batch_sell_positions(self, wallet: str, batch_size: int = None, slippage_bps: int = None,
                                   delay: float = None,
                                   on_progress: Optional[ProgressCallback] = None) -> BatchSellResult:
        positions = await self.store.list_positions(wallet, PositionStatus.ACTIVE)
        if not positions:
            return BatchSellResult(success=True, total=0, sold=0, failed=0)

        async def sell_one(position) -> BatchItemOutcome:
            result = await self.instant_sell(position.id, slippage_bps)
            return BatchItemOutcome(mint=position.mint, symbol=position.symbol, success=result.success,
                                    signature=result.signature, error=result.error)

        def describe(position) -> BatchItemOutcome:
            return BatchItemOutcome(mint=position.mint, symbol=position.symbol, success=False)

        result = await self._run_batches(positions, sell_one, describe, batch_size, delay, on_progress)
        await self._record_summary(wallet, result, "positions")
        return result

    async def batch_sell_wallet_holdings(self, wallet: str, batch_size: int = None, slippage_bps: int = None,
                                         delay: float = None,
                                         on_progress: Optional[ProgressCallback] = None) -> BatchSellResult:
        """Sell every non-SOL token the wallet actually holds, tracked or not"""
        if not self.executor.can_auto_sign(wallet):
            return BatchSellResult(success=False, total=0, sold=0, failed=0)

        tokens = [
            t for t in await self.holdings.get_holdings(wallet)
            if t.mint != config.SOL_MINT and t.balance > 0
        ]
        if not tokens:
            return BatchSellResult(success=True, total=0, sold=0, failed=0)

        slippage = config.INSTANT_SELL_SLIPPAGE_BPS if slippage_bps is None else slippage_bps
        slippage = min(int(slippage), config.INSTANT_SELL_MAX_SLIPPAGE_BPS)
        active = {p.mint: p for p in await self.store.list_positions(wallet, PositionStatus.ACTIVE)}

        async def sell_one(token: WalletToken) -> BatchItemOutcome:
            symbol = token.mint[:8]
            position = active.get(token.mint)
            if position is not None:
                result = await self.monitor.execute_sell(position, "wallet_liquidation", slippage_bps=slippage,
                                                         mev_protection=True, signal_client=False)
            else:
                result = await self.executor.execute_auto_trade(TradeIntent(
                    wallet=wallet, mint=token.mint, side=Side.SELL, amount=token.balance,
                    slippage_bps=slippage, mev_protection=True,
                ), symbol, token.decimals)
            return BatchItemOutcome(mint=token.mint, symbol=symbol, success=result.success,
                                    signature=result.signature, error=result.error)

        def describe(token: WalletToken) -> BatchItemOutcome:
            return BatchItemOutcome(mint=token.mint, symbol=token.mint[:8], success=False)

        result = await self._run_batches(tokens, sell_one, describe, batch_size, delay, on_progress)
        self.holdings.invalidate(wallet)
        await self._record_summary(wallet, result, "wallet tokens")
        return result

    async def _run_batches(self, items: Sequence[T], sell_one: Callable[[T], Awaitable[BatchItemOutcome]],
                           describe: Callable[[T], BatchItemOutcome], batch_size: int = None,
                           delay: float = None,
                           on_progress: Optional[ProgressCallback] = None) -> BatchSellResult:
        batch_size = config.BATCH_SELL_SIZE if batch_size is None else batch_size
        delay = config.BATCH_SELL_DELAY if delay is None else delay
        batches = chunked(items, batch_size)
        total = len(items)
        sold = failed = processed = 0
        results: List[BatchItemOutcome] = []

        for index, batch in enumerate(batches):
            logger.info(f"📦 Batch {index + 1}/{len(batches)}: selling {len(batch)} tokens")
            outcomes = await asyncio.gather(*(sell_one(item) for item in batch), return_exceptions=True)

            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"❌ Batch sell raised: {outcome}")
                    outcome_record = describe(item)
                    outcome_record.error = str(outcome)
                    outcome = outcome_record
                results.append(outcome)
                if outcome.success:
                    sold += 1
                else:
                    failed += 1

            processed += len(batch)
            if on_progress is not None:
                on_progress(processed, total, sold, failed)

            if index < len(batches) - 1 and delay > 0:
                await asyncio.sleep(delay)

        logger.info(f"Batch sell complete: {sold} sold, {failed} failed of {total}")
        return BatchSellResult(success=sold > 0, total=total, sold=sold, failed=failed, results=results)

    async def _record_summary(self, wallet: str, result: BatchSellResult, label: str):
        kind = EventKind.SELL_SUCCESS if result.sold > 0 else EventKind.ERROR
        await self.monitor.record_event(
            wallet, kind, f"Batch sell {label}: {result.sold} sold, {result.failed} failed",
            details={"total": result.total, "sold": result.sold, "failed": result.failed},
        )
