
"""
Main Orchestrator - wires the auto trader, starts monitoring and serves the API
"""

import asyncio
import logging
import signal

from aiohttp import web

from config import API_HOST, AUTO_TRADE_ON_START, LOG_FORMAT, LOG_LEVEL, PORT, TRADE_LOG_CSV
from api import create_app
from auto_trader import AutoTrader
from batch_liquidator import BatchLiquidator
from candidate_feed import CandidateFeed
from chain_client import ChainClient
from client_channel import ClientChannel
from cooldown import CooldownController
from position_monitor import PositionMonitor
from price_feed import CachedCandidateSource, MarketDataSource, PumpFunCoinSource
from storage import MemoryPositionStore
from submission import SubmissionEngine
from swap_resolver import SwapResolver
from telegram_bot import TelegramNotifier
from token_holdings import TokenHoldingsCache
from trade_executor import TradeExecutor
from trade_logger import TradeLogger
from wallet import WalletManager

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format=LOG_FORMAT,
    handlers=[logging.StreamHandler()]
)

logger = logging.getLogger(__name__)


def build_auto_trader(store=None, chain=None, wallet_manager=None) -> AutoTrader:
    store = store or MemoryPositionStore()
    chain = chain or ChainClient()
    wallet_manager = wallet_manager or WalletManager()

    holdings = TokenHoldingsCache(chain)
    executor = TradeExecutor(store, SwapResolver(), SubmissionEngine(chain), wallet_manager, holdings)
    market_data = MarketDataSource([PumpFunCoinSource(), CachedCandidateSource(store)])
    channel = ClientChannel()
    notifier = TelegramNotifier()

    monitor = PositionMonitor(store, executor, chain, market_data, channel,
                              notifier=notifier, trade_logger=TradeLogger(TRADE_LOG_CSV))
    liquidator = BatchLiquidator(store, executor, chain, monitor, holdings)

    return AutoTrader(
        store=store,
        executor=executor,
        chain=chain,
        holdings=holdings,
        monitor=monitor,
        liquidator=liquidator,
        cooldown=CooldownController(),
        feed=CandidateFeed(store),
        channel=channel,
        market_data=market_data,
        notifier=notifier,
    )


async def run():
    trader = build_auto_trader()
    wallet = trader.executor.wallet.address
    if wallet and AUTO_TRADE_ON_START:
        await trader.set_auto_trade(wallet, True)

    runner = web.AppRunner(create_app(trader))
    await runner.setup()
    site = web.TCPSite(runner, API_HOST, PORT)
    await site.start()
    logger.info(f"✅ API server on port {PORT}")

    await trader.start()
    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await trader.stop()
        await trader.chain.close()
        await runner.cleanup()
        logger.info("✅ Shutdown complete")


if __name__ == "__main__":

    def signal_handler(sig, frame):
        logger.info("\nReceived interrupt signal")
        for task in asyncio.all_tasks():
            task.cancel()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Auto trader stopped by user")
