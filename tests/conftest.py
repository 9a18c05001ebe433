import asyncio
import time

import pytest

from auto_trader import AutoTrader
from batch_liquidator import BatchLiquidator
from candidate_feed import CandidateFeed
from chain_client import SignatureStatus
from client_channel import ClientChannel
from cooldown import CooldownController
from errors import NoRouteError
from jito_relay import RelayOutcome, RelayResponse
from models import AutoTradePosition, Candidate, Venue
from position_monitor import PositionMonitor
from price_feed import MarketReading
from storage import MemoryPositionStore
from submission import ConfirmationOutcome
from swap_resolver import ResolvedSwap
from token_holdings import TokenHoldingsCache
from trade_executor import TradeExecutor

TRADER = "TraderWa11et1111111111111111111111111111111"
OTHER = "0therWa11et2222222222222222222222222222222"


@pytest.fixture(autouse=True)
def _test_env(monkeypatch):
    """
    Ensure tests never reach a real wallet, Telegram or Jito.
    """
    monkeypatch.setenv("TRADING_WALLET_PRIVATE_KEY", "")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "")


def make_candidate(mint="MintA", **overrides) -> Candidate:
    values = dict(
        mint=mint,
        name=f"Token {mint}",
        symbol=mint.upper()[:6],
        market_cap=20_000,
        liquidity=5_000,
        bonding_curve_progress=40,
        holders=50,
        volume_24h=10_000,
        created_at=time.time() - 10 * 60,
    )
    values.update(overrides)
    return Candidate(**values)


def make_position(mint="MintA", wallet=TRADER, **overrides) -> AutoTradePosition:
    values = dict(
        wallet=wallet,
        mint=mint,
        symbol=mint.upper()[:6],
        name=f"Token {mint}",
        entry_price=0.000001,
        entry_market_cap=20_000,
        target_market_cap=60_000,
        stop_loss_market_cap=10_000,
        amount_sol=0.01,
        token_amount=1000,
        buy_tx_signature="BUYSIG",
    )
    values.update(overrides)
    return AutoTradePosition(**values)


class FakeChain:

    def __init__(self):
        self.statuses = {}
        self.balances = {}
        self.default_balance = 1000.0
        self.decimals = {}
        self.decimal_errors = set()
        self.sent = []
        self.send_result = "DIRECTSIG"
        self.token_accounts = {}
        self.account_calls = 0

    async def get_signature_status(self, signature):
        return self.statuses.get(signature)

    async def send_raw_transaction(self, raw_tx):
        self.sent.append(raw_tx)
        return self.send_result

    async def get_token_balance(self, wallet, mint):
        return self.balances.get((wallet, mint), self.default_balance)

    async def get_token_decimals(self, mint):
        if mint in self.decimal_errors:
            raise RuntimeError(f"metadata exploded for {mint}")
        return self.decimals.get(mint, 6)

    async def get_token_accounts(self, wallet, program_id):
        self.account_calls += 1
        await asyncio.sleep(0)
        # Each entry is a list of steps; a step is a token list or an exception, the last one repeats
        steps = self.token_accounts.get((wallet, program_id), [[]])
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return list(step)


def confirmed_status():
    return SignatureStatus(confirmation_status="confirmed", err=None)


class FakeRelay:

    def __init__(self, responses=None):
        # endpoint -> list of responses, consumed in order; default is an error
        self.responses = responses or {}
        self.calls = []

    async def send(self, endpoint, tx_base64):
        self.calls.append(endpoint)
        queue = self.responses.get(endpoint)
        if queue:
            return queue.pop(0)
        return RelayResponse(RelayOutcome.ERROR, message="boom")


class FakeResolver:

    def __init__(self):
        self.intents = []
        self.no_route = set()

    async def resolve(self, intent, token_decimals=None):
        self.intents.append(intent)
        if intent.mint in self.no_route:
            raise NoRouteError("No route available via Jupiter or pump.fun")
        return ResolvedSwap(unsigned_transaction="dW5zaWduZWQ=", venue=Venue.JUPITER, price=0.000001)


class FakeSubmitter:

    def __init__(self):
        self.submitted = []
        self.outcome = ConfirmationOutcome.CONFIRMED
        self.fail_submit = False

    async def submit(self, signed_tx, mev_protection=True):
        self.submitted.append((signed_tx, mev_protection))
        if self.fail_submit:
            return None
        return f"SIG{len(self.submitted)}"

    async def confirm(self, signature):
        return self.outcome


class FakeWallet:

    def __init__(self, address=TRADER):
        self.address = address

    def can_auto_sign(self, wallet):
        return wallet == self.address

    def sign_transaction(self, unsigned_tx_b64, wallet):
        return b"signed:" + unsigned_tx_b64.encode()


class FakeMarketData:

    def __init__(self, readings=None):
        self.readings = readings or {}

    async def get_reading(self, mint):
        value = self.readings.get(mint)
        if value is None:
            return None
        return MarketReading(market_cap=value, source="test")


class Engine:
    """Everything an AutoTrader needs, built from fakes around the real core"""

    def __init__(self, cooldown_duration=60):
        self.store = MemoryPositionStore()
        self.chain = FakeChain()
        self.resolver = FakeResolver()
        self.submitter = FakeSubmitter()
        self.wallet = FakeWallet()
        self.market_data = FakeMarketData()
        self.channel = ClientChannel()
        self.holdings = TokenHoldingsCache(self.chain, retry_delays=[0], program_ids=["TOKEN"])
        self.executor = TradeExecutor(self.store, self.resolver, self.submitter, self.wallet, self.holdings)
        self.monitor = PositionMonitor(self.store, self.executor, self.chain, self.market_data, self.channel)
        self.liquidator = BatchLiquidator(self.store, self.executor, self.chain, self.monitor, self.holdings)
        self.cooldown = CooldownController(duration=cooldown_duration)
        self.feed = CandidateFeed(self.store)
        self.trader = AutoTrader(
            store=self.store,
            executor=self.executor,
            chain=self.chain,
            holdings=self.holdings,
            monitor=self.monitor,
            liquidator=self.liquidator,
            cooldown=self.cooldown,
            feed=self.feed,
            channel=self.channel,
            market_data=self.market_data,
            min_trade_interval=0,
            dedup_window=30,
        )


@pytest.fixture
def engine():
    return Engine()
