import asyncio

import pytest

from conftest import OTHER, TRADER, Engine, make_position
from models import EventKind, PositionStatus, Side
from position_monitor import realized_pnl_percent
from submission import ConfirmationOutcome


def _setup(engine, wallet=TRADER, market_cap=None):
    if market_cap is not None:
        engine.market_data.readings["MintA"] = market_cap

    async def run():
        await engine.store.update_settings(wallet, auto_trade_enabled=True)
        return await engine.store.create_position(make_position(wallet=wallet))

    return asyncio.run(run())


def _evaluate(engine, position):
    async def run():
        settings = await engine.store.get_settings(position.wallet)
        outcome = await engine.monitor.evaluate_position(position, settings)
        stored = await engine.store.get_position(position.id)
        events = await engine.store.list_events(position.wallet)
        return outcome, stored, events

    return asyncio.run(run())


def test_target_reached_exactly_sells_everything():
    engine = Engine()
    position = _setup(engine, market_cap=60_000)

    outcome, stored, events = _evaluate(engine, position)

    assert outcome == "target_hit"
    assert stored.status == PositionStatus.SOLD
    assert stored.sell_tx_signature == "SIG1"
    assert stored.pnl_percent == pytest.approx(200.0)
    intent = engine.resolver.intents[-1]
    assert intent.side == Side.SELL
    assert intent.amount == 1000.0
    assert intent.slippage_bps == 300
    assert [e.kind for e in events] == [EventKind.SELL_SUCCESS, EventKind.SELL_ATTEMPT]


def test_stop_loss_reached_exactly_sells():
    engine = Engine()
    position = _setup(engine, market_cap=10_000)

    outcome, stored, events = _evaluate(engine, position)

    assert outcome == "stop_loss"
    assert stored.status == PositionStatus.SOLD
    assert stored.pnl_percent == pytest.approx(-50.0)
    assert events[-1].kind == EventKind.STOP_LOSS


def test_between_bounds_holds():
    engine = Engine()
    position = _setup(engine, market_cap=30_000)

    outcome, stored, _ = _evaluate(engine, position)

    assert outcome == "hold"
    assert stored.status == PositionStatus.ACTIVE
    assert engine.resolver.intents == []


def test_missing_market_data_skips_the_cycle():
    engine = Engine()
    position = _setup(engine)

    outcome, stored, events = _evaluate(engine, position)

    assert outcome == "skipped"
    assert stored.status == PositionStatus.ACTIVE
    assert events == []


def test_vanished_balance_closes_without_a_sell():
    engine = Engine()
    position = _setup(engine, market_cap=60_000)
    engine.chain.balances[(TRADER, "MintA")] = 0

    outcome, stored, events = _evaluate(engine, position)

    assert outcome == "closed"
    assert stored.status == PositionStatus.SOLD
    assert stored.sell_tx_signature is None
    assert events[0].details["reason"] == "balance_vanished"
    assert engine.resolver.intents == []


def test_failed_sell_keeps_position_active():
    engine = Engine()
    position = _setup(engine, market_cap=60_000)
    engine.submitter.outcome = ConfirmationOutcome.FAILED

    outcome, stored, events = _evaluate(engine, position)

    assert outcome == "target_hit"
    assert stored.status == PositionStatus.ACTIVE
    assert events[0].kind == EventKind.SELL_FAILED


def test_external_wallet_gets_a_sell_signal():
    engine = Engine()
    position = _setup(engine, wallet=OTHER, market_cap=60_000)
    messages = []
    engine.channel.register(OTHER, messages.append)

    outcome, stored, _ = _evaluate(engine, position)

    assert outcome == "target_hit"
    assert stored.status == PositionStatus.ACTIVE
    assert messages[0]["type"] == "auto_trade_sell_signal"
    assert messages[0]["data"]["position_id"] == position.id
    assert messages[0]["data"]["reason"] == "target_hit"


def test_run_cycle_only_watches_enabled_wallets():
    engine = Engine()
    position = _setup(engine, market_cap=60_000)

    async def run():
        await engine.store.update_settings(TRADER, auto_trade_enabled=False)
        await engine.monitor.run_cycle()
        paused = await engine.store.get_position(position.id)
        await engine.store.update_settings(TRADER, auto_trade_enabled=True)
        await engine.monitor.run_cycle()
        return paused, await engine.store.get_position(position.id)

    paused, resumed = asyncio.run(run())

    assert paused.status == PositionStatus.ACTIVE
    assert resumed.status == PositionStatus.SOLD


def test_partial_sell_keeps_position_open():
    engine = Engine()
    position = _setup(engine)

    async def run():
        result = await engine.monitor.execute_sell(position, "manual_sell", sell_percent=25)
        return result, await engine.store.get_position(position.id)

    result, stored = asyncio.run(run())

    assert result.success
    assert engine.resolver.intents[-1].amount == 250.0
    assert stored.status == PositionStatus.ACTIVE
    assert stored.token_amount == 750.0


def test_realized_pnl_needs_both_market_caps():
    position = make_position(entry_market_cap=20_000)

    assert realized_pnl_percent(position, 30_000) == pytest.approx(50.0)
    assert realized_pnl_percent(position, None) is None
    assert realized_pnl_percent(make_position(entry_market_cap=0), 30_000) is None


def test_cooldown_does_not_stop_exits_on_open_positions():
    engine = Engine()
    position = _setup(engine, market_cap=60_000)

    async def run():
        engine.cooldown.start()
        cooling = engine.cooldown.is_in_cooldown
        await engine.monitor.run_cycle()
        engine.cooldown.close()
        return cooling, await engine.store.get_position(position.id)

    cooling, stored = asyncio.run(run())

    assert cooling
    assert stored.status == PositionStatus.SOLD
    assert stored.sell_tx_signature == "SIG1"
