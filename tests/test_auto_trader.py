import asyncio

from conftest import OTHER, TRADER, Engine, make_candidate, make_position
from models import EventKind, PositionStatus, Side, WalletToken


def test_queued_buy_opens_position_blacklists_and_cools_down():
    engine = Engine()
    messages = []
    engine.channel.register(TRADER, messages.append)

    async def run():
        await engine.trader.set_auto_trade(TRADER, True)
        outcome = await engine.trader.evaluate_candidate(make_candidate("MintA"), TRADER)
        await engine.trader.queue.wait_idle()
        after = await engine.trader.evaluate_candidate(make_candidate("MintB"), TRADER)
        positions = await engine.trader.get_active_positions(TRADER)
        blacklisted = await engine.store.is_blacklisted(TRADER, "MintA")
        status = await engine.trader.get_status(TRADER)
        engine.cooldown.close()
        return outcome, after, positions, blacklisted, status

    outcome, after, positions, blacklisted, status = asyncio.run(run())

    assert outcome == "queued"
    assert after == "cooldown"
    assert len(positions) == 1
    position = positions[0]
    assert position.mint == "MintA"
    assert position.entry_market_cap == 20_000
    assert position.target_market_cap == 60_000
    assert position.stop_loss_market_cap == 10_000
    assert position.buy_tx_signature == "SIG1"
    assert position.token_amount == 1000.0
    assert blacklisted
    assert status["total_buys"] == 1
    assert status["active_positions"] == 1
    assert status["cooldown"]["is_in_cooldown"]
    assert status["last_activity"] == "Bought MINTA for 0.01 SOL"
    assert [m["type"] for m in messages] == ["auto_trade_executed"]


def test_published_candidate_flows_through_the_feed():
    engine = Engine()

    async def run():
        await engine.trader.set_auto_trade(TRADER, True)
        engine.trader.enable_scanner()
        evaluated = await engine.feed.publish(make_candidate("MintA"))
        await engine.trader.queue.wait_idle()
        paused = await engine.feed.publish(make_candidate("MintB"))
        positions = await engine.trader.get_active_positions(TRADER)
        cached = await engine.store.get_candidate("MintB")
        engine.cooldown.close()
        return evaluated, paused, positions, cached

    evaluated, paused, positions, cached = asyncio.run(run())

    assert evaluated
    assert not paused
    assert [p.mint for p in positions] == ["MintA"]
    assert cached is not None
    assert not engine.feed.active


def test_blacklist_outlives_position_and_filter_changes():
    engine = Engine()

    async def run():
        await engine.trader.set_auto_trade(TRADER, True)
        await engine.store.upsert_candidate(make_candidate("MintA"))
        bought = await engine.trader.execute_buy(TRADER, "MintA")
        engine.cooldown.end()
        for position in await engine.trader.get_active_positions(TRADER):
            await engine.store.update_position(position.id, status=PositionStatus.SOLD)
        await engine.trader.update_filter(TRADER, enabled=True)
        await engine.trader.update_settings(TRADER, max_concurrent_positions=50)
        skipped = await engine.trader.evaluate_candidate(make_candidate("MintA"), TRADER)
        manual = await engine.trader.execute_buy(TRADER, "MintA")
        return bought, skipped, manual

    bought, skipped, manual = asyncio.run(run())

    assert bought.success
    assert engine.cooldown.cooldown_end_time is None
    assert skipped == "blacklisted"
    assert manual.error == "Token already traded by this wallet"


def test_external_wallet_waits_for_approval_and_signature():
    engine = Engine()
    messages = []
    engine.channel.register(OTHER, messages.append)

    async def run():
        await engine.trader.set_auto_trade(OTHER, True)
        outcome = await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)
        repeat = await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)
        pending = engine.trader.get_pending_trades(OTHER)
        prepared = await engine.trader.approve_pending_trade(pending[0].id)
        still_pending = len(engine.trader.get_pending_trades(OTHER))
        signed = await engine.trader.approve_pending_trade(
            pending[0].id, signed_transaction="c2lnbmVk", order_id=prepared.order_id)
        positions = await engine.trader.get_active_positions(OTHER)
        engine.cooldown.close()
        return outcome, repeat, pending, prepared, still_pending, signed, positions

    outcome, repeat, pending, prepared, still_pending, signed, positions = asyncio.run(run())

    assert outcome == "pending_approval"
    assert repeat == "recently_processed"
    assert pending[0].target_market_cap == 60_000
    assert prepared.requires_signature
    assert prepared.unsigned_transaction == "dW5zaWduZWQ="
    assert still_pending == 1
    assert signed.success
    assert engine.trader.get_pending_trades(OTHER) == []
    assert [p.mint for p in positions] == ["MintA"]
    assert [m["type"] for m in messages] == ["pending_trade", "auto_trade_executed"]


def test_rejected_pending_trade_is_forgotten():
    engine = Engine()

    async def run():
        await engine.trader.set_auto_trade(OTHER, True)
        await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)

    asyncio.run(run())
    trade_id = engine.trader.get_pending_trades(OTHER)[0].id

    assert engine.trader.reject_pending_trade(trade_id)
    assert not engine.trader.reject_pending_trade(trade_id)
    assert asyncio.run(engine.trader.approve_pending_trade(trade_id)).error == "Pending trade not found"


def test_skip_reasons():
    engine = Engine()
    engine.chain.token_accounts[(TRADER, "TOKEN")] = [[WalletToken(mint="Held", balance=5.0, decimals=6)]]

    async def run():
        trader = engine.trader
        reasons = [await trader.evaluate_candidate(make_candidate("MintA"), TRADER)]
        await trader.set_auto_trade(TRADER, True)

        await trader.update_filter(TRADER, enabled=True, min_market_cap=50_000)
        reasons.append(await trader.evaluate_candidate(make_candidate("MintA"), TRADER))
        await trader.reset_filter(TRADER)
        reasons.append(await trader.evaluate_candidate(make_candidate("MintA", market_cap=5_000), TRADER))

        reasons.append(await trader.evaluate_candidate(make_candidate("Held"), TRADER))

        await engine.store.create_position(make_position("Open"))
        reasons.append(await trader.evaluate_candidate(make_candidate("Open"), TRADER))
        await trader.update_settings(TRADER, max_concurrent_positions=1)
        reasons.append(await trader.evaluate_candidate(make_candidate("New"), TRADER))
        return reasons

    reasons = asyncio.run(run())

    assert reasons == ["disabled", "filter", "baseline", "already_held", "active_position", "max_positions"]
    assert engine.trader.skip_reasons["filter"] == 1
    assert engine.trader.queue.pending_for(TRADER) == []


def test_vanished_balance_is_not_counted_as_a_sell():
    engine = Engine()

    async def run():
        await engine.trader.set_auto_trade(TRADER, True)
        await engine.store.upsert_candidate(make_candidate("MintA"))
        await engine.trader.execute_buy(TRADER, "MintA")
        engine.chain.balances[(TRADER, "MintA")] = 0
        await engine.monitor.run_cycle()
        engine.cooldown.close()
        return await engine.trader.get_status(TRADER)

    status = asyncio.run(run())

    assert status["total_buys"] == 1
    assert status["total_sells"] == 0
    assert status["active_positions"] == 0


def test_force_stop_drops_positions_and_pending_trades():
    engine = Engine()

    async def run():
        await engine.trader.set_auto_trade(OTHER, True)
        for mint in ("M1", "M2"):
            await engine.store.create_position(make_position(mint, wallet=OTHER))
        await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)
        stopped = await engine.trader.force_stop_all(OTHER)
        return stopped, await engine.store.list_positions(OTHER)

    stopped, positions = asyncio.run(run())

    assert stopped == 2
    assert {p.status for p in positions} == {PositionStatus.STOPPED}
    assert engine.trader.get_pending_trades(OTHER) == []


def test_manual_buy_paths():
    engine = Engine()
    engine.market_data.readings["Fresh"] = 40_000

    async def run():
        trader = engine.trader
        await engine.store.upsert_candidate(make_candidate("MintA"))
        unsigned = await trader.execute_buy(OTHER, "MintA")
        mismatched = await trader.execute_buy(OTHER, "MintA", signed_transaction="c2ln", order_id="bogus")
        unknown = await trader.execute_buy(TRADER, "Unknown")
        fresh = await trader.execute_buy(TRADER, "Fresh", amount_sol=0.2)
        positions = await trader.get_active_positions(TRADER)
        engine.cooldown.close()
        return unsigned, mismatched, unknown, fresh, positions

    unsigned, mismatched, unknown, fresh, positions = asyncio.run(run())

    assert unsigned.requires_signature
    assert unsigned.unsigned_transaction == "dW5zaWduZWQ="
    assert mismatched.error == "Order does not match this buy"
    assert unknown.error == "No market data for token"
    assert fresh.success
    position, = positions
    assert (position.symbol, position.amount_sol) == ("Fresh", 0.2)
    assert (position.target_market_cap, position.stop_loss_market_cap) == (120_000, 20_000)
    assert engine.cooldown.cooldown_end_time is not None


def test_manual_sell_paths():
    engine = Engine()

    async def run():
        trader = engine.trader
        own = await engine.store.create_position(make_position("MintA"))
        external = await engine.store.create_position(make_position("MintB", wallet=OTHER))

        wrong_wallet = await trader.execute_sell(OTHER, own.id)
        sold = await trader.execute_sell(TRADER, own.id)
        prepared = await trader.execute_sell(OTHER, external.id, sell_percent=50)
        order = await engine.store.get_order(prepared.order_id)
        signed = await trader.execute_sell(OTHER, external.id, signed_transaction="c2ln", order_id=prepared.order_id)
        return (wrong_wallet, sold, prepared, order, signed,
                await engine.store.get_position(own.id), await engine.store.get_position(external.id))

    wrong_wallet, sold, prepared, order, signed, own, external = asyncio.run(run())

    assert wrong_wallet.error == "Position not found"
    assert sold.success
    assert own.status == PositionStatus.SOLD
    assert engine.resolver.intents[0].slippage_bps == 500
    assert prepared.requires_signature
    assert (order.side, order.amount) == (Side.SELL, 500.0)
    assert signed.success
    assert external.status == PositionStatus.SOLD
    assert external.pnl_percent is None


def test_start_and_stop_toggle_the_feed():
    engine = Engine()

    async def run():
        await engine.trader.start()
        started = (engine.feed.active, engine.monitor.running)
        await engine.trader.stop()
        return started

    assert asyncio.run(run()) == (True, True)
    assert not engine.feed.active
    assert not engine.monitor.running


def test_events_are_newest_first():
    engine = Engine()

    async def run():
        for i in range(3):
            await engine.trader._event(TRADER, EventKind.ERROR, f"event {i}")
        return await engine.trader.get_events(TRADER, limit=2)

    assert [e.message for e in asyncio.run(run())] == ["event 2", "event 1"]


def test_candidate_seen_again_keeps_one_pending_trade():
    engine = Engine()
    engine.trader.queue.dedup_window = 0
    messages = []
    engine.channel.register(OTHER, messages.append)

    async def run():
        await engine.trader.set_auto_trade(OTHER, True)
        first = await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)
        again = await engine.trader.evaluate_candidate(make_candidate("MintA"), OTHER)
        return first, again, await engine.trader.get_status(OTHER)

    first, again, status = asyncio.run(run())

    assert (first, again) == ("pending_approval", "already_pending")
    assert len(engine.trader.get_pending_trades(OTHER)) == 1
    assert status["pending_buys"] == 1
    assert [m["type"] for m in messages] == ["pending_trade"]


def test_signed_buy_commits_the_prepared_order_amount():
    engine = Engine()

    async def run():
        await engine.store.upsert_candidate(make_candidate("MintA"))
        prepared = await engine.trader.execute_buy(OTHER, "MintA", amount_sol=0.5)
        signed = await engine.trader.execute_buy(OTHER, "MintA", signed_transaction="c2ln",
                                                 order_id=prepared.order_id)
        positions = await engine.trader.get_active_positions(OTHER)
        engine.cooldown.close()
        return signed, positions

    signed, positions = asyncio.run(run())

    assert signed.success
    assert [p.amount_sol for p in positions] == [0.5]


def test_buy_intent_carries_wallet_priority_fee():
    engine = Engine()

    async def run():
        await engine.store.update_settings(TRADER, priority_fee=0.0005)
        await engine.store.upsert_candidate(make_candidate("MintA"))
        await engine.trader.execute_buy(TRADER, "MintA")
        engine.cooldown.close()

    asyncio.run(run())

    assert engine.resolver.intents[0].priority_fee == 0.0005
