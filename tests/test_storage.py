import asyncio

import pytest

from conftest import OTHER, TRADER, make_position
from errors import PositionConflictError
from models import (
    AutoTradeEvent, Candidate, EventKind, Order, OrderStatus, PositionStatus, Side,
    TradingSettings, compute_exit_bounds,
)
from storage import MemoryPositionStore


def test_order_round_trip_returns_copies():
    store = MemoryPositionStore()

    async def run():
        order = await store.create_order(Order(wallet=TRADER, mint="MintA", side=Side.BUY, amount=0.01,
                                               slippage=1.0, mev_protection=True))
        order.status = OrderStatus.FAILED
        untouched = await store.get_order(order.id)
        updated = await store.update_order(order.id, status=OrderStatus.CONFIRMED, tx_signature="SIG")
        return untouched, updated, await store.list_orders(TRADER), await store.update_order("nope", error="x")

    untouched, updated, orders, missing = asyncio.run(run())

    assert untouched.status == OrderStatus.PENDING
    assert updated.status == OrderStatus.CONFIRMED
    assert [o.tx_signature for o in orders] == ["SIG"]
    assert missing is None


def test_one_active_position_per_wallet_and_mint():
    store = MemoryPositionStore()

    async def run():
        first = await store.create_position(make_position("MintA"))
        with pytest.raises(PositionConflictError):
            await store.create_position(make_position("MintA"))
        await store.create_position(make_position("MintA", wallet=OTHER))
        await store.update_position(first.id, status=PositionStatus.SOLD)
        await store.create_position(make_position("MintA"))
        return (await store.list_positions(TRADER, PositionStatus.ACTIVE),
                await store.get_active_position(TRADER, "MintA"))

    active, lookup = asyncio.run(run())

    assert len(active) == 1
    assert lookup.id == active[0].id


def test_blacklist_blocks_new_positions():
    store = MemoryPositionStore()

    async def run():
        await store.blacklist_token(TRADER, "MintA")
        with pytest.raises(PositionConflictError):
            await store.create_position(make_position("MintA"))
        return await store.list_blacklisted(TRADER), await store.is_blacklisted(OTHER, "MintA")

    assert asyncio.run(run()) == (["MintA"], False)


def test_events_newest_first_with_limit():
    store = MemoryPositionStore()

    async def run():
        for i, created_at in enumerate([100.0, 300.0, 200.0]):
            await store.append_event(AutoTradeEvent(wallet=TRADER, kind=EventKind.ERROR, message=f"e{i}",
                                                    created_at=created_at))
        await store.append_event(AutoTradeEvent(wallet=OTHER, kind=EventKind.ERROR, message="other"))
        return await store.list_events(TRADER), await store.list_events(TRADER, limit=1)

    everything, latest = asyncio.run(run())

    assert [e.message for e in everything] == ["e1", "e2", "e0"]
    assert [e.message for e in latest] == ["e1"]


def test_settings_and_filters_are_per_wallet():
    store = MemoryPositionStore()

    async def run():
        await store.update_settings(TRADER, auto_trade_enabled=True, auto_buy_amount_sol=0.05)
        await store.update_filter(TRADER, enabled=True, exclude_names=["rug"])
        token_filter = await store.get_filter(TRADER)
        token_filter.exclude_names.append("mutated")
        stored_filter = await store.get_filter(TRADER)
        reset = await store.reset_filter(TRADER)
        return (await store.auto_trade_enabled_wallets(), await store.get_settings(OTHER),
                stored_filter, reset)

    wallets, other_settings, stored_filter, reset = asyncio.run(run())

    assert wallets == [TRADER]
    assert other_settings == TradingSettings()
    assert stored_filter.exclude_names == ["rug"]
    assert not reset.enabled
    assert reset.exclude_names == []


def test_candidate_snapshots_replace_by_mint():
    store = MemoryPositionStore()

    async def run():
        await store.upsert_candidate(Candidate(mint="MintA", market_cap=1_000))
        await store.upsert_candidate(Candidate(mint="MintA", market_cap=2_000))
        return await store.get_candidate("MintA"), await store.list_candidates()

    latest, everything = asyncio.run(run())

    assert latest.market_cap == 2_000
    assert len(everything) == 1


def test_exit_bounds():
    assert compute_exit_bounds(20_000, TradingSettings()) == (60_000, 10_000)
    assert compute_exit_bounds(20_000, TradingSettings(sell_target_mode="mcap", sell_target_mcap=100_000,
                                                       auto_sell_stop_loss_percent=25)) == (100_000, 15_000)
    assert compute_exit_bounds(20_000, TradingSettings(sell_target_mode="mcap"))[0] == 60_000


def test_candidate_from_dict_accepts_camel_case():
    candidate = Candidate.from_dict({"mint": "MintA", "marketCap": "25000", "bondingCurveProgress": 12,
                                     "volume24h": 300, "createdAt": 1_700_000_000})

    assert candidate.market_cap == 25_000
    assert candidate.bonding_curve_progress == 12
    assert candidate.volume_24h == 300
    assert candidate.created_at == 1_700_000_000
