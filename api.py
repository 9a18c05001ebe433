"""
HTTP API for the auto trader (aiohttp)
"""

import json
import logging
from dataclasses import asdict, fields, is_dataclass

from aiohttp import web

from models import Candidate, TokenFilter, TradingSettings

logger = logging.getLogger(__name__)


def to_json(value):
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [to_json(v) for v in value]
    return value


def _known_fields(record_type, data: dict) -> dict:
    names = {f.name for f in fields(record_type)}
    return {k: v for k, v in data.items() if k in names}


async def _body(request: web.Request) -> dict:
    try:
        data = await request.json()
    except json.JSONDecodeError:
        raise web.HTTPBadRequest(text="Invalid JSON body")
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="Expected a JSON object")
    return data


def _require(data: dict, *names):
    missing = [n for n in names if not data.get(n)]
    if missing:
        raise web.HTTPBadRequest(text=f"Missing fields: {', '.join(missing)}")


def _number(data: dict, name: str, default=None, cast=float):
    value = data.get(name)
    if value is None:
        return default
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise web.HTTPBadRequest(text=f"{name} must be a number")


class ApiRoutes:

    def __init__(self, trader):
        self.trader = trader

    def register(self, app: web.Application):
        app.router.add_get("/", self.health)
        app.router.add_get("/health", self.health)

        app.router.add_post("/api/candidates", self.publish_candidate)

        app.router.add_get("/api/scanner/status", self.scanner_status)
        app.router.add_post("/api/scanner/enable", self.scanner_enable)
        app.router.add_post("/api/scanner/disable", self.scanner_disable)

        app.router.add_get("/api/settings/{wallet}", self.get_settings)
        app.router.add_post("/api/settings/{wallet}", self.update_settings)
        app.router.add_get("/api/filters/{wallet}", self.get_filter)
        app.router.add_post("/api/filters/{wallet}", self.update_filter)
        app.router.add_delete("/api/filters/{wallet}", self.reset_filter)

        app.router.add_post("/api/autotrade/enable", self.set_auto_trade)
        app.router.add_get("/api/autotrade/status/{wallet}", self.status)
        app.router.add_get("/api/autotrade/events/{wallet}", self.events)
        app.router.add_get("/api/autotrade/positions/{wallet}", self.positions)
        app.router.add_get("/api/autotrade/pending/{wallet}", self.pending)
        app.router.add_post("/api/autotrade/pending/{trade_id}/approve", self.approve_pending)
        app.router.add_delete("/api/autotrade/pending/{trade_id}", self.reject_pending)

        app.router.add_post("/api/autotrade/buy", self.buy)
        app.router.add_post("/api/autotrade/sell", self.sell)
        app.router.add_post("/api/autotrade/instant-sell", self.instant_sell)
        app.router.add_post("/api/autotrade/force-stop", self.force_stop)
        app.router.add_post("/api/autotrade/sell-all", self.sell_all)
        app.router.add_post("/api/autotrade/batch-sell", self.batch_sell)

    async def health(self, request):
        return web.json_response({"status": "ok", "scanner": self.trader.scanner_status()})

    async def publish_candidate(self, request):
        data = await _body(request)
        _require(data, "mint")
        try:
            candidate = Candidate.from_dict(data)
        except (TypeError, ValueError) as e:
            raise web.HTTPBadRequest(text=f"Invalid candidate: {e}")
        notified = await self.trader.feed.publish(candidate, is_new=bool(data.get("is_new", True)))
        return web.json_response({"accepted": True, "evaluated": notified})

    async def scanner_status(self, request):
        return web.json_response(self.trader.scanner_status())

    async def scanner_enable(self, request):
        self.trader.enable_scanner()
        return web.json_response(self.trader.scanner_status())

    async def scanner_disable(self, request):
        self.trader.disable_scanner()
        return web.json_response(self.trader.scanner_status())

    async def get_settings(self, request):
        settings = await self.trader.get_settings(request.match_info["wallet"])
        return web.json_response(to_json(settings))

    async def update_settings(self, request):
        data = _known_fields(TradingSettings, await _body(request))
        settings = await self.trader.update_settings(request.match_info["wallet"], **data)
        return web.json_response(to_json(settings))

    async def get_filter(self, request):
        token_filter = await self.trader.get_filter(request.match_info["wallet"])
        return web.json_response(to_json(token_filter))

    async def update_filter(self, request):
        data = _known_fields(TokenFilter, await _body(request))
        token_filter = await self.trader.update_filter(request.match_info["wallet"], **data)
        return web.json_response(to_json(token_filter))

    async def reset_filter(self, request):
        token_filter = await self.trader.reset_filter(request.match_info["wallet"])
        return web.json_response(to_json(token_filter))

    async def set_auto_trade(self, request):
        data = await _body(request)
        _require(data, "wallet")
        settings = await self.trader.set_auto_trade(data["wallet"], bool(data.get("enabled", True)))
        return web.json_response(to_json(settings))

    async def status(self, request):
        return web.json_response(await self.trader.get_status(request.match_info["wallet"]))

    async def events(self, request):
        try:
            limit = int(request.query.get("limit", 50))
        except ValueError:
            raise web.HTTPBadRequest(text="limit must be an integer")
        events = await self.trader.get_events(request.match_info["wallet"], limit)
        return web.json_response(to_json(events))

    async def positions(self, request):
        positions = await self.trader.get_active_positions(request.match_info["wallet"])
        return web.json_response(to_json(positions))

    async def pending(self, request):
        return web.json_response(to_json(self.trader.get_pending_trades(request.match_info["wallet"])))

    async def approve_pending(self, request):
        data = await _body(request) if request.can_read_body else {}
        result = await self.trader.approve_pending_trade(
            request.match_info["trade_id"], data.get("signed_transaction"), data.get("order_id"),
        )
        return web.json_response(to_json(result))

    async def reject_pending(self, request):
        removed = self.trader.reject_pending_trade(request.match_info["trade_id"])
        return web.json_response({"removed": removed})

    async def buy(self, request):
        data = await _body(request)
        _require(data, "wallet", "mint")
        result = await self.trader.execute_buy(
            data["wallet"], data["mint"], data.get("amount_sol"),
            data.get("signed_transaction"), data.get("order_id"),
        )
        return web.json_response(to_json(result))

    async def sell(self, request):
        data = await _body(request)
        _require(data, "wallet", "position_id")
        result = await self.trader.execute_sell(
            data["wallet"], data["position_id"], _number(data, "sell_percent", 100),
            data.get("signed_transaction"), data.get("order_id"),
        )
        return web.json_response(to_json(result))

    async def instant_sell(self, request):
        data = await _body(request)
        _require(data, "position_id")
        result = await self.trader.execute_instant_sell(data["position_id"], _number(data, "slippage_bps", cast=int))
        return web.json_response(to_json(result))

    async def force_stop(self, request):
        data = await _body(request)
        _require(data, "wallet")
        stopped = await self.trader.force_stop_all(data["wallet"])
        return web.json_response({"stopped": stopped})

    async def sell_all(self, request):
        data = await _body(request)
        _require(data, "wallet")
        result = await self.trader.sell_all_positions(data["wallet"], _number(data, "slippage_bps", cast=int))
        return web.json_response(to_json(result))

    async def batch_sell(self, request):
        data = await _body(request)
        _require(data, "wallet")
        delay_ms = _number(data, "delay_ms")
        kwargs = dict(
            batch_size=_number(data, "batch_size", cast=int),
            slippage_bps=_number(data, "slippage_bps", cast=int),
            delay=delay_ms / 1000 if delay_ms is not None else None,
        )
        if data.get("source", "positions") == "wallet":
            result = await self.trader.batch_sell_wallet_holdings(data["wallet"], **kwargs)
        else:
            result = await self.trader.batch_sell_positions(data["wallet"], **kwargs)
        return web.json_response(to_json(result))


def create_app(trader) -> web.Application:
    app = web.Application()
    ApiRoutes(trader).register(app)
    return app
