"""
Records shared by the trade lifecycle: candidates, orders, positions, events and per-wallet settings
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


def new_id() -> str:
    return uuid.uuid4().hex


def token_key(wallet: str, mint: str) -> str:
    return f"{wallet}:{mint}"


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PositionStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    STOPPED = "stopped"
    FAILED = "failed"


class EventKind(str, Enum):
    BUY_ATTEMPT = "buy_attempt"
    BUY_SUCCESS = "buy_success"
    BUY_FAILED = "buy_failed"
    SELL_ATTEMPT = "sell_attempt"
    SELL_SUCCESS = "sell_success"
    SELL_FAILED = "sell_failed"
    STOP_LOSS = "stop_loss"
    ERROR = "error"


class Venue(str, Enum):
    JUPITER = "jupiter"
    PUMPFUN = "pumpfun"


@dataclass(frozen=True)
class Candidate:
    """Market snapshot of a discovered token. Market cap and liquidity are in USD."""
    mint: str
    name: str = ""
    symbol: str = ""
    market_cap: float = 0.0
    liquidity: float = 0.0
    bonding_curve_progress: float = 0.0
    holders: int = 0
    volume_24h: float = 0.0
    created_at: float = field(default_factory=time.time)
    source: str = "pumpfun"
    price: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Candidate":
        return cls(
            mint=str(data["mint"]),
            name=str(data.get("name") or ""),
            symbol=str(data.get("symbol") or ""),
            market_cap=float(data.get("market_cap") or data.get("marketCap") or 0),
            liquidity=float(data.get("liquidity") or 0),
            bonding_curve_progress=float(data.get("bonding_curve_progress") or data.get("bondingCurveProgress") or 0),
            holders=int(data.get("holders") or 0),
            volume_24h=float(data.get("volume_24h") or data.get("volume24h") or 0),
            created_at=float(data.get("created_at") or data.get("createdAt") or time.time()),
            source=str(data.get("source") or "pumpfun"),
            price=float(data.get("price") or 0),
        )


@dataclass(frozen=True)
class TradeIntent:
    """Amount is SOL for buys and UI token amount for sells"""
    wallet: str
    mint: str
    side: Side
    amount: float
    slippage_bps: int
    mev_protection: bool = True
    priority_fee: Optional[float] = None  # SOL, bonding-curve venue only


@dataclass
class Order:
    wallet: str
    mint: str
    side: Side
    amount: float
    slippage: float
    mev_protection: bool
    symbol: str = ""
    price: float = 0.0
    status: OrderStatus = OrderStatus.PENDING
    tx_signature: Optional[str] = None
    venue: Optional[Venue] = None
    error: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)


@dataclass
class AutoTradePosition:
    wallet: str
    mint: str
    symbol: str
    name: str
    entry_price: float
    entry_market_cap: float
    target_market_cap: float
    stop_loss_market_cap: float
    amount_sol: float
    token_amount: float = 0.0
    status: PositionStatus = PositionStatus.ACTIVE
    buy_tx_signature: Optional[str] = None
    sell_tx_signature: Optional[str] = None
    pnl_percent: Optional[float] = None
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AutoTradeEvent:
    wallet: str
    kind: EventKind
    message: str
    mint: Optional[str] = None
    symbol: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)


@dataclass
class TradingSettings:
    default_slippage: float = 1.0  # percent
    mev_protection: bool = True
    auto_trade_enabled: bool = False
    auto_buy_amount_sol: float = 0.01
    sell_target_mode: str = "multiplier"  # or "mcap"
    sell_target_multiplier: float = 3.0
    sell_target_mcap: Optional[float] = None
    auto_sell_stop_loss_percent: float = 50.0
    max_concurrent_positions: int = 5
    priority_fee: float = 0.0001


@dataclass
class TokenFilter:
    """Liquidity bound is in SOL, ages in minutes"""
    enabled: bool = False
    min_liquidity: float = 0.0
    min_market_cap: Optional[float] = None
    max_market_cap: Optional[float] = None
    min_bonding_curve: float = 0.0
    max_bonding_curve: float = 100.0
    min_age: float = 0.0
    max_age: Optional[float] = None
    min_holders: int = 0
    min_volume_24h: float = 0.0
    name_contains: Optional[str] = None
    symbol_contains: Optional[str] = None
    exclude_names: List[str] = field(default_factory=list)


@dataclass
class PendingTrade:
    """Buy waiting for an external signature"""
    wallet: str
    mint: str
    symbol: str
    name: str
    amount_sol: float
    market_cap: float
    target_market_cap: float
    stop_loss_market_cap: float
    id: str = field(default_factory=new_id)
    created_at: float = field(default_factory=time.time)


@dataclass
class TradeResult:
    success: bool
    order_id: Optional[str] = None
    signature: Optional[str] = None
    unsigned_transaction: Optional[str] = None
    venue: Optional[Venue] = None
    requires_signature: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class WalletToken:
    mint: str
    balance: float
    decimals: int
    raw_amount: int = 0


@dataclass
class BatchItemOutcome:
    mint: str
    symbol: str
    success: bool
    signature: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BatchSellResult:
    success: bool
    total: int
    sold: int
    failed: int
    results: List[BatchItemOutcome] = field(default_factory=list)


def compute_exit_bounds(entry_market_cap: float, settings: TradingSettings):
    """Return (target_market_cap, stop_loss_market_cap) for a new position"""
    if settings.sell_target_mode == "mcap" and settings.sell_target_mcap:
        target = float(settings.sell_target_mcap)
    else:
        target = entry_market_cap * settings.sell_target_multiplier
    stop = entry_market_cap * (1 - settings.auto_sell_stop_loss_percent / 100)
    return target, stop
