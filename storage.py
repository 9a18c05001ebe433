"""
Position store: orders, positions, events, blacklist, settings and candidate snapshots.

PositionStore is the persistence seam; MemoryPositionStore keeps everything in
process. Records are copied on the way in and out so callers never hold a live
reference to stored state.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Set

from errors import PositionConflictError
from models import (
    AutoTradeEvent, AutoTradePosition, Candidate, Order, PositionStatus,
    TokenFilter, TradingSettings,
)


class PositionStore(ABC):

    # Orders
    @abstractmethod
    async def create_order(self, order: Order) -> Order: ...

    @abstractmethod
    async def update_order(self, order_id: str, **changes) -> Optional[Order]: ...

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]: ...

    @abstractmethod
    async def list_orders(self, wallet: str) -> List[Order]: ...

    # Positions
    @abstractmethod
    async def create_position(self, position: AutoTradePosition) -> AutoTradePosition: ...

    @abstractmethod
    async def update_position(self, position_id: str, **changes) -> Optional[AutoTradePosition]: ...

    @abstractmethod
    async def get_position(self, position_id: str) -> Optional[AutoTradePosition]: ...

    @abstractmethod
    async def list_positions(self, wallet: str, status: Optional[PositionStatus] = None) -> List[AutoTradePosition]: ...

    # Events
    @abstractmethod
    async def append_event(self, event: AutoTradeEvent) -> AutoTradeEvent: ...

    @abstractmethod
    async def list_events(self, wallet: str, limit: Optional[int] = None) -> List[AutoTradeEvent]: ...

    # Blacklist
    @abstractmethod
    async def blacklist_token(self, wallet: str, mint: str) -> None: ...

    @abstractmethod
    async def is_blacklisted(self, wallet: str, mint: str) -> bool: ...

    @abstractmethod
    async def list_blacklisted(self, wallet: str) -> List[str]: ...

    # Settings / filter
    @abstractmethod
    async def get_settings(self, wallet: str) -> TradingSettings: ...

    @abstractmethod
    async def update_settings(self, wallet: str, **changes) -> TradingSettings: ...

    @abstractmethod
    async def get_filter(self, wallet: str) -> TokenFilter: ...

    @abstractmethod
    async def update_filter(self, wallet: str, **changes) -> TokenFilter: ...

    @abstractmethod
    async def auto_trade_enabled_wallets(self) -> List[str]: ...

    # Candidate snapshots
    @abstractmethod
    async def upsert_candidate(self, candidate: Candidate) -> None: ...

    @abstractmethod
    async def get_candidate(self, mint: str) -> Optional[Candidate]: ...

    @abstractmethod
    async def list_candidates(self) -> List[Candidate]: ...

    async def get_active_position(self, wallet: str, mint: str) -> Optional[AutoTradePosition]:
        for position in await self.list_positions(wallet, PositionStatus.ACTIVE):
            if position.mint == mint:
                return position
        return None

    async def reset_filter(self, wallet: str) -> TokenFilter:
        return await self.update_filter(wallet, **vars(TokenFilter()))


class MemoryPositionStore(PositionStore):

    def __init__(self):
        self._orders: Dict[str, Order] = {}
        self._positions: Dict[str, AutoTradePosition] = {}
        self._events: List[AutoTradeEvent] = []
        self._blacklist: Dict[str, Set[str]] = {}
        self._settings: Dict[str, TradingSettings] = {}
        self._filters: Dict[str, TokenFilter] = {}
        self._candidates: Dict[str, Candidate] = {}

    async def create_order(self, order: Order) -> Order:
        self._orders[order.id] = replace(order)
        return replace(order)

    async def update_order(self, order_id: str, **changes) -> Optional[Order]:
        order = self._orders.get(order_id)
        if order is None:
            return None
        updated = replace(order, **changes)
        self._orders[order_id] = updated
        return replace(updated)

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self._orders.get(order_id)
        return replace(order) if order else None

    async def list_orders(self, wallet: str) -> List[Order]:
        return [replace(o) for o in self._orders.values() if o.wallet == wallet]

    async def create_position(self, position: AutoTradePosition) -> AutoTradePosition:
        if position.mint in self._blacklist.get(position.wallet, set()):
            raise PositionConflictError(f"{position.mint} is blacklisted for {position.wallet}")
        for existing in self._positions.values():
            if (existing.wallet == position.wallet and existing.mint == position.mint
                    and existing.status == PositionStatus.ACTIVE):
                raise PositionConflictError(f"Active position already exists for {position.mint}")
        self._positions[position.id] = replace(position)
        return replace(position)

    async def update_position(self, position_id: str, **changes) -> Optional[AutoTradePosition]:
        position = self._positions.get(position_id)
        if position is None:
            return None
        updated = replace(position, updated_at=time.time(), **changes)
        self._positions[position_id] = updated
        return replace(updated)

    async def get_position(self, position_id: str) -> Optional[AutoTradePosition]:
        position = self._positions.get(position_id)
        return replace(position) if position else None

    async def list_positions(self, wallet: str, status: Optional[PositionStatus] = None) -> List[AutoTradePosition]:
        return [
            replace(p) for p in self._positions.values()
            if p.wallet == wallet and (status is None or p.status == status)
        ]

    async def append_event(self, event: AutoTradeEvent) -> AutoTradeEvent:
        self._events.append(event)
        return event

    async def list_events(self, wallet: str, limit: Optional[int] = None) -> List[AutoTradeEvent]:
        events = [e for e in self._events if e.wallet == wallet]
        # Newest first; insertion order breaks timestamp ties
        events = list(reversed(events))
        events.sort(key=lambda e: e.created_at, reverse=True)
        return events[:limit] if limit else events

    async def blacklist_token(self, wallet: str, mint: str) -> None:
        self._blacklist.setdefault(wallet, set()).add(mint)

    async def is_blacklisted(self, wallet: str, mint: str) -> bool:
        return mint in self._blacklist.get(wallet, set())

    async def list_blacklisted(self, wallet: str) -> List[str]:
        return sorted(self._blacklist.get(wallet, set()))

    async def get_settings(self, wallet: str) -> TradingSettings:
        return replace(self._settings.get(wallet) or TradingSettings())

    async def update_settings(self, wallet: str, **changes) -> TradingSettings:
        settings = replace(self._settings.get(wallet) or TradingSettings(), **changes)
        self._settings[wallet] = settings
        return replace(settings)

    async def get_filter(self, wallet: str) -> TokenFilter:
        current = self._filters.get(wallet) or TokenFilter()
        return replace(current, exclude_names=list(current.exclude_names))

    async def update_filter(self, wallet: str, **changes) -> TokenFilter:
        updated = replace(self._filters.get(wallet) or TokenFilter(), **changes)
        updated.exclude_names = list(updated.exclude_names)
        self._filters[wallet] = updated
        return replace(updated, exclude_names=list(updated.exclude_names))

    async def auto_trade_enabled_wallets(self) -> List[str]:
        return [w for w, s in self._settings.items() if s.auto_trade_enabled]

    async def upsert_candidate(self, candidate: Candidate) -> None:
        self._candidates[candidate.mint] = candidate

    async def get_candidate(self, mint: str) -> Optional[Candidate]:
        return self._candidates.get(mint)

    async def list_candidates(self) -> List[Candidate]:
        return list(self._candidates.values())
