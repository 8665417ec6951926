"""Typed in-process event dispatcher for the simulation core.

Every notification the core emits is one of the frozen dataclasses below.
Handlers subscribe to a concrete event class and are called synchronously,
in subscription order, whenever an instance of that class is published.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Type, TypeVar, Union, get_args

from .errors import LedgerInvariantError
from .resources import Resource


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourcesChanged:
    old: Mapping[Resource, float]
    new: Mapping[Resource, float]
    delta: Mapping[Resource, float]
    capped: Optional[Mapping[Resource, float]] = None


@dataclass(frozen=True)
class BuildingPlaced:
    building: Mapping[str, object]
    index: int
    type: str
    row: int
    col: int
    is_gold_producer: bool
    is_market: bool


@dataclass(frozen=True)
class BuildingUpgraded:
    building: Mapping[str, object]
    index: int
    old_level: int
    new_level: int
    display_level: int


@dataclass(frozen=True)
class BuildingRemoved:
    building: Mapping[str, object]
    index: int
    building_id: int
    type: str
    row: int
    col: int
    refund: Mapping[Resource, float] = field(default_factory=dict)


@dataclass(frozen=True)
class ProcessorCycleCompleted:
    building_index: int
    building_id: int
    building_type: str
    outputs: Mapping[Resource, float]


@dataclass(frozen=True)
class Tick:
    tick_count: int
    delta_ms: float
    timestamp: float
    manual: bool = False


@dataclass(frozen=True)
class StipendEnded:
    total_received: float
    reason: Optional[str]


@dataclass(frozen=True)
class MarketSale:
    resource: Resource
    amount: float
    price_per_unit: float
    gold_earned: float
    market_level: int


@dataclass(frozen=True)
class MilestoneCompleted:
    id: str
    name: str
    reward: Mapping[Resource, float]


@dataclass(frozen=True)
class GameReset:
    pass


@dataclass(frozen=True)
class StateLoaded:
    pass


GameEvent = Union[
    ResourcesChanged,
    BuildingPlaced,
    BuildingUpgraded,
    BuildingRemoved,
    ProcessorCycleCompleted,
    Tick,
    StipendEnded,
    MarketSale,
    MilestoneCompleted,
    GameReset,
    StateLoaded,
]

EVENT_TYPES = get_args(GameEvent)

E = TypeVar("E")
Handler = Callable[[E], None]


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by event class."""

    def __init__(self) -> None:
        self._handlers: Dict[Type[object], List[Callable[[object], None]]] = defaultdict(list)

    # ------------------------------------------------------------------
    def subscribe(self, event_type: Type[E], handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` and return an unsubscribe callable."""

        if event_type not in EVENT_TYPES:
            raise TypeError(f"Unknown event type: {event_type!r}")
        if not callable(handler):
            raise TypeError("Event handler must be callable")
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return unsubscribe

    def once(self, event_type: Type[E], handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for the next ``event_type`` only."""

        def wrapper(event: E) -> None:
            unsubscribe()
            handler(event)

        unsubscribe = self.subscribe(event_type, wrapper)
        return unsubscribe

    def unsubscribe(self, event_type: Type[E], handler: Handler) -> bool:
        handlers = self._handlers.get(event_type)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def publish(self, event: GameEvent) -> None:
        """Deliver ``event`` to every handler subscribed to its class.

        A failing handler is logged and does not prevent the remaining
        handlers from running. :class:`LedgerInvariantError` is re-raised
        and stops delivery.
        """

        handlers = list(self._handlers.get(type(event), ()))
        for handler in handlers:
            try:
                handler(event)
            except LedgerInvariantError:
                raise
            except Exception:
                logger.exception("Handler %r failed for %s", handler, type(event).__name__)

    # ------------------------------------------------------------------
    def listener_count(self, event_type: Type[object]) -> int:
        return len(self._handlers.get(event_type, ()))

    def has_listeners(self, event_type: Type[object]) -> bool:
        return self.listener_count(event_type) > 0

    def clear(self, event_type: Optional[Type[object]] = None) -> None:
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)


__all__ = [
    "BuildingPlaced",
    "BuildingRemoved",
    "BuildingUpgraded",
    "EVENT_TYPES",
    "EventBus",
    "GameEvent",
    "GameReset",
    "MarketSale",
    "MilestoneCompleted",
    "ProcessorCycleCompleted",
    "ResourcesChanged",
    "StateLoaded",
    "StipendEnded",
    "Tick",
]
