"""Composition root wiring the simulation components together."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Mapping, Optional

from . import config, persistence
from .buildings import BuildingRegistry
from .economy import ResourceService
from .events import EventBus
from .game_state import GameState
from .loop import GameLoop
from .market import MarketService
from .milestones import MilestoneTracker
from .processors import ProcessorEngine
from .production import ProductionEngine
from .resources import ALL_RESOURCES, Resource, to_payload
from .stipend import StipendService
from .storage import StorageCapCalculator


logger = logging.getLogger(__name__)


class Game:
    """Build the component graph once and expose the high level operations.

    Tick listeners run in construction order: continuous production first,
    then processors, stipend and milestones.
    """

    _instance: Optional["Game"] = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        *,
        initial: Optional[Mapping[Resource | str, float]] = None,
        rows: int = config.GRID_ROWS,
        cols: int = config.GRID_COLS,
        tick_interval_ms: float = config.TICK_INTERVAL_MS,
    ) -> None:
        self.lock = threading.RLock()
        self.bus = EventBus()
        self.state = GameState(self.bus, initial)
        self.storage = StorageCapCalculator(self.state)
        self.resources = ResourceService(self.state, self.storage)
        self.registry = BuildingRegistry(self.state, self.resources, self.bus, rows=rows, cols=cols)
        self.production = ProductionEngine(self.state, self.resources, self.bus)
        self.processors = ProcessorEngine(self.state, self.resources, self.bus)
        self.stipend = StipendService(self.state, self.resources, self.registry, self.bus)
        self.market = MarketService(self.registry, self.resources, self.bus)
        self.milestones = MilestoneTracker(self.state, self.resources, self.registry, self.bus)
        self.loop = GameLoop(self.bus, tick_interval_ms)

    # ------------------------------------------------------------------
    @classmethod
    def get_instance(cls) -> "Game":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    # ------------------------------------------------------------------
    def tick(self, delta_ms: Optional[float] = None, *, manual: bool = True) -> int:
        with self.lock:
            event = self.loop.manual_tick(delta_ms, manual=manual)
            return event.tick_count

    def reset(self) -> None:
        with self.lock:
            self.loop.reset()
            self.state.reset()

    def export_state(self) -> Dict[str, object]:
        with self.lock:
            return persistence.export_state(self)

    def import_state(self, data: Mapping[str, object]) -> None:
        with self.lock:
            persistence.import_state(self, data)

    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, object]:
        """Plain payload describing the whole game for the HTTP layer."""

        with self.lock:
            buildings = []
            for index, building in enumerate(self.state.buildings):
                entry = building.to_dict()
                definition = building.definition
                entry["index"] = index
                entry["name"] = definition.name if definition else building.type
                entry["display_level"] = building.display_level
                entry["max_level"] = self.registry.max_level(building.type)
                upgrade_cost = self.registry.upgrade_cost(building)
                entry["upgrade_cost"] = to_payload(upgrade_cost) if upgrade_cost else None
                entry["refund"] = to_payload(self.registry.calculate_refund(building))
                if definition is not None and definition.is_processor:
                    entry["processor"] = self.processors.get_state_by_id(building.id).to_dict()
                buildings.append(entry)

            rates = dict(self.production.calculate_production())
            for resource, rate in self.processors.calculate_rates().items():
                rates[resource] = rates.get(resource, 0.0) + rate

            return {
                "tick": self.loop.tick_count,
                "tick_interval_ms": self.loop.interval_ms,
                "resources": {res.value: self.resources.get_resource(res) for res in ALL_RESOURCES},
                "storage": self.resources.storage_info(),
                "rates": to_payload(rates),
                "buildings": buildings,
                "stats": self.registry.stats(),
                "stipend": self.stipend.display_info(),
                "market": self.market.panel_data(),
                "milestones": self.milestones.progress(),
            }


def get_game() -> Game:
    return Game.get_instance()
