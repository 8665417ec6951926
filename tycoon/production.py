"""Continuous per-tick production for non-processor buildings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from . import config
from .buildings import BuildingInstance
from .economy import ResourceService
from .errors import LedgerInvariantError
from .events import EventBus, GameReset, Tick
from .game_state import GameState
from .resources import Resource


logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    produced: Dict[Resource, float] = field(default_factory=dict)
    consumed: Dict[Resource, float] = field(default_factory=dict)
    capped: Dict[Resource, float] = field(default_factory=dict)
    blocked: List[int] = field(default_factory=list)
    scaled: Dict[int, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "produced": self._resources_to_payload(self.produced),
            "consumed": self._resources_to_payload(self.consumed),
            "capped": self._resources_to_payload(self.capped),
            "blocked": list(self.blocked),
        }

    @staticmethod
    def _resources_to_payload(resources: Mapping[Resource, float]) -> Dict[str, float]:
        return {resource.value: float(amount) for resource, amount in resources.items()}


def _accumulate(target: Dict[Resource, float], addition: Mapping[Resource, float], scale: float = 1.0) -> None:
    for resource, amount in addition.items():
        if amount:
            target[resource] = target.get(resource, 0.0) + float(amount) * scale


class ProductionEngine:
    """Resolve every continuous building once per tick.

    Each building is judged against the ledger as it stood when the tick
    started, then all consumption and all production are applied as two
    batched mutations. Results do not depend on building order.
    """

    def __init__(self, state: GameState, resources: ResourceService, bus: EventBus) -> None:
        self._state = state
        self._resources = resources
        self._bus = bus
        self._tick_count = 0
        self.last_report = TickReport()
        bus.subscribe(Tick, self._on_tick)
        bus.subscribe(GameReset, self._on_reset)

    def _on_tick(self, event: Tick) -> None:
        self.tick()

    def _on_reset(self, event: GameReset) -> None:
        self._tick_count = 0
        self.last_report = TickReport()

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ------------------------------------------------------------------
    @staticmethod
    def multiplier_for(building: BuildingInstance) -> float:
        definition = config.get_building_def(building.type)
        return definition.multiplier_for(building.level) if definition else 1.0

    @staticmethod
    def _is_continuous(building: BuildingInstance) -> bool:
        definition = config.get_building_def(building.type)
        return definition is not None and not definition.is_processor

    @staticmethod
    def _covers(stock: Mapping[Resource, float], requirement: Mapping[Resource, float]) -> bool:
        return all(stock.get(res, 0.0) + 1e-9 >= amount for res, amount in requirement.items())

    def can_produce(self, building: BuildingInstance, stock: Optional[Mapping[Resource, float]] = None) -> bool:
        definition = config.get_building_def(building.type)
        if definition is None:
            return False
        if not definition.consumes:
            return True
        return self._covers(stock if stock is not None else self._resources.get_resources(), definition.consumes)

    # ------------------------------------------------------------------
    def tick(self) -> TickReport:
        """Advance one fixed production quantum."""

        snapshot = self._resources.get_resources()
        report = TickReport()
        active: List[Tuple[int, Mapping[Resource, float], Dict[Resource, float]]] = []
        demand: Dict[Resource, float] = {}

        for index, building in enumerate(self._state.buildings):
            if not self._is_continuous(building):
                continue
            definition = config.get_building_def(building.type)
            if not definition.production and not definition.consumes:
                continue
            if definition.consumes and not self._covers(snapshot, definition.consumes):
                report.blocked.append(index)
                continue
            mult = definition.multiplier_for(building.level)
            output = {res: amount * mult for res, amount in definition.production.items()}
            active.append((index, definition.consumes, output))
            _accumulate(demand, definition.consumes)

        # Consumers that were each affordable may still overdraw together;
        # share the available stock by scaling every consumer of that resource.
        factors: Dict[Resource, float] = {}
        for resource, total in demand.items():
            available = snapshot.get(resource, 0.0)
            if total > available + 1e-9:
                factors[resource] = available / total

        for index, consumes, output in active:
            scale = min((factors.get(res, 1.0) for res in consumes), default=1.0)
            if scale < 1.0:
                report.scaled[index] = scale
            _accumulate(report.consumed, consumes, scale)
            _accumulate(report.produced, output, scale)

        if report.consumed and not self._resources.apply_consumption(report.consumed):
            raise LedgerInvariantError("Batched consumption exceeded the tick-start stock")
        if report.produced:
            result = self._resources.apply_production(report.produced)
            report.capped = dict(result.capped)

        self._tick_count += 1
        self.last_report = report
        if self._tick_count % config.TICK_SUMMARY_EVERY == 0:
            logger.debug(
                "Production tick %s summary: produced=%s consumed=%s blocked=%s",
                self._tick_count,
                {res.value: round(amount, 2) for res, amount in report.produced.items()},
                {res.value: round(amount, 2) for res, amount in report.consumed.items()},
                len(report.blocked),
            )
        return report

    # ------------------------------------------------------------------
    # UI queries

    def calculate_building_production(self, building: BuildingInstance) -> Dict[str, object]:
        definition = config.get_building_def(building.type)
        if definition is None or definition.is_processor:
            return {"production": {}, "consumption": {}, "net": {}, "can_produce": False}
        mult = definition.multiplier_for(building.level)
        production = {res: amount * mult for res, amount in definition.production.items()}
        consumption = dict(definition.consumes)
        net: Dict[Resource, float] = dict(production)
        for res, amount in consumption.items():
            net[res] = net.get(res, 0.0) - amount
        return {
            "production": production,
            "consumption": consumption,
            "net": net,
            "can_produce": self.can_produce(building),
        }

    def calculate_production(self) -> Dict[Resource, float]:
        """Net per-second rates of the continuous buildings."""

        rates: Dict[Resource, float] = {}
        stock = self._resources.get_resources()
        for building in self._state.buildings:
            if not self._is_continuous(building) or not self.can_produce(building, stock):
                continue
            breakdown = self.calculate_building_production(building)
            _accumulate(rates, breakdown["net"])
        return rates

    def production_rate(self, resource: Resource) -> float:
        return self.calculate_production().get(resource, 0.0)

    def is_producing(self) -> bool:
        return any(rate != 0 for rate in self.calculate_production().values())

    def producing_buildings(self) -> List[BuildingInstance]:
        return [
            building
            for building in self._state.buildings
            if self._is_continuous(building) and self.can_produce(building)
        ]

    def blocked_buildings(self) -> List[BuildingInstance]:
        blocked: List[BuildingInstance] = []
        for building in self._state.buildings:
            definition = config.get_building_def(building.type)
            if definition and not definition.is_processor and definition.consumes and not self.can_produce(building):
                blocked.append(building)
        return blocked

    @staticmethod
    def format_rate(rate: float) -> str:
        prefix = "+" if rate >= 0 else ""
        return f"{prefix}{rate:.1f}/s"

    def formatted_rates(self) -> Dict[str, Dict[str, object]]:
        formatted: Dict[str, Dict[str, object]] = {}
        for resource, rate in self.calculate_production().items():
            formatted[resource.value] = {
                "rate": rate,
                "formatted": self.format_rate(rate),
                "is_positive": rate > 0,
                "is_negative": rate < 0,
            }
        return formatted
