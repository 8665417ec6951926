"""Building instances and the registry that owns the ordered building list."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from . import config
from .config import BuildingDefinition
from .economy import ResourceService
from .events import BuildingPlaced, BuildingRemoved, BuildingUpgraded, EventBus
from .game_state import GameState
from .resources import Resource


logger = logging.getLogger(__name__)

Tile = Tuple[int, int]


@dataclass
class BuildingInstance:
    """A placed building. ``level`` is zero-indexed; the UI shows ``level + 1``."""

    id: int
    type: str
    row: int
    col: int
    level: int = 0

    @property
    def display_level(self) -> int:
        return self.level + 1

    @property
    def definition(self) -> Optional[BuildingDefinition]:
        return config.get_building_def(self.type)

    def occupied_tiles(self, footprint: int = config.BUILDING_FOOTPRINT) -> List[Tile]:
        return [
            (self.row + dr, self.col + dc)
            for dr in range(footprint)
            for dc in range(footprint)
        ]

    def occupies(self, row: int, col: int, footprint: int = config.BUILDING_FOOTPRINT) -> bool:
        return self.row <= row < self.row + footprint and self.col <= col < self.col + footprint

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "row": self.row,
            "col": self.col,
            "level": self.level,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object], fallback_id: int = 0) -> "BuildingInstance":
        raw_id = data.get("id")
        return cls(
            id=int(raw_id) if raw_id is not None else int(fallback_id),
            type=str(data["type"]),
            row=int(data["row"]),
            col=int(data["col"]),
            level=int(data.get("level", 0)),
        )


@dataclass
class ActionResult:
    success: bool
    error: Optional[str] = None
    building: Optional[BuildingInstance] = None
    index: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "error": self.error,
            "building": self.building.to_dict() if self.building else None,
            "index": self.index,
        }


@dataclass
class RemovalResult:
    success: bool
    error: Optional[str] = None
    refund: Optional[Dict[Resource, float]] = None

    def to_dict(self) -> Dict[str, object]:
        refund = None
        if self.refund is not None:
            refund = {res.value: amount for res, amount in self.refund.items()}
        return {"success": self.success, "error": self.error, "refund": refund}


@dataclass
class BuildCheck:
    can_build: bool
    reason: Optional[str] = None
    missing: Dict[Resource, float] = field(default_factory=dict)


@dataclass
class UpgradeCheck:
    can_upgrade: bool
    reason: Optional[str] = None
    cost: Optional[Mapping[Resource, float]] = None


class BuildingRegistry:
    """Placement, upgrade and demolition of buildings on the grid.

    The registry is the only component that mutates ``state.buildings``.
    Every mutation bumps ``state.building_revision`` so cached derived data
    (storage caps) is recomputed. Validation failures are returned as
    result objects and never raised.
    """

    def __init__(
        self,
        state: GameState,
        resources: ResourceService,
        bus: EventBus,
        *,
        rows: int = config.GRID_ROWS,
        cols: int = config.GRID_COLS,
        footprint: int = config.BUILDING_FOOTPRINT,
    ) -> None:
        self._state = state
        self._resources = resources
        self._bus = bus
        self.rows = int(rows)
        self.cols = int(cols)
        self.footprint = int(footprint)

    # ------------------------------------------------------------------
    # Queries

    def buildings(self) -> List[BuildingInstance]:
        return [BuildingInstance(**building.to_dict()) for building in self._state.buildings]

    def iter_buildings(self) -> Iterable[Tuple[int, BuildingInstance]]:
        return enumerate(self._state.buildings)

    @property
    def building_count(self) -> int:
        return len(self._state.buildings)

    def get_by_index(self, index: int) -> Optional[BuildingInstance]:
        if not isinstance(index, int) or index < 0 or index >= len(self._state.buildings):
            return None
        return self._state.buildings[index]

    def index_of_id(self, building_id: int) -> Optional[int]:
        for index, building in enumerate(self._state.buildings):
            if building.id == building_id:
                return index
        return None

    def count_by_type(self, building_type: str) -> int:
        return sum(1 for building in self._state.buildings if building.type == building_type)

    def get_building_at(self, row: int, col: int) -> Optional[BuildingInstance]:
        for building in self._state.buildings:
            if building.occupies(row, col, self.footprint):
                return building
        return None

    def occupied_tiles(self) -> Set[Tile]:
        tiles: Set[Tile] = set()
        for building in self._state.buildings:
            tiles.update(building.occupied_tiles(self.footprint))
        return tiles

    def is_tile_occupied(self, row: int, col: int) -> bool:
        return (row, col) in self.occupied_tiles()

    def has_gold_production(self) -> bool:
        return any(building.type in config.GOLD_PRODUCERS for building in self._state.buildings)

    def has_market(self) -> bool:
        return self.count_by_type(config.MARKET) > 0

    def market_level(self) -> int:
        """Display level of the best market, 0 without one."""

        levels = [b.display_level for b in self._state.buildings if b.type == config.MARKET]
        return max(levels) if levels else 0

    def total_levels(self) -> int:
        return sum(building.display_level for building in self._state.buildings)

    def stats(self) -> Dict[str, object]:
        types: Dict[str, int] = {}
        for building in self._state.buildings:
            types[building.type] = types.get(building.type, 0) + 1
        return {
            "count": len(self._state.buildings),
            "total_levels": self.total_levels(),
            "types": types,
        }

    @staticmethod
    def multiplier_for(building: BuildingInstance) -> float:
        definition = config.get_building_def(building.type)
        if definition is None:
            return 1.0
        return definition.multiplier_for(building.level)

    @staticmethod
    def upgrade_cost(building: BuildingInstance) -> Optional[Mapping[Resource, float]]:
        definition = config.get_building_def(building.type)
        if definition is None:
            return None
        return definition.upgrade_cost(building.level)

    @staticmethod
    def max_level(building_type: str) -> int:
        """Maximum display level for ``building_type`` (0 when unknown)."""

        definition = config.get_building_def(building_type)
        return definition.display_max_level if definition else 0

    # ------------------------------------------------------------------
    # Placement

    def can_place_at(self, row: int, col: int) -> bool:
        if row < 0 or col < 0:
            return False
        if row + self.footprint > self.rows or col + self.footprint > self.cols:
            return False
        occupied = self.occupied_tiles()
        return not any(
            (row + dr, col + dc) in occupied
            for dr in range(self.footprint)
            for dc in range(self.footprint)
        )

    def can_build(self, building_type: str) -> BuildCheck:
        definition = config.get_building_def(building_type)
        if definition is None:
            return BuildCheck(False, "Unknown building type")
        if definition.unlock_req and not self._resources.is_unlocked(definition.unlock_req):
            return BuildCheck(
                False,
                "Locked",
                missing=self._resources.get_missing_resources(definition.unlock_req),
            )
        if not self._resources.can_afford(definition.base_cost):
            return BuildCheck(
                False,
                "Cannot afford",
                missing=self._resources.get_missing_resources(definition.base_cost),
            )
        return BuildCheck(True)

    def place_building(self, building_type: str, row: int, col: int) -> ActionResult:
        definition = config.get_building_def(building_type)
        if definition is None:
            return ActionResult(False, "Unknown building type")
        if not self._resources.can_afford(definition.base_cost):
            return ActionResult(False, f"Not enough resources to build {definition.name}!")
        if not self.can_place_at(row, col):
            return ActionResult(False, "Cannot place building here!")
        if not self._resources.spend_resources(definition.base_cost):
            return ActionResult(False, f"Not enough resources to build {definition.name}!")

        building = BuildingInstance(
            id=self._state.allocate_building_id(),
            type=building_type,
            row=int(row),
            col=int(col),
            level=0,
        )
        self._state.buildings.append(building)
        index = len(self._state.buildings) - 1
        self._state.bump_revision()
        logger.debug("Placed %s #%s at (%s, %s)", building_type, building.id, row, col)
        self._bus.publish(
            BuildingPlaced(
                building=building.to_dict(),
                index=index,
                type=building_type,
                row=building.row,
                col=building.col,
                is_gold_producer=building_type in config.GOLD_PRODUCERS,
                is_market=building_type == config.MARKET,
            )
        )
        return ActionResult(True, building=building, index=index)

    # ------------------------------------------------------------------
    # Upgrades

    def can_upgrade(self, index: int) -> UpgradeCheck:
        building = self.get_by_index(index)
        if building is None:
            return UpgradeCheck(False, "Building not found")
        definition = building.definition
        if definition is None:
            return UpgradeCheck(False, "Unknown building type")
        cost = definition.upgrade_cost(building.level)
        if cost is None:
            return UpgradeCheck(False, f"{definition.name} is already at max level!")
        if not self._resources.can_afford(cost):
            return UpgradeCheck(False, f"Not enough resources to upgrade {definition.name}!", cost)
        return UpgradeCheck(True, cost=cost)

    def upgrade_building(self, index: int) -> ActionResult:
        check = self.can_upgrade(index)
        if not check.can_upgrade:
            return ActionResult(False, check.reason, index=index)
        building = self._state.buildings[index]
        if not self._resources.spend_resources(check.cost):
            definition = building.definition
            return ActionResult(False, f"Not enough resources to upgrade {definition.name}!", index=index)

        old_level = building.level
        building.level += 1
        self._state.bump_revision()
        logger.debug(
            "Upgraded %s #%s from level %s to %s",
            building.type,
            building.id,
            old_level,
            building.level,
        )
        self._bus.publish(
            BuildingUpgraded(
                building=building.to_dict(),
                index=index,
                old_level=old_level,
                new_level=building.level,
                display_level=building.display_level,
            )
        )
        return ActionResult(True, building=building, index=index)

    # ------------------------------------------------------------------
    # Demolition

    @staticmethod
    def calculate_refund(building: BuildingInstance) -> Dict[Resource, float]:
        """Half of the base cost plus half of each paid upgrade, floored per entry."""

        definition = config.get_building_def(building.type)
        if definition is None:
            return {}
        refund: Dict[Resource, float] = {}
        for resource, amount in definition.base_cost.items():
            refund[resource] = refund.get(resource, 0.0) + math.floor(amount * config.REFUND_RATE)
        for tier in definition.upgrades[: max(0, building.level)]:
            for resource, amount in tier.cost.items():
                refund[resource] = refund.get(resource, 0.0) + math.floor(amount * config.REFUND_RATE)
        return {resource: float(amount) for resource, amount in refund.items() if amount > 0}

    def remove_building(self, index: int) -> RemovalResult:
        building = self.get_by_index(index)
        if building is None:
            return RemovalResult(False, "Building not found")
        if building.definition is None:
            return RemovalResult(False, "Unknown building type")

        refund = self.calculate_refund(building)
        del self._state.buildings[index]
        self._state.bump_revision()
        self._resources.enforce_caps()
        if refund:
            self._resources.grant_reward(refund)
        logger.debug("Removed %s #%s refund=%s", building.type, building.id, refund)
        self._bus.publish(
            BuildingRemoved(
                building=building.to_dict(),
                index=index,
                building_id=building.id,
                type=building.type,
                row=building.row,
                col=building.col,
                refund=dict(refund),
            )
        )
        return RemovalResult(True, refund=refund)

    # ------------------------------------------------------------------
    def replace_all(self, buildings: Iterable[BuildingInstance], next_id: Optional[int] = None) -> None:
        """Install a trusted building list, e.g. from a save file."""

        self._state.buildings = list(buildings)
        highest = max((building.id for building in self._state.buildings), default=0)
        self._state.next_building_id = max(int(next_id or 0), highest + 1)
        self._state.bump_revision()
