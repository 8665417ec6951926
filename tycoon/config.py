"""Centralised configuration for the tycoon simulation core."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .resources import Resource, normalise_mapping

# ---------------------------------------------------------------------------
# Building identifiers

WHEAT_FARM = "wheat_farm"
QUARRY = "quarry"
LUMBER = "lumber"
BAKERY = "bakery"
BLACKSMITH = "blacksmith"
MARKET = "market"
TOWNHALL = "townhall"
BARN = "barn"
MILL = "mill"
BREAD_OVEN = "bread_oven"
SAWMILL = "sawmill"
STONECUTTER = "stonecutter"
CARPENTER = "carpenter"
MASON_YARD = "mason_yard"


@dataclass(frozen=True)
class UpgradeTier:
    """One entry of a building's upgrade table."""

    cost: Mapping[Resource, float]
    mult: float


@dataclass(frozen=True)
class Recipe:
    """Batch conversion run by processor buildings once per cycle."""

    inputs: Mapping[Resource, float]
    outputs: Mapping[Resource, float]
    cycle_time_ms: float


@dataclass(frozen=True)
class BuildingDefinition:
    """Static catalogue entry for a building type."""

    key: str
    name: str
    base_cost: Mapping[Resource, float]
    production: Mapping[Resource, float] = field(default_factory=dict)
    consumes: Mapping[Resource, float] = field(default_factory=dict)
    upgrades: Tuple[UpgradeTier, ...] = ()
    unlock_req: Optional[Mapping[Resource, float]] = None
    storage_bonus: float = 0.0
    recipe: Optional[Recipe] = None

    @property
    def is_processor(self) -> bool:
        return self.recipe is not None

    @property
    def max_level(self) -> int:
        """Highest zero-indexed level reachable through the upgrade table."""

        return len(self.upgrades)

    @property
    def display_max_level(self) -> int:
        return len(self.upgrades) + 1

    def multiplier_for(self, level: int) -> float:
        if level <= 0 or not self.upgrades:
            return 1.0
        index = min(int(level), len(self.upgrades)) - 1
        return float(self.upgrades[index].mult)

    def upgrade_cost(self, level: int) -> Optional[Mapping[Resource, float]]:
        """Cost to go from ``level`` to ``level + 1`` or ``None`` at max level."""

        if level < 0 or level >= len(self.upgrades):
            return None
        return self.upgrades[level].cost


def _tiers(*entries: Tuple[Mapping[str, float], float]) -> Tuple[UpgradeTier, ...]:
    return tuple(UpgradeTier(cost=normalise_mapping(cost), mult=float(mult)) for cost, mult in entries)


def _building(
    key: str,
    name: str,
    base_cost: Mapping[str, float],
    *,
    production: Optional[Mapping[str, float]] = None,
    consumes: Optional[Mapping[str, float]] = None,
    upgrades: Tuple[UpgradeTier, ...] = (),
    unlock_req: Optional[Mapping[str, float]] = None,
    storage_bonus: float = 0.0,
    recipe: Optional[Tuple[Mapping[str, float], Mapping[str, float], float]] = None,
) -> BuildingDefinition:
    parsed_recipe: Optional[Recipe] = None
    if recipe is not None:
        inputs, outputs, cycle_time_ms = recipe
        parsed_recipe = Recipe(
            inputs=normalise_mapping(inputs),
            outputs=normalise_mapping(outputs),
            cycle_time_ms=float(cycle_time_ms),
        )
    return BuildingDefinition(
        key=key,
        name=name,
        base_cost=normalise_mapping(base_cost),
        production=normalise_mapping(production),
        consumes=normalise_mapping(consumes),
        upgrades=upgrades,
        unlock_req=normalise_mapping(unlock_req) if unlock_req else None,
        storage_bonus=float(storage_bonus),
        recipe=parsed_recipe,
    )


# ---------------------------------------------------------------------------
# Building catalogue

BUILDINGS: Dict[str, BuildingDefinition] = {
    WHEAT_FARM: _building(
        WHEAT_FARM,
        "Wheat Farm",
        {"gold": 10},
        production={"wheat": 1},
        upgrades=_tiers(({"gold": 50}, 2), ({"gold": 200}, 3), ({"gold": 800}, 5)),
    ),
    QUARRY: _building(
        QUARRY,
        "Stone Quarry",
        {"gold": 25},
        production={"stone": 1},
        upgrades=_tiers(({"gold": 100}, 2), ({"gold": 400}, 3), ({"gold": 1500}, 5)),
        unlock_req={"wheat": 10},
    ),
    LUMBER: _building(
        LUMBER,
        "Lumber Camp",
        {"gold": 40},
        production={"wood": 1},
        upgrades=_tiers(({"gold": 150}, 2), ({"gold": 500}, 3), ({"gold": 2000}, 5)),
        unlock_req={"stone": 5},
    ),
    BAKERY: _building(
        BAKERY,
        "Bakery",
        {"gold": 100, "wheat": 20},
        production={"gold": 3},
        consumes={"wheat": 1},
        upgrades=_tiers(({"gold": 300}, 2), ({"gold": 1000}, 3), ({"gold": 4000}, 5)),
        unlock_req={"wheat": 30},
    ),
    BLACKSMITH: _building(
        BLACKSMITH,
        "Blacksmith",
        {"gold": 200, "stone": 30, "wood": 20},
        production={"gold": 8},
        consumes={"stone": 1, "wood": 1},
        upgrades=_tiers(({"gold": 600}, 2), ({"gold": 2000}, 3), ({"gold": 8000}, 5)),
        unlock_req={"stone": 50, "wood": 30},
    ),
    MARKET: _building(
        MARKET,
        "Market",
        {"gold": 500, "wood": 50},
        production={"gold": 15},
        upgrades=_tiers(({"gold": 1500}, 2), ({"gold": 5000}, 3), ({"gold": 20000}, 5)),
        unlock_req={"gold": 300},
    ),
    TOWNHALL: _building(
        TOWNHALL,
        "Town Hall",
        {"gold": 2000, "stone": 100, "wood": 100},
        production={"gold": 50},
        upgrades=_tiers(({"gold": 8000}, 2), ({"gold": 30000}, 3)),
        unlock_req={"gold": 1000, "stone": 80, "wood": 80},
    ),
    BARN: _building(
        BARN,
        "Barn",
        {"gold": 75, "wood": 15},
        storage_bonus=100,
        upgrades=_tiers(({"gold": 200}, 2), ({"gold": 600}, 3)),
        unlock_req={"wood": 10},
    ),
    MILL: _building(
        MILL,
        "Mill",
        {"gold": 150, "wood": 20},
        upgrades=_tiers(({"gold": 400}, 2), ({"gold": 1200}, 3)),
        unlock_req={"wheat": 20},
        recipe=({"wheat": 2}, {"flour": 1}, 10000),
    ),
    BREAD_OVEN: _building(
        BREAD_OVEN,
        "Bread Oven",
        {"gold": 250, "stone": 30},
        upgrades=_tiers(({"gold": 700}, 2), ({"gold": 2000}, 3)),
        unlock_req={"flour": 5},
        recipe=({"flour": 2}, {"bread": 1}, 15000),
    ),
    SAWMILL: _building(
        SAWMILL,
        "Sawmill",
        {"gold": 150, "stone": 20},
        upgrades=_tiers(({"gold": 400}, 2), ({"gold": 1200}, 3)),
        unlock_req={"wood": 20},
        recipe=({"wood": 2}, {"planks": 1}, 8000),
    ),
    STONECUTTER: _building(
        STONECUTTER,
        "Stonecutter",
        {"gold": 150, "wood": 20},
        upgrades=_tiers(({"gold": 400}, 2), ({"gold": 1200}, 3)),
        unlock_req={"stone": 20},
        recipe=({"stone": 2}, {"cut_stone": 1}, 8000),
    ),
    CARPENTER: _building(
        CARPENTER,
        "Carpenter",
        {"gold": 300, "planks": 10},
        upgrades=_tiers(({"gold": 900}, 2), ({"gold": 2500}, 3)),
        unlock_req={"planks": 10},
        recipe=({"planks": 3}, {"furniture": 1}, 12000),
    ),
    MASON_YARD: _building(
        MASON_YARD,
        "Mason Yard",
        {"gold": 300, "cut_stone": 10},
        upgrades=_tiers(({"gold": 900}, 2), ({"gold": 2500}, 3)),
        unlock_req={"cut_stone": 10},
        recipe=({"cut_stone": 3}, {"stone_blocks": 1}, 12000),
    ),
}

# Building types whose placement ends the royal stipend.
GOLD_PRODUCERS: Tuple[str, ...] = (BAKERY, BLACKSMITH, MARKET, TOWNHALL)
STORAGE_BUILDING = BARN


def get_building_def(key: str) -> Optional[BuildingDefinition]:
    return BUILDINGS.get(key)


def building_types() -> List[str]:
    return list(BUILDINGS)


def normalise_building_key(value: str) -> str:
    if not isinstance(value, str):
        raise ValueError("Building type must be a string")
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not key:
        raise ValueError("Building type is empty")
    return key


def resolve_building_type(value: str) -> str:
    key = normalise_building_key(value)
    if key in BUILDINGS:
        return key
    raise ValueError(f"Unknown building type: {value}")


# ---------------------------------------------------------------------------
# Grid

GRID_ROWS = 10
GRID_COLS = 10
BUILDING_FOOTPRINT = 2

# ---------------------------------------------------------------------------
# Timing and economy

TICK_INTERVAL_MS = 1000
MIN_TICK_INTERVAL_MS = 50
MAX_TICKS_PER_REQUEST = 1000
REFUND_RATE = 0.5

STIPEND_INTERVAL_MS = 2000
STIPEND_AMOUNT = 1.0

MARKET_PRICES: Dict[Resource, float] = {
    Resource.WHEAT: 3,
    Resource.STONE: 5,
    Resource.WOOD: 5,
    Resource.FLOUR: 6,
    Resource.BREAD: 12,
}
MARKET_LEVEL_BONUS_PERCENT = 10

NEAR_CAP_THRESHOLD_PERCENT = 90.0
TICK_SUMMARY_EVERY = 5

# ---------------------------------------------------------------------------
# Milestones


@dataclass(frozen=True)
class MilestoneDefinition:
    """Achievement condition expressed as a building count or a stockpile."""

    key: str
    name: str
    description: str
    reward: Mapping[Resource, float]
    building_type: Optional[str] = None
    building_count: int = 0
    resource: Optional[Resource] = None
    resource_amount: float = 0.0
    icon: str = ""


def _milestone(
    key: str,
    name: str,
    description: str,
    reward_gold: float,
    icon: str,
    *,
    building: Optional[Tuple[str, int]] = None,
    stockpile: Optional[Tuple[str, float]] = None,
) -> MilestoneDefinition:
    building_type, building_count = building if building else (None, 0)
    resource, amount = stockpile if stockpile else (None, 0.0)
    return MilestoneDefinition(
        key=key,
        name=name,
        description=description,
        reward={Resource.GOLD: float(reward_gold)},
        building_type=building_type,
        building_count=int(building_count),
        resource=Resource(resource) if resource else None,
        resource_amount=float(amount),
        icon=icon,
    )


MILESTONES: Dict[str, MilestoneDefinition] = {
    entry.key: entry
    for entry in (
        _milestone("first_farm", "First Harvest", "Build your first Wheat Farm", 15, "🌱",
                   building=(WHEAT_FARM, 1)),
        _milestone("second_farm", "Expanding Fields", "Build a second Wheat Farm", 10, "🌾",
                   building=(WHEAT_FARM, 2)),
        _milestone("wheat_10", "First Stockpile", "Accumulate 10 wheat", 20, "📦",
                   stockpile=("wheat", 10)),
        _milestone("first_quarry", "Breaking Ground", "Build a Stone Quarry", 25, "⛏️",
                   building=(QUARRY, 1)),
        _milestone("stone_5", "Solid Foundation", "Accumulate 5 stone", 15, "🪨",
                   stockpile=("stone", 5)),
        _milestone("first_lumber", "Into the Woods", "Build a Lumber Camp", 30, "🪓",
                   building=(LUMBER, 1)),
        _milestone("wheat_30", "Bread Basket", "Accumulate 30 wheat", 50, "🧺",
                   stockpile=("wheat", 30)),
        _milestone("first_bakery", "Self-Sufficient!", "Build a Bakery and start producing gold",
                   100, "🥖", building=(BAKERY, 1)),
    )
}

# ---------------------------------------------------------------------------
# Persistence

SAVE_VERSION = 1
