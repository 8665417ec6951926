import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tycoon import config
from tycoon.buildings import BuildingInstance, BuildingRegistry
from tycoon.economy import ResourceService
from tycoon.events import BuildingPlaced, BuildingRemoved, BuildingUpgraded, EventBus
from tycoon.game_state import GameState
from tycoon.resources import Resource
from tycoon.storage import StorageCapCalculator


@pytest.fixture()
def world():
    def factory(initial=None):
        bus = EventBus()
        state = GameState(bus, initial if initial is not None else {"gold": 5000, "wood": 100, "stone": 100, "wheat": 100})
        storage = StorageCapCalculator(state)
        resources = ResourceService(state, storage)
        registry = BuildingRegistry(state, resources, bus)
        return bus, state, resources, registry

    return factory


def test_footprint_must_fit_inside_grid(world):
    _, _, _, registry = world()

    assert registry.can_place_at(0, 0) is True
    assert registry.can_place_at(8, 8) is True
    assert registry.can_place_at(9, 8) is False
    assert registry.can_place_at(8, 9) is False
    assert registry.can_place_at(-1, 0) is False


def test_footprints_cannot_overlap(world):
    _, _, _, registry = world()
    assert registry.place_building(config.WHEAT_FARM, 0, 0).success

    assert registry.can_place_at(1, 1) is False
    assert registry.can_place_at(1, 0) is False
    assert registry.can_place_at(0, 2) is True
    assert registry.can_place_at(2, 0) is True
    assert registry.occupied_tiles() == {(0, 0), (0, 1), (1, 0), (1, 1)}
    assert registry.get_building_at(1, 1).type == config.WHEAT_FARM
    assert registry.get_building_at(2, 2) is None


def test_place_building_spends_base_cost_and_emits_event(world):
    bus, state, resources, registry = world({"gold": 500, "wheat": 40})
    placed = []
    bus.subscribe(BuildingPlaced, placed.append)

    result = registry.place_building(config.BAKERY, 4, 4)

    assert result.success is True
    assert result.error is None
    assert resources.get_resource("gold") == pytest.approx(400)
    assert resources.get_resource("wheat") == pytest.approx(20)
    assert state.buildings[0].level == 0
    assert placed[0].is_gold_producer is True
    assert placed[0].is_market is False
    assert placed[0].index == 0


def test_place_building_failures_do_not_spend(world):
    _, _, resources, registry = world({"gold": 5})

    result = registry.place_building(config.WHEAT_FARM, 0, 0)
    assert result.success is False
    assert result.error == "Not enough resources to build Wheat Farm!"

    resources.grant_reward({"gold": 100})
    result = registry.place_building(config.WHEAT_FARM, 9, 9)
    assert result.success is False
    assert result.error == "Cannot place building here!"
    assert resources.get_resource("gold") == pytest.approx(105)

    result = registry.place_building("castle", 0, 0)
    assert result.error == "Unknown building type"


def test_upgrade_until_max_level(world):
    bus, state, resources, registry = world({"gold": 2000})
    upgrades = []
    bus.subscribe(BuildingUpgraded, upgrades.append)
    registry.place_building(config.WHEAT_FARM, 0, 0)

    for expected_level in (1, 2, 3):
        assert registry.upgrade_building(0).success is True
        assert state.buildings[0].level == expected_level

    result = registry.upgrade_building(0)

    assert result.success is False
    assert result.error == "Wheat Farm is already at max level!"
    assert state.buildings[0].level == 3
    assert resources.get_resource("gold") == pytest.approx(2000 - 10 - 50 - 200 - 800)
    assert [(event.old_level, event.new_level) for event in upgrades] == [(0, 1), (1, 2), (2, 3)]
    assert registry.max_level(config.WHEAT_FARM) == 4


def test_upgrade_failures(world):
    _, state, _, registry = world({"gold": 30})
    registry.place_building(config.WHEAT_FARM, 0, 0)

    result = registry.upgrade_building(0)
    assert result.success is False
    assert result.error == "Not enough resources to upgrade Wheat Farm!"
    assert state.buildings[0].level == 0

    assert registry.upgrade_building(5).error == "Building not found"


def test_refund_for_upgraded_wheat_farm(world):
    _, _, resources, registry = world({"gold": 60})
    registry.place_building(config.WHEAT_FARM, 0, 0)
    registry.upgrade_building(0)
    assert resources.get_resource("gold") == pytest.approx(0)

    result = registry.remove_building(0)

    assert result.success is True
    assert result.refund == {Resource.GOLD: 30}
    assert resources.get_resource("gold") == pytest.approx(30)


def test_refund_is_floored_per_entry():
    refund = BuildingRegistry.calculate_refund(BuildingInstance(id=1, type=config.BARN, row=0, col=0, level=0))
    assert refund == {Resource.GOLD: 37, Resource.WOOD: 7}

    upgraded = BuildingInstance(id=2, type=config.BARN, row=0, col=0, level=2)
    assert BuildingRegistry.calculate_refund(upgraded) == {Resource.GOLD: 37 + 100 + 300, Resource.WOOD: 7}


def test_removal_shifts_indices_and_keeps_ids(world):
    bus, state, _, registry = world()
    removed = []
    bus.subscribe(BuildingRemoved, removed.append)
    registry.place_building(config.WHEAT_FARM, 0, 0)
    registry.place_building(config.QUARRY, 0, 2)
    registry.place_building(config.LUMBER, 0, 4)
    revision = state.building_revision

    assert registry.remove_building(0).success

    assert [b.type for b in state.buildings] == [config.QUARRY, config.LUMBER]
    assert [b.id for b in state.buildings] == [2, 3]
    assert registry.index_of_id(3) == 1
    assert state.building_revision == revision + 1
    assert removed[0].building_id == 1
    assert removed[0].index == 0

    result = registry.remove_building(7)
    assert result.success is False
    assert result.error == "Building not found"
    assert result.refund is None


def test_can_build_checks_unlock_then_cost(world):
    _, _, resources, registry = world({"gold": 30})

    assert registry.can_build(config.WHEAT_FARM).can_build is True

    locked = registry.can_build(config.QUARRY)
    assert locked.can_build is False
    assert locked.reason == "Locked"
    assert locked.missing == {Resource.WHEAT: pytest.approx(10)}

    resources.grant_reward({"wheat": 10})
    assert registry.can_build(config.QUARRY).can_build is True
    assert registry.can_build(config.BAKERY).reason == "Locked"
    assert registry.can_build("castle").reason == "Unknown building type"

    resources.grant_reward({"wood": 10})
    poor = registry.can_build(config.BARN)
    assert poor.reason == "Cannot afford"
    assert poor.missing == {Resource.GOLD: pytest.approx(45), Resource.WOOD: pytest.approx(5)}


def test_registry_queries(world):
    _, _, _, registry = world({"gold": 5000, "wood": 100})
    registry.place_building(config.WHEAT_FARM, 0, 0)
    registry.place_building(config.WHEAT_FARM, 0, 2)
    assert registry.has_market() is False
    assert registry.market_level() == 0
    assert registry.has_gold_production() is False

    registry.place_building(config.MARKET, 4, 4)
    registry.upgrade_building(2)

    assert registry.count_by_type(config.WHEAT_FARM) == 2
    assert registry.has_market() is True
    assert registry.market_level() == 2
    assert registry.has_gold_production() is True
    assert registry.total_levels() == 4
    assert registry.stats() == {
        "count": 3,
        "total_levels": 4,
        "types": {config.WHEAT_FARM: 2, config.MARKET: 1},
    }


def test_buildings_returns_copies(world):
    _, state, _, registry = world()
    registry.place_building(config.WHEAT_FARM, 0, 0)

    copies = registry.buildings()
    copies[0].level = 3

    assert state.buildings[0].level == 0
