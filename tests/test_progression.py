"""Stipend, market and milestone behaviour on top of the full game wiring."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tycoon import config
from tycoon.events import MarketSale, MilestoneCompleted, StipendEnded
from tycoon.game import Game
from tycoon.resources import Resource


def test_stipend_pays_one_gold_every_two_seconds():
    game = Game()

    game.tick()
    assert game.resources.get_resource("gold") == pytest.approx(50)

    game.tick()
    assert game.resources.get_resource("gold") == pytest.approx(51)

    game.tick(5000)
    assert game.resources.get_resource("gold") == pytest.approx(53)
    assert game.stipend.total_received() == pytest.approx(3)


def test_stipend_ends_with_first_gold_producer():
    game = Game(initial={"gold": 500, "wheat": 40})
    ended = []
    game.bus.subscribe(StipendEnded, ended.append)
    game.tick(2000)
    assert game.stipend.total_received() == pytest.approx(1)

    assert game.registry.place_building(config.WHEAT_FARM, 0, 0).success
    assert game.stipend.is_active() is True

    assert game.registry.place_building(config.BAKERY, 0, 2).success

    assert game.stipend.is_active() is False
    assert ended[0].reason == config.BAKERY
    assert ended[0].total_received == pytest.approx(1)
    assert game.stipend.display_info()["end_reason_name"] == "Bakery"

    for _ in range(4):
        game.tick()
    assert game.stipend.total_received() == pytest.approx(1)


def test_market_requires_a_market_building():
    game = Game(initial={"gold": 100, "wheat": 10})

    result = game.market.sell("wheat", 5)

    assert result.success is False
    assert result.error == "No market available!"
    assert game.resources.get_resource("wheat") == pytest.approx(10)


def test_market_sells_through_resource_service():
    game = Game(initial={"gold": 10_000, "wood": 100, "wheat": 8})
    sales = []
    game.bus.subscribe(MarketSale, sales.append)
    game.registry.place_building(config.MARKET, 0, 0)
    gold_before = game.resources.get_resource("gold")

    result = game.market.sell("wheat", 5)

    assert result.success is True
    assert result.amount == pytest.approx(5)
    assert result.gold == pytest.approx(15)
    assert game.resources.get_resource("wheat") == pytest.approx(3)
    assert game.resources.get_resource("gold") == pytest.approx(gold_before + 15)
    assert sales[0].resource is Resource.WHEAT
    assert sales[0].market_level == 1

    result = game.market.sell_all("wheat")
    assert result.amount == pytest.approx(3)
    assert game.resources.get_resource("wheat") == pytest.approx(0)

    result = game.market.sell("wheat", 1)
    assert result.success is False
    assert result.error == "No wheat to sell!"


def test_market_prices_scale_with_level():
    game = Game(initial={"gold": 10_000, "wood": 100})
    game.registry.place_building(config.MARKET, 0, 0)
    assert game.market.price("bread") == 12

    game.registry.upgrade_building(0)
    assert game.market.level() == 2
    assert game.market.level_bonus() == pytest.approx(1.1)
    assert game.market.price("bread") == 13
    assert game.market.price("wheat") == 3

    game.registry.upgrade_building(0)
    assert game.market.price("bread") == 14
    assert game.market.price("stone") == 6
    assert game.market.price("tools") == 0


def test_building_milestones_pay_once():
    game = Game()
    completed = []
    game.bus.subscribe(MilestoneCompleted, completed.append)

    game.registry.place_building(config.WHEAT_FARM, 0, 0)

    assert [event.id for event in completed] == ["first_farm"]
    assert game.resources.get_resource("gold") == pytest.approx(50 - 10 + 15)

    game.registry.place_building(config.WHEAT_FARM, 0, 2)

    assert [event.id for event in completed] == ["first_farm", "second_farm"]
    assert game.resources.get_resource("gold") == pytest.approx(55 - 10 + 10)
    assert game.milestones.progress() == {"completed": 2, "total": 8, "percentage": 25}


def test_stockpile_milestone_completes_on_tick():
    game = Game(initial={"gold": 10})
    game.registry.place_building(config.WHEAT_FARM, 0, 0)
    assert game.state.completed_milestones == ["first_farm"]

    for _ in range(9):
        game.tick()
    assert "wheat_10" not in game.state.completed_milestones

    game.tick()

    assert game.resources.get_resource("wheat") == pytest.approx(10)
    assert "wheat_10" in game.state.completed_milestones
    listing = {entry["id"]: entry for entry in game.milestones.list_milestones()}
    assert listing["wheat_10"]["completed"] is True
    assert listing["wheat_30"]["completed"] is False


def test_tick_runs_continuous_engine_before_processors():
    game = Game(initial={"gold": 5000, "wood": 100, "wheat": 22})
    game.registry.place_building(config.BAKERY, 0, 0)
    game.registry.place_building(config.MILL, 0, 2)
    assert game.resources.get_resource("wheat") == pytest.approx(2)

    game.tick()

    # The bakery eats one wheat first, leaving too little for a mill cycle.
    assert game.resources.get_resource("wheat") == pytest.approx(1)
    assert game.processors.get_state(1).stall_reason == "Need Wheat"


def test_reset_restores_starting_state():
    game = Game()
    game.registry.place_building(config.WHEAT_FARM, 0, 0)
    game.tick()

    game.reset()

    assert game.state.buildings == []
    assert game.state.completed_milestones == []
    assert game.loop.tick_count == 0
    assert game.resources.get_resource("gold") == pytest.approx(50)
    assert game.resources.get_resource("wheat") == pytest.approx(0)
    assert game.stipend.is_active() is True


def test_tick_interval_changes_only_the_schedule():
    game = Game()

    assert game.loop.set_tick_interval(250) == pytest.approx(250)
    assert game.loop.set_tick_interval(1) == pytest.approx(config.MIN_TICK_INTERVAL_MS)

    event_count = game.tick()
    assert event_count == 1
    assert game.stipend.display_info()["total_received"] == 0


def test_production_counter_follows_reset():
    game = Game()
    for _ in range(3):
        game.tick()
    assert game.production.tick_count == 3

    game.reset()

    assert game.production.tick_count == game.loop.tick_count == 0
    assert game.production.last_report.produced == {}
    game.tick()
    assert game.production.tick_count == game.loop.tick_count == 1
