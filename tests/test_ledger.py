import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tycoon.economy import ResourceService
from tycoon.events import EventBus, ResourcesChanged
from tycoon.game_state import GameState
from tycoon.ledger import LedgerInvariantError
from tycoon.resources import Resource
from tycoon.storage import StorageCapCalculator


def _services(initial=None):
    bus = EventBus()
    state = GameState(bus, initial)
    storage = StorageCapCalculator(state)
    events = []
    bus.subscribe(ResourcesChanged, events.append)
    return state, ResourceService(state, storage), events


def test_default_ledger_starts_with_fifty_gold():
    state, resources, _ = _services()

    assert resources.get_resource(Resource.GOLD) == pytest.approx(50)
    assert resources.get_resource("wheat") == pytest.approx(0)
    assert resources.get_resource("unobtainium") == 0.0


def test_add_clamps_to_cap_and_reports_overflow():
    _, resources, events = _services({"wheat": 95})

    result = resources.add_resources({"wheat": 10})

    assert resources.get_resource("wheat") == pytest.approx(100)
    assert result.added == {Resource.WHEAT: pytest.approx(5)}
    assert result.capped == {Resource.WHEAT: pytest.approx(5)}
    assert events[-1].capped == {Resource.WHEAT: pytest.approx(5)}
    assert events[-1].delta == {Resource.WHEAT: pytest.approx(5)}


def test_add_at_cap_keeps_quantity_and_loses_everything():
    _, resources, events = _services({"stone": 100})

    result = resources.apply_production({"stone": 3})

    assert resources.get_resource("stone") == pytest.approx(100)
    assert result.added == {}
    assert result.capped == {Resource.STONE: pytest.approx(3)}
    assert events[-1].delta == {}


def test_gold_is_never_capped():
    _, resources, events = _services()

    resources.grant_reward({"gold": 1_000_000})

    assert resources.get_resource("gold") == pytest.approx(1_000_050)
    assert math.isinf(resources.get_cap("gold"))
    assert events[-1].capped is None


def test_spend_is_atomic_on_failure():
    _, resources, events = _services({"gold": 50, "wheat": 3})
    before = resources.get_resources()

    assert resources.spend_resources({"gold": 10, "wheat": 5}) is False

    assert resources.get_resources() == before
    assert events == []


def test_spend_deducts_every_entry():
    _, resources, events = _services({"gold": 50, "wheat": 30})

    assert resources.spend_resources({"gold": 10, "wheat": 20}) is True

    assert resources.get_resource("gold") == pytest.approx(40)
    assert resources.get_resource("wheat") == pytest.approx(10)
    change = events[-1]
    assert change.old[Resource.GOLD] == pytest.approx(50)
    assert change.new[Resource.GOLD] == pytest.approx(40)
    assert change.delta == {Resource.GOLD: pytest.approx(-10), Resource.WHEAT: pytest.approx(-20)}


def test_empty_cost_is_always_affordable():
    _, resources, _ = _services({})

    assert resources.can_afford({}) is True
    assert resources.can_afford(None) is True
    assert resources.spend_resources(None) is True


def test_is_unlocked_never_deducts():
    _, resources, _ = _services({"wheat": 12})

    assert resources.is_unlocked({"wheat": 10}) is True
    assert resources.is_unlocked({"wheat": 13}) is False
    assert resources.get_resource("wheat") == pytest.approx(12)


def test_missing_resources_lists_shortfall_only():
    _, resources, _ = _services({"gold": 150, "wood": 5})

    missing = resources.get_missing_resources({"gold": 200, "stone": 30, "wood": 5})

    assert missing == {Resource.GOLD: pytest.approx(50), Resource.STONE: pytest.approx(30)}


def test_apply_consumption_fails_without_mutation():
    _, resources, _ = _services({"wheat": 0.5})

    assert resources.apply_consumption({"wheat": 1}) is False
    assert resources.get_resource("wheat") == pytest.approx(0.5)


def test_sell_resource_subtracts_then_credits_gold():
    _, resources, _ = _services({"gold": 50, "wheat": 10})

    sale = resources.sell_resource("wheat", 4, 3)

    assert sale.success is True
    assert sale.gold_received == pytest.approx(12)
    assert resources.get_resource("wheat") == pytest.approx(6)
    assert resources.get_resource("gold") == pytest.approx(62)


def test_sell_resource_fails_when_short():
    _, resources, _ = _services({"gold": 50, "wheat": 3})

    sale = resources.sell_resource("wheat", 4, 3)

    assert sale.success is False
    assert sale.gold_received == 0
    assert resources.get_resource("wheat") == pytest.approx(3)
    assert resources.get_resource("gold") == pytest.approx(50)


def test_buy_resource_spends_gold_and_clamps_purchase():
    _, resources, _ = _services({"gold": 100, "wood": 98})

    purchase = resources.buy_resource("wood", 5, 4)

    assert purchase.success is True
    assert purchase.gold_spent == pytest.approx(20)
    assert purchase.capped == {Resource.WOOD: pytest.approx(3)}
    assert resources.get_resource("wood") == pytest.approx(100)
    assert resources.get_resource("gold") == pytest.approx(80)


def test_negative_add_is_an_invariant_violation():
    _, resources, _ = _services()

    with pytest.raises(LedgerInvariantError):
        resources.add_resources({"wheat": -1})


def test_restore_rejects_negative_quantities():
    _, resources, _ = _services()

    with pytest.raises(LedgerInvariantError):
        resources.restore({"gold": -5})


def test_formatting_helpers():
    _, resources, _ = _services({"gold": 1500, "wheat": 42})

    assert resources.format_number(999) == "999"
    assert resources.format_number(1500) == "1.5K"
    assert resources.format_number(2_500_000) == "2.5M"
    assert resources.format_with_cap("wheat") == "42/100"
    assert resources.format_with_cap("gold") == "1.5K"
    assert resources.format_cost({"gold": 10}) == "10 💰"
