"""Selling resources for gold at a placed market."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from . import config
from .buildings import BuildingRegistry
from .economy import ResourceService
from .events import EventBus, MarketSale
from .resources import Resource, normalise_resource, resource_name


@dataclass
class MarketSaleResult:
    success: bool
    amount: float = 0.0
    gold: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "amount": self.amount,
            "gold": self.gold,
            "error": self.error,
        }


class MarketService:
    """Prices scale with the market's display level: +10% per level above 1."""

    def __init__(self, registry: BuildingRegistry, resources: ResourceService, bus: EventBus) -> None:
        self._registry = registry
        self._resources = resources
        self._bus = bus

    # ------------------------------------------------------------------
    def has_market(self) -> bool:
        return self._registry.has_market()

    def level(self) -> int:
        return self._registry.market_level()

    def level_bonus(self) -> float:
        level = self.level()
        if level <= 0:
            return 1.0
        return 1.0 + (level - 1) * (config.MARKET_LEVEL_BONUS_PERCENT / 100.0)

    @staticmethod
    def base_price(resource: Resource | str) -> float:
        return float(config.MARKET_PRICES.get(normalise_resource(resource), 0))

    def price(self, resource: Resource | str) -> float:
        return float(math.floor(self.base_price(resource) * self.level_bonus()))

    def tradeable(self) -> List[Resource]:
        return list(config.MARKET_PRICES)

    def all_prices(self) -> Dict[Resource, float]:
        return {resource: self.price(resource) for resource in self.tradeable()}

    def max_sellable(self, resource: Resource | str) -> float:
        return self._resources.get_resource(resource)

    # ------------------------------------------------------------------
    def sell(self, resource: Resource | str, amount: float = 1) -> MarketSaleResult:
        if not self.has_market():
            return MarketSaleResult(False, error="No market available!")
        resource = normalise_resource(resource)
        if resource not in config.MARKET_PRICES:
            return MarketSaleResult(False, error=f"{resource_name(resource)} cannot be sold here!")

        actual = min(float(amount), self._resources.get_resource(resource))
        if actual <= 0:
            return MarketSaleResult(False, error=f"No {resource_name(resource).lower()} to sell!")

        price = self.price(resource)
        sale = self._resources.sell_resource(resource, actual, price)
        if not sale.success:
            return MarketSaleResult(False, error=f"No {resource_name(resource).lower()} to sell!")
        self._bus.publish(
            MarketSale(
                resource=resource,
                amount=actual,
                price_per_unit=price,
                gold_earned=sale.gold_received,
                market_level=self.level(),
            )
        )
        return MarketSaleResult(True, amount=actual, gold=sale.gold_received)

    def sell_all(self, resource: Resource | str) -> MarketSaleResult:
        return self.sell(resource, self._resources.get_resource(resource))

    def panel_data(self) -> Dict[str, object]:
        return {
            "available": self.has_market(),
            "level": self.level(),
            "level_bonus": self.level_bonus(),
            "prices": {resource.value: price for resource, price in self.all_prices().items()},
        }
