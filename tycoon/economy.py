"""Resource mutation API: the single chokepoint for ledger changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .game_state import GameState
from .ledger import AddResult
from .resources import Resource, get_definition, normalise_mapping, normalise_resource
from .storage import StorageCapCalculator


logger = logging.getLogger(__name__)

Amounts = Optional[Mapping[Resource | str, float]]


@dataclass
class SaleResult:
    success: bool
    gold_received: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {"success": self.success, "gold_received": self.gold_received}


@dataclass
class PurchaseResult:
    success: bool
    gold_spent: float = 0.0
    capped: Dict[Resource, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "success": self.success,
            "gold_spent": self.gold_spent,
            "capped": {res.value: amount for res, amount in self.capped.items()},
        }


class ResourceService:
    """Affordability checks plus every sanctioned way to change quantities.

    Additions are clamped to the storage cap reported by
    :class:`StorageCapCalculator`; subtractions are all-or-nothing.
    """

    def __init__(self, state: GameState, storage: StorageCapCalculator) -> None:
        self._state = state
        self._storage = storage

    @property
    def _ledger(self):
        return self._state.ledger

    # ------------------------------------------------------------------
    # Queries

    def get_resource(self, resource: Resource | str) -> float:
        try:
            return self._ledger.get(normalise_resource(resource))
        except KeyError:
            return 0.0

    def get_resources(self) -> Dict[Resource, float]:
        return self._ledger.snapshot()

    def can_afford(self, cost: Amounts) -> bool:
        if not cost:
            return True
        return self._ledger.has(normalise_mapping(cost))

    def is_unlocked(self, requirement: Amounts) -> bool:
        """Threshold check with the same semantics as :meth:`can_afford`."""

        return self.can_afford(requirement)

    def get_missing_resources(self, cost: Amounts) -> Dict[Resource, float]:
        missing: Dict[Resource, float] = {}
        for resource, amount in normalise_mapping(cost).items():
            held = self._ledger.get(resource)
            if held + 1e-9 < amount:
                missing[resource] = amount - held
        return missing

    # ------------------------------------------------------------------
    # Mutations

    def spend_resources(self, cost: Amounts) -> bool:
        if not cost:
            return True
        return self._ledger.subtract(normalise_mapping(cost))

    def add_resources(self, amounts: Amounts) -> AddResult:
        if not amounts:
            return AddResult()
        result = self._ledger.add(normalise_mapping(amounts), self._storage.get_cap)
        if result.capped:
            logger.debug(
                "Storage overflow discarded: %s",
                {res.value: round(amount, 3) for res, amount in result.capped.items()},
            )
        return result

    def grant_reward(self, amounts: Amounts) -> AddResult:
        return self.add_resources(amounts)

    def apply_production(self, amounts: Amounts) -> AddResult:
        return self.add_resources(amounts)

    def add_resource(self, resource: Resource | str, amount: float) -> AddResult:
        return self.add_resources({normalise_resource(resource): amount})

    def apply_consumption(self, amounts: Amounts) -> bool:
        return self.spend_resources(amounts)

    def subtract_resource(self, resource: Resource | str, amount: float) -> bool:
        return self.spend_resources({normalise_resource(resource): amount})

    def restore(self, quantities: Mapping[Resource | str, float]) -> None:
        """Install trusted quantities (a loaded save) without clamping."""

        self._ledger.replace(quantities)

    def enforce_caps(self) -> Dict[Resource, float]:
        """Trim stock that exceeds a cap which has just shrunk."""

        trimmed = self._ledger.clamp_to(self._storage.get_cap)
        if trimmed:
            logger.debug(
                "Stock trimmed to new caps: %s",
                {res.value: round(amount, 3) for res, amount in trimmed.items()},
            )
        return trimmed

    def sell_resource(
        self, resource: Resource | str, quantity: float, price_per_unit: float
    ) -> SaleResult:
        """Convert ``quantity`` of ``resource`` into gold atomically."""

        resource = normalise_resource(resource)
        quantity = float(quantity)
        if quantity <= 0 or resource is Resource.GOLD:
            return SaleResult(success=False)
        if not self._ledger.subtract({resource: quantity}):
            return SaleResult(success=False)
        gold = quantity * float(price_per_unit)
        self.add_resources({Resource.GOLD: gold})
        return SaleResult(success=True, gold_received=gold)

    def buy_resource(
        self, resource: Resource | str, quantity: float, price_per_unit: float
    ) -> PurchaseResult:
        resource = normalise_resource(resource)
        quantity = float(quantity)
        if quantity <= 0 or resource is Resource.GOLD:
            return PurchaseResult(success=False)
        total = quantity * float(price_per_unit)
        if not self._ledger.subtract({Resource.GOLD: total}):
            return PurchaseResult(success=False)
        result = self.add_resources({resource: quantity})
        return PurchaseResult(success=True, gold_spent=total, capped=dict(result.capped))

    # ------------------------------------------------------------------
    # Storage pass-throughs

    def get_cap(self, resource: Resource | str) -> float:
        return self._storage.get_cap(resource)

    def get_all_caps(self) -> Dict[Resource, float]:
        return self._storage.get_all_caps()

    def remaining_space(self, resource: Resource | str) -> float:
        return self._storage.remaining_space(resource)

    def is_at_cap(self, resource: Resource | str) -> bool:
        return self._storage.is_at_cap(resource)

    def is_capped(self, resource: Resource | str) -> bool:
        return self._storage.is_capped(resource)

    def utilization(self, resource: Resource | str) -> float:
        return self._storage.utilization(resource)

    def storage_info(self) -> Dict[str, Dict[str, object]]:
        return self._storage.storage_info()

    def resources_near_cap(self, threshold: Optional[float] = None) -> List[Resource]:
        if threshold is None:
            return self._storage.resources_near_cap()
        return self._storage.resources_near_cap(threshold)

    # ------------------------------------------------------------------
    # Formatting

    @staticmethod
    def format_number(value: float) -> str:
        if value >= 1_000_000:
            return f"{value / 1_000_000:.1f}M"
        if value >= 1_000:
            return f"{value / 1_000:.1f}K"
        return str(int(value))

    def format_cost(self, cost: Amounts) -> str:
        if not cost:
            return ""
        return " ".join(
            f"{self.format_number(amount)} {get_definition(resource).emoji}"
            for resource, amount in normalise_mapping(cost).items()
        )

    def format_with_cap(self, resource: Resource | str) -> str:
        current = self.get_resource(resource)
        if not self.is_capped(resource):
            return self.format_number(current)
        return f"{self.format_number(current)}/{self.format_number(self.get_cap(resource))}"
