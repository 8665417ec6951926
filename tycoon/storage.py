"""Storage caps derived from the placed storage buildings."""

from __future__ import annotations

import math
from typing import Dict, List, Optional

from . import config
from .game_state import GameState
from .resources import ALL_RESOURCES, RESOURCE_DEFINITIONS, Resource, normalise_resource


class StorageCapCalculator:
    """Compute per-resource capacity and cache it per building revision.

    ``cap = base_storage + sum(storage_bonus * multiplier)`` over every
    building whose definition carries a storage bonus. Currency resources
    have an infinite base and stay uncapped.
    """

    def __init__(self, state: GameState) -> None:
        self._state = state
        self._cache: Optional[Dict[Resource, float]] = None
        self._cache_revision: Optional[int] = None

    # ------------------------------------------------------------------
    def _storage_buildings(self):
        for building in self._state.buildings:
            definition = config.get_building_def(building.type)
            if definition is not None and definition.storage_bonus > 0:
                yield building, definition

    def total_storage_bonus(self) -> float:
        return sum(
            definition.storage_bonus * definition.multiplier_for(building.level)
            for building, definition in self._storage_buildings()
        )

    def storage_building_count(self) -> int:
        return sum(1 for _ in self._storage_buildings())

    def _compute_caps(self) -> Dict[Resource, float]:
        bonus = self.total_storage_bonus()
        caps: Dict[Resource, float] = {}
        for resource in ALL_RESOURCES:
            base = RESOURCE_DEFINITIONS[resource].base_storage
            caps[resource] = base + bonus if math.isfinite(base) else math.inf
        return caps

    def _caps(self) -> Dict[Resource, float]:
        revision = self._state.building_revision
        if self._cache is None or self._cache_revision != revision:
            self._cache = self._compute_caps()
            self._cache_revision = revision
        return self._cache

    def invalidate(self) -> None:
        self._cache = None
        self._cache_revision = None

    # ------------------------------------------------------------------
    def get_cap(self, resource: Resource | str) -> float:
        return self._caps().get(normalise_resource(resource), math.inf)

    def get_all_caps(self) -> Dict[Resource, float]:
        return dict(self._caps())

    def is_capped(self, resource: Resource | str) -> bool:
        return math.isfinite(self.get_cap(resource))

    def remaining_space(self, resource: Resource | str) -> float:
        resource = normalise_resource(resource)
        cap = self.get_cap(resource)
        if not math.isfinite(cap):
            return math.inf
        return max(0.0, cap - self._state.ledger.get(resource))

    def is_at_cap(self, resource: Resource | str) -> bool:
        resource = normalise_resource(resource)
        cap = self.get_cap(resource)
        return math.isfinite(cap) and self._state.ledger.get(resource) >= cap

    def is_any_at_cap(self) -> bool:
        return any(self.is_at_cap(resource) for resource in ALL_RESOURCES)

    def utilization(self, resource: Resource | str) -> float:
        """Percentage of the cap in use, 0 for uncapped resources."""

        resource = normalise_resource(resource)
        cap = self.get_cap(resource)
        if not math.isfinite(cap) or cap <= 0:
            return 0.0
        return min(100.0, self._state.ledger.get(resource) / cap * 100.0)

    def clamp_to_available(self, resource: Resource | str, amount: float) -> float:
        return max(0.0, min(float(amount), self.remaining_space(resource)))

    def storage_info(self) -> Dict[str, Dict[str, object]]:
        info: Dict[str, Dict[str, object]] = {}
        for resource in ALL_RESOURCES:
            cap = self.get_cap(resource)
            capped = math.isfinite(cap)
            info[resource.value] = {
                "current": self._state.ledger.get(resource),
                "cap": cap if capped else None,
                "display_cap": str(int(cap)) if capped else "∞",
                "is_capped": capped,
                "remaining": self.remaining_space(resource) if capped else None,
                "utilization": self.utilization(resource),
                "is_at_cap": self.is_at_cap(resource),
            }
        return info

    def resources_near_cap(
        self, threshold: float = config.NEAR_CAP_THRESHOLD_PERCENT
    ) -> List[Resource]:
        return [
            resource
            for resource in ALL_RESOURCES
            if self.is_capped(resource) and self.utilization(resource) >= threshold
        ]
