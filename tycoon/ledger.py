"""Resource ledger holding the current quantity of every resource."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from .errors import LedgerInvariantError
from .events import EventBus, ResourcesChanged
from .resources import ALL_RESOURCES, Resource, default_resources, normalise_mapping

CapLookup = Callable[[Resource], float]

EPSILON = 1e-9


@dataclass
class AddResult:
    """Outcome of an add: what landed in storage and what was clamped away."""

    added: Dict[Resource, float] = field(default_factory=dict)
    capped: Dict[Resource, float] = field(default_factory=dict)

    @property
    def overflowed(self) -> bool:
        return bool(self.capped)

    def to_dict(self) -> Dict[str, object]:
        return {
            "added": {res.value: amount for res, amount in self.added.items()},
            "capped": {res.value: amount for res, amount in self.capped.items()},
        }


class ResourceLedger:
    """Mapping from resource to a non-negative quantity.

    The ledger knows nothing about storage rules; callers pass a cap lookup
    to :meth:`add`. Every mutation publishes a :class:`ResourcesChanged`
    notification with the old and new snapshots.
    """

    def __init__(self, bus: EventBus, initial: Optional[Mapping[Resource | str, float]] = None) -> None:
        self._bus = bus
        self._amounts: Dict[Resource, float] = {}
        self._load(initial if initial is not None else default_resources())

    # ------------------------------------------------------------------
    def _load(self, quantities: Mapping[Resource | str, float]) -> None:
        amounts = {resource: 0.0 for resource in ALL_RESOURCES}
        for resource, amount in normalise_mapping(quantities).items():
            if amount < 0 or math.isnan(amount):
                raise LedgerInvariantError(f"Negative quantity for {resource.value}: {amount}")
            amounts[resource] = amount
        self._amounts = amounts

    def _publish(
        self,
        old: Dict[Resource, float],
        capped: Optional[Dict[Resource, float]] = None,
    ) -> None:
        new = self.snapshot()
        delta = {
            resource: new.get(resource, 0.0) - old.get(resource, 0.0)
            for resource in new
            if new.get(resource, 0.0) != old.get(resource, 0.0)
        }
        self._bus.publish(ResourcesChanged(old=old, new=new, delta=delta, capped=capped or None))

    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[Resource, float]:
        return dict(self._amounts)

    def get(self, resource: Resource) -> float:
        return float(self._amounts.get(resource, 0.0))

    def has(self, requirements: Mapping[Resource, float]) -> bool:
        return all(self.get(res) + EPSILON >= amount for res, amount in requirements.items())

    def add(self, amounts: Mapping[Resource, float], cap_for: Optional[CapLookup] = None) -> AddResult:
        """Add ``amounts`` clamping each resource to ``cap_for(resource)``.

        Overflow above the cap is reported in the result and the published
        notification, then discarded.
        """

        result = AddResult()
        old = self.snapshot()
        for resource, amount in amounts.items():
            if amount == 0:
                continue
            if amount < 0:
                raise LedgerInvariantError(f"Cannot add a negative amount of {resource.value}")
            cap = cap_for(resource) if cap_for is not None else math.inf
            current = self.get(resource)
            target = current + float(amount)
            if target > cap:
                result.capped[resource] = target - max(cap, current)
                target = max(cap, current)
            if target > current:
                result.added[resource] = target - current
                self._amounts[resource] = target
        if result.added or result.capped:
            self._publish(old, dict(result.capped))
        return result

    def subtract(self, amounts: Mapping[Resource, float]) -> bool:
        """Remove ``amounts`` atomically; returns ``False`` without mutating on shortfall."""

        if not self.has(amounts):
            return False
        old = self.snapshot()
        changed = False
        for resource, amount in amounts.items():
            if amount == 0:
                continue
            if amount < 0:
                raise LedgerInvariantError(f"Cannot subtract a negative amount of {resource.value}")
            self._amounts[resource] = max(0.0, self.get(resource) - float(amount))
            changed = True
        if changed:
            self._publish(old)
        return True

    def replace(self, quantities: Mapping[Resource | str, float]) -> None:
        """Overwrite every quantity from a trusted snapshot."""

        old = self.snapshot()
        self._load(quantities)
        self._publish(old)

    def reset(self, initial: Optional[Mapping[Resource | str, float]] = None) -> None:
        self.replace(initial if initial is not None else default_resources())

    def clamp_to(self, cap_for: CapLookup) -> Dict[Resource, float]:
        """Trim quantities that exceed their cap, returning what was removed."""

        old = self.snapshot()
        trimmed: Dict[Resource, float] = {}
        for resource, amount in old.items():
            cap = cap_for(resource)
            if amount > cap:
                trimmed[resource] = amount - cap
                self._amounts[resource] = cap
        if trimmed:
            self._publish(old, trimmed)
        return trimmed
