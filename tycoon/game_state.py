"""Mutable state container shared by the simulation components."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

from .events import EventBus, GameReset
from .ledger import ResourceLedger
from .resources import Resource, default_resources

if TYPE_CHECKING:
    from .buildings import BuildingInstance


logger = logging.getLogger(__name__)


@dataclass
class StipendState:
    active: bool = True
    elapsed_ms: float = 0.0
    total_received: float = 0.0
    end_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "active": self.active,
            "elapsed_ms": self.elapsed_ms,
            "total_received": self.total_received,
            "end_reason": self.end_reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "StipendState":
        return cls(
            active=bool(data.get("active", True)),
            elapsed_ms=float(data.get("elapsed_ms", 0.0)),
            total_received=float(data.get("total_received", 0.0)),
            end_reason=data.get("end_reason"),
        )


class GameState:
    """Central storage for all mutable game data.

    Components receive the instance through their constructor. Only the
    resource service mutates :attr:`ledger` and only the building registry
    mutates :attr:`buildings`; everyone else reads.
    """

    def __init__(self, bus: EventBus, initial: Optional[Mapping[Resource | str, float]] = None) -> None:
        self.bus = bus
        self._initial = dict(initial) if initial is not None else None
        self.ledger = ResourceLedger(bus, self._starting_resources())
        self.buildings: List["BuildingInstance"] = []
        self.building_revision = 0
        self.next_building_id = 1
        self.stipend = StipendState()
        self.completed_milestones: List[str] = []

    def _starting_resources(self) -> Mapping[Resource | str, float]:
        if self._initial is not None:
            return self._initial
        return default_resources()

    # ------------------------------------------------------------------
    def bump_revision(self) -> int:
        self.building_revision += 1
        return self.building_revision

    def allocate_building_id(self) -> int:
        building_id = self.next_building_id
        self.next_building_id += 1
        return building_id

    def reset(self) -> None:
        """Restore the starting state and notify listeners."""

        self.buildings = []
        self.next_building_id = 1
        self.bump_revision()
        self.stipend = StipendState()
        self.completed_milestones = []
        self.ledger.reset(self._starting_resources())
        logger.info("Game state reset")
        self.bus.publish(GameReset())
