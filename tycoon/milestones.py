"""One-shot achievements that grant rewards."""

from __future__ import annotations

import logging
from typing import Dict, List

from . import config
from .buildings import BuildingRegistry
from .config import MilestoneDefinition
from .economy import ResourceService
from .events import BuildingPlaced, EventBus, MilestoneCompleted, Tick
from .game_state import GameState


logger = logging.getLogger(__name__)


class MilestoneTracker:
    def __init__(
        self,
        state: GameState,
        resources: ResourceService,
        registry: BuildingRegistry,
        bus: EventBus,
    ) -> None:
        self._state = state
        self._resources = resources
        self._registry = registry
        self._bus = bus
        bus.subscribe(BuildingPlaced, self._on_change)
        bus.subscribe(Tick, self._on_change)

    def _on_change(self, event: object) -> None:
        self.check_milestones()

    # ------------------------------------------------------------------
    def is_completed(self, key: str) -> bool:
        return key in self._state.completed_milestones

    def _condition_met(self, milestone: MilestoneDefinition) -> bool:
        if milestone.building_type is not None:
            return self._registry.count_by_type(milestone.building_type) >= milestone.building_count
        if milestone.resource is not None:
            return self._resources.get_resource(milestone.resource) >= milestone.resource_amount
        return False

    def check_milestones(self) -> List[str]:
        """Complete every milestone whose condition now holds; returns their keys."""

        newly_completed: List[str] = []
        for key, milestone in config.MILESTONES.items():
            if self.is_completed(key) or not self._condition_met(milestone):
                continue
            self._state.completed_milestones.append(key)
            self._resources.grant_reward(milestone.reward)
            newly_completed.append(key)
            logger.info("Milestone completed: %s", key)
            self._bus.publish(
                MilestoneCompleted(id=key, name=milestone.name, reward=dict(milestone.reward))
            )
        return newly_completed

    # ------------------------------------------------------------------
    def progress(self) -> Dict[str, int]:
        completed = len(self._state.completed_milestones)
        total = len(config.MILESTONES)
        return {
            "completed": completed,
            "total": total,
            "percentage": round(completed / total * 100) if total else 0,
        }

    def list_milestones(self) -> List[Dict[str, object]]:
        return [
            {
                "id": key,
                "name": milestone.name,
                "description": milestone.description,
                "icon": milestone.icon,
                "reward": {res.value: amount for res, amount in milestone.reward.items()},
                "completed": self.is_completed(key),
            }
            for key, milestone in config.MILESTONES.items()
        ]
