"""Cycle-based production for recipe (processor) buildings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

from . import config
from .buildings import BuildingInstance
from .economy import ResourceService
from .events import BuildingRemoved, EventBus, GameReset, ProcessorCycleCompleted, StateLoaded, Tick
from .game_state import GameState
from .resources import Resource, resource_name


logger = logging.getLogger(__name__)


class ProcessorStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STALLED = "stalled"


@dataclass
class ProcessorState:
    """Transient cycle state of one processor building."""

    progress: float = 0.0
    status: ProcessorStatus = ProcessorStatus.IDLE
    stall_reason: Optional[str] = None
    inputs_consumed: bool = False

    def reset(self) -> None:
        self.progress = 0.0
        self.status = ProcessorStatus.IDLE
        self.stall_reason = None
        self.inputs_consumed = False

    def stall(self, reason: str) -> None:
        self.progress = 0.0
        self.status = ProcessorStatus.STALLED
        self.stall_reason = reason
        self.inputs_consumed = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "progress": self.progress,
            "state": self.status.value,
            "stall_reason": self.stall_reason,
            "inputs_consumed": self.inputs_consumed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "ProcessorState":
        return cls(
            progress=float(data.get("progress", 0.0)),
            status=ProcessorStatus(data.get("state", ProcessorStatus.IDLE.value)),
            stall_reason=data.get("stall_reason"),
            inputs_consumed=bool(data.get("inputs_consumed", False)),
        )


class ProcessorEngine:
    """Run the Idle -> Running -> Idle cycle of every processor building.

    Starting a cycle pays the recipe inputs once; continuing a cycle never
    pays again. A processor that cannot start (missing inputs or no room
    for its outputs) stalls with a readable reason and retries every tick.
    Mutations are applied building by building, so list order decides who
    gets scarce storage space within a tick.

    Cycle state is keyed by the building's stable id; demolishing one
    building leaves the in-progress cycles of the others untouched.
    """

    def __init__(self, state: GameState, resources: ResourceService, bus: EventBus) -> None:
        self._state = state
        self._resources = resources
        self._bus = bus
        self._states: Dict[int, ProcessorState] = {}
        bus.subscribe(Tick, self._on_tick)
        bus.subscribe(BuildingRemoved, self._on_building_removed)
        bus.subscribe(GameReset, self._on_reset)
        bus.subscribe(StateLoaded, self._on_state_loaded)

    # ------------------------------------------------------------------
    def _on_tick(self, event: Tick) -> None:
        self.tick(event.delta_ms)

    def _on_building_removed(self, event: BuildingRemoved) -> None:
        self._states.pop(event.building_id, None)

    def _on_reset(self, event: GameReset) -> None:
        self._states.clear()

    def _on_state_loaded(self, event: StateLoaded) -> None:
        live = {building.id for building in self._state.buildings}
        for building_id in list(self._states):
            if building_id not in live:
                del self._states[building_id]

    # ------------------------------------------------------------------
    def tick(self, delta_ms: float = config.TICK_INTERVAL_MS) -> None:
        for index, building in enumerate(list(self._state.buildings)):
            definition = config.get_building_def(building.type)
            if definition is None or definition.recipe is None:
                continue
            state = self._states.setdefault(building.id, ProcessorState())
            self._process(index, building, state, float(delta_ms))

    def _process(self, index: int, building: BuildingInstance, state: ProcessorState, delta_ms: float) -> None:
        definition = config.get_building_def(building.type)
        recipe = definition.recipe
        effective_cycle = recipe.cycle_time_ms / definition.multiplier_for(building.level)

        if state.status is ProcessorStatus.RUNNING and state.inputs_consumed:
            self._advance(index, building, state, delta_ms, effective_cycle)
            return

        if not self._resources.can_afford(recipe.inputs):
            self._stall(building, state, self._missing_input_reason(recipe.inputs))
            return
        full = self._full_outputs(recipe.outputs)
        if full:
            self._stall(building, state, "Storage Full: " + ", ".join(resource_name(res) for res in full))
            return

        if not self._resources.apply_consumption(recipe.inputs):
            self._stall(building, state, self._missing_input_reason(recipe.inputs))
            return
        state.status = ProcessorStatus.RUNNING
        state.stall_reason = None
        state.inputs_consumed = True
        self._advance(index, building, state, delta_ms, effective_cycle)

    def _advance(
        self,
        index: int,
        building: BuildingInstance,
        state: ProcessorState,
        delta_ms: float,
        effective_cycle: float,
    ) -> None:
        state.progress += delta_ms / effective_cycle
        if state.progress < 1.0:
            return
        outputs = config.get_building_def(building.type).recipe.outputs
        self._resources.apply_production(outputs)
        state.reset()
        self._bus.publish(
            ProcessorCycleCompleted(
                building_index=index,
                building_id=building.id,
                building_type=building.type,
                outputs=dict(outputs),
            )
        )

    def _stall(self, building: BuildingInstance, state: ProcessorState, reason: str) -> None:
        if state.status is not ProcessorStatus.STALLED or state.stall_reason != reason:
            logger.debug("Processor %s #%s stalled: %s", building.type, building.id, reason)
        state.stall(reason)

    def _missing_input_reason(self, inputs: Mapping[Resource, float]) -> str:
        missing = self._resources.get_missing_resources(inputs)
        return "Need " + ", ".join(resource_name(res) for res in missing)

    def _full_outputs(self, outputs: Mapping[Resource, float]) -> List[Resource]:
        return [
            resource
            for resource, amount in outputs.items()
            if self._resources.remaining_space(resource) < amount
        ]

    # ------------------------------------------------------------------
    # Queries

    def is_processor(self, building: BuildingInstance) -> bool:
        definition = config.get_building_def(building.type)
        return definition is not None and definition.is_processor

    def get_state_by_id(self, building_id: int) -> ProcessorState:
        state = self._states.get(building_id)
        return state if state is not None else ProcessorState()

    def get_state(self, index: int) -> ProcessorState:
        if index < 0 or index >= len(self._state.buildings):
            return ProcessorState()
        return self.get_state_by_id(self._state.buildings[index].id)

    def processor_buildings(self) -> List[Dict[str, object]]:
        return [
            {"building": building, "index": index, "state": self.get_state_by_id(building.id)}
            for index, building in enumerate(self._state.buildings)
            if self.is_processor(building)
        ]

    def stalled_processors(self) -> List[Dict[str, object]]:
        return [entry for entry in self.processor_buildings() if entry["state"].status is ProcessorStatus.STALLED]

    def running_processors(self) -> List[Dict[str, object]]:
        return [entry for entry in self.processor_buildings() if entry["state"].status is ProcessorStatus.RUNNING]

    def calculate_rates(self) -> Dict[Resource, float]:
        """Approximate steady-state per-second rates; display only.

        Outputs count positive and inputs negative. Stalled processors are
        left out.
        """

        rates: Dict[Resource, float] = {}
        for entry in self.processor_buildings():
            if entry["state"].status is ProcessorStatus.STALLED:
                continue
            building = entry["building"]
            definition = config.get_building_def(building.type)
            recipe = definition.recipe
            cycle_seconds = recipe.cycle_time_ms / definition.multiplier_for(building.level) / 1000.0
            for resource, amount in recipe.outputs.items():
                rates[resource] = rates.get(resource, 0.0) + amount / cycle_seconds
            for resource, amount in recipe.inputs.items():
                rates[resource] = rates.get(resource, 0.0) - amount / cycle_seconds
        return rates

    # ------------------------------------------------------------------
    def export_state(self) -> Dict[str, Dict[str, object]]:
        live = {building.id for building in self._state.buildings}
        return {
            str(building_id): state.to_dict()
            for building_id, state in self._states.items()
            if building_id in live
        }

    @staticmethod
    def parse_state(data: Optional[Mapping[str, Mapping[str, object]]]) -> Dict[int, ProcessorState]:
        return {int(raw_id): ProcessorState.from_dict(entry) for raw_id, entry in (data or {}).items()}

    def restore_state(self, states: Mapping[int, ProcessorState]) -> None:
        self._states = dict(states)

    def import_state(self, data: Optional[Mapping[str, Mapping[str, object]]]) -> None:
        self.restore_state(self.parse_state(data))
