"""Royal stipend: passive gold until the first gold producer is built."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from . import config
from .buildings import BuildingRegistry
from .economy import ResourceService
from .events import BuildingPlaced, EventBus, StipendEnded, Tick
from .game_state import GameState
from .resources import Resource


logger = logging.getLogger(__name__)


class StipendService:
    def __init__(
        self,
        state: GameState,
        resources: ResourceService,
        registry: BuildingRegistry,
        bus: EventBus,
        *,
        interval_ms: float = config.STIPEND_INTERVAL_MS,
        amount: float = config.STIPEND_AMOUNT,
    ) -> None:
        self._state = state
        self._resources = resources
        self._registry = registry
        self._bus = bus
        self.interval_ms = float(interval_ms)
        self.amount = float(amount)
        bus.subscribe(Tick, self._on_tick)
        bus.subscribe(BuildingPlaced, self._on_building_placed)

    # ------------------------------------------------------------------
    def is_active(self) -> bool:
        return self._state.stipend.active

    def total_received(self) -> float:
        return self._state.stipend.total_received

    def check_status(self) -> None:
        if self.is_active() and self._registry.has_gold_production():
            self._end()

    def _end(self) -> None:
        reason: Optional[str] = next(
            (b.type for b in self._state.buildings if b.type in config.GOLD_PRODUCERS),
            None,
        )
        stipend = self._state.stipend
        stipend.active = False
        stipend.end_reason = reason
        stipend.elapsed_ms = 0.0
        logger.info("Stipend ended by %s after %.0f gold", reason, stipend.total_received)
        self._bus.publish(StipendEnded(total_received=stipend.total_received, reason=reason))

    def tick(self, delta_ms: float) -> float:
        """Accumulate tick time and pay one stipend per elapsed interval."""

        if not self.is_active():
            return 0.0
        stipend = self._state.stipend
        stipend.elapsed_ms += max(0.0, float(delta_ms))
        payments = int(stipend.elapsed_ms // self.interval_ms)
        if payments <= 0:
            return 0.0
        stipend.elapsed_ms -= payments * self.interval_ms
        granted = payments * self.amount
        self._resources.grant_reward({Resource.GOLD: granted})
        stipend.total_received += granted
        return granted

    # ------------------------------------------------------------------
    def _on_tick(self, event: Tick) -> None:
        self.tick(event.delta_ms)

    def _on_building_placed(self, event: BuildingPlaced) -> None:
        if event.is_gold_producer:
            self.check_status()

    # ------------------------------------------------------------------
    def end_reason_name(self) -> Optional[str]:
        reason = self._state.stipend.end_reason
        if not reason:
            return None
        definition = config.get_building_def(reason)
        return definition.name if definition else reason

    def display_info(self) -> Dict[str, object]:
        stipend = self._state.stipend
        return {
            "active": stipend.active,
            "rate": f"+{self.amount:g} gold/{self.interval_ms / 1000:g}s" if stipend.active else "Ended",
            "total_received": stipend.total_received,
            "end_reason": stipend.end_reason,
            "end_reason_name": self.end_reason_name(),
        }
