"""Tick source for the simulation."""

from __future__ import annotations

import logging
import time
from typing import Optional

from . import config
from .events import EventBus, Tick


logger = logging.getLogger(__name__)


class GameLoop:
    """Publishes :class:`Tick` events and counts them.

    The loop does not own a timer; the background scheduler (or a test)
    calls :meth:`manual_tick`. Changing the interval only changes how
    often the scheduler fires, not the production quantum.
    """

    def __init__(self, bus: EventBus, interval_ms: float = config.TICK_INTERVAL_MS) -> None:
        self._bus = bus
        self._interval_ms = float(interval_ms)
        self._tick_count = 0

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    @property
    def interval_seconds(self) -> float:
        return self._interval_ms / 1000.0

    def set_tick_interval(self, interval_ms: float) -> float:
        interval = max(float(config.MIN_TICK_INTERVAL_MS), float(interval_ms))
        if interval != self._interval_ms:
            logger.info("Tick interval changed from %.0fms to %.0fms", self._interval_ms, interval)
        self._interval_ms = interval
        return interval

    def manual_tick(self, delta_ms: Optional[float] = None, *, manual: bool = True) -> Tick:
        """Publish one tick. ``delta_ms`` defaults to the nominal interval."""

        delta = float(config.TICK_INTERVAL_MS if delta_ms is None else delta_ms)
        self._tick_count += 1
        event = Tick(
            tick_count=self._tick_count,
            delta_ms=max(0.0, delta),
            timestamp=time.time(),
            manual=manual,
        )
        self._bus.publish(event)
        return event

    def reset(self, tick_count: int = 0) -> None:
        self._tick_count = max(0, int(tick_count))
