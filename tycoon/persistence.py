"""Persistence helpers to save and load game state."""
from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Mapping

from . import config
from .buildings import BuildingInstance
from .events import StateLoaded
from .game_state import StipendState
from .processors import ProcessorEngine
from .resources import default_resources, normalise_mapping, to_payload

if TYPE_CHECKING:
    from .game import Game


logger = logging.getLogger(__name__)

SAVE_VERSION = config.SAVE_VERSION


def export_state(game: "Game") -> Dict[str, Any]:
    """Plain snapshot of every piece of mutable state."""

    state = game.state
    return {
        "version": SAVE_VERSION,
        "tick": game.loop.tick_count,
        "resources": to_payload(state.ledger.snapshot()),
        "buildings": [building.to_dict() for building in state.buildings],
        "next_building_id": state.next_building_id,
        "processors": game.processors.export_state(),
        "stipend": state.stipend.to_dict(),
        "milestones": list(state.completed_milestones),
    }


def import_state(game: "Game", data: Mapping[str, Any]) -> None:
    """Restore a snapshot produced by :func:`export_state`.

    A save is trusted: placements, costs and caps are not re-validated.
    Every section is parsed before anything is applied, so a malformed
    save raises and leaves the running game untouched.
    """

    resources = default_resources()
    resources.update(normalise_mapping(data.get("resources") or {}))
    for resource, amount in resources.items():
        if amount < 0 or math.isnan(amount):
            raise ValueError(f"Invalid quantity for {resource.value}: {amount}")

    buildings = [
        BuildingInstance.from_dict(entry, fallback_id=position + 1)
        for position, entry in enumerate(data.get("buildings") or [])
    ]
    next_id = int(data.get("next_building_id") or 0)
    stipend = StipendState.from_dict(data.get("stipend") or {})
    milestones = [str(key) for key in data.get("milestones") or []]
    processors = ProcessorEngine.parse_state(data.get("processors"))
    tick = int(data.get("tick", 0))

    state = game.state
    game.registry.replace_all(buildings, next_id)
    game.resources.restore(resources)
    state.stipend = stipend
    state.completed_milestones = milestones
    game.processors.restore_state(processors)
    game.loop.reset(tick)
    logger.info("State restored: %s buildings", len(buildings))
    game.bus.publish(StateLoaded())


def save_game(game: "Game", path: str | Path) -> None:
    """Serialise the current game state to ``path`` in JSON format."""

    data = game.export_state()
    with open(Path(path), "w", encoding="utf-8") as fh:
        json.dump(data, fh, ensure_ascii=False, indent=2)
    logger.info("Game saved to %s", path)


def load_game(game: "Game", path: str | Path) -> None:
    """Restore previously saved state from ``path``."""

    with open(Path(path), "r", encoding="utf-8") as fh:
        data = json.load(fh)
    version = data.get("version")
    if not isinstance(version, int) or version > SAVE_VERSION or version < 1:
        raise ValueError(f"Incompatible save version: {version}")
    game.import_state(data)
    logger.info("Game loaded from %s", path)
