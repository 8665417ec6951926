"""Public API between the UI layer and the simulation core."""
from __future__ import annotations

from typing import Dict, Optional

from tycoon import config
from tycoon.game import get_game
from tycoon.persistence import load_game as core_load_game, save_game as core_save_game
from tycoon.resources import normalise_resource, to_payload


def _success_response(**payload: object) -> Dict[str, object]:
    response: Dict[str, object] = {"ok": True}
    response.update(payload)
    return response


def _error_response(
    code: str, message: str, *, http_status: int | None = None
) -> Dict[str, object]:
    payload: Dict[str, object] = {
        "ok": False,
        "error_code": code,
        "error_message": message,
        "error": message,
    }
    if http_status is not None:
        payload["http_status"] = int(http_status)
    return payload


def _should_reset(flag: object) -> bool:
    if flag is None:
        return True
    if isinstance(flag, str):
        return flag.strip().lower() not in {"0", "false", "no"}
    return bool(flag)


def _coerce_int(value: object) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Initialisation and ticking


def init_game(force_reset: object = None) -> Dict[str, object]:
    """Initialise or reset the global game using configuration defaults."""

    game = get_game()
    if _should_reset(force_reset):
        game.reset()
    return _success_response(**game.snapshot())


def get_state() -> Dict[str, object]:
    return _success_response(**get_game().snapshot())


def tick(delta_ms: object = None, count: object = 1) -> Dict[str, object]:
    """Advance the simulation by ``count`` ticks of ``delta_ms`` each.

    ``count`` is capped at ``config.MAX_TICKS_PER_REQUEST``.
    """

    game = get_game()
    try:
        delta = None if delta_ms is None else max(0.0, float(delta_ms))
        steps = min(max(1, int(count)), config.MAX_TICKS_PER_REQUEST)
    except (TypeError, ValueError, OverflowError):
        return _error_response("invalid_tick", "Tick parameters must be numeric", http_status=400)
    for _ in range(steps):
        game.tick(delta)
    return _success_response(**game.snapshot())


def set_tick_interval(interval_ms: object) -> Dict[str, object]:
    game = get_game()
    try:
        applied = game.loop.set_tick_interval(float(interval_ms))
    except (TypeError, ValueError):
        return _error_response("invalid_interval", "Interval must be numeric", http_status=400)
    return _success_response(tick_interval_ms=applied)


# ---------------------------------------------------------------------------
# Catalogue


def list_building_types() -> Dict[str, object]:
    game = get_game()
    entries = []
    for key, definition in config.BUILDINGS.items():
        check = game.registry.can_build(key)
        entries.append(
            {
                "type": key,
                "name": definition.name,
                "base_cost": to_payload(definition.base_cost),
                "production": to_payload(definition.production),
                "consumes": to_payload(definition.consumes),
                "unlock_req": to_payload(definition.unlock_req) if definition.unlock_req else None,
                "storage_bonus": definition.storage_bonus,
                "is_processor": definition.is_processor,
                "max_level": definition.display_max_level,
                "can_build": check.can_build,
                "reason": check.reason,
                "missing": to_payload(check.missing),
            }
        )
    return _success_response(building_types=entries)


def get_milestones() -> Dict[str, object]:
    game = get_game()
    return _success_response(
        milestones=game.milestones.list_milestones(),
        progress=game.milestones.progress(),
    )


# ---------------------------------------------------------------------------
# Player actions


def place_building(building_type: object, row: object, col: object) -> Dict[str, object]:
    game = get_game()
    try:
        type_key = config.resolve_building_type(building_type)
    except ValueError as exc:
        return _error_response("unknown_building_type", str(exc), http_status=400)
    row_value, col_value = _coerce_int(row), _coerce_int(col)
    if row_value is None or col_value is None:
        return _error_response("invalid_position", "Row and column must be integers", http_status=400)

    with game.lock:
        check = game.registry.can_build(type_key)
        if not check.can_build and check.reason == "Locked":
            definition = config.BUILDINGS[type_key]
            error = _error_response(
                "building_locked", f"{definition.name} is still locked!", http_status=409
            )
            error["missing"] = to_payload(check.missing)
            return error
        result = game.registry.place_building(type_key, row_value, col_value)
    if not result.success:
        code = "invalid_placement" if result.error == "Cannot place building here!" else "insufficient_resources"
        return _error_response(code, result.error or "Build failed", http_status=409)
    return _success_response(building=result.building.to_dict(), index=result.index, **game.snapshot())


def upgrade_building(index: object) -> Dict[str, object]:
    game = get_game()
    position = _coerce_int(index)
    if position is None:
        return _error_response("building_not_found", "Building not found", http_status=404)
    with game.lock:
        result = game.registry.upgrade_building(position)
    if not result.success:
        if result.error == "Building not found":
            return _error_response("building_not_found", result.error, http_status=404)
        if result.error and "max level" in result.error:
            return _error_response("max_level", result.error, http_status=409)
        return _error_response("insufficient_resources", result.error or "Upgrade failed", http_status=409)
    return _success_response(building=result.building.to_dict(), index=position, **game.snapshot())


def demolish_building(index: object) -> Dict[str, object]:
    game = get_game()
    position = _coerce_int(index)
    if position is None:
        return _error_response("building_not_found", "Building not found", http_status=404)
    with game.lock:
        result = game.registry.remove_building(position)
    if not result.success:
        return _error_response("building_not_found", result.error or "Building not found", http_status=404)
    return _success_response(refund=to_payload(result.refund or {}), **game.snapshot())


def sell_at_market(resource: object, amount: object = 1) -> Dict[str, object]:
    game = get_game()
    try:
        resource_key = normalise_resource(str(resource))
        quantity = float(amount) if amount is not None else 1.0
    except (KeyError, TypeError, ValueError) as exc:
        return _error_response("invalid_resource", str(exc), http_status=400)
    with game.lock:
        result = game.market.sell(resource_key, quantity)
    if not result.success:
        code = "no_market" if result.error == "No market available!" else "sale_failed"
        return _error_response(code, result.error or "Sale failed", http_status=409)
    return _success_response(sale=result.to_dict(), **game.snapshot())


# ---------------------------------------------------------------------------
# Persistence wrappers


def save_game(path: str) -> Dict[str, object]:
    try:
        core_save_game(get_game(), path)
    except OSError as exc:
        return _error_response("save_failed", str(exc), http_status=500)
    return _success_response(path=str(path))


def load_game(path: str) -> Dict[str, object]:
    game = get_game()
    try:
        core_load_game(game, path)
    except FileNotFoundError:
        return _error_response("save_missing", "No saved game found", http_status=404)
    except (OSError, ValueError, KeyError, TypeError) as exc:
        return _error_response("load_failed", str(exc), http_status=400)
    return _success_response(**game.snapshot())
