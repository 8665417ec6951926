import logging
import os
import uuid
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from api import ui_bridge
from tycoon.scheduler import ensure_tick_loop

app = Flask(__name__)

logger = logging.getLogger(__name__)

DEFAULT_SAVE_PATH = os.environ.get("TYCOON_SAVE_PATH", "savegame.json")


def _generate_request_metadata() -> tuple[str, str]:
    request_id = str(uuid.uuid4())
    server_time = datetime.now(timezone.utc).isoformat()
    return request_id, server_time


def _enrich_payload(payload: dict, request_id: str, server_time: str) -> dict:
    body = dict(payload or {})
    body["request_id"] = request_id
    body["server_time"] = server_time
    return body


def _json_response(payload: dict, status: int | None = None):
    request_id, server_time = _generate_request_metadata()
    body = _enrich_payload(payload, request_id, server_time)
    if status is None:
        status = 200 if body.get("ok", True) else int(body.get("http_status", 400))
    response = jsonify(body)
    response.status_code = status
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
    if not body.get("ok", True):
        logger.info(
            "Request %s %s failed request_id=%s error_code=%s",
            request.method,
            request.path,
            request_id,
            body.get("error_code"),
        )
    return response


@app.post("/api/init")
def api_init():
    """Initialise the game state, optionally forcing a reset."""

    reset_flag = request.args.get("reset")
    if reset_flag is None:
        payload = request.get_json(silent=True) or {}
        reset_flag = payload.get("reset") or payload.get("force_reset")
    return _json_response(ui_bridge.init_game(reset_flag))


@app.get("/api/state")
def api_state():
    """Return the current snapshot of the game state."""

    return _json_response(ui_bridge.get_state())


@app.post("/api/tick")
def api_tick():
    """Advance the simulation by ``count`` ticks (defaults to one nominal tick)."""

    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.tick(payload.get("delta_ms"), payload.get("count", 1)))


@app.post("/api/speed")
def api_speed():
    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.set_tick_interval(payload.get("interval_ms")))


@app.get("/api/building-types")
def api_building_types():
    return _json_response(ui_bridge.list_building_types())


@app.post("/api/buildings")
def api_place_building():
    """Place a building of ``type`` with its top-left tile at ``row``/``col``."""

    payload = request.get_json(silent=True) or {}
    response = ui_bridge.place_building(payload.get("type"), payload.get("row"), payload.get("col"))
    return _json_response(response)


@app.post("/api/buildings/<int:index>/upgrade")
def api_upgrade_building(index: int):
    return _json_response(ui_bridge.upgrade_building(index))


@app.delete("/api/buildings/<int:index>")
def api_demolish_building(index: int):
    return _json_response(ui_bridge.demolish_building(index))


@app.post("/api/market/sell")
def api_market_sell():
    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.sell_at_market(payload.get("resource"), payload.get("amount", 1)))


@app.get("/api/milestones")
def api_milestones():
    return _json_response(ui_bridge.get_milestones())


@app.post("/api/save")
def api_save():
    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.save_game(payload.get("path") or DEFAULT_SAVE_PATH))


@app.post("/api/load")
def api_load():
    payload = request.get_json(silent=True) or {}
    return _json_response(ui_bridge.load_game(payload.get("path") or DEFAULT_SAVE_PATH))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    ensure_tick_loop()
    app.run(debug=True, use_reloader=False)
