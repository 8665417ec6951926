"""End-to-end API verification for initial game state and player actions."""

from __future__ import annotations

import math
import sys
from pathlib import Path
from typing import Dict

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app import app
from tycoon import config
from tycoon.resources import Resource, STARTING_RESOURCES


@pytest.fixture()
def client():
    app.config.update(TESTING=True)
    with app.test_client() as test_client:
        init_response = test_client.post("/api/init?reset=1")
        assert init_response.status_code == 200
        yield test_client


def _assert_starting_resources(resources: Dict[str, float]) -> None:
    for resource in Resource:
        amount = resources.get(resource.value)
        assert amount is not None, f"Missing resource {resource.value}"
        expected = STARTING_RESOURCES.get(resource, 0.0)
        assert math.isclose(amount, expected, abs_tol=1e-9), (
            f"Expected {resource.value} to start at {expected}, got {amount}"
        )


def test_forced_init_returns_starting_state(client):
    response = client.post("/api/init", json={"reset": True})
    payload = response.get_json()

    assert payload["ok"] is True
    assert payload["tick"] == 0
    assert payload["buildings"] == []
    assert payload["stipend"]["active"] is True
    assert payload["storage"]["wheat"]["cap"] == pytest.approx(100)
    assert payload["storage"]["gold"]["cap"] is None
    assert "request_id" in payload and "server_time" in payload
    assert response.headers["Cache-Control"].startswith("no-store")
    _assert_starting_resources(payload["resources"])


def test_place_tick_upgrade_and_demolish(client):
    placed = client.post("/api/buildings", json={"type": "wheat_farm", "row": 0, "col": 0})
    assert placed.status_code == 200
    payload = placed.get_json()
    assert payload["index"] == 0
    assert payload["building"]["level"] == 0
    # 50 start - 10 cost + 15 first-farm reward
    assert payload["resources"]["gold"] == pytest.approx(55)

    ticked = client.post("/api/tick", json={"count": 3}).get_json()
    assert ticked["tick"] == 3
    assert ticked["resources"]["wheat"] == pytest.approx(3)
    assert ticked["resources"]["gold"] == pytest.approx(56)
    assert ticked["rates"]["wheat"] == pytest.approx(1)

    upgraded = client.post("/api/buildings/0/upgrade").get_json()
    assert upgraded["ok"] is True
    assert upgraded["building"]["level"] == 1
    assert upgraded["resources"]["gold"] == pytest.approx(6)

    demolished = client.delete("/api/buildings/0").get_json()
    assert demolished["ok"] is True
    assert demolished["refund"] == {"gold": 30}
    assert demolished["resources"]["gold"] == pytest.approx(36)
    assert demolished["buildings"] == []


def test_invalid_actions_map_to_error_payloads(client):
    overlap_setup = client.post("/api/buildings", json={"type": "wheat_farm", "row": 2, "col": 2})
    assert overlap_setup.status_code == 200

    overlap = client.post("/api/buildings", json={"type": "wheat_farm", "row": 3, "col": 3})
    assert overlap.status_code == 409
    assert overlap.get_json()["error_code"] == "invalid_placement"
    assert overlap.get_json()["error"] == "Cannot place building here!"

    unknown = client.post("/api/buildings", json={"type": "castle", "row": 0, "col": 0})
    assert unknown.status_code == 400
    assert unknown.get_json()["error_code"] == "unknown_building_type"

    locked = client.post("/api/buildings", json={"type": "quarry", "row": 0, "col": 0})
    assert locked.status_code == 409
    assert locked.get_json()["error_code"] == "building_locked"
    assert locked.get_json()["missing"] == {"wheat": 10}

    missing = client.post("/api/buildings/9/upgrade")
    assert missing.status_code == 404
    assert missing.get_json()["error_code"] == "building_not_found"

    no_market = client.post("/api/market/sell", json={"resource": "wheat", "amount": 1})
    assert no_market.status_code == 409
    assert no_market.get_json()["error_code"] == "no_market"


def test_building_types_report_unlock_state(client):
    payload = client.get("/api/building-types").get_json()
    entries = {entry["type"]: entry for entry in payload["building_types"]}

    assert set(entries) == set(config.BUILDINGS)
    assert entries["wheat_farm"]["can_build"] is True
    assert entries["quarry"]["reason"] == "Locked"
    assert entries["mill"]["is_processor"] is True
    assert entries["barn"]["storage_bonus"] == pytest.approx(100)


def test_milestones_endpoint(client):
    client.post("/api/buildings", json={"type": "wheat_farm", "row": 0, "col": 0})

    payload = client.get("/api/milestones").get_json()

    assert payload["progress"]["completed"] == 1
    first = next(entry for entry in payload["milestones"] if entry["id"] == "first_farm")
    assert first["completed"] is True
    assert first["reward"] == {"gold": 15}


def test_save_and_load_through_api(client, tmp_path):
    path = tmp_path / "api-save.json"
    client.post("/api/buildings", json={"type": "wheat_farm", "row": 0, "col": 0})
    client.post("/api/tick", json={"count": 2})

    saved = client.post("/api/save", json={"path": str(path)})
    assert saved.status_code == 200
    assert path.exists()

    client.post("/api/init?reset=1")
    loaded = client.post("/api/load", json={"path": str(path)}).get_json()

    assert loaded["ok"] is True
    assert loaded["tick"] == 2
    assert loaded["resources"]["wheat"] == pytest.approx(2)
    assert [b["type"] for b in loaded["buildings"]] == ["wheat_farm"]

    missing = client.post("/api/load", json={"path": str(tmp_path / "nope.json")})
    assert missing.status_code == 404
    assert missing.get_json()["error_code"] == "save_missing"


def test_speed_control(client):
    payload = client.post("/api/speed", json={"interval_ms": 500}).get_json()
    assert payload["tick_interval_ms"] == pytest.approx(500)

    bad = client.post("/api/speed", json={"interval_ms": "fast"})
    assert bad.status_code == 400

    client.post("/api/speed", json={"interval_ms": config.TICK_INTERVAL_MS})


def test_tick_count_is_capped_per_request(client, monkeypatch):
    monkeypatch.setattr(config, "MAX_TICKS_PER_REQUEST", 5)

    payload = client.post("/api/tick", json={"count": 10**9}).get_json()

    assert payload["ok"] is True
    assert payload["tick"] == 5

    overflow = client.post("/api/tick", data='{"count": 1e999}', content_type="application/json")
    assert overflow.status_code == 400
    assert overflow.get_json()["error_code"] == "invalid_tick"
