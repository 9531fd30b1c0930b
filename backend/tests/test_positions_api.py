import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.api.routes_calculator import configure_risk_desk  # noqa: E402
from backend.api.routes_positions import router  # noqa: E402
from backend.risk.risk_engine import AccountState  # noqa: E402
from backend.risk.stacking import OpenPosition  # noqa: E402
from backend.trading.risk_desk import RiskDesk  # noqa: E402
from backend.trading.state_store import DeskState, InMemoryStateStore  # noqa: E402

V75 = "Volatility 75 (1s) Index"


def build_client(balance: float = 100, positions=None) -> TestClient:
    state = DeskState(account=AccountState(balance=balance, target_margin_percent=35), positions=positions or [])
    configure_risk_desk(RiskDesk(InMemoryStateStore(state)))
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


def test_add_and_list_positions():
    client = build_client()
    resp = client.post("/api/positions", json={"symbol": V75, "lot_size": 0.1, "stop_loss_points": 50})
    assert resp.status_code == 201
    created = resp.json()
    assert created["symbol_id"] == V75
    assert created["margin_used"] == 0.88
    assert created["id"].startswith("pos_")

    listed = client.get("/api/positions").json()
    assert listed == [created]


def test_add_position_rejects_small_lot():
    client = build_client()
    resp = client.post("/api/positions", json={"symbol": V75, "lot_size": 0.01, "stop_loss_points": 50})
    assert resp.status_code == 400
    assert resp.json()["error"] == "validation_error"


def test_add_position_unknown_symbol():
    client = build_client()
    resp = client.post("/api/positions", json={"symbol": "nope", "lot_size": 1, "stop_loss_points": 50})
    assert resp.status_code == 404
    assert resp.json()["error"] == "unknown_symbol"


def test_add_position_schema_validation():
    client = build_client()
    resp = client.post("/api/positions", json={"symbol": V75, "lot_size": 0, "stop_loss_points": 50})
    assert resp.status_code == 422


def test_update_position():
    client = build_client()
    created = client.post("/api/positions", json={"symbol": V75, "lot_size": 0.1, "stop_loss_points": 50}).json()
    resp = client.patch(f"/api/positions/{created['id']}", json={"lot_size": 0.2})
    assert resp.status_code == 200
    assert resp.json()["margin_used"] == pytest.approx(1.75)


def test_update_position_requires_a_field():
    client = build_client()
    created = client.post("/api/positions", json={"symbol": V75, "lot_size": 0.1, "stop_loss_points": 50}).json()
    resp = client.patch(f"/api/positions/{created['id']}", json={})
    assert resp.status_code == 422


def test_update_missing_position():
    client = build_client()
    resp = client.patch("/api/positions/missing", json={"lot_size": 1})
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "position_not_found"
    assert body["context"]["position_id"] == "missing"


def test_remove_and_clear_positions():
    client = build_client()
    first = client.post("/api/positions", json={"symbol": V75, "lot_size": 0.1, "stop_loss_points": 50}).json()
    client.post("/api/positions", json={"symbol": V75, "lot_size": 0.2, "stop_loss_points": 50})

    resp = client.delete(f"/api/positions/{first['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == first["id"]
    assert client.delete(f"/api/positions/{first['id']}").status_code == 404

    resp = client.delete("/api/positions")
    assert resp.json() == {"removed": 1}
    assert client.get("/api/positions").json() == []


def test_stacking_critical_usage():
    held = OpenPosition(id="held", symbol_id=V75, lot_size=1.0, stop_loss_points=50, margin_used=9.0)
    client = build_client(balance=10, positions=[held])
    resp = client.get("/api/stacking")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_margin_percentage"] == 90
    assert body["warning_tier"] == "critical"
    assert body["can_add_position"] is False
    assert body["available_margin"] is None


def test_stacking_with_pending_margin():
    held = OpenPosition(id="held", symbol_id=V75, lot_size=0.1, stop_loss_points=50, margin_used=3.0)
    client = build_client(balance=10, positions=[held])
    assert client.get("/api/stacking").json()["warning_tier"] == "none"

    body = client.get("/api/stacking", params={"pending_margin": 4}).json()
    assert body["total_margin_used"] == 7
    assert body["warning_tier"] == "high"
    assert body["can_add_position"] is True


def test_stacking_rejects_negative_pending_margin():
    client = build_client()
    assert client.get("/api/stacking", params={"pending_margin": -1}).status_code == 422
