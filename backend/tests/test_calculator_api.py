import inspect
import sys
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.api.routes_account import router as account_router  # noqa: E402
from backend.api.routes_calculator import configure_risk_desk, router as calculator_router  # noqa: E402
from backend.api.routes_positions import router as positions_router  # noqa: E402
from backend.risk.risk_engine import AccountState  # noqa: E402
from backend.trading.risk_desk import RiskDesk  # noqa: E402
from backend.trading.state_store import DeskState, InMemoryStateStore  # noqa: E402

V75 = "Volatility 75 (1s) Index"


def build_client(balance: float = 100) -> TestClient:
    store = InMemoryStateStore(DeskState(account=AccountState(balance=balance, target_margin_percent=35)))
    configure_risk_desk(RiskDesk(store))
    app = FastAPI()
    app.include_router(calculator_router)
    app.include_router(account_router)
    return TestClient(app)


def test_list_symbols():
    client = build_client()
    resp = client.get("/api/symbols")
    assert resp.status_code == 200
    body = resp.json()
    assert len(body) == 31
    assert body[0]["symbol_id"] == "Volatility 10 (1s) Index"
    assert body[0]["margin_model"] == "margin_percent"


def test_get_symbol_by_id():
    client = build_client()
    resp = client.get("/api/symbols/Step Index")
    assert resp.status_code == 200
    body = resp.json()
    assert body["margin_model"] == "leverage"
    assert body["leverage"] == 500
    assert body["category"] == "step"


def test_get_unknown_symbol_returns_404():
    client = build_client()
    resp = client.get("/api/symbols/Volatility 999 Index")
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "unknown_symbol"
    assert body["context"]["symbol"] == "Volatility 999 Index"


def test_calculate_success():
    client = build_client()
    resp = client.post(
        "/api/calculate",
        json={"symbol": V75, "stop_loss_points": 100, "balance": 1000, "target_margin_percent": 35},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["symbol_id"] == V75
    assert body["recommended_lot_size"] == pytest.approx(35.0)
    assert body["margin_required"] == pytest.approx(306.25)
    assert body["risk_amount"] == pytest.approx(350.0)
    assert body["warning_tier"] == "none"
    assert body["warning_message"] is None
    assert body["stacking_plan"]["position_count"] == 397


def test_calculate_uses_saved_balance():
    client = build_client(balance=1)
    resp = client.post("/api/calculate", json={"symbol": V75, "stop_loss_points": 1000})
    assert resp.status_code == 200
    body = resp.json()
    assert body["recommended_lot_size"] == 0.1
    assert body["margin_required"] == 0.88
    assert body["warning_tier"] == "critical"
    assert body["warning_message"].startswith("CRITICAL")


def test_calculate_rejects_invalid_inputs():
    client = build_client()
    resp = client.post("/api/calculate", json={"symbol": V75, "stop_loss_points": 0, "balance": -1})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert len(body["context"]["errors"]) == 2


def test_calculate_unknown_symbol():
    client = build_client()
    resp = client.post("/api/calculate", json={"symbol": "NOT_A_SYMBOL", "stop_loss_points": 50})
    assert resp.status_code == 404
    assert resp.json()["error"] == "unknown_symbol"


def test_validate_calculation_endpoint():
    client = build_client()
    resp = client.post("/api/validate/calculation", json={"stop_loss_points": 1500, "balance": 10})
    assert resp.status_code == 200
    assert resp.json() == {
        "valid": False,
        "errors": ["Stop loss must be greater than 0 and at most 1000 points"],
    }


def test_account_round_trip():
    client = build_client()
    assert client.get("/api/account").json() == {"balance": 100, "target_margin_percent": 35}

    resp = client.put("/api/account", json={"balance": 500})
    assert resp.status_code == 200
    assert resp.json() == {"balance": 500, "target_margin_percent": 35}

    resp = client.post("/api/account/reset")
    assert resp.status_code == 200
    assert resp.json()["balance"] == 100


def test_account_update_rejects_invalid_balance():
    client = build_client()
    resp = client.put("/api/account", json={"balance": -1})
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["context"]["errors"] == ["Balance must be greater than 0"]
    assert client.get("/api/account").json()["balance"] == 100


def test_validate_account_endpoint():
    client = build_client()
    resp = client.post("/api/validate/account", json={"balance": 100, "target_margin_percent": 0.5})
    assert resp.json() == {"valid": False, "errors": ["Target margin must be between 1% and 100%"]}


def test_desk_routes_are_sync_handlers():
    # the desk does blocking file I/O, so its handlers must run in the threadpool
    checked = 0
    for module_router in (calculator_router, account_router, positions_router):
        for route in module_router.routes:
            if "desk" in inspect.signature(route.endpoint).parameters:
                assert not inspect.iscoroutinefunction(route.endpoint), route.path
                checked += 1
    assert checked == 12
