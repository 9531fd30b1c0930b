import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.core.config import Settings  # noqa: E402
from backend.risk.risk_engine import AccountState  # noqa: E402
from backend.risk.stacking import OpenPosition  # noqa: E402
from backend.trading.state_store import (  # noqa: E402
    DeskState,
    InMemoryStateStore,
    JsonFileStateStore,
    build_state_store,
)

DEFAULT = DeskState(account=AccountState(balance=100, target_margin_percent=35))


def sample_position(position_id: str = "pos_1", entry_price=None) -> OpenPosition:
    return OpenPosition(
        id=position_id,
        symbol_id="Volatility 75 (1s) Index",
        lot_size=0.5,
        stop_loss_points=40,
        margin_used=4.38,
        entry_price=entry_price,
    )


def test_in_memory_store_round_trip():
    store = InMemoryStateStore(DEFAULT)
    assert store.load() == DEFAULT
    updated = DEFAULT.with_account(AccountState(balance=250, target_margin_percent=40))
    store.save(updated)
    assert store.load().account.balance == 250
    assert store.default_state == DEFAULT


def test_file_store_returns_default_when_missing(tmp_path):
    store = JsonFileStateStore(tmp_path / "state.json", DEFAULT)
    assert store.load() == DEFAULT


def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "state.json"
    state = DeskState(
        account=AccountState(balance=500, target_margin_percent=20),
        positions=[sample_position(), sample_position("pos_2", entry_price=18000.0)],
    )
    JsonFileStateStore(path, DEFAULT).save(state)

    reloaded = JsonFileStateStore(path, DEFAULT).load()
    assert reloaded == state

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == 1
    assert payload["account"] == {"balance": 500, "target_margin_percent": 20}
    assert [p["id"] for p in payload["positions"]] == ["pos_1", "pos_2"]
    assert not path.with_suffix(".json.tmp").exists()


def test_file_store_recovers_from_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileStateStore(path, DEFAULT).load() == DEFAULT


def test_file_store_rejects_non_object_payload(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert JsonFileStateStore(path, DEFAULT).load() == DEFAULT


def test_file_store_skips_malformed_positions(tmp_path):
    path = tmp_path / "state.json"
    good = DeskState(account=DEFAULT.account, positions=[sample_position()]).to_payload()
    good["positions"].append({"id": "broken", "lot_size": "abc"})
    good["positions"].append("not-a-position")
    path.write_text(json.dumps(good), encoding="utf-8")

    state = JsonFileStateStore(path, DEFAULT).load()
    assert [p.id for p in state.positions] == ["pos_1"]


def test_file_store_fills_missing_account_fields(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({"account": {"balance": 75}}), encoding="utf-8")
    state = JsonFileStateStore(path, DEFAULT).load()
    assert state.account == AccountState(balance=75, target_margin_percent=35)
    assert state.positions == []


def test_build_state_store_memory():
    settings = Settings(state_backend="memory", default_balance=250, default_target_margin_percent=50)
    store = build_state_store(settings)
    assert isinstance(store, InMemoryStateStore)
    assert store.load().account == AccountState(balance=250, target_margin_percent=50)


def test_build_state_store_file(tmp_path):
    settings = Settings(state_backend="file", state_path=str(tmp_path / "desk.json"))
    store = build_state_store(settings)
    assert isinstance(store, JsonFileStateStore)
    assert store.path == tmp_path / "desk.json"


def test_build_state_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        build_state_store(Settings(state_backend="redis"))
