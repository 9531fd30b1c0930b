import json
import os
import threading
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from backend.core.config import Settings
from backend.core.logging import get_logger
from backend.risk.risk_engine import AccountState
from backend.risk.stacking import OpenPosition

logger = get_logger(__name__)

STATE_VERSION = 1


@dataclass(frozen=True)
class DeskState:
    """Everything the desk persists between runs: account settings and tracked positions."""

    account: AccountState
    positions: List[OpenPosition] = field(default_factory=list)

    def with_account(self, account: AccountState) -> "DeskState":
        return replace(self, account=account)

    def with_positions(self, positions: List[OpenPosition]) -> "DeskState":
        return replace(self, positions=list(positions))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "account": asdict(self.account),
            "positions": [asdict(position) for position in self.positions],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], default_account: AccountState) -> "DeskState":
        if not isinstance(payload, dict):
            raise ValueError("State payload must be a JSON object")
        raw_account = payload.get("account")
        account = default_account
        if isinstance(raw_account, dict):
            account = AccountState(
                balance=float(raw_account.get("balance", default_account.balance)),
                target_margin_percent=float(
                    raw_account.get("target_margin_percent", default_account.target_margin_percent)
                ),
            )
        positions: List[OpenPosition] = []
        for raw in payload.get("positions") or []:
            if not isinstance(raw, dict):
                continue
            try:
                positions.append(
                    OpenPosition(
                        id=str(raw["id"]),
                        symbol_id=str(raw["symbol_id"]),
                        lot_size=float(raw["lot_size"]),
                        stop_loss_points=float(raw["stop_loss_points"]),
                        margin_used=float(raw["margin_used"]),
                        entry_price=float(raw["entry_price"]) if raw.get("entry_price") is not None else None,
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(
                    "state_position_skipped",
                    extra={"event": "state_position_skipped", "position_id": raw.get("id")},
                )
        return cls(account=account, positions=positions)


class StateStore(Protocol):
    default_state: DeskState

    def load(self) -> DeskState: ...

    def save(self, state: DeskState) -> None: ...


class InMemoryStateStore:
    """Process-local store; used for tests and when persistence is disabled."""

    def __init__(self, initial: DeskState) -> None:
        self._lock = threading.Lock()
        self._state = initial
        self.default_state = initial

    def load(self) -> DeskState:
        with self._lock:
            return self._state

    def save(self, state: DeskState) -> None:
        with self._lock:
            self._state = state


class JsonFileStateStore:
    """Persist desk state as a JSON document; re-reads the file only when its mtime changes."""

    def __init__(self, path: Path, default_state: DeskState) -> None:
        self.path = path
        self.default_state = default_state
        self._lock = threading.Lock()
        self._cache_mtime: Optional[float] = None
        self._cache_state: Optional[DeskState] = None

    def load(self) -> DeskState:
        try:
            mtime: Optional[float] = self.path.stat().st_mtime
        except FileNotFoundError:
            mtime = None
        with self._lock:
            if self._cache_state is not None and self._cache_mtime == mtime:
                return self._cache_state
            state = self.default_state
            if mtime is not None:
                try:
                    with self.path.open("r", encoding="utf-8") as f:
                        parsed = json.load(f)
                    state = DeskState.from_payload(parsed, self.default_state.account)
                except (OSError, ValueError, TypeError) as exc:
                    logger.warning(
                        "state_load_failed",
                        extra={"event": "state_load_failed", "path": str(self.path), "error": str(exc)},
                    )
                    state = self.default_state
            self._cache_mtime = mtime
            self._cache_state = state
            return state

    def save(self, state: DeskState) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(state.to_payload(), f, indent=2)
            os.replace(tmp_path, self.path)
            self._cache_mtime = self.path.stat().st_mtime
            self._cache_state = state


def default_state_from_settings(settings: Settings) -> DeskState:
    return DeskState(
        account=AccountState(
            balance=settings.default_balance,
            target_margin_percent=settings.default_target_margin_percent,
        )
    )


def build_state_store(settings: Settings) -> StateStore:
    default_state = default_state_from_settings(settings)
    backend = (settings.state_backend or "").strip().lower()
    if backend == "memory":
        return InMemoryStateStore(default_state)
    if backend != "file":
        raise ValueError(f"Unsupported state backend '{settings.state_backend}'.")
    return JsonFileStateStore(settings.resolved_state_path(), default_state)
