import threading
from dataclasses import replace
from typing import List, Optional

from backend.core.logging import get_logger
from backend.risk import risk_engine
from backend.risk.instruments import InstrumentCatalog, InstrumentSpec, get_default_catalog
from backend.risk.stacking import OpenPosition, StackingAnalysis, analyze_stacking, open_position
from backend.risk.validation import validate_account_settings, validate_lot_size
from backend.trading.state_store import DeskState, StateStore

logger = get_logger(__name__)


class AccountSettingsError(ValueError):
    """Raised when account settings fail validation."""

    def __init__(self, errors: List[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid account settings")


class PositionNotFoundError(LookupError):
    def __init__(self, position_id: str) -> None:
        self.position_id = position_id
        super().__init__(f"Position '{position_id}' not found")


class RiskDesk:
    """Coordinates account settings, tracked positions, and sizing requests.

    State lives in the store; every call reads it, hands explicit values to the
    pure engine, and writes back only on mutation.
    """

    def __init__(self, store: StateStore, *, catalog: Optional[InstrumentCatalog] = None) -> None:
        self.store = store
        self.catalog = catalog or get_default_catalog()
        self._lock = threading.Lock()

    # ----- instruments -----

    def list_instruments(self) -> List[InstrumentSpec]:
        return list(self.catalog)

    def get_instrument(self, symbol_id: str) -> InstrumentSpec:
        return self.catalog.lookup(symbol_id)

    # ----- account -----

    def get_account(self) -> risk_engine.AccountState:
        return self.store.load().account

    def update_account(
        self,
        *,
        balance: Optional[float] = None,
        target_margin_percent: Optional[float] = None,
    ) -> risk_engine.AccountState:
        """Merge the supplied fields into the saved account and persist after validation."""
        with self._lock:
            state = self.store.load()
            current = state.account
            merged = risk_engine.AccountState(
                balance=current.balance if balance is None else balance,
                target_margin_percent=(
                    current.target_margin_percent if target_margin_percent is None else target_margin_percent
                ),
            )
            check = validate_account_settings(merged.balance, merged.target_margin_percent)
            if not check.valid:
                raise AccountSettingsError(check.errors)
            self.store.save(state.with_account(merged))
        logger.info(
            "account_updated",
            extra={
                "event": "account_updated",
                "balance": merged.balance,
                "target_margin_percent": merged.target_margin_percent,
            },
        )
        return merged

    def reset_account(self) -> risk_engine.AccountState:
        default_account = self.store.default_state.account
        with self._lock:
            state = self.store.load()
            self.store.save(state.with_account(default_account))
        logger.info("account_reset", extra={"event": "account_reset", "balance": default_account.balance})
        return default_account

    # ----- sizing -----

    def calculate(
        self,
        *,
        symbol_id: str,
        stop_loss_points: float,
        entry_price: Optional[float] = None,
        balance: Optional[float] = None,
        target_margin_percent: Optional[float] = None,
    ) -> risk_engine.CalculationResult:
        """Size a trade against the saved account; explicit balance/target values take precedence."""
        account = self.get_account()
        if balance is not None or target_margin_percent is not None:
            account = risk_engine.AccountState(
                balance=account.balance if balance is None else balance,
                target_margin_percent=(
                    account.target_margin_percent if target_margin_percent is None else target_margin_percent
                ),
            )
        result = risk_engine.compute_position(
            account,
            stop_loss_points,
            symbol_id,
            entry_price,
            catalog=self.catalog,
        )
        logger.debug(
            "position_sized",
            extra={
                "event": "position_sized",
                "symbol": symbol_id,
                "stop_loss_points": stop_loss_points,
                "lot": result.recommended_lot_size,
                "margin": result.margin_required,
                "tier": result.warning_tier.value,
            },
        )
        return result

    # ----- positions -----

    def list_positions(self) -> List[OpenPosition]:
        return list(self.store.load().positions)

    def add_position(
        self,
        *,
        symbol_id: str,
        lot_size: float,
        stop_loss_points: float,
        entry_price: Optional[float] = None,
    ) -> OpenPosition:
        spec = self.catalog.lookup(symbol_id)
        self._check_lot(spec, lot_size)
        position = open_position(spec, lot_size, stop_loss_points, entry_price)
        with self._lock:
            state = self.store.load()
            self.store.save(state.with_positions([*state.positions, position]))
        logger.info(
            "position_added",
            extra={
                "event": "position_added",
                "position_id": position.id,
                "symbol": position.symbol_id,
                "lot": position.lot_size,
                "margin": position.margin_used,
            },
        )
        return position

    def update_position(
        self,
        position_id: str,
        *,
        symbol_id: Optional[str] = None,
        lot_size: Optional[float] = None,
        stop_loss_points: Optional[float] = None,
        entry_price: Optional[float] = None,
    ) -> OpenPosition:
        """Apply edits to a tracked position; margin is re-priced when size, symbol or price change."""
        with self._lock:
            state = self.store.load()
            index = self._index_of(state, position_id)
            current = state.positions[index]
            updated = replace(
                current,
                symbol_id=current.symbol_id if symbol_id is None else symbol_id,
                lot_size=current.lot_size if lot_size is None else lot_size,
                stop_loss_points=current.stop_loss_points if stop_loss_points is None else stop_loss_points,
                entry_price=current.entry_price if entry_price is None else entry_price,
            )
            if (updated.symbol_id, updated.lot_size, updated.entry_price) != (
                current.symbol_id,
                current.lot_size,
                current.entry_price,
            ):
                spec = self.catalog.lookup(updated.symbol_id)
                self._check_lot(spec, updated.lot_size)
                updated = open_position(
                    spec,
                    updated.lot_size,
                    updated.stop_loss_points,
                    updated.entry_price,
                    position_id=current.id,
                )
            positions = list(state.positions)
            positions[index] = updated
            self.store.save(state.with_positions(positions))
        logger.info(
            "position_updated",
            extra={"event": "position_updated", "position_id": position_id, "margin": updated.margin_used},
        )
        return updated

    def remove_position(self, position_id: str) -> OpenPosition:
        with self._lock:
            state = self.store.load()
            index = self._index_of(state, position_id)
            positions = list(state.positions)
            removed = positions.pop(index)
            self.store.save(state.with_positions(positions))
        logger.info("position_removed", extra={"event": "position_removed", "position_id": position_id})
        return removed

    def clear_positions(self) -> int:
        with self._lock:
            state = self.store.load()
            count = len(state.positions)
            self.store.save(state.with_positions([]))
        logger.info("positions_cleared", extra={"event": "positions_cleared", "count": count})
        return count

    def analyze(
        self,
        *,
        pending_margin: Optional[float] = None,
        balance: Optional[float] = None,
    ) -> StackingAnalysis:
        state = self.store.load()
        effective_balance = state.account.balance if balance is None else balance
        return analyze_stacking(effective_balance, state.positions, pending_margin)

    # ----- helpers -----

    @staticmethod
    def _index_of(state: DeskState, position_id: str) -> int:
        for index, position in enumerate(state.positions):
            if position.id == position_id:
                return index
        raise PositionNotFoundError(position_id)

    @staticmethod
    def _check_lot(spec: InstrumentSpec, lot_size: float) -> None:
        check = validate_lot_size(spec, lot_size)
        if not check.valid:
            raise ValueError(check.error)
