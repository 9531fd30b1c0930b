from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from backend.risk.instruments import InstrumentCatalog, InstrumentSpec, get_default_catalog
from backend.risk.numeric import is_finite_number

MAX_ACCOUNT_BALANCE = 1_000_000
MIN_TARGET_MARGIN_PERCENT = 1
MAX_TARGET_MARGIN_PERCENT = 100
MAX_STOP_LOSS_POINTS = 1000


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class LotSizeCheck:
    valid: bool
    error: Optional[str] = None
    adjusted_lot_size: Optional[float] = None


def validate_account_settings(
    balance: Optional[float] = None,
    target_margin_percent: Optional[float] = None,
) -> ValidationResult:
    """Pre-flight check for account settings; a missing target is allowed, a missing balance is not."""
    errors: List[str] = []
    if not is_finite_number(balance) or balance <= 0:
        errors.append("Balance must be greater than 0")
    elif balance > MAX_ACCOUNT_BALANCE:
        errors.append(f"Balance cannot exceed {MAX_ACCOUNT_BALANCE:,}")

    if target_margin_percent is not None:
        if (
            not is_finite_number(target_margin_percent)
            or target_margin_percent < MIN_TARGET_MARGIN_PERCENT
            or target_margin_percent > MAX_TARGET_MARGIN_PERCENT
        ):
            errors.append(
                f"Target margin must be between {MIN_TARGET_MARGIN_PERCENT}% and {MAX_TARGET_MARGIN_PERCENT}%"
            )
    return ValidationResult(valid=not errors, errors=errors)


def validate_calculation_inputs(stop_loss_points: Optional[float], balance: Optional[float]) -> ValidationResult:
    errors: List[str] = []
    if not is_finite_number(stop_loss_points) or stop_loss_points <= 0 or stop_loss_points > MAX_STOP_LOSS_POINTS:
        errors.append(f"Stop loss must be greater than 0 and at most {MAX_STOP_LOSS_POINTS} points")
    if not is_finite_number(balance) or balance <= 0:
        errors.append("Balance must be greater than 0")
    return ValidationResult(valid=not errors, errors=errors)


def validate_lot_size(
    symbol: Union[str, InstrumentSpec],
    lot_size: float,
    catalog: Optional[InstrumentCatalog] = None,
) -> LotSizeCheck:
    """Check a manually entered lot against the instrument's bounds and suggest the nearest legal size."""
    if isinstance(symbol, InstrumentSpec):
        spec: Optional[InstrumentSpec] = symbol
    else:
        spec = (catalog or get_default_catalog()).get(symbol)
    if spec is None:
        return LotSizeCheck(valid=False, error="Symbol not found in specifications")
    if not is_finite_number(lot_size) or lot_size <= 0:
        return LotSizeCheck(valid=False, error="Lot size must be greater than 0", adjusted_lot_size=spec.min_lot)
    if lot_size < spec.min_lot:
        return LotSizeCheck(
            valid=False,
            error=f"Lot size {lot_size} is below minimum {spec.min_lot} for {spec.symbol_id}",
            adjusted_lot_size=spec.min_lot,
        )
    if lot_size > spec.max_lot:
        return LotSizeCheck(
            valid=False,
            error=f"Lot size {lot_size} exceeds maximum {spec.max_lot} for {spec.symbol_id}",
            adjusted_lot_size=spec.max_lot,
        )
    return LotSizeCheck(valid=True)

