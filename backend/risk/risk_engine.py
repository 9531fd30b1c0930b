"""
Single-trade sizing engine for synthetic-index accounts.

Every function here is pure: inputs in, rounded figures out. Numeric edge cases
(missing stop loss, zero balance, degenerate denominators) produce a neutral 0
instead of raising. Only an unknown symbol is rejected.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from backend.risk.errors import PositionSizingError, UnknownSymbolError
from backend.risk.instruments import InstrumentCatalog, InstrumentSpec, get_default_catalog
from backend.risk.numeric import is_finite_number, is_positive_number

__all__ = [
    "AccountState",
    "CalculationResult",
    "DrawdownBuffer",
    "PositionSizingError",
    "StackingPlan",
    "TierAssessment",
    "UnknownSymbolError",
    "WarningTier",
    "compute_position",
    "drawdown_buffer",
    "margin_required",
    "max_lot_size",
    "reference_price",
    "risk_amount",
    "round2",
    "size_position",
    "stacking_plan",
    "warning_tier",
]

# Share of balance a single trade's stop-loss exposure may claim.
MARGIN_USAGE_CAP = 0.35

# Buffer-percentage thresholds, checked in this order.
CRITICAL_BUFFER_PCT = 20.0
HIGH_BUFFER_PCT = 50.0
MODERATE_BUFFER_PCT = 65.0


class WarningTier(str, Enum):
    NONE = "none"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


_BUFFER_MESSAGES = {
    WarningTier.CRITICAL: "CRITICAL: Very low buffer - high risk of margin call",
    WarningTier.HIGH: "HIGH RISK: Low buffer - consider reducing position size",
    WarningTier.MODERATE: "Moderate risk - monitor position closely",
}


@dataclass(frozen=True)
class AccountState:
    balance: float
    target_margin_percent: float = 35.0


@dataclass(frozen=True)
class TierAssessment:
    tier: WarningTier
    message: Optional[str] = None


@dataclass(frozen=True)
class DrawdownBuffer:
    buffer: float
    buffer_percentage: float


@dataclass(frozen=True)
class StackingPlan:
    """How many minimum-lot positions fit inside the target margin utilisation."""

    min_lot_size: float
    margin_per_min_lot: float
    position_count: int
    total_stacked_lots: float
    total_margin: float
    target_margin_percent: float


@dataclass(frozen=True)
class CalculationResult:
    symbol_id: str
    stop_loss_points: float
    reference_price: float
    recommended_lot_size: float
    margin_required: float
    risk_amount: float
    risk_percentage: float
    drawdown_buffer: float
    drawdown_buffer_percentage: float
    warning_tier: WarningTier
    warning_message: Optional[str]
    stacking_plan: StackingPlan


def round2(value: float) -> float:
    """Round half-up to 2 decimals on the scaled value; non-finite input becomes 0."""
    if not is_finite_number(value):
        return 0.0
    return math.floor(value * 100 + 0.5) / 100


def max_lot_size(
    balance: float,
    stop_loss_points: float,
    spec: InstrumentSpec,
    margin_usage_cap: float = MARGIN_USAGE_CAP,
) -> float:
    """
    Largest lot whose stop-loss exposure stays within `margin_usage_cap` of balance.

    raw = (balance * cap) / (stop_loss_points * point_value), floored to the lot step
    and clamped into [min_lot, max_lot]. Returns 0 when there is no valid recommendation.
    """
    if not (is_positive_number(balance) and is_positive_number(stop_loss_points)):
        return 0.0
    raw = (balance * margin_usage_cap) / (stop_loss_points * spec.point_value)
    if not math.isfinite(raw) or raw <= 0:
        return 0.0
    lots = _floor_to_step(raw, spec.lot_step)
    lots = max(spec.min_lot, lots)
    lots = min(spec.max_lot, lots)
    return round2(lots)


def reference_price(spec: InstrumentSpec, entry_price: Optional[float] = None) -> float:
    """Entry price when a usable one is supplied, otherwise the instrument's typical price."""
    if is_positive_number(entry_price):
        return float(entry_price)
    return spec.typical_price


def margin_required(lot_size: float, spec: InstrumentSpec, entry_price: Optional[float] = None) -> float:
    if not is_positive_number(lot_size):
        return 0.0
    price = reference_price(spec, entry_price)
    if spec.margin_percent is not None:
        margin = lot_size * spec.contract_size * price * (spec.margin_percent / 100)
    else:
        margin = (lot_size * spec.contract_size * price) / spec.leverage
    if not math.isfinite(margin):
        return 0.0
    return round2(margin)


def risk_amount(lot_size: float, stop_loss_points: float, spec: InstrumentSpec) -> float:
    """Dollar loss if the stop is hit. Exposure measure only, never clamped."""
    if not (is_finite_number(lot_size) and is_finite_number(stop_loss_points)):
        return 0.0
    return round2(lot_size * stop_loss_points * spec.point_value)


def drawdown_buffer(balance: float, margin: float) -> DrawdownBuffer:
    """Capital left after margin is reserved. Negative values are kept: they mean over-allocation."""
    if not (is_finite_number(balance) and is_finite_number(margin)):
        return DrawdownBuffer(buffer=0.0, buffer_percentage=0.0)
    buffer = balance - margin
    percentage = 100 * buffer / balance if balance > 0 else 0.0
    return DrawdownBuffer(buffer=round2(buffer), buffer_percentage=round2(percentage))


def warning_tier(buffer_percentage: float) -> TierAssessment:
    if not is_finite_number(buffer_percentage) or buffer_percentage < CRITICAL_BUFFER_PCT:
        tier = WarningTier.CRITICAL
    elif buffer_percentage < HIGH_BUFFER_PCT:
        tier = WarningTier.HIGH
    elif buffer_percentage < MODERATE_BUFFER_PCT:
        tier = WarningTier.MODERATE
    else:
        tier = WarningTier.NONE
    return TierAssessment(tier=tier, message=_BUFFER_MESSAGES.get(tier))


def stacking_plan(
    balance: float,
    spec: InstrumentSpec,
    target_margin_percent: float,
    entry_price: Optional[float] = None,
) -> StackingPlan:
    """Count of identical min-lot positions whose combined margin reaches the target share of balance."""
    per_min_lot = margin_required(spec.min_lot, spec, entry_price)
    position_count = 0
    if per_min_lot > 0 and is_positive_number(balance) and is_positive_number(target_margin_percent):
        target_dollars = balance * (target_margin_percent / 100)
        position_count = _whole_units(target_dollars, per_min_lot)
    return StackingPlan(
        min_lot_size=spec.min_lot,
        margin_per_min_lot=per_min_lot,
        position_count=position_count,
        total_stacked_lots=round2(position_count * spec.min_lot),
        total_margin=round2(position_count * per_min_lot),
        target_margin_percent=float(target_margin_percent) if is_finite_number(target_margin_percent) else 0.0,
    )


def size_position(
    account: AccountState,
    stop_loss_points: float,
    spec: InstrumentSpec,
    entry_price: Optional[float] = None,
) -> CalculationResult:
    """Run the full sizing pipeline against an already-resolved instrument spec."""
    balance = account.balance
    lot = max_lot_size(balance, stop_loss_points, spec)
    margin = margin_required(lot, spec, entry_price)
    risk = risk_amount(lot, stop_loss_points, spec)
    risk_pct = round2(100 * risk / balance) if is_positive_number(balance) else 0.0
    buffer = drawdown_buffer(balance, margin)
    assessment = warning_tier(buffer.buffer_percentage)
    plan = stacking_plan(balance, spec, account.target_margin_percent, entry_price)
    return CalculationResult(
        symbol_id=spec.symbol_id,
        stop_loss_points=stop_loss_points,
        reference_price=reference_price(spec, entry_price),
        recommended_lot_size=lot,
        margin_required=margin,
        risk_amount=risk,
        risk_percentage=risk_pct,
        drawdown_buffer=buffer.buffer,
        drawdown_buffer_percentage=buffer.buffer_percentage,
        warning_tier=assessment.tier,
        warning_message=assessment.message,
        stacking_plan=plan,
    )


def compute_position(
    account: AccountState,
    stop_loss_points: float,
    symbol_id: str,
    entry_price: Optional[float] = None,
    *,
    catalog: Optional[InstrumentCatalog] = None,
) -> CalculationResult:
    """
    Size a single trade for `symbol_id`.

    Raises UnknownSymbolError when the catalog has no spec for the symbol.
    """
    spec = (catalog or get_default_catalog()).lookup(symbol_id)
    return size_position(account, stop_loss_points, spec, entry_price)


def _whole_units(value: float, unit: float) -> int:
    """Number of whole `unit`s in `value`, counted on the decimal values so 0.7 / 0.1 is 7, not 6."""
    return math.floor(Decimal(str(value)) / Decimal(str(unit)))


def _floor_to_step(value: float, step: float) -> float:
    return float(_whole_units(value, step) * Decimal(str(step)))
