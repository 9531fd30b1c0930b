from __future__ import annotations

import math
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from backend.risk.instruments import InstrumentSpec
from backend.risk.risk_engine import WarningTier, margin_required, round2

# Cumulative margin utilisation thresholds (percent of balance).
MODERATE_STACKING_PCT = 60.0
HIGH_STACKING_PCT = 70.0
CRITICAL_STACKING_PCT = 85.0

_STACKING_MESSAGES = {
    WarningTier.CRITICAL: "CRITICAL: High margin usage - new positions may cause liquidation",
    WarningTier.HIGH: "High margin usage - consider exit plan",
    WarningTier.MODERATE: "Moderate stacking risk - monitor closely",
    WarningTier.NONE: "Safe margin levels",
}


@dataclass(frozen=True)
class OpenPosition:
    id: str
    symbol_id: str
    lot_size: float
    stop_loss_points: float
    margin_used: float
    entry_price: Optional[float] = None


@dataclass(frozen=True)
class StackingAnalysis:
    total_margin_used: float
    total_margin_percentage: float
    remaining_buffer: float
    remaining_buffer_percentage: float
    warning_tier: WarningTier
    warning_message: str
    can_add_position: bool
    position_count: int
    available_margin: Optional[float] = None


def new_position_id() -> str:
    return f"pos_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def open_position(
    spec: InstrumentSpec,
    lot_size: float,
    stop_loss_points: float,
    entry_price: Optional[float] = None,
    *,
    position_id: Optional[str] = None,
) -> OpenPosition:
    """Record a user-declared position, pricing its margin once at creation time."""
    return OpenPosition(
        id=position_id or new_position_id(),
        symbol_id=spec.symbol_id,
        lot_size=lot_size,
        stop_loss_points=stop_loss_points,
        margin_used=margin_required(lot_size, spec, entry_price),
        entry_price=entry_price,
    )


def stacking_tier(total_margin_percentage: float) -> WarningTier:
    if total_margin_percentage >= CRITICAL_STACKING_PCT:
        return WarningTier.CRITICAL
    if total_margin_percentage >= HIGH_STACKING_PCT:
        return WarningTier.HIGH
    if total_margin_percentage >= MODERATE_STACKING_PCT:
        return WarningTier.MODERATE
    return WarningTier.NONE


def analyze_stacking(
    balance: float,
    open_positions: Sequence[OpenPosition],
    pending_margin: Optional[float] = None,
) -> StackingAnalysis:
    """
    Aggregate the margin already committed by `open_positions` (plus an optional
    pending trade) against `balance`.

    Position margins are trusted as stored. Utilisation tiers: >=85% critical (no
    further stacking), >=70% high, >=60% moderate. `available_margin` is the room
    left under the 70% line and is None once that room is gone.
    """
    total = sum(position.margin_used for position in open_positions)
    if pending_margin is not None and math.isfinite(pending_margin):
        total += pending_margin

    if balance > 0 and math.isfinite(balance):
        total_pct = 100 * total / balance
        remaining = balance - total
        remaining_pct = 100 * remaining / balance
        tier = stacking_tier(total_pct)
        available = balance * (HIGH_STACKING_PCT / 100) - total
    else:
        # Nothing to measure against; treat any account without capital as fully used.
        total_pct = 0.0
        remaining = 0.0
        remaining_pct = 0.0
        tier = WarningTier.CRITICAL
        available = 0.0

    return StackingAnalysis(
        total_margin_used=round2(total),
        total_margin_percentage=round2(total_pct),
        remaining_buffer=round2(remaining),
        remaining_buffer_percentage=round2(remaining_pct),
        warning_tier=tier,
        warning_message=_STACKING_MESSAGES[tier],
        can_add_position=tier is not WarningTier.CRITICAL,
        position_count=len(open_positions),
        available_margin=round2(available) if available > 0 else None,
    )
