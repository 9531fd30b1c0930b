from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from backend.risk.errors import UnknownSymbolError
from backend.risk.numeric import is_positive_number


@dataclass(frozen=True)
class InstrumentSpec:
    """
    Contract specification for one tradable synthetic index.

    Exactly one margin model is set: `margin_percent` (0.05 means 0.05% of notional)
    or `leverage` (1000 means 1:1000).
    """

    symbol_id: str
    point_value: float
    min_lot: float
    max_lot: float
    lot_step: float
    contract_size: float
    typical_price: float
    leverage: Optional[float] = None
    margin_percent: Optional[float] = None
    description: str = ""
    category: str = ""

    def __post_init__(self) -> None:
        if not self.symbol_id:
            raise ValueError("symbol_id is required")
        for name in ("point_value", "min_lot", "lot_step", "contract_size", "typical_price"):
            if not is_positive_number(getattr(self, name)):
                raise ValueError(f"{self.symbol_id}: {name} must be a positive finite number")
        if not is_positive_number(self.max_lot) or self.max_lot < self.min_lot:
            raise ValueError(f"{self.symbol_id}: max_lot must be >= min_lot")
        if (self.leverage is None) == (self.margin_percent is None):
            raise ValueError(f"{self.symbol_id}: exactly one of leverage or margin_percent must be set")
        model_value = self.leverage if self.leverage is not None else self.margin_percent
        if not is_positive_number(model_value):
            raise ValueError(f"{self.symbol_id}: margin model value must be positive")

    @property
    def margin_model(self) -> str:
        return "margin_percent" if self.margin_percent is not None else "leverage"


class InstrumentCatalog:
    """Read-only lookup of instrument specs keyed by symbol id."""

    def __init__(self, specs: Iterable[InstrumentSpec]) -> None:
        self._specs: Dict[str, InstrumentSpec] = {}
        for spec in specs:
            if spec.symbol_id in self._specs:
                raise ValueError(f"Duplicate instrument spec for {spec.symbol_id}")
            self._specs[spec.symbol_id] = spec

    def __contains__(self, symbol_id: object) -> bool:
        return isinstance(symbol_id, str) and symbol_id.strip() in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def __iter__(self) -> Iterator[InstrumentSpec]:
        return iter(self._specs.values())

    def get(self, symbol_id: Optional[str]) -> Optional[InstrumentSpec]:
        return self._specs.get((symbol_id or "").strip())

    def lookup(self, symbol_id: Optional[str]) -> InstrumentSpec:
        """Return the spec for `symbol_id` or raise UnknownSymbolError; never falls back."""
        spec = self.get(symbol_id)
        if spec is None:
            raise UnknownSymbolError(str(symbol_id))
        return spec

    def list_symbol_ids(self) -> List[str]:
        return list(self._specs)

    def categories(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for spec in self._specs.values():
            grouped.setdefault(spec.category, []).append(spec.symbol_id)
        return grouped


# (symbol, point_value, min_lot, max_lot, lot_step, typical_price, leverage, margin_percent, description)
_SYNTHETIC_INDICES = (
    ("Volatility 10 (1s) Index", 0.1, 0.1, 100, 0.1, 6000, None, 0.02,
     "Simulates a market with 10% volatility, 1-second tick intervals"),
    ("Volatility 25 (1s) Index", 0.1, 0.1, 100, 0.1, 8500, None, 0.03,
     "Simulates a market with 25% volatility, 1-second tick intervals"),
    ("Volatility 50 (1s) Index", 0.1, 0.1, 100, 0.1, 12000, None, 0.03,
     "Simulates a market with 50% volatility, 1-second tick intervals"),
    ("Volatility 75 (1s) Index", 0.1, 0.1, 100, 0.1, 17500, None, 0.05,
     "Simulates a market with 75% volatility, 1-second tick intervals"),
    ("Volatility 100 (1s) Index", 0.1, 0.1, 100, 0.1, 25000, None, 0.07,
     "Simulates a market with 100% volatility, 1-second tick intervals"),
    ("Volatility 150 (1s) Index", 0.1, 0.1, 100, 0.1, 38000, None, 0.20,
     "Simulates a market with 150% volatility, 1-second tick intervals"),
    ("Volatility 250 (1s) Index", 0.1, 0.1, 100, 0.1, 63000, None, 0.40,
     "Simulates a market with 250% volatility, 1-second tick intervals"),
    ("Crash 300 Index", 0.1, 1.0, 100, 1.0, 800, None, 1.00,
     "Index with average 1 crash every 300 ticks"),
    ("Crash 500 Index", 0.1, 1.0, 100, 1.0, 1200, None, 0.25,
     "Index with average 1 crash every 500 ticks"),
    ("Crash 1000 Index", 0.1, 1.0, 100, 1.0, 1500, None, 0.17,
     "Index with average 1 crash every 1000 ticks"),
    ("Boom 300 Index", 0.1, 1.0, 100, 1.0, 3500000, None, 1.00,
     "Index with average 1 boom (spike up) every 300 ticks"),
    ("Boom 500 Index", 0.1, 1.0, 100, 1.0, 5200000, None, 0.25,
     "Index with average 1 boom (spike up) every 500 ticks"),
    ("Boom 1000 Index", 0.1, 1.0, 100, 1.0, 7800000, None, 0.17,
     "Index with average 1 boom (spike up) every 1000 ticks"),
    ("Jump 10 Index", 0.1, 0.1, 100, 0.1, 30000, None, 0.04,
     "Index with equal probability of up/down jumps, average 1 jump every 10 ticks"),
    ("Jump 25 Index", 0.1, 0.1, 100, 0.1, 45000, None, 0.08,
     "Index with equal probability of up/down jumps, average 1 jump every 25 ticks"),
    ("Jump 50 Index", 0.1, 0.1, 100, 0.1, 68000, None, 0.17,
     "Index with equal probability of up/down jumps, average 1 jump every 50 ticks"),
    ("Jump 75 Index", 0.1, 0.1, 100, 0.1, 95000, None, 0.25,
     "Index with equal probability of up/down jumps, average 1 jump every 75 ticks"),
    ("Jump 100 Index", 0.1, 0.1, 100, 0.1, 130000, None, 0.40,
     "Index with equal probability of up/down jumps, average 1 jump every 100 ticks"),
    ("Step Index", 0.1, 0.1, 100, 0.1, 20000, 500, None,
     "Index with equal-sized up or down steps at regular intervals"),
    ("Range Break 100 Index", 0.1, 0.1, 100, 0.1, 10000, None, 0.80,
     "Index that breaks out of a range with average break every 100 ticks"),
    ("Range Break 200 Index", 0.1, 0.1, 100, 0.1, 14000, None, 0.87,
     "Index that breaks out of a range with average break every 200 ticks"),
    ("DEX 150 UP Index", 0.1, 0.1, 100, 0.1, 5000, 1000, None,
     "Small drops and major spikes every 10 minutes on average (upward bias)"),
    ("DEX 150 DOWN Index", 0.1, 0.1, 100, 0.1, 5000, 1000, None,
     "Small rises and major drops every 10 minutes on average (downward bias)"),
    ("DEX 300 UP Index", 0.1, 0.1, 100, 0.1, 7500, 1000, None,
     "Small drops and major spikes every 10 minutes on average (upward bias)"),
    ("DEX 300 DOWN Index", 0.1, 0.1, 100, 0.1, 7500, 1000, None,
     "Small rises and major drops every 10 minutes on average (downward bias)"),
    ("DEX 600 UP Index", 0.1, 0.1, 100, 0.1, 12000, None, 0.50,
     "Small drops and major spikes every 10 minutes on average (upward bias)"),
    ("DEX 600 DOWN Index", 0.1, 0.1, 100, 0.1, 12000, None, 0.50,
     "Small rises and major drops every 10 minutes on average (downward bias)"),
    ("DEX 900 UP Index", 0.1, 0.1, 100, 0.1, 17000, None, 0.67,
     "Small drops and major spikes every 10 minutes on average (upward bias)"),
    ("DEX 900 DOWN Index", 0.1, 0.1, 100, 0.1, 17000, None, 0.67,
     "Small rises and major drops every 10 minutes on average (downward bias)"),
    ("DEX 1200 UP Index", 0.1, 0.1, 100, 0.1, 23000, 1000, None,
     "Small drops and major spikes every 10 minutes on average (upward bias)"),
    ("DEX 1200 DOWN Index", 0.1, 0.1, 100, 0.1, 23000, 1000, None,
     "Small rises and major drops every 10 minutes on average (downward bias)"),
)

_CATEGORY_PREFIXES = (
    ("Volatility", "volatility"),
    ("Crash", "crash"),
    ("Boom", "boom"),
    ("Jump", "jump"),
    ("Step", "step"),
    ("Range Break", "range_break"),
    ("DEX", "dex"),
)


def _category_for(symbol_id: str) -> str:
    for prefix, category in _CATEGORY_PREFIXES:
        if symbol_id.startswith(prefix):
            return category
    return "other"


def _build_default_specs() -> List[InstrumentSpec]:
    specs: List[InstrumentSpec] = []
    for symbol, point_value, min_lot, max_lot, lot_step, price, leverage, margin_pct, description in _SYNTHETIC_INDICES:
        specs.append(
            InstrumentSpec(
                symbol_id=symbol,
                point_value=point_value,
                min_lot=min_lot,
                max_lot=max_lot,
                lot_step=lot_step,
                contract_size=1,
                typical_price=price,
                leverage=leverage,
                margin_percent=margin_pct,
                description=description,
                category=_category_for(symbol),
            )
        )
    return specs


DEFAULT_CATALOG = InstrumentCatalog(_build_default_specs())


def get_default_catalog() -> InstrumentCatalog:
    return DEFAULT_CATALOG


def get_instrument_spec(symbol_id: str, catalog: Optional[InstrumentCatalog] = None) -> Optional[InstrumentSpec]:
    """Soft lookup; returns None for unknown symbols. Use `InstrumentCatalog.lookup` to fail loudly."""
    return (catalog or DEFAULT_CATALOG).get(symbol_id)
