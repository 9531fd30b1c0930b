import math
from typing import Any


def is_finite_number(value: Any) -> bool:
    """True for real int/float values that are finite; bools and numeric strings are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_positive_number(value: Any) -> bool:
    return is_finite_number(value) and value > 0
