"""Optional math and logical functions.

Enabled with ``include_library=True`` or ``stdlib: true`` in
``formulary.yaml``.  Logical functions treat any non-zero value as true
and return 1.0/0.0.
"""

from __future__ import annotations

import math

from formulary.functions.registry import register_library
from formulary.numeric import truth


# ---------- Math ----------


@register_library("Pow", 2)
def fn_pow(args: list[float]) -> float:
    """Pow(base, exp) -- raises OverflowError/ValueError on out-of-range input."""
    return math.pow(args[0], args[1])


@register_library("Sqrt", 1)
def fn_sqrt(args: list[float]) -> float:
    return math.sqrt(args[0])


@register_library("Abs", 1)
def fn_abs(args: list[float]) -> float:
    return abs(args[0])


@register_library("Floor", 1)
def fn_floor(args: list[float]) -> float:
    return float(math.floor(args[0]))


@register_library("Ceil", 1)
def fn_ceil(args: list[float]) -> float:
    return float(math.ceil(args[0]))


@register_library("Round", 2)
def fn_round(args: list[float]) -> float:
    """Round(value, digits) -- banker's rounding, as Python's ``round``."""
    return round(args[0], int(args[1]))


@register_library("Min", 2)
def fn_min(args: list[float]) -> float:
    return min(args[0], args[1])


@register_library("Max", 2)
def fn_max(args: list[float]) -> float:
    return max(args[0], args[1])


# ---------- Logical ----------


@register_library("Not", 1)
def fn_not(args: list[float]) -> float:
    return truth(args[0] == 0)


@register_library("And", 2)
def fn_and(args: list[float]) -> float:
    return truth(args[0] != 0 and args[1] != 0)


@register_library("Or", 2)
def fn_or(args: list[float]) -> float:
    return truth(args[0] != 0 or args[1] != 0)
