"""IEEE-754 float helpers.

Python raises on ``x / 0`` and ``math.fmod(x, 0)``; formulas instead
produce ``inf``/``nan`` so that every successful evaluation yields a float.
"""

from __future__ import annotations

import math


def float_div(left: float, right: float) -> float:
    try:
        return left / right
    except ZeroDivisionError:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)


def float_mod(left: float, right: float) -> float:
    """Remainder carrying the sign of the dividend: ``-2 % 3 == -2``."""
    try:
        return math.fmod(left, right)
    except ValueError:
        # fmod(x, 0) and fmod(inf, y)
        return math.nan


def truth(flag: bool) -> float:
    return 1.0 if flag else 0.0
