"""Reserved functions, present in every function table."""

from __future__ import annotations

from formulary.functions.registry import register_reserved
from formulary.numeric import float_div, float_mod


@register_reserved("Add", 2)
def fn_add(args: list[float]) -> float:
    return args[0] + args[1]


@register_reserved("Sub", 2)
def fn_sub(args: list[float]) -> float:
    return args[0] - args[1]


@register_reserved("Mul", 2)
def fn_mul(args: list[float]) -> float:
    return args[0] * args[1]


@register_reserved("Div", 2)
def fn_div(args: list[float]) -> float:
    return float_div(args[0], args[1])


@register_reserved("Mod", 2)
def fn_mod(args: list[float]) -> float:
    return float_mod(args[0], args[1])


@register_reserved("If", 3)
def fn_if(args: list[float]) -> float:
    """If(cond, then, else) -- both branches are already evaluated."""
    return args[1] if args[0] != 0 else args[2]
