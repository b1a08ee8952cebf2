"""Stack evaluator for postfix formula sequences."""

from __future__ import annotations

import operator as _op
from typing import TYPE_CHECKING, Callable, Sequence

from formulary.formulas.cursor import Cursor
from formulary.formulas.errors import (
    FormulaEvalError,
    FormulaFunctionError,
    FormulaRefError,
)
from formulary.formulas.parser import ItemKind, PostfixItem
from formulary.formulas.tokens import Operator
from formulary.numeric import float_div, float_mod, truth

if TYPE_CHECKING:
    from formulary.functions.registry import Function, Variable


def _compare(fn: Callable[[float, float], bool]) -> Callable[[float, float], float]:
    return lambda left, right: truth(fn(left, right))


BINARY_OPERATORS: dict[Operator, Callable[[float, float], float]] = {
    Operator.PLUS: _op.add,
    Operator.MINUS: _op.sub,
    Operator.ASTERISK: _op.mul,
    Operator.SLASH: float_div,
    Operator.PERCENT: float_mod,
    Operator.EQUAL: _compare(_op.eq),
    Operator.NOT_EQUAL: _compare(_op.ne),
    Operator.LESS_THAN: _compare(_op.lt),
    Operator.GREATER_THAN: _compare(_op.gt),
    Operator.LESS_EQUAL: _compare(_op.le),
    Operator.GREATER_EQUAL: _compare(_op.ge),
}


def evaluate_postfix(
    items: Sequence[PostfixItem],
    functions: Sequence[Function],
    variables: Sequence[Variable],
) -> float:
    """Reduce a postfix sequence to a single number.

    Args:
        items: Output of ``to_postfix()``.
        functions: Function table; the first entry with a matching name wins.
        variables: Variable table; the first entry with a matching name wins.

    Returns:
        The computed value.

    Raises:
        FormulaRefError: Unknown variable.
        FormulaFunctionError: Unknown function or arity mismatch.
        FormulaEvalError: The sequence does not reduce to exactly one value.
    """
    return Processor(items, functions, variables).execute()


class Processor:
    """Single-use evaluator holding the operand stack for one reduction."""

    def __init__(
        self,
        items: Sequence[PostfixItem],
        functions: Sequence[Function],
        variables: Sequence[Variable],
    ) -> None:
        self._items: Cursor[PostfixItem] = Cursor(items)
        self._functions = functions
        self._variables = variables
        self._stack: list[float] = []

    def execute(self) -> float:
        while True:
            item = self._items.advance()
            if item is None:
                break
            if item.kind is ItemKind.NUMBER:
                self._stack.append(float(item.value))
            elif item.kind is ItemKind.VARIABLE:
                self._stack.append(self._lookup_variable(str(item.value)))
            elif item.kind is ItemKind.FUNCTION:
                self._call(item)
            else:
                right = self._pop()
                left = self._pop()
                self._stack.append(BINARY_OPERATORS[Operator(item.value)](left, right))

        if len(self._stack) != 1:
            raise FormulaEvalError(
                f"malformed sequence: {len(self._stack)} values left on the stack"
            )
        return self._stack[0]

    def _call(self, item: PostfixItem) -> None:
        name = str(item.value)
        fn = next((f for f in self._functions if f.name == name), None)
        if fn is None:
            raise FormulaFunctionError(name)
        if item.argc != fn.arity:
            raise FormulaFunctionError(
                name, f"{name} expects {fn.arity} argument(s), got {item.argc}"
            )
        # Popped last-to-first; reverse back into source order.
        args = [self._pop() for _ in range(fn.arity)]
        args.reverse()
        self._stack.append(fn.invoke(args))

    def _lookup_variable(self, name: str) -> float:
        for var in self._variables:
            if var.name == name:
                return var.value
        raise FormulaRefError(name, available=sorted({v.name for v in self._variables}))

    def _pop(self) -> float:
        if not self._stack:
            raise FormulaEvalError("malformed sequence: operand stack underflow")
        return self._stack.pop()
