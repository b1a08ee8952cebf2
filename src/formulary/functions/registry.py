"""Function and variable types plus the reserved/library function registries."""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Sequence

from pydantic import BaseModel

from formulary.formulas.errors import FormulaFunctionError

Handler = Callable[[list[float]], float]


class Function:
    """A named, fixed-arity formula function.

    The handler receives the arguments as a list in source order and must
    be pure: the evaluator may call it from any thread.
    """

    __slots__ = ("name", "arity", "handler")

    def __init__(self, name: str, arity: int, handler: Handler) -> None:
        if arity < 0:
            raise ValueError(f"arity must be non-negative, got {arity}")
        self.name = name
        self.arity = arity
        self.handler = handler

    def invoke(self, args: list[float]) -> float:
        """Call the handler after checking the argument count.

        Raises:
            FormulaFunctionError: On an arity mismatch, or if the handler
                raises an arithmetic or domain error.
        """
        if len(args) != self.arity:
            raise FormulaFunctionError(
                self.name,
                f"{self.name} expects {self.arity} argument(s), got {len(args)}",
            )
        try:
            return float(self.handler(args))
        except (ArithmeticError, ValueError) as exc:
            raise FormulaFunctionError(self.name, f"{self.name}: {exc}") from exc

    def __repr__(self) -> str:
        return f"Function({self.name!r}, arity={self.arity})"


class Variable(BaseModel):
    """A named numeric value."""

    name: str
    value: float


def as_variables(variables: Sequence[Variable] | Mapping[str, float] | None) -> list[Variable]:
    """Normalise a variable table given as a list or a ``name -> value`` mapping."""
    if variables is None:
        return []
    if isinstance(variables, Mapping):
        return [Variable(name=k, value=v) for k, v in variables.items()]
    return list(variables)


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------

_RESERVED_FUNCTIONS: list[Function] = []
_LIBRARY_FUNCTIONS: list[Function] = []


def register_reserved(name: str, arity: int) -> Callable:
    """Decorator that registers an always-available function.

    Args:
        name: The lookup name for this function.
        arity: Number of arguments the handler takes.

    Returns:
        The original handler, unmodified.
    """

    def decorator(fn: Handler) -> Handler:
        _RESERVED_FUNCTIONS.append(Function(name, arity, fn))
        return fn

    return decorator


def register_library(name: str, arity: int) -> Callable:
    """Decorator that registers an opt-in library function.

    Args:
        name: The lookup name for this function.
        arity: Number of arguments the handler takes.

    Returns:
        The original handler, unmodified.
    """

    def decorator(fn: Handler) -> Handler:
        _LIBRARY_FUNCTIONS.append(Function(name, arity, fn))
        return fn

    return decorator


def reserved_functions() -> list[Function]:
    """Return the reserved functions in registration order."""
    import formulary.functions.reserved  # noqa: F401

    return list(_RESERVED_FUNCTIONS)


def library_functions() -> list[Function]:
    """Return the optional library functions in registration order."""
    import formulary.functions.library  # noqa: F401

    return list(_LIBRARY_FUNCTIONS)


def build_function_table(
    functions: Iterable[Function] = (),
    include_library: bool = False,
) -> list[Function]:
    """Assemble the lookup table for one evaluation.

    Order is reserved functions, then the library (if requested), then
    *functions*.  Lookup is first-match, so a caller function that reuses a
    reserved name is shadowed by the reserved one.
    """
    table = reserved_functions()
    if include_library:
        table += library_functions()
    table += list(functions)
    return table
