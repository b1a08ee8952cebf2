"""Function and variable tables for formula evaluation."""

from formulary.functions.registry import (
    Function,
    Variable,
    as_variables,
    build_function_table,
    library_functions,
    reserved_functions,
)

__all__ = [
    "Function",
    "Variable",
    "as_variables",
    "build_function_table",
    "library_functions",
    "reserved_functions",
]
