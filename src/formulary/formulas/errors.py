"""Error types for formula tokenizing, parsing and evaluation."""

from __future__ import annotations

from enum import Enum


class ErrorStage(str, Enum):
    """Pipeline stage that detected a failure."""

    lexer = "lexer"
    parser = "parser"
    processor = "processor"


class FormulaError(Exception):
    """Base class for all formula-related errors.

    Attributes:
        message: Human-readable description, without the stage prefix.
        position: Character (lexer) or token (parser) index, if known.
        stage: The pipeline stage that raised the error.
    """

    stage: ErrorStage | None = None
    _label = "Formula error"

    def __init__(self, message: str, position: int | None = None) -> None:
        self.message = message
        self.position = position
        full = f"{self._label}: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaLexError(FormulaError):
    """Malformed input text: bad literal, unknown character, trailing input."""

    stage = ErrorStage.lexer
    _label = "Formula lex error"


class FormulaParseError(FormulaError):
    """Token stream that cannot be arranged into postfix order."""

    stage = ErrorStage.parser
    _label = "Formula parse error"


class FormulaEvalError(FormulaError):
    """Failure while reducing a postfix sequence to a number."""

    stage = ErrorStage.processor
    _label = "Formula evaluation error"


class FormulaRefError(FormulaEvalError):
    """Reference to an unknown variable name.

    Attributes:
        ref_name: The unresolved reference.
        available: Names that are currently available.
    """

    def __init__(self, ref_name: str, available: list[str] | None = None) -> None:
        self.ref_name = ref_name
        self.available = available or []
        msg = f"Unknown variable: {ref_name!r}"
        if self.available:
            msg += f". Available: {self.available}"
        super().__init__(msg)


class FormulaFunctionError(FormulaEvalError):
    """Unknown function, wrong number of arguments, or a failing handler.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)
