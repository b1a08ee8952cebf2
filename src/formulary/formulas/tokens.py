"""Lexical token types shared by the lexer and the parser."""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class TokenType(str, Enum):
    WHITESPACE = "whitespace"
    NUMBER = "number"
    PROPERTY = "property"
    OPERATOR = "operator"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","


class Operator(str, Enum):
    """Binary operators, valued by their source spelling."""

    PLUS = "+"
    MINUS = "-"
    ASTERISK = "*"
    SLASH = "/"
    PERCENT = "%"
    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    GREATER_THAN = ">"
    LESS_EQUAL = "<="
    GREATER_EQUAL = ">="


class Token(NamedTuple):
    """A single lexical token.

    ``value`` holds the float for NUMBER, the raw identifier for PROPERTY
    and the :class:`Operator` for OPERATOR; it is ``None`` otherwise.
    """

    type: TokenType
    value: float | str | Operator | None = None

    def __repr__(self) -> str:
        if self.value is None:
            return f"Token({self.type.value})"
        return f"Token({self.type.value}, {self.value!r})"


WHITESPACE = Token(TokenType.WHITESPACE)
LPAREN = Token(TokenType.LPAREN)
RPAREN = Token(TokenType.RPAREN)
COMMA = Token(TokenType.COMMA)


def number(value: float) -> Token:
    return Token(TokenType.NUMBER, float(value))


def prop(name: str) -> Token:
    return Token(TokenType.PROPERTY, name)


def operator(symbol: str | Operator) -> Token:
    """Build an operator token from its spelling, e.g. ``operator("<=")``."""
    return Token(TokenType.OPERATOR, Operator(symbol))
