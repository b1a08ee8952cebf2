"""Shunting-yard parser: token list -> postfix (reverse-Polish) items.

Operator precedence (lowest to highest), all left-associative:
  1. ``+ - % == != > >= < <=``
  2. ``* /``

Comparisons deliberately share the additive tier, so ``1 == 2 * 3 < 1``
reads as ``((1 == (2 * 3)) < 1)``.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

from formulary.formulas.cursor import Cursor
from formulary.formulas.errors import FormulaParseError
from formulary.formulas.lexer import tokenize
from formulary.formulas.tokens import Operator, Token, TokenType

PRECEDENCE: dict[Operator, int] = {op: 1 for op in Operator}
PRECEDENCE[Operator.ASTERISK] = 2
PRECEDENCE[Operator.SLASH] = 2


class ItemKind(str, Enum):
    NUMBER = "number"
    FUNCTION = "function"
    VARIABLE = "variable"
    OPERATOR = "operator"


class PostfixItem(NamedTuple):
    """One entry of a postfix sequence.

    ``argc`` is only meaningful for FUNCTION items: the number of
    arguments written between the call's parentheses.
    """

    kind: ItemKind
    value: float | str | Operator
    argc: int = 0


class _Call:
    """Function-name marker held on the operator stack until its ``)``."""

    __slots__ = ("name", "argc")

    def __init__(self, name: str, argc: int) -> None:
        self.name = name
        self.argc = argc

    def __repr__(self) -> str:
        return f"_Call({self.name!r}, argc={self.argc})"


def to_postfix(tokens: list[Token]) -> list[PostfixItem]:
    """Convert a token list to postfix order.

    Raises:
        FormulaParseError: On mismatched parentheses, a misplaced separator
            or an empty/unfinished result.
    """
    return Parser(tokens).parse()


def parse_formula(text: str) -> list[PostfixItem]:
    """Tokenize and parse *text* into a postfix sequence."""
    return to_postfix(tokenize(text))


class Parser:
    """Single-use shunting-yard converter over one token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens: Cursor[Token] = Cursor(tokens)
        self._output: list[PostfixItem] = []
        self._stack: list[Token | _Call] = []

    def parse(self) -> list[PostfixItem]:
        self._run()
        if not self._output or not self._tokens.at_end():
            raise FormulaParseError("syntax error", position=self._tokens.index)
        return self._output

    def _run(self) -> None:
        while True:
            token = self._tokens.advance()
            if token is None:
                break
            kind = token.type
            if kind is TokenType.WHITESPACE:
                continue
            if kind is TokenType.NUMBER:
                self._output.append(PostfixItem(ItemKind.NUMBER, token.value))
            elif kind is TokenType.OPERATOR:
                self._push_operator(token)
            elif kind is TokenType.LPAREN:
                self._stack.append(token)
            elif kind is TokenType.RPAREN:
                self._close_paren()
            elif kind is TokenType.PROPERTY:
                self._property(token)
            elif kind is TokenType.COMMA:
                self._separator()
            else:
                raise FormulaParseError(f"unexpected token {token!r}", position=self._tokens.index - 1)

        while self._stack:
            top = self._stack.pop()
            if not _is_operator(top):
                raise FormulaParseError("parentheses are not balanced")
            self._output.append(_operator_item(top))

    def _push_operator(self, token: Token) -> None:
        incoming = PRECEDENCE[token.value]
        while self._stack and _is_operator(self._stack[-1]):
            if PRECEDENCE[self._stack[-1].value] < incoming:
                break
            self._output.append(_operator_item(self._stack.pop()))
        self._stack.append(token)

    def _close_paren(self) -> None:
        while True:
            if not self._stack:
                raise FormulaParseError(
                    "parentheses are not matched", position=self._tokens.index - 1
                )
            top = self._stack.pop()
            if _is_operator(top):
                self._output.append(_operator_item(top))
            elif isinstance(top, Token) and top.type is TokenType.LPAREN:
                break
            else:
                raise FormulaParseError(f"unexpected function marker {top!r}")

        if self._stack and isinstance(self._stack[-1], _Call):
            call = self._stack.pop()
            self._output.append(PostfixItem(ItemKind.FUNCTION, call.name, call.argc))

    def _property(self, token: Token) -> None:
        nxt = self._tokens.peek()
        if nxt is not None and nxt.type is TokenType.LPAREN:
            after = self._tokens.peek(1)
            empty = after is not None and after.type is TokenType.RPAREN
            self._stack.append(_Call(token.value, 0 if empty else 1))
        else:
            self._output.append(PostfixItem(ItemKind.VARIABLE, token.value))

    def _separator(self) -> None:
        while True:
            if not self._stack:
                raise FormulaParseError(
                    "misplaced separator or mismatched parentheses",
                    position=self._tokens.index - 1,
                )
            top = self._stack[-1]
            if _is_operator(top):
                self._output.append(_operator_item(self._stack.pop()))
            elif isinstance(top, Token) and top.type is TokenType.LPAREN:
                break
            else:
                raise FormulaParseError(f"unexpected function marker {top!r}")

        owner = self._stack[-2] if len(self._stack) > 1 else None
        if not isinstance(owner, _Call):
            raise FormulaParseError(
                "argument separator outside of a function call",
                position=self._tokens.index - 1,
            )
        owner.argc += 1


def _is_operator(entry: Token | _Call) -> bool:
    return isinstance(entry, Token) and entry.type is TokenType.OPERATOR


def _operator_item(token: Token) -> PostfixItem:
    return PostfixItem(ItemKind.OPERATOR, token.value)


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def extract_refs(items: list[PostfixItem]) -> tuple[set[str], set[str]]:
    """Collect the names a postfix sequence refers to.

    Returns:
        Tuple of (variable_names, function_names).
    """
    variables = {str(i.value) for i in items if i.kind is ItemKind.VARIABLE}
    functions = {str(i.value) for i in items if i.kind is ItemKind.FUNCTION}
    return variables, functions


def format_postfix(items: list[PostfixItem]) -> str:
    """Render a postfix sequence as text, e.g. ``"2 3 Add/2 4 *"``."""
    parts: list[str] = []
    for item in items:
        if item.kind is ItemKind.NUMBER:
            parts.append(f"{item.value:g}")
        elif item.kind is ItemKind.FUNCTION:
            parts.append(f"{item.value}/{item.argc}")
        elif item.kind is ItemKind.OPERATOR:
            parts.append(Operator(item.value).value)
        else:
            parts.append(str(item.value))
    return " ".join(parts)
