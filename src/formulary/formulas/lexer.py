"""Recursive-descent tokenizer for formula expressions.

Grammar::

    expr     ::= term ( ('+'|'-'|'%'|'=='|'!='|'<'|'>'|'<='|'>=') term )*
    term     ::= factor ( ('*'|'/') factor )*
    factor   ::= number | '(' expr ')' | function | variable
    function ::= property '(' expr (',' expr)* ')'    (property[0] uppercase)
    variable ::= property                              (property[0] lowercase)
    property ::= one or more alphabetic characters
    number   ::= ['+'|'-'] digits ['.' digits]

The grammar only decides which tokens are legal where; operator
precedence is left entirely to the parser.  Whitespace tokens are
produced while descending so that a function name can be told apart
from a variable followed by a parenthesis, then stripped from the
returned list.
"""

from __future__ import annotations

from formulary.formulas.cursor import Cursor
from formulary.formulas.errors import FormulaLexError
from formulary.formulas.tokens import (
    COMMA,
    LPAREN,
    RPAREN,
    WHITESPACE,
    Token,
    TokenType,
    number,
    operator,
    prop,
)

_EXPR_OPERATORS = ("+", "-", "%")
_TERM_OPERATORS = ("*", "/")
_COMPARISON_STARTS = (">", "<", "=", "!")


def tokenize(text: str) -> list[Token]:
    """Tokenize a formula string.

    Args:
        text: The formula text, e.g. ``"Add(1, 2) * rate"``.

    Returns:
        The token list, whitespace removed.

    Raises:
        FormulaLexError: On the first malformed construct.
    """
    return Lexer(text).tokenize()


class Lexer:
    """Single-use tokenizer over one input string."""

    def __init__(self, text: str) -> None:
        self._chars: Cursor[str] = Cursor(text)

    def tokenize(self) -> list[Token]:
        tokens = [t for t in self._expr() if t.type is not TokenType.WHITESPACE]
        if not self._chars.at_end():
            rest = "".join(self._chars.rest())
            raise FormulaLexError(
                f"unexpected trailing input {rest!r}", position=self._chars.index
            )
        return tokens

    # ------------------------------------------------------------------
    # Grammar rules
    # ------------------------------------------------------------------

    def _expr(self) -> list[Token]:
        tokens = self._term()
        while True:
            tokens += self._whitespace()
            c = self._chars.peek()
            if c in _COMPARISON_STARTS:
                self._chars.advance()
                tokens.append(self._comparison(c))
            elif c in _EXPR_OPERATORS:
                self._chars.advance()
                tokens.append(operator(c))
            else:
                break
            tokens += self._term()
        return tokens

    def _term(self) -> list[Token]:
        tokens = self._factor()
        while True:
            tokens += self._whitespace()
            c = self._chars.peek()
            if c not in _TERM_OPERATORS:
                break
            self._chars.advance()
            tokens.append(operator(c))
            tokens += self._factor()
        return tokens

    def _factor(self) -> list[Token]:
        tokens = self._whitespace()
        c = self._chars.peek()
        if c is None:
            raise self._error("unexpected end of input")
        if c == "(":
            self._chars.advance()
            tokens.append(LPAREN)
            tokens += self._expr()
            tokens += self._whitespace()
            self._expect_close()
            tokens.append(RPAREN)
        elif c.isdigit() or c in ("+", "-"):
            tokens += self._number()
        elif c.isupper():
            tokens += self._function()
        elif c.islower():
            tokens += self._property()
        else:
            raise self._error(f"unexpected character {c!r}")
        return tokens

    def _function(self) -> list[Token]:
        tokens = self._property()
        name = tokens[-1].value
        c = self._chars.peek()
        if c is None:
            raise self._error(f"unexpected end of input after function {name!r}")
        if c != "(":
            raise self._error(f"function {name!r} must be followed by '(', got {c!r}")
        self._chars.advance()
        tokens.append(LPAREN)
        tokens += self._expr()
        tokens += self._whitespace()

        while True:
            c = self._chars.peek()
            if c == ",":
                self._chars.advance()
                tokens.append(COMMA)
                tokens += self._expr()
                tokens += self._whitespace()
            elif c == ")":
                self._chars.advance()
                tokens.append(RPAREN)
                return tokens
            elif c is None:
                raise self._error(f"unexpected end of input in call to {name!r}")
            else:
                raise self._error(f"unexpected character {c!r} in call to {name!r}")

    def _property(self) -> list[Token]:
        tokens = self._whitespace()
        start = self._chars.index
        while True:
            c = self._chars.peek()
            if c is None or not c.isalpha():
                break
            self._chars.advance()
        name = self._slice(start)
        if not name:
            raise self._error("empty property name")
        tokens.append(prop(name))
        return tokens

    def _number(self) -> list[Token]:
        tokens = self._whitespace()
        start = self._chars.index
        while True:
            c = self._chars.peek()
            if c is None:
                break
            signed = self._chars.index == start and c in ("+", "-")
            if not (c.isdigit() or c == "." or signed):
                break
            self._chars.advance()

        literal = self._slice(start)
        if len(literal) > 1 and literal[0] == "0" and literal[1] != ".":
            raise FormulaLexError(f"invalid numeric literal {literal!r}", position=start)
        try:
            value = float(literal)
        except ValueError:
            raise FormulaLexError(
                f"invalid numeric literal {literal!r}", position=start
            ) from None
        tokens.append(number(value))
        return tokens

    def _comparison(self, first: str) -> Token:
        """Finish a comparison operator whose first character was consumed."""
        c = self._chars.peek()
        if c is None:
            raise self._error(f"unexpected end of input after {first!r}")
        if c == "=":
            self._chars.advance()
            return operator(first + "=")
        if first in ("<", ">"):
            return operator(first)
        raise self._error(f"unexpected character {c!r} after {first!r}")

    def _whitespace(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            c = self._chars.peek()
            if c is None or not c.isspace():
                return tokens
            self._chars.advance()
            tokens.append(WHITESPACE)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _expect_close(self) -> None:
        c = self._chars.peek()
        if c is None:
            raise self._error("unexpected end of input, expected ')'")
        if c != ")":
            raise self._error(f"unexpected character {c!r}, expected ')'")
        self._chars.advance()

    def _slice(self, start: int) -> str:
        return "".join(self._chars.since(start))

    def _error(self, message: str) -> FormulaLexError:
        return FormulaLexError(message, position=self._chars.index)
