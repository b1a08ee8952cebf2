"""Peekable cursor over a sequence (characters, tokens or postfix items)."""

from __future__ import annotations

from typing import Generic, Sequence, TypeVar

T = TypeVar("T")


class Cursor(Generic[T]):
    """Index-based cursor with one-item lookahead.

    Each pipeline stage owns its own cursor for the duration of one call.
    """

    __slots__ = ("_items", "index")

    def __init__(self, items: Sequence[T]) -> None:
        self._items = items
        self.index = 0

    def peek(self, offset: int = 0) -> T | None:
        """Return the item *offset* places ahead without consuming it."""
        i = self.index + offset
        if i < len(self._items):
            return self._items[i]
        return None

    def advance(self) -> T | None:
        """Consume and return the current item (``None`` at the end)."""
        item = self.peek()
        if item is not None:
            self.index += 1
        return item

    def at_end(self) -> bool:
        return self.index >= len(self._items)

    def rest(self) -> Sequence[T]:
        return self._items[self.index:]

    def since(self, start: int) -> Sequence[T]:
        """Return the items consumed between *start* and the current index."""
        return self._items[start:self.index]
