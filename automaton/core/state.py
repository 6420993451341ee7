"""Holder for the automaton's current state."""

from __future__ import annotations

from typing import Any


class StateCell:
    """
    The single shared mutable value of an automaton.

    Only the ReplyBus writes it, and only for successful replies.
    """

    __slots__ = ("_value", "_version")

    def __init__(self, initial: Any) -> None:
        if initial is None:
            raise ValueError("None is not a valid automaton state")
        self._value = initial
        self._version = 0

    @property
    def value(self) -> Any:
        return self._value

    @property
    def version(self) -> int:
        """Number of committed transitions."""
        return self._version

    def commit(self, value: Any) -> None:
        self._value = value
        self._version += 1

    def __repr__(self) -> str:
        return f"StateCell({self._value!r})"
