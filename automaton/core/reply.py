"""Reply records and terminal signals published by an automaton."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Generic, Optional, TypeVar

S = TypeVar("S")
I = TypeVar("I")


class Termination(Enum):
    """Terminal signals of the reply stream."""

    COMPLETED = auto()
    INTERRUPTED = auto()

    def is_interrupted(self) -> bool:
        """Check if this terminal was caused by interruption or close."""
        return self is Termination.INTERRUPTED


@dataclass(frozen=True)
class Reply(Generic[I, S]):
    """
    Record of one input's transition attempt.

    `to_state` is present when the transition succeeded and `None` when the
    mapping rejected the input (the state is left unchanged).
    """

    input: I
    from_state: S
    to_state: Optional[S] = None

    @property
    def succeeded(self) -> bool:
        """Check if the transition was accepted."""
        return self.to_state is not None

    @property
    def rejected(self) -> bool:
        """Check if the mapping found no match."""
        return self.to_state is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "input": self.input,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "succeeded": self.succeeded,
        }

    def __repr__(self) -> str:
        if self.succeeded:
            return f"Reply({self.input!r}, {self.from_state!r} -> {self.to_state!r})"
        return f"Reply({self.input!r}, {self.from_state!r} -> rejected)"
