"""Managed side-effects and the queues they are scheduled on."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Union

# "Cold" async producer: nothing runs until the factory is called
Producer = Callable[[], AsyncIterator[Any]]

# (input, state) -> bool, evaluated for every input processed after launch
UntilPredicate = Callable[[Any, Any], bool]

# effect id -> bool
IdPredicate = Callable[[Any], bool]


class FlattenStrategy(Enum):
    """Concurrency policy applied to producers routed to one queue."""

    MERGE = "merge"  # unbounded concurrent
    LATEST = "latest"  # newest preempts the running one
    CONCAT = "concat"  # strict FIFO, one at a time

    @classmethod
    def parse(cls, value: Union[str, "FlattenStrategy"]) -> "FlattenStrategy":
        """
        Parse a strategy from its name.

        Raises:
            ValueError: If the name is not a known strategy
        """
        if isinstance(value, FlattenStrategy):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            names = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown flatten strategy '{value}' (expected one of: {names})")


@dataclass(frozen=True)
class EffectQueue:
    """A named concurrency domain with its flatten strategy."""

    name: str
    strategy: FlattenStrategy = FlattenStrategy.MERGE

    @classmethod
    def merge(cls, name: str) -> "EffectQueue":
        return cls(name, FlattenStrategy.MERGE)

    @classmethod
    def latest(cls, name: str) -> "EffectQueue":
        return cls(name, FlattenStrategy.LATEST)

    @classmethod
    def concat(cls, name: str) -> "EffectQueue":
        return cls(name, FlattenStrategy.CONCAT)

    def __str__(self) -> str:
        return f"{self.name}:{self.strategy.value}"


DEFAULT_QUEUE = EffectQueue("default", FlattenStrategy.MERGE)


def _matcher(value: Any) -> Callable[..., bool]:
    """Use callables as predicates; compare anything else by equality."""
    if callable(value):
        return value
    return lambda candidate, *_: candidate == value


class Effect:
    """
    Managed side-effect returned by an effect mapping.

    A producer effect enqueues `producer` on `queue`; a cancel effect disposes
    running producers whose id matches instead of starting anything.

    Args:
        producer: Cold producer that runs the side-effect and yields next inputs
        queue: EffectQueue, a queue name resolved through configuration,
            or None for the default queue
        id: Identifier used by `Effect.cancel`
        until: Predicate `(input, state) -> bool`, or an input compared by
            equality; the first subsequent match disposes this producer
    """

    __slots__ = ("producer", "queue", "id", "until", "_cancel")

    def __init__(
        self,
        producer: Optional[Producer],
        queue: Union[EffectQueue, str, None] = None,
        id: Any = None,
        until: Any = None,
    ) -> None:
        self.producer = producer
        self.queue = queue
        self.id = id
        self.until: Optional[UntilPredicate] = _matcher(until) if until is not None else None
        self._cancel: Optional[IdPredicate] = None

    @classmethod
    def cancel(cls, target: Any) -> "Effect":
        """
        Build an effect that disposes running producers.

        Args:
            target: Effect id, or predicate over effect ids

        Returns:
            Cancel effect
        """
        effect = cls(None)
        effect._cancel = _matcher(target)
        return effect

    @property
    def is_cancel(self) -> bool:
        return self._cancel is not None

    def matches(self, effect_id: Any) -> bool:
        """Check if a cancel effect targets `effect_id`."""
        if self._cancel is None or effect_id is None:
            return False
        return bool(self._cancel(effect_id))

    def map_input(self, fn: Callable[[Any], Any]) -> "Effect":
        """
        Transform every input the producer yields.

        Cancel effects are returned unchanged.
        """
        if self.is_cancel:
            return self

        source = self.producer

        async def mapped() -> AsyncIterator[Any]:
            async for value in source():
                yield fn(value)

        effect = Effect(mapped, queue=self.queue, id=self.id)
        effect.until = self.until
        return effect

    def __repr__(self) -> str:
        if self.is_cancel:
            return "Effect.cancel(...)"
        return f"Effect(queue={self.queue!r}, id={self.id!r})"


def emit(*inputs: Any, delay: float = 0.0) -> Producer:
    """
    Build a producer that yields `inputs`, sleeping `delay` seconds before each.

    Args:
        inputs: Inputs to yield in order
        delay: Seconds to wait before every input

    Returns:
        Cold producer
    """

    async def produce() -> AsyncIterator[Any]:
        for value in inputs:
            if delay > 0:
                await asyncio.sleep(delay)
            yield value

    return produce
