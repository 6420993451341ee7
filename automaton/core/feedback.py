"""Reply-driven side-effects.

A Feedback watches successful replies and launches a producer for the ones
it selects. It is an alternative to returning effects from the mapping:
the mapping stays a plain state function and the side-effects live next
to it.

    def fetch_when_loading(reply):
        return reply.to_state if reply.to_state == LOADING else None

    async def fetch(state):
        yield await client.fetch()

    Automaton.from_mapping(IDLE, channel, mapping,
                           feedback=Feedback(fetch, select=fetch_when_loading))
"""

from __future__ import annotations

import itertools
from typing import Any, AsyncIterator, Callable, Optional

from automaton.core.effect import Effect, EffectQueue, FlattenStrategy
from automaton.core.reply import Reply

_names = itertools.count(1)


class Feedback:
    """
    Launches `produce(value)` for every successful reply `select` accepts.

    Each Feedback owns one effect queue, so `strategy` decides what happens
    when a new reply arrives while the previous producer is still running.
    """

    def __init__(
        self,
        produce: Callable[[Any], AsyncIterator[Any]],
        *,
        select: Optional[Callable[[Reply], Any]] = None,
        filter: Optional[Callable[[Reply], bool]] = None,
        strategy: FlattenStrategy = FlattenStrategy.LATEST,
        name: Optional[str] = None,
    ) -> None:
        """
        Initialize the feedback.

        Args:
            produce: Async generator function called with the selected value
            select: Maps a successful reply to a value, or None to skip it
                (default: the reply itself)
            filter: Predicate over successful replies, applied before `select`
            strategy: Flatten strategy of this feedback's queue
            name: Queue name (generated when omitted)
        """
        self.produce = produce
        self.select = select
        self.filter = filter
        self.queue = EffectQueue(name or f"feedback-{next(_names)}", strategy)

    def effect_for(self, reply: Reply) -> Optional[Effect]:
        """
        Build the effect to launch for `reply`, if any.

        Args:
            reply: Successful reply just published

        Returns:
            Effect on this feedback's queue, or None
        """
        if not reply.succeeded:
            return None
        if self.filter is not None and not self.filter(reply):
            return None

        value = reply if self.select is None else self.select(reply)
        if value is None:
            return None

        produce = self.produce
        return Effect(lambda: produce(value), queue=self.queue)

    def __repr__(self) -> str:
        return f"Feedback(queue={self.queue})"
