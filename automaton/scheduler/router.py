"""Routes effects to their queue schedulers and tracks everything in flight."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Union

from automaton.core.effect import DEFAULT_QUEUE, Effect, EffectQueue
from automaton.scheduler.queues import QueueScheduler, scheduler_for
from automaton.scheduler.running import Emit, RunningEffect
from automaton.utils.logging import get_logger

logger = get_logger("scheduler.router")

QueueResolver = Callable[[Union[EffectQueue, str, None]], EffectQueue]


def default_resolver(queue: Union[EffectQueue, str, None]) -> EffectQueue:
    """Resolve queues without configuration: names become merge queues."""
    if queue is None:
        return DEFAULT_QUEUE
    if isinstance(queue, EffectQueue):
        return queue
    return EffectQueue.merge(str(queue))


class EffectRouter:
    """
    Classifies effects by queue and owns one scheduler per queue.

    The router also implements both cancellation mechanisms: explicit cancel
    effects (matched against effect ids in every queue) and until-predicates
    (evaluated against every processed input).
    """

    def __init__(
        self,
        emit: Emit,
        resolve: Optional[QueueResolver] = None,
        on_idle: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Initialize the router.

        Args:
            emit: Sink for inputs yielded by running producers
            resolve: Maps an effect's queue field onto an EffectQueue
            on_idle: Called whenever the last in-flight effect is released
        """
        self._emit = emit
        self._resolve = resolve or default_resolver
        self._on_idle = on_idle
        self._schedulers: dict[EffectQueue, QueueScheduler] = {}
        self._closed = False
        self._runs: list[RunningEffect] = []
        self.started = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def idle(self) -> bool:
        """Check if no effect is running or waiting in any queue."""
        return all(scheduler.idle for scheduler in self._schedulers.values())

    def scheduler(self, queue: EffectQueue) -> QueueScheduler:
        """Get (or create) the scheduler for `queue`."""
        scheduler = self._schedulers.get(queue)
        if scheduler is None:
            scheduler = scheduler_for(queue)
            self._schedulers[queue] = scheduler
            logger.debug("queue_created", queue=str(queue))
        return scheduler

    def in_flight(self) -> list[RunningEffect]:
        """All effects running or waiting, across queues."""
        effects: list[RunningEffect] = []
        for scheduler in self._schedulers.values():
            effects.extend(scheduler.effects())
        return effects

    def route(self, effect: Effect) -> Optional[RunningEffect]:
        """
        Launch a producer effect on its queue.

        Args:
            effect: Producer effect (cancel effects go through `cancel`)

        Returns:
            The RunningEffect, or None if the router is closed
        """
        if self._closed:
            logger.debug("effect_refused", effect_id=repr(effect.id), reason="router closed")
            return None

        queue = self._resolve(effect.queue)
        run = RunningEffect(effect, queue, self._emit, self._released)
        self._runs = [r for r in self._runs if not _finished(r)]
        self._runs.append(run)
        self.started += 1
        self.scheduler(queue).submit(run)
        return run

    def dispatch(self, effect: Effect) -> Optional[RunningEffect]:
        """Route a producer effect or apply a cancel effect."""
        if effect.is_cancel:
            self.cancel(effect.matches)
            return None
        return self.route(effect)

    def cancel(self, matches: Callable[[Any], bool]) -> int:
        """
        Dispose every in-flight effect whose id satisfies `matches`.

        Effects without an id never match. A cancel with no match is a no-op.

        Returns:
            Number of effects disposed
        """
        disposed = 0
        for scheduler in list(self._schedulers.values()):
            disposed += scheduler.dispose_where(
                lambda run: run.id is not None and matches(run.id)
            )

        logger.debug("effect_cancelled", disposed=disposed)
        return disposed

    def dispose_until(self, value: Any, state: Any) -> int:
        """
        Evaluate until-predicates against `(value, state)`.

        Returns:
            Number of effects disposed
        """
        disposed = 0
        for run in self.in_flight():
            until = run.effect.until
            if until is None or run.released:
                continue
            try:
                satisfied = until(value, state)
            except Exception as e:
                logger.error(
                    "until_predicate_failed",
                    effect=run.serial,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if satisfied and run.dispose():
                disposed += 1
        return disposed

    def close(self) -> int:
        """
        Dispose every effect in every queue and refuse new ones.

        Calling close more than once is harmless.

        Returns:
            Number of effects disposed by this call
        """
        self._closed = True
        disposed = 0
        for scheduler in list(self._schedulers.values()):
            disposed += scheduler.close()
        return disposed

    def _released(self, run: RunningEffect) -> None:
        scheduler = self._schedulers.get(run.queue)
        if scheduler is not None:
            scheduler.released(run)

        if not self._closed and self._on_idle is not None and self.idle:
            self._on_idle()

    async def drain(self) -> None:
        """Wait until every started producer task has actually stopped."""
        tasks = [run.task for run in self._runs if run.task is not None and not run.task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._runs = [r for r in self._runs if not _finished(r)]


def _finished(run: RunningEffect) -> bool:
    return run.released and (run.task is None or run.task.done())
