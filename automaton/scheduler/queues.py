"""Per-queue schedulers, one class per flatten strategy.

Each queue identifier gets its own scheduler instance; schedulers never
interact with each other.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import Callable

from automaton.core.effect import EffectQueue, FlattenStrategy
from automaton.scheduler.running import RunningEffect
from automaton.utils.logging import get_logger

logger = get_logger("scheduler.queues")


class QueueScheduler(ABC):
    """Applies one queue's flatten strategy to the effects routed to it."""

    strategy: FlattenStrategy

    def __init__(self, queue: EffectQueue) -> None:
        self.queue = queue
        self.running: list[RunningEffect] = []
        self._closed = False

    @property
    def idle(self) -> bool:
        """Check if nothing is running or waiting."""
        return not self.running

    @abstractmethod
    def submit(self, run: RunningEffect) -> None:
        """Accept a newly routed effect."""

    def released(self, run: RunningEffect) -> None:
        """Forget an effect that completed or was disposed."""
        if run in self.running:
            self.running.remove(run)

    def effects(self) -> list[RunningEffect]:
        """All effects this scheduler still owns."""
        return list(self.running)

    def dispose_where(self, predicate: Callable[[RunningEffect], bool]) -> int:
        """
        Dispose every owned effect matching `predicate`.

        Returns:
            Number of effects disposed
        """
        disposed = 0
        for run in self.effects():
            if predicate(run) and run.dispose():
                disposed += 1
        return disposed

    def close(self) -> int:
        """Dispose everything and refuse further submissions."""
        self._closed = True
        return self.dispose_where(lambda run: True)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.queue}, running={len(self.running)})"


class MergeScheduler(QueueScheduler):
    """Starts every effect immediately; effects run concurrently."""

    strategy = FlattenStrategy.MERGE

    def submit(self, run: RunningEffect) -> None:
        if self._closed:
            run.dispose()
            return
        self.running.append(run)
        run.start()


class LatestScheduler(QueueScheduler):
    """Keeps at most one effect running; a new effect preempts the current one."""

    strategy = FlattenStrategy.LATEST

    def submit(self, run: RunningEffect) -> None:
        if self._closed:
            run.dispose()
            return

        for current in list(self.running):
            if current.dispose():
                logger.debug(
                    "effect_preempted",
                    queue=str(self.queue),
                    effect=current.serial,
                    by=run.serial,
                )

        self.running.append(run)
        run.start()


class ConcatScheduler(QueueScheduler):
    """Runs effects one at a time in arrival order."""

    strategy = FlattenStrategy.CONCAT

    def __init__(self, queue: EffectQueue) -> None:
        super().__init__(queue)
        self.pending: deque[RunningEffect] = deque()

    @property
    def idle(self) -> bool:
        return not self.running and not self.pending

    def effects(self) -> list[RunningEffect]:
        return list(self.running) + list(self.pending)

    def submit(self, run: RunningEffect) -> None:
        if self._closed:
            run.dispose()
            return

        if self.running:
            self.pending.append(run)
            logger.debug(
                "effect_queued",
                queue=str(self.queue),
                effect=run.serial,
                position=len(self.pending),
            )
            return

        self.running.append(run)
        run.start()

    def released(self, run: RunningEffect) -> None:
        if run in self.pending:
            self.pending.remove(run)
            return

        super().released(run)

        if self._closed or self.running:
            return

        while self.pending:
            following = self.pending.popleft()
            if following.released:
                continue
            self.running.append(following)
            following.start()
            break

    def close(self) -> int:
        self._closed = True
        # Waiting effects are dropped first so disposal never starts them
        waiting, self.pending = list(self.pending), deque()
        disposed = sum(1 for run in waiting if run.dispose())
        return disposed + self.dispose_where(lambda run: True)


SCHEDULERS: dict[FlattenStrategy, type[QueueScheduler]] = {
    FlattenStrategy.MERGE: MergeScheduler,
    FlattenStrategy.LATEST: LatestScheduler,
    FlattenStrategy.CONCAT: ConcatScheduler,
}


def scheduler_for(queue: EffectQueue) -> QueueScheduler:
    """Create the scheduler implementing `queue.strategy`."""
    return SCHEDULERS[queue.strategy](queue)
