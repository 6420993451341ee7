"""A single producer instance launched for one effect."""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Callable, Optional

from automaton.core.effect import Effect, EffectQueue
from automaton.utils.logging import get_logger

logger = get_logger("scheduler.running")

_serial = itertools.count(1)

# Feedback sink: (input, origin) -> None
Emit = Callable[[Any, "RunningEffect"], None]


class RunningEffect:
    """
    Runs one effect's producer as an asyncio task.

    A RunningEffect is created per routed effect and torn down exactly once,
    either when its producer is exhausted or when it is disposed. It is never
    restarted.
    """

    def __init__(
        self,
        effect: Effect,
        queue: EffectQueue,
        emit: Emit,
        on_released: Callable[["RunningEffect"], None],
    ) -> None:
        """
        Initialize the running effect.

        Args:
            effect: Effect whose producer will be started
            queue: Resolved queue the effect was routed to
            emit: Sink receiving every input the producer yields
            on_released: Called once when the effect stops for any reason
        """
        self.effect = effect
        self.queue = queue
        self.serial = next(_serial)
        self._emit = emit
        self._on_released = on_released
        self._task: Optional[asyncio.Task] = None

        self.started = False
        self.disposed = False
        self.completed = False
        self.emitted = 0

    @property
    def id(self) -> Any:
        return self.effect.id

    @property
    def task(self) -> Optional[asyncio.Task]:
        """Task driving the producer, once started."""
        return self._task

    @property
    def released(self) -> bool:
        return self.disposed or self.completed

    def start(self) -> None:
        """Launch the producer. Only the first call has any effect."""
        if self.started or self.released:
            return

        self.started = True
        self._task = asyncio.get_running_loop().create_task(
            self._drive(), name=f"effect-{self.serial}"
        )
        self._task.add_done_callback(self._on_task_done)

        logger.debug(
            "effect_started",
            effect=self.serial,
            effect_id=repr(self.id),
            queue=str(self.queue),
        )

    async def _drive(self) -> None:
        async for value in self.effect.producer():
            if self.disposed:
                break
            self.emitted += 1
            self._emit(value, self)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            error = task.exception()
            logger.error(
                "effect_failed",
                effect=self.serial,
                effect_id=repr(self.id),
                queue=str(self.queue),
                error=str(error),
                error_type=type(error).__name__,
            )

        if self.released:
            return

        self.completed = True
        logger.debug(
            "effect_completed",
            effect=self.serial,
            effect_id=repr(self.id),
            emitted=self.emitted,
        )
        self._on_released(self)

    def dispose(self) -> bool:
        """
        Stop the producer and discard anything it would still emit.

        Disposing a finished or already disposed effect is a no-op.

        Returns:
            True if this call disposed the effect
        """
        if self.released:
            return False

        self.disposed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

        logger.debug(
            "effect_disposed",
            effect=self.serial,
            effect_id=repr(self.id),
            queue=str(self.queue),
            started=self.started,
        )
        self._on_released(self)
        return True

    def __repr__(self) -> str:
        status = "disposed" if self.disposed else "completed" if self.completed else (
            "running" if self.started else "pending"
        )
        return f"RunningEffect(#{self.serial}, id={self.id!r}, queue={self.queue}, {status})"
