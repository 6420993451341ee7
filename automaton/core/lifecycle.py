"""Termination handling for an automaton.

Three triggers end an automaton, and they are deliberately asymmetric:

    input completed   -> running effects finish naturally; their inputs keep
                         flowing. COMPLETED is forwarded once nothing is
                         queued and no effect is in flight.
    input interrupted -> every effect is disposed at once, input stops,
                         INTERRUPTED is forwarded.
    close()           -> same as interruption.

Whichever trigger comes first wins; the terminal signal is forwarded
exactly once.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from automaton.core.bus import ReplyBus
from automaton.core.reply import Termination
from automaton.scheduler.router import EffectRouter
from automaton.utils.logging import get_logger

logger = get_logger("core.lifecycle")


class LifecycleController:
    """Owns the automaton's internal tasks and its single terminal signal."""

    def __init__(self, router: EffectRouter, bus: ReplyBus, name: str) -> None:
        self._router = router
        self._bus = bus
        self._name = name
        self._tasks: list[asyncio.Task] = []
        self.source_completed = False
        self.termination: Optional[Termination] = None

    @property
    def accepting(self) -> bool:
        """Check if inputs are still processed."""
        return self.termination is None

    def attach(self, *tasks: asyncio.Task) -> None:
        """Register internal tasks cancelled on termination."""
        self._tasks.extend(tasks)

    def complete_source(self) -> None:
        """Record graceful completion of the input source."""
        self.source_completed = True
        logger.info(
            "input_source_completed",
            automaton=self._name,
            effects_in_flight=len(self._router.in_flight()),
        )

    def ready_to_complete(self, backlog_empty: bool) -> bool:
        """
        Check if the completion path may finalize.

        Args:
            backlog_empty: Whether no input is waiting to be processed

        Returns:
            True once the source completed, nothing is queued and no effect
            is running or waiting
        """
        return (
            self.accepting
            and self.source_completed
            and backlog_empty
            and self._router.idle
        )

    def complete(self) -> bool:
        """Finalize with COMPLETED."""
        return self._finalize(Termination.COMPLETED, "input completed")

    def interrupt(self, reason: str) -> bool:
        """Dispose all effects and finalize with INTERRUPTED."""
        return self._finalize(Termination.INTERRUPTED, reason)

    def _finalize(self, termination: Termination, reason: str) -> bool:
        if self.termination is not None:
            return False

        self.termination = termination

        # Effects go first so nothing runs once subscribers see the terminal
        disposed = self._router.close()
        self._bus.terminate(termination)

        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()

        logger.info(
            "automaton_terminated",
            automaton=self._name,
            termination=termination.name,
            reason=reason,
            effects_disposed=disposed,
            replies=self._bus.published,
        )
        return True

    async def join(self) -> None:
        """Wait for internal tasks and effect tasks to unwind."""
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._router.drain()
