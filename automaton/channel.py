"""Push-based input source with completion and interruption signals."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Generic, Optional, TypeVar

from automaton.core.reply import Termination
from automaton.errors import ChannelClosedError, InputInterrupted

I = TypeVar("I")

_COMPLETED = object()
_INTERRUPTED = object()


class InputChannel(Generic[I]):
    """
    Pipe that feeds an automaton.

    Producers push with `send`; the automaton consumes by async iteration.
    Iteration stops on `complete()` and raises `InputInterrupted` on
    `interrupt()`. Both terminals are final and mutually exclusive.

    Usage:
        channel = InputChannel()
        automaton = Automaton(state, channel, mapping)
        channel.send(LOGIN)
        channel.complete()
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._terminal: Optional[Termination] = None
        self._ended = False

    @property
    def terminal(self) -> Optional[Termination]:
        """Terminal signal sent so far, if any."""
        return self._terminal

    @property
    def is_closed(self) -> bool:
        return self._terminal is not None

    def send(self, value: I) -> None:
        """
        Push one input.

        Raises:
            ChannelClosedError: If the channel already completed or was interrupted
        """
        if self._terminal is not None:
            raise ChannelClosedError(
                f"Cannot send {value!r}: channel {self._terminal.name.lower()}"
            )
        self._queue.put_nowait(value)

    def complete(self) -> None:
        """Signal graceful completion. Ignored after a terminal."""
        if self._terminal is None:
            self._terminal = Termination.COMPLETED
            self._queue.put_nowait(_COMPLETED)

    def interrupt(self) -> None:
        """Signal abrupt interruption. Ignored after a terminal."""
        if self._terminal is None:
            self._terminal = Termination.INTERRUPTED
            self._queue.put_nowait(_INTERRUPTED)

    def __aiter__(self) -> AsyncIterator[I]:
        return self

    async def __anext__(self) -> Any:
        if self._ended:
            self._raise_terminal()

        item = await self._queue.get()
        if item is _COMPLETED or item is _INTERRUPTED:
            self._ended = True
            self._raise_terminal()
        return item

    def _raise_terminal(self) -> None:
        if self._terminal is Termination.INTERRUPTED:
            raise InputInterrupted("channel interrupted")
        raise StopAsyncIteration
