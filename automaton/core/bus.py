"""Reply publication for an automaton.

The bus is the only writer of the StateCell. Publishing a successful Reply
commits `to_state` before any observer sees the Reply, so reading
`automaton.state` from inside an observer always returns the post-transition
value.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Optional

from automaton.core.reply import Reply, Termination
from automaton.core.state import StateCell
from automaton.utils.logging import get_logger

logger = get_logger("core.bus")

ReplyCallback = Callable[[Reply], None]
TerminationCallback = Callable[[Termination], None]


class _Observer:
    __slots__ = ("on_reply", "on_terminated")

    def __init__(
        self,
        on_reply: Optional[ReplyCallback],
        on_terminated: Optional[TerminationCallback],
    ) -> None:
        self.on_reply = on_reply
        self.on_terminated = on_terminated


class ReplySubscription:
    """
    Async iterator over replies published after subscribing.

    Iteration stops at the terminal signal; its kind is then available
    as `termination`.
    """

    _END = object()

    def __init__(self, bus: "ReplyBus") -> None:
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue()
        self.termination: Optional[Termination] = None
        self._unsubscribe = bus.observe(self._queue.put_nowait, self._terminated)

    def _terminated(self, termination: Termination) -> None:
        self.termination = termination
        self._queue.put_nowait(self._END)

    def __aiter__(self) -> AsyncIterator[Reply]:
        return self

    async def __anext__(self) -> Reply:
        item = await self._queue.get()
        if item is self._END:
            # Keep returning the end marker for repeated iteration
            self._queue.put_nowait(self._END)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Stop receiving replies."""
        self._unsubscribe()


class ReplyBus:
    """Publishes one Reply per processed input and drives the StateCell."""

    def __init__(self, cell: StateCell) -> None:
        self._cell = cell
        self._observers: list[_Observer] = []
        self._termination: Optional[Termination] = None
        self._terminated = asyncio.Event()
        self.published = 0

    @property
    def termination(self) -> Optional[Termination]:
        """Terminal signal kind, or None while the stream is open."""
        return self._termination

    @property
    def is_terminated(self) -> bool:
        return self._termination is not None

    def observe(
        self,
        on_reply: Optional[ReplyCallback] = None,
        on_terminated: Optional[TerminationCallback] = None,
    ) -> Callable[[], None]:
        """
        Register synchronous callbacks.

        Observing an already terminated bus delivers the terminal signal
        immediately.

        Args:
            on_reply: Called with every Reply, in arrival order
            on_terminated: Called once with the terminal signal

        Returns:
            Function that removes the observer
        """
        observer = _Observer(on_reply, on_terminated)

        if self._termination is not None:
            self._notify_terminated(observer, self._termination)
            return lambda: None

        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def subscribe(self) -> ReplySubscription:
        """Create an async iterator over subsequent replies."""
        return ReplySubscription(self)

    def publish(self, reply: Reply) -> None:
        """
        Commit the transition (if any) and deliver `reply` to every observer.

        Args:
            reply: Reply for the input just processed
        """
        if self._termination is not None:
            logger.debug("reply_after_termination_dropped", input=repr(reply.input))
            return

        if reply.succeeded:
            self._cell.commit(reply.to_state)

        self.published += 1

        for observer in list(self._observers):
            if observer.on_reply is None:
                continue
            try:
                observer.on_reply(reply)
            except Exception as e:
                logger.error(
                    "observer_failed",
                    input=repr(reply.input),
                    error=str(e),
                    error_type=type(e).__name__,
                )

    def terminate(self, termination: Termination) -> bool:
        """
        Forward the terminal signal exactly once.

        Returns:
            True if this call delivered the signal, False if already terminated
        """
        if self._termination is not None:
            return False

        self._termination = termination
        observers, self._observers = self._observers, []

        for observer in observers:
            self._notify_terminated(observer, termination)

        self._terminated.set()
        return True

    async def wait_terminated(self) -> Termination:
        """Wait for the terminal signal and return its kind."""
        await self._terminated.wait()
        return self._termination

    def _notify_terminated(self, observer: _Observer, termination: Termination) -> None:
        if observer.on_terminated is None:
            return
        try:
            observer.on_terminated(termination)
        except Exception as e:
            logger.error(
                "observer_failed",
                termination=termination.name,
                error=str(e),
                error_type=type(e).__name__,
            )

    def __aiter__(self) -> AsyncIterator[Reply]:
        return self.subscribe()
