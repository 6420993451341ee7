"""Deterministic automaton with managed asynchronous effects."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterable, Generic, Optional, Sequence, Tuple, TypeVar, Union

from automaton.config.settings import AutomatonConfig
from automaton.core.bus import ReplyBus
from automaton.core.effect import Effect
from automaton.core.feedback import Feedback
from automaton.core.lifecycle import LifecycleController
from automaton.core.mapping import EffectMapping, Mapping, lift
from automaton.core.reply import Reply, Termination
from automaton.core.state import StateCell
from automaton.errors import InputInterrupted
from automaton.scheduler.router import EffectRouter
from automaton.scheduler.running import RunningEffect
from automaton.utils.logging import automaton_context, get_logger

logger = get_logger("core.machine")

S = TypeVar("S")
I = TypeVar("I")

# Backlog marker asking the consumer to re-check the completion condition
_WAKE = object()


class Automaton(Generic[S, I]):
    """
    Deterministic state machine that also schedules and cancels effects.

    External inputs and inputs yielded by running effects are merged into
    one backlog consumed by a single task, so transitions are strictly
    serialized. Each processed input publishes exactly one Reply; a
    successful Reply commits the new state before any observer sees it.

    Must be constructed inside a running event loop.

    Usage:
        channel = InputChannel()
        async with Automaton(LOGGED_OUT, channel, mapping) as automaton:
            automaton.replies.observe(print)
            channel.send(LOGIN)
            ...
    """

    def __init__(
        self,
        state: S,
        inputs: AsyncIterable[I],
        mapping: EffectMapping,
        effect: Optional[Effect] = None,
        *,
        feedback: Union[Feedback, Sequence[Feedback], None] = None,
        config: Optional[AutomatonConfig] = None,
    ) -> None:
        """
        Initialize and start the automaton.

        Args:
            state: Initial state
            inputs: External input source
            mapping: Effect mapping `(state, input) -> (state, effect) | None`
            effect: Initial effect, launched immediately
            feedback: Reply-driven effects, see `Feedback`
            config: Automaton configuration
        """
        self.config = config or AutomatonConfig()
        self.name = self.config.name

        self._cell = StateCell(state)
        self.replies = ReplyBus(self._cell)
        self._mapping = mapping

        if feedback is None:
            self._feedbacks: list[Feedback] = []
        elif isinstance(feedback, Feedback):
            self._feedbacks = [feedback]
        else:
            self._feedbacks = list(feedback)

        # Backlog of (input, origin) pairs; origin is None for external input
        self._backlog: asyncio.Queue = asyncio.Queue()

        self._router = EffectRouter(
            emit=self._feed,
            resolve=self.config.resolve_queue,
            on_idle=self._wake,
        )
        self._lifecycle = LifecycleController(self._router, self.replies, self.name)

        loop = asyncio.get_running_loop()

        # Internal tasks and the initial effect inherit the logging context
        with automaton_context(self.name):
            self._lifecycle.attach(
                loop.create_task(self._consume(), name=f"{self.name}-consume"),
                loop.create_task(self._pump(inputs), name=f"{self.name}-pump"),
            )

            logger.info(
                "automaton_started",
                state=repr(state),
                initial_effect=effect is not None,
                feedbacks=len(self._feedbacks),
            )

            if effect is not None:
                self._router.dispatch(effect)

    @classmethod
    def from_mapping(
        cls,
        state: S,
        inputs: AsyncIterable[I],
        mapping: Mapping,
        effect: Optional[Effect] = None,
        **kwargs: Any,
    ) -> "Automaton[S, I]":
        """Build an automaton from a plain state mapping (no effects)."""
        return cls(state, inputs, lift(mapping), effect, **kwargs)

    @property
    def state(self) -> S:
        """Current state."""
        return self._cell.value

    @property
    def termination(self) -> Optional[Termination]:
        """Terminal signal forwarded so far, if any."""
        return self.replies.termination

    @property
    def is_closed(self) -> bool:
        return not self._lifecycle.accepting

    def close(self) -> None:
        """
        Destroy the automaton.

        Disposes every in-flight effect, stops consuming input and forwards
        INTERRUPTED on the reply stream. Closing twice is a no-op.
        """
        self._lifecycle.interrupt("closed by owner")

    async def aclose(self) -> None:
        """Close and wait for internal tasks and effects to stop."""
        self.close()
        await self._lifecycle.join()

    async def wait_closed(self) -> Termination:
        """Wait for the terminal signal, let tasks unwind, and return its kind."""
        termination = await self.replies.wait_terminated()
        await self._lifecycle.join()
        return termination

    async def __aenter__(self) -> "Automaton[S, I]":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # Ingestion

    def _feed(self, value: Any, origin: RunningEffect) -> None:
        if self._lifecycle.accepting and not origin.disposed:
            self._backlog.put_nowait((value, origin))

    def _wake(self) -> None:
        if self._lifecycle.source_completed and self._lifecycle.accepting:
            self._backlog.put_nowait(_WAKE)

    async def _pump(self, inputs: AsyncIterable[I]) -> None:
        try:
            async for value in inputs:
                if not self._lifecycle.accepting:
                    return
                self._backlog.put_nowait((value, None))
        except InputInterrupted as e:
            logger.info("input_source_interrupted", reason=e.reason)
            self._lifecycle.interrupt("input interrupted")
            return
        except Exception as e:
            logger.error(
                "input_source_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            self._lifecycle.interrupt("input source failed")
            return

        self._lifecycle.complete_source()
        self._wake()

    async def _consume(self) -> None:
        # An observer may close the automaton from inside this task
        while self._lifecycle.accepting:
            item = await self._backlog.get()

            if item is not _WAKE:
                value, origin = item
                self._step(value, origin)

            if self._lifecycle.ready_to_complete(self._backlog.empty()):
                self._lifecycle.complete()
                return

    # Transition

    def _step(self, value: Any, origin: Optional[RunningEffect]) -> None:
        if not self._lifecycle.accepting:
            return

        if origin is not None and origin.disposed:
            logger.debug("stale_feedback_dropped", input=repr(value), effect=origin.serial)
            return

        from_state = self._cell.value
        outcome = self._evaluate(from_state, value)

        # Until-predicates see every input, accepted or rejected
        self._router.dispose_until(value, from_state)

        if outcome is None:
            reply = Reply(value, from_state)
            self._log_reply("transition_rejected", reply)
            self.replies.publish(reply)
            return

        to_state, effect = outcome
        reply = Reply(value, from_state, to_state)
        self._log_reply("transition", reply)
        self.replies.publish(reply)

        # An observer may have closed the automaton while handling the reply
        if not self._lifecycle.accepting:
            return

        if effect is not None:
            self._router.dispatch(effect)

        for feedback in self._feedbacks:
            try:
                feedback_effect = feedback.effect_for(reply)
            except Exception as e:
                logger.error(
                    "feedback_failed",
                    feedback=repr(feedback),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if feedback_effect is not None:
                self._router.dispatch(feedback_effect)

    def _evaluate(self, state: Any, value: Any) -> Optional[Tuple[Any, Optional[Effect]]]:
        """Run the mapping; anything but a well-formed match is a rejection."""
        try:
            outcome = self._mapping(state, value)
        except Exception as e:
            logger.error(
                "mapping_failed",
                input=repr(value),
                state=repr(state),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if outcome is None:
            return None

        if not isinstance(outcome, tuple) or len(outcome) != 2:
            logger.error(
                "mapping_failed",
                input=repr(value),
                state=repr(state),
                error=f"expected (state, effect) or None, got {outcome!r}",
            )
            return None

        to_state, effect = outcome
        if to_state is None:
            return None

        if effect is not None and not isinstance(effect, Effect):
            logger.error(
                "mapping_failed",
                input=repr(value),
                state=repr(state),
                error=f"expected Effect or None, got {type(effect).__name__}",
            )
            effect = None

        return to_state, effect

    def _log_reply(self, event: str, reply: Reply) -> None:
        log = logger.info if self.config.log_replies else logger.debug
        log(
            event,
            input=repr(reply.input),
            from_state=repr(reply.from_state),
            to_state=repr(reply.to_state),
        )

    def __repr__(self) -> str:
        status = self.termination.name.lower() if self.termination else "running"
        return f"Automaton({self.name!r}, state={self.state!r}, {status})"
