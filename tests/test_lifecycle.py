"""
Lifecycle: completion, interruption and close.

Completion lets running effects finish and feed their inputs back;
interruption and close dispose everything at once. Either way the reply
stream ends with exactly one terminal signal.
"""

import asyncio

import pytest

from automaton import Automaton, Effect, EffectQueue, InputChannel, InputInterrupted, Termination
from tests.helpers import Gate, Recorder, eventually, settle


@pytest.fixture
def channel():
    return InputChannel()


@pytest.fixture
def worker():
    return Gate("done")


@pytest.fixture
def mapping(worker):
    def mapping(state, value):
        if value == "start":
            return "working", Effect(worker.producer, queue=EffectQueue.latest("work"))
        if value == "done":
            return "finished", None
        return None

    return mapping


# ============================================================================
# Completion
# ============================================================================


class TestCompletion:
    @pytest.mark.asyncio
    async def test_completes_without_input(self, channel, mapping):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        channel.complete()

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert recorder.replies == []
        assert recorder.terminations == [Termination.COMPLETED]

    @pytest.mark.asyncio
    async def test_running_effect_finishes_after_completion(self, channel, mapping, worker):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        channel.send("start")
        channel.complete()
        await eventually(lambda: worker.started == 1)
        await settle()

        assert automaton.termination is None

        worker.open()

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert recorder.inputs == ["start", "done"]
        assert automaton.state == "finished"
        assert worker.finished == 1

    @pytest.mark.asyncio
    async def test_async_generator_source(self, mapping, worker):
        async def source():
            yield "start"

        worker.open()
        automaton = Automaton("idle", source(), mapping)

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert automaton.state == "finished"

    @pytest.mark.asyncio
    async def test_initial_effect_keeps_automaton_alive(self, channel, mapping, worker):
        automaton = Automaton(
            "working", channel, mapping, Effect(worker.producer, queue=EffectQueue.latest("work"))
        )
        channel.complete()
        await eventually(lambda: worker.started == 1)

        assert automaton.termination is None

        worker.open()
        assert await automaton.wait_closed() is Termination.COMPLETED
        assert automaton.state == "finished"


# ============================================================================
# Interruption
# ============================================================================


class TestInterruption:
    @pytest.mark.asyncio
    async def test_interrupt_disposes_running_effects(self, channel, mapping, worker):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        channel.send("start")
        await eventually(lambda: worker.started == 1)

        channel.interrupt()

        assert await automaton.wait_closed() is Termination.INTERRUPTED
        assert worker.cancelled == 1
        assert recorder.terminations == [Termination.INTERRUPTED]

        worker.open()
        await settle()
        assert recorder.inputs == ["start"]
        assert automaton.state == "working"

    @pytest.mark.asyncio
    async def test_source_raising_input_interrupted(self, mapping):
        async def source():
            yield "start"
            raise InputInterrupted("upstream closed")

        automaton = Automaton("idle", source(), mapping)

        assert await automaton.wait_closed() is Termination.INTERRUPTED

    @pytest.mark.asyncio
    async def test_source_failure_interrupts(self, mapping):
        async def source():
            yield "start"
            raise ConnectionError("lost")

        automaton = Automaton("idle", source(), mapping)

        assert await automaton.wait_closed() is Termination.INTERRUPTED


# ============================================================================
# close()
# ============================================================================


class TestClose:
    @pytest.mark.asyncio
    async def test_close_disposes_and_interrupts(self, channel, mapping, worker):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        channel.send("start")
        await eventually(lambda: worker.started == 1)

        automaton.close()

        assert automaton.is_closed
        assert automaton.termination is Termination.INTERRUPTED
        assert recorder.terminations == [Termination.INTERRUPTED]

        await automaton.wait_closed()
        assert worker.cancelled == 1

        # Inputs after close are ignored
        channel.send("done")
        worker.open()
        await settle()
        assert recorder.inputs == ["start"]

    @pytest.mark.asyncio
    async def test_close_twice(self, channel, mapping):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        automaton.close()
        automaton.close()
        await automaton.aclose()

        assert recorder.terminations == [Termination.INTERRUPTED]

    @pytest.mark.asyncio
    async def test_close_after_completion_keeps_completed(self, channel, mapping):
        automaton = Automaton("idle", channel, mapping)
        recorder = Recorder(automaton)

        channel.complete()
        await automaton.wait_closed()
        automaton.close()

        assert automaton.termination is Termination.COMPLETED
        assert recorder.terminations == [Termination.COMPLETED]

    @pytest.mark.asyncio
    async def test_context_manager(self, channel, mapping, worker):
        async with Automaton("idle", channel, mapping) as automaton:
            channel.send("start")
            await eventually(lambda: worker.started == 1)

        assert automaton.termination is Termination.INTERRUPTED
        assert worker.cancelled == 1

    @pytest.mark.asyncio
    async def test_observer_may_close(self, channel, mapping, worker):
        automaton = Automaton("idle", channel, mapping)
        automaton.replies.observe(lambda reply: automaton.close())

        channel.send("start")

        assert await asyncio.wait_for(automaton.wait_closed(), 2) is Termination.INTERRUPTED
        assert automaton.state == "working"
        assert worker.started == 0

    @pytest.mark.asyncio
    async def test_subscription_ends_on_close(self, channel, mapping):
        automaton = Automaton("idle", channel, mapping)
        subscription = automaton.replies.subscribe()

        channel.send("nothing")
        await eventually(lambda: automaton.replies.published == 1)
        automaton.close()

        received = [reply.input async for reply in subscription]

        assert received == ["nothing"]
        assert subscription.termination is Termination.INTERRUPTED
