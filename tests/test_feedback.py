"""
Feedback: reply-driven effects next to a plain state mapping.
"""

import pytest

from automaton import (
    Automaton,
    Feedback,
    FlattenStrategy,
    InputChannel,
    Reply,
    Termination,
    reduce,
    transition,
    when,
)
from tests.helpers import Recorder, eventually

IDLE, LOADING, LOADED = "idle", "loading", "loaded"

mapping = reduce([
    when("load", transition(IDLE, LOADING)),
    when("reload", transition(LOADED, LOADING)),
    when("fetched", transition(LOADING, LOADED)),
])


def loading(reply):
    return reply.to_state if reply.to_state == LOADING else None


@pytest.fixture
def channel():
    return InputChannel()


class TestFeedbackEffect:
    def test_skips_rejected_replies(self):
        feedback = Feedback(lambda value: None)

        assert feedback.effect_for(Reply("load", IDLE)) is None

    def test_select_none_skips(self):
        feedback = Feedback(lambda value: None, select=loading)

        assert feedback.effect_for(Reply("fetched", LOADING, LOADED)) is None
        assert feedback.effect_for(Reply("load", IDLE, LOADING)) is not None

    def test_filter(self):
        feedback = Feedback(lambda value: None, filter=lambda reply: reply.input == "load")

        assert feedback.effect_for(Reply("reload", LOADED, LOADING)) is None
        assert feedback.effect_for(Reply("load", IDLE, LOADING)) is not None

    def test_owns_a_queue(self):
        feedback = Feedback(lambda value: None, strategy=FlattenStrategy.CONCAT, name="sync")

        effect = feedback.effect_for(Reply("load", IDLE, LOADING))

        assert effect.queue == feedback.queue
        assert str(feedback.queue) == "sync:concat"

    def test_generated_names_are_unique(self):
        first = Feedback(lambda value: None)
        second = Feedback(lambda value: None)

        assert first.queue != second.queue


class TestFeedbackLoop:
    @pytest.mark.asyncio
    async def test_feedback_feeds_inputs_back(self, channel):
        calls = []

        async def fetch(state):
            calls.append(state)
            yield "fetched"

        automaton = Automaton.from_mapping(
            IDLE, channel, mapping, feedback=Feedback(fetch, select=loading)
        )
        recorder = Recorder(automaton)

        channel.send("load")
        await eventually(lambda: automaton.state == LOADED)

        channel.send("reload")
        await eventually(lambda: len(recorder.replies) == 4)
        channel.complete()

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert calls == [LOADING, LOADING]
        assert recorder.inputs == ["load", "fetched", "reload", "fetched"]
        assert automaton.state == LOADED

    @pytest.mark.asyncio
    async def test_several_feedbacks(self, channel):
        seen = []

        async def record(reply):
            seen.append(reply.input)
            return
            yield

        async def fetch(state):
            yield "fetched"

        automaton = Automaton.from_mapping(
            IDLE,
            channel,
            mapping,
            feedback=[Feedback(record), Feedback(fetch, select=loading)],
        )

        channel.send("load")
        channel.complete()

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert seen == ["load", "fetched"]

    @pytest.mark.asyncio
    async def test_failing_select_is_skipped(self, channel):
        def broken(reply):
            raise KeyError("missing")

        automaton = Automaton.from_mapping(
            IDLE, channel, mapping, feedback=Feedback(lambda value: None, select=broken)
        )

        channel.send("load")
        channel.complete()

        assert await automaton.wait_closed() is Termination.COMPLETED
        assert automaton.state == LOADING
