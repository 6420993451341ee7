"""
InputChannel: push-based input source with completion and interruption.
"""

import pytest

from automaton import ChannelClosedError, InputChannel, InputInterrupted, Termination


class TestInputChannel:
    @pytest.mark.asyncio
    async def test_iterates_until_complete(self):
        channel = InputChannel()
        channel.send("a")
        channel.send("b")
        channel.complete()

        assert [value async for value in channel] == ["a", "b"]
        assert channel.terminal is Termination.COMPLETED

    @pytest.mark.asyncio
    async def test_interrupt_raises(self):
        channel = InputChannel()
        channel.send("a")
        channel.interrupt()

        received = []
        with pytest.raises(InputInterrupted):
            async for value in channel:
                received.append(value)

        assert received == ["a"]

    @pytest.mark.asyncio
    async def test_terminal_repeats(self):
        channel = InputChannel()
        channel.interrupt()

        for _ in range(2):
            with pytest.raises(InputInterrupted):
                await channel.__anext__()

    @pytest.mark.asyncio
    async def test_send_after_terminal(self):
        channel = InputChannel()
        channel.complete()

        assert channel.is_closed
        with pytest.raises(ChannelClosedError, match="completed"):
            channel.send("late")

    @pytest.mark.asyncio
    async def test_first_terminal_wins(self):
        channel = InputChannel()
        channel.complete()
        channel.interrupt()

        assert channel.terminal is Termination.COMPLETED
        assert [value async for value in channel] == []
