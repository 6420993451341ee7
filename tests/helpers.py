"""Shared test helpers: gated producers, reply recorders, polling."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, AsyncIterator, Callable

from automaton import Automaton, Reply, Termination


class AuthState(Enum):
    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    LOGGED_IN = "logged_in"
    LOGGING_OUT = "logging_out"


class AuthInput(Enum):
    LOGIN = "login"
    LOGIN_OK = "login_ok"
    LOGOUT = "logout"
    FORCE_LOGOUT = "force_logout"
    LOGOUT_OK = "logout_ok"


class Gate:
    """
    Producer whose outputs are released by the test.

    Every call of `producer` is one producer instance; instances share the
    gate, so `open()` releases the next pending output of whichever
    instance is waiting.
    """

    def __init__(self, *outputs: Any) -> None:
        self.outputs = outputs
        self._permits = asyncio.Semaphore(0)
        self.started = 0
        self.finished = 0
        self.cancelled = 0
        self.closed = 0

    def open(self, count: int = 1) -> None:
        for _ in range(count):
            self._permits.release()

    def open_all(self) -> None:
        self.open(len(self.outputs))

    def producer(self) -> AsyncIterator[Any]:
        return self._produce()

    async def _produce(self) -> AsyncIterator[Any]:
        self.started += 1
        try:
            for value in self.outputs:
                await self._permits.acquire()
                yield value
            self.finished += 1
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.closed += 1


class Recorder:
    """Collects replies, terminal signals and the state seen by observers."""

    def __init__(self, automaton: Automaton) -> None:
        self.automaton = automaton
        self.replies: list[Reply] = []
        self.states: list[Any] = []
        self.terminations: list[Termination] = []
        automaton.replies.observe(self._on_reply, self.terminations.append)

    def _on_reply(self, reply: Reply) -> None:
        self.replies.append(reply)
        self.states.append(self.automaton.state)

    @property
    def last(self) -> Reply:
        return self.replies[-1]

    @property
    def inputs(self) -> list[Any]:
        return [reply.input for reply in self.replies]


async def eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll `predicate` until it holds or fail after `timeout` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


async def settle(rounds: int = 50) -> None:
    """Let every ready task run for a while."""
    for _ in range(rounds):
        await asyncio.sleep(0)


AUTH_TABLE = """\
initial: logged_out
config:
  name: auth
  queues:
    auth: latest
transitions:
  - input: login
    from: logged_out
    to: logging_in
    effect: {emit: [login_ok], queue: auth, id: login}
  - input: login_ok
    from: logging_in
    to: logged_in
  - input: logout
    from: logged_in
    to: logging_out
    effect: {emit: [logout_ok], queue: auth}
  - input: force_logout
    from: [logging_in, logged_in]
    to: logging_out
    effect: {cancel: login}
  - input: logout_ok
    from: logging_out
    to: logged_out
"""
