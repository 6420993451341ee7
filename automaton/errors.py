"""Exceptions raised at the edges of the automaton."""


class AutomatonError(Exception):
    """Base class for automaton errors."""

    pass


class InputInterrupted(AutomatonError):
    """Raised by an input source to signal abrupt interruption."""

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(reason or "Input source interrupted")


class ChannelClosedError(AutomatonError):
    """Value sent to an input channel after its terminal signal."""

    pass
