"""Reactive automaton: a deterministic state machine with managed async effects."""

__version__ = "0.4.0"

from automaton.channel import InputChannel
from automaton.config import AutomatonConfig, load_config
from automaton.core import (
    DEFAULT_QUEUE,
    Automaton,
    Effect,
    EffectMapping,
    EffectQueue,
    Feedback,
    FlattenStrategy,
    Mapping,
    Reply,
    Termination,
    any_input,
    any_state,
    emit,
    lift,
    reduce,
    transition,
    update,
    when,
    with_effect,
)
from automaton.errors import AutomatonError, ChannelClosedError, InputInterrupted

__all__ = [
    "__version__",
    "Automaton",
    "AutomatonConfig",
    "AutomatonError",
    "ChannelClosedError",
    "DEFAULT_QUEUE",
    "Effect",
    "EffectMapping",
    "EffectQueue",
    "Feedback",
    "FlattenStrategy",
    "InputChannel",
    "InputInterrupted",
    "Mapping",
    "Reply",
    "Termination",
    "any_input",
    "any_state",
    "emit",
    "lift",
    "load_config",
    "reduce",
    "transition",
    "update",
    "when",
    "with_effect",
]
