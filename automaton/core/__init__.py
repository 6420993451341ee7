"""Automaton core: transitions, replies, effects and lifecycle.

An automaton is a deterministic state machine that also schedules
asynchronous effects. Inputs flow through one serialized pipeline:

    external inputs ─┐
                     ├─> backlog -> mapping(state, input) -> ReplyBus
    effect inputs  ──┘                                         │
          ^                                                    v
          └──── QueueScheduler (merge | latest | concat) <── EffectRouter

The ReplyBus publishes one Reply per input and commits successful
transitions to the StateCell. Effects returned by the mapping are routed by
queue; each queue applies its own flatten strategy. The LifecycleController
ends everything on input completion, input interruption or `close()`.
"""

from automaton.core.bus import ReplyBus, ReplySubscription
from automaton.core.effect import (
    DEFAULT_QUEUE,
    Effect,
    EffectQueue,
    FlattenStrategy,
    Producer,
    emit,
)
from automaton.core.feedback import Feedback
from automaton.core.lifecycle import LifecycleController
from automaton.core.machine import Automaton
from automaton.core.mapping import (
    EffectMapping,
    Mapping,
    Transition,
    any_input,
    any_state,
    lift,
    reduce,
    transition,
    update,
    when,
    with_effect,
)
from automaton.core.reply import Reply, Termination
from automaton.core.state import StateCell

__all__ = [
    # Machine
    "Automaton",
    "LifecycleController",
    # Replies and state
    "Reply",
    "ReplyBus",
    "ReplySubscription",
    "StateCell",
    "Termination",
    # Effects
    "DEFAULT_QUEUE",
    "Effect",
    "EffectQueue",
    "FlattenStrategy",
    "Feedback",
    "Producer",
    "emit",
    # Mappings
    "Mapping",
    "EffectMapping",
    "Transition",
    "any_input",
    "any_state",
    "lift",
    "reduce",
    "transition",
    "update",
    "when",
    "with_effect",
]
