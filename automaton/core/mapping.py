"""Transition mappings and the builder functions that compose them.

A mapping is a pure function of `(state, input)`. Absence of a match is the
only failure and is expressed by returning `None`:

    Mapping       (state, input) -> state | None
    EffectMapping (state, input) -> (state, Effect | None) | None

Tables are built from small partial mappings and folded with `reduce`,
where the first mapping that matches wins:

    mapping = reduce([
        with_effect(when(LOGIN, transition(LOGGED_OUT, LOGGING_IN)), login_effect),
        lift(when(LOGIN_OK, transition(LOGGING_IN, LOGGED_IN))),
        lift(when(FORCE_LOGOUT, transition(any_state, LOGGING_OUT))),
    ])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Tuple, TypeVar

from automaton.core.effect import Effect

S = TypeVar("S")
I = TypeVar("I")

Mapping = Callable[[Any, Any], Optional[Any]]
EffectMapping = Callable[[Any, Any], Optional[Tuple[Any, Optional[Effect]]]]


def any_state(_: Any) -> bool:
    """Predicate matching every state."""
    return True


def any_input(_: Any) -> bool:
    """Predicate matching every input."""
    return True


def _predicate(value: Any) -> Callable[[Any], bool]:
    if callable(value):
        return value
    return lambda candidate: candidate == value


@dataclass(frozen=True)
class Transition:
    """From-state predicate and the state it leads to."""

    from_state: Callable[[Any], bool]
    to_state: Any


def transition(from_state: Any, to_state: Any) -> Transition:
    """
    Describe a move between states.

    Args:
        from_state: Concrete state (equality) or predicate over states
        to_state: State reached when the transition applies

    Returns:
        Transition
    """
    return Transition(from_state=_predicate(from_state), to_state=to_state)


def when(input: Any, move: Transition) -> Mapping:
    """
    Build a mapping that applies `move` for matching inputs.

    Args:
        input: Concrete input (equality) or predicate over inputs
        move: Transition to apply

    Returns:
        Mapping returning `move.to_state` or None
    """
    matches_input = _predicate(input)

    def mapping(state: Any, value: Any) -> Optional[Any]:
        if matches_input(value) and move.from_state(state):
            return move.to_state
        return None

    return mapping


def update(input: Any, fn: Callable[[Any], Any]) -> Mapping:
    """
    Build a mapping that computes the next state from the current one.

    Args:
        input: Concrete input (equality) or predicate over inputs
        fn: Function from the current state to the next state

    Returns:
        Mapping
    """
    matches_input = _predicate(input)

    def mapping(state: Any, value: Any) -> Optional[Any]:
        if matches_input(value):
            return fn(state)
        return None

    return mapping


def with_effect(mapping: Mapping, effect: Optional[Effect]) -> EffectMapping:
    """Attach `effect` to every successful result of `mapping`."""

    def effect_mapping(state: Any, value: Any) -> Optional[Tuple[Any, Optional[Effect]]]:
        to_state = mapping(state, value)
        if to_state is None:
            return None
        return to_state, effect

    return effect_mapping


def lift(mapping: Mapping) -> EffectMapping:
    """Turn a plain mapping into an effect mapping with no effect."""
    return with_effect(mapping, None)


def reduce(mappings: Iterable[Callable[[Any, Any], Any]]) -> Callable[[Any, Any], Any]:
    """
    Fold mappings into one; the first mapping returning non-None wins.

    Works for plain mappings and effect mappings alike, as long as they
    are not mixed.
    """
    candidates = list(mappings)

    def reduced(state: Any, value: Any) -> Any:
        for mapping in candidates:
            result = mapping(state, value)
            if result is not None:
                return result
        return None

    return reduced
