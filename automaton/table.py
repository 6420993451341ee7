"""Declarative transition tables loaded from YAML.

A table names states and inputs as strings and compiles to an effect
mapping with the builder functions in `automaton.core.mapping`:

    initial: logged_out
    config:
      name: auth
      queues: {auth: latest}
    transitions:
      - input: login
        from: logged_out
        to: logging_in
        effect: {emit: [login_ok], delay: 0.5, queue: auth, id: login}
      - input: force_logout
        from: "*"
        to: logging_out
        effect: {cancel: login}

Rules are tried in order; the first matching rule wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from automaton.config.settings import AutomatonConfig
from automaton.core.effect import Effect, emit
from automaton.core.mapping import (
    EffectMapping,
    any_input,
    any_state,
    reduce,
    transition,
    when,
    with_effect,
)
from automaton.utils.logging import get_logger
from automaton.utils.result import Err, Ok, Result, TableError

logger = get_logger("table")

WILDCARD = "*"

_RULE_KEYS = {"input", "from", "to", "effect"}
_EFFECT_KEYS = {"emit", "delay", "queue", "id", "until", "cancel"}


@dataclass
class EffectEntry:
    """Effect attached to a rule: either emits inputs or cancels by id."""

    emit: list[str] = field(default_factory=list)
    delay: float = 0.0
    queue: Optional[str] = None
    id: Optional[str] = None
    until: Optional[str] = None
    cancel: Optional[str] = None

    def build(self) -> Effect:
        """Create the Effect this entry describes."""
        if self.cancel is not None:
            return Effect.cancel(self.cancel)
        return Effect(
            emit(*self.emit, delay=self.delay),
            queue=self.queue,
            id=self.id,
            until=self.until,
        )

    def to_dict(self) -> dict[str, Any]:
        if self.cancel is not None:
            return {"cancel": self.cancel}
        data: dict[str, Any] = {"emit": list(self.emit), "delay": self.delay}
        for key in ("queue", "id", "until"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


@dataclass
class Rule:
    """One row of the table."""

    input: str
    from_states: list[str]
    to: str
    effect: Optional[EffectEntry] = None

    def mapping(self) -> EffectMapping:
        """Compile this rule into an effect mapping."""
        matches_input = any_input if self.input == WILDCARD else self.input

        if WILDCARD in self.from_states:
            matches_state = any_state
        else:
            allowed = set(self.from_states)
            matches_state = allowed.__contains__

        move = transition(matches_state, self.to)
        effect = self.effect.build() if self.effect is not None else None
        return with_effect(when(matches_input, move), effect)


@dataclass
class TransitionTable:
    """Initial state, ordered rules and the automaton configuration."""

    initial: str
    rules: list[Rule]
    config: AutomatonConfig = field(default_factory=AutomatonConfig)

    @property
    def states(self) -> list[str]:
        """Every concrete state mentioned by the table, in first-seen order."""
        seen: dict[str, None] = {self.initial: None}
        for rule in self.rules:
            for state in rule.from_states:
                if state != WILDCARD:
                    seen.setdefault(state, None)
            seen.setdefault(rule.to, None)
        return list(seen)

    @property
    def inputs(self) -> list[str]:
        """Every concrete input mentioned by the table, in first-seen order."""
        seen: dict[str, None] = {}
        for rule in self.rules:
            if rule.input != WILDCARD:
                seen.setdefault(rule.input, None)
            if rule.effect is not None:
                for value in rule.effect.emit:
                    seen.setdefault(value, None)
        return list(seen)

    def mapping(self) -> EffectMapping:
        """Compile all rules; earlier rules take priority."""
        return reduce(rule.mapping() for rule in self.rules)

    def summary(self) -> dict[str, Any]:
        """Describe the table for reporting."""
        return {
            "name": self.config.name,
            "initial": self.initial,
            "states": self.states,
            "inputs": self.inputs,
            "rules": len(self.rules),
            "effects": sum(1 for rule in self.rules if rule.effect is not None),
            "queues": {name: s.value for name, s in self.config.queues.items()},
        }

    @classmethod
    def from_yaml(cls, path: Path) -> Result["TransitionTable", TableError]:
        """
        Load a table from a YAML file.

        Args:
            path: Path to the table

        Returns:
            Result with the table or the first error found
        """
        path = Path(path)

        if not path.exists():
            return Err(TableError(location="path", message=f"Table file not found: {path}"))

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            return Err(TableError(location="yaml", message=f"Failed to parse YAML: {e}"))
        except OSError as e:
            return Err(TableError(location="file", message=f"Failed to read table: {e}"))

        result = cls.from_dict(data)
        if result.is_ok():
            table = result.unwrap()
            logger.debug("table_loaded", path=str(path), rules=len(table.rules))
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Result["TransitionTable", TableError]:
        """
        Create a table from parsed YAML.

        Args:
            data: Table dictionary

        Returns:
            Result with the table or the first error found
        """
        if not isinstance(data, dict):
            return Err(TableError(location="table", message="Expected a mapping at top level"))

        initial = data.get("initial")
        if not isinstance(initial, str) or not initial:
            return Err(TableError(location="initial", message="Must be a non-empty state name"))

        config = AutomatonConfig()
        if data.get("config") is not None:
            if not isinstance(data["config"], dict):
                return Err(TableError(location="config", message="Expected a mapping"))
            config_result = AutomatonConfig.from_dict(data["config"])
            if config_result.is_err():
                error = config_result.unwrap_err()
                return Err(TableError(location=f"config.{error.field}", message=error.message))
            config = config_result.unwrap()

        rows = data.get("transitions")
        if not isinstance(rows, list) or not rows:
            return Err(TableError(location="transitions", message="Must be a non-empty list"))

        rules: list[Rule] = []
        for index, row in enumerate(rows):
            rule_result = _parse_rule(row, f"transitions[{index}]")
            if rule_result.is_err():
                return rule_result
            rules.append(rule_result.unwrap())

        return Ok(cls(initial=initial, rules=rules, config=config))


def _parse_rule(row: Any, location: str) -> Result[Rule, TableError]:
    if not isinstance(row, dict):
        return Err(TableError(location=location, message="Expected a mapping"))

    unknown = set(row) - _RULE_KEYS
    if unknown:
        return Err(TableError(location=location, message=f"Unknown keys: {sorted(unknown)}"))

    value = row.get("input")
    if not isinstance(value, str) or not value:
        return Err(TableError(location=f"{location}.input", message="Must be a non-empty input name"))

    to_state = row.get("to")
    if not isinstance(to_state, str) or not to_state or to_state == WILDCARD:
        return Err(TableError(location=f"{location}.to", message="Must be a concrete state name"))

    from_states = row.get("from", WILDCARD)
    if isinstance(from_states, str):
        from_states = [from_states]
    if (
        not isinstance(from_states, list)
        or not from_states
        or not all(isinstance(s, str) and s for s in from_states)
    ):
        return Err(TableError(
            location=f"{location}.from",
            message="Must be a state name, a list of state names, or '*'",
        ))

    effect = None
    if row.get("effect") is not None:
        effect_result = _parse_effect(row["effect"], f"{location}.effect")
        if effect_result.is_err():
            return effect_result
        effect = effect_result.unwrap()

    return Ok(Rule(input=value, from_states=list(from_states), to=to_state, effect=effect))


def _parse_effect(data: Any, location: str) -> Result[EffectEntry, TableError]:
    if not isinstance(data, dict):
        return Err(TableError(location=location, message="Expected a mapping"))

    unknown = set(data) - _EFFECT_KEYS
    if unknown:
        return Err(TableError(location=location, message=f"Unknown keys: {sorted(unknown)}"))

    if "cancel" in data:
        if len(data) > 1:
            return Err(TableError(location=location, message="A cancel effect takes no other keys"))
        if not isinstance(data["cancel"], str):
            return Err(TableError(location=f"{location}.cancel", message="Must be an effect id"))
        return Ok(EffectEntry(cancel=data["cancel"]))

    values = data.get("emit")
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
        return Err(TableError(location=f"{location}.emit", message="Must be a list of input names"))

    try:
        delay = float(data.get("delay", 0.0))
    except (TypeError, ValueError):
        return Err(TableError(location=f"{location}.delay", message="Must be a number"))
    if delay < 0:
        return Err(TableError(location=f"{location}.delay", message=f"Must not be negative, got {delay}"))

    for key in ("queue", "id", "until"):
        if key in data and not isinstance(data[key], str):
            return Err(TableError(location=f"{location}.{key}", message="Must be a string"))

    return Ok(EffectEntry(
        emit=list(values),
        delay=delay,
        queue=data.get("queue"),
        id=data.get("id"),
        until=data.get("until"),
    ))
