"""Result type for loaders.

Configuration and transition tables are user-authored files. Their loaders
return `Ok(value)` or `Err(error)` instead of raising, and the caller
decides how a bad file is reported: the CLI maps errors to exit codes,
library callers can `unwrap()`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, NoReturn, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


class ResultError(Exception):
    """Unwrapped the wrong side of a Result."""

    pass


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Loaded value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def unwrap_err(self) -> NoReturn:
        raise ResultError(f"Expected an error, loaded {self.value!r}")

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True)
class Err(Generic[E]):
    """Reason a file could not be loaded."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise ResultError(str(self.error))

    def unwrap_or(self, default: T) -> T:
        return default

    def unwrap_err(self) -> E:
        return self.error

    def map(self, fn: Callable[[T], U]) -> "Err[E]":
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class ConfigError:
    """Invalid configuration value, located by dotted field name."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"Config error in '{self.field}': {self.message}"


@dataclass(frozen=True)
class TableError:
    """Invalid transition table, located by path (e.g. `transitions[2].effect`)."""

    location: str
    message: str

    def __str__(self) -> str:
        return f"Table error at '{self.location}': {self.message}"


class ExitCode:
    """CLI exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1

    # Bad input files (10-19)
    CONFIG_ERROR = 10
    TABLE_ERROR = 11

    # Run outcome (20-29)
    TIMEOUT = 20
