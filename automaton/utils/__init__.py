"""Logging and Result helpers shared by the automaton package."""

from automaton.utils.logging import (
    automaton_context,
    configure_logging,
    get_automaton_context,
    get_logger,
)
from automaton.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    Ok,
    Result,
    ResultError,
    TableError,
)

__all__ = [
    # Logging
    "automaton_context",
    "configure_logging",
    "get_automaton_context",
    "get_logger",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "ConfigError",
    "TableError",
    "ExitCode",
]
