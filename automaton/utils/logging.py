"""Structured logging for automata.

Every event is a snake_case name plus keyword fields, rendered as JSON (or
plain console text) on stderr. Events emitted while an automaton is working
carry its name under the `automaton` key:

    {"event": "transition", "automaton": "auth", "input": "'login'", ...}

The name travels in a context variable. Tasks copy the context they were
created in, so binding it once around task creation tags everything the
automaton and its effects log.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

import structlog

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

automaton_var: ContextVar[str] = ContextVar("automaton", default="")


@contextmanager
def automaton_context(name: str) -> Iterator[None]:
    """Tag events logged (and tasks created) inside the block with `name`."""
    token = automaton_var.set(name)
    try:
        yield
    finally:
        automaton_var.reset(token)


def get_automaton_context() -> str:
    """Name of the automaton bound to the current context, or ''."""
    return automaton_var.get()


def add_automaton_name(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    name = automaton_var.get()
    if name:
        event_dict.setdefault("automaton", name)
    return event_dict


def add_timestamp(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def _renderer(format_type: str) -> structlog.types.Processor:
    if format_type == "json":
        # States and inputs are arbitrary objects
        return structlog.processors.JSONRenderer(default=repr)
    return structlog.dev.ConsoleRenderer(colors=False)


def configure_logging(
    level: str = "info",
    format_type: str = "json",
    stream: Any = None,
) -> None:
    """
    Configure structlog for the whole process.

    Loggers are not cached, so calling this again (as the CLI does after
    parsing its options) takes effect for module-level loggers too.

    Args:
        level: debug, info, warn or error (unknown names mean info)
        format_type: 'json' or 'text'
        stream: Output stream (default: sys.stderr)
    """
    stream = stream or sys.stderr
    log_level = LEVELS.get(level.lower(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=stream, level=log_level)

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            add_timestamp,
            add_automaton_name,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _renderer(format_type),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a logger, bound with `logger_name` when a name is given.

    Args:
        name: Dotted module name, e.g. "core.machine"

    Returns:
        structlog logger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger


# Library default: quiet unless something goes wrong
configure_logging(level="warning")
