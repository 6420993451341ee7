"""CLI entry point for automaton."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import click

from automaton import __version__
from automaton.channel import InputChannel
from automaton.config import load_config
from automaton.core.machine import Automaton
from automaton.core.reply import Reply, Termination
from automaton.table import TransitionTable
from automaton.utils.logging import configure_logging, get_logger
from automaton.utils.result import ExitCode


class Context:
    """CLI context for sharing state between commands."""

    def __init__(self, log_level: str, log_format: str) -> None:
        self.log_level = log_level
        self.log_format = log_format
        self.logger = get_logger("cli")


pass_context = click.make_pass_decorator(Context)


def output_json(data: dict) -> None:
    """Output JSON to stdout."""
    click.echo(json.dumps(data, indent=2, default=str))


def load_table(ctx: Context, path: Path) -> TransitionTable:
    """Load a table or exit with TABLE_ERROR."""
    result = TransitionTable.from_yaml(path)
    if result.is_err():
        error = result.unwrap_err()
        ctx.logger.error("table_invalid", path=str(path), location=error.location)
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.TABLE_ERROR)
    return result.unwrap()


@dataclass
class RunOutcome:
    """Everything observed while running a table."""

    replies: list[Reply] = field(default_factory=list)
    state: Any = None
    termination: Optional[Termination] = None
    timed_out: bool = False

    def summary(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "termination": self.termination.name.lower() if self.termination else None,
            "replies": len(self.replies),
            "accepted": sum(1 for reply in self.replies if reply.succeeded),
            "timed_out": self.timed_out,
        }


async def run_table(
    table: TransitionTable,
    inputs: list[str],
    timeout: float,
    interrupt_after: Optional[float] = None,
) -> RunOutcome:
    """
    Feed `inputs` to an automaton built from `table` and wait for it to end.

    Args:
        table: Transition table
        inputs: External inputs, sent in order
        timeout: Seconds to wait for termination before closing
        interrupt_after: Interrupt the input channel after this many seconds
            instead of completing it

    Returns:
        RunOutcome with every reply and the final state
    """
    outcome = RunOutcome()
    channel: InputChannel[str] = InputChannel()
    automaton = Automaton(table.initial, channel, table.mapping(), config=table.config)
    automaton.replies.observe(outcome.replies.append)

    for value in inputs:
        channel.send(value)

    if interrupt_after is None:
        channel.complete()
    else:
        await asyncio.sleep(interrupt_after)
        channel.interrupt()

    try:
        outcome.termination = await asyncio.wait_for(automaton.wait_closed(), timeout)
    except asyncio.TimeoutError:
        outcome.timed_out = True
        await automaton.aclose()
        outcome.termination = automaton.termination

    outcome.state = automaton.state
    return outcome


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warn", "error"], case_sensitive=False),
    default="warn",
    help="Logging level",
)
@click.option(
    "--log-format",
    type=click.Choice(["json", "text"], case_sensitive=False),
    default="json",
    help="Log format",
)
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_format: str) -> None:
    """
    Reactive automaton - run declarative state machines with async effects.

    Tables describe states, inputs and the effects each transition launches.
    Logs go to stderr; results go to stdout as JSON.
    """
    configure_logging(level=log_level, format_type=log_format)
    ctx.obj = Context(log_level=log_level, log_format=log_format)


@cli.command()
@click.argument("table", type=click.Path(exists=False, path_type=Path))
@pass_context
def check(ctx: Context, table: Path) -> None:
    """Validate a transition table and print its summary."""
    loaded = load_table(ctx, table)
    output_json(loaded.summary())


@cli.command()
@click.argument("table", type=click.Path(exists=False, path_type=Path))
@click.option(
    "--input",
    "-i",
    "inputs",
    multiple=True,
    help="Input to send (repeatable, sent in order)",
)
@click.option(
    "--timeout",
    type=float,
    default=10.0,
    show_default=True,
    help="Seconds to wait for the automaton to terminate",
)
@click.option(
    "--interrupt-after",
    type=float,
    default=None,
    help="Interrupt the input after N seconds instead of completing it",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Configuration file replacing the table's config section",
)
@pass_context
def run(
    ctx: Context,
    table: Path,
    inputs: tuple[str, ...],
    timeout: float,
    interrupt_after: Optional[float],
    config_path: Optional[Path],
) -> None:
    """
    Run a transition table against a sequence of inputs.

    Prints one JSON line per reply, then a summary line.
    """
    loaded = load_table(ctx, table)

    if config_path is not None:
        config_result = load_config(config_path)
        if config_result.is_err():
            error = config_result.unwrap_err()
            ctx.logger.error("config_invalid", path=str(config_path), field=error.field)
            click.echo(f"Error: {error}", err=True)
            sys.exit(ExitCode.CONFIG_ERROR)
        loaded.config = config_result.unwrap()

    ctx.logger.info(
        "run_started",
        table=str(table),
        inputs=len(inputs),
        timeout=timeout,
    )

    outcome = asyncio.run(run_table(loaded, list(inputs), timeout, interrupt_after))

    for reply in outcome.replies:
        click.echo(json.dumps(reply.to_dict(), default=str))
    click.echo(json.dumps(outcome.summary(), default=str))

    if outcome.timed_out:
        sys.exit(ExitCode.TIMEOUT)


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except Exception as e:
        logger = get_logger("cli")
        logger.error("cli_error", error=str(e))
        sys.exit(ExitCode.GENERAL_ERROR)


if __name__ == "__main__":
    main()
