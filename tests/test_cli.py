"""
CLI commands: check and run.
"""

import json

import pytest
from click.testing import CliRunner

from automaton import __version__
from automaton.cli import cli
from automaton.utils.result import ExitCode
from tests.helpers import AUTH_TABLE


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def table_path(tmp_path):
    path = tmp_path / "auth.yaml"
    path.write_text(AUTH_TABLE)
    return path


def json_lines(output):
    return [json.loads(line) for line in output.splitlines() if line.strip()]


class TestCheck:
    def test_valid_table(self, runner, table_path):
        result = runner.invoke(cli, ["check", str(table_path)])

        assert result.exit_code == ExitCode.SUCCESS
        summary = json.loads(result.stdout)
        assert summary["name"] == "auth"
        assert summary["initial"] == "logged_out"
        assert summary["rules"] == 5

    def test_missing_table(self, runner, tmp_path):
        result = runner.invoke(cli, ["check", str(tmp_path / "missing.yaml")])

        assert result.exit_code == ExitCode.TABLE_ERROR

    def test_invalid_table(self, runner, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("initial: idle\ntransitions: []\n")

        result = runner.invoke(cli, ["check", str(path)])

        assert result.exit_code == ExitCode.TABLE_ERROR

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestRun:
    def test_prints_replies_and_summary(self, runner, table_path):
        result = runner.invoke(cli, ["run", str(table_path), "-i", "login", "-i", "logout"])

        assert result.exit_code == ExitCode.SUCCESS
        lines = json_lines(result.stdout)
        replies, summary = lines[:-1], lines[-1]

        assert [reply["input"] for reply in replies] == ["login", "logout", "login_ok"]
        assert [reply["succeeded"] for reply in replies] == [True, False, True]
        assert summary == {
            "state": "logged_in",
            "termination": "completed",
            "replies": 3,
            "accepted": 2,
            "timed_out": False,
        }

    def test_timeout(self, runner, tmp_path):
        path = tmp_path / "slow.yaml"
        path.write_text(AUTH_TABLE.replace("queue: auth, id: login", "delay: 10, queue: auth, id: login"))

        result = runner.invoke(cli, ["run", str(path), "-i", "login", "--timeout", "0.05"])

        assert result.exit_code == ExitCode.TIMEOUT
        summary = json_lines(result.stdout)[-1]
        assert summary["timed_out"] is True
        assert summary["termination"] == "interrupted"

    def test_text_logs(self, runner, table_path):
        result = runner.invoke(
            cli,
            ["--log-level", "debug", "--log-format", "text", "run", str(table_path), "-i", "login"],
        )

        assert result.exit_code == ExitCode.SUCCESS
        assert json_lines(result.stdout)[-1]["state"] == "logged_in"

    def test_config_override(self, runner, table_path, tmp_path):
        config = tmp_path / "automaton.yaml"
        config.write_text("name: override\nqueues:\n  auth: concat\n")

        result = runner.invoke(cli, ["run", str(table_path), "-i", "login", "--config", str(config)])

        assert result.exit_code == ExitCode.SUCCESS
        assert json_lines(result.stdout)[-1]["state"] == "logged_in"

    def test_invalid_config(self, runner, table_path, tmp_path):
        config = tmp_path / "automaton.yaml"
        config.write_text("default_strategy: fastest\n")

        result = runner.invoke(cli, ["run", str(table_path), "-i", "login", "--config", str(config)])

        assert result.exit_code == ExitCode.CONFIG_ERROR
