"""Unit tests for CLI utilities."""

import logging
from unittest.mock import patch

import pytest

from carguix.cli.utils import configure_logging, echo_error, echo_success, exit_with_error
from carguix.errors import CrateNotFound, DependencyProcessingFailed, iter_causes


def _chained_error() -> DependencyProcessingFailed:
    try:
        try:
            raise CrateNotFound("missing")
        except CrateNotFound as e:
            raise DependencyProcessingFailed("app", "1.0.0") from e
    except DependencyProcessingFailed as outer:
        return outer


class TestEcho:
    def test_messages_go_to_stderr(self, capsys):
        echo_success("done")
        echo_error("broken")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "✅ done" in captured.err
        assert "❌ broken" in captured.err


class TestExitWithError:
    def test_prints_cause_chain_and_exits(self, capsys):
        error = _chained_error()

        with pytest.raises(SystemExit) as exc_info:
            exit_with_error(error)

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        lines = [line for line in err.splitlines() if line.strip()]
        assert lines[0].startswith("error:")
        assert "app" in lines[0]
        assert lines[1].startswith("caused by:")
        assert "missing" in lines[1]

    def test_iter_causes_order(self):
        error = _chained_error()

        causes = list(iter_causes(error))

        assert len(causes) == 1
        assert isinstance(causes[0], CrateNotFound)

    def test_markup_in_message_is_not_interpreted(self, capsys):
        with pytest.raises(SystemExit):
            exit_with_error(CrateNotFound("[bold]weird[/bold]"))

        assert "[bold]weird[/bold]" in capsys.readouterr().err


class TestConfigureLogging:
    @pytest.mark.parametrize(
        "verbose,quiet,expected",
        [
            (False, False, logging.WARNING),
            (True, False, logging.DEBUG),
            (False, True, logging.ERROR),
            (True, True, logging.ERROR),
        ],
    )
    def test_level_from_flags(self, verbose, quiet, expected):
        with patch("carguix.cli.utils.logging.basicConfig") as basic_config:
            configure_logging(verbose, quiet)

        assert basic_config.call_args.kwargs["level"] == expected
