"""
Tests for CLI commands.

These tests verify the command-line interface functionality including:
- info header summary and signal table
- annotations listing with and without timekeeping entries
- validate exit codes for good and truncated files
"""

import logging

import pytest

from click.testing import CliRunner

from edfplus import logging_config
from edfplus.cli import cli


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def no_log_file(isolated_config):
    """Keep CLI runs from creating log files."""
    isolated_config.write_text("[logging]\nenabled = false\n")


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    """Undo the handlers installed by setup_logging during each CLI run."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    monkeypatch.setattr(logging_config, "_logging_configured", False)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert result.output.startswith("edfplus, version ")


def test_info(cli_runner, edfplus_path):
    result = cli_runner.invoke(cli, ["info", str(edfplus_path)])

    assert result.exit_code == 0, result.output
    assert "EDF+C" in result.output
    assert "2024-01-15 22:30:00" in result.output
    assert "Records:         3" in result.output
    assert "EEG Fpz-Cz" in result.output
    assert "annotations" in result.output


def test_annotations(cli_runner, edfplus_path):
    result = cli_runner.invoke(cli, ["annotations", str(edfplus_path)])

    assert result.exit_code == 0, result.output
    assert "Obstructive apnea" in result.output
    assert "(timekeeping)" not in result.output
    assert "1 annotations" in result.output


def test_annotations_all(cli_runner, edfplus_path):
    result = cli_runner.invoke(cli, ["annotations", "--all", str(edfplus_path)])

    assert result.exit_code == 0, result.output
    assert result.output.count("(timekeeping)") == 3


def test_validate_ok(cli_runner, edfplus_path):
    result = cli_runner.invoke(cli, ["validate", str(edfplus_path)])

    assert result.exit_code == 0, result.output
    assert "3 records OK" in result.output


def test_validate_truncated(cli_runner, tmp_path, edfplus_bytes):
    path = tmp_path / "truncated.edf"
    path.write_bytes(edfplus_bytes[:-10])

    result = cli_runner.invoke(cli, ["validate", str(path)])

    assert result.exit_code == 1
    assert "Invalid after 2 records" in result.output


def test_info_rejects_non_edf(cli_runner, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"not an edf file")

    result = cli_runner.invoke(cli, ["info", str(path)])

    assert result.exit_code == 1
    assert "Error:" in result.output


def test_quiet_raises_console_level(cli_runner, edfplus_path):
    result = cli_runner.invoke(cli, ["--quiet", "validate", str(edfplus_path)])

    assert result.exit_code == 0, result.output
    consoles = [h for h in logging.getLogger().handlers if type(h) is logging.StreamHandler]
    assert [h.level for h in consoles] == [logging.WARNING]
