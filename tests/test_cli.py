"""Tests for the pyinflate command line."""

import pytest

from pyinflate import cli
from pyinflate import engine as engine_module
from pyinflate.config import InflatorSettings


def test_inflate_command(capsys):
    """Test inflate runs to completion and reports the total."""
    code = cli.main(["inflate", "--max-mb", "3", "--step-mb", "2", "--interval", "0"])

    assert code == 0
    assert "Inflation complete: 3 MB allocated" in capsys.readouterr().out


def test_inflate_invalid_step(capsys):
    """Test a non-positive step is rejected with a usage exit code."""
    code = cli.main(["inflate", "--max-mb", "3", "--step-mb", "0", "--interval", "0"])

    assert code == 2
    assert "Inflation complete" not in capsys.readouterr().out


def test_inflate_allocation_failure(monkeypatch, capsys):
    """Test allocation failure exits with status 1."""

    def failing_allocate(size_mb):
        raise MemoryError

    monkeypatch.setattr(engine_module, "allocate_block", failing_allocate)
    code = cli.main(["inflate", "--max-mb", "3", "--step-mb", "1", "--interval", "0"])

    assert code == 1
    assert "Inflation complete" not in capsys.readouterr().out


def test_status_command(capsys):
    """Test status prints the allocation of a fresh process."""
    assert cli.main(["status"]) == 0
    assert capsys.readouterr().out.strip() == "AllocatedMB: 0, Blocks: 0"


def test_reset_command(capsys):
    """Test reset prints confirmation."""
    assert cli.main(["reset"]) == 0
    assert "Reset allocation to 0 MB" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["help"]])
def test_help(argv, capsys):
    """Test no command or help prints usage."""
    assert cli.main(argv) == 0
    out = capsys.readouterr().out
    assert "usage: pyinflate" in out
    assert "inflate" in out


def test_parser_defaults_from_settings():
    """Test inflate defaults come from settings."""
    settings = InflatorSettings(default_max_mb=64, default_step_mb=8, step_interval=0.5)
    args = cli.build_parser(settings).parse_args(["inflate"])

    assert args.max_mb == 64
    assert args.step_mb == 8
    assert args.interval == 0.5


def test_serve_arguments():
    """Test serve picks up host and port overrides."""
    settings = InflatorSettings()
    args = cli.build_parser(settings).parse_args(["serve", "--host", "127.0.0.1", "--port", "9999"])

    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 9999


def test_settings_from_environment(monkeypatch):
    """Test PYINFLATE_* variables override defaults."""
    monkeypatch.setenv("PYINFLATE_DEFAULT_MAX_MB", "2048")
    monkeypatch.setenv("PYINFLATE_STEP_INTERVAL", "0.25")

    settings = InflatorSettings()
    assert settings.default_max_mb == 2048
    assert settings.step_interval == 0.25
    assert settings.default_step_mb == 10
