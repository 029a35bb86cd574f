"""
Tests for the command-line interface.
"""

from __future__ import annotations

import json

import pytest

from trackmpc import __version__
from trackmpc.cli import create_parser, main


class TestParser:

    def test_run_defaults(self):
        args = create_parser().parse_args(["run"])
        assert args.command == "run"
        assert args.track == "oval"
        assert args.max_steps == 200
        assert args.horizon is None

    def test_run_overrides(self):
        args = create_parser().parse_args(
            ["run", "-t", "s-curve", "-H", "20", "--target-speed", "25", "--fallback", "brake"]
        )
        assert args.track == "s-curve"
        assert args.horizon == 20
        assert args.target_speed == 25.0
        assert args.fallback == "brake"

    def test_rejects_unknown_track(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["run", "--track", "moon"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestValidate:

    def test_valid_file(self, temp_config_file, capsys):
        assert main(["validate", str(temp_config_file)]) == 0
        out = capsys.readouterr().out
        assert "is valid" in out
        assert "Horizon: 10" in out

    def test_invalid_file(self, tmp_path, capsys):
        path = tmp_path / "bad.yml"
        path.write_text("controller:\n  fallback: pray\n")
        assert main(["validate", str(path)]) == 1
        assert "fallback" in capsys.readouterr().err

    def test_missing_file(self, tmp_path):
        assert main(["validate", str(tmp_path / "missing.yml")]) == 1


class TestInfo:

    def test_lists_dependencies(self, capsys):
        assert main(["info"]) == 0
        out = capsys.readouterr().out
        assert "casadi" in out
        assert "numpy" in out


@pytest.mark.slow
class TestRun:

    def test_short_run_writes_outputs(self, tmp_path, capsys):
        output = tmp_path / "run.json"
        plot = tmp_path / "run.png"
        code = main([
            "-q", "run",
            "--track", "straight",
            "--max-steps", "5",
            "--target-speed", "20",
            "--output", str(output),
            "--plot", str(plot),
        ])
        assert code == 0
        assert "Steps: 5" in capsys.readouterr().out

        record = json.loads(output.read_text())
        assert record["steps"] == 5
        assert len(record["trajectory"]) == 5
        assert plot.stat().st_size > 0

    def test_invalid_override(self, capsys):
        assert main(["-q", "run", "--horizon", "1", "--max-steps", "1"]) == 1
