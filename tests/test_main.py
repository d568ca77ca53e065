"""
Tests for the command-line entry point (main.py).
"""

import json

import pytest

from main import _parse_envelope, _parse_args, main, run_pipeline
from stl_orient.build_plate import BuildEnvelope
from stl_orient.io.stl_loader import STLLoadError
from stl_orient.project_config import CONFIG_FILENAME, ProjectConfig


class TestArguments:
    def test_defaults(self):
        args = _parse_args(["part.stl"])
        assert args.stl_file == "part.stl"
        assert args.json_output is None
        assert args.top is None
        assert args.envelope is None

    @pytest.mark.parametrize("value, expected", [
        ("220x250x220", BuildEnvelope(220.0, 250.0, 220.0)),
        ("100X100X50", BuildEnvelope(100.0, 100.0, 50.0)),
        ("256×256×256", BuildEnvelope()),
    ])
    def test_envelope(self, value, expected):
        assert _parse_envelope(value) == expected

    @pytest.mark.parametrize("value", ["220x250", "0x10x10", "axbxc"])
    def test_invalid_envelope(self, value):
        with pytest.raises(SystemExit):
            _parse_args(["part.stl", "--envelope", value])

    def test_invalid_top(self):
        with pytest.raises(SystemExit):
            _parse_args(["part.stl", "--top", "0"])


class TestRunPipeline:
    def test_cube(self, cube_stl_path):
        report = run_pipeline(str(cube_stl_path))
        assert report.source == "cube.stl"
        assert report.volume_mm3 == pytest.approx(1000.0, rel=1e-6)

    def test_envelope_overrides_config(self, cube_stl_path):
        config = ProjectConfig.from_dict({"envelope": {"width": 5}})
        report = run_pipeline(str(cube_stl_path), config=config, envelope=BuildEnvelope())
        assert report.placement.fit.can_fit

    def test_config_envelope(self, cube_stl_path):
        config = ProjectConfig.from_dict({"envelope": {"width": 5}})
        assert run_pipeline(str(cube_stl_path), config=config).placement.exceeds_envelope

    def test_missing_file(self, tmp_path):
        with pytest.raises(STLLoadError):
            run_pipeline(str(tmp_path / "absent.stl"))


class TestMain:
    """Exit codes and outputs of main()."""

    def test_success(self, cube_stl_path, capsys):
        assert main([str(cube_stl_path)]) == 0
        out = capsys.readouterr().out
        assert "Volume: 1000.00 mm³ (1.00 cm³)" in out
        assert "Orientations:" in out

    def test_top(self, cube_stl_path, capsys):
        assert main([str(cube_stl_path), "--top", "1"]) == 0
        out = capsys.readouterr().out
        assert "  1. [" in out
        assert "  2. [" not in out

    def test_json_output(self, cube_stl_path, tmp_path):
        report_path = tmp_path / "out" / "report.json"
        assert main([str(cube_stl_path), "--json", str(report_path), "--workers", "2"]) == 0
        data = json.loads(report_path.read_text(encoding="utf-8"))
        assert data['volume_mm3'] == pytest.approx(1000.0, rel=1e-6)

    def test_config_write_json(self, cube_stl_path):
        (cube_stl_path.parent / CONFIG_FILENAME).write_text(
            json.dumps({"output": {"write_json": True}}))
        assert main([str(cube_stl_path)]) == 0
        assert (cube_stl_path.parent / "cube_orientation.json").exists()

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "absent.stl")]) == 1

    def test_empty_file(self, empty_stl_path):
        assert main([str(empty_stl_path)]) == 1

    def test_missing_explicit_config(self, cube_stl_path, tmp_path):
        assert main([str(cube_stl_path), "--config", str(tmp_path / "nope.json")]) == 1

    def test_invalid_config_values(self, cube_stl_path, tmp_path):
        config_path = tmp_path / "bad.json"
        config_path.write_text(json.dumps({"envelope": {"height": -1}}))
        assert main([str(cube_stl_path), "--config", str(config_path)]) == 1

    def test_oversized_still_succeeds(self, oversized_stl_path, capsys):
        assert main([str(oversized_stl_path)]) == 0
        assert "Fits build plate: NO" in capsys.readouterr().out

    def test_log_json(self, cube_stl_path, tmp_path):
        log_path = tmp_path / "log.json"
        assert main([str(cube_stl_path), "--log-json", str(log_path)]) == 0
        lines = log_path.read_text(encoding="utf-8").strip().splitlines()
        assert all(json.loads(line)["logger"].startswith("stl_orient") for line in lines)
