"""Tests for the command-line interface."""

from __future__ import annotations

import io

from click.testing import CliRunner
from ruamel.yaml import YAML

from kilonova.cli.main import cli
from kilonova.config import SimulationConfig


def _load_yaml(text):
    return YAML(typ="safe").load(text)


def _write_config(config_dict, path):
    SimulationConfig.from_dict(config_dict).to_yaml(path)
    return str(path)


class TestCLI:

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "run" in result.output
        assert "verify" in result.output

    def test_verify(self, halo_config_dict, tmp_path):
        path = _write_config(halo_config_dict, tmp_path / "halo.yaml")
        result = CliRunner().invoke(cli, ["verify", path])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "halo_kilonova" in result.output
        assert "48 zones in 12 blocks" in result.output

    def test_verify_rejects_unknown_key(self, halo_config_dict, tmp_path):
        halo_config_dict["mesh"]["num_radial_zones"] = 100
        path = tmp_path / "bad.yaml"
        stream = io.StringIO()
        YAML(typ="safe").dump(halo_config_dict, stream)
        path.write_text(stream.getvalue())
        result = CliRunner().invoke(cli, ["verify", str(path)])
        assert result.exit_code == 1
        assert "num_radial_zones" in result.output

    def test_run_with_step_limit(self, halo_config_dict, tmp_path):
        path = _write_config(halo_config_dict, tmp_path / "halo.yaml")
        out = tmp_path / "run_out"
        result = CliRunner().invoke(cli, ["run", path, "--steps", "3", "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "Simulation Summary" in result.output
        assert "steps: 3" in result.output
        assert (out / "chkpt.0000.h5").exists()

    def test_resume_from_checkpoint(self, halo_config_dict, tmp_path):
        path = _write_config(halo_config_dict, tmp_path / "halo.yaml")
        out = tmp_path / "run_out"
        runner = CliRunner()
        first = runner.invoke(cli, ["run", path, "--steps", "2", "--output-dir", str(out)])
        assert first.exit_code == 0, first.output

        result = runner.invoke(
            cli, ["run", str(out / "chkpt.0000.h5"), "--steps", "2", "--output-dir", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert "Restarting from checkpoint" in result.output
        assert "iteration: 2" in result.output

    def test_run_reports_bad_checkpoint(self, tmp_path):
        bogus = tmp_path / "chkpt.0000.h5"
        bogus.write_bytes(b"not hdf5")
        result = CliRunner().invoke(cli, ["run", str(bogus)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_presets_lists_names(self):
        result = CliRunner().invoke(cli, ["presets"])
        assert result.exit_code == 0
        assert "halo_kilonova" in result.output
        assert "jet_in_star" in result.output

    def test_preset_to_stdout(self):
        result = CliRunner().invoke(cli, ["preset", "jet_in_star"])
        assert result.exit_code == 0
        data = _load_yaml(result.output)
        assert data["model"]["jet_in_star"]["engine_u"] == 50.0

    def test_preset_to_file(self, tmp_path):
        out = tmp_path / "jet.yaml"
        result = CliRunner().invoke(cli, ["preset", "jet_in_star", "-o", str(out)])
        assert result.exit_code == 0
        assert SimulationConfig.from_file(out).model.scenario_name == "jet_in_star"

    def test_unknown_preset(self):
        result = CliRunner().invoke(cli, ["preset", "supernova"])
        assert result.exit_code == 1
        assert "Unknown preset" in result.output
