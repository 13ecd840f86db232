"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from kilonova.config import SimulationConfig
from kilonova.presets import get_preset


@pytest.fixture
def gamma():
    return 4.0 / 3.0


@pytest.fixture
def jet_config_dict(tmp_path):
    """Jet-in-star preset at reduced resolution and duration."""
    cfg = get_preset("jet_in_star")
    cfg["mesh"]["num_polar_zones"] = 16
    cfg["control"].update(
        final_time=0.05,
        checkpoint_interval=0.02,
        output_directory=str(tmp_path / "jet"),
        num_threads=1,
        fold=10,
    )
    return cfg


@pytest.fixture
def halo_config_dict(tmp_path):
    """Halo kilonova preset at reduced resolution and duration."""
    cfg = get_preset("halo_kilonova")
    cfg["mesh"]["num_polar_zones"] = 32
    cfg["control"].update(
        final_time=2e8,
        checkpoint_interval=1e8,
        output_directory=str(tmp_path / "halo"),
        num_threads=1,
        fold=5,
    )
    return cfg


@pytest.fixture
def static_shell_config_dict(tmp_path):
    """Kilonova shell placed mid-domain so no wave reaches either boundary."""
    cfg = get_preset("halo_kilonova")
    cfg["hydro"]["relativistic"]["cfl_number"] = 0.4
    cfg["model"]["halo_kilonova"].update(
        launch_radius=1e19,
        shell_thickness=1e19,
        initial_data_table=None,
    )
    cfg["mesh"].update(reference_radius=1e19, num_polar_zones=32)
    cfg["control"].update(
        final_time=1e9,
        checkpoint_interval=5e8,
        output_directory=str(tmp_path / "shell"),
        num_threads=1,
        fold=10,
    )
    return cfg


@pytest.fixture
def jet_config(jet_config_dict):
    return SimulationConfig.from_dict(jet_config_dict)


@pytest.fixture
def halo_config(halo_config_dict):
    return SimulationConfig.from_dict(halo_config_dict)


@pytest.fixture
def track_boundaries(monkeypatch):
    """Wrap ``engine.step`` to check the boundary ordering after every step.

    Returns a function that installs the wrapper and returns the list the
    step results are collected in.
    """

    def install(engine) -> list:
        results = []
        step = engine.step

        def checked():
            result = step()
            assert result.inner_radius < result.outer_radius, f"step {result.step}"
            results.append(result)
            return result

        monkeypatch.setattr(engine, "step", checked)
        return results

    return install
