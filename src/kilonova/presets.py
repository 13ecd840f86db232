"""Named configuration presets for the shipped scenarios.

Each preset is a dictionary accepted by ``SimulationConfig.from_dict``.
The same setups are available as YAML run files under ``setups/``.

- halo_kilonova: 1e51 erg kilonova shell in the Milky Way hot halo, fixed
  boundaries, fixed time step
- jet_in_star: 1e51 erg jet through a 5 solar-mass star, boundaries that
  start moving after the engine shuts off

Usage:
    from kilonova.presets import get_preset, list_presets
    config = SimulationConfig.from_dict(get_preset("jet_in_star"))
"""

from __future__ import annotations

import copy
from typing import Any

_PRESETS: dict[str, dict[str, Any]] = {
    "halo_kilonova": {
        "_meta": {
            "description": "Mildly relativistic kilonova shell expanding into a galactic hot halo",
            "scenario": "halo_kilonova",
        },
        "hydro": {
            "relativistic": {
                "gamma_law_index": 1.333,
                "plm_theta": 1.5,
                "cfl_number": 4.0,
                "runge_kutta_order": "RK2",
                "riemann_solver": "HLLC",
                "adaptive_time_step": False,
            },
        },
        "model": {
            "halo_kilonova": {
                "altitude": 2e20,
                "launch_radius": 1e18,
                "shell_thickness": 1e18,
                "kinetic_energy": 1e51,
                "shell_mass": 2e32,
                "radial_distance": 1e22,
                "initial_data_table": "output.dat",
            },
        },
        "mesh": {
            "inner_radius": 1e18,
            "outer_radius": 1e20,
            "inner_excision_speed": 0.0,
            "outer_excision_speed": 0.0,
            "reference_radius": 1e18,
            "num_polar_zones": 512,
            "block_size": 4,
        },
        "control": {
            "final_time": 1e10,
            "start_time": 0.0,
            "checkpoint_interval": 1e8,
            "output_directory": "data",
            "num_threads": None,
            "fold": 10,
        },
    },
    "jet_in_star": {
        "_meta": {
            "description": "Relativistic jet drilling through a stellar envelope",
            "scenario": "jet_in_star",
        },
        "hydro": {
            "relativistic": {
                "gamma_law_index": 1.33,
                "plm_theta": 1.5,
                "cfl_number": 0.3,
                "runge_kutta_order": "RK2",
                "riemann_solver": "HLLC",
            },
        },
        "model": {
            "jet_in_star": {
                "star_mass": 1e34,
                "engine_duration": 10.0,
                "engine_energy": 1e51,
                "engine_theta": 0.1,
                "engine_u": 50.0,
                "envelope_radius": 1e11,
                "eta_0": 1.0,
            },
        },
        "mesh": {
            "inner_radius": 1e9,
            "outer_radius": 1e12,
            "excision_delay": 10.0,
            "inner_excision_speed": 1e9,
            "outer_excision_speed": 3e10,
            "reference_radius": 1e9,
            "num_polar_zones": 64,
            "block_size": 4,
        },
        "control": {
            "final_time": 3.0,
            "start_time": 0.0,
            "checkpoint_interval": 0.1,
            "fold": 100,
            "num_threads": None,
            "output_directory": "data",
        },
    },
}


def list_presets() -> list[dict[str, str]]:
    """Return summary info for all available presets.

    Returns:
        List of dicts with keys: name, description, scenario, final_time.
    """
    result = []
    for name, preset in _PRESETS.items():
        meta = preset.get("_meta", {})
        result.append({
            "name": name,
            "description": meta.get("description", ""),
            "scenario": meta.get("scenario", ""),
            "final_time": preset["control"]["final_time"],
        })
    return result


def get_preset(name: str) -> dict[str, Any]:
    """Return a preset config dict (without _meta) suitable for SimulationConfig.

    Args:
        name: Preset name.

    Returns:
        A fresh config dict for ``SimulationConfig.from_dict``.

    Raises:
        KeyError: If the preset name is not found.
    """
    if name not in _PRESETS:
        available = ", ".join(_PRESETS.keys())
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    preset = copy.deepcopy(_PRESETS[name])
    preset.pop("_meta", None)
    return preset


def get_preset_names() -> list[str]:
    """Return list of all preset names."""
    return list(_PRESETS.keys())
