"""Physics setups: initial data and inner boundary conditions per scenario.

Each scenario is a plain class satisfying the ``InitialModel`` protocol. The
scenario key in the ``model`` section of the run file picks one class, once,
when the engine is built.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np

from kilonova.config import ModelConfig
from kilonova.errors import ConfigValidationError
from kilonova.fluid.eos import FluidState
from kilonova.geometry.mesh import Mesh
from kilonova.models.halo_kilonova import HaloKilonova
from kilonova.models.jet_in_star import JetInStar


@runtime_checkable
class InitialModel(Protocol):
    """Capability interface shared by all scenarios."""

    def initialize(self, mesh: Mesh) -> np.ndarray:
        """Primitive state ``(num_zones, 4)`` at the start of the run."""
        ...

    def inner_boundary_condition(
        self, time: float, interior: np.ndarray, inner_radius: float,
    ) -> FluidState:
        """State of the guard zones beyond the inner boundary at ``time``."""
        ...


def make_model(model_cfg: ModelConfig, output_directory: str | Path = ".") -> InitialModel:
    """Build the scenario named in ``model_cfg``."""
    name = model_cfg.scenario_name
    if name == "halo_kilonova":
        return HaloKilonova(model_cfg.halo_kilonova, output_directory=output_directory)
    if name == "jet_in_star":
        return JetInStar(model_cfg.jet_in_star)
    raise ConfigValidationError(f"unknown scenario '{name}'")


__all__ = ["HaloKilonova", "InitialModel", "JetInStar", "make_model"]
