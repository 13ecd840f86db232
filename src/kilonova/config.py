"""Pydantic v2 configuration system for kilonova runs.

Provides validated, typed configuration with one submodel per section of the
run file (``hydro``, ``model``, ``mesh``, ``control``). Every model forbids
extra keys so a misspelt option fails at startup instead of being ignored.
Supports YAML and JSON I/O.
"""

from __future__ import annotations

import io
import json
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kilonova.errors import ConfigValidationError


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.default_flow_style = False
    return yaml


class RungeKuttaOrder(str, Enum):
    """Explicit Runge-Kutta schemes supported by the integrator."""

    RK1 = "RK1"
    RK2 = "RK2"


class RiemannSolverKind(str, Enum):
    """Approximate Riemann solvers supported at zone faces."""

    HLLC = "HLLC"
    HLL = "HLL"


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RelativisticHydroConfig(_Strict):
    """Special-relativistic gamma-law hydrodynamics parameters."""

    gamma_law_index: float = Field(..., gt=1, description="Adiabatic index Gamma")
    plm_theta: float = Field(1.5, ge=1, le=2, description="PLM limiter parameter (1=minmod, 2=MC)")
    cfl_number: float = Field(..., gt=0, description="Courant number (or fixed-step multiplier)")
    runge_kutta_order: RungeKuttaOrder = Field(RungeKuttaOrder.RK2, description="RK1 or RK2")
    riemann_solver: RiemannSolverKind = Field(RiemannSolverKind.HLLC, description="HLLC or HLL")
    adaptive_time_step: bool = Field(
        False,
        description="Recompute dt from wave speeds every step (False = fixed dt computed once)",
    )
    density_floor: float = Field(1e-40, gt=0, description="Density floor [g/cm^3]")
    temperature_floor: float = Field(
        1e-10, gt=0,
        description="Pressure floor as a fraction of rho c^2",
    )
    max_floor_steps: int = Field(
        50, ge=1,
        description="Consecutive floored steps in one zone before the run is declared diverged",
    )


class HydroConfig(_Strict):
    """Hydrodynamics system selection (only the relativistic system exists)."""

    relativistic: RelativisticHydroConfig


class HaloKilonovaConfig(_Strict):
    """Mildly relativistic kilonova shell expanding into a galactic hot halo."""

    altitude: float = Field(..., ge=0, description="Height above the galactic plane [cm]")
    launch_radius: float = Field(..., gt=0, description="Inner radius of the ejecta shell [cm]")
    shell_thickness: float = Field(..., gt=0, description="Radial thickness of the shell [cm]")
    kinetic_energy: float = Field(..., gt=0, description="Shell kinetic energy [erg]")
    shell_mass: float = Field(..., gt=0, description="Shell mass [g]")
    radial_distance: float = Field(..., gt=0, description="Galactocentric distance in the plane [cm]")
    initial_data_table: str | None = Field(
        None,
        description="Tabulated radial profile; loaded if present, otherwise written",
    )


class JetInStarConfig(_Strict):
    """Relativistic jet drilling through a stellar envelope."""

    star_mass: float = Field(..., gt=0, description="Mass of the stellar core [g]")
    engine_duration: float = Field(..., gt=0, description="Engine on-time [s]")
    engine_energy: float = Field(..., gt=0, description="Isotropic-equivalent engine energy [erg]")
    engine_theta: float = Field(..., gt=0, lt=3.141592653589793 / 2, description="Nozzle half-opening angle [rad]")
    engine_u: float = Field(..., gt=0, description="Jet four-velocity gamma*beta")
    envelope_radius: float = Field(..., gt=0, description="Outer radius of the envelope [cm]")
    eta_0: float = Field(1.0, gt=0, description="Scale of the passive inner boundary after shutoff")
    polar_angle: float = Field(
        0.0, ge=0, le=3.141592653589793,
        description="Polar angle of the simulated ray [rad] (0 = jet axis)",
    )


class ModelConfig(_Strict):
    """Scenario selection: exactly one entry must be given."""

    halo_kilonova: HaloKilonovaConfig | None = None
    jet_in_star: JetInStarConfig | None = None

    @model_validator(mode="after")
    def check_single_scenario(self) -> ModelConfig:
        chosen = [name for name in ("halo_kilonova", "jet_in_star") if getattr(self, name) is not None]
        if len(chosen) != 1:
            raise ValueError(f"model must name exactly one scenario, got {chosen or 'none'}")
        return self

    @property
    def scenario_name(self) -> str:
        return "halo_kilonova" if self.halo_kilonova is not None else "jet_in_star"

    @property
    def scenario(self) -> HaloKilonovaConfig | JetInStarConfig:
        return getattr(self, self.scenario_name)


class MeshConfig(_Strict):
    """Log-radial block mesh and boundary motion."""

    inner_radius: float = Field(..., gt=0, description="Initial inner boundary [cm]")
    outer_radius: float = Field(..., gt=0, description="Initial outer boundary [cm]")
    inner_excision_speed: float = Field(0.0, description="Inner boundary speed [cm/s]")
    outer_excision_speed: float = Field(0.0, description="Outer boundary speed [cm/s]")
    excision_delay: float = Field(0.0, ge=0, description="Time after start before boundaries move [s]")
    reference_radius: float = Field(..., gt=0, description="Radius of the nominal zone width [cm]")
    num_polar_zones: int = Field(..., ge=1, description="Polar resolution; sets dlogr = pi / n")
    block_size: int = Field(..., ge=1, description="Zones per block")

    @model_validator(mode="after")
    def check_radii(self) -> MeshConfig:
        if self.inner_radius >= self.outer_radius:
            raise ValueError("inner_radius must be less than outer_radius")
        return self


class ControlConfig(_Strict):
    """Run control: time span, output cadence, threading."""

    final_time: float = Field(..., description="Simulation end time [s]")
    start_time: float = Field(0.0, description="Simulation start time [s]")
    checkpoint_interval: float = Field(..., gt=0, description="Simulation time between checkpoints [s]")
    output_directory: str = Field("data", description="Directory for checkpoints and products")
    num_threads: int | None = Field(None, ge=1, description="Worker threads (None = all cores)")
    fold: int = Field(1, ge=1, description="Steps per batch between side effects")
    products_interval: float | None = Field(
        None, gt=0,
        description="Simulation time between product files (None = off)",
    )
    diagnostics_filename: str = Field("diagnostics.h5", description="Scalar time-series output")

    @model_validator(mode="after")
    def check_times(self) -> ControlConfig:
        if self.final_time < self.start_time:
            raise ValueError("final_time must not precede start_time")
        return self


class SimulationConfig(_Strict):
    """Top-level run configuration."""

    hydro: HydroConfig
    model: ModelConfig
    mesh: MeshConfig
    control: ControlConfig

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulationConfig:
        """Validate a plain mapping, raising ConfigValidationError on failure."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigValidationError(str(exc)) from exc

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a YAML or JSON file."""
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in (".yaml", ".yml", ".json"):
            raise ConfigValidationError(f"unknown input file type '{path}'")
        try:
            with path.open() as f:
                data = json.load(f) if suffix == ".json" else _yaml().load(f)
        except OSError as exc:
            raise ConfigValidationError(f"cannot read configuration '{path}': {exc}") from exc
        except (json.JSONDecodeError, YAMLError) as exc:
            raise ConfigValidationError(f"cannot parse configuration '{path}': {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigValidationError(f"configuration '{path}' is not a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, text: str) -> SimulationConfig:
        try:
            return cls.model_validate_json(text)
        except ValidationError as exc:
            raise ConfigValidationError(str(exc)) from exc

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2, exclude_none=True)
        if path is not None:
            Path(path).write_text(out)
        return out

    def to_yaml(self, path: str | Path | None = None) -> str:
        """Serialize to YAML string, optionally writing to file."""
        stream = io.StringIO()
        _yaml().dump(self.model_dump(mode="json", exclude_none=True), stream)
        out = stream.getvalue()
        if path is not None:
            Path(path).write_text(out)
        return out
