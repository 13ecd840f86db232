"""Kilonova ejecta shell expanding into the hot gaseous halo of a galaxy.

The ambient medium is the Milky Way hot halo in the beta-model fit of
Miller & Bregman (2013),

    n(R) = n0 rc^(3 beta) / R^(3 beta),   n0 rc^(3 beta) = 1.35e-2 cm^-3 kpc^1.5,

with beta = 1/2, evaluated at the galactocentric distance of the merger,
R = sqrt(radial_distance^2 + altitude^2). Over the simulated radii (parsecs)
the halo is uniform. The gas is at the virial temperature of the halo.

The ejecta are a uniform shell on [launch_radius, launch_radius +
shell_thickness] carrying ``shell_mass`` and coasting with the Lorentz
factor set by

    kinetic_energy = (W - 1) M c^2,

in pressure equilibrium with the halo. The passive scalar is 1 in the
ejecta and 0 in the halo gas, so it tracks ejecta mixed into the halo.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path

import numpy as np

from kilonova.config import HaloKilonovaConfig
from kilonova.constants import LIGHT_SPEED, k_B, kpc, m_p
from kilonova.fluid.eos import NUM_FIELDS, FluidState
from kilonova.geometry.mesh import Mesh
from kilonova.models.initial_data import interpolate_table, load_table, write_table

logger = logging.getLogger(__name__)

HALO_DENSITY_NORM = 1.35e-2     # n0 rc^(3 beta) [cm^-3 kpc^(3 beta)]
HALO_BETA = 0.5
HALO_TEMPERATURE = 2.0e6        # [K]
MEAN_MOLECULAR_WEIGHT = 0.6

EJECTA_SCALAR = 1.0
HALO_SCALAR = 0.0


class HaloKilonova:
    """Initial and boundary data for the ``halo_kilonova`` scenario.

    Args:
        config: Scenario parameters.
        output_directory: Directory that relative ``initial_data_table``
            paths resolve under.
    """

    def __init__(self, config: HaloKilonovaConfig, output_directory: str | Path = ".") -> None:
        self.config = config
        self.output_directory = Path(output_directory)

        distance_kpc = math.hypot(config.radial_distance, config.altitude) / kpc
        number_density = HALO_DENSITY_NORM * distance_kpc ** (-3.0 * HALO_BETA)
        self.ambient_density = MEAN_MOLECULAR_WEIGHT * m_p * number_density
        self.ambient_pressure = self.ambient_density * k_B * HALO_TEMPERATURE / (
            MEAN_MOLECULAR_WEIGHT * m_p * LIGHT_SPEED ** 2
        )

        self.shell_lorentz_factor = 1.0 + config.kinetic_energy / (config.shell_mass * LIGHT_SPEED ** 2)
        self.shell_u = math.sqrt(self.shell_lorentz_factor ** 2 - 1.0)
        self.shell_beta = self.shell_u / self.shell_lorentz_factor

        logger.info(
            "HaloKilonova: n_halo=%.3e cm^-3, rho_halo=%.3e g/cm^3, shell W=%.5f (u=%.4f)",
            number_density, self.ambient_density, self.shell_lorentz_factor, self.shell_u,
        )

    @property
    def table_path(self) -> Path | None:
        if self.config.initial_data_table is None:
            return None
        path = Path(self.config.initial_data_table)
        return path if path.is_absolute() else self.output_directory / path

    def shell_edges(self, time: float) -> tuple[float, float]:
        """Inner and outer shell radii [cm] after coasting for ``time``."""
        r1 = self.config.launch_radius + self.shell_beta * LIGHT_SPEED * time
        return r1, r1 + self.config.shell_thickness

    def primitive_at(self, r: np.ndarray, time: float) -> np.ndarray:
        """Analytic coasting-shell profile ``(n, 4)`` at radii ``r``."""
        r = np.atleast_1d(np.asarray(r, dtype=float))
        r1, r2 = self.shell_edges(time)
        shell_density = self.config.shell_mass / (
            self.shell_lorentz_factor * 4.0 * math.pi / 3.0 * (r2 ** 3 - r1 ** 3)
        )
        in_shell = (r >= r1) & (r <= r2)
        prim = np.empty((r.size, NUM_FIELDS))
        prim[:, 0] = np.where(in_shell, shell_density, self.ambient_density)
        prim[:, 1] = np.where(in_shell, self.shell_u, 0.0)
        prim[:, 2] = self.ambient_pressure
        prim[:, 3] = np.where(in_shell, EJECTA_SCALAR, HALO_SCALAR)
        return prim

    def initialize(self, mesh: Mesh) -> np.ndarray:
        radii = mesh.zone_centers()
        path = self.table_path
        if path is not None and path.exists():
            return interpolate_table(load_table(path), radii)
        prim = self.primitive_at(radii, 0.0)
        if path is not None:
            write_table(path, radii, prim)
        return prim

    def inner_boundary_condition(
        self, time: float, interior: np.ndarray, inner_radius: float,
    ) -> FluidState:
        rho, u, p, s = interior[0]
        return FluidState(rho, min(u, 0.0), p, s)
