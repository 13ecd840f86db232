"""Relativistic jet drilling through a massive star and its envelope.

The progenitor is the stellar model of Duffell & MacFadyen (2015),
https://arxiv.org/abs/1407.8250:

    rho_core(r) = rho_c (1 - r/R3)^N / (1 + (r/R1)^k1 / (1 + (r/R2)^k2)),

with R1 = 0.0017 R0, R2 = 0.0125 R0, R3 = 0.65 R0, k1 = 3.24, k2 = 2.57 and
N = 16.7. R0 is set so that the envelope ends at 1.2 R0 = envelope_radius.
The central density rho_c is fixed by requiring the core (r < R3) to hold
``star_mass``. An r^-2 envelope fills R3 < r < envelope_radius, followed by
a tenuous r^-2 wind. All static gas has p = 1e-3 rho c^2.

While the engine is on, rays inside the nozzle receive a cold inflow with
four-velocity ``engine_u`` and isotropic-equivalent power
``engine_energy / engine_duration``, weighted in angle by
exp((cos^2 theta - 1) / theta_0^2). Once the engine shuts off the inner
boundary copies the first zone, with density and pressure scaled by
``eta_0`` and inflow removed.

A passive scalar tags where material came from: 1 in the core, 1e2 for jet
material, 1e-2 (r/R3)^-2 in the envelope and 1e-5 (r/R_env)^-2 in the wind.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import integrate

from kilonova.config import JetInStarConfig
from kilonova.constants import LIGHT_SPEED
from kilonova.fluid.eos import NUM_FIELDS, FluidState
from kilonova.geometry.mesh import Mesh

logger = logging.getLogger(__name__)

UNIFORM_TEMPERATURE = 1e-3      # p / (rho c^2) of the static gas

# Shape of the stellar profile, in units of R0
CORE_R1 = 0.0017
CORE_R2 = 0.0125
CORE_R3 = 0.65
CORE_K1 = 3.24
CORE_K2 = 2.57
CORE_N = 16.7
ENVELOPE_TO_R0 = 1.2

# Envelope and wind densities relative to the central density
ENVELOPE_DENSITY_RATIO = 1e-7 / 3e7
WIND_DENSITY_RATIO = 1e-9 / 3e7

# Passive scalar tags
CORE_SCALAR = 1.0
JET_SCALAR = 1e2
ENVELOPE_SCALAR = 1e-2
WIND_SCALAR = 1e-5


class JetInStar:
    """Initial and boundary data for the ``jet_in_star`` scenario."""

    def __init__(self, config: JetInStarConfig) -> None:
        self.config = config
        self.r0 = config.envelope_radius / ENVELOPE_TO_R0
        self.r1 = CORE_R1 * self.r0
        self.r2 = CORE_R2 * self.r0
        self.r3 = CORE_R3 * self.r0
        self.engine_lorentz_factor = math.sqrt(1.0 + config.engine_u ** 2)
        self.engine_beta = config.engine_u / self.engine_lorentz_factor

        shape_mass, _ = integrate.quad(
            lambda r: 4.0 * math.pi * r * r * self._core_shape(r),
            0.0, self.r3,
            points=[self.r1, self.r2],
            limit=200,
        )
        self.central_density = config.star_mass / shape_mass
        self.envelope_density = ENVELOPE_DENSITY_RATIO * self.central_density
        self.wind_density = WIND_DENSITY_RATIO * self.central_density

        logger.info(
            "JetInStar: R0=%.3e cm, rho_c=%.3e g/cm^3, engine W=%.2f, "
            "L_iso=%.3e erg/s for %.2f s",
            self.r0, self.central_density, self.engine_lorentz_factor,
            self.engine_power, config.engine_duration,
        )

    @property
    def engine_power(self) -> float:
        """Isotropic-equivalent engine luminosity [erg/s]."""
        return self.config.engine_energy / self.config.engine_duration

    def _core_shape(self, r):
        x = np.clip(1.0 - r / self.r3, 0.0, None)
        return x ** CORE_N / (1.0 + (r / self.r1) ** CORE_K1 / (1.0 + (r / self.r2) ** CORE_K2))

    def in_nozzle(self) -> bool:
        q = self.config.polar_angle
        return q < self.config.engine_theta or q > math.pi - self.config.engine_theta

    def nozzle_weight(self) -> float:
        q = self.config.polar_angle
        return math.exp((math.cos(q) ** 2 - 1.0) / self.config.engine_theta ** 2)

    def jet_head(self, time: float) -> float:
        return self.engine_beta * LIGHT_SPEED * time

    def engine_is_on(self, time: float) -> bool:
        return time < self.config.engine_duration

    def engine_density(self, r: np.ndarray | float) -> np.ndarray | float:
        """Comoving density of the engine inflow at radius ``r``.

        The isotropic power L = 4 pi r^2 rho W u c^3 carried as kinetic
        energy of cold gas, scaled by the nozzle weight.
        """
        return self.nozzle_weight() * self.engine_power / (
            4.0 * math.pi * np.square(r) * self.config.engine_u * self.engine_lorentz_factor * LIGHT_SPEED ** 3
        )

    def stellar_density(self, r: np.ndarray) -> np.ndarray:
        r = np.asarray(r, dtype=float)
        envelope = self.envelope_density * (r / self.r3) ** -2.0
        core = self.central_density * self._core_shape(r) + envelope
        wind = self.wind_density * (r / self.config.envelope_radius) ** -2.0
        return np.where(r < self.r3, core, np.where(r < self.config.envelope_radius, envelope, wind))

    def stellar_scalar(self, r: np.ndarray) -> np.ndarray:
        r = np.asarray(r, dtype=float)
        envelope = ENVELOPE_SCALAR * (r / self.r3) ** -2.0
        wind = WIND_SCALAR * (r / self.config.envelope_radius) ** -2.0
        return np.where(r < self.r3, CORE_SCALAR, np.where(r < self.config.envelope_radius, envelope, wind))

    def _in_jet(self, r: np.ndarray, time: float) -> np.ndarray:
        if not self.in_nozzle():
            return np.zeros(r.shape, dtype=bool)
        return r < self.jet_head(time)

    def primitive_at(self, r: np.ndarray, time: float) -> np.ndarray:
        r = np.atleast_1d(np.asarray(r, dtype=float))
        in_jet = self._in_jet(r, time)
        rho = np.where(in_jet, self.engine_density(r), self.stellar_density(r))
        prim = np.empty((r.size, NUM_FIELDS))
        prim[:, 0] = rho
        prim[:, 1] = np.where(in_jet, self.config.engine_u, 0.0)
        prim[:, 2] = rho * UNIFORM_TEMPERATURE
        prim[:, 3] = self.scalar_at(r, time)
        return prim

    def scalar_at(self, r: np.ndarray, time: float) -> np.ndarray:
        """Passive scalar tag of the material at radii ``r``."""
        r = np.atleast_1d(np.asarray(r, dtype=float))
        return np.where(self._in_jet(r, time), JET_SCALAR, self.stellar_scalar(r))

    def initialize(self, mesh: Mesh) -> np.ndarray:
        return self.primitive_at(mesh.zone_centers(), 0.0)

    def inner_boundary_condition(
        self, time: float, interior: np.ndarray, inner_radius: float,
    ) -> FluidState:
        if self.engine_is_on(time) and self.in_nozzle():
            rho = float(self.engine_density(inner_radius))
            return FluidState(rho, self.config.engine_u, rho * UNIFORM_TEMPERATURE, JET_SCALAR)
        rho, u, p, s = interior[0]
        eta = self.config.eta_0
        return FluidState(eta * rho, min(u, 0.0), eta * p, s)
