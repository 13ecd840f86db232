"""Gamma-law equation of state for a special-relativistic ideal fluid.

Primitive variables per zone, stored as rows of an ``(n, 4)`` array:

    0: rho  comoving rest-mass density [g/cm^3]
    1: u    radial four-velocity W * beta (dimensionless)
    2: p    gas pressure in units of rho c^2 [g/cm^3]
    3: s    passive scalar carried with the mass (dimensionless tag)

Conserved variables (per unit volume, c = 1):

    D   = rho W
    S   = rho h W u
    tau = rho h W^2 - p - D
    D s

with W = sqrt(1 + u^2), h = 1 + eps + p / rho and the closure
p = (Gamma - 1) rho eps. The scalar does not enter the dynamics; its flux is
the mass flux times s.

Recovery of primitives from conserved variables uses a Newton iteration on
the pressure, seeded from the previous primitive state.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np
from numba import njit

from kilonova.errors import NonPhysicalStateError

logger = logging.getLogger(__name__)

NEWTON_ITER_MAX = 100
NEWTON_TOLERANCE = 1e-12
# Pressure steps below this fraction of the total energy are roundoff
NEWTON_ENERGY_TOLERANCE = 1e-14

# Recovery status codes returned by the kernels
STATUS_OK = 0
STATUS_BAD_INPUT = 1
STATUS_NO_CONVERGENCE = 2
STATUS_NEGATIVE_RESULT = 3

# rho, u, p, s
NUM_FIELDS = 4


class FluidState(NamedTuple):
    """Primitive state of a single zone."""

    mass_density: float
    gamma_beta: float
    gas_pressure: float
    passive_scalar: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.mass_density, self.gamma_beta, self.gas_pressure, self.passive_scalar])


# ============================================================
# Zone kernels
# ============================================================

@njit(cache=True, nogil=True)
def _prim_to_cons_zone(rho, u, p, gamma):
    w = np.sqrt(1.0 + u * u)
    h = 1.0 + gamma / (gamma - 1.0) * p / rho
    d = rho * w
    s = rho * h * w * u
    tau = rho * h * w * w - p - d
    return d, s, tau


@njit(cache=True, nogil=True)
def _cons_to_prim_zone(d, s, tau, p_guess, gamma):
    """Newton iteration for the pressure; returns (rho, u, p, status)."""
    e = tau + d
    if not (np.isfinite(d) and np.isfinite(s) and np.isfinite(tau)):
        return 0.0, 0.0, 0.0, STATUS_BAD_INPUT
    if d <= 0.0 or e <= 0.0:
        return 0.0, 0.0, 0.0, STATUS_BAD_INPUT

    # Subluminal velocity requires e + p > |s|
    p_low = max(abs(s) - e, 0.0)
    p = p_guess
    if not (p > p_low):
        p = p_low + max(1e-10 * e, 1e-300)

    converged = False
    for _ in range(NEWTON_ITER_MAX):
        et = e + p
        b2 = min(s * s / (et * et), 1.0 - 1e-14)
        w2 = 1.0 / (1.0 - b2)
        w = np.sqrt(w2)
        rho = d / w
        eps = (tau + d * (1.0 - w) + p * (1.0 - w2)) / (d * w)
        h = 1.0 + eps + p / rho
        cs2 = gamma * p / (rho * h)
        f = rho * eps * (gamma - 1.0) - p
        g = b2 * cs2 - 1.0
        p_new = p - f / g
        if p_new <= p_low:
            p_new = 0.5 * (p + p_low)
        if abs(p_new - p) <= NEWTON_TOLERANCE * p_new + NEWTON_ENERGY_TOLERANCE * e:
            p = p_new
            converged = True
            break
        p = p_new

    if not converged:
        return 0.0, 0.0, 0.0, STATUS_NO_CONVERGENCE

    et = e + p
    v = s / et
    w = 1.0 / np.sqrt(1.0 - min(v * v, 1.0 - 1e-14))
    rho = d / w
    u = w * v
    if not (rho > 0.0 and p > 0.0 and np.isfinite(u)):
        return 0.0, 0.0, 0.0, STATUS_NEGATIVE_RESULT
    return rho, u, p, STATUS_OK


@njit(cache=True, nogil=True)
def _flux_zone(rho, u, p, gamma):
    d, s, tau = _prim_to_cons_zone(rho, u, p, gamma)
    v = u / np.sqrt(1.0 + u * u)
    return d * v, s * v + p, (tau + p) * v


@njit(cache=True, nogil=True)
def _sound_speed_squared_zone(rho, p, gamma):
    h = 1.0 + gamma / (gamma - 1.0) * p / rho
    return gamma * p / (rho * h)


@njit(cache=True, nogil=True)
def _wavespeeds_zone(rho, u, p, gamma):
    """Outer characteristic speeds (lambda_minus, lambda_plus) along r."""
    a2 = _sound_speed_squared_zone(rho, p, gamma)
    w2 = 1.0 + u * u
    v = u / np.sqrt(w2)
    v2 = v * v
    k = np.sqrt(a2 * (1.0 - v2) * (1.0 - v2 * a2))
    den = 1.0 - v2 * a2
    lm = (v * (1.0 - a2) - k) / den
    lp = (v * (1.0 - a2) + k) / den
    return lm, lp


# ============================================================
# Array kernels
# ============================================================

@njit(cache=True, nogil=True)
def prim_to_cons_array(prim, gamma):
    n = prim.shape[0]
    cons = np.empty((n, 4))
    for i in range(n):
        d, s, tau = _prim_to_cons_zone(prim[i, 0], prim[i, 1], prim[i, 2], gamma)
        cons[i, 0] = d
        cons[i, 1] = s
        cons[i, 2] = tau
        cons[i, 3] = d * prim[i, 3]
    return cons


@njit(cache=True, nogil=True)
def cons_to_prim_array(cons, guess, gamma):
    """Recover primitives; returns (prim, status) with status 0 where valid.

    Zones that fail keep their guess so callers can floor them.
    """
    n = cons.shape[0]
    prim = np.empty((n, 4))
    status = np.zeros(n, dtype=np.int64)
    for i in range(n):
        rho, u, p, st = _cons_to_prim_zone(cons[i, 0], cons[i, 1], cons[i, 2], guess[i, 2], gamma)
        status[i] = st
        if st == STATUS_OK:
            prim[i, 0] = rho
            prim[i, 1] = u
            prim[i, 2] = p
            prim[i, 3] = cons[i, 3] / cons[i, 0]
        else:
            for q in range(4):
                prim[i, q] = guess[i, q]
    return prim, status


@njit(cache=True, nogil=True)
def flux_array(prim, gamma):
    n = prim.shape[0]
    out = np.empty((n, 4))
    for i in range(n):
        fd, fs, ft = _flux_zone(prim[i, 0], prim[i, 1], prim[i, 2], gamma)
        out[i, 0] = fd
        out[i, 1] = fs
        out[i, 2] = ft
        out[i, 3] = fd * prim[i, 3]
    return out


@njit(cache=True, nogil=True)
def max_wavespeed_array(prim, gamma):
    a = 0.0
    for i in range(prim.shape[0]):
        lm, lp = _wavespeeds_zone(prim[i, 0], prim[i, 1], prim[i, 2], gamma)
        a = max(a, abs(lm), abs(lp))
    return a


# ============================================================
# Public EOS object
# ============================================================

class GammaLawEOS:
    """Relativistic ideal-gas closure p = (Gamma - 1) rho eps.

    All methods accept either a single ``FluidState`` / length-4 array or an
    ``(n, 4)`` array of zones, and return the same shape.
    """

    def __init__(self, gamma_law_index: float) -> None:
        if gamma_law_index <= 1.0:
            raise ValueError(f"gamma_law_index must exceed 1, got {gamma_law_index}")
        self.gamma = float(gamma_law_index)

    def conserved_from_primitive(self, primitive) -> np.ndarray:
        prim, single = _as_zones(primitive)
        cons = prim_to_cons_array(prim, self.gamma)
        return cons[0] if single else cons

    def primitive_from_conserved(self, conserved, guess=None) -> np.ndarray:
        """Recover primitive variables.

        Args:
            conserved: Conserved zone(s) (D, S, tau, D s).
            guess: Primitive zone(s) used to seed the pressure iteration and
                returned unchanged for failing zones. Defaults to a cold
                static guess.

        Raises:
            NonPhysicalStateError: If any zone cannot be recovered. The
                exception lists the failing zone indices.
        """
        prim, status = self.try_primitive_from_conserved(conserved, guess)
        bad = np.flatnonzero(np.atleast_1d(status))
        if bad.size:
            raise NonPhysicalStateError(
                f"primitive recovery failed in {bad.size} zone(s)", zones=bad,
            )
        return prim

    def try_primitive_from_conserved(self, conserved, guess=None) -> tuple[np.ndarray, np.ndarray]:
        """Recover primitives without raising; status is nonzero where failed."""
        cons, single = _as_zones(conserved)
        if guess is None:
            g = np.empty_like(cons)
            g[:, 0] = np.maximum(cons[:, 0], 0.0)
            g[:, 1] = 0.0
            g[:, 2] = np.maximum((self.gamma - 1.0) * cons[:, 2], 1e-300)
            g[:, 3] = 0.0
        else:
            g, _ = _as_zones(guess)
        prim, status = cons_to_prim_array(cons, g, self.gamma)
        if single:
            return prim[0], status[:1]
        return prim, status

    def pressure_from_conserved(self, conserved, guess=None) -> np.ndarray:
        prim = self.primitive_from_conserved(conserved, guess)
        return prim[..., 2]

    def lorentz_factor(self, primitive) -> np.ndarray:
        prim = np.asarray(primitive, dtype=float)
        return np.sqrt(1.0 + prim[..., 1] ** 2)

    def enthalpy(self, primitive) -> np.ndarray:
        """Specific enthalpy h = 1 + Gamma/(Gamma-1) p / rho."""
        prim = np.asarray(primitive, dtype=float)
        return 1.0 + self.gamma / (self.gamma - 1.0) * prim[..., 2] / prim[..., 0]

    def sound_speed_squared(self, primitive) -> np.ndarray:
        prim = np.asarray(primitive, dtype=float)
        return self.gamma * prim[..., 2] / (prim[..., 0] * self.enthalpy(prim))

    def fluxes(self, primitive) -> np.ndarray:
        prim, single = _as_zones(primitive)
        out = flux_array(prim, self.gamma)
        return out[0] if single else out

    def wavespeeds(self, primitive) -> tuple[np.ndarray, np.ndarray]:
        prim, single = _as_zones(primitive)
        lm = np.empty(prim.shape[0])
        lp = np.empty(prim.shape[0])
        for i in range(prim.shape[0]):
            lm[i], lp[i] = _wavespeeds_zone(prim[i, 0], prim[i, 1], prim[i, 2], self.gamma)
        if single:
            return lm[0], lp[0]
        return lm, lp

    def max_wavespeed(self, primitive) -> float:
        prim, _ = _as_zones(primitive)
        return float(max_wavespeed_array(prim, self.gamma))


def _as_zones(values) -> tuple[np.ndarray, bool]:
    arr = np.ascontiguousarray(values, dtype=np.float64)
    if arr.ndim == 1:
        if arr.shape[0] != NUM_FIELDS:
            raise ValueError(f"expected {NUM_FIELDS} components per zone, got shape {arr.shape}")
        return arr.reshape(1, NUM_FIELDS), True
    if arr.ndim != 2 or arr.shape[1] != NUM_FIELDS:
        raise ValueError(f"expected an (n, {NUM_FIELDS}) zone array, got shape {arr.shape}")
    return arr, False
