"""Derived diagnostic quantities.

Integrals over the domain from the primitive state and zone volumes. The
mesh stores volumes per steradian, so totals are multiplied by 4 pi to give
the isotropic-equivalent values.

Functions are pure numpy; they run once per output, not per step.
"""

from __future__ import annotations

import numpy as np

from kilonova.constants import LIGHT_SPEED
from kilonova.fluid.eos import GammaLawEOS


def total_mass(prim: np.ndarray, volumes: np.ndarray, eos: GammaLawEOS) -> float:
    """Isotropic-equivalent rest mass 4 pi sum(D dV) [g]."""
    cons = eos.conserved_from_primitive(prim)
    return float(4.0 * np.pi * np.sum(cons[:, 0] * volumes))


def total_energy(prim: np.ndarray, volumes: np.ndarray, eos: GammaLawEOS) -> float:
    """Isotropic-equivalent energy excluding rest mass, 4 pi sum(tau dV) c^2 [erg]."""
    cons = eos.conserved_from_primitive(prim)
    return float(4.0 * np.pi * np.sum(cons[:, 2] * volumes) * LIGHT_SPEED ** 2)


def max_lorentz_factor(prim: np.ndarray) -> float:
    return float(np.sqrt(1.0 + np.max(prim[:, 1] ** 2)))
