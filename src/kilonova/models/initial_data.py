"""Tabulated radial initial data.

Tables are whitespace-separated text with one row per radius and the columns

    r [cm]   rho [g/cm^3]   u (gamma-beta)   p [rho c^2 units]   s

The passive scalar column is optional; tables without it start with s = 0.
Interpolation is linear in log(r) for u and s, and in log(r)-log(value) for
the strictly positive density and pressure.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from kilonova.fluid.eos import NUM_FIELDS

logger = logging.getLogger(__name__)

TABLE_HEADER = "r[cm] rho[g/cm^3] u[gamma-beta] p[rho c^2] s"


def load_table(path: str | Path) -> np.ndarray:
    """Read an ``(n, 5)`` table sorted by radius."""
    table = np.loadtxt(path, ndmin=2)
    if table.shape[1] == NUM_FIELDS:
        table = np.column_stack([table, np.zeros(table.shape[0])])
    if table.shape[1] != NUM_FIELDS + 1:
        raise ValueError(
            f"initial data table '{path}' must have 4 or 5 columns, got {table.shape[1]}"
        )
    if np.any(table[:, 0] <= 0.0) or np.any(table[:, 1] <= 0.0) or np.any(table[:, 3] <= 0.0):
        raise ValueError(f"initial data table '{path}' has non-positive r, rho or p")
    order = np.argsort(table[:, 0])
    logger.info("Loaded initial data table %s (%d rows)", path, table.shape[0])
    return table[order]


def write_table(path: str | Path, radii: np.ndarray, prim: np.ndarray) -> Path:
    """Write zone centres and primitives as a 5-column table."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(path, np.column_stack([radii, prim]), header=TABLE_HEADER)
    logger.info("Wrote initial data table %s (%d rows)", path, len(radii))
    return path


def interpolate_table(table: np.ndarray, radii: np.ndarray) -> np.ndarray:
    """Primitives ``(n, 4)`` at ``radii``; values beyond the table are held constant."""
    logr = np.log(table[:, 0])
    x = np.log(np.asarray(radii, dtype=float))
    prim = np.empty((x.size, NUM_FIELDS))
    prim[:, 0] = np.exp(np.interp(x, logr, np.log(table[:, 1])))
    prim[:, 1] = np.interp(x, logr, table[:, 2])
    prim[:, 2] = np.exp(np.interp(x, logr, np.log(table[:, 3])))
    prim[:, 3] = np.interp(x, logr, table[:, 4])
    return prim
