"""Post-processing products: radii and primitive fields at one instant.

Products are small compared with checkpoints and carry only what plotting
needs. Files are named ``prods.NNNN.h5`` in the output directory.
"""

from __future__ import annotations

import logging
from pathlib import Path

import h5py
import numpy as np

logger = logging.getLogger(__name__)


def products_filename(output_directory: str | Path, count: int) -> Path:
    return Path(output_directory) / f"prods.{count:04d}.h5"


def write_products(
    filename: str | Path,
    time: float,
    face_radii: np.ndarray,
    prim: np.ndarray,
    gamma_law_index: float,
) -> Path:
    """Write face radii and the density, four-velocity, pressure and scalar fields."""
    filename = Path(filename)
    filename.parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(filename, "w") as f:
        f.attrs["time"] = time
        f.attrs["gamma_law_index"] = gamma_law_index
        f.create_dataset("face_radii", data=face_radii)
        f.create_dataset("mass_density", data=prim[:, 0])
        f.create_dataset("gamma_beta", data=prim[:, 1])
        f.create_dataset("gas_pressure", data=prim[:, 2])
        f.create_dataset("passive_scalar", data=prim[:, 3])
    logger.info("Wrote products %s at t=%.4e s", filename, time)
    return filename
