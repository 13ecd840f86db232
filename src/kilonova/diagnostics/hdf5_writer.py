"""HDF5 time-series diagnostics writer.

Records scalar quantities at each output step into an HDF5 file for
post-processing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import h5py
import numpy as np

from kilonova.core.bases import DiagnosticsBase

logger = logging.getLogger(__name__)

_SCALAR_KEYS = (
    "time",
    "dt",
    "iteration",
    "total_mass",
    "total_energy",
    "inner_radius",
    "outer_radius",
    "max_lorentz_factor",
)


class HDF5Writer(DiagnosticsBase):
    """Write run diagnostics to an HDF5 file.

    Creates one dataset under ``scalars/`` per quantity in ``_SCALAR_KEYS``.
    Records are kept in memory and written on ``finalize``; earlier records
    from the same file are kept when a restarted run appends to it.

    Args:
        filename: Output HDF5 file path.
        append: Keep records already in ``filename`` whose time precedes the
            first new record.
    """

    def __init__(self, filename: str | Path = "diagnostics.h5", append: bool = False) -> None:
        self.filename = Path(filename)
        self._scalars: dict[str, list] = {key: [] for key in _SCALAR_KEYS}
        if append and self.filename.exists():
            self._load_existing()

    def _load_existing(self) -> None:
        with h5py.File(self.filename, "r") as f:
            grp = f.get("scalars")
            if grp is None:
                return
            for key in _SCALAR_KEYS:
                if key in grp:
                    self._scalars[key] = list(np.array(grp[key]))
        logger.info(
            "Continuing %d diagnostic records from %s",
            len(self._scalars["time"]), self.filename,
        )

    def record(self, state: dict[str, Any], time: float) -> None:
        """Record diagnostics from the current run state.

        Args:
            state: Dictionary with the keys of ``_SCALAR_KEYS`` except time.
            time: Current simulation time [s].
        """
        times = self._scalars["time"]
        while times and times[-1] >= time:
            for values in self._scalars.values():
                values.pop()
        self._scalars["time"].append(time)
        for key in _SCALAR_KEYS[1:]:
            self._scalars[key].append(state.get(key, 0.0))

    @property
    def num_records(self) -> int:
        return len(self._scalars["time"])

    def finalize(self) -> None:
        """Write all accumulated data to the HDF5 file."""
        logger.info("Writing diagnostics to %s", self.filename)
        self.filename.parent.mkdir(parents=True, exist_ok=True)
        with h5py.File(self.filename, "w") as f:
            grp = f.create_group("scalars")
            for key, values in self._scalars.items():
                grp.create_dataset(key, data=np.array(values))
            f.attrs["num_records"] = self.num_records

        logger.info("Wrote %d diagnostic records to %s", self.num_records, self.filename)
