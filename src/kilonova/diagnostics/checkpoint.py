"""Checkpoint/restart support for kilonova runs.

A checkpoint holds everything needed to resume a run deterministically: the
primitive state, the boundary radii, the clock, the fixed time step, the
checkpoint cadence and the per-zone floor streaks, plus the run configuration
as JSON.

Usage:
    # Save checkpoint
    save_checkpoint("data/chkpt.0003.h5", checkpoint)

    # Load checkpoint
    checkpoint = load_checkpoint("data/chkpt.0003.h5")
    config = SimulationConfig.from_json(checkpoint.config_json)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import h5py
import numpy as np

from kilonova.errors import CheckpointIOError

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 2


def checkpoint_filename(output_directory: str | Path, count: int) -> Path:
    return Path(output_directory) / f"chkpt.{count:04d}.h5"


@dataclass(frozen=True)
class Checkpoint:
    """Snapshot of a run.

    Attributes:
        primitive: ``(num_zones, 4)`` primitive state (rho, u, p, s).
        inner_radius: Inner boundary [cm].
        outer_radius: Outer boundary [cm].
        num_zones: Zone count.
        block_size: Zones per block.
        time: Simulation time [s].
        iteration: Steps taken since the start of the run.
        dt_fixed: Fixed time step [s], or None in adaptive mode.
        checkpoint_count: Checkpoints already written, including this one.
        floor_streak: Consecutive floored steps per zone.
        config_json: The run configuration.
    """

    primitive: np.ndarray
    inner_radius: float
    outer_radius: float
    num_zones: int
    block_size: int
    time: float
    iteration: int
    dt_fixed: float | None
    checkpoint_count: int
    floor_streak: np.ndarray
    config_json: str


def save_checkpoint(filename: str | Path, checkpoint: Checkpoint) -> Path:
    """Write ``checkpoint`` to an HDF5 file.

    Raises:
        CheckpointIOError: If the file cannot be written.
    """
    filename = Path(filename)
    logger.info(
        "Saving checkpoint to %s at t=%.4e s, iteration=%d",
        filename, checkpoint.time, checkpoint.iteration,
    )
    try:
        filename.parent.mkdir(parents=True, exist_ok=True)
        with h5py.File(filename, "w") as f:
            f.attrs["checkpoint_version"] = CHECKPOINT_VERSION
            f.attrs["time"] = checkpoint.time
            f.attrs["iteration"] = checkpoint.iteration
            f.attrs["checkpoint_count"] = checkpoint.checkpoint_count
            f.attrs["config_json"] = checkpoint.config_json
            if checkpoint.dt_fixed is not None:
                f.attrs["dt_fixed"] = checkpoint.dt_fixed

            grp_mesh = f.create_group("mesh")
            grp_mesh.attrs["inner_radius"] = checkpoint.inner_radius
            grp_mesh.attrs["outer_radius"] = checkpoint.outer_radius
            grp_mesh.attrs["num_zones"] = checkpoint.num_zones
            grp_mesh.attrs["block_size"] = checkpoint.block_size

            grp_state = f.create_group("state")
            grp_state.create_dataset("primitive", data=checkpoint.primitive)
            grp_state.create_dataset("floor_streak", data=checkpoint.floor_streak)
    except OSError as exc:
        raise CheckpointIOError(f"cannot write checkpoint '{filename}': {exc}") from exc

    logger.info("Checkpoint saved: %s", filename)
    return filename


def load_checkpoint(filename: str | Path) -> Checkpoint:
    """Read a checkpoint written by ``save_checkpoint``.

    Raises:
        CheckpointIOError: If the file is missing, unreadable or incomplete.
    """
    logger.info("Loading checkpoint from %s", filename)
    try:
        with h5py.File(filename, "r") as f:
            version = int(f.attrs["checkpoint_version"])
            if version != CHECKPOINT_VERSION:
                raise CheckpointIOError(
                    f"checkpoint '{filename}' has version {version}, expected {CHECKPOINT_VERSION}"
                )
            checkpoint = Checkpoint(
                primitive=np.array(f["state/primitive"]),
                inner_radius=float(f["mesh"].attrs["inner_radius"]),
                outer_radius=float(f["mesh"].attrs["outer_radius"]),
                num_zones=int(f["mesh"].attrs["num_zones"]),
                block_size=int(f["mesh"].attrs["block_size"]),
                time=float(f.attrs["time"]),
                iteration=int(f.attrs["iteration"]),
                dt_fixed=float(f.attrs["dt_fixed"]) if "dt_fixed" in f.attrs else None,
                checkpoint_count=int(f.attrs["checkpoint_count"]),
                floor_streak=np.array(f["state/floor_streak"]),
                config_json=str(f.attrs["config_json"]),
            )
    except (OSError, KeyError) as exc:
        raise CheckpointIOError(f"cannot read checkpoint '{filename}': {exc}") from exc

    logger.info(
        "Checkpoint loaded: t=%.4e s, iteration=%d, %d zones",
        checkpoint.time, checkpoint.iteration, checkpoint.num_zones,
    )
    return checkpoint
