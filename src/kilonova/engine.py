"""Simulation engine: orchestrates the kilonova hydrodynamics loop.

Wires together: config -> mesh -> model -> solver -> worker pool ->
diagnostics/checkpoints into a time loop. Each step:

1. Choose dt (fixed, or CFL-limited and clamped onto output times)
2. For each Runge-Kutta stage:
   a. Fill guard zones from the model's inner boundary condition and a
      zero-gradient outer boundary
   b. Compute dQ/dt block by block on the worker pool
   c. Combine stages and recover primitives on the stage's mesh, flooring
      zones whose recovery fails
3. Move the mesh boundaries and advance the clock

Side effects (iteration message, diagnostics record, products, checkpoint)
run after every ``fold`` steps, and earlier when an output falls due.
"""

from __future__ import annotations

import logging
import time as wall_time
from functools import partial
from pathlib import Path
from typing import Any

import numpy as np

from kilonova.config import SimulationConfig
from kilonova.core.bases import StepResult
from kilonova.core.clock import RecurringTask, RunClock
from kilonova.diagnostics.checkpoint import (
    Checkpoint,
    checkpoint_filename,
    load_checkpoint,
    save_checkpoint,
)
from kilonova.diagnostics.derived import max_lorentz_factor, total_energy, total_mass
from kilonova.diagnostics.hdf5_writer import HDF5Writer
from kilonova.diagnostics.products import products_filename, write_products
from kilonova.errors import CheckpointIOError, SimulationDivergedError
from kilonova.fluid.eos import NUM_FIELDS
from kilonova.fluid.srhd_solver import RelativisticHydroSolver
from kilonova.geometry.mesh import Mesh
from kilonova.models import make_model
from kilonova.parallel import make_worker_pool

logger = logging.getLogger(__name__)

# Relative slack when deciding whether a fixed step would pass final_time
_OVERSHOOT_TOLERANCE = 1e-9


class SimulationEngine:
    """1D relativistic hydrodynamics engine with moving radial boundaries.

    The engine owns its clock, mesh, model, solver and worker pool; there is
    no module-level state, so several engines can live in one process.

    Args:
        config: Validated SimulationConfig.
    """

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        hc = config.hydro.relativistic
        cc = config.control
        self.output_directory = Path(cc.output_directory)

        self.solver = RelativisticHydroSolver(hc)
        self.eos = self.solver.eos
        self.mesh = Mesh.from_config(config.mesh, start_time=cc.start_time)
        self.model = make_model(config.model, output_directory=self.output_directory)
        self.clock = RunClock(time=cc.start_time, iteration=0, final_time=cc.final_time)

        self.primitive = np.ascontiguousarray(self.model.initialize(self.mesh), dtype=float)
        if self.primitive.shape != (self.mesh.num_zones, NUM_FIELDS):
            raise ValueError(
                f"model returned initial data of shape {self.primitive.shape}, "
                f"expected ({self.mesh.num_zones}, {NUM_FIELDS})"
            )
        self.floor_streak = np.zeros(self.mesh.num_zones, dtype=np.int64)

        self.dt_fixed: float | None = None
        if not hc.adaptive_time_step:
            self.dt_fixed = self.solver.fixed_dt(self.mesh)

        self.checkpoint_task = RecurringTask(cc.checkpoint_interval, cc.start_time)
        self.products_task = (
            RecurringTask(cc.products_interval, cc.start_time)
            if cc.products_interval is not None else None
        )
        self.message_task = RecurringTask(0.0, cc.start_time)

        self.pool = make_worker_pool(cc.num_threads)
        self.diagnostics = HDF5Writer(self.output_directory / cc.diagnostics_filename)

        self.checkpoints_written: list[str] = []
        self.checkpoint_failures: list[str] = []
        self._last_dt = 0.0
        self._last_wavespeed = 0.0

        logger.info(
            "SimulationEngine initialized: scenario=%s, zones=%d, blocks=%d, "
            "t=[%.4e, %.4e] s, dt=%s",
            config.model.scenario_name, self.mesh.num_zones, self.mesh.num_blocks,
            cc.start_time, cc.final_time,
            "adaptive" if self.dt_fixed is None else f"{self.dt_fixed:.4e} s (fixed)",
        )

    @classmethod
    def from_checkpoint(
        cls,
        filename: str | Path,
        config: SimulationConfig | None = None,
    ) -> SimulationEngine:
        """Build an engine from a checkpoint file.

        Args:
            filename: Checkpoint written by ``save_checkpoint``.
            config: Configuration to use instead of the one stored in the
                checkpoint (e.g. with a different output directory).
        """
        if config is None:
            config = SimulationConfig.from_json(load_checkpoint(filename).config_json)
        engine = cls(config)
        engine.load_from_checkpoint(filename)
        return engine

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def time(self) -> float:
        return self.clock.time

    @property
    def iteration(self) -> int:
        return self.clock.iteration

    @property
    def finished(self) -> bool:
        """True once no further step fits before final_time."""
        if self.dt_fixed is not None:
            overshoot = self.clock.time + self.dt_fixed - self.clock.final_time
            return overshoot > _OVERSHOOT_TOLERANCE * self.dt_fixed
        return self.clock.finished

    def conserved(self) -> np.ndarray:
        return self.eos.conserved_from_primitive(self.primitive)

    # ------------------------------------------------------------------
    # Checkpoint I/O
    # ------------------------------------------------------------------

    def save_checkpoint(self, filename: str | Path | None = None) -> Path:
        """Save the current run state to an HDF5 checkpoint file.

        Args:
            filename: Output path (default: next ``chkpt.NNNN.h5`` in the
                output directory).
        """
        fname = filename or checkpoint_filename(self.output_directory, self.checkpoint_task.count)
        checkpoint = Checkpoint(
            primitive=self.primitive.copy(),
            inner_radius=self.mesh.inner_radius,
            outer_radius=self.mesh.outer_radius,
            num_zones=self.mesh.num_zones,
            block_size=self.mesh.block_size,
            time=self.clock.time,
            iteration=self.clock.iteration,
            dt_fixed=self.dt_fixed,
            checkpoint_count=self.checkpoint_task.count,
            floor_streak=self.floor_streak.copy(),
            config_json=self.config.model_dump_json(),
        )
        return save_checkpoint(fname, checkpoint)

    def load_from_checkpoint(self, filename: str | Path) -> None:
        """Restore the run state from an HDF5 checkpoint file.

        Raises:
            CheckpointIOError: If the checkpoint does not match this mesh.
        """
        checkpoint = load_checkpoint(filename)
        if (checkpoint.num_zones, checkpoint.block_size) != (self.mesh.num_zones, self.mesh.block_size):
            raise CheckpointIOError(
                f"checkpoint '{filename}' has {checkpoint.num_zones} zones in blocks of "
                f"{checkpoint.block_size}; configuration gives {self.mesh.num_zones} "
                f"in blocks of {self.mesh.block_size}"
            )
        self.primitive = np.ascontiguousarray(checkpoint.primitive, dtype=float)
        self.floor_streak = np.asarray(checkpoint.floor_streak, dtype=np.int64).copy()
        self.mesh.inner_radius = checkpoint.inner_radius
        self.mesh.outer_radius = checkpoint.outer_radius
        self.clock.time = checkpoint.time
        self.clock.iteration = checkpoint.iteration
        if self.dt_fixed is not None and checkpoint.dt_fixed is not None:
            self.dt_fixed = checkpoint.dt_fixed

        self.checkpoint_task.count = checkpoint.checkpoint_count
        if self.products_task is not None:
            self.products_task.skip_to(checkpoint.time)
        self.diagnostics = HDF5Writer(self.diagnostics.filename, append=True)

        logger.info(
            "Restored from checkpoint: t=%.4e s, iteration=%d, r=[%.4e, %.4e] cm",
            self.clock.time, self.clock.iteration,
            self.mesh.inner_radius, self.mesh.outer_radius,
        )

    # ------------------------------------------------------------------
    # Single-step interface
    # ------------------------------------------------------------------

    def _next_step(self) -> tuple[float, float | None]:
        """Return (dt, landing time or None) for the next step."""
        if self.dt_fixed is not None:
            return self.dt_fixed, None

        t = self.clock.time
        dt = self.solver.compute_dt(self.primitive, self.mesh)
        landing = None
        targets = [self.clock.final_time, self.checkpoint_task.next_time]
        if self.products_task is not None:
            targets.append(self.products_task.next_time)
        for target in sorted(targets):
            if t < target <= t + dt:
                dt = target - t
                landing = target
                break
        return dt, landing

    def _stage_rhs(
        self, prim: np.ndarray, mesh: Mesh, time: float, motion_time: float,
    ) -> tuple[np.ndarray, float]:
        """dQ/dt for every zone, computed block by block on the pool.

        Face velocities are taken at ``motion_time``, the time the boundary
        advance for this step uses, so every stage sees the same motion.
        """
        inner = self.model.inner_boundary_condition(time, prim, mesh.inner_radius)
        padded = mesh.ghost_exchange(prim, inner, prim[-1])
        snapshot = mesh.snapshot(motion_time)
        results = self.pool.map(partial(self.solver.block_rhs, padded, snapshot), mesh.blocks)
        rhs = np.concatenate([r for r, _ in results])
        return rhs, max(a for _, a in results)

    def _recover(self, cons: np.ndarray, guess: np.ndarray, time: float) -> tuple[np.ndarray, np.ndarray]:
        """Primitive recovery on the pool; failing zones are floored.

        Returns:
            (primitive array, boolean mask of floored zones).
        """
        blocks = self.mesh.blocks
        results = self.pool.map(
            lambda block: self.solver.recover_block(cons[block.zones], guess[block.zones]),
            blocks,
        )
        prim = np.concatenate([p for p, _ in results])
        bad = np.concatenate([s for _, s in results]) != 0
        if bad.any():
            self._apply_floors(prim, cons, guess, bad)
            zones = np.flatnonzero(bad)
            logger.warning(
                "Flooring %d zone(s) at t=%.6e s (first: %s)",
                zones.size, time, zones[:8].tolist(),
            )
        return prim, bad

    def _apply_floors(self, prim: np.ndarray, cons: np.ndarray, guess: np.ndarray, bad: np.ndarray) -> None:
        hc = self.config.hydro.relativistic
        rho = np.maximum(np.nan_to_num(cons[bad, 0], nan=0.0), hc.density_floor)
        prim[bad, 0] = rho
        prim[bad, 1] = guess[bad, 1]
        prim[bad, 2] = rho * hc.temperature_floor
        prim[bad, 3] = guess[bad, 3]

    def _update_floor_streak(self, floored: np.ndarray) -> None:
        self.floor_streak = np.where(floored, self.floor_streak + 1, 0)
        limit = self.config.hydro.relativistic.max_floor_steps
        worst = int(np.argmax(self.floor_streak))
        if self.floor_streak[worst] > limit:
            r = self.mesh.zone_centers()[worst]
            raise SimulationDivergedError(
                f"zone {worst} (r={r:.4e} cm) needed flooring on "
                f"{self.floor_streak[worst]} consecutive steps (limit {limit}) "
                f"at t={self.clock.time:.6e} s"
            )

    def step(self) -> StepResult:
        """Advance the simulation by a single timestep.

        Returns:
            StepResult with the new time and ``finished`` flag.
        """
        if self.finished:
            return self._make_step_result(dt=0.0, finished=True)

        t0 = self.clock.time
        dt, landing = self._next_step()
        t1 = landing if landing is not None else t0 + dt

        mesh0 = self.mesh
        mesh1 = mesh0.preview(t0, dt)
        vol0 = mesh0.volumes()[:, None]
        vol1 = mesh1.volumes()[:, None]

        q0 = self.conserved() * vol0
        q = q0
        prim = self.primitive
        mesh, t = mesh0, t0
        floored = np.zeros(self.mesh.num_zones, dtype=bool)
        wavespeed = 0.0

        for a, b in self.solver.stages:
            rhs, amax = self._stage_rhs(prim, mesh, t, t0)
            wavespeed = max(wavespeed, amax)
            q = a * q0 + b * (q + dt * rhs)
            prim, bad = self._recover(q / vol1, prim, t1)
            floored |= bad
            mesh, t = mesh1, t1

        self.mesh.advance_boundaries(t0, dt)
        self.primitive = prim
        self.clock.advance(dt, landing)
        self._last_dt = dt
        self._last_wavespeed = wavespeed
        self._update_floor_streak(floored)

        logger.debug(
            "Step %d: t=%.6e s, dt=%.4e s, max|lambda|=%.4f, floored=%d",
            self.clock.iteration, self.clock.time, dt, wavespeed, int(floored.sum()),
        )
        return self._make_step_result(dt=dt, finished=self.finished, floored=int(floored.sum()))

    def _make_step_result(self, *, dt: float, finished: bool, floored: int = 0) -> StepResult:
        return StepResult(
            time=self.clock.time,
            step=self.clock.iteration,
            dt=dt,
            inner_radius=self.mesh.inner_radius,
            outer_radius=self.mesh.outer_radius,
            max_wavespeed=self._last_wavespeed,
            floored_zones=floored,
            finished=finished,
        )

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _outputs_due(self) -> bool:
        t = self.clock.time
        if self.checkpoint_task.is_due(t):
            return True
        return self.products_task is not None and self.products_task.is_due(t)

    def _side_effects(self, steps_in_batch: int) -> None:
        t = self.clock.time

        seconds = self.message_task.advance()
        # The first call of a run has no batch to report on
        if self.message_task.count_this_run > 1:
            mzps = 1e-6 * self.mesh.num_zones * steps_in_batch / max(seconds, 1e-12)
            logger.info(
                "[%05d] t=%.4e s dt=%.3e s blocks=%d Mzps=%.2f",
                self.clock.iteration, t, self._last_dt, self.mesh.num_blocks, mzps,
            )
            if self.dt_fixed is not None:
                courant = self.solver.courant_number(self.dt_fixed, self.primitive, self.mesh)
                if courant > 1.0:
                    logger.warning(
                        "Fixed time step exceeds the Courant limit: C=%.3f at t=%.4e s",
                        courant, t,
                    )

        self.diagnostics.record(self.diagnostic_scalars(), t)

        if self.products_task is not None and self.products_task.is_due(t):
            filename = products_filename(self.output_directory, self.products_task.count)
            self.products_task.advance()
            self._warn_skipped(self.products_task, "products")
            write_products(
                filename, t, self.mesh.face_radii(), self.primitive, self.eos.gamma,
            )

        if self.checkpoint_task.is_due(t):
            filename = checkpoint_filename(self.output_directory, self.checkpoint_task.count)
            self.checkpoint_task.advance()
            self._warn_skipped(self.checkpoint_task, "checkpoint")
            try:
                self.save_checkpoint(filename)
            except CheckpointIOError as exc:
                logger.error("Checkpoint %s failed: %s", filename, exc)
                self.checkpoint_failures.append(str(filename))
            else:
                self.checkpoints_written.append(str(filename))

    def _warn_skipped(self, task: RecurringTask, label: str) -> None:
        t = self.clock.time
        if task.is_due(t):
            before = task.count
            task.skip_to(t)
            logger.warning(
                "%d %s output(s) fell inside one step at t=%.4e s; next at t=%.4e s",
                task.count - before, label, t, task.next_time,
            )

    def diagnostic_scalars(self) -> dict[str, float]:
        volumes = self.mesh.volumes()
        return {
            "dt": self._last_dt,
            "iteration": self.clock.iteration,
            "total_mass": total_mass(self.primitive, volumes, self.eos),
            "total_energy": total_energy(self.primitive, volumes, self.eos),
            "inner_radius": self.mesh.inner_radius,
            "outer_radius": self.mesh.outer_radius,
            "max_lorentz_factor": max_lorentz_factor(self.primitive),
        }

    # ------------------------------------------------------------------
    # Batch run (uses step() internally)
    # ------------------------------------------------------------------

    def run(self, max_steps: int | None = None) -> dict[str, Any]:
        """Execute the simulation loop.

        Args:
            max_steps: Maximum number of steps in this call (None = run to
                final_time).

        Returns:
            Dictionary with summary statistics.
        """
        t_wall_start = wall_time.monotonic()
        fold = self.config.control.fold
        steps = 0

        logger.info(
            "Starting simulation: t=%.4e s -> t_end=%.4e s",
            self.clock.time, self.clock.final_time,
        )
        self._side_effects(0)

        try:
            while not self.finished and (max_steps is None or steps < max_steps):
                batch = 0
                while batch < fold:
                    self.step()
                    batch += 1
                    steps += 1
                    if self.finished or self._outputs_due():
                        break
                    if max_steps is not None and steps >= max_steps:
                        break
                self._side_effects(batch)
        finally:
            self.diagnostics.finalize()

        t_wall = wall_time.monotonic() - t_wall_start
        summary = {
            "steps": steps,
            "iteration": self.clock.iteration,
            "sim_time": self.clock.time,
            "wall_time_s": t_wall,
            "zone_updates_per_s": self.mesh.num_zones * steps / max(t_wall, 1e-10),
            "inner_radius": self.mesh.inner_radius,
            "outer_radius": self.mesh.outer_radius,
            "total_mass": total_mass(self.primitive, self.mesh.volumes(), self.eos),
            "checkpoints_written": list(self.checkpoints_written),
            "checkpoint_failures": list(self.checkpoint_failures),
            "finished": self.finished,
        }

        logger.info(
            "Simulation complete: %d steps in %.2f s (%.1f steps/s), t=%.4e s, "
            "%d checkpoint(s), %d failed",
            steps, t_wall, steps / max(t_wall, 1e-10), self.clock.time,
            len(self.checkpoints_written), len(self.checkpoint_failures),
        )
        return summary

    def close(self) -> None:
        """Release the worker pool."""
        self.pool.close()
        self.pool.join()

    def __enter__(self) -> SimulationEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
