"""Finite-volume update for 1D spherical special-relativistic hydrodynamics.

Per unit solid angle, the zone-integrated conserved quantities Q = U dV obey

    dQ/dt = -c [A (F - w U)]_L^R + c S,

where A = r^2 is the face area, w the face velocity (units of c) and S the
geometric source, which is nonzero only for momentum:

    S_S = p (r_R^2 - r_L^2).

Primitives are reconstructed at faces with the PLM limiter and fluxes come
from the HLLC (or HLL) solver. Time integration is the SSP Runge-Kutta
family written in Shu-Osher form,

    Q^(k+1) = a_k Q^n + b_k (Q^(k) + dt L(Q^(k))),

with RK1 = [(0, 1)] and RK2 (Heun) = [(0, 1), (1/2, 1/2)].

The block kernels release the GIL so blocks can be updated from a thread
pool.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit

from kilonova.config import RelativisticHydroConfig, RiemannSolverKind, RungeKuttaOrder
from kilonova.constants import LIGHT_SPEED
from kilonova.fluid.eos import GammaLawEOS, _wavespeeds_zone, cons_to_prim_array
from kilonova.fluid.reconstruction import plm_gradient
from kilonova.fluid.riemann import SOLVER_HLL, SOLVER_HLLC, godunov_fluxes
from kilonova.geometry.mesh import NUM_GUARD, Block, Mesh, MeshSnapshot

logger = logging.getLogger(__name__)


@njit(cache=True, nogil=True)
def _block_rhs_kernel(padded, face_r, face_w, gamma, plm_theta, solver):
    """Rate of change of Q for the m zones in the middle of ``padded``.

    Args:
        padded: ``(m + 4, 4)`` primitives including two zones on each side.
        face_r: ``(m + 1,)`` face radii [cm].
        face_w: ``(m + 1,)`` face velocities [units of c].

    Returns:
        (rhs ``(m, 4)`` in units of c * [Q] / cm, max wave speed).
    """
    m = padded.shape[0] - 4
    grad = plm_gradient(padded, plm_theta)

    pl = np.empty((m + 1, 4))
    pr = np.empty((m + 1, 4))
    for j in range(m + 1):
        for q in range(4):
            pl[j, q] = padded[j + 1, q] + 0.5 * grad[j + 1, q]
            pr[j, q] = padded[j + 2, q] - 0.5 * grad[j + 2, q]

    flux, amax = godunov_fluxes(pl, pr, face_w, gamma, solver)

    rhs = np.empty((m, 4))
    for i in range(m):
        al = face_r[i] * face_r[i]
        ar = face_r[i + 1] * face_r[i + 1]
        for q in range(4):
            rhs[i, q] = al * flux[i, q] - ar * flux[i + 1, q]
        rhs[i, 1] += padded[i + 2, 2] * (ar - al)
    return rhs, amax


@njit(cache=True, nogil=True)
def _min_signal_time(prim, widths, gamma):
    """min(dr / max|lambda|) over zones, in cm (divide by c for seconds)."""
    best = np.inf
    for i in range(prim.shape[0]):
        lm, lp = _wavespeeds_zone(prim[i, 0], prim[i, 1], prim[i, 2], gamma)
        a = max(abs(lm), abs(lp))
        if a > 0.0:
            best = min(best, widths[i] / a)
    return best


def runge_kutta_weights(order: RungeKuttaOrder | str) -> list[tuple[float, float]]:
    """Shu-Osher stage weights (a_k, b_k) for the given scheme."""
    order = RungeKuttaOrder(order)
    if order is RungeKuttaOrder.RK1:
        return [(0.0, 1.0)]
    return [(0.0, 1.0), (0.5, 0.5)]


class RelativisticHydroSolver:
    """Block-level update operators for the relativistic gamma-law system.

    Args:
        hydro_cfg: Validated ``RelativisticHydroConfig``.
    """

    def __init__(self, hydro_cfg: RelativisticHydroConfig) -> None:
        self.config = hydro_cfg
        self.eos = GammaLawEOS(hydro_cfg.gamma_law_index)
        self.gamma = self.eos.gamma
        self.plm_theta = float(hydro_cfg.plm_theta)
        self.cfl = float(hydro_cfg.cfl_number)
        self.solver_code = (
            SOLVER_HLL if hydro_cfg.riemann_solver == RiemannSolverKind.HLL else SOLVER_HLLC
        )
        self.stages = runge_kutta_weights(hydro_cfg.runge_kutta_order)
        logger.info(
            "RelativisticHydroSolver initialized: gamma=%.4f, plm_theta=%.2f, "
            "cfl=%.3f, %s, %s, adaptive_dt=%s",
            self.gamma, self.plm_theta, self.cfl,
            hydro_cfg.riemann_solver.value, hydro_cfg.runge_kutta_order.value,
            hydro_cfg.adaptive_time_step,
        )

    def block_rhs(
        self,
        padded_prim: np.ndarray,
        snapshot: MeshSnapshot,
        block: Block,
    ) -> tuple[np.ndarray, float]:
        """Flux divergence plus geometric source for one block.

        Args:
            padded_prim: Output of ``Mesh.ghost_exchange``.
            snapshot: Mesh geometry for the current stage.
            block: The block to update.

        Returns:
            (dQ/dt for the block's zones [g/s per steradian, etc.],
            max |wave speed| at the block's faces in units of c).
        """
        local = np.ascontiguousarray(padded_prim[block.start:block.stop + 2 * NUM_GUARD])
        rhs, amax = _block_rhs_kernel(
            local,
            np.ascontiguousarray(snapshot.face_radii[block.faces]),
            np.ascontiguousarray(snapshot.face_velocities[block.faces]),
            self.gamma, self.plm_theta, self.solver_code,
        )
        return rhs * LIGHT_SPEED, float(amax)

    def recover_block(self, conserved: np.ndarray, guess: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Primitive recovery for one block; status is nonzero where it failed."""
        return cons_to_prim_array(
            np.ascontiguousarray(conserved), np.ascontiguousarray(guess), self.gamma,
        )

    def compute_dt(self, prim: np.ndarray, mesh: Mesh) -> float:
        """CFL-limited step cfl * min(dr / (c max|lambda|)) [s]."""
        t_signal = _min_signal_time(np.ascontiguousarray(prim), mesh.zone_widths(), self.gamma)
        if not np.isfinite(t_signal):
            return self.fixed_dt(mesh)
        return self.cfl * t_signal / LIGHT_SPEED

    def fixed_dt(self, mesh: Mesh) -> float:
        """Nominal step cfl * reference_radius * dlogr / c [s]."""
        return self.cfl * mesh.nominal_zone_width() / LIGHT_SPEED

    def courant_number(self, dt: float, prim: np.ndarray, mesh: Mesh) -> float:
        """Largest c * max|lambda| * dt / dr over zones for a given step."""
        t_signal = _min_signal_time(np.ascontiguousarray(prim), mesh.zone_widths(), self.gamma)
        if not np.isfinite(t_signal):
            return 0.0
        return dt * LIGHT_SPEED / t_signal
