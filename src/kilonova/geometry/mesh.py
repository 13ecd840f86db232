"""Log-radial block mesh with moving (excising) inner and outer boundaries.

The domain [r_in, r_out] is cut into ``num_zones`` log-spaced zones, grouped
into blocks of ``block_size`` contiguous zones. Everything is per unit solid
angle:

    zone volume  dV = (r_R^3 - r_L^3) / 3
    face area    A  = r^2

When the boundaries move, every face keeps its fractional position x in log
radius,

    r_i(t) = r_in(t)^(1 - x_i) * r_out(t)^(x_i),

so the mesh stretches geometrically and is never re-binned. Zone count and
block partition are constant for the life of a run. Face velocities follow
from differentiating r_i(t):

    w_i = r_i * ((1 - x_i) v_in / r_in + x_i v_out / r_out)

Reference:
    The excision scheme follows the Clemson kilonova code, where the inner
    boundary is excised behind an outflow and the outer boundary runs ahead
    of the fastest ejecta.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import numpy as np

from kilonova.constants import LIGHT_SPEED
from kilonova.errors import BoundaryCollisionError
from kilonova.fluid.eos import NUM_FIELDS

logger = logging.getLogger(__name__)

NUM_GUARD = 2


class BoundaryStatus(str, Enum):
    FIXED = "fixed"
    DELAYED = "delayed"
    MOVING = "moving"


@dataclass
class BoundaryMotion:
    """Constant-speed motion of one boundary that switches on after a delay.

    Attributes:
        speed: Boundary speed [cm/s]; zero means the boundary never moves.
        delay: Time after ``start_time`` before motion begins [s].
        start_time: Simulation start time [s].
    """

    speed: float = 0.0
    delay: float = 0.0
    start_time: float = 0.0

    def status(self, time: float) -> BoundaryStatus:
        if self.speed == 0.0:
            return BoundaryStatus.FIXED
        if time < self.start_time + self.delay:
            return BoundaryStatus.DELAYED
        return BoundaryStatus.MOVING

    def velocity(self, time: float) -> float:
        """Boundary velocity at ``time`` [cm/s]."""
        if self.status(time) is BoundaryStatus.MOVING:
            return self.speed
        return 0.0


@dataclass(frozen=True)
class Block:
    """A contiguous range of zones [start, stop) updated as one task."""

    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start

    @property
    def zones(self) -> slice:
        return slice(self.start, self.stop)

    @property
    def faces(self) -> slice:
        return slice(self.start, self.stop + 1)


class MeshSnapshot(NamedTuple):
    """Geometry read by the hydro kernels during one stage.

    Face velocities are in units of c so they can be compared directly
    with wave speeds.
    """

    face_radii: np.ndarray
    face_velocities: np.ndarray
    volumes: np.ndarray


class Mesh:
    """Block-decomposed log-radial mesh.

    Args:
        inner_radius: Inner boundary [cm].
        outer_radius: Outer boundary [cm].
        num_zones: Total zone count (a multiple of ``block_size``).
        block_size: Zones per block.
        inner: Motion of the inner boundary.
        outer: Motion of the outer boundary.
        reference_radius: Radius at which ``reference_radius * dlogr`` gives
            the nominal zone width [cm]. Defaults to ``inner_radius``.
        dlogr: Nominal log-radial spacing. Defaults to the actual spacing.
    """

    def __init__(
        self,
        inner_radius: float,
        outer_radius: float,
        num_zones: int,
        block_size: int,
        inner: BoundaryMotion | None = None,
        outer: BoundaryMotion | None = None,
        reference_radius: float | None = None,
        dlogr: float | None = None,
    ) -> None:
        if inner_radius >= outer_radius:
            raise BoundaryCollisionError(
                f"inner radius {inner_radius:.6e} must be less than outer radius {outer_radius:.6e}"
            )
        if block_size < 1 or num_zones < 1 or num_zones % block_size:
            raise ValueError(
                f"num_zones ({num_zones}) must be a positive multiple of block_size ({block_size})"
            )
        self.inner_radius = float(inner_radius)
        self.outer_radius = float(outer_radius)
        self.num_zones = int(num_zones)
        self.block_size = int(block_size)
        self.inner = inner if inner is not None else BoundaryMotion()
        self.outer = outer if outer is not None else BoundaryMotion()
        self.reference_radius = float(reference_radius if reference_radius is not None else inner_radius)
        self.dlogr = float(dlogr if dlogr is not None else math.log(outer_radius / inner_radius) / num_zones)
        self._x = np.arange(self.num_zones + 1) / self.num_zones
        self.blocks = [
            Block(index=k, start=k * self.block_size, stop=(k + 1) * self.block_size)
            for k in range(self.num_zones // self.block_size)
        ]

    @classmethod
    def from_config(cls, mesh_cfg, start_time: float = 0.0) -> Mesh:
        """Lay out the mesh described by a ``MeshConfig``.

        The target spacing is dlogr = pi / num_polar_zones, which makes zones
        roughly square at the polar resolution of the full problem. The zone
        count is rounded up to a whole number of blocks.
        """
        dlogr = math.pi / mesh_cfg.num_polar_zones
        span = math.log(mesh_cfg.outer_radius / mesh_cfg.inner_radius)
        num_blocks = max(1, math.ceil(span / (mesh_cfg.block_size * dlogr)))
        num_zones = num_blocks * mesh_cfg.block_size
        mesh = cls(
            inner_radius=mesh_cfg.inner_radius,
            outer_radius=mesh_cfg.outer_radius,
            num_zones=num_zones,
            block_size=mesh_cfg.block_size,
            inner=BoundaryMotion(mesh_cfg.inner_excision_speed, mesh_cfg.excision_delay, start_time),
            outer=BoundaryMotion(mesh_cfg.outer_excision_speed, mesh_cfg.excision_delay, start_time),
            reference_radius=mesh_cfg.reference_radius,
            dlogr=dlogr,
        )
        logger.info(
            "Mesh: r=[%.3e, %.3e] cm, %d zones in %d blocks, dlogr=%.4e",
            mesh.inner_radius, mesh.outer_radius, num_zones, num_blocks, dlogr,
        )
        return mesh

    @property
    def num_blocks(self) -> int:
        return len(self.blocks)

    # --- geometry ---

    def face_radii(self) -> np.ndarray:
        r = self.inner_radius * np.exp(self._x * math.log(self.outer_radius / self.inner_radius))
        r[0] = self.inner_radius
        r[-1] = self.outer_radius
        return r

    def face_velocities(self, time: float) -> np.ndarray:
        """Face velocities [cm/s] at ``time``."""
        r = self.face_radii()
        v_in = self.inner.velocity(time)
        v_out = self.outer.velocity(time)
        return r * ((1.0 - self._x) * v_in / self.inner_radius + self._x * v_out / self.outer_radius)

    def volumes(self) -> np.ndarray:
        r = self.face_radii()
        return (r[1:] ** 3 - r[:-1] ** 3) / 3.0

    def face_areas(self) -> np.ndarray:
        return self.face_radii() ** 2

    def zone_centers(self) -> np.ndarray:
        r = self.face_radii()
        return np.sqrt(r[1:] * r[:-1])

    def zone_widths(self) -> np.ndarray:
        return np.diff(self.face_radii())

    def min_zone_width(self) -> float:
        return float(self.zone_widths().min())

    def nominal_zone_width(self) -> float:
        return self.reference_radius * self.dlogr

    def snapshot(self, time: float) -> MeshSnapshot:
        return MeshSnapshot(
            face_radii=self.face_radii(),
            face_velocities=self.face_velocities(time) / LIGHT_SPEED,
            volumes=self.volumes(),
        )

    # --- boundary motion ---

    def advance_boundaries(self, time: float, dt: float) -> None:
        """Move each boundary by its velocity at ``time`` over ``dt``.

        Raises:
            BoundaryCollisionError: If the inner boundary reaches the outer.
        """
        inner_radius = self.inner_radius + self.inner.velocity(time) * dt
        outer_radius = self.outer_radius + self.outer.velocity(time) * dt
        if not (0.0 < inner_radius < outer_radius):
            raise BoundaryCollisionError(
                f"boundaries collided at t={time + dt:.6e} s: "
                f"inner={inner_radius:.6e} cm, outer={outer_radius:.6e} cm"
            )
        self.inner_radius = inner_radius
        self.outer_radius = outer_radius

    def preview(self, time: float, dt: float) -> Mesh:
        """The mesh as it will be after ``advance_boundaries(time, dt)``."""
        other = copy.copy(self)
        other.advance_boundaries(time, dt)
        return other

    # --- guard zones ---

    def ghost_exchange(self, prim: np.ndarray, inner_state, outer_state) -> np.ndarray:
        """Pad ``prim`` with two guard zones on each side.

        Every block reads its neighbours from the returned array, so within a
        stage all blocks see the same (pre-update) data. Both guard zones on
        a side hold the boundary state, so the guard zone next to the domain
        reconstructs with zero slope.

        Args:
            prim: ``(num_zones, NUM_FIELDS)`` primitive array.
            inner_state: Primitive state beyond the inner boundary.
            outer_state: Primitive state beyond the outer boundary.

        Returns:
            ``(num_zones + 4, NUM_FIELDS)`` padded array.
        """
        if prim.shape != (self.num_zones, NUM_FIELDS):
            raise ValueError(f"expected primitive shape ({self.num_zones}, {NUM_FIELDS}), got {prim.shape}")
        padded = np.empty((self.num_zones + 2 * NUM_GUARD, NUM_FIELDS))
        padded[:NUM_GUARD] = np.asarray(inner_state, dtype=float)
        padded[NUM_GUARD:-NUM_GUARD] = prim
        padded[-NUM_GUARD:] = np.asarray(outer_state, dtype=float)
        return padded
