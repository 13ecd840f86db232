"""Piecewise-linear (PLM) reconstruction with a generalised minmod limiter.

The limited slope of zone c, given its neighbours l and r, is

    a = theta (y_c - y_l)
    b = (y_r - y_l) / 2
    c = theta (y_r - y_c)
    g = minmod(a, b, c)

theta = 1 is the classic minmod limiter and theta = 2 the monotonized
central (MC) limiter. For theta in [1, 2] the face values y_c -/+ g/2 never
leave the range of the three-zone stencil, so the scheme is TVD.
"""

from __future__ import annotations

import numpy as np
from numba import njit


@njit(cache=True, nogil=True)
def plm_minmod(yl, yc, yr, plm_theta):
    a = (yc - yl) * plm_theta
    b = (yr - yl) * 0.5
    c = (yr - yc) * plm_theta
    sa = np.sign(a)
    sb = np.sign(b)
    sc = np.sign(c)
    return 0.25 * abs(sa + sb) * (sa + sc) * min(abs(a), abs(b), abs(c))


@njit(cache=True, nogil=True)
def plm_gradient(prim, plm_theta):
    """Limited slopes for an ``(n, nq)`` array.

    The first and last rows have no two-sided stencil and fall back to
    donor-cell (zero slope).
    """
    n = prim.shape[0]
    nq = prim.shape[1]
    grad = np.zeros((n, nq))
    for i in range(1, n - 1):
        for q in range(nq):
            grad[i, q] = plm_minmod(prim[i - 1, q], prim[i, q], prim[i + 1, q], plm_theta)
    return grad


def plm_face_states(
    yl: np.ndarray,
    yc: np.ndarray,
    yr: np.ndarray,
    plm_theta: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Extrapolate the centre zone of a three-zone stencil to its faces.

    Args:
        yl, yc, yr: Left, centre and right zone states (scalars or arrays of
            the same shape, e.g. a primitive vector).
        plm_theta: Limiter parameter in [1, 2].

    Returns:
        (left_face, right_face) values of the centre zone.
    """
    stencil = np.stack([
        np.atleast_1d(np.asarray(yl, dtype=float)),
        np.atleast_1d(np.asarray(yc, dtype=float)),
        np.atleast_1d(np.asarray(yr, dtype=float)),
    ])
    g = plm_gradient(stencil, float(plm_theta))[1]
    centre = stencil[1]
    left, right = centre - 0.5 * g, centre + 0.5 * g
    if np.ndim(yc) == 0:
        return float(left[0]), float(right[0])
    return left, right
