"""HLLC and HLL approximate Riemann solvers for 1D relativistic hydrodynamics.

Outer wave speeds are Davis-type estimates from the relativistic
characteristic speeds of the left and right states. The HLLC contact speed
follows Mignone & Bodo (2005): with the HLL averages of total energy
E = tau + D and momentum m = S,

    F_E^hll lambda*^2 - (E^hll + F_m^hll) lambda* + m^hll = 0,

taking the root that reduces to -c/b when F_E^hll -> 0. The solver falls
back to HLL when the quadratic is degenerate, the contact leaves the HLL fan,
or the star pressure is not positive.

Faces may move with velocity w (units of c). The returned flux is F - w U of
the state selected by where w sits in the wave fan, which is the flux seen by
a zone whose face moves.

The passive scalar flux is the mass flux times the upwind scalar. HLLC takes
s from the side of the contact the face lies on; HLL, which has no contact,
takes it from the side the mass flux comes from.
"""

from __future__ import annotations

import numpy as np
from numba import njit

from kilonova.fluid.eos import _flux_zone, _prim_to_cons_zone, _wavespeeds_zone

SOLVER_HLLC = 0
SOLVER_HLL = 1


@njit(cache=True, nogil=True)
def _riemann_zone(rl, ul, pl, xl, rr, ur, pr, xr, gamma, w, solver):
    """Return (F_D, F_S, F_tau, F_Ds, max_speed) across one face."""
    dl, ml, tl = _prim_to_cons_zone(rl, ul, pl, gamma)
    dr, mr, tr = _prim_to_cons_zone(rr, ur, pr, gamma)
    fdl, fml, ftl = _flux_zone(rl, ul, pl, gamma)
    fdr, fmr, ftr = _flux_zone(rr, ur, pr, gamma)
    el = tl + dl
    er = tr + dr
    fel = ftl + fdl
    fer = ftr + fdr

    lml, lpl = _wavespeeds_zone(rl, ul, pl, gamma)
    lmr, lpr = _wavespeeds_zone(rr, ur, pr, gamma)
    sl = min(lml, lmr)
    sr = max(lpl, lpr)
    amax = max(abs(sl), abs(sr))

    if w <= sl:
        fd = fdl - w * dl
        return fd, fml - w * ml, ftl - w * tl, fd * xl, amax
    if w >= sr:
        fd = fdr - w * dr
        return fd, fmr - w * mr, ftr - w * tr, fd * xr, amax

    den = sr - sl
    ud_hll = (sr * dr - sl * dl - fdr + fdl) / den
    um_hll = (sr * mr - sl * ml - fmr + fml) / den
    ue_hll = (sr * er - sl * el - fer + fel) / den
    fd_hll = (sr * fdl - sl * fdr + sl * sr * (dr - dl)) / den
    fm_hll = (sr * fml - sl * fmr + sl * sr * (mr - ml)) / den
    fe_hll = (sr * fel - sl * fer + sl * sr * (er - el)) / den

    use_hll = solver == SOLVER_HLL
    lc = 0.0
    pc = 0.0
    if not use_hll:
        a = fe_hll
        b = -(ue_hll + fm_hll)
        c = um_hll
        disc = b * b - 4.0 * a * c
        if disc < 0.0:
            use_hll = True
        else:
            q = -b + np.sqrt(disc)
            if q <= 0.0:
                use_hll = True
            else:
                lc = 2.0 * c / q
                pc = -a * lc + fm_hll
                if not (sl < lc < sr) or not (pc > 0.0):
                    use_hll = True

    if use_hll:
        fd = fd_hll - w * ud_hll
        xk = xl if fd >= 0.0 else xr
        return (
            fd,
            fm_hll - w * um_hll,
            (fe_hll - fd_hll) - w * (ue_hll - ud_hll),
            fd * xk,
            amax,
        )

    if w <= lc:
        sk = sl
        dk, mk, ek = dl, ml, el
        fdk, fmk, fek = fdl, fml, fel
        vk = ul / np.sqrt(1.0 + ul * ul)
        pk = pl
        xk = xl
    else:
        sk = sr
        dk, mk, ek = dr, mr, er
        fdk, fmk, fek = fdr, fmr, fer
        vk = ur / np.sqrt(1.0 + ur * ur)
        pk = pr
        xk = xr

    x = 1.0 / (sk - lc)
    d_star = dk * (sk - vk) * x
    m_star = (mk * (sk - vk) + pc - pk) * x
    e_star = (ek * (sk - vk) + pc * lc - pk * vk) * x
    fd_star = fdk + sk * (d_star - dk)
    fm_star = fmk + sk * (m_star - mk)
    fe_star = fek + sk * (e_star - ek)
    fd = fd_star - w * d_star
    return (
        fd,
        fm_star - w * m_star,
        (fe_star - fd_star) - w * (e_star - d_star),
        fd * xk,
        amax,
    )


@njit(cache=True, nogil=True)
def godunov_fluxes(pl, pr, face_velocity, gamma, solver):
    """Fluxes at a run of faces.

    Args:
        pl, pr: ``(nf, 4)`` primitive states left and right of each face.
        face_velocity: ``(nf,)`` face velocities in units of c.
        gamma: Adiabatic index.
        solver: SOLVER_HLLC or SOLVER_HLL.

    Returns:
        (fluxes ``(nf, 4)``, max |wave speed| over all faces).
    """
    nf = pl.shape[0]
    out = np.empty((nf, 4))
    amax = 0.0
    for j in range(nf):
        fd, fm, ft, fx, a = _riemann_zone(
            pl[j, 0], pl[j, 1], pl[j, 2], pl[j, 3],
            pr[j, 0], pr[j, 1], pr[j, 2], pr[j, 3],
            gamma, face_velocity[j], solver,
        )
        out[j, 0] = fd
        out[j, 1] = fm
        out[j, 2] = ft
        out[j, 3] = fx
        if a > amax:
            amax = a
    return out, amax


def riemann_hllc(pl, pr, gamma: float, face_velocity: float = 0.0) -> tuple[np.ndarray, float]:
    """HLLC flux between two primitive states (rho, u, p, s).

    Returns:
        (flux vector for (D, S, tau, D s), maximal local wave speed in units of c).
    """
    return _single_face(pl, pr, gamma, face_velocity, SOLVER_HLLC)


def riemann_hll(pl, pr, gamma: float, face_velocity: float = 0.0) -> tuple[np.ndarray, float]:
    """HLL flux between two primitive states (rho, u, p, s)."""
    return _single_face(pl, pr, gamma, face_velocity, SOLVER_HLL)


def _single_face(pl, pr, gamma, face_velocity, solver):
    pl = np.asarray(pl, dtype=float)
    pr = np.asarray(pr, dtype=float)
    fd, fm, ft, fx, a = _riemann_zone(
        pl[0], pl[1], pl[2], pl[3], pr[0], pr[1], pr[2], pr[3],
        float(gamma), float(face_velocity), solver,
    )
    return np.array([fd, fm, ft, fx]), float(a)
