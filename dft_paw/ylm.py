"""
Real spherical harmonics.

Values are returned in a flat array ordered by increasing l and, within each
l, by m = -l, ..., l, so that Y_lm sits at index l*l + l + m.  The real
harmonics follow the ABINIT/libpaw table:

    Y_l0  = N_l0 P_l^0(cos t)
    Y_lm  = sqrt(2) N_lm (-1)^m P_l^m(cos t) cos(m phi)     m > 0
    Y_l-m = sqrt(2) N_lm (-1)^m P_l^m(cos t) sin(m phi)     m > 0

with N_lm = sqrt((2l+1)/(4 pi) (l-m)!/(l+m)!) and P_l^m carrying the
Condon-Shortley phase, so the two signs cancel.
"""

import numpy as np
from typing import List, Tuple

from .errors import DomainError
from .legendre import ass_leg_pol

# Vectors shorter than this are treated as the zero vector
ZERO_TOL = 1e-10

Y00 = 1.0 / np.sqrt(4.0 * np.pi)


def ylm_index(l: int, m: int) -> int:
    """Position of Y_lm in the flat array."""
    return l * l + l + m


def ylm_lm_list(lmax: int) -> List[Tuple[int, int]]:
    """(l, m) pairs in flat-array order."""
    return [(l, m) for l in range(lmax + 1) for m in range(-l, l + 1)]


def calc_ylm_array(lmax: int, vectors: np.ndarray) -> np.ndarray:
    """
    Real spherical harmonics for a set of vectors.

    The vectors need not be normalized.  A zero vector gives Y_00 and zero
    for every l > 0.

    Args:
        lmax: Maximum angular momentum (>= 0)
        vectors: Cartesian vectors (nvec, 3)

    Returns:
        Array (nvec, (lmax+1)**2)
    """
    if lmax < 0:
        raise DomainError(f"lmax={lmax} must be non-negative")

    vectors = np.asarray(vectors, dtype=np.float64).reshape(-1, 3)
    nvec = len(vectors)

    ylm = np.zeros((nvec, (lmax + 1) ** 2))
    ylm[:, 0] = Y00
    if lmax == 0:
        return ylm

    rr = np.linalg.norm(vectors, axis=1)
    nonzero = rr > ZERO_TOL
    rr_safe = np.where(nonzero, rr, 1.0)

    ctheta = np.where(nonzero, vectors[:, 2] / rr_safe, 1.0)
    stheta = np.sqrt(np.abs((1.0 - ctheta) * (1.0 + ctheta)))

    # phi is undefined on the z axis; cos(m phi) = 1 there
    cphi = np.ones(nvec)
    sphi = np.zeros(nvec)
    off_axis = nonzero & (stheta > ZERO_TOL)
    denom = rr_safe[off_axis] * stheta[off_axis]
    cphi[off_axis] = vectors[off_axis, 0] / denom
    sphi[off_axis] = vectors[off_axis, 1] / denom

    eiphi = cphi + 1j * sphi
    phase = [eiphi ** m for m in range(lmax + 1)]

    for l in range(1, lmax + 1):
        l0 = l * l + l
        ylmcst = np.sqrt((2 * l + 1) / (4.0 * np.pi))
        ylm[:, l0] = ylmcst * ass_leg_pol(l, 0, ctheta)

        # fact runs through (l-m)!/(l+m)!
        fact = 1.0 / (l * (l + 1))
        onem = 1.0
        for m in range(1, l + 1):
            onem = -onem
            work = ylmcst * np.sqrt(fact) * onem * ass_leg_pol(l, m, ctheta) * np.sqrt(2.0)
            ylm[:, l0 + m] = work * phase[m].real
            ylm[:, l0 - m] = work * phase[m].imag
            if m != l:
                fact /= (l + m + 1) * (l - m)

    ylm[~nonzero, 1:] = 0.0
    return ylm


def calc_ylm(lmax: int, r) -> np.ndarray:
    """
    Real spherical harmonics Y_lm(r) for a single vector.

    Args:
        lmax: Maximum angular momentum
        r: 3-vector (any length, zero allowed)

    Returns:
        Flat array of (lmax+1)**2 values
    """
    r = np.asarray(r, dtype=np.float64)
    if r.shape != (3,):
        raise DomainError(f"calc_ylm expects a 3-vector, got shape {r.shape}")
    return calc_ylm_array(lmax, r[np.newaxis, :])[0]
