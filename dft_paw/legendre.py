"""
Associated Legendre polynomials.

P_l^m(x) is evaluated with the Condon-Shortley phase by upward recurrence in l:

    P_m^m(x)     = (-1)^m (2m-1)!! (1-x^2)^(m/2)
    P_{m+1}^m(x) = x (2m+1) P_m^m(x)
    (l-m) P_l^m  = x (2l-1) P_{l-1}^m - (l+m-1) P_{l-2}^m
"""

import numpy as np
from typing import Union

from .errors import DomainError

# |x| may exceed 1 by this much from rounding before it is rejected
ARG_TOLERANCE = 1e-10


def double_factorial(n: int) -> int:
    """n!! for n >= -1 (with (-1)!! = 0!! = 1)."""
    result = 1
    while n > 1:
        result *= n
        n -= 2
    return result


def _check_argument(x: np.ndarray) -> np.ndarray:
    """Reject |x| > 1 + tol, clamp rounding overshoot back onto [-1, 1]."""
    if not np.all(np.isfinite(x)):
        raise DomainError("Legendre argument must be finite")
    if np.any(np.abs(x) > 1.0 + ARG_TOLERANCE):
        bad = x[np.abs(x) > 1.0 + ARG_TOLERANCE].flat[0]
        raise DomainError(f"Legendre argument {bad!r} is outside [-1, 1]")
    return np.clip(x, -1.0, 1.0)


def ass_leg_pol(l: int, m: int, x: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Associated Legendre polynomial P_l^m(x).

    Args:
        l: Degree (l >= 0)
        m: Order (0 <= m <= l)
        x: Argument in [-1, 1], scalar or array

    Returns:
        P_l^m(x) with the same shape as x (a float for scalar input)

    Raises:
        DomainError: if m < 0, m > l or |x| > 1 beyond rounding tolerance
    """
    if l < 0:
        raise DomainError(f"Legendre degree l={l} must be non-negative")
    if m < 0 or m > l:
        raise DomainError(f"Legendre order m={m} must satisfy 0 <= m <= l={l}")

    scalar = np.ndim(x) == 0
    x = _check_argument(np.asarray(x, dtype=np.float64))

    somx2 = np.sqrt((1.0 - x) * (1.0 + x))
    pmm = (-1) ** m * double_factorial(2 * m - 1) * somx2 ** m

    if l == m:
        result = pmm
    else:
        pmmp1 = x * (2 * m + 1) * pmm
        if l == m + 1:
            result = pmmp1
        else:
            for ll in range(m + 2, l + 1):
                pll = (x * (2 * ll - 1) * pmmp1 - (ll + m - 1) * pmm) / (ll - m)
                pmm = pmmp1
                pmmp1 = pll
            result = pmmp1

    if scalar:
        return float(result)
    return result
