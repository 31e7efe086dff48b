"""Carbon retention efficiency.

Pure kernel for the fraction of decomposed carbon that stays in organic
form. The complement leaves the soil as CO2.
"""

from __future__ import annotations

import numpy as np
from numba import njit

__all__ = [
    "MAT_COLD_THRESHOLD",
    "MAT_WARM_THRESHOLD",
    "efficiency_from_mat",
]

MAT_COLD_THRESHOLD = 1.3  # C
MAT_WARM_THRESHOLD = 16.5  # C


# fastmath is off here: it would let LLVM assume mat is never NaN.
@njit(cache=True)
def efficiency_from_mat(mat: float, fallback: float) -> float:
    """
    Carbon retention efficiency from mean annual temperature.

    Three-segment piecewise-linear function of MAT (C):

        mat < 1.3           : 0.0064 * mat + 0.45
        1.3 <= mat <= 16.5  : -0.004 * mat + 0.46
        mat > 16.5          : 0.025 * mat + 0.037

    Physical constraints:
        - Result is a fraction of outgoing carbon; no clamping is applied,
          so extreme MAT values can leave [0, 1]
        - NaN MAT returns `fallback`

    Parameters
    ----------
    mat : float
        Mean annual air temperature (C)
    fallback : float
        Efficiency used when `mat` is NaN, normally the configured constant

    Returns
    -------
    float
        Carbon retention efficiency (dimensionless)
    """
    if np.isnan(mat):
        return fallback
    if mat < MAT_COLD_THRESHOLD:
        return 0.0064 * mat + 0.45
    if mat <= MAT_WARM_THRESHOLD:
        return -0.004 * mat + 0.46
    return 0.025 * mat + 0.037
