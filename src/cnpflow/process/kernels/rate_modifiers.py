"""Decomposition rate modifiers.

Pure kernels that scale a potential decomposition rate by soil
conditions.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange
from numpy.typing import NDArray

__all__ = ["temperature_factor"]


# fastmath is off: NaN temperatures must compare false, not be assumed away.
@njit(cache=True, parallel=True)
def temperature_factor(
    tsoil: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Temperature rate-modifying factor for decomposition.

    a = 47.91 / (1 + exp(106.06 / (T + 18.27)))    for T >= -5 C
    a = 0                                          for T < -5 C

    Physical constraints:
        - a >= 0
        - a increases monotonically with temperature
        - a ~ 1 near 9.25 C

    Parameters
    ----------
    tsoil : (n_layers,)
        Soil temperature (C)

    Returns
    -------
    factor : (n_layers,)
        Rate multiplier (dimensionless)

    References
    ----------
    Coleman and Jenkinson (1996) RothC-26.3, rate modifying factor for
    temperature
    """
    n = tsoil.shape[0]
    factor = np.empty(n, dtype=np.float64)

    for i in prange(n):
        if tsoil[i] < -5.0:
            factor[i] = 0.0
        else:
            factor[i] = 47.91 / (np.exp(106.06 / (tsoil[i] + 18.27)) + 1.0)

    return factor
