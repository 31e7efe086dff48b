"""Mineral nutrient reconciliation.

Pure kernel that settles the difference between the nutrient released by
a source pool and the nutrient taken up by its destinations against the
mineral pools (NH4 then NO3 for nitrogen, labile P for phosphorus).
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange
from numpy.typing import NDArray

__all__ = [
    "DEFICIT_TOLERANCE",
    "reconcile_mineral",
]

# Residual deficit (kg/ha) below which immobilisation counts as satisfied.
DEFICIT_TOLERANCE = 1e-5


# fastmath is off: NaN inputs must compare false, not be assumed away.
@njit(cache=True, parallel=True)
def reconcile_mineral(
    organic_release: NDArray[np.float64],
    demand: NDArray[np.float64],
    primary: NDArray[np.float64],
    secondary: NDArray[np.float64],
) -> tuple[
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
]:
    """
    Net mineralisation or immobilisation for every layer.

    Surplus (release >= demand):
        mineralised = release - demand, added to the primary pool
    Deficit (release < demand):
        drawn from the primary pool first, then the secondary pool,
        each limited to its non-negative amount;
        mineralised = -(drawn from primary + drawn from secondary)

    Physical constraints:
        - release + d_primary + d_secondary = demand - residual
        - Mineral pools are never drawn below zero
        - residual > 0 only when both mineral pools are exhausted

    Parameters
    ----------
    organic_release : (n_layers,)
        Nutrient leaving the source pool (kg/ha)
    demand : (n_layers,)
        Nutrient entering the destination pools (kg/ha)
    primary : (n_layers,)
        Mineral pool that receives mineralisation and is drawn first
        (NH4 for nitrogen, labile P for phosphorus)
    secondary : (n_layers,)
        Mineral pool drawn second (NO3 for nitrogen, zeros for phosphorus)

    Returns
    -------
    mineralised : (n_layers,)
        Net mineralisation (kg/ha); negative values are immobilisation
    d_primary : (n_layers,)
        Change to apply to the primary pool (kg/ha)
    d_secondary : (n_layers,)
        Change to apply to the secondary pool (kg/ha), never positive
    residual : (n_layers,)
        Demand left unmet after both pools are drained (kg/ha)
    """
    n = organic_release.shape[0]
    mineralised = np.empty(n, dtype=np.float64)
    d_primary = np.empty(n, dtype=np.float64)
    d_secondary = np.empty(n, dtype=np.float64)
    residual = np.empty(n, dtype=np.float64)

    for i in prange(n):
        if demand[i] <= organic_release[i]:
            mineralised[i] = organic_release[i] - demand[i]
            d_primary[i] = mineralised[i]
            d_secondary[i] = 0.0
            residual[i] = 0.0
        else:
            deficit = demand[i] - organic_release[i]

            from_primary = min(max(primary[i], 0.0), deficit)
            deficit -= from_primary
            from_secondary = min(max(secondary[i], 0.0), deficit)
            deficit -= from_secondary

            mineralised[i] = -from_primary - from_secondary
            d_primary[i] = -from_primary
            d_secondary[i] = -from_secondary
            residual[i] = deficit

    return mineralised, d_primary, d_secondary, residual
