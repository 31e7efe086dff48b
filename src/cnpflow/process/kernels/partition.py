"""Organic carbon and nutrient partitioning between pools.

Pure kernels for the gross outflow of a source pool, its split across
weighted destination pools, and the mineral-supply constraint that
scales the whole flow when destinations demand more nutrient than the
source and the mineral pools can provide.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange
from numpy.typing import NDArray

__all__ = [
    "divide",
    "supply_factor",
    "partition_flows",
]


@njit(cache=True)
def divide(numerator: float, denominator: float, default: float) -> float:
    """Return numerator / denominator, or `default` when the denominator is zero."""
    if denominator == 0.0:
        return default
    return numerator / denominator


@njit(cache=True)
def supply_factor(mineral_supply: float, demand: float, organic_release: float) -> float:
    """
    Fraction of a flow that mineral reserves can support.

    factor = clamp(mineral_supply / (demand - organic_release), 0, 1)

    Physical constraints:
        - 0 <= factor <= 1
        - factor = 1 when demand equals the organic release (zero denominator)

    Parameters
    ----------
    mineral_supply : float
        Mineral nutrient available to the flow (kg/ha)
    demand : float
        Total nutrient required by the destination pools (kg/ha)
    organic_release : float
        Nutrient released by the source pool (kg/ha)

    Returns
    -------
    float
        Supply limiting factor
    """
    factor = divide(mineral_supply, demand - organic_release, 1.0)
    if factor < 0.0:
        return 0.0
    if factor > 1.0:
        return 1.0
    return factor


# fastmath is off: NaN inputs must compare false, not be assumed away.
@njit(cache=True, parallel=True)
def partition_flows(
    rate: NDArray[np.float64],
    source_c: NDArray[np.float64],
    source_n: NDArray[np.float64],
    source_p: NDArray[np.float64],
    layer_fraction: NDArray[np.float64],
    dest_c: NDArray[np.float64],
    dest_n: NDArray[np.float64],
    dest_p: NDArray[np.float64],
    dest_fraction: NDArray[np.float64],
    efficiency: float,
    no3: NDArray[np.float64],
    nh4: NDArray[np.float64],
    labile_p: NDArray[np.float64],
    limit_p_supply: bool,
) -> tuple[
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
    NDArray[np.float64],
]:
    """
    Compute one day of carbon, nitrogen and phosphorus flow for every layer.

    Per layer i and destination j:

        C_out     = rate * C_src
        N_out     = C_out * N_src / C_src             (0 if C_src = 0)
        C_to[j]   = C_out * efficiency * fraction[j]
        N_to[j]   = C_to[j] * N_dst[j] / C_dst[j]     (0 if C_dst[j] = 0)
        N_supply  = N_out + (NO3 + NH4) * layer_fraction

    P follows the same form with labile P as the only mineral pool. When
    destination demand exceeds supply every flow of the layer is scaled by
    the supply factor. The P factor only takes part when `limit_p_supply`
    is set.

    Physical constraints:
        - C_out = sum(C_to) + catm for every layer
        - catm >= 0 when 0 <= efficiency * sum(fraction) <= 1
        - 0 <= supply factor <= 1
        - Layers are independent; no state is mutated

    Parameters
    ----------
    rate : (n_layers,)
        Fraction of source carbon leaving the pool today
    source_c, source_n, source_p : (n_layers,)
        Source pool carbon, nitrogen, phosphorus (kg/ha)
    layer_fraction : (n_layers,)
        Fraction of each layer occupied by the source pool [0, 1]
    dest_c, dest_n, dest_p : (n_dest, n_layers)
        Destination pool carbon, nitrogen, phosphorus (kg/ha)
    dest_fraction : (n_dest,)
        Share of retained carbon sent to each destination
    efficiency : float
        Carbon retention efficiency (fraction of C_out kept in organic form)
    no3, nh4 : (n_layers,)
        Mineral nitrogen (kg/ha)
    labile_p : (n_layers,)
        Labile phosphorus (kg/ha), zeros when not modelled
    limit_p_supply : bool
        Whether phosphorus supply constrains the flow

    Returns
    -------
    c_out, n_out, p_out : (n_layers,)
        Scaled outflow from the source (kg/ha)
    c_to, n_to, p_to : (n_dest, n_layers)
        Scaled flow into each destination (kg/ha)
    n_to_total, p_to_total : (n_layers,)
        Scaled nutrient flow summed over destinations (kg/ha)
    factor : (n_layers,)
        Supply factor applied to the layer
    catm : (n_layers,)
        Carbon lost to the atmosphere (kg/ha)
    """
    n_layers = source_c.shape[0]
    n_dest = dest_fraction.shape[0]

    c_out = np.empty(n_layers, dtype=np.float64)
    n_out = np.empty(n_layers, dtype=np.float64)
    p_out = np.empty(n_layers, dtype=np.float64)
    c_to = np.empty((n_dest, n_layers), dtype=np.float64)
    n_to = np.empty((n_dest, n_layers), dtype=np.float64)
    p_to = np.empty((n_dest, n_layers), dtype=np.float64)
    n_to_total = np.empty(n_layers, dtype=np.float64)
    p_to_total = np.empty(n_layers, dtype=np.float64)
    factor = np.empty(n_layers, dtype=np.float64)
    catm = np.empty(n_layers, dtype=np.float64)

    for i in prange(n_layers):
        c_src = rate[i] * source_c[i]
        n_src = divide(c_src * source_n[i], source_c[i], 0.0)
        p_src = divide(c_src * source_p[i], source_c[i], 0.0)

        n_dem = 0.0
        p_dem = 0.0
        for j in range(n_dest):
            c_to[j, i] = c_src * efficiency * dest_fraction[j]
            n_to[j, i] = divide(c_to[j, i] * dest_n[j, i], dest_c[j, i], 0.0)
            p_to[j, i] = divide(c_to[j, i] * dest_p[j, i], dest_c[j, i], 0.0)
            n_dem += n_to[j, i]
            p_dem += p_to[j, i]

        # Pools that only occupy part of a layer (e.g. surface residue)
        # only see that part of the mineral pools.
        mineral_n = (no3[i] + nh4[i]) * layer_fraction[i]
        mineral_p = labile_p[i] * layer_fraction[i]

        f = 1.0
        if n_dem > n_src + mineral_n:
            f = supply_factor(mineral_n, n_dem, n_src)
        if p_dem > p_src + mineral_p:
            p_factor = supply_factor(mineral_p, p_dem, p_src)
            if not limit_p_supply:
                p_factor = 1.0
            if p_factor < f:
                f = p_factor

        c_retained = 0.0
        if f < 1.0:
            for j in range(n_dest):
                c_to[j, i] *= f
                n_to[j, i] *= f
                p_to[j, i] *= f
            n_dem *= f
            p_dem *= f
            c_src *= f
            n_src *= f
            p_src *= f
        for j in range(n_dest):
            c_retained += c_to[j, i]

        c_out[i] = c_src
        n_out[i] = n_src
        p_out[i] = p_src
        n_to_total[i] = n_dem
        p_to_total[i] = p_dem
        factor[i] = f
        catm[i] = c_src - c_retained

    return c_out, n_out, p_out, c_to, n_to, p_to, n_to_total, p_to_total, factor, catm
