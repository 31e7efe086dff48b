"""Typed state containers for organic matter flow modeling.

Provides dataclass-based containers for:
- OrganicPool: Per-layer carbon, nitrogen and phosphorus of one pool
- Solute: Per-layer mineral nutrient amounts (NO3, NH4, labile P)
- FlowResults: Per-layer outputs of one flow for the current day
- PoolStructure: Name lookup for the pools of a soil profile

All per-layer arrays have shape (n_layers,) and dtype float64 so they can
be passed straight to the numba kernels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

__all__ = [
    "OrganicPool",
    "Solute",
    "FlowResults",
    "PoolStructure",
]


def _as_layers(values: ArrayLike, n_layers: int, name: str) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(n_layers, float(arr), dtype=np.float64)
    if arr.shape != (n_layers,):
        raise ValueError(f"{name} must have shape ({n_layers},), got {arr.shape}")
    return arr


@dataclass
class OrganicPool:
    """Carbon and nutrients held in one organic matter pool.

    Attributes
    ----------
    name : str
        Pool name used by flows to find their destinations
    n_layers : int
        Number of soil layers
    c : NDArray[np.float64]
        Carbon (kg/ha)
    n : NDArray[np.float64]
        Nitrogen (kg/ha)
    p : NDArray[np.float64]
        Phosphorus (kg/ha)
    layer_fraction : NDArray[np.float64]
        Fraction of each layer occupied by the pool [0, 1]. Residue pools
        that only touch part of a layer use values below 1.
    """

    name: str
    n_layers: int
    c: NDArray[np.float64] = field(default=None)
    n: NDArray[np.float64] = field(default=None)
    p: NDArray[np.float64] = field(default=None)
    layer_fraction: NDArray[np.float64] = field(default=None)

    def __post_init__(self):
        """Initialize arrays with zeros (full layer occupancy) if not provided."""
        k = self.n_layers
        self.c = _as_layers(0.0 if self.c is None else self.c, k, "c")
        self.n = _as_layers(0.0 if self.n is None else self.n, k, "n")
        self.p = _as_layers(0.0 if self.p is None else self.p, k, "p")
        self.layer_fraction = _as_layers(
            1.0 if self.layer_fraction is None else self.layer_fraction, k, "layer_fraction"
        )

    def add(self, layer, dc, dn, dp) -> None:
        """Adjust carbon, nitrogen and phosphorus of one or more layers.

        Parameters
        ----------
        layer : int, slice or index array
            Layer(s) to change
        dc, dn, dp : float or NDArray[np.float64]
            Change in carbon, nitrogen, phosphorus (kg/ha); negative removes
        """
        self.c[layer] += dc
        self.n[layer] += dn
        self.p[layer] += dp

    def copy(self) -> OrganicPool:
        """Create a deep copy of the pool."""
        return OrganicPool(
            name=self.name,
            n_layers=self.n_layers,
            c=self.c.copy(),
            n=self.n.copy(),
            p=self.p.copy(),
            layer_fraction=self.layer_fraction.copy(),
        )


@dataclass
class Solute:
    """Mineral nutrient amounts per layer.

    Flows write into `kgha` in place, so every holder of the array sees
    the change immediately.

    Attributes
    ----------
    name : str
        Solute name (e.g. "NO3", "NH4", "LabileP")
    n_layers : int
        Number of soil layers
    kgha : NDArray[np.float64]
        Amount per layer (kg/ha)
    """

    name: str
    n_layers: int
    kgha: NDArray[np.float64] = field(default=None)

    def __post_init__(self):
        self.kgha = _as_layers(0.0 if self.kgha is None else self.kgha, self.n_layers, "kgha")

    def copy(self) -> Solute:
        """Create a deep copy of the solute."""
        return Solute(name=self.name, n_layers=self.n_layers, kgha=self.kgha.copy())


@dataclass
class FlowResults:
    """Per-layer outputs of a flow for the most recent day.

    Attributes
    ----------
    n_layers : int
        Number of soil layers
    mineralised_n : NDArray[np.float64]
        Net N mineralisation (kg/ha); negative is immobilisation
    mineralised_p : NDArray[np.float64]
        Net P mineralisation (kg/ha); negative is immobilisation
    catm : NDArray[np.float64]
        Carbon lost to the atmosphere as CO2 (kg/ha)
    """

    n_layers: int
    mineralised_n: NDArray[np.float64] = field(default=None)
    mineralised_p: NDArray[np.float64] = field(default=None)
    catm: NDArray[np.float64] = field(default=None)

    def __post_init__(self):
        n = self.n_layers
        if self.mineralised_n is None:
            self.mineralised_n = np.zeros(n, dtype=np.float64)
        if self.mineralised_p is None:
            self.mineralised_p = np.zeros(n, dtype=np.float64)
        if self.catm is None:
            self.catm = np.zeros(n, dtype=np.float64)


class PoolStructure:
    """Name lookup over the organic pools of one soil profile.

    Example:
        structure = PoolStructure([hum, bio, fom])
        structure.find("Microbial")  # -> OrganicPool or None
    """

    def __init__(self, pools: Iterable[OrganicPool] = ()):
        self._pools: dict[str, OrganicPool] = {}
        for pool in pools:
            self.add(pool)

    def add(self, pool: OrganicPool) -> None:
        if pool.name in self._pools:
            raise ValueError(f"Duplicate pool name: {pool.name}")
        self._pools[pool.name] = pool

    def find(self, name: str) -> OrganicPool | None:
        return self._pools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._pools

    def __iter__(self) -> Iterator[OrganicPool]:
        return iter(self._pools.values())

    def __len__(self) -> int:
        return len(self._pools)
