"""Rate and efficiency functions consumed by organic flows.

A function exposes ``value(layer)``; constants ignore the layer index.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

from cnpflow.process.kernels.rate_modifiers import temperature_factor

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

__all__ = [
    "LayerFunction",
    "Constant",
    "LayerArray",
    "TemperatureModifiedRate",
    "as_function",
]


@runtime_checkable
class LayerFunction(Protocol):
    def value(self, layer: int = -1) -> float: ...


class Constant:
    """Same value for every layer."""

    def __init__(self, value: float):
        self._value = float(value)

    def value(self, layer: int = -1) -> float:
        return self._value

    def __repr__(self) -> str:
        return f"Constant({self._value!r})"


class LayerArray:
    """One value per layer."""

    def __init__(self, values: ArrayLike):
        self.values = np.asarray(values, dtype=np.float64)

    def value(self, layer: int = -1) -> float:
        if layer < 0:
            raise IndexError("LayerArray needs a layer index")
        return float(self.values[layer])

    def __repr__(self) -> str:
        return f"LayerArray({self.values.tolist()!r})"


class TemperatureModifiedRate:
    """Potential decomposition rate scaled by soil temperature.

    rate = base * a(T_layer), with a() the RothC temperature modifier.

    `soil_temperature` is read on every call, so a host that updates the
    array in place changes the rate on the next day.
    """

    def __init__(self, base: float, soil_temperature: NDArray[np.float64]):
        self.base = float(base)
        self.soil_temperature = soil_temperature

    def value(self, layer: int = -1) -> float:
        if layer < 0:
            raise IndexError("TemperatureModifiedRate needs a layer index")
        tsoil = np.asarray(self.soil_temperature[layer:layer + 1], dtype=np.float64)
        return self.base * float(temperature_factor(tsoil)[0])


def as_function(value) -> LayerFunction:
    """Wrap numbers and sequences as functions; pass functions through."""
    if isinstance(value, LayerFunction):
        return value
    if np.ndim(value) == 0:
        return Constant(value)
    return LayerArray(value)
