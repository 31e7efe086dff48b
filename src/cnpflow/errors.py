"""Exception hierarchy for cnpflow.

All failures are immediate and synchronous. Nothing is retried.
"""

from __future__ import annotations

__all__ = [
    "CnpFlowError",
    "ConfigurationError",
    "DestinationNotFoundError",
    "MassBalanceError",
    "FlowStateError",
]


class CnpFlowError(Exception):
    """Base class for all cnpflow errors."""


class ConfigurationError(CnpFlowError, ValueError):
    """Invalid flow or simulation configuration."""


class DestinationNotFoundError(ConfigurationError, LookupError):
    """A named destination pool could not be found in the pool structure."""

    def __init__(self, name: str, flow: str | None = None):
        self.name = name
        self.flow = flow
        msg = f"Cannot find destination pool with name: {name}"
        if flow:
            msg += f" (flow '{flow}')"
        super().__init__(msg)


class MassBalanceError(CnpFlowError, ArithmeticError):
    """Mineral nutrient reserves cannot cover an immobilisation demand."""

    def __init__(self, flow: str, layer: int, nutrient: str, deficit: float):
        self.flow = flow
        self.layer = layer
        self.nutrient = nutrient
        self.deficit = deficit
        super().__init__(
            f"Insufficient mineral {nutrient} for immobilisation demand for C flow "
            f"{flow} (layer {layer}, deficit {deficit:.6g} kg/ha)"
        )


class FlowStateError(CnpFlowError, RuntimeError):
    """Flow used outside its initialise -> do_flow lifecycle."""
