"""
Numerical kernels for organic carbon and nutrient flows.

Design Rules:
1. Functions take numpy arrays or scalars as input
2. Functions return numpy arrays or scalars as output
3. No file I/O, no `self`, no state mutation
4. All physical constraints documented in docstrings
5. Numba JIT compiled with cache=True for performance
"""

from cnpflow.process.kernels import (
    efficiency,
    mineral,
    partition,
    rate_modifiers,
)

__all__ = [
    "efficiency",
    "mineral",
    "partition",
    "rate_modifiers",
]
