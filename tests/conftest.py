"""
Shared pytest fixtures and helpers for cnpflow tests.

This module provides:
- Tolerance settings for mass balance comparisons
- Small soil profiles (pools, solutes, structure) to run flows against
- A flow factory with sensible defaults
"""

from datetime import date
from typing import Dict

import pytest

from cnpflow.process.drivers import Clock
from cnpflow.process.flow import OrganicFlow
from cnpflow.process.state import OrganicPool, PoolStructure, Solute


# =============================================================================
# Tolerance Settings
# =============================================================================

DEFAULT_RTOL = 1e-9
DEFAULT_ATOL = 1e-9


@pytest.fixture
def tolerance() -> Dict[str, float]:
    """Default tolerance settings for floating-point comparisons."""
    return {"rtol": DEFAULT_RTOL, "atol": DEFAULT_ATOL}


# =============================================================================
# Profile Fixtures
# =============================================================================

N_LAYERS = 3


@pytest.fixture
def n_layers() -> int:
    return N_LAYERS


@pytest.fixture
def humic() -> OrganicPool:
    return OrganicPool(
        name="Humic",
        n_layers=N_LAYERS,
        c=[30000.0, 20000.0, 8000.0],
        n=[2500.0, 1600.0, 600.0],
        p=[300.0, 200.0, 80.0],
    )


@pytest.fixture
def microbial() -> OrganicPool:
    return OrganicPool(
        name="Microbial",
        n_layers=N_LAYERS,
        c=[400.0, 200.0, 50.0],
        n=[50.0, 25.0, 6.25],
        p=[5.0, 2.5, 0.6],
    )


@pytest.fixture
def fom() -> OrganicPool:
    """Fresh organic matter with a wide C:N, occupying part of the top layer."""
    return OrganicPool(
        name="FOMCellulose",
        n_layers=N_LAYERS,
        c=[2000.0, 500.0, 0.0],
        n=[20.0, 5.0, 0.0],
        p=[2.0, 0.5, 0.0],
        layer_fraction=[0.5, 1.0, 1.0],
    )


@pytest.fixture
def no3() -> Solute:
    return Solute("NO3", N_LAYERS, [10.0, 5.0, 2.0])


@pytest.fixture
def nh4() -> Solute:
    return Solute("NH4", N_LAYERS, [2.0, 1.0, 0.5])


@pytest.fixture
def labile_p() -> Solute:
    return Solute("LabileP", N_LAYERS, [3.0, 2.0, 1.0])


@pytest.fixture
def structure(humic, microbial, fom) -> PoolStructure:
    return PoolStructure([humic, microbial, fom])


@pytest.fixture
def clock() -> Clock:
    return Clock(date(2001, 1, 1))


@pytest.fixture
def make_flow(structure, no3, nh4):
    """Factory for flows on the shared profile; keyword overrides pass through."""

    def _make(**kwargs) -> OrganicFlow:
        defaults = dict(
            name="HumicToMicrobial",
            source=structure.find("Humic"),
            destination_names=["Microbial"],
            destination_fractions=[1.0],
            rate=0.01,
            co2_efficiency=0.4,
            structure=structure,
            no3=no3,
            nh4=nh4,
        )
        defaults.update(kwargs)
        flow = OrganicFlow(**defaults)
        flow.initialise(defaults["source"].n_layers)
        return flow

    return _make


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast isolated unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks integration tests"
    )
    config.addinivalue_line(
        "markers", "conservation: mass balance verification"
    )
