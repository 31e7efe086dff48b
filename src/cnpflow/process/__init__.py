"""
cnpflow process package

Organic matter flow modeling with:
- Pure numerical kernels (numba JIT)
- Typed state containers
- Lazy destination lookup and year-keyed efficiency caching
- Structured logging
"""

from cnpflow.process import kernels
from cnpflow.process.drivers import Clock, Weather
from cnpflow.process.flow import P_MODEL_INCOMPLETE, OrganicFlow, PhosphorusPolicy
from cnpflow.process.functions import Constant, LayerArray, TemperatureModifiedRate
from cnpflow.process.loop import DailyOutput, run_daily_loop, step_day
from cnpflow.process.state import FlowResults, OrganicPool, PoolStructure, Solute

__all__ = [
    "kernels",
    "OrganicPool",
    "Solute",
    "FlowResults",
    "PoolStructure",
    "OrganicFlow",
    "PhosphorusPolicy",
    "P_MODEL_INCOMPLETE",
    "Constant",
    "LayerArray",
    "TemperatureModifiedRate",
    "Clock",
    "Weather",
    "DailyOutput",
    "run_daily_loop",
    "step_day",
]
