"""Day loop orchestration for organic matter flows.

Steps a set of flows through consecutive days and records their per-layer
outputs. Flows run in the order given, so a pool filled by one flow is
visible to the next flow on the same day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from cnpflow.logging import get_logger

if TYPE_CHECKING:
    from datetime import date

    from numpy.typing import NDArray

    from cnpflow.process.drivers import Clock
    from cnpflow.process.flow import OrganicFlow

__all__ = ["DailyOutput", "run_daily_loop", "step_day"]

logger = get_logger("loop")

OUTPUT_VARIABLES = ("mineralised_n", "mineralised_p", "catm")


@dataclass
class DailyOutput:
    """Container for daily flow output arrays.

    Each variable maps flow name -> array of shape (n_days, n_layers).

    Attributes
    ----------
    n_days : int
        Number of simulation days
    n_layers : int
        Number of soil layers
    flow_names : list[str]
        Flows recorded, in run order
    dates : list[date]
        Simulated date of each day
    mineralised_n : dict[str, NDArray[np.float64]]
        Net N mineralisation (kg/ha)
    mineralised_p : dict[str, NDArray[np.float64]]
        Net P mineralisation (kg/ha)
    catm : dict[str, NDArray[np.float64]]
        Carbon lost to the atmosphere (kg/ha)
    """

    n_days: int
    n_layers: int
    flow_names: list[str]
    dates: list = field(default_factory=list)
    mineralised_n: dict[str, NDArray[np.float64]] = field(default=None)
    mineralised_p: dict[str, NDArray[np.float64]] = field(default=None)
    catm: dict[str, NDArray[np.float64]] = field(default=None)

    def __post_init__(self):
        """Initialize output arrays."""
        shape = (self.n_days, self.n_layers)
        for var in OUTPUT_VARIABLES:
            if getattr(self, var) is None:
                setattr(
                    self, var, {name: np.zeros(shape, dtype=np.float64) for name in self.flow_names}
                )

    def record(self, day_idx: int, day_out: dict[str, dict[str, NDArray[np.float64]]]) -> None:
        for name, values in day_out.items():
            for var in OUTPUT_VARIABLES:
                getattr(self, var)[name][day_idx, :] = values[var]

    def to_frame(self, flow_name: str) -> pd.DataFrame:
        """Daily table for one flow: one column per variable and layer."""
        if flow_name not in self.flow_names:
            raise KeyError(f"No output recorded for flow '{flow_name}'")
        columns = {}
        for var in OUTPUT_VARIABLES:
            arr = getattr(self, var)[flow_name]
            for layer in range(self.n_layers):
                columns[f"{var}_{layer}"] = arr[:, layer]
        index = pd.DatetimeIndex(self.dates, name="date") if self.dates else None
        return pd.DataFrame(columns, index=index)

    def totals(self) -> pd.DataFrame:
        """Daily profile totals summed over layers and flows."""
        data = {
            var: np.sum([getattr(self, var)[n].sum(axis=1) for n in self.flow_names], axis=0)
            if self.flow_names else np.zeros(self.n_days)
            for var in OUTPUT_VARIABLES
        }
        index = pd.DatetimeIndex(self.dates, name="date") if self.dates else None
        return pd.DataFrame(data, index=index)


def step_day(flows: Sequence[OrganicFlow]) -> dict[str, dict[str, NDArray[np.float64]]]:
    """Run every flow once and return copies of their per-layer outputs."""
    day_out = {}
    for flow in flows:
        flow.do_flow()
        day_out[flow.name] = {var: np.array(getattr(flow, var)) for var in OUTPUT_VARIABLES}
    return day_out


def run_daily_loop(
    flows: Sequence[OrganicFlow],
    clock: Clock,
    n_days: int,
    progress: bool = False,
) -> DailyOutput:
    """Run flows for `n_days`, advancing `clock` after each day.

    Flows must already be initialised.

    Parameters
    ----------
    flows : sequence of OrganicFlow
        Flows to run each day, in order
    clock : Clock
        Simulated date shared with the flows
    n_days : int
        Number of days to simulate
    progress : bool
        Show a tqdm progress bar

    Returns
    -------
    DailyOutput
        Per-day, per-layer outputs of every flow
    """
    n_layers = flows[0].source.c.shape[0] if flows else 0
    output = DailyOutput(
        n_days=n_days, n_layers=n_layers, flow_names=[f.name for f in flows]
    )

    logger.info("loop_start", n_days=n_days, n_flows=len(flows), start=str(clock.today))

    days = range(n_days)
    if progress:
        days = tqdm(days, desc="Days", unit="day")

    for day_idx in days:
        today: date = clock.today
        output.dates.append(today)
        output.record(day_idx, step_day(flows))
        clock.advance()

    logger.info("loop_complete", n_days=n_days, end=str(clock.today))
    return output
