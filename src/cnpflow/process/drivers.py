"""Clock and weather drivers for flow simulations.

Flows only need two things from the outside world: the current simulated
date (to detect year boundaries) and a mean annual air temperature.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    import pandas as pd

__all__ = ["Clock", "Weather"]


class Clock:
    """Simulated calendar date, advanced one step at a time."""

    def __init__(self, start: date):
        self.start = start
        self.today = start

    def advance(self, days: int = 1) -> date:
        self.today = self.today + timedelta(days=days)
        return self.today

    def reset(self) -> None:
        self.today = self.start


class Weather:
    """Mean annual air temperature source.

    Attributes
    ----------
    mat : float
        Mean annual air temperature (C). NaN when unknown; flows then use
        their constant efficiency.
    """

    def __init__(self, mat: float = float("nan")):
        self.mat = float(mat)

    @classmethod
    def from_daily(cls, met: pd.DataFrame) -> Weather:
        """Build from a daily table with `tmin` and `tmax` columns (C).

        MAT is the mean of daily mean temperature, averaged first within
        each calendar year so partial years do not bias the result. The
        frame index must be a DatetimeIndex.
        """
        missing = {"tmin", "tmax"} - set(met.columns)
        if missing:
            raise ValueError(f"Daily met data is missing columns: {sorted(missing)}")

        tmean = (met["tmin"] + met["tmax"]) / 2.0
        annual = tmean.groupby(met.index.year).mean()
        if annual.empty:
            return cls()
        return cls(mat=float(np.nanmean(annual.to_numpy())))
