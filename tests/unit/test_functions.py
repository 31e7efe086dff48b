"""Unit tests for rate/efficiency functions and drivers."""

from datetime import date

import numpy as np
import pandas as pd
import pytest

from cnpflow.process.drivers import Clock, Weather
from cnpflow.process.functions import (
    Constant,
    LayerArray,
    LayerFunction,
    TemperatureModifiedRate,
    as_function,
)


class TestFunctions:
    def test_constant_ignores_layer(self):
        f = Constant(0.4)
        assert f.value() == 0.4
        assert f.value(7) == 0.4

    def test_layer_array(self):
        f = LayerArray([0.1, 0.2, 0.3])
        assert f.value(2) == pytest.approx(0.3)

    def test_layer_array_needs_index(self):
        with pytest.raises(IndexError):
            LayerArray([0.1]).value()

    def test_temperature_modified_rate_tracks_soil_temperature(self):
        """Updating the temperature array in place changes the next rate."""
        tsoil = np.array([20.0, -10.0])
        f = TemperatureModifiedRate(0.01, tsoil)

        warm = f.value(0)
        assert f.value(1) == 0.0
        assert warm > 0.01

        tsoil[0] = 5.0
        assert f.value(0) < warm

    def test_as_function(self):
        assert isinstance(as_function(0.2), Constant)
        assert isinstance(as_function([0.1, 0.2]), LayerArray)
        const = Constant(1.0)
        assert as_function(const) is const
        assert isinstance(const, LayerFunction)


class TestClock:
    def test_advance_crosses_year(self):
        clock = Clock(date(2001, 12, 31))
        assert clock.advance().year == 2002
        clock.reset()
        assert clock.today == date(2001, 12, 31)


class TestWeather:
    def test_default_mat_is_nan(self):
        assert np.isnan(Weather().mat)

    def test_from_daily(self):
        """MAT is the mean of annual means of daily mean temperature."""
        idx = pd.date_range("2001-01-01", "2002-12-31", freq="D")
        tmin = np.where(idx.year == 2001, 5.0, 9.0)
        met = pd.DataFrame({"tmin": tmin, "tmax": tmin + 10.0}, index=idx)

        weather = Weather.from_daily(met)

        # 2001 mean 10.0, 2002 mean 14.0
        assert weather.mat == pytest.approx(12.0)

    def test_from_daily_missing_columns(self):
        met = pd.DataFrame({"tmin": [1.0]}, index=pd.date_range("2001-01-01", periods=1))
        with pytest.raises(ValueError, match="tmax"):
            Weather.from_daily(met)
