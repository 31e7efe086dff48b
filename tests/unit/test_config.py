"""Unit tests for simulation configuration parsing."""

from datetime import date

import numpy as np
import pytest
import toml
import yaml
from numpy.testing import assert_allclose

from cnpflow.config import FlowConfig, RateConfig, SimulationConfig
from cnpflow.errors import ConfigurationError
from cnpflow.process.functions import Constant, LayerArray, TemperatureModifiedRate


def _config_dict():
    return {
        "simulation": {"start_date": "2001-01-01", "n_days": 10, "n_layers": 2},
        "weather": {"mat": 10.0},
        "solutes": {"no3": [10.0, 5.0], "nh4": [2.0, 1.0], "labile_p": 1.0},
        "pools": [
            {"name": "Humic", "c": [30000.0, 20000.0], "n": [2500.0, 1600.0], "p": [300.0, 200.0]},
            {"name": "Microbial", "c": [400.0, 200.0], "n": [50.0, 25.0], "p": [5.0, 2.5]},
        ],
        "flows": [
            {
                "name": "HumicToMicrobial",
                "source": "Humic",
                "destinations": ["Microbial"],
                "fractions": [1.0],
                "rate": 0.00015,
                "co2_efficiency": 0.4,
            },
            {
                "name": "MicrobialToHumic",
                "source": "Microbial",
                "destinations": ["Humic", "Microbial"],
                "fractions": [0.6, 0.4],
                "rate": {"base": 0.0095, "soil_temperature": [15.0, 12.0]},
                "co2_efficiency": 0.4,
                "p_policy": {"check_mass_balance": True},
            },
        ],
    }


class TestSimulationConfig:
    def test_from_dict(self):
        config = SimulationConfig.from_dict(_config_dict())

        assert config.start_date == date(2001, 1, 1)
        assert config.n_days == 10
        assert config.n_layers == 2
        assert [p.name for p in config.pools] == ["Humic", "Microbial"]
        assert config.flows[1].p_policy.check_mass_balance
        assert not config.flows[1].p_policy.limit_supply
        assert config.weather.mat == 10.0

    def test_missing_key(self):
        data = _config_dict()
        del data["solutes"]["nh4"]
        with pytest.raises(ConfigurationError, match="nh4"):
            SimulationConfig.from_dict(data)

    def test_duplicate_pools(self):
        data = _config_dict()
        data["pools"].append({"name": "Humic"})
        with pytest.raises(ConfigurationError, match="Duplicate"):
            SimulationConfig.from_dict(data)

    def test_invalid_date(self):
        data = _config_dict()
        data["simulation"]["start_date"] = "not-a-date"
        with pytest.raises(ConfigurationError, match="date"):
            SimulationConfig.from_dict(data)

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "profile.yaml"
        path.write_text(yaml.safe_dump(_config_dict()))

        config = SimulationConfig.from_file(path)

        assert len(config.flows) == 2

    def test_toml_file(self, tmp_path):
        path = tmp_path / "profile.toml"
        path.write_text(toml.dumps(_config_dict()))

        config = SimulationConfig.from_file(path)

        assert config.flows[0].name == "HumicToMicrobial"
        assert config.start_date == date(2001, 1, 1)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text("{}")
        with pytest.raises(ConfigurationError, match="Unsupported"):
            SimulationConfig.from_file(path)

    def test_build(self):
        sim = SimulationConfig.from_dict(_config_dict()).build()

        assert len(sim.structure) == 2
        assert set(sim.solutes) == {"no3", "nh4", "labile_p"}
        assert_allclose(sim.solutes["labile_p"].kgha, [1.0, 1.0])
        assert sim.clock.today == date(2001, 1, 1)
        assert sim.weather.mat == 10.0
        flow = sim.flows[0]
        assert flow.source is sim.structure.find("Humic")
        assert flow.efficiency == pytest.approx(0.42)
        assert flow.catm.shape == (2,)

    def test_build_unknown_source(self):
        data = _config_dict()
        data["flows"][0]["source"] = "Inert"
        with pytest.raises(ConfigurationError, match="Inert"):
            SimulationConfig.from_dict(data).build()

    def test_build_wrong_layer_count(self):
        data = _config_dict()
        data["pools"][0]["c"] = [1.0, 2.0, 3.0]
        with pytest.raises(ConfigurationError, match="shape"):
            SimulationConfig.from_dict(data).build()

    def test_weather_from_met_csv(self, tmp_path):
        import pandas as pd

        idx = pd.date_range("2001-01-01", periods=365, freq="D")
        met = pd.DataFrame({"tmin": np.full(365, 0.0), "tmax": np.full(365, 20.0)}, index=idx)
        met_csv = tmp_path / "met.csv"
        met.to_csv(met_csv)

        data = _config_dict()
        data["weather"] = {"met_csv": str(met_csv)}
        sim = SimulationConfig.from_dict(data).build()

        assert sim.weather.mat == pytest.approx(10.0)


class TestFlowConfig:
    def test_length_mismatch(self):
        data = _config_dict()["flows"][1]
        data["fractions"] = [1.0]
        with pytest.raises(ConfigurationError, match="fractions"):
            FlowConfig.from_dict(data)

    @pytest.mark.parametrize(
        "value, kind",
        [
            (0.1, Constant),
            ([0.1, 0.2], LayerArray),
            ({"value": 0.1}, Constant),
            ({"base": 0.1, "soil_temperature": [10.0, 5.0]}, TemperatureModifiedRate),
        ],
    )
    def test_rate_forms(self, value, kind):
        assert isinstance(RateConfig.from_value(value).build(), kind)
