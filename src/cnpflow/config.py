"""
Simulation configuration parsing and validation.

Provides YAML or TOML configuration for a soil profile, its pools and
solutes, and the flows between the pools.

Example (YAML):

    simulation:
      start_date: 2001-01-01
      n_days: 365
      n_layers: 2
    weather:
      mat: 11.5
    solutes:
      no3: [10.0, 5.0]
      nh4: [2.0, 1.0]
    pools:
      - {name: Humic, c: [30000, 20000], n: [2500, 1600], p: [300, 200]}
      - {name: Microbial, c: [400, 200], n: [50, 25], p: [5, 2.5]}
    flows:
      - name: HumicToMicrobial
        source: Humic
        destinations: [Microbial]
        fractions: [1.0]
        rate: 0.00015
        co2_efficiency: 0.4
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pandas as pd
import toml
import yaml

from cnpflow.errors import ConfigurationError
from cnpflow.process.drivers import Clock, Weather
from cnpflow.process.flow import OrganicFlow, PhosphorusPolicy
from cnpflow.process.functions import (
    Constant,
    LayerArray,
    LayerFunction,
    TemperatureModifiedRate,
)
from cnpflow.process.state import OrganicPool, PoolStructure, Solute

LayerValues = Union[float, List[float]]


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ConfigurationError(f"Missing required key '{key}' in {where}")
    return data[key]


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid date: {value!r}") from exc


@dataclass
class PoolConfig:
    """Organic pool initial state."""

    name: str
    c: LayerValues = 0.0
    n: LayerValues = 0.0
    p: LayerValues = 0.0
    layer_fraction: LayerValues = 1.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        return cls(
            name=_require(data, "name", "pool"),
            c=data.get("c", 0.0),
            n=data.get("n", 0.0),
            p=data.get("p", 0.0),
            layer_fraction=data.get("layer_fraction", 1.0),
        )


@dataclass
class SoluteConfig:
    """Mineral nutrient initial amounts."""

    no3: LayerValues
    nh4: LayerValues
    labile_p: Optional[LayerValues] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SoluteConfig":
        return cls(
            no3=_require(data, "no3", "solutes"),
            nh4=_require(data, "nh4", "solutes"),
            labile_p=data.get("labile_p"),
        )


@dataclass
class RateConfig:
    """Daily decomposition rate.

    Either a constant, one value per layer, or a base rate modified by
    per-layer soil temperature.
    """

    value: Optional[LayerValues] = None
    base: Optional[float] = None
    soil_temperature: Optional[List[float]] = None

    @classmethod
    def from_value(cls, data: Any) -> "RateConfig":
        if isinstance(data, dict):
            if "base" in data:
                return cls(
                    base=float(data["base"]),
                    soil_temperature=_require(data, "soil_temperature", "rate"),
                )
            return cls(value=_require(data, "value", "rate"))
        return cls(value=data)

    def build(self) -> LayerFunction:
        if self.base is not None:
            return TemperatureModifiedRate(
                self.base, np.asarray(self.soil_temperature, dtype=np.float64)
            )
        if isinstance(self.value, (list, tuple)):
            return LayerArray(self.value)
        return Constant(self.value)


@dataclass
class FlowConfig:
    """One flow from a source pool to weighted destinations."""

    name: str
    source: str
    destinations: List[str]
    fractions: List[float]
    rate: RateConfig
    co2_efficiency: float
    p_policy: PhosphorusPolicy = field(default_factory=PhosphorusPolicy)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FlowConfig":
        name = _require(data, "name", "flow")
        where = f"flow '{name}'"
        destinations = list(_require(data, "destinations", where))
        fractions = [float(f) for f in _require(data, "fractions", where)]
        if len(destinations) != len(fractions):
            raise ConfigurationError(
                f"{where}: {len(destinations)} destinations but {len(fractions)} fractions"
            )
        policy = data.get("p_policy", {}) or {}
        return cls(
            name=name,
            source=_require(data, "source", where),
            destinations=destinations,
            fractions=fractions,
            rate=RateConfig.from_value(_require(data, "rate", where)),
            co2_efficiency=float(_require(data, "co2_efficiency", where)),
            p_policy=PhosphorusPolicy(
                limit_supply=bool(policy.get("limit_supply", False)),
                check_mass_balance=bool(policy.get("check_mass_balance", False)),
            ),
        )


@dataclass
class WeatherConfig:
    """Mean annual temperature, given directly or from a daily met CSV."""

    mat: Optional[float] = None
    met_csv: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherConfig":
        return cls(
            mat=float(data["mat"]) if data.get("mat") is not None else None,
            met_csv=Path(data["met_csv"]) if data.get("met_csv") else None,
        )

    def build(self) -> Optional[Weather]:
        if self.met_csv is not None:
            met = pd.read_csv(self.met_csv, index_col=0, parse_dates=True)
            return Weather.from_daily(met)
        if self.mat is not None:
            return Weather(mat=self.mat)
        return None


@dataclass
class Simulation:
    """Live model objects built from a SimulationConfig."""

    structure: PoolStructure
    solutes: Dict[str, Solute]
    flows: List[OrganicFlow]
    clock: Clock
    weather: Optional[Weather]
    n_days: int
    n_layers: int


@dataclass
class SimulationConfig:
    """Complete simulation configuration."""

    start_date: date
    n_days: int
    n_layers: int
    pools: List[PoolConfig]
    solutes: SoluteConfig
    flows: List[FlowConfig]
    weather: Optional[WeatherConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        sim = _require(data, "simulation", "config")
        pools = [PoolConfig.from_dict(p) for p in _require(data, "pools", "config")]
        names = [p.name for p in pools]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ConfigurationError(f"Duplicate pool names: {duplicated}")

        return cls(
            start_date=_as_date(_require(sim, "start_date", "simulation")),
            n_days=int(sim.get("n_days", 365)),
            n_layers=int(_require(sim, "n_layers", "simulation")),
            pools=pools,
            solutes=SoluteConfig.from_dict(_require(data, "solutes", "config")),
            flows=[FlowConfig.from_dict(f) for f in _require(data, "flows", "config")],
            weather=WeatherConfig.from_dict(data["weather"]) if data.get("weather") else None,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SimulationConfig":
        """Load from a .yaml/.yml or .toml file."""
        path = Path(path)
        suffix = path.suffix.lower()
        with open(path, "r") as f:
            if suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif suffix == ".toml":
                data = toml.load(f)
            else:
                raise ConfigurationError(f"Unsupported config format: {path.suffix}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} does not contain a mapping")
        return cls.from_dict(data)

    def build(self) -> Simulation:
        """Create pools, solutes, drivers and initialised flows."""
        k = self.n_layers
        try:
            structure = PoolStructure(
                OrganicPool(
                    name=p.name, n_layers=k, c=p.c, n=p.n, p=p.p, layer_fraction=p.layer_fraction
                )
                for p in self.pools
            )
            solutes = {
                "no3": Solute("NO3", k, self.solutes.no3),
                "nh4": Solute("NH4", k, self.solutes.nh4),
            }
            if self.solutes.labile_p is not None:
                solutes["labile_p"] = Solute("LabileP", k, self.solutes.labile_p)
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        clock = Clock(self.start_date)
        weather = self.weather.build() if self.weather is not None else None

        flows = []
        for fc in self.flows:
            source = structure.find(fc.source)
            if source is None:
                raise ConfigurationError(f"Flow '{fc.name}': unknown source pool '{fc.source}'")
            flow = OrganicFlow(
                name=fc.name,
                source=source,
                destination_names=fc.destinations,
                destination_fractions=fc.fractions,
                rate=fc.rate.build(),
                co2_efficiency=fc.co2_efficiency,
                structure=structure,
                no3=solutes["no3"],
                nh4=solutes["nh4"],
                labile_p=solutes.get("labile_p"),
                weather=weather,
                clock=clock,
                p_policy=fc.p_policy,
            )
            flow.initialise(k)
            flows.append(flow)

        return Simulation(
            structure=structure,
            solutes=solutes,
            flows=flows,
            clock=clock,
            weather=weather,
            n_days=self.n_days,
            n_layers=k,
        )
