"""Carbon and nutrient flow from one organic pool into its destinations.

An OrganicFlow moves a daily fraction of a source pool's carbon into one
or more destination pools. The carbon that is not retained is lost as
CO2. Nitrogen and phosphorus follow carbon at the source's ratios on the
way out and at each destination's ratios on the way in; the difference
is mineralised to, or immobilised from, the mineral pools of the layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Sequence

import numpy as np

from cnpflow.errors import (
    ConfigurationError,
    DestinationNotFoundError,
    FlowStateError,
    MassBalanceError,
)
from cnpflow.logging import get_logger
from cnpflow.process.functions import as_function
from cnpflow.process.kernels.efficiency import efficiency_from_mat
from cnpflow.process.kernels.mineral import DEFICIT_TOLERANCE, reconcile_mineral
from cnpflow.process.kernels.partition import partition_flows
from cnpflow.process.state import FlowResults

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from cnpflow.process.drivers import Clock, Weather
    from cnpflow.process.functions import LayerFunction
    from cnpflow.process.state import OrganicPool, PoolStructure, Solute

__all__ = [
    "PhosphorusPolicy",
    "P_MODEL_INCOMPLETE",
    "OrganicFlow",
]


@dataclass(frozen=True)
class PhosphorusPolicy:
    """Switches for the phosphorus constraints of a flow.

    Attributes
    ----------
    limit_supply : bool
        Scale the flow when destinations demand more P than the source
        and labile P can supply.
    check_mass_balance : bool
        Raise MassBalanceError when labile P cannot cover immobilisation.
    """

    limit_supply: bool = False
    check_mass_balance: bool = False


# Both P constraints stay off until the P model is fully operational.
P_MODEL_INCOMPLETE = PhosphorusPolicy()


class OrganicFlow:
    """Daily flow of C, N and P out of a source pool.

    Lifecycle: construct, ``initialise(n_layers)`` once, then ``do_flow()``
    once per simulated day. Destinations are looked up by name on the first
    ``do_flow()`` and cached for the life of the flow.

    Parameters
    ----------
    name : str
        Flow name used in diagnostics and errors
    source : OrganicPool
        Pool the flow draws from
    destination_names : sequence of str
        Names of destination pools in `structure`
    destination_fractions : sequence of float
        Share of retained carbon sent to each destination. Not required
        to sum to 1.
    rate : LayerFunction or float
        Fraction of source carbon leaving per day, per layer
    co2_efficiency : LayerFunction or float
        Constant carbon retention efficiency. Used whenever no weather is
        given, and as the fallback when MAT is NaN.
    structure : PoolStructure
        Pool lookup for destination names
    no3, nh4 : Solute
        Mineral nitrogen pools, changed in place
    labile_p : Solute, optional
        Labile phosphorus, changed in place. Treated as zero when absent.
    weather : Weather, optional
        Mean annual temperature source. When given, the efficiency comes
        from MAT and is refreshed once per simulated year.
    clock : Clock, optional
        Simulated date. Without a clock the wall-clock year is used.
    p_policy : PhosphorusPolicy
        Phosphorus constraint switches
    """

    def __init__(
        self,
        name: str,
        source: OrganicPool,
        destination_names: Sequence[str],
        destination_fractions: Sequence[float],
        rate: LayerFunction | float,
        co2_efficiency: LayerFunction | float,
        structure: PoolStructure,
        no3: Solute,
        nh4: Solute,
        labile_p: Solute | None = None,
        weather: Weather | None = None,
        clock: Clock | None = None,
        p_policy: PhosphorusPolicy = P_MODEL_INCOMPLETE,
    ):
        if len(destination_names) != len(destination_fractions):
            raise ConfigurationError(
                f"Flow '{name}': {len(destination_names)} destination names but "
                f"{len(destination_fractions)} destination fractions"
            )

        self.name = name
        self.source = source
        self.destination_names = tuple(destination_names)
        self.destination_fractions = np.asarray(destination_fractions, dtype=np.float64)
        self.rate = as_function(rate)
        self.co2_efficiency = as_function(co2_efficiency)
        self.structure = structure
        self.no3 = no3
        self.nh4 = nh4
        self.labile_p = labile_p
        self.weather = weather
        self.clock = clock
        self.p_policy = p_policy

        self._destinations: tuple[OrganicPool, ...] | None = None
        self._results: FlowResults | None = None
        self._efficiency = float("nan")
        self._cached_year: int | None = None
        self._log = get_logger("flow").bind(flow=name)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    @property
    def mineralised_n(self) -> NDArray[np.float64]:
        """N mineralised per layer on the last day (kg/ha)."""
        return self._read_only("mineralised_n")

    @property
    def mineralised_p(self) -> NDArray[np.float64]:
        """P mineralised per layer on the last day (kg/ha)."""
        return self._read_only("mineralised_p")

    @property
    def catm(self) -> NDArray[np.float64]:
        """Carbon lost to the atmosphere per layer on the last day (kg/ha)."""
        return self._read_only("catm")

    @property
    def efficiency(self) -> float:
        """Carbon retention efficiency currently in use."""
        return self._efficiency

    def _read_only(self, attr: str) -> NDArray[np.float64]:
        if self._results is None:
            raise FlowStateError(f"Flow '{self.name}' has not been initialised")
        view = getattr(self._results, attr).view()
        view.flags.writeable = False
        return view

    # ------------------------------------------------------------------
    # Efficiency
    # ------------------------------------------------------------------

    def efficiency_for_year(self, mat: float | None) -> float:
        """Carbon retention efficiency for a mean annual temperature.

        None means there is no temperature signal; the constant is used.
        """
        return self._efficiency_from(mat, self.co2_efficiency.value())

    @staticmethod
    def _efficiency_from(mat: float | None, constant: float) -> float:
        if mat is None:
            return constant
        return float(efficiency_from_mat(float(mat), constant))

    def _current_year(self) -> int:
        if self.clock is not None:
            return self.clock.today.year
        return date.today().year

    def _refresh_efficiency(self, force: bool = False) -> None:
        if self.weather is None:
            if force:
                constant = self.co2_efficiency.value()
                self._efficiency = constant
                self._log_efficiency(year=None, mat=None, constant=constant)
            return

        year = self._current_year()
        if force or year != self._cached_year:
            mat = self.weather.mat
            constant = self.co2_efficiency.value()
            self._efficiency = self._efficiency_from(mat, constant)
            self._cached_year = year
            self._log_efficiency(year=year, mat=mat, constant=constant)

    def _log_efficiency(self, year: int | None, mat: float | None, constant: float) -> None:
        self._log.debug(
            "efficiency_resolved",
            weather=self.weather is not None,
            year=year,
            mat=mat,
            constant=constant,
            efficiency=self._efficiency,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialise(self, n_layers: int) -> None:
        """Allocate per-layer results and resolve the starting efficiency."""
        self._results = FlowResults(n_layers=n_layers)
        self._refresh_efficiency(force=True)

    def resolve_destinations(self) -> tuple[OrganicPool, ...]:
        """Look up destination pools by name, once."""
        if self._destinations is None:
            pools = []
            for dest_name in self.destination_names:
                pool = self.structure.find(dest_name)
                if pool is None:
                    raise DestinationNotFoundError(dest_name, flow=self.name)
                pools.append(pool)
            self._destinations = tuple(pools)
            self._log.debug("destinations_resolved", destinations=list(self.destination_names))
        return self._destinations

    def do_flow(self) -> None:
        """Run one day of flow for every layer.

        Raises
        ------
        FlowStateError
            If called before ``initialise``, or when the source, a
            destination or a solute does not match the initialised
            layer count. Nothing is changed in that case.
        DestinationNotFoundError
            If a destination name is unknown (first call only)
        MassBalanceError
            If mineral N cannot cover an immobilisation demand. Layers
            above the failing layer keep their changes.
        """
        if self._results is None:
            raise FlowStateError(f"Flow '{self.name}' used before initialise()")

        destinations = self.resolve_destinations()

        source = self.source
        n_layers = source.c.shape[0]
        if n_layers != self._results.n_layers:
            raise FlowStateError(
                f"Flow '{self.name}' initialised for {self._results.n_layers} layers "
                f"but source pool '{source.name}' has {n_layers}"
            )

        for pool in (source, *destinations):
            for attr in ("c", "n", "p", "layer_fraction"):
                self._check_layers(f"pool '{pool.name}' {attr}", getattr(pool, attr), n_layers)
        for solute in (self.no3, self.nh4, self.labile_p):
            if solute is not None:
                self._check_layers(f"solute '{solute.name}'", solute.kgha, n_layers)

        self._refresh_efficiency()

        rate = np.array([self.rate.value(i) for i in range(n_layers)], dtype=np.float64)

        no3 = self.no3.kgha
        nh4 = self.nh4.kgha
        if self.labile_p is None:
            labile_p = np.zeros(n_layers, dtype=np.float64)
        else:
            labile_p = self.labile_p.kgha

        if destinations:
            dest_c = np.stack([d.c for d in destinations])
            dest_n = np.stack([d.n for d in destinations])
            dest_p = np.stack([d.p for d in destinations])
        else:
            dest_c = dest_n = dest_p = np.zeros((0, n_layers), dtype=np.float64)

        (
            c_out, n_out, p_out,
            c_to, n_to, p_to,
            n_to_total, p_to_total,
            _, catm,
        ) = partition_flows(
            rate,
            source.c,
            source.n,
            source.p,
            source.layer_fraction,
            dest_c,
            dest_n,
            dest_p,
            self.destination_fractions,
            self._efficiency,
            no3,
            nh4,
            labile_p,
            self.p_policy.limit_supply,
        )

        min_n, d_nh4, d_no3, n_residual = reconcile_mineral(n_out, n_to_total, nh4, no3)
        min_p, d_labile, _, p_residual = reconcile_mineral(
            p_out, p_to_total, labile_p, np.zeros(n_layers, dtype=np.float64)
        )

        failure = self._first_failure(n_residual, p_residual)
        done = slice(None) if failure is None else slice(0, failure[0])

        source.add(done, -c_out[done], -n_out[done], -p_out[done])
        for j, dest in enumerate(destinations):
            dest.add(done, c_to[j, done], n_to[j, done], p_to[j, done])
        nh4[done] += d_nh4[done]
        no3[done] += d_no3[done]
        labile_p[done] += d_labile[done]

        self._results.mineralised_n[done] = min_n[done]
        self._results.mineralised_p[done] = min_p[done]
        self._results.catm[done] = catm[done]

        if failure is not None:
            layer, nutrient, deficit = failure
            self._log.error("mass_balance_failure", layer=layer, nutrient=nutrient, deficit=deficit)
            raise MassBalanceError(self.name, layer, nutrient, deficit)

        self._log.debug(
            "flow_complete",
            efficiency=self._efficiency,
            c_out=float(c_out.sum()),
            catm=float(catm.sum()),
            mineralised_n=float(min_n.sum()),
            mineralised_p=float(min_p.sum()),
        )

    def _check_layers(self, label: str, values: NDArray[np.float64], n_layers: int) -> None:
        if np.shape(values) != (n_layers,):
            raise FlowStateError(
                f"Flow '{self.name}' runs on {n_layers} layers but {label} has "
                f"shape {np.shape(values)}"
            )

    def _first_failure(
        self,
        n_residual: NDArray[np.float64],
        p_residual: NDArray[np.float64],
    ) -> tuple[int, str, float] | None:
        """First layer whose immobilisation demand is left unmet."""
        failures = []
        n_bad = np.flatnonzero(n_residual > DEFICIT_TOLERANCE)
        if n_bad.size:
            failures.append((int(n_bad[0]), "N", float(n_residual[n_bad[0]])))
        if self.p_policy.check_mass_balance:
            p_bad = np.flatnonzero(p_residual > DEFICIT_TOLERANCE)
            if p_bad.size:
                failures.append((int(p_bad[0]), "P", float(p_residual[p_bad[0]])))
        if not failures:
            return None
        return min(failures, key=lambda f: f[0])
