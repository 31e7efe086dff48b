"""
cnpflow: daily carbon, nitrogen and phosphorus flows between soil organic pools.

Each flow moves a daily fraction of a source pool's carbon into weighted
destination pools, loses the unretained carbon as CO2, and settles the
nutrient difference against the mineral N and P pools of every layer.

Subpackages:
    process: Flow engine, numba kernels, state containers and day loop.

Modules:
    config: YAML/TOML simulation configuration.
    logging: structlog-based diagnostics.
    errors: Exception hierarchy.

Example:
    >>> from cnpflow.config import SimulationConfig
    >>> from cnpflow.process import run_daily_loop
    >>>
    >>> sim = SimulationConfig.from_file("profile.yaml").build()
    >>> output = run_daily_loop(sim.flows, sim.clock, sim.n_days)
    >>> output.totals().sum()
"""

__version__ = "0.1.0"
