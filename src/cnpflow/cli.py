import argparse
import os
import sys

from cnpflow.config import SimulationConfig
from cnpflow.errors import CnpFlowError, ConfigurationError
from cnpflow.logging import configure_logging, get_logger
from cnpflow.process.loop import run_daily_loop

logger = get_logger("cli")


def cmd_run(args: argparse.Namespace) -> int:
    configure_logging(level=args.log_level, format=args.log_format)

    config = SimulationConfig.from_file(args.config)
    if args.days is not None:
        config.n_days = args.days

    flow_names = [f.name for f in config.flows]
    unknown = [name for name in args.flow_csv or [] if name not in flow_names]
    if unknown:
        raise ConfigurationError(
            f"--flow-csv names unknown flows: {unknown}; known flows: {flow_names}"
        )

    sim = config.build()
    output = run_daily_loop(sim.flows, sim.clock, sim.n_days, progress=args.progress)

    totals = output.totals()
    if args.out:
        out_dir = os.path.dirname(os.path.abspath(args.out))
        os.makedirs(out_dir, exist_ok=True)
        totals.to_csv(args.out)
        logger.info("output_written", path=args.out, n_days=len(totals))
    else:
        print(totals.sum().to_string())

    for flow_name in args.flow_csv or []:
        frame = output.to_frame(flow_name)
        path = f"{os.path.splitext(args.out or 'cnpflow')[0]}_{flow_name}.csv"
        frame.to_csv(path)
        logger.info("flow_output_written", flow=flow_name, path=path)

    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cnpflow",
        description="Daily carbon, nitrogen and phosphorus flows between soil organic pools.",
    )
    p.add_argument("--version", action="store_true", help="Print package version and exit")
    sub = p.add_subparsers(dest="command")

    pr = sub.add_parser(
        "run",
        help="Run a flow simulation from a YAML or TOML config",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    pr.add_argument("config", help="Path to simulation config (.yaml, .yml or .toml)")
    pr.add_argument("--days", type=int, default=None, help="Override simulation.n_days")
    pr.add_argument(
        "--out",
        default=None,
        help="CSV for daily profile totals; prints run totals when omitted",
    )
    pr.add_argument(
        "--flow-csv",
        action="append",
        default=None,
        help="Also write per-layer daily output for this flow (repeatable)",
    )
    pr.add_argument("--progress", action="store_true", help="Show a progress bar")
    pr.add_argument(
        "--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    pr.add_argument("--log-format", default="console", choices=["console", "json"])
    pr.set_defaults(func=cmd_run)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "version", False):
        from cnpflow import __version__

        print(__version__)
        return 0
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    try:
        return int(args.func(args))
    except CnpFlowError as exc:
        logger.error("run_failed", error=str(exc), error_type=type(exc).__name__)
        print(f"cnpflow: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
