import subprocess
import sys
from pathlib import Path

import pandas as pd
import pytest
import yaml

from cnpflow import __version__
from cnpflow.cli import build_parser, main

pytestmark = pytest.mark.integration


CONFIG = {
    "simulation": {"start_date": "2001-01-01", "n_days": 5, "n_layers": 2},
    "weather": {"mat": 11.5},
    "solutes": {"no3": [10.0, 5.0], "nh4": [2.0, 1.0], "labile_p": [1.0, 0.5]},
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
            "rate": 0.0095,
            "co2_efficiency": 0.4,
        },
    ],
}


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "profile.yaml"
    path.write_text(yaml.safe_dump(CONFIG))
    return path


def test_cli_help_module():
    # Ensure the module entrypoint runs and prints help
    proc = subprocess.run(
        [sys.executable, "-m", "cnpflow.cli", "--help"], capture_output=True, text=True
    )
    assert proc.returncode == 0
    assert "usage:" in proc.stdout.lower()


def test_version(capsys):
    assert main(["--version"]) == 0
    assert __version__ in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage:" in capsys.readouterr().out.lower()


def test_parser_defaults():
    args = build_parser().parse_args(["run", "cfg.yaml"])
    assert args.days is None
    assert args.log_level == "WARNING"
    assert args.flow_csv is None


def test_run_writes_totals(config_path, tmp_path):
    out = tmp_path / "out" / "totals.csv"

    rc = main(["run", str(config_path), "--out", str(out), "--days", "3"])

    assert rc == 0
    totals = pd.read_csv(out, index_col=0, parse_dates=True)
    assert list(totals.columns) == ["mineralised_n", "mineralised_p", "catm"]
    assert len(totals) == 3
    assert (totals["catm"] > 0.0).all()


def test_run_writes_flow_csv(config_path, tmp_path):
    out = tmp_path / "totals.csv"

    rc = main(
        ["run", str(config_path), "--out", str(out), "--flow-csv", "MicrobialToHumic"]
    )

    assert rc == 0
    frame = pd.read_csv(tmp_path / "totals_MicrobialToHumic.csv", index_col=0)
    assert len(frame) == 5
    assert "catm_1" in frame.columns


def test_run_prints_totals(config_path, capsys):
    assert main(["run", str(config_path)]) == 0
    assert "catm" in capsys.readouterr().out


def test_run_reports_configuration_error(tmp_path, capsys):
    bad = dict(CONFIG)
    bad["flows"] = [dict(CONFIG["flows"][0], destinations=["Inert"])]
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump(bad))

    rc = main(["run", str(path)])

    assert rc == 2
    assert "Inert" in capsys.readouterr().err


def test_run_bundled_example(tmp_path):
    example = Path(__file__).parents[2] / "examples" / "1_Profile" / "profile.toml"
    out = tmp_path / "totals.csv"

    rc = main(["run", str(example), "--out", str(out), "--days", "30"])

    assert rc == 0
    assert len(pd.read_csv(out)) == 30


def test_unknown_flow_csv_rejected_before_run(config_path, tmp_path, capsys):
    out = tmp_path / "totals.csv"

    rc = main(["run", str(config_path), "--out", str(out), "--flow-csv", "Nope"])

    assert rc == 2
    assert "Nope" in capsys.readouterr().err
    assert list(tmp_path.glob("*.csv")) == []
