"""Tests for the CLI and run summary JSON generation."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

from audit_sampling.main import main

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


def _write_ledger(path: Path) -> Path:
    rows = ["transaction_id,date,account,description,amount"]
    for i in range(40):
        amount = 2_500 if i % 2 else -7_500
        day = i % 28 + 1
        rows.append(f"T{i:02d},2024-01-{day:02d},3000,Sale {i},{amount}")
    rows.append("X1,2024-01-05,4000,Rent,12000")
    path.write_text("\n".join(rows), encoding="utf-8")
    return path


def test_run_summary_created(tmp_path: Path) -> None:
    csv = _write_ledger(tmp_path / "ledger.csv")
    out_dir = tmp_path / "out"
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join(
        filter(None, [str(SRC_DIR), env.get("PYTHONPATH")])
    )
    cmd = [
        sys.executable,
        "-m",
        "audit_sampling.main",
        "--input",
        str(csv),
        "--output-dir",
        str(out_dir),
        "--include",
        "3000",
        "--test-type",
        "Substantive",
        "--method",
        "SimpleRandom",
        "--confidence",
        "95",
        "--materiality",
        "50000",
        "--seed",
        "5",
        "--run-id",
        "cli-run",
    ]
    subprocess.run(cmd, check=True, env=env)

    summary_path = out_dir / "runs" / "cli-run.json"
    assert summary_path.exists(), "No run summary JSON generated"
    data = json.loads(summary_path.read_text())
    assert data["run_id"] == "cli-run"
    assert isinstance(data["duration_seconds"], float)
    assert round(data["duration_seconds"], 2) == data["duration_seconds"]
    assert data["plan"]["population_size"] == 40
    assert data["plan"]["recommended_sample_size"] == 12
    assert data["sample_size"] == 12
    assert data["data_quality"]["total_rows_loaded"] == 41
    assert Path(data["output_excel"]).exists()


def test_main_with_mapping_file(tmp_path: Path) -> None:
    csv = _write_ledger(tmp_path / "ledger.csv")
    mapping = tmp_path / "mapping.json"
    mapping.write_text(json.dumps({"30": ["3000"], "40": ["4000"]}))
    out_dir = tmp_path / "out"

    status = main(
        [
            "--input",
            str(csv),
            "--output-dir",
            str(out_dir),
            "--include",
            "30",
            "40",
            "--exclude",
            "4000",
            "--mapping",
            str(mapping),
            "--test-type",
            "Control",
            "--method",
            "Systematic",
            "--confidence",
            "90",
            "--tolerable-rate",
            "0.1",
            "--expected-rate",
            "0.0",
            "--run-id",
            "mapped",
        ]
    )

    assert status == 0
    data = json.loads((out_dir / "runs" / "mapped.json").read_text())
    assert data["plan"]["population_size"] == 40
    assert data["plan"]["test_type"] == "Control"
    assert 0 < data["sample_size"] <= 40


def test_main_rejects_invalid_parameters(tmp_path: Path) -> None:
    csv = _write_ledger(tmp_path / "ledger.csv")

    status = main(
        [
            "--input",
            str(csv),
            "--output-dir",
            str(tmp_path / "out"),
            "--include",
            "3000",
            "--test-type",
            "Control",
            "--method",
            "SimpleRandom",
            "--confidence",
            "95",
            "--tolerable-rate",
            "0.02",
            "--expected-rate",
            "0.05",
        ]
    )

    assert status == 2
    assert not (tmp_path / "out" / "runs").exists()


def test_main_rejects_incomplete_parameters(tmp_path: Path) -> None:
    csv = _write_ledger(tmp_path / "ledger.csv")

    status = main(
        [
            "--input",
            str(csv),
            "--output-dir",
            str(tmp_path / "out"),
            "--include",
            "3000",
            "--test-type",
            "Substantive",
            "--method",
            "Threshold",
            "--confidence",
            "95",
        ]
    )

    assert status == 2


def test_main_reports_missing_materiality(tmp_path: Path, capsys) -> None:
    csv = _write_ledger(tmp_path / "ledger.csv")
    out_dir = tmp_path / "out"

    status = main(
        [
            "--input",
            str(csv),
            "--output-dir",
            str(out_dir),
            "--include",
            "3000",
            "--test-type",
            "Substantive",
            "--method",
            "SimpleRandom",
            "--confidence",
            "95",
            "--log-level",
            "WARNING",
            "--run-id",
            "no-materiality",
        ]
    )

    assert status == 0
    assert "Materiality not set" in capsys.readouterr().out
    data = json.loads((out_dir / "runs" / "no-materiality.json").read_text())
    assert data["plan"]["materiality_not_set"] is True
    assert data["sample_size"] == 0
