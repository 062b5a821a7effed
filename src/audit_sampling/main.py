"""CLI entry point for the audit sampling engine."""

from __future__ import annotations

import argparse
import json
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

from pydantic import ValidationError

from .engine import run_sampling
from .errors import InvalidParameters
from .loader import load_transactions
from .assembler import parameter_hash
from .logging_setup import (
    LOG_LEVELS,
    bind_run_context,
    configure_logging,
    get_logger,
)
from .models import (
    EventCode,
    PopulationScope,
    RiskLevel,
    RiskWeighting,
    RunSummary,
    SamplingMethod,
    SamplingParameters,
    TestType,
    ThresholdMode,
)
from .population import (
    AccountMapper,
    IdentityAccountMapper,
    StaticAccountMapper,
)
from .reporter import generate_workpaper


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the audit sampling CLI.

    Returns:
        argparse.Namespace: Parsed command-line namespace populated from CLI input.
    """

    parser = argparse.ArgumentParser(
        description="Audit sampling engine for general-ledger populations",
    )
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Path to the general-ledger CSV export",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        required=True,
        help="Directory where the Excel workpaper will be saved",
    )
    parser.add_argument(
        "--include",
        nargs="+",
        required=True,
        help="Standard account numbers defining the population",
    )
    parser.add_argument(
        "--exclude",
        nargs="*",
        default=[],
        help="Concrete account numbers to leave out of the population",
    )
    parser.add_argument(
        "--mapping",
        type=Path,
        default=None,
        help=(
            "JSON file mapping standard numbers to account numbers; "
            "without it standard numbers are used as account numbers"
        ),
    )
    parser.add_argument(
        "--test-type",
        choices=[t.value for t in TestType],
        required=True,
        help="Substantive or control test",
    )
    parser.add_argument(
        "--method",
        choices=[m.value for m in SamplingMethod],
        required=True,
        help="Sampling method",
    )
    parser.add_argument(
        "--confidence",
        type=int,
        choices=[90, 95, 99],
        required=True,
        help="Confidence level in percent",
    )
    parser.add_argument(
        "--materiality",
        type=float,
        default=0.0,
        help="Materiality amount",
    )
    parser.add_argument(
        "--performance-materiality",
        type=float,
        default=None,
        help="Performance materiality amount (threshold mode pm)",
    )
    parser.add_argument(
        "--expected-misstatement",
        type=float,
        default=0.0,
        help="Expected misstatement amount (substantive tests)",
    )
    parser.add_argument(
        "--tolerable-rate",
        type=float,
        default=None,
        help="Tolerable deviation rate as a fraction (control tests)",
    )
    parser.add_argument(
        "--expected-rate",
        type=float,
        default=None,
        help="Expected deviation rate as a fraction (control tests)",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Threshold amount (threshold method or threshold mode custom)",
    )
    parser.add_argument(
        "--threshold-mode",
        choices=[m.value for m in ThresholdMode],
        default=ThresholdMode.MAX.value,
        help="Amount that marks an item high value for --high-risk",
    )
    parser.add_argument(
        "--strata-bounds",
        type=float,
        nargs="+",
        default=[],
        help="Strictly increasing amount breakpoints (stratified method)",
    )
    parser.add_argument(
        "--min-per-stratum",
        type=int,
        default=0,
        help="Minimum items per non-empty stratum",
    )
    parser.add_argument(
        "--high-risk",
        action="store_true",
        help="Force high-risk transactions into the sample",
    )
    parser.add_argument(
        "--risk-level",
        choices=[r.value for r in RiskLevel],
        default=RiskLevel.MODERATE.value,
        help="Assessed risk level scaling the sample size",
    )
    parser.add_argument(
        "--risk-weighting",
        choices=[w.value for w in RiskWeighting],
        default=RiskWeighting.DISABLED.value,
        help="Risk weighting for monetary unit selection",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Deterministic random seed",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show progress bars while loading and writing",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="INFO",
        help="Minimum level of the structured run log",
    )
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        help="Optional run identifier; if omitted a UUID is generated",
    )
    return parser.parse_args(argv)


def build_parameters(args: argparse.Namespace) -> SamplingParameters:
    """Build validated sampling parameters from CLI arguments.

    Raises:
        pydantic.ValidationError: If the arguments are incomplete or ambiguous.
    """
    return SamplingParameters(
        test_type=TestType(args.test_type),
        method=SamplingMethod(args.method),
        confidence_level=args.confidence,
        materiality=args.materiality,
        performance_materiality=args.performance_materiality,
        expected_misstatement=args.expected_misstatement,
        tolerable_deviation_rate=args.tolerable_rate,
        expected_deviation_rate=args.expected_rate,
        threshold_amount=args.threshold,
        strata_bounds=tuple(args.strata_bounds),
        min_per_stratum=args.min_per_stratum,
        seed=args.seed,
        use_high_risk_inclusion=args.high_risk,
        threshold_mode=ThresholdMode(args.threshold_mode),
        risk_level=RiskLevel(args.risk_level),
        risk_weighting=RiskWeighting(args.risk_weighting),
    )


def load_mapper(mapping_path: Path | None) -> AccountMapper:
    """Return the account mapper configured for the run."""
    if mapping_path is None:
        return IdentityAccountMapper()
    with open(mapping_path, "r", encoding="utf-8") as f:
        return StaticAccountMapper(json.load(f))


def main(argv: list[str] | None = None) -> int:
    """Run the workflow from CLI parameters to workpaper output.

    Returns:
        int: Process exit status code (0 indicates success).
    """

    args = parse_args(argv)
    # Use provided run_id, or generate a new UUID
    run_id = args.run_id if args.run_id else str(uuid4())
    configure_logging(run_id, level=args.log_level)
    log = get_logger("main")

    try:
        params = build_parameters(args)
    except ValidationError as exc:
        print(f"Invalid sampling parameters: {exc}", file=sys.stderr)
        return 2

    bind_run_context(params, parameter_hash(params))
    log.info(
        EventCode.RUN_START.value, parameters=params.model_dump(mode="json")
    )
    started = time.perf_counter()
    started_dt = datetime.now(timezone.utc)

    transactions, quality_report = load_transactions(
        args.input, show_progress=args.progress
    )
    loading_seconds = time.perf_counter() - started

    scope = PopulationScope(
        included_standard_numbers=frozenset(args.include),
        excluded_account_numbers=frozenset(args.exclude),
    )
    sampling_start = time.perf_counter()
    try:
        result = run_sampling(
            transactions, scope, params, load_mapper(args.mapping)
        )
    except InvalidParameters as exc:
        print(f"Invalid sampling parameters: {exc}", file=sys.stderr)
        return 2
    sampling_seconds = time.perf_counter() - sampling_start

    report_start = time.perf_counter()
    report_path = generate_workpaper(
        args.output_dir,
        result.plan,
        result.items,
        params,
        run_id,
        quality_report=quality_report,
        show_progress=args.progress,
    )
    reporting_seconds = time.perf_counter() - report_start
    print(f"Workpaper generated at: {report_path}")
    if result.population.is_empty:
        print(
            "Population is empty: "
            f"{result.population.empty_reason.value}"
        )
    if result.plan.materiality_not_set:
        print(
            "Materiality not set: substantive sample size is 0; "
            "pass --materiality to size the sample"
        )

    summary = RunSummary(
        run_id=run_id,
        started_at_utc=started_dt,
        finished_at_utc=datetime.now(timezone.utc),
        # Round durations to 2 decimals
        duration_seconds=round(time.perf_counter() - started, 2),
        loading_seconds=round(loading_seconds, 2),
        sampling_seconds=round(sampling_seconds, 2),
        reporting_seconds=round(reporting_seconds, 2),
        parameters=params.model_dump(mode="json"),
        data_quality=quality_report.model_dump(),
        plan=result.plan.model_dump(mode="json"),
        sample_size=len(result.items),
        output_excel=str(report_path),
    )
    runs_dir = args.output_dir / "runs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    summary_path = runs_dir / f"{run_id}.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(summary.model_dump(mode="json"), f, indent=2)
    log.info(EventCode.RUN_SUMMARY.value, path=str(summary_path))
    print(f"Summary written to: {summary_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
