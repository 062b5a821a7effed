"""Excel workpaper export for sampling results."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import xlsxwriter
from tqdm import tqdm

from .logging_setup import get_logger
from .models import (
    DataQualityReport,
    EventCode,
    SampleItem,
    SamplingParameters,
    SamplingPlan,
)

BLUE = "009cde"
GREEN = "3f9c35"
DARK_GREY = "63666a"
MIDNIGHT_BLUE = "00153d"
LIGHT_BLUE = "e5f5fc"

REPORT_FILENAME = "sample_selection_output.xlsx"

log = get_logger("reporter")


def generate_workpaper(
    output_dir: Path,
    plan: SamplingPlan,
    items: Sequence[SampleItem],
    params: SamplingParameters,
    run_id: str,
    quality_report: DataQualityReport | None = None,
    show_progress: bool = False,
) -> Path:
    """Write the sampling workpaper to ``output_dir``.

    Args:
        output_dir (Path): Directory that will receive the Excel workbook.
        plan (SamplingPlan): Plan produced by the pipeline.
        items (Sequence[SampleItem]): Selected sample items.
        params (SamplingParameters): Parameters used to drive sampling.
        run_id (str): Unique identifier for the execution run.
        quality_report (DataQualityReport | None): Ledger quality metrics.
        show_progress (bool): Whether to display progress bars while writing.

    Returns:
        Path: Filesystem path to the generated Excel workbook.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / REPORT_FILENAME

    workbook = xlsxwriter.Workbook(str(output_path), {"constant_memory": True})
    formats = _create_workbook_formats(workbook)
    _write_plan_sheet(workbook, formats, plan, quality_report, run_id)
    _write_sample_selected_sheet(workbook, formats, plan, items, show_progress)
    if plan.strata:
        _write_strata_sheet(workbook, formats, plan)
    _write_parameters_used_sheet(workbook, formats, params, plan, run_id)
    workbook.close()

    log.info(EventCode.REPORT_WRITTEN.value, path=str(output_path))
    return output_path


def _create_workbook_formats(workbook: xlsxwriter.Workbook) -> dict[str, Any]:
    """Create all formatting styles for the workbook.

    Args:
        workbook (xlsxwriter.Workbook): Workbook that needs format definitions.

    Returns:
        dict[str, Any]: Dictionary of named format objects for reuse.
    """
    header = {
        "bold": True,
        "font_color": "#FFFFFF",
        "border": 1,
        "align": "center",
    }
    return {
        "header_blue": workbook.add_format({**header, "bg_color": BLUE}),
        "header_green": workbook.add_format({**header, "bg_color": GREEN}),
        "banner": workbook.add_format({**header, "bg_color": MIDNIGHT_BLUE}),
        "label": workbook.add_format({"font_color": DARK_GREY, "border": 1}),
        "value_wrap": workbook.add_format({"text_wrap": True, "border": 1}),
        "number": workbook.add_format({"num_format": "#,##0.00", "border": 1}),
        "integer": workbook.add_format({"num_format": "#,##0", "border": 1}),
        "percent": workbook.add_format({"num_format": "0.00%", "border": 1}),
        "alt_row": workbook.add_format({"bg_color": LIGHT_BLUE, "border": 1}),
        "normal_row": workbook.add_format({"border": 1}),
    }


def _write_plan_sheet(
    workbook: xlsxwriter.Workbook,
    formats: dict[str, Any],
    plan: SamplingPlan,
    quality_report: DataQualityReport | None,
    run_id: str,
) -> None:
    """Write the Sampling Plan sheet.

    Coverage is written as a formula over the population and selected value
    rows so reviewers can trace it.
    """
    ws = workbook.add_worksheet("Sampling Plan")
    ws.set_column("A:A", 30)
    ws.set_column("B:B", 70)

    ws.write(0, 0, "Metric", formats["header_blue"])
    ws.write(0, 1, "Value", formats["header_blue"])

    quality_summary = "Not available"
    if quality_report is not None:
        quality_summary = (
            f"Rows Loaded: {quality_report.total_rows_loaded} of "
            f"{quality_report.total_rows_raw}; "
            f"Invalid Amounts: {quality_report.invalid_amount_format}; "
            f"Invalid Dates: {quality_report.invalid_date_format}; "
            f"Duplicate IDs: {quality_report.duplicate_transaction_ids}"
        )

    rows = [
        ("Total Population Value", plan.population_sum, "number"),
        ("Number of Items", plan.population_size, "integer"),
        ("Recommended Sample Size", plan.recommended_sample_size, "integer"),
        ("Selected Value", plan.selected_sum, "number"),
        ("Coverage %", None, "percent"),
        ("Actual Sample Size", plan.actual_sample_size, "integer"),
        ("High Risk Items", plan.high_risk_count, "integer"),
        ("Method", plan.method.value, "value_wrap"),
        ("Test Type", plan.test_type.value, "value_wrap"),
        ("Population Status", plan.empty_reason.value, "value_wrap"),
        ("Degenerate Coverage", str(plan.degenerate_coverage), "value_wrap"),
        ("Random Seed Used", plan.seed, "integer"),
        ("Parameter Hash", plan.param_hash, "value_wrap"),
        ("Data Quality", quality_summary, "value_wrap"),
        ("Run Identifier", run_id, "value_wrap"),
        ("Generated At (UTC)", plan.generated_at.isoformat(), "value_wrap"),
        ("Base Sample Size", plan.base_sample_size, "integer"),
        ("Risk Factor", plan.risk_factor, "number"),
        ("Materiality Not Set", str(plan.materiality_not_set), "value_wrap"),
    ]

    for r, (label, value, fmt_name) in enumerate(rows, start=1):
        ws.write(r, 0, label, formats["label"])
        if label == "Coverage %":
            ws.write_formula(
                r,
                1,
                "=IF(B2=0,0,B5/B2)",
                formats["percent"],
                plan.coverage_percentage / 100.0,
            )
        else:
            ws.write(r, 1, value, formats[fmt_name])


def _write_sample_selected_sheet(
    workbook: xlsxwriter.Workbook,
    formats: dict[str, Any],
    plan: SamplingPlan,
    items: Sequence[SampleItem],
    show_progress: bool,
) -> None:
    """Write the Sample Selected sheet with a coverage banner."""
    ws = workbook.add_worksheet("Sample Selected")
    ws.set_column("A:A", 8)
    ws.set_column("B:B", 18)
    ws.set_column("C:E", 14)
    ws.set_column("F:F", 40)
    ws.set_column("G:H", 14)
    ws.set_column("I:I", 16)
    ws.set_column("J:L", 10)

    ws.write(0, 0, "Coverage %", formats["banner"])
    ws.write_number(0, 1, plan.coverage_percentage / 100.0, formats["percent"])
    ws.write(1, 0, "")

    headers = [
        "Rank",
        "Transaction ID",
        "Date",
        "Account",
        "Account Name",
        "Description",
        "Amount",
        "Amount Abs",
        "Selection Type",
        "Stratum",
        "Hits",
        "Risk Score",
    ]
    for c, h in enumerate(headers):
        ws.write(2, c, h, formats["header_blue"])

    _write_sample_rows(ws, formats, items, show_progress)


def _write_sample_rows(
    ws: Any,
    formats: dict[str, Any],
    items: Sequence[SampleItem],
    show_progress: bool,
) -> None:
    """Write sample rows to the worksheet.

    Args:
        ws (Any): Worksheet object to mutate.
        formats (dict[str, Any]): Formatting map for alternating rows.
        items (Sequence[SampleItem]): Sample items to write.
        show_progress (bool): Whether to show progress bars.
    """
    iterator = (
        items
        if not show_progress
        else tqdm(items, desc="Writing sample rows", unit="row")
    )

    for idx, item in enumerate(iterator, start=3):
        txn = item.transaction
        row_fmt = (
            formats["alt_row"] if (idx - 3) % 2 == 0 else formats["normal_row"]
        )
        ws.write_number(idx, 0, item.rank or idx - 2, formats["integer"])
        ws.write(idx, 1, txn.transaction_id, row_fmt)
        ws.write(idx, 2, txn.transaction_date.isoformat(), row_fmt)
        ws.write(idx, 3, txn.account_number, row_fmt)
        ws.write(idx, 4, txn.account_name, row_fmt)
        ws.write(idx, 5, txn.description, row_fmt)
        ws.write_number(idx, 6, txn.amount, formats["number"])
        ws.write_number(idx, 7, txn.amount_abs, formats["number"])
        ws.write(idx, 8, item.selection_type, row_fmt)
        ws.write(
            idx,
            9,
            "" if item.stratum_id is None else item.stratum_id,
            row_fmt,
        )
        ws.write_number(idx, 10, item.hits, formats["integer"])
        ws.write_number(idx, 11, item.risk_score, formats["number"])


def _write_strata_sheet(
    workbook: xlsxwriter.Workbook,
    formats: dict[str, Any],
    plan: SamplingPlan,
) -> None:
    ws = workbook.add_worksheet("Strata")
    ws.set_column("A:G", 16)
    headers = [
        "Stratum",
        "Lower Bound",
        "Upper Bound",
        "Items",
        "Value",
        "Allocated",
        "Selected",
    ]
    for c, h in enumerate(headers):
        ws.write(0, c, h, formats["header_green"])

    for r, stratum in enumerate(plan.strata, start=1):
        ws.write_number(r, 0, stratum.index, formats["integer"])
        ws.write_number(r, 1, stratum.lower_bound, formats["number"])
        if stratum.upper_bound is None:
            ws.write(r, 2, "and above", formats["value_wrap"])
        else:
            ws.write_number(r, 2, stratum.upper_bound, formats["number"])
        ws.write_number(r, 3, stratum.size, formats["integer"])
        ws.write_number(r, 4, stratum.sum, formats["number"])
        ws.write_number(r, 5, stratum.allocated_sample_size, formats["integer"])
        ws.write_number(r, 6, stratum.selected_count, formats["integer"])


def _write_parameters_used_sheet(
    workbook: xlsxwriter.Workbook,
    formats: dict[str, Any],
    params: SamplingParameters,
    plan: SamplingPlan,
    run_id: str,
) -> None:
    """Write the Parameters Used sheet.

    Args:
        workbook (xlsxwriter.Workbook): Workbook being populated.
        formats (dict[str, Any]): Formatting dictionary.
        params (SamplingParameters): Input parameters guiding sampling.
        plan (SamplingPlan): Plan supplying the generation timestamp.
        run_id (str): Unique run identifier for reference.
    """
    ws = workbook.add_worksheet("Parameters Used")
    ws.set_column("A:A", 30)
    ws.set_column("B:B", 45)

    ws.write(0, 0, "Metric", formats["header_green"])
    ws.write(0, 1, "Value", formats["header_green"])

    not_set = "Not Specified"
    bounds = ", ".join(f"{b:,.2f}" for b in params.strata_bounds) or not_set
    param_rows = [
        ("Test Type", params.test_type.value, "value_wrap"),
        ("Method", params.method.value, "value_wrap"),
        ("Confidence Level", params.confidence_level, "integer"),
        ("Materiality", params.materiality, "number"),
        ("Expected Misstatement", params.expected_misstatement, "number"),
        (
            "Tolerable Deviation Rate",
            params.tolerable_deviation_rate
            if params.tolerable_deviation_rate is not None
            else not_set,
            "value_wrap",
        ),
        (
            "Expected Deviation Rate",
            params.expected_deviation_rate
            if params.expected_deviation_rate is not None
            else not_set,
            "value_wrap",
        ),
        (
            "Threshold Amount",
            params.threshold_amount
            if params.threshold_amount is not None
            else not_set,
            "value_wrap",
        ),
        ("Strata Bounds", bounds, "value_wrap"),
        (
            "High Risk Inclusion",
            str(params.use_high_risk_inclusion),
            "value_wrap",
        ),
        ("Risk Level", params.risk_level.value, "value_wrap"),
        ("Risk Weighting", params.risk_weighting.value, "value_wrap"),
        ("Random Seed", params.seed, "integer"),
        ("Timestamp (UTC)", plan.generated_at.isoformat(), "value_wrap"),
        ("Run Identifier", run_id, "value_wrap"),
        (
            "Performance Materiality",
            params.performance_materiality
            if params.performance_materiality is not None
            else not_set,
            "value_wrap",
        ),
        ("Threshold Mode", params.threshold_mode.value, "value_wrap"),
    ]

    for r, (label, value, fmt_name) in enumerate(param_rows, start=1):
        ws.write(r, 0, label, formats["label"])
        ws.write(r, 1, value, formats[fmt_name])
