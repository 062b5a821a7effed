"""Loading of general-ledger CSV exports into transactions."""

from __future__ import annotations

import csv
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from tqdm import tqdm

from .logging_setup import get_logger
from .models import DataQualityReport, EventCode, RiskIndicator, Transaction

log = get_logger("loader")

DATE_FORMATS = [
    "%Y-%m-%d",
    "%d.%m.%Y",
    "%d/%m/%Y",
    "%m/%d/%Y",
    "%d/%m/%Y %H:%M",
]

COLUMN_ALIASES = {
    "id": "transaction_id",
    "transactionid": "transaction_id",
    "transaction_id": "transaction_id",
    "trx_id": "transaction_id",
    "date": "transaction_date",
    "transaction_date": "transaction_date",
    "transactiondate": "transaction_date",
    "account": "account_number",
    "account_no": "account_number",
    "account_number": "account_number",
    "accountnumber": "account_number",
    "account_name": "account_name",
    "accountname": "account_name",
    "description": "description",
    "text": "description",
    "amount": "amount",
    "net_amount": "amount",
    "value": "amount",
    "debit": "debit",
    "debit_amount": "debit",
    "credit": "credit",
    "credit_amount": "credit",
    "risk": "risk_indicator",
    "risk_indicator": "risk_indicator",
    "voucher": "voucher_number",
    "voucher_number": "voucher_number",
}


def load_transactions(
    input_path: Path,
    show_progress: bool = False,
) -> tuple[list[Transaction], DataQualityReport]:
    """Load a ledger CSV export and report on its quality.

    Rows that cannot satisfy the transaction invariants (missing id or
    account, unparseable amount or date) are dropped and counted.

    Args:
        input_path (Path): Path to the ledger CSV file.
        show_progress (bool): Whether to show a tqdm progress bar.

    Returns:
        tuple[list[Transaction], DataQualityReport]: Loaded transactions and
            associated quality metrics.
    """
    raw_rows = _load_raw_rows(input_path)
    metrics = _initialize_metrics()
    rows = raw_rows
    if show_progress:
        rows = tqdm(raw_rows, desc="Loading ledger", unit="row")
    transactions: list[Transaction] = []
    for idx, raw_row in enumerate(rows):
        transaction = _process_single_row(idx, raw_row, metrics)
        if transaction is not None:
            transactions.append(transaction)

    report = _build_quality_report(
        len(raw_rows),
        len(transactions),
        metrics,
        _count_duplicates(transactions),
    )
    log.info(
        EventCode.LEDGER_LOADED.value,
        raw_rows=len(raw_rows),
        loaded_rows=len(transactions),
        path=str(input_path),
    )
    return transactions, report


def _load_raw_rows(file_path: Path) -> list[dict[str, str]]:
    """Read raw CSV rows keyed by header.

    Raises:
        FileNotFoundError: If the provided file path does not exist.
        csv.Error: If the CSV reader encounters malformed input.
    """
    with open(file_path, "r", encoding="utf-8-sig", newline="") as f:
        return list(csv.DictReader(f))


def _initialize_metrics() -> dict[str, int]:
    return {
        "missing_txn_id": 0,
        "missing_account": 0,
        "missing_amount": 0,
        "invalid_amount": 0,
        "invalid_dates": 0,
        "invalid_risk": 0,
    }


def _process_single_row(
    idx: int,
    raw_row: dict[str, str],
    metrics: dict[str, int],
) -> Transaction | None:
    """Process a single raw row into a transaction.

    Args:
        idx (int): Row index within the ledger file.
        raw_row (dict[str, str]): Raw CSV row dictionary.
        metrics (dict[str, int]): Mutable metrics accumulator.

    Returns:
        Transaction | None: Transaction when valid, otherwise ``None``.
    """
    normalized = _normalize_row(raw_row)
    txn_id = _clean_string(normalized.get("transaction_id"))
    account = _clean_string(normalized.get("account_number"))
    amount = _parse_row_amount(normalized)
    txn_date = _parse_date(normalized.get("transaction_date", ""))
    risk = _parse_risk(normalized.get("risk_indicator"))

    if txn_id is None:
        metrics["missing_txn_id"] += 1
    if account is None:
        metrics["missing_account"] += 1
    if amount["status"] == "missing":
        metrics["missing_amount"] += 1
    elif amount["status"] == "invalid":
        metrics["invalid_amount"] += 1
    if txn_date is None:
        metrics["invalid_dates"] += 1
    if risk["status"] == "invalid":
        metrics["invalid_risk"] += 1

    if None in (txn_id, account, amount["value"], txn_date):
        return None

    try:
        return Transaction(
            transaction_id=txn_id,
            transaction_date=txn_date,
            account_number=account,
            account_name=_clean_string(normalized.get("account_name")) or "",
            description=_clean_string(normalized.get("description")) or "",
            amount=amount["value"],
            risk_indicator=risk["value"],
            voucher_number=_clean_string(normalized.get("voucher_number")),
        )
    except ValidationError as e:
        log.warning("VALIDATION_FAILED", row=idx, error=str(e))
        return None


def _count_duplicates(transactions: list[Transaction]) -> int:
    duplicate_count = 0
    seen_ids: set[str] = set()
    for txn in transactions:
        if txn.transaction_id in seen_ids:
            duplicate_count += 1
        seen_ids.add(txn.transaction_id)
    return duplicate_count


def _normalize_row(row: dict[str, str]) -> dict[str, str]:
    """Normalize column names using configured aliases."""
    normalized = {}
    for key, value in row.items():
        if key is None:
            continue
        canonical = _canonical_name(key)
        normalized[COLUMN_ALIASES.get(canonical, canonical)] = value
    return normalized


def _canonical_name(value: str) -> str:
    key = value.strip().lower()
    return "".join("_" if not ch.isalnum() else ch for ch in key)


def _clean_string(value: str | None) -> str | None:
    """Trim whitespace and normalize sentinel null strings.

    Args:
        value (str | None): Raw string value.

    Returns:
        str | None: Cleaned string or ``None`` when empty/sentinel.
    """
    if value is None:
        return None
    cleaned = value.strip()
    if cleaned == "" or cleaned.lower() == "none":
        return None
    return cleaned


def _parse_row_amount(normalized: dict[str, str]) -> dict[str, Any]:
    """Parse the signed net amount from ``amount`` or ``debit``/``credit``.

    Debits are positive and credits negative when the ledger splits them.
    """
    if "amount" in normalized:
        return _parse_amount(normalized.get("amount") or "")

    debit = _parse_amount(normalized.get("debit") or "")
    credit = _parse_amount(normalized.get("credit") or "")
    if "invalid" in (debit["status"], credit["status"]):
        return {"value": None, "status": "invalid"}
    if debit["value"] is None and credit["value"] is None:
        return {"value": None, "status": "missing"}
    net = (debit["value"] or 0.0) - (credit["value"] or 0.0)
    return {"value": net, "status": "valid"}


def _parse_amount(value: str) -> dict[str, Any]:
    """Parse amount text, returning value and status.

    Args:
        value (str): String representation of the transaction amount.

    Returns:
        dict[str, Any]: Parsed amount result including status flag.
    """
    cleaned = value.replace(",", "").replace(" ", "").strip()

    if not cleaned:
        return {"value": None, "status": "missing"}

    try:
        amount = float(cleaned)
    except ValueError:
        return {"value": None, "status": "invalid"}
    if not math.isfinite(amount):
        return {"value": None, "status": "invalid"}
    return {"value": amount, "status": "valid"}


def _parse_date(value: str) -> date | None:
    """Parse a date using the ordered formats, or return ``None``."""
    if not value or not value.strip():
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue

    return None


def _parse_risk(value: str | None) -> dict[str, Any]:
    cleaned = _clean_string(value)
    if cleaned is None:
        return {"value": None, "status": "missing"}
    try:
        return {"value": RiskIndicator(cleaned.lower()), "status": "valid"}
    except ValueError:
        return {"value": None, "status": "invalid"}


def _build_quality_report(
    total_raw: int,
    total_loaded: int,
    metrics: dict[str, int],
    duplicate_count: int,
) -> DataQualityReport:
    """Assemble the ``DataQualityReport`` value object.

    Args:
        total_raw (int): Total raw rows count.
        total_loaded (int): Rows converted into transactions.
        metrics (dict[str, int]): Quality metrics captured while loading.
        duplicate_count (int): Count of duplicate transaction IDs.

    Returns:
        DataQualityReport: Report describing ledger quality.
    """
    dropped = total_raw - total_loaded
    ratio = dropped / total_raw if total_raw > 0 else 0
    notes = ""
    if ratio > 0.2:
        notes = "Warning: more than 20% of rows could not be loaded."

    report = DataQualityReport(
        total_rows_raw=total_raw,
        total_rows_loaded=total_loaded,
        missing_transaction_id=metrics["missing_txn_id"],
        missing_account_number=metrics["missing_account"],
        missing_amount=metrics["missing_amount"],
        invalid_amount_format=metrics["invalid_amount"],
        invalid_date_format=metrics["invalid_dates"],
        invalid_risk_indicator=metrics["invalid_risk"],
        duplicate_transaction_ids=duplicate_count,
        notes=notes,
    )

    log.info(EventCode.QUALITY_REPORT.value, report=report.model_dump())
    return report
