"""Shared pytest fixtures for audit sampling engine tests."""

from __future__ import annotations

from datetime import date, timedelta
from pathlib import Path

import pytest

from audit_sampling.models import (
    PopulationScope,
    RiskIndicator,
    SamplingMethod,
    SamplingParameters,
    TestType,
    Transaction,
)
from audit_sampling.population import IdentityAccountMapper

BASE_DATE = date(2024, 1, 1)


def make_transaction(
    txn_id: str,
    amount: float,
    account: str = "3000",
    day: int = 0,
    risk: RiskIndicator | None = None,
    description: str = "Sale",
) -> Transaction:
    """Build a ledger transaction with sensible defaults."""
    return Transaction(
        transaction_id=txn_id,
        transaction_date=BASE_DATE + timedelta(days=day),
        account_number=account,
        account_name=f"Account {account}",
        description=description,
        amount=amount,
        risk_indicator=risk,
    )


@pytest.fixture()
def make_txn():
    """Expose the transaction builder to tests."""
    return make_transaction


@pytest.fixture()
def ledger() -> list[Transaction]:
    """100 transactions on accounts 3000/3010 whose absolute sum is 1,000,000.

    Half carry 5,000 and half 15,000; every fourth one is posted as a credit.
    """
    transactions = []
    for i in range(100):
        amount = 5_000.0 if i % 2 == 0 else 15_000.0
        if i % 4 == 3:
            amount = -amount
        transactions.append(
            make_transaction(
                f"T{i:03d}",
                amount,
                account="3000" if i < 60 else "3010",
                day=i % 28,
            )
        )
    return transactions


@pytest.fixture()
def mixed_ledger() -> list[Transaction]:
    """Ledger with small, medium and large amounts for strata tests."""
    transactions = []
    for i in range(20):
        transactions.append(make_transaction(f"S{i:02d}", 500.0, day=i))
    for i in range(20):
        transactions.append(make_transaction(f"M{i:02d}", 5_000.0, day=i))
    for i in range(10):
        transactions.append(make_transaction(f"L{i:02d}", 50_000.0, day=i))
    return transactions


@pytest.fixture()
def scope() -> PopulationScope:
    return PopulationScope(
        included_standard_numbers=frozenset({"3000", "3010"})
    )


@pytest.fixture()
def mapper() -> IdentityAccountMapper:
    return IdentityAccountMapper()


@pytest.fixture()
def substantive_params() -> SamplingParameters:
    """Substantive simple random parameters with 50,000 materiality."""
    return SamplingParameters(
        test_type=TestType.SUBSTANTIVE,
        method=SamplingMethod.SIMPLE_RANDOM,
        confidence_level=95,
        materiality=50_000.0,
        expected_misstatement=0.0,
        seed=123,
    )


@pytest.fixture()
def control_params() -> SamplingParameters:
    """Control test parameters at 5% tolerable / 1% expected deviations."""
    return SamplingParameters(
        test_type=TestType.CONTROL,
        method=SamplingMethod.SIMPLE_RANDOM,
        confidence_level=95,
        tolerable_deviation_rate=0.05,
        expected_deviation_rate=0.01,
        seed=123,
    )


@pytest.fixture(scope="session")
def ledger_csv(tmp_path_factory) -> Path:
    """Create a reusable ledger export with mixed formats and bad rows."""
    p = tmp_path_factory.mktemp("data") / "ledger.csv"
    rows = [
        "Transaction ID,Date,Account,Account Name,Description,Amount,Risk",
        "G1,2024-01-05,3000,Sales,Invoice 1001,12500.00,low",
        "G2,06.01.2024,3000,Sales,Credit note,-2500.50,",
        "G3,2024-01-07,3010,Other income,Cash adjustment,70000,high",
        "G4,2024-01-08,3000,Sales,Invoice 1002,\"1,250.75\",medium",
        "G5,2024-01-09,3000,Sales,Broken amount,abc,",
        "G6,2024-13-40,3000,Sales,Broken date,100,",
        ",2024-01-10,3000,Sales,Missing id,100,",
        "G8,2024-01-11,,Sales,Missing account,100,",
        "G9,2024-01-12,4000,Rent,Office rent,8000,unknown",
        "G1,2024-01-13,3000,Sales,Duplicate id,300,",
    ]
    p.write_text("\n".join(rows), encoding="utf-8")
    return p


@pytest.fixture()
def run_id() -> str:
    return "test-run-id"
