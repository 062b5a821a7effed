"""Validation tests for the engine's data models."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from audit_sampling.models import (
    RiskLevel,
    RiskMatrix,
    SampleItem,
    SamplingMethod,
    SamplingParameters,
    TestType,
    ThresholdMode,
    Transaction,
)


def _params(**overrides) -> SamplingParameters:
    values = {
        "test_type": TestType.SUBSTANTIVE,
        "method": SamplingMethod.SIMPLE_RANDOM,
        "confidence_level": 95,
        "materiality": 10_000.0,
    }
    values.update(overrides)
    return SamplingParameters(**values)


def test_defaults() -> None:
    params = _params()

    assert params.seed == 42
    assert params.expected_misstatement == 0.0
    assert not params.use_high_risk_inclusion
    assert params.risk_matrix.factor(RiskLevel.MODERATE) == 1.0
    assert params.threshold_mode is ThresholdMode.MAX
    assert params.performance_materiality is None


def test_control_requires_both_rates() -> None:
    with pytest.raises(ValidationError):
        _params(test_type=TestType.CONTROL, tolerable_deviation_rate=0.05)


def test_control_rejects_expected_misstatement() -> None:
    with pytest.raises(ValidationError):
        _params(
            test_type=TestType.CONTROL,
            tolerable_deviation_rate=0.05,
            expected_deviation_rate=0.0,
            expected_misstatement=100.0,
        )


def test_substantive_rejects_deviation_rates() -> None:
    with pytest.raises(ValidationError):
        _params(tolerable_deviation_rate=0.05, expected_deviation_rate=0.01)


def test_threshold_requires_amount() -> None:
    with pytest.raises(ValidationError):
        _params(method=SamplingMethod.THRESHOLD)


def test_stratified_requires_bounds() -> None:
    with pytest.raises(ValidationError):
        _params(method=SamplingMethod.STRATIFIED)


def test_threshold_mode_requires_its_amount() -> None:
    with pytest.raises(ValidationError):
        _params(threshold_mode=ThresholdMode.PM)
    with pytest.raises(ValidationError):
        _params(threshold_mode=ThresholdMode.CUSTOM)

    params = _params(
        threshold_mode=ThresholdMode.PM, performance_materiality=7_500.0
    )
    assert params.performance_materiality == 7_500.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"confidence_level": 80},
        {"materiality": -1.0},
        {"materiality": float("nan")},
        {"performance_materiality": -1.0},
        {"seed": -5},
        {"strata_bounds": (0.0, float("inf"))},
        {"unknown": 1},
    ],
)
def test_rejects_invalid_values(overrides) -> None:
    with pytest.raises(ValidationError):
        _params(**overrides)


def test_parameters_are_frozen() -> None:
    params = _params()
    with pytest.raises(ValidationError):
        params.seed = 1  # type: ignore[misc]


def test_transaction_rejects_non_finite_amount() -> None:
    with pytest.raises(ValidationError):
        Transaction(
            transaction_id="X",
            transaction_date=date(2024, 1, 1),
            account_number="3000",
            amount=float("inf"),
        )


def test_sample_item_multi_hit(make_txn) -> None:
    txn = make_txn("A", 10.0)

    single = SampleItem(transaction=txn, selection_type="Monetary Unit")
    multi = SampleItem(
        transaction=txn, selection_type="Monetary Unit", hits=3
    )

    assert not single.multi_hit
    assert multi.multi_hit


def test_risk_matrix_factors() -> None:
    matrix = RiskMatrix()

    assert matrix.factor(RiskLevel.LOW) == 0.8
    assert matrix.factor(RiskLevel.HIGH) == 1.3
    with pytest.raises(ValidationError):
        RiskMatrix(low=0.0)
