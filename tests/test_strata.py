"""Tests for amount strata helpers."""

from __future__ import annotations

import pytest

from audit_sampling.errors import InvalidParameters
from audit_sampling.strata import (
    allocate_proportional,
    generate_quantile_strata,
    partition,
    stratum_edges,
    validate_bounds,
)


def test_stratum_edges_add_lower_stratum() -> None:
    assert stratum_edges([1_000.0, 10_000.0]) == [
        (0.0, 1_000.0),
        (1_000.0, 10_000.0),
        (10_000.0, None),
    ]
    assert stratum_edges([0.0, 500.0]) == [(0.0, 500.0), (500.0, None)]


def test_partition_by_absolute_amount(make_txn) -> None:
    txns = [
        make_txn("A", 999.99),
        make_txn("B", -1_000.0),
        make_txn("C", 10_000.0),
        make_txn("D", 0.0),
    ]

    parts = partition(txns, [0.0, 1_000.0, 10_000.0])

    assert [[t.transaction_id for t in part] for part in parts] == [
        ["A", "D"],
        ["B"],
        ["C"],
    ]


def test_validate_bounds_rejects_unordered() -> None:
    with pytest.raises(InvalidParameters):
        validate_bounds([100.0, 100.0])
    with pytest.raises(InvalidParameters):
        validate_bounds([])
    validate_bounds([0.0, 1.0, 2.0])


def test_allocate_proportional_sums_to_total(mixed_ledger) -> None:
    parts = partition(mixed_ledger, [0.0, 1_000.0, 10_000.0])

    allocations = allocate_proportional(parts, 17)

    assert sum(allocations) == 17
    assert all(a <= len(p) for a, p in zip(allocations, parts))


def test_allocate_proportional_applies_minimum(mixed_ledger) -> None:
    parts = partition(mixed_ledger, [0.0, 1_000.0, 10_000.0])

    allocations = allocate_proportional(parts, 12, min_per_stratum=2)

    assert sum(allocations) == 12
    assert min(allocations) >= 2


def test_allocate_proportional_minimum_never_exceeds_total(
    mixed_ledger,
) -> None:
    parts = partition(mixed_ledger, [0.0, 1_000.0, 10_000.0])

    assert allocate_proportional(parts, 0, min_per_stratum=2) == [0, 0, 0]
    assert allocate_proportional(parts, 3, min_per_stratum=2) == [2, 1, 0]


def test_allocate_proportional_caps_at_population(mixed_ledger) -> None:
    parts = partition(mixed_ledger, [0.0, 1_000.0, 10_000.0])

    assert allocate_proportional(parts, 500) == [20, 20, 10]


def test_generate_quantile_strata() -> None:
    amounts = [float(v) for v in range(1, 101)]

    bounds = generate_quantile_strata(amounts, 4)

    assert bounds == [26.0, 51.0, 76.0]
    assert bounds == sorted(set(bounds))


def test_generate_quantile_strata_degenerate() -> None:
    assert generate_quantile_strata([], 3) == []
    assert generate_quantile_strata([5.0, 5.0, 5.0], 3) == [5.0]
    assert generate_quantile_strata([1.0, 2.0], 1) == []
