"""Tests for population scoping."""

from __future__ import annotations

from audit_sampling.models import EmptyReason, PopulationScope
from audit_sampling.population import (
    IdentityAccountMapper,
    StaticAccountMapper,
    compute_population,
)


def test_population_aggregates(ledger, scope, mapper) -> None:
    population = compute_population(ledger, scope, mapper)

    assert population.empty_reason is EmptyReason.NONE
    assert not population.is_empty
    assert population.size == 100
    assert population.account_count == 2
    assert population.sum == 1_000_000.0


def test_sum_uses_absolute_amounts(make_txn, scope, mapper) -> None:
    transactions = [make_txn("A", 100.0), make_txn("B", -100.0)]
    population = compute_population(transactions, scope, mapper)

    assert population.sum == 200.0
    assert population.empty_reason is EmptyReason.NONE


def test_no_scope_selected(ledger, mapper) -> None:
    population = compute_population(ledger, PopulationScope(), mapper)

    assert population.empty_reason is EmptyReason.NO_SCOPE_SELECTED
    assert population.size == 0
    assert population.sum == 0.0


def test_unmapped_standard_number_is_no_scope(ledger) -> None:
    mapper = StaticAccountMapper({"30": ["3000"]})
    scope = PopulationScope(included_standard_numbers=frozenset({"99"}))

    population = compute_population(ledger, scope, mapper)

    assert population.empty_reason is EmptyReason.NO_SCOPE_SELECTED


def test_no_data_for_period(scope, mapper) -> None:
    population = compute_population([], scope, mapper)

    assert population.empty_reason is EmptyReason.NO_DATA_FOR_PERIOD
    assert population.is_empty


def test_no_matching_accounts(ledger, mapper) -> None:
    scope = PopulationScope(included_standard_numbers=frozenset({"9999"}))

    population = compute_population(ledger, scope, mapper)

    assert population.empty_reason is EmptyReason.NO_MATCHING_ACCOUNTS
    assert population.transactions == ()


def test_all_excluded(ledger, mapper) -> None:
    scope = PopulationScope(
        included_standard_numbers=frozenset({"3000", "3010"}),
        excluded_account_numbers=frozenset({"3000", "3010"}),
    )

    population = compute_population(ledger, scope, mapper)

    assert population.empty_reason is EmptyReason.ALL_EXCLUDED


def test_zero_balances(make_txn, scope, mapper) -> None:
    transactions = [make_txn(f"Z{i}", 0.0) for i in range(5)]

    population = compute_population(transactions, scope, mapper)

    assert population.empty_reason is EmptyReason.ZERO_BALANCES
    assert population.is_empty
    assert population.size == 5
    assert population.sum == 0.0


def test_exclusion_wins_over_inclusion(ledger, mapper) -> None:
    scope = PopulationScope(
        included_standard_numbers=frozenset({"3000", "3010"}),
        excluded_account_numbers=frozenset({"3010"}),
    )

    population = compute_population(ledger, scope, mapper)

    assert population.size == 60
    assert {t.account_number for t in population.transactions} == {"3000"}


def test_static_mapper_expands_standard_numbers(ledger) -> None:
    mapper = StaticAccountMapper({"30": ["3000", "3010"], "40": ["4000"]})
    scope = PopulationScope(included_standard_numbers=frozenset({"30"}))

    population = compute_population(ledger, scope, mapper)

    assert population.size == 100
    assert mapper.resolve(["30", "40"]) == {"3000", "3010", "4000"}


def test_population_is_idempotent(ledger, scope) -> None:
    mapper = IdentityAccountMapper()

    first = compute_population(ledger, scope, mapper)
    second = compute_population(ledger, scope, mapper)

    assert first == second


def test_population_keeps_transaction_identity(ledger, scope, mapper) -> None:
    population = compute_population(ledger, scope, mapper)

    assert population.transactions[0] is ledger[0]
