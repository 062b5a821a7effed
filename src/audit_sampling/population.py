"""Population scoping: which ledger transactions are eligible for sampling."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Protocol

from .logging_setup import get_logger
from .models import (
    EmptyReason,
    EventCode,
    Population,
    PopulationScope,
    Transaction,
)

log = get_logger("population")


class AccountMapper(Protocol):
    """Resolves standard-account selections into concrete account numbers."""

    def resolve(self, standard_numbers: Iterable[str]) -> set[str]:
        ...


class StaticAccountMapper:
    """Mapper backed by a fixed standard-number to account-number table."""

    def __init__(self, mapping: Mapping[str, Iterable[str]]) -> None:
        self._mapping = {
            standard: frozenset(accounts)
            for standard, accounts in mapping.items()
        }

    def resolve(self, standard_numbers: Iterable[str]) -> set[str]:
        resolved: set[str] = set()
        for standard in standard_numbers:
            resolved.update(self._mapping.get(standard, ()))
        return resolved


class IdentityAccountMapper:
    """Mapper treating standard numbers as concrete account numbers."""

    def resolve(self, standard_numbers: Iterable[str]) -> set[str]:
        return set(standard_numbers)


def compute_population(
    transactions: Sequence[Transaction],
    scope: PopulationScope,
    mapper: AccountMapper,
) -> Population:
    """Filter the ledger down to the sampling population.

    Exclusions are applied after the included standard numbers have been
    expanded, so an account that is both included and excluded is left out.

    Args:
        transactions (Sequence[Transaction]): Candidate ledger transactions.
        scope (PopulationScope): Included standard numbers and excluded accounts.
        mapper (AccountMapper): Collaborator resolving standard numbers.

    Returns:
        Population: Qualifying transactions, aggregates and empty reason.
    """
    included = mapper.resolve(sorted(scope.included_standard_numbers))
    if not included:
        return _empty(EmptyReason.NO_SCOPE_SELECTED)

    if not transactions:
        return _empty(EmptyReason.NO_DATA_FOR_PERIOD)

    matched = [t for t in transactions if t.account_number in included]
    if not matched:
        return _empty(EmptyReason.NO_MATCHING_ACCOUNTS)

    excluded = scope.excluded_account_numbers
    qualifying = tuple(t for t in matched if t.account_number not in excluded)
    if not qualifying:
        return _empty(EmptyReason.ALL_EXCLUDED)

    total_abs = sum(t.amount_abs for t in qualifying)
    reason = EmptyReason.NONE
    if round(total_abs, 2) == 0 and all(t.amount == 0 for t in qualifying):
        reason = EmptyReason.ZERO_BALANCES

    population = Population(
        transactions=qualifying,
        size=len(qualifying),
        account_count=len({t.account_number for t in qualifying}),
        sum=total_abs,
        empty_reason=reason,
    )
    log.info(
        EventCode.POPULATION_COMPUTED.value,
        size=population.size,
        accounts=population.account_count,
        balance=population.sum,
        empty_reason=reason.value,
    )
    return population


def _empty(reason: EmptyReason) -> Population:
    log.info(EventCode.POPULATION_EMPTY.value, reason=reason.value)
    return Population(empty_reason=reason)
