"""End-to-end sampling pipeline.

Population filter, size planner, selector, annotator and plan assembler run
in that order as one synchronous call. Each stage is a pure function of its
inputs, so callers may cache or discard results as they see fit.
"""

from __future__ import annotations

from collections.abc import Sequence

from .annotator import annotate
from .assembler import assemble
from .logging_setup import get_logger
from .models import (
    EventCode,
    Population,
    PopulationScope,
    SamplingMethod,
    SamplingParameters,
    SamplingResult,
    Transaction,
)
from .planner import materiality_not_set, plan_size, plan_strata
from .population import AccountMapper, compute_population
from .sampler import select_sample

log = get_logger("engine")


def run_sampling(
    transactions: Sequence[Transaction],
    scope: PopulationScope,
    params: SamplingParameters,
    mapper: AccountMapper,
) -> SamplingResult:
    """Scope the ledger and draw a sample from the resulting population.

    Args:
        transactions (Sequence[Transaction]): Materialized ledger transactions.
        scope (PopulationScope): Included standard numbers and exclusions.
        params (SamplingParameters): Sampling parameters validated via Pydantic.
        mapper (AccountMapper): Collaborator resolving standard numbers.

    Returns:
        SamplingResult: Plan, selected items and the population used.

    Raises:
        InvalidParameters: If the parameters are undefined for the method.
    """
    population = compute_population(transactions, scope, mapper)
    return sample_population(population, params)


def sample_population(
    population: Population, params: SamplingParameters
) -> SamplingResult:
    """Plan, select, annotate and assemble for an already scoped population.

    Args:
        population (Population): Output of the population filter.
        params (SamplingParameters): Sampling parameters validated via Pydantic.

    Returns:
        SamplingResult: Plan, selected items and the population used.

    Raises:
        InvalidParameters: If the parameters are undefined for the method.
    """
    recommended = plan_size(population, params)
    if materiality_not_set(params):
        log.warning(
            EventCode.MATERIALITY_NOT_SET.value,
            detail="substantive sample size is 0 until materiality is set",
        )

    strata = None
    if params.method is SamplingMethod.STRATIFIED:
        strata = plan_strata(population, params)

    selection = []
    if not population.is_empty:
        selection = select_sample(
            population.transactions, recommended, params, strata
        )

    annotation = annotate(selection, population, params)
    plan = assemble(
        population, recommended, annotation.items, annotation, params, strata
    )
    log.info(
        EventCode.SAMPLING_DONE.value,
        actual=plan.actual_sample_size,
        coverage=plan.coverage_percentage,
    )
    return SamplingResult(
        plan=plan, items=annotation.items, population=population
    )
