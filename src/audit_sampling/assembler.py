"""Packaging of planner, selector and annotator output into a plan."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Sequence
from datetime import datetime, timezone

from .logging_setup import get_logger
from .models import (
    Annotation,
    EventCode,
    Population,
    SampleItem,
    SamplingParameters,
    SamplingPlan,
    StratumSummary,
)
from .planner import base_sample_size, materiality_not_set, risk_factor
from .strata import partition

log = get_logger("assembler")


def assemble(
    population: Population,
    planned_size: int,
    selection: Sequence[SampleItem],
    coverage: Annotation,
    params: SamplingParameters,
    strata: Sequence[StratumSummary] | None = None,
) -> SamplingPlan:
    """Build the immutable plan record for a sampling run.

    Args:
        population (Population): Population the sample was drawn from.
        planned_size (int): Recommended size from the planner.
        selection (Sequence[SampleItem]): Final selected items.
        coverage (Annotation): Annotator output for the selection.
        params (SamplingParameters): Parameters used for the run.
        strata (Sequence[StratumSummary] | None): Planner strata, if any.

    Returns:
        SamplingPlan: Plan stamped with a single generation timestamp.
    """
    strata_summary: tuple[StratumSummary, ...] = ()
    if strata:
        strata_summary = _count_selected_per_stratum(
            strata, selection, params
        )

    plan = SamplingPlan(
        recommended_sample_size=planned_size,
        base_sample_size=base_sample_size(population, params),
        risk_factor=risk_factor(params),
        actual_sample_size=len(selection),
        coverage_percentage=coverage.coverage_percentage,
        method=params.method,
        test_type=params.test_type,
        generated_at=datetime.now(timezone.utc),
        seed=params.seed,
        param_hash=parameter_hash(params),
        population_size=population.size,
        population_sum=population.sum,
        selected_sum=coverage.selected_sum,
        high_risk_count=sum(
            1 for item in selection if item.selection_type == "High Risk"
        ),
        degenerate_coverage=population.sum <= 0,
        empty_reason=population.empty_reason,
        materiality_not_set=materiality_not_set(params),
        strata=strata_summary,
    )
    log.info(
        EventCode.PLAN_ASSEMBLED.value,
        recommended=plan.recommended_sample_size,
        actual=plan.actual_sample_size,
        coverage=plan.coverage_percentage,
        degenerate_coverage=plan.degenerate_coverage,
        materiality_not_set=plan.materiality_not_set,
        param_hash=plan.param_hash,
    )
    return plan


def parameter_hash(params: SamplingParameters) -> str:
    """Return a short deterministic fingerprint of the parameters.

    Keys are sorted before hashing so equal parameters always give the same
    fingerprint.
    """
    payload = json.dumps(
        params.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def _count_selected_per_stratum(
    strata: Sequence[StratumSummary],
    selection: Sequence[SampleItem],
    params: SamplingParameters,
) -> tuple[StratumSummary, ...]:
    selected = partition(
        [item.transaction for item in selection], params.strata_bounds
    )
    return tuple(
        summary.model_copy(update={"selected_count": len(members)})
        for summary, members in zip(strata, selected)
    )
