"""Sample selection for the supported audit sampling methods."""

from __future__ import annotations

import math
import random
from bisect import bisect_right
from collections.abc import Sequence

from .annotator import is_high_risk, risk_score
from .logging_setup import get_logger
from .models import (
    EventCode,
    RiskWeighting,
    SampleItem,
    SamplingMethod,
    SamplingParameters,
    SelectionType,
    StratumSummary,
    Transaction,
)
from .strata import allocate_proportional, partition, validate_bounds

log = get_logger("sampler")

RISK_WEIGHT_ALPHA = {
    RiskWeighting.DISABLED: 0.0,
    RiskWeighting.MODERATE: 0.6,
    RiskWeighting.HIGH: 1.0,
}


def select_sample(
    transactions: Sequence[Transaction],
    recommended_size: int,
    params: SamplingParameters,
    strata: Sequence[StratumSummary] | None = None,
) -> list[SampleItem]:
    """Select the sample for the configured method.

    The population is put in a stable (date, transaction id) order before
    any draw, so a given seed always reproduces the same ordered sample.

    Args:
        transactions (Sequence[Transaction]): Population transactions.
        recommended_size (int): Size from the planner.
        params (SamplingParameters): Sampling parameters validated via Pydantic.
        strata (Sequence[StratumSummary] | None): Per-stratum sizes from the
            planner; stratified runs allocate ``recommended_size``
            proportionally when omitted.

    Returns:
        list[SampleItem]: Ranked sample, forced high-risk items first.
    """
    ordered = _stable_order(transactions)

    if params.method is SamplingMethod.THRESHOLD:
        threshold_items = _select_threshold(
            ordered, params.threshold_amount or 0.0
        )
        log.info(
            EventCode.SAMPLE_SELECTED.value,
            method=params.method.value,
            selected=len(threshold_items),
        )
        return _combine_samples([], threshold_items)

    forced: list[SampleItem] = []
    if params.use_high_risk_inclusion:
        forced = _select_high_risk(ordered, params)
        log.info(EventCode.HIGH_RISK_INCLUDED.value, count=len(forced))

    remaining = _exclude_transactions(ordered, forced)
    quota = max(0, recommended_size - len(forced))
    rng = random.Random(params.seed)

    if recommended_size <= 0:
        method_items = []
    elif params.method is SamplingMethod.STRATIFIED:
        method_items = _select_stratified(
            remaining,
            quota,
            params,
            rng,
            strata,
            [item.transaction for item in forced],
        )
    elif params.method is SamplingMethod.SYSTEMATIC:
        method_items = [
            _make_item(t, "Systematic")
            for t in _select_systematic(remaining, quota, rng)
        ]
    elif params.method is SamplingMethod.MONETARY_UNIT:
        method_items = [
            _make_item(t, "Monetary Unit", hits=hits)
            for t, hits in _select_monetary_units(remaining, quota, params, rng)
        ]
    else:
        method_items = [
            _make_item(t, "Simple Random")
            for t in _select_random(remaining, quota, rng)
        ]

    sample = _combine_samples(forced, method_items)
    log.info(
        EventCode.SAMPLE_SELECTED.value,
        method=params.method.value,
        recommended=recommended_size,
        forced=len(forced),
        selected=len(method_items),
    )
    return sample


def _stable_order(transactions: Sequence[Transaction]) -> list[Transaction]:
    return sorted(
        transactions, key=lambda t: (t.transaction_date, t.transaction_id)
    )


def _select_threshold(
    transactions: list[Transaction], threshold: float
) -> list[SampleItem]:
    """Return every transaction at or above the threshold amount."""
    return [
        _make_item(t, "Threshold")
        for t in transactions
        if t.amount_abs >= threshold
    ]


def _select_high_risk(
    transactions: list[Transaction],
    params: SamplingParameters,
) -> list[SampleItem]:
    """Return transactions that must be included regardless of the draw.

    Args:
        transactions (list[Transaction]): Candidate population items.
        params (SamplingParameters): Source of the materiality cutoff.

    Returns:
        list[SampleItem]: Items classified as high risk.
    """
    return [
        _make_item(t, "High Risk")
        for t in transactions
        if is_high_risk(t, params)
    ]


def _exclude_transactions(
    population: list[Transaction],
    to_exclude: list[SampleItem],
) -> list[Transaction]:
    """Remove already selected transactions from the population.

    Args:
        population (list[Transaction]): Full population.
        to_exclude (list[SampleItem]): Items already selected.

    Returns:
        list[Transaction]: Population items remaining for the method draw.
    """
    # Identity, not transaction_id, so rows sharing an id stay distinct
    excluded = {id(item.transaction) for item in to_exclude}
    return [t for t in population if id(t) not in excluded]


def _select_random(
    transactions: list[Transaction],
    sample_size: int,
    rng: random.Random,
) -> list[Transaction]:
    """Draw ``sample_size`` items uniformly without replacement."""
    if sample_size <= 0 or not transactions:
        return []
    return rng.sample(transactions, min(sample_size, len(transactions)))


def _select_systematic(
    transactions: list[Transaction],
    sample_size: int,
    rng: random.Random,
) -> list[Transaction]:
    """Pick every k-th item after a random start.

    The fractional interval accumulates and is floored per step. Positions
    that collapse onto an earlier one are replaced from the tail so the
    sample never falls short of ``sample_size``.

    Args:
        transactions (list[Transaction]): Population in stable order.
        sample_size (int): Number of items to select.
        rng (random.Random): Seeded generator for the start offset.

    Returns:
        list[Transaction]: Selected items in population order.
    """
    count = len(transactions)
    if sample_size <= 0 or count == 0:
        return []
    sample_size = min(sample_size, count)
    interval = count / sample_size
    start = rng.random() * interval

    positions: set[int] = set()
    for step in range(sample_size):
        positions.add(min(count - 1, math.floor(start + step * interval)))

    tail = count - 1
    while len(positions) < sample_size:
        if tail not in positions:
            positions.add(tail)
        tail -= 1

    return [transactions[pos] for pos in sorted(positions)]


def _select_monetary_units(
    transactions: list[Transaction],
    sample_size: int,
    params: SamplingParameters,
    rng: random.Random,
) -> list[tuple[Transaction, int]]:
    """Select transactions containing seeded monetary sampling points.

    Cumulative absolute amounts (optionally risk weighted) form a number
    line split into ``sample_size`` equal intervals; one random point is
    drawn inside each interval.

    Args:
        transactions (list[Transaction]): Population in stable order.
        sample_size (int): Number of monetary sampling points.
        params (SamplingParameters): Supplies the risk weighting.
        rng (random.Random): Seeded generator for the points.

    Returns:
        list[tuple[Transaction, int]]: Unique transactions with hit counts,
            in order of first hit.
    """
    candidates = [t for t in transactions if t.amount_abs > 0]
    if sample_size <= 0 or not candidates:
        return []

    alpha = RISK_WEIGHT_ALPHA[params.risk_weighting]
    cumulative: list[float] = []
    running = 0.0
    for txn in candidates:
        weight = 1 + alpha * risk_score(txn, params) if alpha else 1.0
        running += txn.amount_abs * weight
        cumulative.append(running)

    width = running / sample_size
    hits: dict[int, int] = {}
    selected: list[Transaction] = []
    for step in range(sample_size):
        point = (step + rng.random()) * width
        idx = min(bisect_right(cumulative, point), len(candidates) - 1)
        txn = candidates[idx]
        if id(txn) not in hits:
            hits[id(txn)] = 0
            selected.append(txn)
        hits[id(txn)] += 1

    return [(txn, hits[id(txn)]) for txn in selected]


def _select_stratified(
    transactions: list[Transaction],
    quota: int,
    params: SamplingParameters,
    rng: random.Random,
    strata: Sequence[StratumSummary] | None,
    forced: list[Transaction],
) -> list[SampleItem]:
    """Run a simple random draw inside every stratum.

    Planner allocations are reduced by the forced items that fall inside
    each stratum. Without planner allocations, ``quota`` is spread across
    strata in proportion to their value.
    """
    validate_bounds(params.strata_bounds)
    parts = partition(transactions, params.strata_bounds)
    if strata is not None:
        forced_parts = partition(forced, params.strata_bounds)
        allocations = [
            min(
                len(part),
                max(0, summary.allocated_sample_size - len(forced_part)),
            )
            for part, forced_part, summary in zip(parts, forced_parts, strata)
        ]
    else:
        allocations = allocate_proportional(
            parts, quota, params.min_per_stratum
        )

    items: list[SampleItem] = []
    for index, (part, allocation) in enumerate(zip(parts, allocations)):
        items.extend(
            _make_item(t, "Stratified", stratum_id=index)
            for t in _select_random(part, allocation, rng)
        )
    return items


def _make_item(
    txn: Transaction,
    selection_type: SelectionType,
    hits: int = 1,
    stratum_id: int | None = None,
) -> SampleItem:
    return SampleItem(
        transaction=txn,
        selection_type=selection_type,
        hits=hits,
        stratum_id=stratum_id,
    )


def _combine_samples(
    forced: list[SampleItem],
    method_items: list[SampleItem],
) -> list[SampleItem]:
    """Concatenate forced and method selections and assign ranks.

    Args:
        forced (list[SampleItem]): High-risk selections.
        method_items (list[SampleItem]): Method selections.

    Returns:
        list[SampleItem]: Combined sample with 1-based ranks.
    """
    return [
        item.model_copy(update={"rank": rank})
        for rank, item in enumerate(forced + method_items, start=1)
    ]
