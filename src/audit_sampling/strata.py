"""Amount strata shared by the planner and the selector."""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Sequence

from .errors import InvalidParameters
from .models import Transaction


def validate_bounds(bounds: Sequence[float]) -> None:
    """Ensure strata breakpoints are non-negative and strictly increasing.

    Raises:
        InvalidParameters: If the bounds are empty, negative or out of order.
    """
    if not bounds:
        raise InvalidParameters(
            "stratified sampling requires at least one stratum bound",
            field="strata_bounds",
        )
    if bounds[0] < 0:
        raise InvalidParameters(
            "strata bounds apply to absolute amounts and cannot be negative",
            field="strata_bounds",
        )
    for lower, upper in zip(bounds, bounds[1:]):
        if upper <= lower:
            raise InvalidParameters(
                "strata bounds must be strictly increasing "
                f"({lower} >= {upper})",
                field="strata_bounds",
            )


def stratum_edges(bounds: Sequence[float]) -> list[tuple[float, float | None]]:
    """Return ``(lower, upper)`` pairs covering ``[0, inf)``.

    The last stratum is open-ended. A stratum ``[0, bounds[0])`` is added
    when the first bound is above zero so every amount has a home.
    """
    lowers = list(bounds)
    if lowers[0] > 0:
        lowers.insert(0, 0.0)
    uppers: list[float | None] = [*lowers[1:], None]
    return list(zip(lowers, uppers))


def partition(
    transactions: Sequence[Transaction],
    bounds: Sequence[float],
) -> list[list[Transaction]]:
    """Split transactions into strata by absolute amount.

    Args:
        transactions (Sequence[Transaction]): Population to partition.
        bounds (Sequence[float]): Validated strata breakpoints.

    Returns:
        list[list[Transaction]]: One list per stratum, input order preserved.
    """
    lowers = [lower for lower, _ in stratum_edges(bounds)]
    strata: list[list[Transaction]] = [[] for _ in lowers]
    for txn in transactions:
        strata[bisect_right(lowers, txn.amount_abs) - 1].append(txn)
    return strata


def allocate_proportional(
    strata: Sequence[Sequence[Transaction]],
    total: int,
    min_per_stratum: int = 0,
) -> list[int]:
    """Spread ``total`` across strata in proportion to their value.

    Each non-empty stratum first receives ``min_per_stratum`` items (capped
    at its size, and in stratum order at whatever is left of ``total``); the
    rest is allocated by share of absolute amount and then nudged so the
    allocations add up to ``total`` wherever capacity allows.

    Args:
        strata (Sequence[Sequence[Transaction]]): Partitioned population.
        total (int): Overall sample size to distribute.
        min_per_stratum (int): Floor applied to every non-empty stratum.

    Returns:
        list[int]: Allocated sample size per stratum.
    """
    sizes = [len(stratum) for stratum in strata]
    weights = [sum(t.amount_abs for t in stratum) for stratum in strata]
    floors: list[int] = []
    budget = max(0, total)
    for size in sizes:
        floor = min(min_per_stratum, size, budget)
        floors.append(floor)
        budget -= floor
    allocated = list(floors)

    remaining = total - sum(allocated)
    total_weight = sum(weights)
    if remaining > 0 and total_weight > 0:
        for idx, weight in enumerate(weights):
            share = round(weight / total_weight * remaining)
            allocated[idx] += min(share, sizes[idx] - allocated[idx])

    gap = max(0, total) - sum(allocated)
    for idx, size in enumerate(sizes):
        if gap == 0:
            break
        if gap > 0:
            step = min(gap, size - allocated[idx])
            allocated[idx] += step
            gap -= step
        else:
            step = min(-gap, allocated[idx] - floors[idx])
            allocated[idx] -= step
            gap += step
    return allocated


def generate_quantile_strata(
    amounts: Sequence[float], strata_count: int
) -> list[float]:
    """Suggest strictly increasing bounds splitting amounts into quantiles.

    Args:
        amounts (Sequence[float]): Transaction amounts (sign is ignored).
        strata_count (int): Desired number of strata.

    Returns:
        list[float]: Interior breakpoints; empty when there is nothing to split.
    """
    if not amounts or strata_count < 2:
        return []
    ordered = sorted(abs(amount) for amount in amounts)
    bounds: list[float] = []
    for i in range(1, strata_count):
        position = min(len(ordered) - 1, i * len(ordered) // strata_count)
        candidate = ordered[position]
        if candidate > 0 and (not bounds or candidate > bounds[-1]):
            bounds.append(candidate)
    return bounds
