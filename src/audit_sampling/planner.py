"""Sample size planning per audit sampling method.

Sizes follow the Poisson-based tables of the AICPA Audit Sampling guide:
reliability factors for zero expected errors and expansion factors for
expected misstatement or deviations, keyed by confidence level.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from .errors import InvalidParameters
from .logging_setup import get_logger
from .models import (
    EventCode,
    Population,
    SamplingMethod,
    SamplingParameters,
    StratumSummary,
    TestType,
    Transaction,
)
from .strata import partition, stratum_edges, validate_bounds

log = get_logger("planner")

RELIABILITY_FACTORS = {90: 2.31, 95: 3.00, 99: 4.61}
EXPANSION_FACTORS = {90: 1.5, 95: 1.6, 99: 1.9}

# Absorbs float noise such as 60.000000001 before rounding up
_CEIL_TOLERANCE = 1e-9


def plan_size(population: Population, params: SamplingParameters) -> int:
    """Compute the recommended sample size for a population.

    Args:
        population (Population): Population produced by the filter.
        params (SamplingParameters): Validated sampling parameters.

    Returns:
        int: Recommended size clamped to ``[0, population.size]``.

    Raises:
        InvalidParameters: If the parameters are undefined for the method.
    """
    validate_parameters(params)
    if population.is_empty:
        log.info(
            EventCode.SIZE_PLANNED.value,
            recommended=0,
            empty_reason=population.empty_reason.value,
        )
        return 0

    if params.method is SamplingMethod.STRATIFIED:
        size = sum(
            s.allocated_sample_size for s in plan_strata(population, params)
        )
    else:
        size = _apply_risk_factor(base_sample_size(population, params), params)

    recommended = max(0, min(size, population.size))
    log.info(
        EventCode.SIZE_PLANNED.value,
        method=params.method.value,
        test_type=params.test_type.value,
        confidence=params.confidence_level,
        risk_factor=risk_factor(params),
        recommended=recommended,
    )
    return recommended


def base_sample_size(population: Population, params: SamplingParameters) -> int:
    """Return the formula size before the risk matrix is applied.

    Stratified runs add up the unscaled size of every non-empty stratum;
    the per-stratum minimum is not part of the base.
    """
    if population.is_empty:
        return 0
    if params.method is SamplingMethod.STRATIFIED:
        return sum(
            _stratum_base(members, params)
            for members in partition(
                population.transactions, params.strata_bounds
            )
        )
    if params.method is SamplingMethod.MONETARY_UNIT:
        return _monetary_unit_size(population.sum, params)
    if params.test_type is TestType.CONTROL:
        return attributes_size(population.size, params)
    return substantive_size(population.sum, params)


def risk_factor(params: SamplingParameters) -> float:
    """Return the risk matrix multiplier for the assessed risk level."""
    return params.risk_matrix.factor(params.risk_level)


def materiality_not_set(params: SamplingParameters) -> bool:
    """True for substantive runs whose size depends on a missing materiality.

    Materiality defaults to 0, which plans no items for these methods.
    Threshold runs do not use it, and monetary unit runs are rejected by
    ``validate_parameters`` instead.
    """
    return (
        params.test_type is TestType.SUBSTANTIVE
        and params.method is not SamplingMethod.THRESHOLD
        and params.materiality <= 0
    )


def plan_strata(
    population: Population, params: SamplingParameters
) -> tuple[StratumSummary, ...]:
    """Size every stratum by re-applying the test formula to it.

    Args:
        population (Population): Population produced by the filter.
        params (SamplingParameters): Parameters with validated strata bounds.

    Returns:
        tuple[StratumSummary, ...]: One summary per stratum with its allocation.
    """
    validate_bounds(params.strata_bounds)
    edges = stratum_edges(params.strata_bounds)
    parts = partition(population.transactions, params.strata_bounds)
    degenerate = (
        params.test_type is TestType.SUBSTANTIVE and params.materiality <= 0
    )

    summaries = []
    for index, ((lower, upper), members) in enumerate(zip(edges, parts)):
        stratum_sum = sum(t.amount_abs for t in members)
        allocated = 0
        if members and not degenerate:
            allocated = max(
                _apply_risk_factor(_stratum_base(members, params), params),
                params.min_per_stratum,
            )
            allocated = min(allocated, len(members))
        summaries.append(
            StratumSummary(
                index=index,
                lower_bound=lower,
                upper_bound=upper,
                size=len(members),
                sum=stratum_sum,
                allocated_sample_size=allocated,
            )
        )
    return tuple(summaries)


def validate_parameters(params: SamplingParameters) -> None:
    """Reject parameter combinations the chosen formula cannot evaluate.

    Raises:
        InvalidParameters: If the combination is mathematically undefined.
    """
    expansion = EXPANSION_FACTORS[params.confidence_level]

    if params.method is SamplingMethod.MONETARY_UNIT:
        if params.test_type is TestType.CONTROL:
            raise _reject(
                "monetary unit sampling applies to substantive tests only",
                "method",
            )
        if sampling_interval(params) <= 0:
            raise _reject(
                "monetary unit sampling interval must be positive; "
                "materiality must exceed the expanded expected misstatement",
                "materiality",
            )
    elif params.test_type is TestType.CONTROL:
        tolerable = params.tolerable_deviation_rate or 0.0
        expected = params.expected_deviation_rate or 0.0
        if expected >= tolerable:
            raise _reject(
                "expected deviation rate must be below the tolerable rate",
                "expected_deviation_rate",
            )
        if tolerable - expected * expansion <= 0:
            raise _reject(
                "expanded expected deviation rate reaches the tolerable rate",
                "expected_deviation_rate",
            )
    elif params.materiality > 0:
        if params.materiality - params.expected_misstatement * expansion <= 0:
            raise _reject(
                "expected misstatement leaves no room below materiality",
                "expected_misstatement",
            )

    if params.method is SamplingMethod.STRATIFIED:
        try:
            validate_bounds(params.strata_bounds)
        except InvalidParameters as exc:
            raise _reject(str(exc), "strata_bounds") from exc


def sampling_interval(params: SamplingParameters) -> float:
    """Return the monetary unit sampling interval.

    The interval is materiality less the expanded expected misstatement,
    divided by the reliability factor for the confidence level.
    """
    reliability = RELIABILITY_FACTORS[params.confidence_level]
    expansion = EXPANSION_FACTORS[params.confidence_level]
    span = params.materiality - params.expected_misstatement * expansion
    return span / reliability


def substantive_size(value_sum: float, params: SamplingParameters) -> int:
    """Size a substantive test over ``value_sum`` of absolute amounts.

    Returns 0 when materiality is not set or there is no value to test.
    """
    if params.materiality <= 0 or value_sum <= 0:
        return 0
    reliability = RELIABILITY_FACTORS[params.confidence_level]
    expansion = EXPANSION_FACTORS[params.confidence_level]
    denominator = params.materiality - params.expected_misstatement * expansion
    return _ceil(value_sum * reliability / denominator)


def attributes_size(count: int, params: SamplingParameters) -> int:
    """Size a control test over ``count`` items.

    Uses ``RF / (tolerable - expected * EF)`` with a finite population
    correction so small populations are not oversampled.
    """
    if count <= 0:
        return 0
    reliability = RELIABILITY_FACTORS[params.confidence_level]
    expansion = EXPANSION_FACTORS[params.confidence_level]
    tolerable = params.tolerable_deviation_rate or 0.0
    expected = params.expected_deviation_rate or 0.0
    n0 = reliability / (tolerable - expected * expansion)
    corrected = n0 / (1 + (n0 - 1) / count)
    return min(count, _ceil(corrected))


def suggest_threshold(
    performance_materiality: float,
    expected_misstatement: float,
    confidence_factor: float,
    risk_factor: float,
) -> float:
    """Suggest a key-item threshold from performance materiality.

    Args:
        performance_materiality (float): Performance materiality amount.
        expected_misstatement (float): Expected misstatement amount.
        confidence_factor (float): Confidence factor applied by the firm.
        risk_factor (float): Risk multiplier for the assessed risk level.

    Returns:
        float: ``(PM - EM) / (confidence_factor * risk_factor)``.

    Raises:
        InvalidParameters: If the factors do not yield a positive divisor.
    """
    divisor = confidence_factor * risk_factor
    if divisor <= 0:
        raise InvalidParameters(
            "confidence and risk factors must be positive",
            field="confidence_factor",
        )
    return (performance_materiality - expected_misstatement) / divisor


def _monetary_unit_size(value_sum: float, params: SamplingParameters) -> int:
    if value_sum <= 0:
        return 0
    return _ceil(value_sum / sampling_interval(params))


def _stratum_base(
    members: Sequence[Transaction], params: SamplingParameters
) -> int:
    if not members:
        return 0
    if params.test_type is TestType.CONTROL:
        return attributes_size(len(members), params)
    return substantive_size(sum(t.amount_abs for t in members), params)


def _apply_risk_factor(size: int, params: SamplingParameters) -> int:
    if size <= 0:
        return 0
    return _ceil(size * risk_factor(params))


def _ceil(value: float) -> int:
    return max(0, math.ceil(value - _CEIL_TOLERANCE))


def _reject(message: str, field: str) -> InvalidParameters:
    log.warning(
        EventCode.PARAMETERS_REJECTED.value, field=field, reason=message
    )
    return InvalidParameters(message, field=field)
