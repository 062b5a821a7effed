"""Coverage and risk annotation for selected samples."""

from __future__ import annotations

from collections.abc import Sequence

from .logging_setup import get_logger
from .models import (
    Annotation,
    EventCode,
    Population,
    RiskIndicator,
    SampleItem,
    SamplingParameters,
    ThresholdMode,
    Transaction,
)

log = get_logger("annotator")

AMOUNT_WEIGHT = 0.5
INDICATOR_WEIGHTS = {
    RiskIndicator.LOW: 0.0,
    RiskIndicator.MEDIUM: 0.15,
    RiskIndicator.HIGH: 0.3,
}
ROUND_AMOUNT_WEIGHT = 0.1
KEYWORD_WEIGHT = 0.1
RISK_KEYWORDS = (
    "cash",
    "kontant",
    "adjustment",
    "justering",
    "manual",
    "correction",
)


def annotate(
    items: Sequence[SampleItem],
    population: Population,
    params: SamplingParameters | None = None,
) -> Annotation:
    """Compute sample coverage and attach fresh risk scores.

    Args:
        items (Sequence[SampleItem]): Selected items from the selector.
        population (Population): Population the items were drawn from.
        params (SamplingParameters | None): Parameters supplying the amount
            reference for risk scoring; amounts are not scored without them.

    Returns:
        Annotation: Coverage percentage, selected value and scored items.
    """
    selected_sum = sum(item.transaction.amount_abs for item in items)
    coverage = coverage_percentage(selected_sum, population.sum)
    scored = tuple(
        item.model_copy(
            update={"risk_score": risk_score(item.transaction, params)}
        )
        for item in items
    )
    log.info(
        EventCode.COVERAGE_ANNOTATED.value,
        selected_sum=selected_sum,
        coverage=coverage,
    )
    return Annotation(
        coverage_percentage=coverage,
        selected_sum=selected_sum,
        items=scored,
    )


def coverage_percentage(selected_sum: float, population_sum: float) -> float:
    """Return selected value as a percentage of population value.

    Defined as 0 when the population carries no value.
    """
    if population_sum <= 0:
        return 0.0
    ratio = selected_sum / population_sum * 100
    return round(min(100.0, max(0.0, ratio)), 2)


def risk_score(
    txn: Transaction, params: SamplingParameters | None = None
) -> float:
    """Score a transaction's risk on a ``[0, 1]`` scale.

    Combines the amount relative to the threshold (or materiality), the
    external risk indicator, round-thousand amounts and risk keywords in the
    description.

    Args:
        txn (Transaction): Transaction to score.
        params (SamplingParameters | None): Source of the amount reference.

    Returns:
        float: Bounded additive risk score.
    """
    score = 0.0
    reference = _amount_reference(params)
    if reference > 0:
        score += AMOUNT_WEIGHT * min(1.0, txn.amount_abs / reference)
    if txn.risk_indicator is not None:
        score += INDICATOR_WEIGHTS[txn.risk_indicator]
    if txn.amount_abs >= 1000 and txn.amount_abs % 1000 == 0:
        score += ROUND_AMOUNT_WEIGHT
    description = txn.description.lower()
    if any(keyword in description for keyword in RISK_KEYWORDS):
        score += KEYWORD_WEIGHT
    return round(min(1.0, score), 4)


def is_high_risk(txn: Transaction, params: SamplingParameters) -> bool:
    """Return True when a transaction must be forced into the sample.

    A transaction qualifies when flagged high risk externally, or when its
    absolute amount exceeds the high-value cutoff for the threshold mode.
    """
    if txn.risk_indicator is RiskIndicator.HIGH:
        return True
    cutoff = high_value_cutoff(params)
    return cutoff is not None and txn.amount_abs > cutoff


def high_value_cutoff(params: SamplingParameters) -> float | None:
    """Return the amount above which items are high value.

    ``None`` means no amount qualifies, either because the mode is disabled
    or because the chosen figure is not positive.
    """
    mode = params.threshold_mode
    if mode is ThresholdMode.DISABLED:
        return None
    if mode is ThresholdMode.PM:
        cutoff = params.performance_materiality or 0.0
    elif mode is ThresholdMode.TM:
        cutoff = params.materiality
    elif mode is ThresholdMode.CUSTOM:
        cutoff = params.threshold_amount or 0.0
    else:
        cutoff = max(params.materiality, params.threshold_amount or 0.0)
    return cutoff if cutoff > 0 else None


def _amount_reference(params: SamplingParameters | None) -> float:
    if params is None:
        return 0.0
    if params.threshold_amount:
        return params.threshold_amount
    return params.materiality
