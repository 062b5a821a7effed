"""Core data models for the audit sampling engine."""

from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

ConfidenceLevel = Literal[90, 95, 99]

SelectionType = Literal[
    "High Risk",
    "Simple Random",
    "Systematic",
    "Monetary Unit",
    "Stratified",
    "Threshold",
]


class TestType(str, Enum):
    """Kind of audit test the sample supports."""

    __test__ = False  # keep pytest from collecting the enum

    SUBSTANTIVE = "Substantive"
    CONTROL = "Control"


class SamplingMethod(str, Enum):
    """Named audit sampling methods."""

    SIMPLE_RANDOM = "SimpleRandom"
    SYSTEMATIC = "Systematic"
    MONETARY_UNIT = "MonetaryUnit"
    STRATIFIED = "Stratified"
    THRESHOLD = "Threshold"


class EmptyReason(str, Enum):
    """Why a population came out empty."""

    NO_SCOPE_SELECTED = "no-scope-selected"
    NO_MATCHING_ACCOUNTS = "no-matching-accounts"
    ZERO_BALANCES = "zero-balances"
    ALL_EXCLUDED = "all-excluded"
    NO_DATA_FOR_PERIOD = "no-data-for-period"
    NONE = "none"


class RiskIndicator(str, Enum):
    """Externally assessed risk attached to a transaction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    """Assessed risk of material misstatement for the engagement area."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class RiskWeighting(str, Enum):
    """Strength of risk weighting applied to monetary unit selection."""

    DISABLED = "disabled"
    MODERATE = "moderate"
    HIGH = "high"


class ThresholdMode(str, Enum):
    """Which amount marks an item as high value for forced inclusion.

    ``max`` uses the larger of materiality and the threshold amount. The
    other modes pin the cutoff to one figure, and ``disabled`` turns the
    amount test off so only externally flagged items are forced.
    """

    MAX = "max"
    PM = "pm"
    TM = "tm"
    CUSTOM = "custom"
    DISABLED = "disabled"


class Transaction(BaseModel):
    """General-ledger transaction supplied by the ledger collaborator."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transaction_id: str = Field(min_length=1)
    transaction_date: date
    account_number: str = Field(min_length=1)
    account_name: str = ""
    description: str = ""
    amount: float
    risk_indicator: RiskIndicator | None = None
    voucher_number: str | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, value: float) -> float:
        """Reject NaN and infinite amounts."""

        if not math.isfinite(value):
            raise ValueError("amount must be a finite number")
        return value

    @property
    def amount_abs(self) -> float:
        return abs(self.amount)


class PopulationScope(BaseModel):
    """Account selection that defines the sampling population."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    included_standard_numbers: frozenset[str] = frozenset()
    excluded_account_numbers: frozenset[str] = frozenset()


class Population(BaseModel):
    """Filtered transactions eligible for sampling plus aggregates."""

    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    size: int = Field(default=0, ge=0)
    account_count: int = Field(default=0, ge=0)
    sum: float = Field(default=0.0, ge=0)
    empty_reason: EmptyReason = EmptyReason.NONE

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_empty(self) -> bool:
        return self.empty_reason is not EmptyReason.NONE


class RiskMatrix(BaseModel):
    """Sample size multipliers per assessed risk level."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    low: float = Field(default=0.8, gt=0, allow_inf_nan=False)
    moderate: float = Field(default=1.0, gt=0, allow_inf_nan=False)
    high: float = Field(default=1.3, gt=0, allow_inf_nan=False)

    def factor(self, level: RiskLevel) -> float:
        """Return the multiplier configured for ``level``."""

        return {
            RiskLevel.LOW: self.low,
            RiskLevel.MODERATE: self.moderate,
            RiskLevel.HIGH: self.high,
        }[level]


class SamplingParameters(BaseModel):
    """Fully validated sampling configuration built at the boundary.

    Only the parameters that are authoritative for ``test_type`` may be set:
    substantive tests are driven by materiality and expected misstatement,
    control tests by the tolerable/expected deviation rate pair.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    test_type: TestType
    method: SamplingMethod
    confidence_level: ConfidenceLevel
    materiality: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    performance_materiality: float | None = Field(
        default=None, ge=0, allow_inf_nan=False
    )
    expected_misstatement: float = Field(
        default=0.0, ge=0, allow_inf_nan=False
    )
    tolerable_deviation_rate: float | None = Field(default=None, ge=0, le=1)
    expected_deviation_rate: float | None = Field(default=None, ge=0, le=1)
    threshold_amount: float | None = Field(
        default=None, ge=0, allow_inf_nan=False
    )
    strata_bounds: tuple[float, ...] = ()
    seed: int = Field(default=42, ge=0)
    use_high_risk_inclusion: bool = False
    threshold_mode: ThresholdMode = ThresholdMode.MAX
    risk_level: RiskLevel = RiskLevel.MODERATE
    risk_matrix: RiskMatrix = Field(default_factory=RiskMatrix)
    risk_weighting: RiskWeighting = RiskWeighting.DISABLED
    min_per_stratum: int = Field(default=0, ge=0)

    @field_validator("strata_bounds")
    @classmethod
    def validate_strata_bounds(
        cls, value: tuple[float, ...]
    ) -> tuple[float, ...]:
        """Reject non-finite strata breakpoints."""

        if any(not math.isfinite(bound) for bound in value):
            raise ValueError("strata_bounds must contain finite numbers")
        return value

    @model_validator(mode="after")
    def validate_authoritative_fields(self) -> "SamplingParameters":
        """Require exactly the inputs the test type and method rely on."""

        rates = (self.tolerable_deviation_rate, self.expected_deviation_rate)
        if self.test_type is TestType.CONTROL:
            if any(rate is None for rate in rates):
                raise ValueError(
                    "control tests require tolerable_deviation_rate and "
                    "expected_deviation_rate"
                )
            if self.expected_misstatement:
                raise ValueError(
                    "expected_misstatement is not used by control tests"
                )
        elif any(rate is not None for rate in rates):
            raise ValueError("deviation rates are only used by control tests")

        if (
            self.method is SamplingMethod.THRESHOLD
            and self.threshold_amount is None
        ):
            raise ValueError("threshold method requires threshold_amount")
        if self.method is SamplingMethod.STRATIFIED and not self.strata_bounds:
            raise ValueError("stratified method requires strata_bounds")
        if (
            self.threshold_mode is ThresholdMode.PM
            and self.performance_materiality is None
        ):
            raise ValueError(
                "threshold_mode pm requires performance_materiality"
            )
        if (
            self.threshold_mode is ThresholdMode.CUSTOM
            and self.threshold_amount is None
        ):
            raise ValueError("threshold_mode custom requires threshold_amount")
        return self


class SampleItem(BaseModel):
    """A selected transaction reference with its risk annotation."""

    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    selection_type: SelectionType
    risk_score: float = Field(default=0.0, ge=0, le=1)
    hits: int = Field(default=1, ge=1)
    stratum_id: int | None = None
    rank: int | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def multi_hit(self) -> bool:
        return self.hits > 1


class StratumSummary(BaseModel):
    """Per-stratum counts and allocation for stratified runs."""

    model_config = ConfigDict(frozen=True)

    index: int
    lower_bound: float
    upper_bound: float | None = None
    size: int
    sum: float
    allocated_sample_size: int = 0
    selected_count: int = 0


class Annotation(BaseModel):
    """Coverage and risk-scored items returned by the annotator."""

    model_config = ConfigDict(frozen=True)

    coverage_percentage: float = Field(ge=0, le=100)
    selected_sum: float = Field(ge=0)
    items: tuple[SampleItem, ...] = ()


class SamplingPlan(BaseModel):
    """Immutable record describing one sampling run."""

    model_config = ConfigDict(frozen=True)

    recommended_sample_size: int = Field(ge=0)
    base_sample_size: int = Field(default=0, ge=0)
    risk_factor: float = 1.0
    actual_sample_size: int = Field(ge=0)
    coverage_percentage: float = Field(ge=0, le=100)
    method: SamplingMethod
    test_type: TestType
    generated_at: datetime
    seed: int
    param_hash: str
    population_size: int
    population_sum: float
    selected_sum: float
    high_risk_count: int = 0
    degenerate_coverage: bool = False
    materiality_not_set: bool = False
    empty_reason: EmptyReason = EmptyReason.NONE
    strata: tuple[StratumSummary, ...] = ()


class SamplingResult(BaseModel):
    """Plan, selection and population produced by one pipeline run."""

    model_config = ConfigDict(frozen=True)

    plan: SamplingPlan
    items: tuple[SampleItem, ...]
    population: Population


class DataQualityReport(BaseModel):
    """Data quality metrics tracked while loading a ledger export."""

    total_rows_raw: int
    total_rows_loaded: int
    missing_transaction_id: int
    missing_account_number: int
    missing_amount: int
    invalid_amount_format: int
    invalid_date_format: int
    invalid_risk_indicator: int
    duplicate_transaction_ids: int
    notes: str = ""


class EventCode(str, Enum):
    """Enumeration of structured logging event codes."""

    RUN_START = "RUN_START"
    LEDGER_LOADED = "LEDGER_LOADED"
    QUALITY_REPORT = "QUALITY_REPORT"
    POPULATION_COMPUTED = "POPULATION_COMPUTED"
    POPULATION_EMPTY = "POPULATION_EMPTY"
    MATERIALITY_NOT_SET = "MATERIALITY_NOT_SET"
    PARAMETERS_REJECTED = "PARAMETERS_REJECTED"
    SIZE_PLANNED = "SIZE_PLANNED"
    HIGH_RISK_INCLUDED = "HIGH_RISK_INCLUDED"
    SAMPLE_SELECTED = "SAMPLE_SELECTED"
    COVERAGE_ANNOTATED = "COVERAGE_ANNOTATED"
    PLAN_ASSEMBLED = "PLAN_ASSEMBLED"
    SAMPLING_DONE = "SAMPLING_DONE"
    REPORT_WRITTEN = "REPORT_WRITTEN"
    RUN_SUMMARY = "RUN_SUMMARY"


class RunSummary(BaseModel):
    """Aggregate run results and timings persisted as JSON."""

    run_id: str
    started_at_utc: datetime
    finished_at_utc: datetime
    duration_seconds: float
    loading_seconds: float
    sampling_seconds: float
    reporting_seconds: float
    parameters: dict
    data_quality: dict
    plan: dict
    sample_size: int
    output_excel: str
    version: str = "1.0.0"
