"""
Detectors for query-result anomalies.

Implements explainable methods behind one capability interface:
- Statistical: Z-score and IQR outliers over numeric columns
- Temporal: candidate date/time columns (extension point)
- Pattern: sequence/frequency anomalies (extension point)
- Business rule: named rule conditions evaluated per row

Every detector honours the same contract: given a query result and its
semantic analysis, return a fresh (possibly empty) list of anomalies and never
raise. Internal failures are logged and yield an empty list. Detectors yield
to the event loop between columns so a deadline can cancel them.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from bi_sentinel.data.extraction import (
    extract_numeric_values,
    find_numeric_columns,
    find_temporal_columns,
)
from bi_sentinel.data.schema import QueryResult, SemanticAnalysis

from . import sample_stats
from .config import (
    BusinessRule,
    PatternDetectionSettings,
    StatisticalThresholds,
    TemporalParameters,
    default_business_rules,
)
from .rules import CompiledCondition, compile_condition
from .schema import Anomaly, AnomalyType, utc_now
from .scoring import iqr_confidence, iqr_severity, zscore_confidence, zscore_severity

logger = logging.getLogger(__name__)


class DetectionOutcome(NamedTuple):
    """Anomalies from one detector run, and whether the run completed."""

    anomalies: List[Anomaly]
    succeeded: bool


class AnomalyDetector(ABC):
    """
    Base class for detectors.

    Subclasses implement _detect; run and detect wrap it with the
    never-raise contract. Settings are held as immutable snapshots with a
    version that increases on every replacement.

    Args:
        clock: Source of detection timestamps
    """

    name: str = "Detector"

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self.settings_version = 0
        self._clock = clock

    async def run(
        self, query_result: QueryResult, semantic_analysis: Optional[SemanticAnalysis] = None
    ) -> DetectionOutcome:
        """
        Detect anomalies and report whether detection completed.

        An internal failure is logged and yields an empty, unsuccessful
        outcome instead of an exception.
        """
        try:
            anomalies = await self._detect(query_result, semantic_analysis or SemanticAnalysis())
        except Exception:
            logger.error("Error in %s anomaly detection", self.name, exc_info=True)
            return DetectionOutcome([], False)

        logger.debug("%s detector found %d anomalies", self.name, len(anomalies))
        return DetectionOutcome(anomalies, True)

    async def detect(
        self, query_result: QueryResult, semantic_analysis: Optional[SemanticAnalysis] = None
    ) -> List[Anomaly]:
        outcome = await self.run(query_result, semantic_analysis)
        return outcome.anomalies

    @abstractmethod
    async def _detect(
        self, query_result: QueryResult, semantic_analysis: SemanticAnalysis
    ) -> List[Anomaly]:
        ...

    def train(self, historical_data: Sequence[QueryResult]) -> Dict[str, object]:
        """
        Observe historical results.

        Returns parameters worth recording in model metadata. The default
        records nothing.
        """
        logger.debug("Training %s detector with %d samples", self.name, len(historical_data))
        return {}


class StatisticalDetector(AnomalyDetector):
    """
    Z-score and IQR outlier detector for numeric columns.

    Columns with fewer than minimum_sample_size parsed values are skipped.
    The two tests run independently; their anomalies are not deduplicated
    here.
    """

    name = "Statistical"

    def __init__(
        self,
        thresholds: Optional[StatisticalThresholds] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock)
        self._thresholds = thresholds or StatisticalThresholds()

    @property
    def thresholds(self) -> StatisticalThresholds:
        return self._thresholds

    def update_thresholds(self, thresholds: StatisticalThresholds) -> None:
        self._thresholds = thresholds
        self.settings_version += 1
        logger.debug("Updated statistical thresholds (version %d)", self.settings_version)

    async def _detect(
        self, query_result: QueryResult, semantic_analysis: SemanticAnalysis
    ) -> List[Anomaly]:
        thresholds = self._thresholds
        anomalies: List[Anomaly] = []

        if not query_result.data:
            return anomalies

        for column_index, column in find_numeric_columns(query_result):
            await asyncio.sleep(0)
            samples = extract_numeric_values(query_result, column_index)
            if len(samples) < thresholds.minimum_sample_size:
                logger.debug(
                    "Skipping column %s: %d values below minimum sample size %d",
                    column.name,
                    len(samples),
                    thresholds.minimum_sample_size,
                )
                continue

            detected_at = self._clock()
            try:
                column_anomalies = detect_zscore_outliers(
                    samples, column.name, thresholds.zscore_threshold, detected_at
                ) + detect_iqr_outliers(samples, column.name, thresholds.iqr_multiplier, detected_at)
            except ArithmeticError:
                logger.warning(
                    "Skipping column %s: statistics out of numeric range", column.name, exc_info=True
                )
                continue
            anomalies.extend(column_anomalies)

        return anomalies

    def train(self, historical_data: Sequence[QueryResult]) -> Dict[str, object]:
        super().train(historical_data)
        eligible = 0
        for result in historical_data:
            for column_index, _ in find_numeric_columns(result):
                samples = extract_numeric_values(result, column_index)
                if len(samples) >= self._thresholds.minimum_sample_size:
                    eligible += 1
        return {
            "statistical_thresholds": self._thresholds.model_dump(),
            "eligible_numeric_columns": eligible,
        }


def detect_zscore_outliers(
    samples: Sequence[Tuple[int, float]],
    column_name: str,
    threshold: float,
    detected_at: Optional[datetime] = None,
) -> List[Anomaly]:
    """
    Flag values whose |z| exceeds threshold.

    Args:
        samples: (row_index, value) pairs for one column
        column_name: Name reported on each anomaly
        threshold: Z-score threshold
        detected_at: Timestamp for each anomaly; defaults to now

    Returns:
        One Statistical anomaly per outlying value; empty if std dev is zero
    """
    values = [v for _, v in samples]
    mean = sample_stats.mean(values)
    std_dev = sample_stats.population_std_dev(values, mean)
    if std_dev == 0:
        return []

    anomalies: List[Anomaly] = []
    for row_index, value in samples:
        z = abs(value - mean) / std_dev
        if z <= threshold:
            continue
        anomalies.append(
            Anomaly(
                type=AnomalyType.STATISTICAL,
                severity=zscore_severity(z),
                confidence=zscore_confidence(z),
                description=f"Statistical outlier detected in {column_name} (Z-Score: {z:.2f})",
                affected_column=column_name,
                affected_rows=[row_index],
                expected_value=mean,
                actual_value=value,
                detection_method="Z-Score",
                detected_at=detected_at or utc_now(),
                metadata={"z_score": z, "mean": mean, "std_dev": std_dev},
            )
        )
    return anomalies


def detect_iqr_outliers(
    samples: Sequence[Tuple[int, float]],
    column_name: str,
    multiplier: float,
    detected_at: Optional[datetime] = None,
) -> List[Anomaly]:
    """
    Flag values outside [Q1 - k*IQR, Q3 + k*IQR].

    Returns an empty list when the IQR is zero: the fences collapse and
    confidence is undefined.
    """
    bounds = sample_stats.iqr_bounds(sorted(v for _, v in samples), multiplier)
    if bounds.iqr == 0:
        return []

    anomalies: List[Anomaly] = []
    for row_index, value in samples:
        if bounds.contains(value):
            continue
        confidence = iqr_confidence(bounds.distance_to_nearest(value), bounds.iqr)
        anomalies.append(
            Anomaly(
                type=AnomalyType.OUTLIER,
                severity=iqr_severity(confidence),
                confidence=confidence,
                description=f"IQR outlier detected in {column_name}",
                affected_column=column_name,
                affected_rows=[row_index],
                expected_value=f"[{bounds.lower:.2f}, {bounds.upper:.2f}]",
                actual_value=value,
                detection_method="IQR",
                detected_at=detected_at or utc_now(),
                metadata={
                    "q1": bounds.q1,
                    "q3": bounds.q3,
                    "iqr": bounds.iqr,
                    "lower_bound": bounds.lower,
                    "upper_bound": bounds.upper,
                },
            )
        )
    return anomalies


class TemporalDetector(AnomalyDetector):
    """
    Temporal detector.

    Identifies date/time columns as candidates. No temporal algorithm ships
    yet; seasonal decomposition or moving-window volatility over the
    candidate columns would plug in at _detect_column.
    """

    name = "Temporal"

    def __init__(
        self,
        parameters: Optional[TemporalParameters] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock)
        self._parameters = parameters or TemporalParameters()

    @property
    def parameters(self) -> TemporalParameters:
        return self._parameters

    def update_parameters(self, parameters: TemporalParameters) -> None:
        self._parameters = parameters
        self.settings_version += 1
        logger.debug("Updated temporal parameters (version %d)", self.settings_version)

    async def _detect(
        self, query_result: QueryResult, semantic_analysis: SemanticAnalysis
    ) -> List[Anomaly]:
        parameters = self._parameters
        anomalies: List[Anomaly] = []
        for column_index, column in find_temporal_columns(query_result):
            await asyncio.sleep(0)
            anomalies.extend(self._detect_column(query_result, column_index, column.name, parameters))
        return anomalies

    def _detect_column(
        self,
        query_result: QueryResult,
        column_index: int,
        column_name: str,
        parameters: TemporalParameters,
    ) -> List[Anomaly]:
        return []


class PatternDetector(AnomalyDetector):
    """
    Pattern detector.

    Extension point for sequence-frequency and similarity algorithms; ships
    without one and reports nothing.
    """

    name = "Pattern"

    def __init__(
        self,
        settings: Optional[PatternDetectionSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock)
        self._settings = settings or PatternDetectionSettings()

    @property
    def settings(self) -> PatternDetectionSettings:
        return self._settings

    def update_settings(self, settings: PatternDetectionSettings) -> None:
        self._settings = settings
        self.settings_version += 1
        logger.debug("Updated pattern settings (version %d)", self.settings_version)

    async def _detect(
        self, query_result: QueryResult, semantic_analysis: SemanticAnalysis
    ) -> List[Anomaly]:
        return []


class BusinessRuleDetector(AnomalyDetector):
    """
    Business-rule detector.

    Holds an ordered rule set, seeded with defaults. Each enabled rule whose
    column references resolve against the result is evaluated row by row;
    every violating row yields one anomaly with the rule's severity.
    """

    name = "BusinessRule"

    def __init__(
        self,
        rules: Optional[Sequence[BusinessRule]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(clock)
        initial = list(rules) if rules is not None else default_business_rules()
        self._rules: Tuple[Tuple[BusinessRule, CompiledCondition], ...] = self._compile(initial)

    @staticmethod
    def _compile(rules: Sequence[BusinessRule]) -> Tuple[Tuple[BusinessRule, CompiledCondition], ...]:
        return tuple((rule, compile_condition(rule.condition)) for rule in rules)

    @property
    def rules(self) -> List[BusinessRule]:
        return [rule for rule, _ in self._rules]

    def update_rules(self, rules: Sequence[BusinessRule]) -> None:
        self._rules = self._compile(rules)
        self.settings_version += 1
        logger.debug("Updated business rules: %d rules", len(self._rules))

    async def _detect(
        self, query_result: QueryResult, semantic_analysis: SemanticAnalysis
    ) -> List[Anomaly]:
        anomalies: List[Anomaly] = []
        if not query_result.data:
            return anomalies

        for rule, condition in self._rules:
            if not rule.enabled:
                continue
            await asyncio.sleep(0)
            anomalies.extend(evaluate_rule(rule, condition, query_result, self._clock()))
        return anomalies


def evaluate_rule(
    rule: BusinessRule,
    condition: CompiledCondition,
    query_result: QueryResult,
    detected_at: Optional[datetime] = None,
) -> List[Anomaly]:
    """
    Evaluate one rule against every row.

    Returns an empty list when the rule's references do not resolve against
    the result's columns.
    """
    binding = condition.bind(query_result.column_names)
    if binding is None:
        logger.debug("Rule %s not applicable to result columns", rule.name)
        return []

    primary_index = binding[condition.references[0]]
    primary_column = query_result.columns[primary_index].name

    anomalies: List[Anomaly] = []
    for row_index in range(query_result.row_count):
        values = {ref: query_result.cell(row_index, idx) for ref, idx in binding.items()}
        if not condition.is_violated(values):
            continue
        anomalies.append(
            Anomaly(
                type=AnomalyType.BUSINESS_RULE,
                severity=rule.severity,
                confidence=rule.confidence,
                description=f"Business rule '{rule.name}' violated: {rule.condition}",
                affected_column=primary_column,
                affected_rows=[row_index],
                expected_value=rule.description or f"not ({rule.condition})",
                actual_value=query_result.cell(row_index, primary_index),
                detection_method="BusinessRule",
                detected_at=detected_at or utc_now(),
                metadata={
                    "rule_id": rule.id,
                    "rule_name": rule.name,
                    "condition": rule.condition,
                },
            )
        )
    return anomalies
