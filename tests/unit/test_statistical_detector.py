"""
Unit tests for the statistical detector.
"""

import math

import pytest

from bi_sentinel.anomaly.config import StatisticalThresholds
from bi_sentinel.anomaly.detectors import (
    StatisticalDetector,
    detect_iqr_outliers,
    detect_zscore_outliers,
)
from bi_sentinel.anomaly.sample_stats import mean, population_std_dev
from bi_sentinel.anomaly.schema import AnomalySeverity, AnomalyType
from bi_sentinel.data.schema import ColumnMetadata, QueryResult

BASELINE_AMOUNTS = [10.0, 11.0, 12.0, 13.0, 14.0] * 6
OUTLIER_AMOUNT = 100.0
OUTLIER_ROW = 30


def _amount_result(values) -> QueryResult:
    return QueryResult(
        columns=[ColumnMetadata(name="Amount", data_type="decimal(18,2)")],
        data=[[v] for v in values],
    )


@pytest.mark.asyncio
async def test_detects_zscore_and_iqr_outlier(sales_result):
    detector = StatisticalDetector()

    anomalies = await detector.detect(sales_result)

    assert {a.type for a in anomalies} == {AnomalyType.STATISTICAL, AnomalyType.OUTLIER}
    assert all(a.affected_rows == [OUTLIER_ROW] for a in anomalies)
    assert all(a.affected_column == "Amount" for a in anomalies)
    assert all(a.actual_value == OUTLIER_AMOUNT for a in anomalies)

    zscore = next(a for a in anomalies if a.type == AnomalyType.STATISTICAL)
    values = BASELINE_AMOUNTS + [OUTLIER_AMOUNT]
    expected_mean = mean(values)
    expected_z = (OUTLIER_AMOUNT - expected_mean) / population_std_dev(values, expected_mean)
    assert zscore.detection_method == "Z-Score"
    assert math.isclose(zscore.metadata["z_score"], expected_z)
    assert math.isclose(zscore.expected_value, expected_mean)
    assert zscore.severity == AnomalySeverity.HIGH
    assert zscore.confidence == 0.99

    iqr = next(a for a in anomalies if a.type == AnomalyType.OUTLIER)
    assert iqr.detection_method == "IQR"
    assert iqr.metadata["q1"] == 11.0
    assert iqr.metadata["q3"] == 13.0
    assert iqr.metadata["lower_bound"] == 8.0
    assert iqr.metadata["upper_bound"] == 16.0
    assert iqr.expected_value == "[8.00, 16.00]"
    assert iqr.severity == AnomalySeverity.HIGH


@pytest.mark.asyncio
async def test_skips_columns_below_minimum_sample_size():
    detector = StatisticalDetector()
    anomalies = await detector.detect(_amount_result([1, 2, 3, 4, 1000]))
    assert anomalies == []


@pytest.mark.asyncio
async def test_constant_column_yields_nothing():
    detector = StatisticalDetector()
    anomalies = await detector.detect(_amount_result([5.0] * 40))
    assert anomalies == []


@pytest.mark.asyncio
async def test_empty_result_yields_nothing():
    detector = StatisticalDetector()
    assert await detector.detect(QueryResult()) == []


@pytest.mark.asyncio
async def test_row_indices_survive_null_and_text_cells():
    values = [None, "n/a"] + BASELINE_AMOUNTS + [OUTLIER_AMOUNT]
    detector = StatisticalDetector()

    anomalies = await detector.detect(_amount_result(values))

    assert anomalies
    assert all(a.affected_rows == [OUTLIER_ROW + 2] for a in anomalies)


@pytest.mark.asyncio
async def test_non_numeric_columns_are_ignored(sales_result):
    text_only = QueryResult(
        columns=[sales_result.columns[0]],
        data=[[row[0]] for row in sales_result.data],
    )
    assert await StatisticalDetector().detect(text_only) == []


def test_zscore_threshold_controls_detection():
    samples = list(enumerate([1.0, 2.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 100.0]))

    # z(100) is just under 3 for this sample
    assert detect_zscore_outliers(samples, "x", 3.0) == []

    anomalies = detect_zscore_outliers(samples, "x", 2.5)
    assert len(anomalies) == 1
    assert anomalies[0].affected_rows == [9]
    assert anomalies[0].severity == AnomalySeverity.MEDIUM
    assert math.isclose(anomalies[0].confidence, anomalies[0].metadata["z_score"] / 5.0)


def test_iqr_outliers_on_small_sample():
    samples = list(enumerate([1.0, 2.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 100.0]))

    anomalies = detect_iqr_outliers(samples, "x", 1.5)

    assert len(anomalies) == 1
    anomaly = anomalies[0]
    assert anomaly.type == AnomalyType.OUTLIER
    assert anomaly.affected_rows == [9]
    assert math.isclose(anomaly.metadata["q1"], 2.25)
    assert math.isclose(anomaly.metadata["q3"], 7.75)
    assert anomaly.expected_value == "[-6.00, 16.00]"
    assert anomaly.confidence == 0.99


def test_iqr_skipped_when_range_is_zero():
    samples = list(enumerate([5.0] * 10 + [50.0]))
    assert detect_iqr_outliers(samples, "x", 1.5) == []


@pytest.mark.asyncio
async def test_update_thresholds_replaces_snapshot():
    detector = StatisticalDetector()
    values = [1.0, 2.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 100.0]
    assert await detector.detect(_amount_result(values)) == []

    detector.update_thresholds(StatisticalThresholds(minimum_sample_size=10))

    assert detector.settings_version == 1
    anomalies = await detector.detect(_amount_result(values))
    assert [a.type for a in anomalies] == [AnomalyType.OUTLIER]


@pytest.mark.asyncio
async def test_internal_failure_yields_empty_list(sales_result, monkeypatch):
    detector = StatisticalDetector()

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("bi_sentinel.anomaly.detectors.detect_zscore_outliers", explode)

    assert await detector.detect(sales_result) == []


@pytest.mark.asyncio
async def test_out_of_range_column_does_not_hide_others(sales_result):
    extreme = [1e200 * (i % 5 + 1) for i in range(len(sales_result.data))]
    result = QueryResult(
        columns=sales_result.columns + [ColumnMetadata(name="Exposure", data_type="float")],
        data=[row + [value] for row, value in zip(sales_result.data, extreme)],
    )

    anomalies = await StatisticalDetector().detect(result)

    assert len(anomalies) == 2
    assert all(a.affected_column == "Amount" for a in anomalies)


@pytest.mark.asyncio
async def test_run_reports_whether_detection_completed(sales_result, monkeypatch):
    detector = StatisticalDetector()

    outcome = await detector.run(sales_result)
    assert outcome.succeeded
    assert len(outcome.anomalies) == 2

    async def explode(query_result, semantic_analysis):
        raise RuntimeError("boom")

    monkeypatch.setattr(detector, "_detect", explode)

    outcome = await detector.run(sales_result)
    assert not outcome.succeeded
    assert outcome.anomalies == []


@pytest.mark.asyncio
async def test_anomalies_are_stamped_by_injected_clock(sales_result, clock):
    anomalies = await StatisticalDetector(clock=clock).detect(sales_result)

    assert anomalies
    assert all(a.detected_at == clock.now for a in anomalies)


def test_train_counts_eligible_columns(sales_result):
    detector = StatisticalDetector()
    parameters = detector.train([sales_result, _amount_result([1, 2, 3])])

    assert parameters["eligible_numeric_columns"] == 1
    assert parameters["statistical_thresholds"]["zscore_threshold"] == 3.0
