"""
Unit tests for anomaly consolidation.
"""

import math
from datetime import datetime, timezone

from bi_sentinel.anomaly.consolidation import anomaly_key, consolidate_anomalies, merge_anomalies
from bi_sentinel.anomaly.schema import Anomaly, AnomalySeverity, AnomalyType


def _anomaly(confidence, row, column="Amount", anomaly_type=AnomalyType.STATISTICAL, **overrides):
    data = {
        "type": anomaly_type,
        "severity": AnomalySeverity.MEDIUM,
        "confidence": confidence,
        "affected_column": column,
        "affected_rows": [row],
        "detection_method": "Z-Score",
    }
    data.update(overrides)
    return Anomaly(**data)


def test_anomaly_key():
    anomaly = _anomaly(0.5, 7)
    assert anomaly_key(anomaly) == (AnomalyType.STATISTICAL, "Amount", 7)
    assert anomaly_key(_anomaly(0.5, 0, affected_rows=[]))[2] is None


def test_similar_anomalies_are_merged():
    low = _anomaly(0.8, 5, severity=AnomalySeverity.HIGH)
    high = _anomaly(0.9, 1)

    consolidated = consolidate_anomalies([low, high])

    assert len(consolidated) == 1
    merged = consolidated[0]
    assert merged.affected_rows == [1, 5]
    assert merged.severity == AnomalySeverity.HIGH
    assert math.isclose(merged.confidence, 0.85)
    assert merged.description == "Multiple Statistical anomalies detected"
    assert merged.metadata["merged_anomaly_count"] == 2
    assert merged.metadata["source_anomaly_ids"] == [high.id, low.id]


def test_dissimilar_anomalies_are_kept():
    anomalies = [
        _anomaly(0.9, 1),
        _anomaly(0.5, 2),
        _anomaly(0.9, 3, column="Quantity"),
        _anomaly(0.9, 4, anomaly_type=AnomalyType.OUTLIER),
    ]

    consolidated = consolidate_anomalies(anomalies)

    assert len(consolidated) == 4
    assert all("merged_anomaly_count" not in a.metadata for a in consolidated)


def test_confidence_window_is_exclusive():
    consolidated = consolidate_anomalies([_anomaly(0.75, 1), _anomaly(0.25, 2)], similarity_window=0.5)
    assert len(consolidated) == 2


def test_same_key_outside_window_keeps_higher_confidence():
    strong = _anomaly(0.9, 3)
    weak = _anomaly(0.3, 3)

    consolidated = consolidate_anomalies([weak, strong])

    assert consolidated == [strong]


def test_output_is_in_descending_confidence():
    consolidated = consolidate_anomalies(
        [_anomaly(0.2, 1, column="A"), _anomaly(0.95, 1, column="B"), _anomaly(0.6, 1, column="C")]
    )
    assert [a.affected_column for a in consolidated] == ["B", "C", "A"]


def test_merge_joins_distinct_methods_and_keeps_earliest_time():
    early = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
    late = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)
    group = [
        _anomaly(0.9, 1, detected_at=late, actual_value=100.0, expected_value=14.8),
        _anomaly(0.85, 2, detected_at=early),
        _anomaly(0.8, 1, detection_method="Custom", detected_at=late),
    ]

    merged = merge_anomalies(group)

    assert merged.detection_method == "Z-Score, Custom"
    assert merged.detected_at == early
    assert merged.affected_rows == [1, 2]
    assert merged.actual_value == 100.0
    assert merged.expected_value == 14.8


def test_singleton_is_returned_unchanged():
    anomaly = _anomaly(0.7, 4)
    assert consolidate_anomalies([anomaly]) == [anomaly]
    assert consolidate_anomalies([]) == []
