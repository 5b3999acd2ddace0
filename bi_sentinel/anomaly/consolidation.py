"""
Consolidation of overlapping anomalies.

Detectors run independently and can report the same irregularity several
times (one anomaly per row, or the same row from two detectors). Anomalies of
the same type on the same column with similar confidence are merged into one.
"""

from __future__ import annotations

import logging
from statistics import fmean
from typing import Iterable, List, Optional, Set, Tuple

from .schema import Anomaly, AnomalyType

logger = logging.getLogger(__name__)

CONFIDENCE_SIMILARITY = 0.2

AnomalyKey = Tuple[AnomalyType, Optional[str], Optional[int]]


def anomaly_key(anomaly: Anomaly) -> AnomalyKey:
    """(type, column, first affected row); anomalies sharing it are one finding."""
    first_row = anomaly.affected_rows[0] if anomaly.affected_rows else None
    return anomaly.type, anomaly.affected_column, first_row


def _is_similar(anchor: Anomaly, other: Anomaly, window: float) -> bool:
    return (
        other.type == anchor.type
        and other.affected_column == anchor.affected_column
        and abs(other.confidence - anchor.confidence) < window
    )


def merge_anomalies(group: List[Anomaly]) -> Anomaly:
    """
    Merge a group of similar anomalies into one.

    The first anomaly of the group is the primary: it supplies type, column
    and the explanation values. Severity is the group maximum, confidence the
    group mean, rows the ordered distinct union.
    """
    primary = group[0]

    rows: List[int] = []
    seen_rows: Set[int] = set()
    for anomaly in group:
        for row in anomaly.affected_rows:
            if row not in seen_rows:
                seen_rows.add(row)
                rows.append(row)

    methods: List[str] = []
    for anomaly in group:
        if anomaly.detection_method not in methods:
            methods.append(anomaly.detection_method)

    return Anomaly(
        type=primary.type,
        severity=max(a.severity for a in group),
        confidence=fmean(a.confidence for a in group),
        description=f"Multiple {primary.type.value} anomalies detected",
        affected_column=primary.affected_column,
        affected_rows=rows,
        expected_value=primary.expected_value,
        actual_value=primary.actual_value,
        detection_method=", ".join(methods),
        detected_at=min(a.detected_at for a in group),
        metadata={
            "merged_anomaly_count": len(group),
            "source_anomaly_ids": [a.id for a in group],
        },
    )


def consolidate_anomalies(
    anomalies: Iterable[Anomaly],
    similarity_window: float = CONFIDENCE_SIMILARITY,
) -> List[Anomaly]:
    """
    Merge similar anomalies.

    Anomalies are visited in descending confidence (stable for ties). Each
    unprocessed anomaly anchors a group of unprocessed anomalies with the same
    type and column whose confidence is within similarity_window of the
    anchor; a group of more than one is merged. Processed anomalies are
    tracked by anomaly_key, so every input is accounted for once.

    Args:
        anomalies: Flattened detector output
        similarity_window: Maximum (exclusive) confidence difference

    Returns:
        Consolidated anomalies, anchors in descending confidence order
    """
    ordered = sorted(anomalies, key=lambda a: a.confidence, reverse=True)
    consolidated: List[Anomaly] = []
    processed: Set[AnomalyKey] = set()

    for anchor in ordered:
        if anomaly_key(anchor) in processed:
            continue

        group: List[Anomaly] = []
        group_keys: Set[AnomalyKey] = set()
        for candidate in ordered:
            key = anomaly_key(candidate)
            if key in processed:
                continue
            if _is_similar(anchor, candidate, similarity_window):
                group.append(candidate)
                group_keys.add(key)

        if len(group) > 1:
            consolidated.append(merge_anomalies(group))
        else:
            consolidated.append(anchor)
        processed.update(group_keys)
        processed.add(anomaly_key(anchor))

    if len(consolidated) != len(ordered):
        logger.debug("Consolidated %d anomalies into %d", len(ordered), len(consolidated))
    return consolidated
