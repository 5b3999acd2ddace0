"""
Scoring, severity mapping, contextual escalation and ranking.

Statistical severity comes from the detectors. Contextual severity comes from
the business meaning of the affected column and is computed independently;
the final severity is the maximum of both, so escalation never lowers it.
"""

from __future__ import annotations

from typing import Iterable, List

from .schema import Anomaly, AnomalySeverity

ZSCORE_CONFIDENCE_SCALE = 5.0
ZSCORE_HIGH_SEVERITY = 4.0
IQR_HIGH_CONFIDENCE = 0.8
MAX_CONFIDENCE = 0.99
HIGH_CONFIDENCE_ESCALATION = 0.9


def zscore_confidence(z: float) -> float:
    return min(MAX_CONFIDENCE, z / ZSCORE_CONFIDENCE_SCALE)


def zscore_severity(z: float) -> AnomalySeverity:
    return AnomalySeverity.HIGH if z > ZSCORE_HIGH_SEVERITY else AnomalySeverity.MEDIUM


def iqr_confidence(distance: float, iqr: float) -> float:
    """
    Confidence of an IQR outlier.

    Scales the distance to the nearest fence by twice the IQR. Callers must
    not pass a zero IQR.
    """
    return min(MAX_CONFIDENCE, distance / (2.0 * iqr))


def iqr_severity(confidence: float) -> AnomalySeverity:
    return AnomalySeverity.HIGH if confidence > IQR_HIGH_CONFIDENCE else AnomalySeverity.MEDIUM


def contextual_severity(anomaly: Anomaly) -> AnomalySeverity:
    """
    Severity implied by business context alone.

    Revenue columns are always high priority, deposit columns medium; other
    columns are high only when the detector is very confident.
    """
    column = (anomaly.affected_column or "").lower()
    if "revenue" in column:
        return AnomalySeverity.HIGH
    if "deposit" in column:
        return AnomalySeverity.MEDIUM
    if anomaly.confidence > HIGH_CONFIDENCE_ESCALATION:
        return AnomalySeverity.HIGH
    return AnomalySeverity.LOW


def overall_severity(*severities: AnomalySeverity) -> AnomalySeverity:
    """
    Return the highest severity among inputs.
    """
    return AnomalySeverity(max(int(s) for s in severities))


def escalate_severity(anomaly: Anomaly) -> Anomaly:
    """
    Apply contextual escalation.

    Returns the anomaly unchanged when the context does not raise it,
    otherwise a copy with the raised severity and the detected severity kept
    in metadata.
    """
    final = overall_severity(anomaly.severity, contextual_severity(anomaly))
    if final == anomaly.severity:
        return anomaly

    metadata = dict(anomaly.metadata)
    metadata["detected_severity"] = anomaly.severity.name
    return anomaly.model_copy(update={"severity": final, "metadata": metadata})


def rank_anomalies(anomalies: Iterable[Anomaly]) -> List[Anomaly]:
    """Stable sort by severity desc, then confidence desc."""
    return sorted(anomalies, key=lambda a: (-int(a.severity), -a.confidence))
