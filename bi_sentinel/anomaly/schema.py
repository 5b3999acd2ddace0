"""
Schema definitions for anomaly detection.

Every surfaced anomaly is explainable: it names the column and rows it
affects, the method that produced it, and carries provenance in metadata
(z-score, IQR bounds, merged source ids, ...).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnomalyType(str, Enum):
    """Kinds of anomalies."""

    STATISTICAL = "Statistical"
    TEMPORAL = "Temporal"
    PATTERN = "Pattern"
    BUSINESS_RULE = "BusinessRule"
    OUTLIER = "Outlier"
    TREND = "Trend"
    SEASONAL = "Seasonal"


class AnomalySeverity(IntEnum):
    """Severity levels for anomalies. Ordered; higher is more severe."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class InsightType(str, Enum):
    PATTERN = "Pattern"
    ALERT = "Alert"


class RecommendationType(str, Enum):
    INVESTIGATION = "Investigation"
    MONITORING = "Monitoring"
    ACTION = "Action"
    PREVENTION = "Prevention"


class RecommendationPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4


class TrendDirection(str, Enum):
    INCREASING = "Increasing"
    DECREASING = "Decreasing"
    STABLE = "Stable"


class Anomaly(BaseModel):
    """
    A single detected irregularity in query-result data.

    Fields:
    - id: opaque unique identifier
    - type: anomaly kind
    - severity: detected severity, raised (never lowered) by escalation
    - confidence: detector confidence in [0.0, 1.0]
    - description: human-readable summary
    - affected_column: column name, if the anomaly is column-scoped
    - affected_rows: indices into QueryResult.data
    - expected_value/actual_value: explanation only, never computed on
    - detection_method: producing algorithm(s), comma-joined after merging
    - detected_at: detection timestamp (earliest, after merging)
    - metadata: provenance
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: AnomalyType
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    description: str = ""
    affected_column: Optional[str] = None
    affected_rows: List[int] = Field(default_factory=list)
    expected_value: Any = None
    actual_value: Any = None
    detection_method: str = ""
    detected_at: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AnomalyInsight(BaseModel):
    """Insight derived from a group of anomalies."""

    type: InsightType
    title: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    affected_anomalies: List[str] = Field(default_factory=list)


class AnomalyRecommendation(BaseModel):
    """Suggested follow-up for a group of anomalies."""

    type: RecommendationType
    title: str
    description: str
    priority: RecommendationPriority
    estimated_effort: str = ""
    affected_anomalies: List[str] = Field(default_factory=list)


class AnomalyDetectionResult(BaseModel):
    """
    Output of one detection run.

    Fields:
    - anomalies: ranked anomalies (severity desc, then confidence desc)
    - total_anomalies: len(anomalies)
    - critical/high/medium/low counts: sum to total_anomalies
    - insights/recommendations: derived from the ranked anomalies
    - detection_methods: number of detectors invoked
    - processing_time: completion timestamp
    - metadata: run information; error=True marks a degraded result
    """

    anomalies: List[Anomaly] = Field(default_factory=list)
    total_anomalies: int = 0
    critical_count: int = 0
    high_severity_count: int = 0
    medium_severity_count: int = 0
    low_severity_count: int = 0
    insights: List[AnomalyInsight] = Field(default_factory=list)
    recommendations: List[AnomalyRecommendation] = Field(default_factory=list)
    detection_methods: int = 0
    processing_time: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def failed(cls, **metadata: Any) -> "AnomalyDetectionResult":
        """Empty result for a run that could not complete."""
        return cls(metadata={"error": True, **metadata})


class AnomalyTypeFrequency(BaseModel):
    type: AnomalyType
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)


class AnomalyTrendAnalysis(BaseModel):
    """Anomaly history summarised over a period."""

    period: timedelta
    total_anomalies: int = 0
    anomalies_by_day: Dict[str, int] = Field(default_factory=dict)
    anomalies_by_type: Dict[AnomalyType, int] = Field(default_factory=dict)
    anomalies_by_severity: Dict[AnomalySeverity, int] = Field(default_factory=dict)
    trend_direction: TrendDirection = TrendDirection.STABLE
    most_common_anomalies: List[AnomalyTypeFrequency] = Field(default_factory=list)
    recommended_actions: List[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)


class AnomalyModelMetadata(BaseModel):
    """Record of the last detector training pass."""

    training_data_count: int = Field(ge=0)
    last_training_date: datetime = Field(default_factory=utc_now)
    model_version: str = "1.0"
    user_id: Optional[str] = None
    model_parameters: Dict[str, Any] = Field(default_factory=dict)
