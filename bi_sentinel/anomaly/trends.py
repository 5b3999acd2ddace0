"""
Anomaly history and trend analysis.

The engine records every surfaced anomaly together with the requesting user.
History is bounded; the oldest records are dropped first.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, List, Optional

from .schema import (
    Anomaly,
    AnomalySeverity,
    AnomalyTrendAnalysis,
    AnomalyType,
    AnomalyTypeFrequency,
    TrendDirection,
    utc_now,
)

logger = logging.getLogger(__name__)

RECENT_WINDOW = timedelta(days=7)
INCREASING_RATIO = 1.2
DECREASING_RATIO = 0.8
HIGH_FREQUENCY_COUNT = 50
REVENUE_ANOMALY_COUNT = 5
MOST_COMMON_LIMIT = 5


@dataclass(frozen=True)
class HistoryRecord:
    anomaly: Anomaly
    user_id: Optional[str]


class AnomalyHistory:
    """Bounded in-memory record of surfaced anomalies."""

    def __init__(self, max_size: int = 10_000) -> None:
        self._records: Deque[HistoryRecord] = deque(maxlen=max_size)

    def __len__(self) -> int:
        return len(self._records)

    def resize(self, max_size: int) -> None:
        self._records = deque(self._records, maxlen=max_size)

    def record(self, anomalies: Iterable[Anomaly], user_id: Optional[str] = None) -> None:
        for anomaly in anomalies:
            self._records.append(HistoryRecord(anomaly=anomaly, user_id=user_id))

    def query(
        self, start: datetime, end: datetime, user_id: Optional[str] = None
    ) -> List[Anomaly]:
        """Anomalies detected in [start, end], optionally for one user."""
        return [
            r.anomaly
            for r in self._records
            if start <= r.anomaly.detected_at <= end
            and (user_id is None or r.user_id == user_id)
        ]


def trend_direction(anomalies: List[Anomaly], now: datetime) -> TrendDirection:
    """
    Compare the last 7 days against everything older.

    More than 1.2x the older count is increasing, less than 0.8x decreasing.
    """
    if len(anomalies) < 2:
        return TrendDirection.STABLE

    cutoff = now - RECENT_WINDOW
    recent = sum(1 for a in anomalies if a.detected_at > cutoff)
    older = len(anomalies) - recent

    if recent > older * INCREASING_RATIO:
        return TrendDirection.INCREASING
    if recent < older * DECREASING_RATIO:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def most_common_types(anomalies: List[Anomaly]) -> List[AnomalyTypeFrequency]:
    if not anomalies:
        return []
    counts = Counter(a.type for a in anomalies)
    return [
        AnomalyTypeFrequency(type=t, count=c, percentage=c / len(anomalies) * 100)
        for t, c in counts.most_common(MOST_COMMON_LIMIT)
    ]


def trend_recommendations(anomalies: List[Anomaly]) -> List[str]:
    recommendations: List[str] = []

    if len(anomalies) > HIGH_FREQUENCY_COUNT:
        recommendations.append(
            "High anomaly frequency detected - consider reviewing data quality processes"
        )

    revenue = sum(1 for a in anomalies if "revenue" in (a.affected_column or "").lower())
    if revenue > REVENUE_ANOMALY_COUNT:
        recommendations.append(
            "Multiple revenue anomalies detected - prioritize financial data validation"
        )

    return recommendations


def analyze_trends(
    history: AnomalyHistory,
    period: timedelta,
    user_id: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
) -> AnomalyTrendAnalysis:
    """
    Summarise anomaly history over the trailing period.

    Failures are logged and produce an empty analysis for the period.
    """
    try:
        end = clock()
        anomalies = history.query(end - period, end, user_id)

        by_day: Dict[str, int] = Counter(a.detected_at.date().isoformat() for a in anomalies)
        by_type: Dict[AnomalyType, int] = Counter(a.type for a in anomalies)
        by_severity: Dict[AnomalySeverity, int] = Counter(a.severity for a in anomalies)

        return AnomalyTrendAnalysis(
            period=period,
            total_anomalies=len(anomalies),
            anomalies_by_day=dict(sorted(by_day.items())),
            anomalies_by_type=dict(by_type),
            anomalies_by_severity=dict(by_severity),
            trend_direction=trend_direction(anomalies, end),
            most_common_anomalies=most_common_types(anomalies),
            recommended_actions=trend_recommendations(anomalies),
            generated_at=end,
        )
    except Exception:
        logger.error("Error generating anomaly trend analysis", exc_info=True)
        return AnomalyTrendAnalysis(period=period)
