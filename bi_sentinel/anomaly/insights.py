"""
Insight and recommendation generation.

Both are derived from the ranked anomaly list only. Recommendations are
driven by a rule table keyed on anomaly type; add a row to extend them.
"""

from __future__ import annotations

from dataclasses import dataclass
from statistics import fmean
from typing import Dict, List, Sequence

from .schema import (
    Anomaly,
    AnomalyInsight,
    AnomalyRecommendation,
    AnomalySeverity,
    AnomalyType,
    InsightType,
    RecommendationPriority,
    RecommendationType,
)

ALERT_INSIGHT_CONFIDENCE = 0.95


def group_by_type(anomalies: Sequence[Anomaly]) -> Dict[AnomalyType, List[Anomaly]]:
    """Group anomalies by type, groups in order of first appearance."""
    groups: Dict[AnomalyType, List[Anomaly]] = {}
    for anomaly in anomalies:
        groups.setdefault(anomaly.type, []).append(anomaly)
    return groups


def describe_group(anomaly_type: AnomalyType, anomalies: Sequence[Anomaly]) -> str:
    count = len(anomalies)
    if anomaly_type == AnomalyType.STATISTICAL:
        average = fmean(a.confidence for a in anomalies)
        return f"Detected {count} statistical outliers with average confidence {average:.1%}"
    if anomaly_type == AnomalyType.TEMPORAL:
        return f"Found {count} temporal anomalies indicating unusual time-based patterns"
    if anomaly_type == AnomalyType.PATTERN:
        return f"Identified {count} pattern anomalies suggesting data irregularities"
    if anomaly_type == AnomalyType.BUSINESS_RULE:
        return f"Discovered {count} business rule violations requiring attention"
    return f"Detected {count} anomalies of type {anomaly_type.value}"


def generate_insights(anomalies: Sequence[Anomaly]) -> List[AnomalyInsight]:
    """
    One pattern insight per anomaly type, plus one alert insight when any
    anomaly is high severity or above.
    """
    insights: List[AnomalyInsight] = []

    for anomaly_type, group in group_by_type(anomalies).items():
        insights.append(
            AnomalyInsight(
                type=InsightType.PATTERN,
                title=f"{anomaly_type.value} Anomaly Pattern",
                description=describe_group(anomaly_type, group),
                confidence=fmean(a.confidence for a in group),
                affected_anomalies=[a.id for a in group],
            )
        )

    severe = [a for a in anomalies if a.severity >= AnomalySeverity.HIGH]
    if severe:
        insights.append(
            AnomalyInsight(
                type=InsightType.ALERT,
                title="High Severity Anomalies Detected",
                description=(
                    f"Found {len(severe)} high-severity anomalies requiring immediate attention"
                ),
                confidence=ALERT_INSIGHT_CONFIDENCE,
                affected_anomalies=[a.id for a in severe],
            )
        )

    return insights


@dataclass(frozen=True)
class RecommendationRule:
    anomaly_type: AnomalyType
    type: RecommendationType
    title: str
    description: str
    priority: RecommendationPriority
    estimated_effort: str


RECOMMENDATION_RULES: Sequence[RecommendationRule] = (
    RecommendationRule(
        anomaly_type=AnomalyType.STATISTICAL,
        type=RecommendationType.INVESTIGATION,
        title="Investigate Statistical Outliers",
        description="Review data collection processes and validate unusual statistical patterns",
        priority=RecommendationPriority.MEDIUM,
        estimated_effort="2-4 hours",
    ),
    RecommendationRule(
        anomaly_type=AnomalyType.TEMPORAL,
        type=RecommendationType.MONITORING,
        title="Monitor Temporal Patterns",
        description="Set up alerts for unusual temporal patterns and trends",
        priority=RecommendationPriority.HIGH,
        estimated_effort="1-2 hours",
    ),
    RecommendationRule(
        anomaly_type=AnomalyType.BUSINESS_RULE,
        type=RecommendationType.ACTION,
        title="Review Business Rule Violations",
        description="Confirm the violating rows with data owners and correct source records",
        priority=RecommendationPriority.HIGH,
        estimated_effort="1-3 hours",
    ),
)


def generate_recommendations(
    anomalies: Sequence[Anomaly],
    rules: Sequence[RecommendationRule] = RECOMMENDATION_RULES,
) -> List[AnomalyRecommendation]:
    groups = group_by_type(anomalies)
    recommendations: List[AnomalyRecommendation] = []

    for rule in rules:
        matched = groups.get(rule.anomaly_type)
        if not matched:
            continue
        recommendations.append(
            AnomalyRecommendation(
                type=rule.type,
                title=rule.title,
                description=rule.description,
                priority=rule.priority,
                estimated_effort=rule.estimated_effort,
                affected_anomalies=[a.id for a in matched],
            )
        )

    return recommendations
