"""
Anomaly module: detectors, scoring, consolidation and insights.

Implements the statistical and rule-based detectors, the temporal and pattern
extension points, severity escalation and ranking, and anomaly history.
"""

from .config import (
    AnomalyDetectionConfiguration,
    BusinessRule,
    PatternDetectionSettings,
    StatisticalThresholds,
    TemporalParameters,
    default_business_rules,
)
from .consolidation import consolidate_anomalies, merge_anomalies
from .detectors import (
    AnomalyDetector,
    BusinessRuleDetector,
    DetectionOutcome,
    PatternDetector,
    StatisticalDetector,
    TemporalDetector,
)
from .insights import generate_insights, generate_recommendations
from .rules import CompiledCondition, ConditionError, compile_condition
from .schema import (
    Anomaly,
    AnomalyDetectionResult,
    AnomalyInsight,
    AnomalyModelMetadata,
    AnomalyRecommendation,
    AnomalySeverity,
    AnomalyTrendAnalysis,
    AnomalyType,
)
from .scoring import contextual_severity, escalate_severity, overall_severity, rank_anomalies
from .trends import AnomalyHistory, analyze_trends

__all__ = [
	"Anomaly",
	"AnomalyDetectionConfiguration",
	"AnomalyDetectionResult",
	"AnomalyDetector",
	"AnomalyHistory",
	"AnomalyInsight",
	"AnomalyModelMetadata",
	"AnomalyRecommendation",
	"AnomalySeverity",
	"AnomalyTrendAnalysis",
	"AnomalyType",
	"BusinessRule",
	"BusinessRuleDetector",
	"CompiledCondition",
	"ConditionError",
	"DetectionOutcome",
	"PatternDetectionSettings",
	"PatternDetector",
	"StatisticalDetector",
	"StatisticalThresholds",
	"TemporalDetector",
	"TemporalParameters",
	"analyze_trends",
	"compile_condition",
	"consolidate_anomalies",
	"contextual_severity",
	"default_business_rules",
	"escalate_severity",
	"generate_insights",
	"generate_recommendations",
	"merge_anomalies",
	"overall_severity",
	"rank_anomalies",
]
