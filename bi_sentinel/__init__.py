"""
BI Sentinel: anomaly detection for tabular BI query results.

Detects statistical, rule-based and pattern anomalies in query results,
consolidates overlapping findings, assigns business-contextual severity and
emits deduplicated alerts.
"""

from .engine import AnomalyDetectionEngine

__version__ = "0.1.0"

__all__ = ["AnomalyDetectionEngine", "__version__"]
