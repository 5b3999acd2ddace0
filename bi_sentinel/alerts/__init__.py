"""
Alerts module: deduplicated, rate-limited alerting for high-severity anomalies.
"""

from .cache import CacheService, InMemoryCacheService
from .manager import AlertManager, AlertNotifier, LoggingAlertNotifier
from .schema import AnomalyAlert

__all__ = [
    "AlertManager",
    "AlertNotifier",
    "AnomalyAlert",
    "CacheService",
    "InMemoryCacheService",
    "LoggingAlertNotifier",
]
