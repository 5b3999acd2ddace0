"""
Custom exceptions for BI Sentinel.

These exceptions provide clear error semantics across the system.
Use them to distinguish between data issues, configuration problems, and
alert delivery failures.
"""


class AnomalyDetectionError(Exception):
    """Base exception for anomaly detection failures."""
    pass


class ConfigurationError(AnomalyDetectionError):
    """Raised when a configuration update is invalid and has been rejected."""
    pass


class DataValidationError(AnomalyDetectionError):
    """Raised when tabular input cannot be shaped into a query result."""
    pass


class AlertDeliveryError(AnomalyDetectionError):
    """Raised when the alert cache or notifier fails while alerting."""
    pass
