"""
Core module: Configuration, logging, and exception handling.
"""

from .config import AnomalyConfig, Config, config
from .exceptions import (
    AlertDeliveryError,
    AnomalyDetectionError,
    ConfigurationError,
    DataValidationError,
)
from .logging_config import setup_logging

__all__ = [
    "AnomalyConfig",
    "Config",
    "config",
    "AnomalyDetectionError",
    "AlertDeliveryError",
    "ConfigurationError",
    "DataValidationError",
    "setup_logging",
]
