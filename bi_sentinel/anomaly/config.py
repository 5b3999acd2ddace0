"""
Per-detector settings for anomaly detection.

Each detector owns a frozen copy of its settings and replaces it wholesale on
update, so a detection run always sees one consistent snapshot.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rules import compile_condition
from .schema import AnomalySeverity


class StatisticalThresholds(BaseModel):
    """
    Thresholds for the statistical detector.

    Notes:
    - zscore_threshold: |z| above this is an outlier.
    - iqr_multiplier: k in [Q1 - k*IQR, Q3 + k*IQR].
    - minimum_sample_size: columns with fewer parsed values are skipped.
    """

    model_config = ConfigDict(frozen=True)

    zscore_threshold: float = Field(3.0, gt=0.0)
    iqr_multiplier: float = Field(1.5, gt=0.0)
    minimum_sample_size: int = Field(30, ge=2)


class TemporalParameters(BaseModel):
    """Parameters reserved for temporal detection algorithms."""

    model_config = ConfigDict(frozen=True)

    seasonality_period: int = Field(7, ge=1, description="Days")
    trend_threshold: float = Field(0.2, ge=0.0)
    moving_average_window: int = Field(7, ge=1)
    volatility_threshold: float = Field(0.3, ge=0.0)


class PatternDetectionSettings(BaseModel):
    """Parameters reserved for pattern detection algorithms."""

    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = Field(0.8, ge=0.0, le=1.0)
    minimum_pattern_length: int = Field(3, ge=1)
    enable_sequence_detection: bool = True
    enable_frequency_analysis: bool = True


class BusinessRule(BaseModel):
    """
    Named business rule.

    Fields:
    - condition: boolean expression over column references, see rules.py
    - severity: severity of every violation
    - confidence: confidence assigned to every violation
    - enabled: disabled rules are never evaluated
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(..., min_length=1)
    description: str = ""
    condition: str
    severity: AnomalySeverity = AnomalySeverity.MEDIUM
    confidence: float = Field(0.9, ge=0.0, le=1.0)
    enabled: bool = True

    @field_validator("condition")
    @classmethod
    def _condition_compiles(cls, value: str) -> str:
        compile_condition(value)
        return value.strip()


def default_business_rules() -> List[BusinessRule]:
    return [
        BusinessRule(
            name="Negative Revenue",
            description="Revenue values should not be negative",
            condition="revenue < 0",
            severity=AnomalySeverity.HIGH,
        ),
        BusinessRule(
            name="Excessive Deposit Amount",
            description="Single deposit amounts over $10,000 require review",
            condition="deposit > 10000",
            severity=AnomalySeverity.MEDIUM,
        ),
    ]


class AnomalyDetectionConfiguration(BaseModel):
    """
    Detection settings update.

    Every section is optional; a missing section leaves that detector's
    current settings untouched.
    """

    model_config = ConfigDict(frozen=True)

    statistical_thresholds: Optional[StatisticalThresholds] = None
    temporal_parameters: Optional[TemporalParameters] = None
    pattern_settings: Optional[PatternDetectionSettings] = None
    business_rules: Optional[List[BusinessRule]] = None
