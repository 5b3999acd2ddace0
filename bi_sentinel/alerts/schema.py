"""
Schema for outbound anomaly alerts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from bi_sentinel.anomaly.schema import Anomaly, AnomalySeverity, AnomalyType, utc_now


class AnomalyAlert(BaseModel):
    """
    Notification for one high-severity anomaly.

    Fields:
    - alert_id: unique identifier
    - anomaly_id: id of the anomaly that triggered the alert
    - dedup_key: (type, column, user) signature the cooldown applies to
    - user_id: requesting user, if known
    - sent_at: emission timestamp
    """

    alert_id: str = Field(default_factory=lambda: str(uuid4()))
    anomaly_id: str
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    confidence: float = Field(ge=0.0, le=1.0)
    affected_column: Optional[str] = None
    description: str = ""
    dedup_key: str
    user_id: Optional[str] = None
    sent_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_anomaly(
        cls, anomaly: Anomaly, dedup_key: str, user_id: Optional[str], sent_at: datetime
    ) -> "AnomalyAlert":
        return cls(
            anomaly_id=anomaly.id,
            anomaly_type=anomaly.type,
            severity=anomaly.severity,
            confidence=anomaly.confidence,
            affected_column=anomaly.affected_column,
            description=anomaly.description,
            dedup_key=dedup_key,
            user_id=user_id,
            sent_at=sent_at,
        )
