"""
Alert manager.

Emits at most one alert per (anomaly type, column, user) signature per
cooldown window. The dedup record lives in the injected cache; the check and
the write are not atomic, so a concurrent race can produce an occasional
duplicate alert, never a dropped one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from bi_sentinel.anomaly.schema import Anomaly, utc_now
from bi_sentinel.core.exceptions import AlertDeliveryError

from .cache import CacheService
from .schema import AnomalyAlert

logger = logging.getLogger(__name__)

ALERT_KEY_PREFIX = "anomaly_alert"


class AlertNotifier(ABC):
    """Delivery channel for alerts (log, push, email, webhook, ...)."""

    @abstractmethod
    async def notify(self, alert: AnomalyAlert) -> None:
        ...


class LoggingAlertNotifier(AlertNotifier):
    """Emits alerts as warning log records."""

    async def notify(self, alert: AnomalyAlert) -> None:
        logger.warning(
            "ANOMALY ALERT: %s %s anomaly detected in %s - %s",
            alert.severity.name,
            alert.anomaly_type.value,
            alert.affected_column,
            alert.description,
        )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


class AlertManager:
    """
    Deduplicating alert sender.

    Args:
        cache: Store for dedup records
        notifier: Delivery channel; defaults to logging
        cooldown: Minimum time between alerts for one signature
        record_ttl: Expiry of the dedup record
        clock: Source of the current time
    """

    def __init__(
        self,
        cache: CacheService,
        notifier: Optional[AlertNotifier] = None,
        cooldown: timedelta = timedelta(minutes=15),
        record_ttl: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._cache = cache
        self._notifier = notifier or LoggingAlertNotifier()
        self._clock = clock
        self.configure(cooldown, record_ttl)

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    def configure(self, cooldown: timedelta, record_ttl: timedelta) -> None:
        if record_ttl < cooldown:
            raise ValueError("record_ttl must be >= cooldown")
        self._cooldown = cooldown
        self._record_ttl = record_ttl

    @staticmethod
    def alert_key(anomaly: Anomaly, user_id: Optional[str]) -> str:
        return f"{ALERT_KEY_PREFIX}:{anomaly.type.value}:{anomaly.affected_column or ''}:{user_id or ''}"

    async def send_anomaly_alert(self, anomaly: Anomaly, user_id: Optional[str] = None) -> bool:
        """
        Send an alert unless one with the same signature went out recently.

        Returns:
            True if the alert was emitted, False if suppressed

        Raises:
            AlertDeliveryError: If the cache or the notifier fails
        """
        key = self.alert_key(anomaly, user_id)
        now = self._clock()

        try:
            last_sent = _parse_timestamp(await self._cache.get(key))
        except Exception as e:
            raise AlertDeliveryError(f"Alert cache lookup failed for {key}") from e

        if last_sent is not None and now - last_sent < self._cooldown:
            logger.debug("Skipping duplicate alert for anomaly %s", anomaly.id)
            return False

        alert = AnomalyAlert.from_anomaly(anomaly, dedup_key=key, user_id=user_id, sent_at=now)
        try:
            await self._notifier.notify(alert)
        except Exception as e:
            raise AlertDeliveryError(f"Alert notification failed for {key}") from e

        try:
            await self._cache.set(key, now.isoformat(), ttl=self._record_ttl)
        except Exception as e:
            raise AlertDeliveryError(f"Alert cache write failed for {key}") from e

        return True
