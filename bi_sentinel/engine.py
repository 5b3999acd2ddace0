"""
Anomaly detection engine.

Runs every enabled detector over one query result, merges their findings,
escalates severity using business context, ranks, derives insights and
recommendations, and alerts on high-severity anomalies.

Notes:
- Detectors run concurrently under one deadline; a detector that fails or
  times out contributes nothing instead of failing the run.
- Everything after the fan-in is sequential and deterministic.
- detect_anomalies never raises: a failure after the fan-in yields an empty
  result with error=True in its metadata.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from bi_sentinel.alerts.cache import CacheService, InMemoryCacheService
from bi_sentinel.alerts.manager import AlertManager, AlertNotifier
from bi_sentinel.anomaly.config import AnomalyDetectionConfiguration
from bi_sentinel.anomaly.consolidation import consolidate_anomalies
from bi_sentinel.anomaly.detectors import (
    AnomalyDetector,
    BusinessRuleDetector,
    DetectionOutcome,
    PatternDetector,
    StatisticalDetector,
    TemporalDetector,
)
from bi_sentinel.anomaly.insights import generate_insights, generate_recommendations
from bi_sentinel.anomaly.schema import (
    Anomaly,
    AnomalyDetectionResult,
    AnomalyModelMetadata,
    AnomalySeverity,
    AnomalyTrendAnalysis,
    utc_now,
)
from bi_sentinel.anomaly.scoring import escalate_severity, rank_anomalies
from bi_sentinel.anomaly.trends import AnomalyHistory, analyze_trends
from bi_sentinel.core.config import AnomalyConfig, config as default_config
from bi_sentinel.core.exceptions import ConfigurationError
from bi_sentinel.data.schema import QueryResult, SemanticAnalysis

logger = logging.getLogger(__name__)

CONFIGURATION_CACHE_KEY = "anomaly_detection_config"
MODEL_METADATA_CACHE_KEY = "anomaly_model_metadata"
MODEL_METADATA_TTL = timedelta(days=30)
MODEL_VERSION = "1.0"


class AnomalyDetectionEngine:
    """
    Multi-detector anomaly detection orchestrator.

    The detector set is fixed (statistical, temporal, pattern, business
    rule); configuration selects which of them are active. Configuration and
    detector settings are replaced wholesale, never mutated in place.

    Args:
        cache: Shared cache for alert dedup and persisted settings
        config: Detector toggles and limits; defaults to the process config
        detection_config: Initial per-detector settings
        notifier: Alert delivery channel; defaults to logging
        clock: Source of the current time
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        config: Optional[AnomalyConfig] = None,
        detection_config: Optional[AnomalyDetectionConfiguration] = None,
        notifier: Optional[AlertNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clock = clock
        self._cache = cache or InMemoryCacheService(clock=clock)
        self._config = config or default_config.anomaly

        detection_config = detection_config or AnomalyDetectionConfiguration()
        self.statistical_detector = StatisticalDetector(detection_config.statistical_thresholds, clock=clock)
        self.temporal_detector = TemporalDetector(detection_config.temporal_parameters, clock=clock)
        self.pattern_detector = PatternDetector(detection_config.pattern_settings, clock=clock)
        self.business_rule_detector = BusinessRuleDetector(detection_config.business_rules, clock=clock)

        self.alert_manager = AlertManager(
            self._cache,
            notifier=notifier,
            cooldown=timedelta(seconds=self._config.alert_cooldown_seconds),
            record_ttl=timedelta(seconds=self._config.alert_record_ttl_seconds),
            clock=clock,
        )
        self.history = AnomalyHistory(self._config.history_size)
        self._active_detectors = self._select_detectors(self._config)

    @property
    def config(self) -> AnomalyConfig:
        return self._config

    @property
    def enabled_detection_methods(self) -> List[str]:
        return [d.name for d in self._active_detectors]

    def _select_detectors(self, config: AnomalyConfig) -> Tuple[AnomalyDetector, ...]:
        candidates = (
            (config.enable_statistical_detection, self.statistical_detector),
            (config.enable_temporal_detection, self.temporal_detector),
            (config.enable_pattern_detection, self.pattern_detector),
            (config.enable_business_rule_detection, self.business_rule_detector),
        )
        return tuple(detector for enabled, detector in candidates if enabled)

    async def detect_anomalies(
        self,
        query_result: QueryResult,
        semantic_analysis: Optional[SemanticAnalysis] = None,
        user_id: Optional[str] = None,
    ) -> AnomalyDetectionResult:
        """
        Detect anomalies in one query result.

        Args:
            query_result: Rows and column metadata to scan
            semantic_analysis: Analysis of the originating query
            user_id: Requesting user; scopes alert dedup and history

        Returns:
            AnomalyDetectionResult; on failure an empty result with
            metadata["error"] set
        """
        started = time.perf_counter()
        config = self._config
        detectors = self._active_detectors

        try:
            logger.debug(
                "Starting anomaly detection for query result with %d rows", query_result.row_count
            )

            outputs, failed = await self._run_detectors(
                detectors, query_result, semantic_analysis, config.detection_timeout_seconds
            )

            flattened = [anomaly for output in outputs for anomaly in output]
            consolidated = consolidate_anomalies(flattened)
            ranked = rank_anomalies(escalate_severity(a) for a in consolidated)

            surfaced = [a for a in ranked if a.confidence >= config.minimum_confidence_threshold]
            truncated = max(0, len(surfaced) - config.max_anomalies_per_query)
            surfaced = surfaced[: config.max_anomalies_per_query]

            result = self._build_result(surfaced, detectors, query_result, user_id)
            result.metadata["failed_detectors"] = failed
            result.metadata["truncated_count"] = truncated

            if config.enable_real_time_alerts:
                result.metadata["alerts_sent"] = await self._process_alerts(surfaced, user_id)

            self.history.record(surfaced, user_id)
            result.metadata["processing_ms"] = round((time.perf_counter() - started) * 1000, 3)

            logger.debug(
                "Anomaly detection completed: %d anomalies found (%d high severity)",
                result.total_anomalies,
                result.high_severity_count,
            )
            return result

        except Exception:
            logger.error("Error in multi-detector anomaly detection", exc_info=True)
            return AnomalyDetectionResult.failed(
                detection_timestamp=self._clock(),
                user_id=user_id or "anonymous",
                query_row_count=getattr(query_result, "row_count", 0),
                query_column_count=getattr(query_result, "column_count", 0),
                detection_methods_used=[d.name for d in detectors],
            )

    async def _run_detectors(
        self,
        detectors: Sequence[AnomalyDetector],
        query_result: QueryResult,
        semantic_analysis: Optional[SemanticAnalysis],
        timeout: float,
    ) -> Tuple[List[List[Anomaly]], List[str]]:
        async def run(detector: AnomalyDetector) -> DetectionOutcome:
            return await asyncio.wait_for(detector.run(query_result, semantic_analysis), timeout)

        outcomes = await asyncio.gather(*(run(d) for d in detectors), return_exceptions=True)

        outputs: List[List[Anomaly]] = []
        failed: List[str] = []
        for detector, outcome in zip(detectors, outcomes):
            if isinstance(outcome, asyncio.TimeoutError):
                logger.warning("%s detector timed out after %.1fs", detector.name, timeout)
                failed.append(detector.name)
                outputs.append([])
            elif isinstance(outcome, BaseException):
                logger.error("%s detector failed", detector.name, exc_info=outcome)
                failed.append(detector.name)
                outputs.append([])
            elif not outcome.succeeded:
                failed.append(detector.name)
                outputs.append([])
            else:
                outputs.append(outcome.anomalies)

        return outputs, failed

    def _build_result(
        self,
        anomalies: List[Anomaly],
        detectors: Sequence[AnomalyDetector],
        query_result: QueryResult,
        user_id: Optional[str],
    ) -> AnomalyDetectionResult:
        counts = Counter(a.severity for a in anomalies)
        now = self._clock()
        return AnomalyDetectionResult(
            anomalies=anomalies,
            total_anomalies=len(anomalies),
            critical_count=counts[AnomalySeverity.CRITICAL],
            high_severity_count=counts[AnomalySeverity.HIGH],
            medium_severity_count=counts[AnomalySeverity.MEDIUM],
            low_severity_count=counts[AnomalySeverity.LOW],
            insights=generate_insights(anomalies),
            recommendations=generate_recommendations(anomalies),
            detection_methods=len(detectors),
            processing_time=now,
            metadata={
                "detection_timestamp": now,
                "user_id": user_id or "anonymous",
                "query_row_count": query_result.row_count,
                "query_column_count": query_result.column_count,
                "detection_methods_used": [d.name for d in detectors],
                "alerts_sent": 0,
            },
        )

    async def _process_alerts(self, anomalies: Sequence[Anomaly], user_id: Optional[str]) -> int:
        sent = 0
        for anomaly in anomalies:
            if anomaly.severity >= AnomalySeverity.HIGH:
                if await self.alert_manager.send_anomaly_alert(anomaly, user_id):
                    sent += 1
        return sent

    def update_configuration(self, config: Union[AnomalyConfig, Mapping[str, Any]]) -> None:
        """
        Replace detector toggles and limits.

        Raises:
            ConfigurationError: If the configuration fails validation; the
                current configuration stays in effect
        """
        try:
            new_config = (
                config if isinstance(config, AnomalyConfig) else AnomalyConfig.model_validate(config)
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid anomaly configuration: {e}") from e

        self.alert_manager.configure(
            timedelta(seconds=new_config.alert_cooldown_seconds),
            timedelta(seconds=new_config.alert_record_ttl_seconds),
        )
        if new_config.history_size != self._config.history_size:
            self.history.resize(new_config.history_size)
        self._config = new_config
        self._active_detectors = self._select_detectors(new_config)
        logger.info("Anomaly configuration updated; active detectors: %s", self.enabled_detection_methods)

    async def update_detection_configuration(
        self, configuration: Union[AnomalyDetectionConfiguration, Mapping[str, Any]]
    ) -> None:
        """
        Replace per-detector settings and persist them.

        Every section is validated before any detector is touched. Sections
        left out keep their current settings.

        Raises:
            ConfigurationError: If validation fails (including an
                uncompilable rule condition); no detector is changed
        """
        try:
            new_configuration = AnomalyDetectionConfiguration.model_validate(configuration)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid detection configuration: {e}") from e

        logger.info("Updating anomaly detection configuration")
        self._apply_detection_configuration(new_configuration)

        try:
            await self._cache.set(
                CONFIGURATION_CACHE_KEY,
                new_configuration.model_dump(mode="json"),
                ttl=timedelta(days=self._config.configuration_ttl_days),
            )
        except Exception:
            logger.error("Failed to persist anomaly detection configuration", exc_info=True)
            return

        logger.info("Anomaly detection configuration updated successfully")

    def _apply_detection_configuration(self, configuration: AnomalyDetectionConfiguration) -> None:
        if configuration.statistical_thresholds is not None:
            self.statistical_detector.update_thresholds(configuration.statistical_thresholds)
        if configuration.temporal_parameters is not None:
            self.temporal_detector.update_parameters(configuration.temporal_parameters)
        if configuration.pattern_settings is not None:
            self.pattern_detector.update_settings(configuration.pattern_settings)
        if configuration.business_rules is not None:
            self.business_rule_detector.update_rules(configuration.business_rules)

    async def load_persisted_configuration(self) -> bool:
        """
        Re-apply detection settings persisted by a previous update.

        Returns:
            True if a persisted configuration was found and applied
        """
        payload = await self._cache.get(CONFIGURATION_CACHE_KEY)
        if payload is None:
            return False

        try:
            configuration = AnomalyDetectionConfiguration.model_validate(payload)
        except ValidationError:
            logger.warning("Ignoring invalid persisted anomaly detection configuration", exc_info=True)
            return False

        self._apply_detection_configuration(configuration)
        logger.info("Loaded persisted anomaly detection configuration")
        return True

    async def train_detection_models(
        self, historical_data: Sequence[QueryResult], user_id: Optional[str] = None
    ) -> Optional[AnomalyModelMetadata]:
        """
        Let detectors observe historical results and record model metadata.

        Returns:
            The stored metadata, or None if training failed
        """
        try:
            logger.info(
                "Training anomaly detection models with %d historical queries", len(historical_data)
            )

            parameters: Dict[str, Any] = {}
            for detector in (self.statistical_detector, self.temporal_detector, self.pattern_detector):
                parameters.update(detector.train(historical_data))

            metadata = AnomalyModelMetadata(
                training_data_count=len(historical_data),
                last_training_date=self._clock(),
                model_version=MODEL_VERSION,
                user_id=user_id,
                model_parameters=parameters,
            )
            await self._cache.set(
                MODEL_METADATA_CACHE_KEY, metadata.model_dump(mode="json"), ttl=MODEL_METADATA_TTL
            )

            logger.info("Anomaly detection model training completed")
            return metadata
        except Exception:
            logger.error("Error training anomaly detection models", exc_info=True)
            return None

    def get_anomaly_trends(
        self, period: timedelta, user_id: Optional[str] = None
    ) -> AnomalyTrendAnalysis:
        """Summarise surfaced anomalies over the trailing period."""
        return analyze_trends(self.history, period, user_id=user_id, clock=self._clock)
