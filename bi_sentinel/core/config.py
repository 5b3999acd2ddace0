"""
Application configuration for BI Sentinel.

Provides environment-aware settings with conservative defaults. Detector
toggles, result limits and alert timing are configurable to avoid hard-coded
"magic numbers".
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnomalyConfig(BaseModel):
	"""
	Detector toggles and global limits for anomaly detection.

	Notes:
	- A disabled detector is never invoked and contributes nothing.
	- minimum_confidence_threshold and max_anomalies_per_query are applied to
	  the ranked result, before alerting.
	- alert_record_ttl_seconds must outlive the cooldown, otherwise the dedup
	  record expires while it is still needed.
	"""

	model_config = ConfigDict(frozen=True)

	enable_statistical_detection: bool = True
	enable_temporal_detection: bool = True
	enable_pattern_detection: bool = True
	enable_business_rule_detection: bool = True

	minimum_confidence_threshold: float = Field(0.0, ge=0.0, le=1.0)
	max_anomalies_per_query: int = Field(50, ge=1)

	enable_real_time_alerts: bool = True
	alert_cooldown_seconds: int = Field(
		900, ge=0, description="Minimum time between repeated alerts (15 minutes)"
	)
	alert_record_ttl_seconds: int = Field(
		1800, ge=0, description="Expiry of the alert dedup record (30 minutes)"
	)

	detection_timeout_seconds: float = Field(
		30.0, gt=0.0, description="Deadline for the detector fan-out"
	)
	configuration_ttl_days: int = Field(30, ge=1)
	history_size: int = Field(10_000, ge=0)

	@model_validator(mode="after")
	def _check_alert_timing(self) -> "AnomalyConfig":
		if self.alert_record_ttl_seconds < self.alert_cooldown_seconds:
			raise ValueError("alert_record_ttl_seconds must be >= alert_cooldown_seconds")
		return self


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.

	Nested values use a double underscore, e.g.
	BI_SENTINEL_ANOMALY__MAX_ANOMALIES_PER_QUERY=20.
	"""

	model_config = SettingsConfigDict(
		env_prefix="BI_SENTINEL_",
		env_nested_delimiter="__",
		env_file=".env",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalyConfig = AnomalyConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
