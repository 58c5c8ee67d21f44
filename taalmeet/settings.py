"""Settings for the TaalMeet discovery client with observability configuration."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
	if env_names:
		alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
		return Field(default=default, validation_alias=alias)
	return Field(default=default)


class Settings(BaseSettings):
	backend_url: str = _env_field("http://localhost:54321/rest/v1", "BACKEND_URL", "SUPABASE_URL")
	backend_api_key: Optional[str] = _env_field(None, "BACKEND_API_KEY", "SUPABASE_ANON_KEY")
	backend_timeout_seconds: float = _env_field(8.0, "BACKEND_TIMEOUT_SECONDS")
	redis_url: str = "redis://localhost:6379/0"

	# Location reporter cadence. Reads happen once on start, then every interval.
	location_report_interval_seconds: float = _env_field(20.0, "LOCATION_REPORT_INTERVAL_SECONDS")
	# Fallback coordinate when the device refuses to share its position (The Hague).
	default_lat: float = _env_field(52.0705, "DEFAULT_LAT")
	default_lng: float = _env_field(4.3007, "DEFAULT_LNG")

	# Request cache and retry policy shared by all backend reads/mutations
	nearby_cache_ttl_seconds: int = _env_field(300, "NEARBY_CACHE_TTL_SECONDS")
	feed_cache_ttl_seconds: int = _env_field(300, "FEED_CACHE_TTL_SECONDS")
	query_max_retries: int = _env_field(2, "QUERY_MAX_RETRIES")
	mutation_max_retries: int = _env_field(1, "MUTATION_MAX_RETRIES")
	retry_base_delay_seconds: float = _env_field(1.0, "RETRY_BASE_DELAY_SECONDS")

	# Discovery view knobs
	online_nearby_threshold_km: float = 2.0
	default_max_distance_km: float = 50.0
	cluster_cell_size_pct: float = 20.0

	environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
	obs_enabled: bool = _env_field(True, "OBS_ENABLED")
	obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
	obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
	cors_allow_origins: list[str] = _env_field([], "CORS_ALLOW_ORIGINS")
	service_name: str = _env_field("taalmeet-discovery", "SERVICE_NAME")
	git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

	def is_prod(self) -> bool:
		return self.environment.lower() in ("prod", "production", "live")

	def is_dev(self) -> bool:
		return self.environment.lower() in ("dev", "development")

	model_config = SettingsConfigDict(
		env_prefix="",
		env_file=".env",
		case_sensitive=False,
		extra="ignore",
	)

	@field_validator("backend_url", mode="after")
	def _strip_trailing_slash(cls, value: str) -> str:
		return value.rstrip("/")

	@field_validator("obs_log_level", mode="after")
	def _normalise_level(cls, value: str) -> str:
		return value.upper()


settings = Settings()
