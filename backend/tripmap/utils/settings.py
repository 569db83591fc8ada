from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    allowed_origins: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    google_maps_api_key: str | None = Field(default=None, alias="GOOGLE_MAPS_API_KEY")
    google_places_api_key: str | None = Field(default=None, alias="GOOGLE_PLACES_API_KEY")
    google_directions_url: str = Field(
        default="https://maps.googleapis.com/maps/api/directions/json",
        alias="GOOGLE_DIRECTIONS_URL",
    )
    google_places_base_url: str = Field(
        default="https://maps.googleapis.com/maps/api/place",
        alias="GOOGLE_PLACES_BASE_URL",
    )
    google_timeout_seconds: int = Field(default=20, ge=1, alias="GOOGLE_TIMEOUT_SECONDS")
    google_rate_limit_qps: float = Field(default=10.0, alias="GOOGLE_RATE_LIMIT_QPS")

    cache_backend: str = Field(default="memory", alias="CACHE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    cache_dir: str = Field(default=".cache/google-apis", alias="CACHE_DIR")
    cache_snapshot_file: str = Field(default="google-api-cache.json", alias="CACHE_SNAPSHOT_FILE")
    cache_persistence: bool = Field(default=True, alias="CACHE_PERSISTENCE")
    cache_snapshot_every: int = Field(default=25, alias="CACHE_SNAPSHOT_EVERY")
    cache_sweep_interval_seconds: int = Field(default=600, alias="CACHE_SWEEP_INTERVAL_SECONDS")

    @field_validator("google_maps_api_key", "google_places_api_key", mode="before")
    @classmethod
    def _normalize_optional_secret(cls, value: object) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("cache_backend", "log_level", mode="before")
    @classmethod
    def _normalize_choice(cls, value: object) -> str:
        return str(value or "").strip()

    @property
    def cors_origins(self) -> list[str]:
        return [item.strip() for item in self.allowed_origins.split(",") if item.strip()]

    @property
    def resolved_places_api_key(self) -> str | None:
        return self.google_places_api_key or self.google_maps_api_key

    @property
    def is_production_mode(self) -> bool:
        return str(self.app_env or "").strip().lower() in {"prod", "production"}

    @model_validator(mode="after")
    def _validate_settings(self) -> "Settings":
        if self.cache_backend.lower() not in {"memory", "redis"}:
            raise ValueError("CACHE_BACKEND must be one of: memory, redis.")
        if self.cache_snapshot_every < 1:
            raise ValueError("CACHE_SNAPSHOT_EVERY must be >= 1.")
        if self.cache_sweep_interval_seconds < 1:
            raise ValueError("CACHE_SWEEP_INTERVAL_SECONDS must be >= 1.")

        if self.is_production_mode and not self.google_maps_api_key:
            raise ValueError("Missing required production settings: GOOGLE_MAPS_API_KEY")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
