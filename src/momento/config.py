from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MOMENTO_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "momento"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 4000

    # Browser origins allowed to call the API
    cors_origins: list[str] = Field(default=["*"], validation_alias="CORS_ORIGINS")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./momento.db",
        validation_alias="DATABASE_URL",
    )
    database_echo: bool = Field(default=False, validation_alias="DATABASE_ECHO")

    # Logging
    log_level: str = "INFO"
    log_json: bool | None = Field(default=None, validation_alias="LOG_JSON")

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")

    # Response cache
    cache_max_size: int = Field(default=1000, validation_alias="CACHE_MAX_SIZE")
    cache_default_ttl: float = Field(default=300.0, validation_alias="CACHE_DEFAULT_TTL")
    cache_sweep_interval: float = Field(default=300.0, validation_alias="CACHE_SWEEP_INTERVAL")

    # Per-namespace TTLs (seconds). High-churn lists expire sooner than profiles.
    cache_ttl_posts: float = Field(default=120.0, validation_alias="CACHE_TTL_POSTS")
    cache_ttl_post: float = Field(default=300.0, validation_alias="CACHE_TTL_POST")
    cache_ttl_user: float = Field(default=300.0, validation_alias="CACHE_TTL_USER")
    cache_ttl_follows: float = Field(default=120.0, validation_alias="CACHE_TTL_FOLLOWS")
    cache_ttl_reviews: float = Field(default=120.0, validation_alias="CACHE_TTL_REVIEWS")

    # Pagination
    default_page_limit: int = Field(default=20, validation_alias="DEFAULT_PAGE_LIMIT")
    max_page_limit: int = Field(default=100, validation_alias="MAX_PAGE_LIMIT")

    @property
    def use_json_logs(self) -> bool:
        """JSON logs unless explicitly disabled; dev defaults to console output."""
        if self.log_json is not None:
            return self.log_json
        return self.env != "dev"


settings = Settings()
