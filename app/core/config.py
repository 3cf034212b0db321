from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment mode: dev or prod
    ENV: Literal["dev", "prod"] = "dev"

    # Database
    DATABASE_URL: str

    # Source API keys (injected into adapters via source_api_keys)
    GRANTS_GOV_API_KEY: str | None = None
    OPENGRANTS_API_KEY: str | None = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    SLACK_WEBHOOK_URL: str | None = None

    # Scheduler
    SYNC_ENABLED: bool = True  # Enable/disable the background sync loop
    SYNC_INTERVAL_SECONDS: int = 24 * 60 * 60  # nightly
    CRON_SECRET: str | None = None

    # Sync tuning
    SYNC_PAGE_SIZE: int = 100
    SYNC_MAX_PAGES: int = 50  # ceiling against a misbehaving upstream has_more flag
    SYNC_FETCH_FULL_DETAILS: bool = True
    DETAIL_FETCH_DELAY_SECONDS: float = 0.1
    HTTP_TIMEOUT_SECONDS: float = 30.0
    STALE_JOB_TIMEOUT_MINUTES: int = 120

    # Docs Configuration
    DOCS_ENABLED: bool | None = None  # Override docs setting (None = auto based on ENV)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # ignore unrelated keys in local .env
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENV == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENV == "dev"

    @property
    def debug_enabled(self) -> bool:
        """Debug mode is only enabled in development."""
        return self.is_development

    @property
    def effective_log_level(self) -> str:
        """Return appropriate log level based on environment."""
        if self.is_production:
            # In production, minimum INFO level (ignore DEBUG)
            return self.LOG_LEVEL if self.LOG_LEVEL.upper() != "DEBUG" else "INFO"
        return self.LOG_LEVEL

    @property
    def docs_enabled(self) -> bool:
        """Swagger/ReDoc docs enabled based on environment or override."""
        if self.DOCS_ENABLED is not None:
            return self.DOCS_ENABLED
        return self.is_development

    @property
    def source_api_keys(self) -> dict[str, str]:
        """Explicit source_key -> API key mapping handed to the sync service."""
        keys = {
            "grants_gov": self.GRANTS_GOV_API_KEY,
            "opengrants": self.OPENGRANTS_API_KEY,
        }
        return {key: value for key, value in keys.items() if value}


settings = Settings()
