"""Application configuration via Pydantic Settings v2."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Frozen after construction: the webhook secret and storage credentials
    are read once at startup and never change for the process lifetime.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "VendoLedger"
    app_env: Literal["development", "testing", "staging", "production"] = "development"
    debug: bool = False

    # Storage
    database_url: str = ""
    database_password: str = ""

    # Webhook
    webhook_secret: str = ""

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    # API
    api_host: str = "0.0.0.0"  # noqa: S104
    api_port: int = 8123

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def missing_required(self) -> list[str]:
        """Names of the storage/secret settings that are not configured."""
        required = {
            "DATABASE_URL": self.database_url,
            "DATABASE_PASSWORD": self.database_password,
            "WEBHOOK_SECRET": self.webhook_secret,
        }
        return [name for name, value in required.items() if not value]

    @property
    def database_dsn(self) -> str:
        """Database URL with the storage credential merged in.

        Returns:
            DSN suitable for ``create_async_engine``.

        Raises:
            ValueError: If no database URL is configured.
        """
        if not self.database_url:
            raise ValueError("DATABASE_URL is not configured")
        url = make_url(self.database_url)
        if self.database_password:
            url = url.set(password=self.database_password)
        return url.render_as_string(hide_password=False)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
