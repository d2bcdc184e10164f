"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with STOCKPULSE_ prefix.
No config files — just env vars (12-factor app style).

Learn: create_app() takes an explicit Settings instance, so tests build
their own without touching the environment. The module-level `settings`
is only the default used by uvicorn and the CLI.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via STOCKPULSE_* env vars."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./stockpulse.db"

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS
    cors_origins: list[str] = ["*"]

    # Sessions
    session_cookie_name: str = "stockpulse_session"
    session_max_age_seconds: int = 24 * 60 * 60  # 24 hours
    max_sessions: int = 10_000
    login_path: str = "/auth/login"
    bcrypt_rounds: int = 12

    # Real-time
    inventory_room: str = "inventory-updates"
    realtime_require_session: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    model_config = {"env_prefix": "STOCKPULSE_"}

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Refuse wide-open CORS and non-positive session lifetimes outside development."""
        if self.session_max_age_seconds <= 0:
            raise ValueError("STOCKPULSE_SESSION_MAX_AGE_SECONDS must be positive")
        if self.environment != "development" and "*" in self.cors_origins:
            raise ValueError(
                "STOCKPULSE_CORS_ORIGINS must list explicit origins in "
                "non-development environments."
            )
        return self


# Default instance — used by uvicorn (stockpulse.main:app) and the CLI
settings = Settings()
