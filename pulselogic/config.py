"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "PulseLogic"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Garmin Connect ---
    garmin_domain: str = "garmin.com"

    # --- Token storage ---
    token_dir: str = ".garmin-tokens"
    token_encryption_secret: str = "default-dev-secret-change-in-production"

    # --- MFA ---
    mfa_challenge_ttl_seconds: int = 5 * 60
    mfa_sweep_interval_seconds: int = 60
    mfa_max_code_attempts: int = 3

    # --- Sessions ---
    session_idle_ttl_seconds: int = 24 * 60 * 60  # 0 disables idle eviction

    # --- Health data ---
    default_days: int = 7
    max_days: int = 180

    # --- Rate Limiting ---
    rate_limit_per_minute: int = 100

    # --- CORS ---
    cors_origins: list[str] = [
        "capacitor://localhost",
        "https://localhost",
        "http://localhost",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
