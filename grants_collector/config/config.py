"""Configuration management for the extract collector."""

from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration from environment variables."""

    # Required
    supabase_url: str
    supabase_key: str

    # Extract source
    extract_base_url: str = "https://www.grants.gov/extract"
    user_agent: str = "Federal-Grants-Collector/1.0"
    lookback_days: int = 7
    request_timeout_seconds: float = 120.0
    fetch_retry_attempts: int = 3

    # Pipeline
    batch_size: int = 50
    collect_max_duration_seconds: int = 300

    # Optional
    extract_date: Optional[str] = None
    schedule_cron: str = "0 6 * * *"
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "case_sensitive": False}


def validate_config() -> Config:
    """Load configuration, naming every missing required variable at once.

    Raises:
        ValueError: one or more required variables are unset.
        ValidationError: a variable is set but has the wrong type.
    """
    try:
        return Config()  # type: ignore[call-arg]
    except ValidationError as exc:
        missing = [
            str(error["loc"][0]).upper()
            for error in exc.errors()
            if error["type"] == "missing" and error["loc"]
        ]
        if not missing:
            raise
        raise ValueError(
            f"Missing required environment variable(s): {', '.join(missing)}. "
            "Set them in the environment or a .env file."
        ) from exc


def load_config() -> Config:
    """Load configuration from environment (startup entry point)."""
    return validate_config()
