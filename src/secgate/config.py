"""Application configuration via environment variables."""

import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///secgate.db"

    # Logging
    log_level: str = "info"
    json_logs: bool = False

    # Scanner execution
    scan_timeout_seconds: float = 600.0
    clone_timeout_seconds: float = 300.0
    temp_dir: str = tempfile.gettempdir()

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_token: str | None = None

    # Scheduler
    catch_up_interval_seconds: int = 300

    # Trends
    trend_timezone: str = "UTC"

    # Gate policy (JSON file); built-in default policy when unset
    policy_file: str | None = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "SECGATE_",
    }


settings = Settings()
