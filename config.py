"""Configuration management for the newsbrief ingestion pipeline.

This module provides centralized configuration for all pipeline components.
All settings are loaded from environment variables with sensible defaults.

Environment Variables:
    Required:
        GUARDIAN_API_KEY: Guardian content API key
        OPENAI_API_KEY: OpenAI API key for the summarizer

    Content API:
        GUARDIAN_API_URL: Base URL of the content API
        FETCH_LOOKBACK_DAYS: Only request articles from the last N days
        FETCH_MIN_BODY_CHARS: Drop articles whose body is not longer than this
        FETCH_TIMEOUT_SECONDS: Per-request timeout
        DEFAULT_FETCH_COUNT: Target count for scheduled runs
        MANUAL_FETCH_COUNT: Target count for admin manual runs

    Summarizer:
        SUMMARY_MODEL: OpenAI model name (e.g. 'gpt-4o')
        OPENAI_BASE_URL: Optional OpenAI-compatible endpoint
        SUMMARY_TEMPERATURE: Sampling temperature
        SUMMARY_MAX_TOKENS: Completion token cap
        SUMMARY_MAX_INPUT_CHARS: Article text is truncated to this length
        SUMMARY_INPUT_COST_PER_1K: USD per 1K input tokens (cost estimate)
        SUMMARY_OUTPUT_COST_PER_1K: USD per 1K output tokens (cost estimate)

    Slugs:
        SLUG_MAX_LENGTH: Base slug length cap
        SLUG_MAX_SUFFIX: Highest numeric suffix tried before giving up

    Pipeline Behavior:
        DB_PATH: SQLite database file path
        POLL_INTERVAL_SECONDS: Delay between scheduled runs in continuous mode
        STALE_PROCESSING_MINUTES: Age after which PROCESSING rows are stale

    Trigger Endpoints:
        CRON_SECRET: Bearer token for the scheduled trigger
        ADMIN_TOKEN: Bearer token for admin endpoints
        SERVER_HOST / SERVER_PORT: Bind address for `main.py serve`

    Optional Features:
        ENABLE_LOGFIRE: Enable Logfire/OpenTelemetry tracing
        LOGFIRE_TOKEN: Logfire token

    Logging:
        LOG_DIR, LOG_LEVEL, LOG_BACKUP_COUNT, LOG_MAX_BYTES,
        LOG_FORMAT ('text' or 'json')
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _env(key: str, default: str = "") -> str:
    """Get string environment variable with optional default."""
    return os.environ.get(key, default)


def _env_int(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as integer
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(f"Invalid integer value for {key}: '{val}'")


def _env_float(key: str, default: float) -> float:
    """Get float environment variable with default.

    Raises:
        ValueError: If value is set but cannot be parsed as float
    """
    val = os.environ.get(key)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(f"Invalid float value for {key}: '{val}'")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable with default.

    Recognizes truthy values: '1', 'true', 'yes', 'on'
    Recognizes falsy values: '0', 'false', 'no', 'off'
    """
    val = os.environ.get(key, "").lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


# Our section label -> content API section id
DEFAULT_SECTIONS = {
    "opinion": "commentisfree",
    "environment": "environment",
    "technology": "technology",
    "science": "science",
}


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Example:
        >>> config = Config.load()
        >>> if error := config.validate():
        ...     print(f"Config error: {error}")
    """

    # === Required ===
    guardian_api_key: str = ""  # GUARDIAN_API_KEY
    openai_api_key: str = ""  # OPENAI_API_KEY

    # === Content API ===
    guardian_api_url: str = "https://content.guardianapis.com"  # GUARDIAN_API_URL
    sections: dict[str, str] = field(default_factory=lambda: DEFAULT_SECTIONS.copy())
    fetch_lookback_days: int = 7  # FETCH_LOOKBACK_DAYS
    fetch_min_body_chars: int = 500  # FETCH_MIN_BODY_CHARS
    fetch_timeout_seconds: int = 30  # FETCH_TIMEOUT_SECONDS
    default_fetch_count: int = 450  # DEFAULT_FETCH_COUNT - scheduled runs
    manual_fetch_count: int = 10  # MANUAL_FETCH_COUNT - admin manual runs

    # === Summarizer ===
    summary_model: str = "gpt-4o"  # SUMMARY_MODEL
    openai_base_url: str = ""  # OPENAI_BASE_URL - empty means api.openai.com
    summary_temperature: float = 0.7  # SUMMARY_TEMPERATURE
    summary_max_tokens: int = 2000  # SUMMARY_MAX_TOKENS
    summary_max_input_chars: int = 15000  # SUMMARY_MAX_INPUT_CHARS
    input_cost_per_1k: float = 0.005  # SUMMARY_INPUT_COST_PER_1K
    output_cost_per_1k: float = 0.015  # SUMMARY_OUTPUT_COST_PER_1K

    # === Slugs ===
    slug_max_length: int = 60  # SLUG_MAX_LENGTH
    slug_max_suffix: int = 1000  # SLUG_MAX_SUFFIX

    # === Database ===
    db_path: Path = field(default_factory=lambda: Path("newsbrief.db"))  # DB_PATH

    # === Pipeline Behavior ===
    poll_interval_seconds: int = 3600  # POLL_INTERVAL_SECONDS
    stale_processing_minutes: int = 30  # STALE_PROCESSING_MINUTES

    # === Trigger Endpoints ===
    cron_secret: str = ""  # CRON_SECRET
    admin_token: str = ""  # ADMIN_TOKEN
    server_host: str = "127.0.0.1"  # SERVER_HOST
    server_port: int = 8000  # SERVER_PORT

    # === Logging Configuration ===
    log_dir: Path = field(default_factory=lambda: Path("log"))  # LOG_DIR
    log_level: str = "INFO"  # LOG_LEVEL
    log_backup_count: int = 30  # LOG_BACKUP_COUNT
    log_max_bytes: int = 0  # LOG_MAX_BYTES - 0 = time-based rotation
    log_format: str = "text"  # LOG_FORMAT - 'text' or 'json'

    # === Optional: Observability ===
    enable_logfire: bool = False  # ENABLE_LOGFIRE
    logfire_token: str = ""  # LOGFIRE_TOKEN

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            guardian_api_key=_env("GUARDIAN_API_KEY"),
            openai_api_key=_env("OPENAI_API_KEY"),
            guardian_api_url=_env("GUARDIAN_API_URL", "https://content.guardianapis.com"),
            fetch_lookback_days=_env_int("FETCH_LOOKBACK_DAYS", 7),
            fetch_min_body_chars=_env_int("FETCH_MIN_BODY_CHARS", 500),
            fetch_timeout_seconds=_env_int("FETCH_TIMEOUT_SECONDS", 30),
            default_fetch_count=_env_int("DEFAULT_FETCH_COUNT", 450),
            manual_fetch_count=_env_int("MANUAL_FETCH_COUNT", 10),
            summary_model=_env("SUMMARY_MODEL", "gpt-4o"),
            openai_base_url=_env("OPENAI_BASE_URL"),
            summary_temperature=_env_float("SUMMARY_TEMPERATURE", 0.7),
            summary_max_tokens=_env_int("SUMMARY_MAX_TOKENS", 2000),
            summary_max_input_chars=_env_int("SUMMARY_MAX_INPUT_CHARS", 15000),
            input_cost_per_1k=_env_float("SUMMARY_INPUT_COST_PER_1K", 0.005),
            output_cost_per_1k=_env_float("SUMMARY_OUTPUT_COST_PER_1K", 0.015),
            slug_max_length=_env_int("SLUG_MAX_LENGTH", 60),
            slug_max_suffix=_env_int("SLUG_MAX_SUFFIX", 1000),
            db_path=Path(_env("DB_PATH", "newsbrief.db")),
            poll_interval_seconds=_env_int("POLL_INTERVAL_SECONDS", 3600),
            stale_processing_minutes=_env_int("STALE_PROCESSING_MINUTES", 30),
            cron_secret=_env("CRON_SECRET"),
            admin_token=_env("ADMIN_TOKEN"),
            server_host=_env("SERVER_HOST", "127.0.0.1"),
            server_port=_env_int("SERVER_PORT", 8000),
            log_dir=Path(_env("LOG_DIR", "log")),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_backup_count=_env_int("LOG_BACKUP_COUNT", 30),
            log_max_bytes=_env_int("LOG_MAX_BYTES", 0),
            log_format=_env("LOG_FORMAT", "text").lower(),
            enable_logfire=_env_bool("ENABLE_LOGFIRE", False),
            logfire_token=_env("LOGFIRE_TOKEN"),
        )

    def validate(self) -> str | None:
        """Validate configuration for required fields and valid values.

        Returns:
            Error message string if invalid, None if valid.
        """
        if not self.guardian_api_key:
            return "GUARDIAN_API_KEY environment variable is required"
        if not self.openai_api_key:
            return "OPENAI_API_KEY environment variable is required"
        if not self.sections:
            return "No content sections configured"
        if self.fetch_lookback_days <= 0:
            return "FETCH_LOOKBACK_DAYS must be positive"
        if self.fetch_timeout_seconds <= 0:
            return "FETCH_TIMEOUT_SECONDS must be positive"
        if self.default_fetch_count <= 0 or self.manual_fetch_count <= 0:
            return "Fetch counts must be positive"
        if self.summary_max_input_chars <= 0:
            return "SUMMARY_MAX_INPUT_CHARS must be positive"
        if self.slug_max_length <= 0:
            return "SLUG_MAX_LENGTH must be positive"
        if self.slug_max_suffix <= 0:
            return "SLUG_MAX_SUFFIX must be positive"
        if self.poll_interval_seconds <= 0:
            return "POLL_INTERVAL_SECONDS must be positive"
        if self.stale_processing_minutes <= 0:
            return "STALE_PROCESSING_MINUTES must be positive"
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return f"Invalid LOG_LEVEL '{self.log_level}' - must be DEBUG, INFO, WARNING, ERROR, or CRITICAL"
        if self.log_format not in ("text", "json"):
            return f"Invalid LOG_FORMAT '{self.log_format}' - must be 'text' or 'json'"
        if self.log_backup_count < 0:
            return "LOG_BACKUP_COUNT must be non-negative"
        if self.log_max_bytes < 0:
            return "LOG_MAX_BYTES must be non-negative"
        return None
