"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "ExpertDesk AI"
    app_version: str = "1.0.0"
    debug: bool = True

    # LLM Provider settings
    llm_provider: str = "gemini"  # "gemini" or "openai"
    llm_api_key: Optional[str] = None
    llm_model: Optional[str] = None  # uses provider default if not set
    llm_base_url: Optional[str] = None  # uses provider default if not set

    # Rate limiting
    api_key_type: str = "paid"  # "free" enables rate limit classification
    rate_limit_classify_all_429: bool = False  # classify HTTP 429 on paid keys too

    # Conversation
    history_window: int = 6  # messages sent to the backend per call
    idle_warning_seconds: float = 180.0
    idle_timeout_seconds: float = 300.0
    idle_poll_interval: float = 1.0
    connecting_dwell_analyzing: float = 1.2
    connecting_dwell_found: float = 1.2
    connecting_dwell_connecting: float = 1.2
    connecting_dwell_connected: float = 0.6

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/expertdesk.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses

    @property
    def is_free_tier(self) -> bool:
        return self.api_key_type.lower() == "free"

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
