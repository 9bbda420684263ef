"""
Application settings and configuration.
All secrets are loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # WeChat Official Account Configuration
    wechat_token: str = ""
    wechat_app_id: str = ""  # Unused in plaintext mode
    wechat_app_secret: str = ""  # Unused in plaintext mode
    wechat_encoding_aes_key: str = ""  # Unused in plaintext mode

    # OpenAI Configuration
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    openai_max_token: int = 1024
    openai_timeout: float = 50.0

    # Conversation history window
    history_limit: int = 50
    history_lookback_minutes: int = 60
    history_max_gap_minutes: int = 5

    # Redelivered events wait for the in-flight answer
    duplicate_poll_attempts: int = 10
    duplicate_poll_interval: float = 0.5

    database_url: str = "sqlite+aiosqlite:///./wechat_bridge.db"

    # Application Settings
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
