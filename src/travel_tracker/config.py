"""Configuration management for Travel Tracker.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the TRAVEL_TRACKER_ prefix (e.g., TRAVEL_TRACKER_OLLAMA_HOST).
    """

    model_config = SettingsConfigDict(
        env_prefix="TRAVEL_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Configuration
    llm_provider: Literal["ollama", "openai"] = Field(
        default="ollama",
        description="Completion backend used for trip extraction",
    )
    ollama_host: str = Field(
        default="http://localhost:11434",
        description="Ollama API host URL",
    )
    ollama_model: str = Field(
        default="llama3.1:8b",
        description="Ollama model used for trip extraction",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key (required when llm_provider=openai)",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model used for trip extraction",
    )
    llm_temperature: float = Field(
        default=0.1,
        description="Sampling temperature for extraction calls",
    )
    llm_max_tokens: int = Field(
        default=1500,
        description="Upper bound on tokens generated per extraction",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("token.json"),
        description="Path to Gmail API token file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.readonly",
        description="OAuth scope used for Gmail access; scanning only needs read access.",
    )
    gmail_detail_batch_size: int = Field(
        default=10,
        description="Number of message details fetched concurrently",
    )
    gmail_batch_delay_seconds: float = Field(
        default=0.1,
        description="Pause between message detail batches",
    )

    # Trip store
    database_path: Path = Field(
        default=Path("travel_tracker.sqlite3"),
        description="Path to the SQLite database storing users, trips and processing logs",
    )

    # Scan pipeline
    scan_batch_size: int = Field(
        default=5,
        description="Number of emails processed concurrently per progress batch",
    )
    scan_batch_delay_seconds: float = Field(
        default=0.1,
        description="Pause after each progress batch",
    )
    scan_page_size: int = Field(
        default=50,
        description="Default number of emails requested per scan",
    )
    extraction_concurrency: int = Field(
        default=3,
        description="Maximum number of extraction calls in flight at once",
    )
    extraction_batch_delay_seconds: float = Field(
        default=0.1,
        description="Pause between extraction windows in bulk extraction",
    )
    extraction_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for a single extraction call in seconds",
    )
    min_confidence: float = Field(
        default=0.3,
        description="Candidates with a lower confidence score are discarded",
    )
    body_char_limit: int = Field(
        default=4000,
        description="Number of body characters sent to the model",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for failed Gmail detail and extraction calls",
    )
    retry_base_delay_seconds: float = Field(
        default=0.5,
        description="Initial retry delay; doubled after each attempt",
    )
    user_email: str | None = Field(
        default=None,
        description="Mailbox owner used by the CLI when --user is not given",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
