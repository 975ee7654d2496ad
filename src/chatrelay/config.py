"""Configuration management for chatrelay."""

from typing import Any, Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHATRELAY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend Configuration
    backend: Literal["local", "supabase"] = Field(default="local", description="Realtime backend")
    supabase_url: Optional[str] = Field(None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(None, description="Supabase anon or service key")

    # Channel Configuration
    channel_name: str = Field(default="chat", description="Broadcast channel name")
    table: str = Field(default="messages", description="Message table observed for inserts")
    schema_name: str = Field(default="public", description="Schema of the message table")

    # Reconnect Configuration
    reconnect_base_delay: float = Field(default=3.0, gt=0, description="Initial reconnect backoff in seconds")
    reconnect_max_delay: float = Field(default=60.0, gt=0, description="Ceiling on reconnect backoff in seconds")

    # Participants
    sender: str = Field(default="user", description="Sender name for locally typed messages")
    agent_sender: str = Field(default="agent", description="Sender name for agent replies")

    # Agent Configuration
    agent_model: Optional[str] = Field(None, description="Model passed to the agent backend")
    agent_system_prompt: Optional[str] = Field(None, description="System prompt for the agent")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")

    @model_validator(mode="after")
    def _check_backoff(self) -> "Settings":
        if self.reconnect_max_delay < self.reconnect_base_delay:
            raise ValueError("reconnect_max_delay must not be smaller than reconnect_base_delay")
        return self


def get_settings(**overrides: Any) -> Settings:
    """Get application settings.

    Args:
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Settings instance
    """
    # pydantic-settings loads CHATRELAY_* variables and the .env file
    return Settings(**overrides)
