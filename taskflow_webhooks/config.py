"""Application configuration via pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # Datastore (PostgREST / Supabase REST). Empty URL -> in-memory store
    datastore_url: str = ""
    datastore_key: str = ""
    datastore_timeout: float = 30.0

    # Content analyzer
    anthropic_api_key: str = ""
    openrouter_api_key: str = ""
    analyzer_model: str = "claude-haiku-4-5-20251001"
    analyzer_enabled: bool = True

    # Slack app-level signing secret, used for the URL verification handshake
    slack_signing_secret: str = ""
    slack_replay_window_seconds: int = 300

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = True
    webhook_rate_limit: str = "120/minute"


settings = Settings()
