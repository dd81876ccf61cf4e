"""Configuration management for couple-finance."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI API (only needed for text entry and reports)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    # Ledger settings
    group_name: str = "Home"
    currency_symbol: str = "$"
    report_window_days: int = 30

    # Database path
    database_path: Path = Path.home() / ".couple_finance" / "couple_finance.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def require_openai_key(self) -> str:
        """Return the OpenAI key or fail with a hint on how to set it."""
        if not self.openai_api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Add it to your .env file to use "
                "AI-assisted entry and reports."
            )
        return self.openai_api_key


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings. Make sure your .env file is valid. "
            f"See .env.example for reference.\n"
            f"Error: {e}"
        ) from e
