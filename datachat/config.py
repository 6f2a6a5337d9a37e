from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATASET_PATH = Path(__file__).parent / "data" / "influencers.csv"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server-side provider keys (only used when ALLOW_SERVER_API_KEYS is set)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    ANTHROPIC_API_KEY: Optional[str] = None
    ALLOW_SERVER_API_KEYS: bool = False

    DEFAULT_MODEL: str = "gpt-4o"
    REQUIRE_SELECTED_MODEL: bool = False

    # Fixed generation parameters, not tunable per request
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_TOKENS: int = 1000

    PROMPT_TOKEN_BUDGET: int = 120_000
    CHARS_PER_TOKEN: int = 4

    DEFAULT_DATASET_SOURCE: str = str(DEFAULT_DATASET_PATH)
    REQUEST_TIMEOUT_SECONDS: float = 30.0
    CORS_ORIGINS: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def prompt_char_budget(self) -> int:
        """Character budget for the data section of the system prompt."""
        return self.PROMPT_TOKEN_BUDGET * self.CHARS_PER_TOKEN

    def get_server_keys(self) -> dict[str, Optional[str]]:
        """Return server-side API keys by provider id."""
        return {
            "openai": self.OPENAI_API_KEY,
            "google": self.GEMINI_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY,
        }

    def get_base_urls(self) -> dict[str, Optional[str]]:
        return {
            "openai": self.OPENAI_BASE_URL,
            "google": self.GEMINI_BASE_URL,
            "anthropic": None,
        }


def get_settings() -> Settings:
    return Settings()

settings = get_settings()
