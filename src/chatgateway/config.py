"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant. Always answer concisely and politely. "
    "Format responses for mobile in markdown. Do NOT return markdown tables "
    "unless the user explicitly requests a table. If information is best shown "
    "in a table, describe it in text instead, unless asked for a table."
)

ProviderName = Literal["ollama", "groq", "google"]

DEFAULT_MODELS: dict[str, str] = {
    "ollama": "llama3.2",
    "groq": "groq/compound",
    "google": "gemini-2.5-flash",
}


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_provider: ProviderName = Field(
        default="groq",
        validation_alias=AliasChoices("CHAT_DEFAULT_PROVIDER", "default_provider"),
    )

    ollama_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("http://localhost:11434"),
        validation_alias=AliasChoices("OLLAMA_BASE_URL", "ollama_base_url"),
    )
    ollama_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("OLLAMA_API_KEY", "ollama_api_key"),
    )
    ollama_web_search_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://ollama.com/api/web_search"),
        validation_alias=AliasChoices(
            "OLLAMA_WEB_SEARCH_URL",
            "ollama_web_search_url",
        ),
    )

    groq_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.groq.com/openai/v1"),
        validation_alias=AliasChoices("GROQ_BASE_URL", "groq_base_url"),
    )
    groq_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("GROQ_API_KEY", "groq_api_key"),
    )
    groq_vision_model: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct",
        validation_alias=AliasChoices("GROQ_VISION_MODEL", "groq_vision_model"),
    )
    groq_web_search_model: str = Field(
        default="groq/compound",
        validation_alias=AliasChoices(
            "GROQ_WEB_SEARCH_MODEL",
            "groq_web_search_model",
        ),
    )

    google_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://generativelanguage.googleapis.com/v1beta"
        ),
        validation_alias=AliasChoices("GOOGLE_AI_BASE_URL", "google_base_url"),
    )
    google_api_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "GOOGLE_AI_API_KEY",
            "GOOGLE_API_KEY",
            "google_api_key",
        ),
    )

    system_prompt: Optional[str] = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("CHAT_SYSTEM_PROMPT", "system_prompt"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("CHAT_REQUEST_TIMEOUT", "timeout"),
        ge=1,
    )
    preferences_path: Path = Field(
        default_factory=lambda: Path("data/preferences.json"),
        validation_alias=AliasChoices("PREFERENCES_PATH", "preferences_path"),
    )
    logging_settings_path: Path = Field(
        default_factory=lambda: Path("logging_settings.conf"),
        validation_alias=AliasChoices(
            "LOGGING_SETTINGS_PATH",
            "logging_settings_path",
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = [
    "DEFAULT_MODELS",
    "DEFAULT_SYSTEM_PROMPT",
    "ProviderName",
    "Settings",
    "get_settings",
]
