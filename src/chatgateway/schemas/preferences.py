"""User preference schemas and the per-exchange settings snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field

from ..config import ProviderName


class Preferences(BaseModel):
    """Key-value preferences persisted on behalf of the user."""

    provider: Optional[ProviderName] = Field(
        default=None,
        description="Provider used for new exchanges; falls back to configuration",
    )
    default_model: Optional[str] = Field(
        default=None,
        description="Model identifier; falls back to the provider default",
    )
    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )
    max_tokens: int = Field(
        default=1024,
        ge=1,
        le=8192,
        description="Maximum tokens in a single response",
    )
    web_search_enabled: bool = Field(
        default=False,
        description="Let the model search the web while answering",
    )
    system_prompt: Optional[str] = Field(
        default=None,
        description="Overrides the configured system prompt",
    )
    ollama_endpoint: Optional[str] = Field(
        default=None,
        description="Base URL of the Ollama server",
    )
    groq_api_key: Optional[str] = None
    google_api_key: Optional[str] = None


class PreferencesUpdate(BaseModel):
    """Partial update for preferences."""

    provider: Optional[ProviderName] = None
    default_model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=8192)
    web_search_enabled: Optional[bool] = None
    system_prompt: Optional[str] = None
    ollama_endpoint: Optional[str] = None
    groq_api_key: Optional[str] = None
    google_api_key: Optional[str] = None


class PreferencesResponse(BaseModel):
    """Preferences as returned over the API, with secrets masked."""

    provider: Optional[ProviderName] = None
    default_model: Optional[str] = None
    temperature: float
    max_tokens: int
    web_search_enabled: bool
    system_prompt: Optional[str] = None
    ollama_endpoint: Optional[str] = None
    groq_api_key_set: bool = False
    google_api_key_set: bool = False

    @classmethod
    def from_preferences(cls, preferences: Preferences) -> "PreferencesResponse":
        return cls(
            provider=preferences.provider,
            default_model=preferences.default_model,
            temperature=preferences.temperature,
            max_tokens=preferences.max_tokens,
            web_search_enabled=preferences.web_search_enabled,
            system_prompt=preferences.system_prompt,
            ollama_endpoint=preferences.ollama_endpoint,
            groq_api_key_set=bool(preferences.groq_api_key),
            google_api_key_set=bool(preferences.google_api_key),
        )


@dataclass(frozen=True)
class ChatSettings:
    """Read-only settings captured at the start of each request."""

    provider: str
    model: str
    temperature: float
    max_tokens: int
    web_search_enabled: bool
    base_url: str
    api_key: Optional[str] = None
    system_prompt: Optional[str] = None
    vision_model: Optional[str] = None
    web_search_model: Optional[str] = None


__all__ = ["ChatSettings", "Preferences", "PreferencesResponse", "PreferencesUpdate"]
