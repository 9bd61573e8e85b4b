"""Provider adapters keyed by provider name."""

from __future__ import annotations

from ..errors import ConfigurationError
from .base import FrameParser, ProviderAdapter, ProviderRequest
from .google import GoogleAdapter
from .groq import GroqAdapter
from .ollama import OllamaAdapter

ADAPTERS: dict[str, ProviderAdapter] = {
    adapter.name: adapter
    for adapter in (OllamaAdapter(), GroqAdapter(), GoogleAdapter())
}


def get_adapter(name: str) -> ProviderAdapter:
    try:
        return ADAPTERS[name]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown provider '{name}'") from exc


__all__ = [
    "ADAPTERS",
    "FrameParser",
    "GoogleAdapter",
    "GroqAdapter",
    "OllamaAdapter",
    "ProviderAdapter",
    "ProviderRequest",
    "get_adapter",
]
