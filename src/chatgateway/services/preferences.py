"""JSON-backed key-value store for user preferences.

Values fall back to the built-in defaults whenever a key is missing or the
stored value no longer validates.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..config import DEFAULT_MODELS, Settings
from ..schemas.preferences import ChatSettings, Preferences, PreferencesUpdate

logger = logging.getLogger(__name__)

_DEFAULTS = Preferences()


class PreferencesStore:
    """Service for reading and writing the user's chat preferences."""

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._cache: Optional[Preferences] = None

    def _load_json(self) -> Optional[dict]:
        """Load JSON from the preferences file."""
        if self.path is None or not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except Exception as e:
            logger.warning(f"Failed to load {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _save_json(self, data: dict) -> None:
        """Save JSON to the preferences file."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        logger.debug(f"Saved {self.path}")

    def _validated(self, data: dict) -> Preferences:
        try:
            return Preferences.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Invalid preferences in {self.path}: {e}")

        valid: dict[str, Any] = {}
        for key, value in data.items():
            if key not in Preferences.model_fields:
                continue
            try:
                Preferences.model_validate({key: value})
            except ValidationError:
                continue
            valid[key] = value
        return Preferences.model_validate(valid)

    def load(self) -> Preferences:
        if self._cache is not None:
            return self._cache
        data = self._load_json()
        preferences = self._validated(data) if data else Preferences()
        self._cache = preferences
        return preferences

    def get(self, key: str) -> Any:
        if key not in Preferences.model_fields:
            raise KeyError(key)
        return getattr(self.load(), key)

    def set(self, key: str, value: Any) -> Preferences:
        if key not in Preferences.model_fields:
            raise KeyError(key)
        data = self.load().model_dump()
        data[key] = value
        return self.replace(Preferences.model_validate(data))

    def update(self, update: PreferencesUpdate) -> Preferences:
        """Update preferences with partial data."""
        current = self.load()
        update_data = update.model_dump(exclude_unset=True)
        merged = Preferences.model_validate({**current.model_dump(), **update_data})
        return self.replace(merged)

    def replace(self, preferences: Preferences) -> Preferences:
        self._save_json(preferences.model_dump())
        self._cache = preferences
        return preferences

    def reset_to_defaults(self) -> Preferences:
        return self.replace(_DEFAULTS.model_copy())

    def snapshot(
        self, config: Settings, provider: Optional[str] = None
    ) -> ChatSettings:
        """Freeze the current preferences, layered over configuration.

        ``provider`` overrides the preferred provider, for example when
        listing another provider's models.
        """

        preferences = self.load()
        if provider is not None and provider != preferences.provider:
            # The stored model belongs to the stored provider only.
            preferences = preferences.model_copy(
                update={"provider": provider, "default_model": None}
            )
        provider = preferences.provider or config.default_provider
        system_prompt = preferences.system_prompt or config.system_prompt

        api_key: Optional[str] = None
        vision_model: Optional[str] = None
        web_search_model: Optional[str] = None
        if provider == "ollama":
            base_url = preferences.ollama_endpoint or str(config.ollama_base_url)
            if config.ollama_api_key is not None:
                api_key = config.ollama_api_key.get_secret_value()
        elif provider == "groq":
            base_url = str(config.groq_base_url)
            api_key = preferences.groq_api_key or _secret(config.groq_api_key)
            vision_model = config.groq_vision_model
            web_search_model = config.groq_web_search_model
        else:
            base_url = str(config.google_base_url)
            api_key = preferences.google_api_key or _secret(config.google_api_key)

        return ChatSettings(
            provider=provider,
            model=preferences.default_model or DEFAULT_MODELS[provider],
            temperature=preferences.temperature,
            max_tokens=preferences.max_tokens,
            web_search_enabled=preferences.web_search_enabled,
            base_url=base_url.rstrip("/"),
            api_key=api_key,
            system_prompt=system_prompt,
            vision_model=vision_model,
            web_search_model=web_search_model,
        )


def _secret(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value.get_secret_value()


__all__ = ["PreferencesStore"]
