import json

import pytest
from pydantic import ValidationError

from chatgateway.schemas.preferences import PreferencesResponse, PreferencesUpdate
from chatgateway.services.preferences import PreferencesStore


def test_defaults_without_file(tmp_path, settings) -> None:
    store = PreferencesStore(tmp_path / "preferences.json")

    assert store.get("temperature") == 0.7
    assert store.get("max_tokens") == 1024
    assert store.get("web_search_enabled") is False
    assert store.get("provider") is None

    with pytest.raises(KeyError):
        store.get("unknown")


def test_set_validates_and_persists(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    store = PreferencesStore(path)

    store.set("temperature", 1.5)
    with pytest.raises(ValidationError):
        store.set("temperature", 3.0)
    with pytest.raises(ValidationError):
        store.set("max_tokens", 0)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["temperature"] == 1.5
    assert PreferencesStore(path).get("temperature") == 1.5


def test_invalid_stored_values_fall_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "preferences.json"
    path.write_text(
        json.dumps({"temperature": 9, "max_tokens": 2048, "provider": "nope"}),
        encoding="utf-8",
    )

    store = PreferencesStore(path)

    assert store.get("temperature") == 0.7
    assert store.get("max_tokens") == 2048
    assert store.get("provider") is None


def test_update_and_reset(tmp_path) -> None:
    store = PreferencesStore(tmp_path / "preferences.json")

    updated = store.update(PreferencesUpdate(provider="groq", web_search_enabled=True))
    assert updated.provider == "groq"
    assert updated.web_search_enabled is True
    assert updated.temperature == 0.7

    reset = store.reset_to_defaults()
    assert reset.provider is None
    assert reset.web_search_enabled is False


def test_snapshot_layers_preferences_over_config(tmp_path, settings) -> None:
    store = PreferencesStore(tmp_path / "preferences.json")

    snapshot = store.snapshot(settings)
    assert snapshot.provider == "ollama"
    assert snapshot.model == "llama3.2"
    assert snapshot.base_url == "http://ollama.test"
    assert snapshot.api_key == "ollama-key"
    assert snapshot.system_prompt == "Be brief."

    store.update(
        PreferencesUpdate(provider="groq", groq_api_key="user-key", default_model="m")
    )
    snapshot = store.snapshot(settings)
    assert snapshot.provider == "groq"
    assert snapshot.model == "m"
    assert snapshot.api_key == "user-key"
    assert snapshot.base_url == "https://groq.test/openai/v1"
    assert snapshot.web_search_model == "groq/compound"


def test_snapshot_provider_override_uses_provider_default_model(tmp_path, settings) -> None:
    store = PreferencesStore(tmp_path / "preferences.json")
    store.update(PreferencesUpdate(provider="groq", default_model="llama-3.1-8b-instant"))

    snapshot = store.snapshot(settings, "google")

    assert snapshot.provider == "google"
    assert snapshot.model == "gemini-2.5-flash"
    assert snapshot.api_key == "google-key"


def test_snapshot_is_frozen(tmp_path, settings) -> None:
    store = PreferencesStore(tmp_path / "preferences.json")
    snapshot = store.snapshot(settings)

    store.set("temperature", 0.1)

    assert snapshot.temperature == 0.7
    assert store.snapshot(settings).temperature == 0.1


def test_response_masks_keys() -> None:
    preferences = PreferencesStore().update(PreferencesUpdate(google_api_key="secret"))
    response = PreferencesResponse.from_preferences(preferences)

    assert response.google_api_key_set is True
    assert response.groq_api_key_set is False
    assert "secret" not in response.model_dump_json()
