"""Model listing routes."""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ..client import ProviderClient
from ..config import ProviderName, Settings, get_settings
from ..errors import ConfigurationError, TransportError
from ..providers import get_adapter
from ..schemas.chat import ModelListResponse
from ..services.preferences import PreferencesStore
from .preferences import get_preferences_store

router = APIRouter(prefix="/api", tags=["models"])

_MODELS_CACHE_TTL_SECONDS = 60
_models_cache: dict[str, tuple[float, list[str]]] = {}
_models_cache_lock: asyncio.Lock = asyncio.Lock()


def get_provider_client(request: Request) -> ProviderClient:
    client = getattr(request.app.state, "provider_client", None)
    if client is None:  # pragma: no cover - defensive
        raise RuntimeError("Provider client is not configured")
    return client


async def _get_models(
    client: ProviderClient,
    preferences: PreferencesStore,
    config: Settings,
    provider: Optional[str],
) -> tuple[str, list[str]]:
    settings = preferences.snapshot(config, provider)
    key = f"{settings.provider}:{settings.base_url}"

    now = time.monotonic()
    cached = _models_cache.get(key)
    if cached is not None and now < cached[0]:
        return settings.provider, cached[1]

    async with _models_cache_lock:
        cached = _models_cache.get(key)
        if cached is not None and now < cached[0]:
            return settings.provider, cached[1]

        models = await client.list_models(get_adapter(settings.provider), settings)
        _models_cache[key] = (now + _MODELS_CACHE_TTL_SECONDS, models)
        return settings.provider, models


def _invalidate_models_cache() -> None:
    """Forget every cached model list."""

    _models_cache.clear()


@router.get("/models", response_model=ModelListResponse)
async def list_models(
    provider: Optional[ProviderName] = Query(
        None,
        description="Provider to query; defaults to the preferred provider.",
    ),
    client: ProviderClient = Depends(get_provider_client),
    preferences: PreferencesStore = Depends(get_preferences_store),
    config: Settings = Depends(get_settings),
) -> ModelListResponse:
    try:
        resolved, models = await _get_models(client, preferences, config, provider)
    except ConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message
        ) from exc
    except TransportError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return ModelListResponse(provider=resolved, models=models)


__all__ = ["_invalidate_models_cache", "get_provider_client", "router"]
