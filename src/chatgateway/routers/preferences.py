"""API routes for reading and updating user preferences."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..schemas.preferences import PreferencesResponse, PreferencesUpdate
from ..services.preferences import PreferencesStore

router = APIRouter(prefix="/api/preferences", tags=["preferences"])


def get_preferences_store(request: Request) -> PreferencesStore:
    store = getattr(request.app.state, "preferences_store", None)
    if store is None:  # pragma: no cover - defensive
        raise RuntimeError("Preferences store is not configured")
    return store


@router.get("", response_model=PreferencesResponse)
async def read_preferences(
    store: PreferencesStore = Depends(get_preferences_store),
) -> PreferencesResponse:
    return PreferencesResponse.from_preferences(store.load())


@router.put("", response_model=PreferencesResponse)
async def update_preferences(
    payload: PreferencesUpdate,
    store: PreferencesStore = Depends(get_preferences_store),
) -> PreferencesResponse:
    """Apply a partial update; omitted fields keep their current values."""

    return PreferencesResponse.from_preferences(store.update(payload))


@router.post("/reset", response_model=PreferencesResponse)
async def reset_preferences(
    store: PreferencesStore = Depends(get_preferences_store),
) -> PreferencesResponse:
    return PreferencesResponse.from_preferences(store.reset_to_defaults())


__all__ = ["get_preferences_store", "router"]
