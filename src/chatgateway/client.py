"""Shared HTTP transport for every chat provider."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncGenerator, ClassVar, Optional

import httpx
from fastapi import status

from .chat.streaming.decoder import aiter_events
from .chat.streaming.types import CancellationToken, StreamEvent
from .config import Settings
from .errors import TransportError
from .providers.base import FrameParser, ProviderAdapter, ProviderRequest
from .schemas.preferences import ChatSettings

logger = logging.getLogger(__name__)

_POOL_LIMITS = httpx.Limits(max_connections=50, max_keepalive_connections=20)


def error_detail(raw: bytes, provider: str = "Provider") -> Any:
    """Best-effort extraction of the error payload from a failed response body."""

    text = raw.decode("utf-8", errors="ignore").strip()
    if not text:
        return f"{provider} returned an empty error response."
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text

    # Google wraps errors in a one-element array.
    if isinstance(payload, list) and len(payload) == 1:
        payload = payload[0]
    if isinstance(payload, dict) and payload.get("error"):
        return payload["error"]
    return payload


class ProviderClient:
    """Issue provider requests and stream their bodies as normalized events.

    Clients built without an injected ``http_client`` share one pooled
    ``httpx.AsyncClient`` per timeout value.
    """

    _pool: ClassVar[dict[float, httpx.AsyncClient]] = {}
    _pool_lock: ClassVar[asyncio.Lock] = asyncio.Lock()

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        timeout = float(self._settings.request_timeout)
        pool = type(self)._pool
        async with type(self)._pool_lock:
            if timeout not in pool:
                logger.debug("Creating pooled HTTP client (timeout=%ss)", timeout)
                pool[timeout] = httpx.AsyncClient(
                    timeout=httpx.Timeout(timeout, connect=10.0),
                    limits=_POOL_LIMITS,
                    http2=True,
                )
            return pool[timeout]

    async def stream_events(
        self,
        adapter: ProviderAdapter,
        request: ProviderRequest,
        parser: FrameParser,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Send ``request`` and yield events decoded from the streamed body."""

        client = await self._client()
        logger.debug("Opening %s stream: %s %s", adapter.name, request.method, request.url)
        try:
            async with client.stream(
                request.method,
                request.url,
                headers=request.headers,
                json=request.json,
                params=request.params or None,
            ) as response:
                if response.is_error:
                    raise TransportError(
                        response.status_code,
                        error_detail(await response.aread(), adapter.display_name),
                    )
                async for event in aiter_events(
                    response.aiter_bytes(), adapter.framing, parser, cancel_token
                ):
                    yield event
        except httpx.HTTPError as exc:
            raise TransportError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

    async def list_models(
        self, adapter: ProviderAdapter, settings: ChatSettings
    ) -> list[str]:
        """Return the model identifiers the provider advertises."""

        request = adapter.models_request(settings)
        client = await self._client()
        try:
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params or None,
            )
        except httpx.HTTPError as exc:
            raise TransportError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc

        if response.is_error:
            raise TransportError(
                response.status_code,
                error_detail(response.content, adapter.display_name),
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(status.HTTP_502_BAD_GATEWAY, str(exc)) from exc
        return adapter.parse_models(payload)

    async def aclose(self) -> None:
        # Injected clients belong to the caller.
        if self._http_client is None:
            await type(self).close_pool()

    @classmethod
    async def close_pool(cls) -> None:
        async with cls._pool_lock:
            clients = list(cls._pool.values())
            cls._pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except httpx.HTTPError:  # pragma: no cover - shutdown
                logger.warning("Failed to close pooled HTTP client", exc_info=True)


__all__ = ["ProviderClient", "error_detail"]
