"""Tests for the shared provider HTTP client."""

import httpx
import pytest

from chatgateway.client import ProviderClient
from chatgateway.chat.store import Message, Role
from chatgateway.chat.streaming.types import Complete, CompleteReason, Token
from chatgateway.errors import TransportError
from chatgateway.providers import GoogleAdapter, GroqAdapter, OllamaAdapter
from chatgateway.services.preferences import PreferencesStore

from conftest import ndjson, sse


def make_client(settings, handler) -> ProviderClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ProviderClient(settings, http_client=http_client)


async def collect(client, adapter, chat_settings):
    request = adapter.build_request([Message(role=Role.USER, content="hi")], chat_settings)
    return [
        event
        async for event in client.stream_events(adapter, request, adapter.new_parser())
    ]


@pytest.mark.asyncio
async def test_streams_ndjson_events(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat"
        return httpx.Response(
            200,
            content=ndjson(
                {"message": {"content": "Hi"}},
                {"done": True, "done_reason": "stop"},
            ),
        )

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings)

    events = await collect(client, OllamaAdapter(), chat_settings)

    assert events == [Token("Hi"), Complete(CompleteReason.NORMAL, "stop")]


@pytest.mark.asyncio
async def test_streams_sse_events(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["alt"] == "sse"
        assert request.url.params["key"] == "google-key"
        return httpx.Response(
            200,
            content=sse(
                {"candidates": [{"content": {"parts": [{"text": "Bonjour"}]}}]},
                {"candidates": [{"finishReason": "STOP"}]},
                done=False,
            ),
        )

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings, "google")

    events = await collect(client, GoogleAdapter(), chat_settings)

    assert events == [Token("Bonjour"), Complete(CompleteReason.NORMAL, "STOP")]


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401, json={"error": {"message": "Invalid API Key", "type": "auth"}}
        )

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings, "groq")

    with pytest.raises(TransportError) as excinfo:
        await collect(client, GroqAdapter(), chat_settings)

    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "Invalid API Key"


@pytest.mark.asyncio
async def test_google_error_array_is_unwrapped(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json=[{"error": {"code": 400, "message": "API key not valid"}}]
        )

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings, "google")

    with pytest.raises(TransportError, match="API key not valid"):
        await collect(client, GoogleAdapter(), chat_settings)


@pytest.mark.asyncio
async def test_network_failure_maps_to_bad_gateway(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings)

    with pytest.raises(TransportError) as excinfo:
        await collect(client, OllamaAdapter(), chat_settings)

    assert excinfo.value.status_code == 502
    assert "connection refused" in excinfo.value.message


@pytest.mark.asyncio
async def test_list_models(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "GET"
        assert request.headers["Authorization"] == "Bearer groq-key"
        return httpx.Response(200, json={"data": [{"id": "b"}, {"id": "a"}]})

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings, "groq")

    assert await client.list_models(GroqAdapter(), chat_settings) == ["a", "b"]


@pytest.mark.asyncio
async def test_list_models_error(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    client = make_client(settings, handler)
    chat_settings = PreferencesStore().snapshot(settings)

    with pytest.raises(TransportError) as excinfo:
        await client.list_models(OllamaAdapter(), chat_settings)

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "upstream exploded"
