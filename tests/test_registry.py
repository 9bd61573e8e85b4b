import httpx
import pytest

from chatgateway.chat.registry import DEFAULT_EMPTY_TTL_SECONDS, ConversationRegistry
from chatgateway.client import ProviderClient
from chatgateway.errors import ConversationNotFoundError
from chatgateway.services.preferences import PreferencesStore

from conftest import ndjson


def make_registry(settings, tmp_path, **kwargs) -> ConversationRegistry:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=ndjson(
                {"message": {"content": "Hello!"}},
                {"done": True, "done_reason": "stop"},
            ),
        )

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ConversationRegistry(
        ProviderClient(settings, http_client=http_client),
        PreferencesStore(tmp_path / "preferences.json"),
        settings,
        **kwargs,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_fresh_empty_conversations_stay_reachable(settings, tmp_path) -> None:
    registry = make_registry(settings, tmp_path)

    first = registry.create()
    second = registry.create()

    assert len(registry) == 2
    assert registry.get(first.conversation.id) is first
    assert registry.get(second.conversation.id) is second

    await first.submit("Hello")
    await first.wait()
    assert first.conversation.messages[-1].content == "Hello!"


@pytest.mark.asyncio
async def test_create_discards_conversations_left_empty(settings, tmp_path) -> None:
    clock = FakeClock()
    registry = make_registry(settings, tmp_path, clock=clock)

    abandoned = registry.create()
    used = registry.create()
    await used.submit("Hi")
    await used.wait()

    clock.now += DEFAULT_EMPTY_TTL_SECONDS + 1
    fresh = registry.create()

    assert len(registry) == 2
    with pytest.raises(ConversationNotFoundError):
        registry.get(abandoned.conversation.id)
    assert registry.get(used.conversation.id) is used
    assert registry.get(fresh.conversation.id) is fresh


@pytest.mark.asyncio
async def test_lookup_keeps_empty_conversation_alive(settings, tmp_path) -> None:
    clock = FakeClock()
    registry = make_registry(settings, tmp_path, clock=clock)

    waiting = registry.create()
    clock.now += DEFAULT_EMPTY_TTL_SECONDS - 1
    registry.get(waiting.conversation.id)
    clock.now += DEFAULT_EMPTY_TTL_SECONDS - 1
    registry.create()

    assert registry.get(waiting.conversation.id) is waiting


@pytest.mark.asyncio
async def test_list_only_shows_conversations_with_messages(settings, tmp_path) -> None:
    registry = make_registry(settings, tmp_path)

    used = registry.create()
    await used.submit("Plan a trip to Lisbon")
    await used.wait()
    registry.create()

    summaries = registry.list()
    assert len(registry) == 2
    assert [summary["id"] for summary in summaries] == [used.conversation.id]
    assert summaries[0]["title"] == "Plan a trip to Lisbon"
    assert summaries[0]["message_count"] == 2


@pytest.mark.asyncio
async def test_delete(settings, tmp_path) -> None:
    registry = make_registry(settings, tmp_path)
    orchestrator = registry.create()

    await registry.delete(orchestrator.conversation.id)

    assert len(registry) == 0
    with pytest.raises(ConversationNotFoundError):
        await registry.delete(orchestrator.conversation.id)
