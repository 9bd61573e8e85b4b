import json

import httpx
import pytest

from chatgateway.chat.streaming.types import Source, ToolCall
from chatgateway.chat.tools import WEB_SEARCH_TOOL, WebSearchToolExecutor
from chatgateway.errors import ToolExecutionError


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_executor(settings, handler) -> WebSearchToolExecutor:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebSearchToolExecutor(settings, http_client=http_client)


@pytest.mark.anyio
async def test_web_search_returns_results_and_sources(settings) -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"title": "Ollama", "url": "https://ollama.com", "content": "Run models"},
                    {"title": "Dup", "url": "https://ollama.com"},
                    {"title": "No url"},
                ]
            },
        )

    executor = make_executor(settings, handler)
    result = await executor.call_tool(ToolCall("web_search", '{"query": " ollama "}'))

    assert seen == {
        "url": "https://search.test/api/web_search",
        "auth": "Bearer ollama-key",
        "body": {"query": "ollama", "max_results": 5},
    }
    assert json.loads(result.content)["results"][0]["title"] == "Ollama"
    assert result.sources[0] == Source("Ollama", "https://ollama.com", "Run models")


@pytest.mark.anyio
async def test_web_search_http_failure(settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="unauthorized")

    executor = make_executor(settings, handler)

    with pytest.raises(ToolExecutionError, match="status 401"):
        await executor.call_tool(ToolCall("web_search", '{"query": "x"}'))


@pytest.mark.anyio
async def test_web_search_requires_query_and_key(settings) -> None:
    executor = make_executor(settings, lambda request: httpx.Response(200, json={}))

    with pytest.raises(ToolExecutionError, match="non-empty query"):
        await executor.call_tool(ToolCall("web_search", "{}"))
    with pytest.raises(ToolExecutionError, match="Unknown tool"):
        await executor.call_tool(ToolCall("calculator", '{"query": "x"}'))

    keyless = make_executor(
        settings.model_copy(update={"ollama_api_key": None}),
        lambda request: httpx.Response(200, json={}),
    )
    with pytest.raises(ToolExecutionError, match="API key"):
        await keyless.call_tool(ToolCall("web_search", '{"query": "x"}'))


def test_tool_definition_shape(settings) -> None:
    executor = WebSearchToolExecutor(settings)

    assert executor.get_tool_definitions() == [WEB_SEARCH_TOOL]
    assert WEB_SEARCH_TOOL["function"]["parameters"]["required"] == ["query"]
