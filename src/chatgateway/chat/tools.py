"""Client-side web search tool, backed by the Ollama web search API.

Groq (compound models) and Google (``google_search``) search server-side,
so this tool is only advertised to providers without native search.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from ..config import Settings
from ..errors import ToolExecutionError
from .streaming.tooling import decode_arguments
from .streaming.types import Source, ToolCall, ToolResult

logger = logging.getLogger(__name__)

WEB_SEARCH_TOOL_NAME = "web_search"

WEB_SEARCH_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": WEB_SEARCH_TOOL_NAME,
        "description": (
            "Search the web for current information. Use this for recent "
            "events or facts you are unsure about."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query",
                }
            },
            "required": ["query"],
        },
    },
}


class WebSearchToolExecutor:
    """Execute ``web_search`` tool calls and report the pages consulted."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        max_results: int = 5,
    ):
        self._settings = settings
        self._http_client = http_client
        self._max_results = max_results

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        return [WEB_SEARCH_TOOL]

    async def call_tool(self, call: ToolCall) -> ToolResult:
        if call.name != WEB_SEARCH_TOOL_NAME:
            raise ToolExecutionError(f"Unknown tool: {call.name}")

        query = decode_arguments(call.arguments_json).get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolExecutionError("web_search requires a non-empty query")

        api_key = self._settings.ollama_api_key
        if api_key is None or not api_key.get_secret_value():
            raise ToolExecutionError("Ollama API key not configured for web search")

        logger.info("Running web search: %s", query)
        payload = await self._search(query.strip(), api_key.get_secret_value())
        results = payload.get("results") if isinstance(payload, dict) else None
        sources = _result_sources(results)
        logger.debug("Web search returned %d source(s)", len(sources))
        return ToolResult(
            content=json.dumps(payload, ensure_ascii=False),
            sources=tuple(sources),
        )

    async def _search(self, query: str, api_key: str) -> Any:
        url = str(self._settings.ollama_web_search_url)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        body = {"query": query, "max_results": self._max_results}
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, headers=headers, json=body)
            else:
                async with httpx.AsyncClient(
                    timeout=self._settings.request_timeout
                ) as client:
                    response = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise ToolExecutionError(f"Web search failed: {exc}") from exc

        if response.status_code >= 400:
            raise ToolExecutionError(
                f"Web search failed with status {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ToolExecutionError("Web search returned invalid JSON") from exc


def _result_sources(results: Any) -> list[Source]:
    sources: list[Source] = []
    for result in results or []:
        if not isinstance(result, dict):
            continue
        url = result.get("url")
        if not isinstance(url, str) or not url.strip():
            continue
        content = result.get("content")
        preview = content[:280] if isinstance(content, str) else None
        sources.append(
            Source(title=result.get("title") or url, url=url, preview_text=preview)
        )
    return sources


__all__ = ["WEB_SEARCH_TOOL", "WEB_SEARCH_TOOL_NAME", "WebSearchToolExecutor"]
