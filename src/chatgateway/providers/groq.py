"""Groq adapter speaking the OpenAI-compatible chat completions API."""

from __future__ import annotations

from typing import Any, Sequence

from ..chat.store import Message, Role
from ..chat.streaming.decoder import Framing
from ..chat.streaming.reasoning import extract_reasoning_text
from ..chat.streaming.tooling import finalize_tool_calls, merge_tool_calls
from ..chat.streaming.types import Complete, Source, StreamEvent, Token
from ..schemas.preferences import ChatSettings
from .base import FrameParser, ProviderAdapter, ProviderRequest, with_system_prompt


def _search_result_sources(executed_tools: Any) -> list[Source]:
    sources: list[Source] = []
    for tool in executed_tools or []:
        if not isinstance(tool, dict):
            continue
        search_results = tool.get("search_results")
        if isinstance(search_results, dict):
            results = search_results.get("results")
        else:
            results = search_results
        for result in results or []:
            if not isinstance(result, dict):
                continue
            url = result.get("url")
            if not isinstance(url, str) or not url.strip():
                continue
            title = result.get("title") or url
            sources.append(
                Source(title=title, url=url, preview_text=result.get("content"))
            )
    return sources


class GroqFrameParser(FrameParser):
    def __init__(self) -> None:
        super().__init__()
        self._tool_calls: list[dict[str, Any]] = []

    def parse_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return []
        choice = choices[0]
        if not isinstance(choice, dict):
            return []

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}
        message = choice.get("message")
        if not isinstance(message, dict):
            message = {}

        events: list[StreamEvent] = []

        reasoning_payload = delta.get("reasoning") or message.get("reasoning")
        if reasoning_payload:
            reasoning = self._reasoning_event(extract_reasoning_text(reasoning_payload))
            if reasoning is not None:
                events.append(reasoning)

        executed = delta.get("executed_tools") or message.get("executed_tools")
        sources = self._sources_event(_search_result_sources(executed))
        if sources is not None:
            events.append(sources)

        content = delta.get("content")
        if content is None:
            content = message.get("content")
        if isinstance(content, str) and content:
            events.append(Token(content))

        merge_tool_calls(
            self._tool_calls, delta.get("tool_calls") or message.get("tool_calls")
        )

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            if self._tool_calls:
                events.extend(finalize_tool_calls(self._tool_calls))
                self._tool_calls = []
            events.append(
                Complete(
                    reason=GroqAdapter.map_finish_reason(finish_reason),
                    raw_reason=finish_reason,
                )
            )
        return events


class GroqAdapter(ProviderAdapter):
    name = "groq"
    display_name = "Groq"
    framing = Framing.SSE
    native_web_search = True

    def select_model(self, history: Sequence[Message], settings: ChatSettings) -> str:
        """Pick the vision model for images and compound for web search."""

        if settings.vision_model and any(message.attachments for message in history):
            return settings.vision_model
        if settings.web_search_enabled and settings.web_search_model:
            return settings.web_search_model
        return settings.model

    def build_request(
        self,
        history: Sequence[Message],
        settings: ChatSettings,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> ProviderRequest:
        api_key = self.require_api_key(settings)
        messages: list[dict[str, Any]] = []
        for message in with_system_prompt(history, settings.system_prompt):
            messages.extend(self._render(message))

        body: dict[str, Any] = {
            "model": self.select_model(history, settings),
            "messages": messages,
            "stream": True,
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        if tools:
            body["tools"] = tools

        return ProviderRequest(
            url=f"{settings.base_url}/chat/completions",
            model=body["model"],
            json=body,
            headers=self._headers(api_key, stream=True),
        )

    def new_parser(self) -> GroqFrameParser:
        return GroqFrameParser()

    def models_request(self, settings: ChatSettings) -> ProviderRequest:
        api_key = self.require_api_key(settings)
        return ProviderRequest(
            url=f"{settings.base_url}/models",
            headers=self._headers(api_key),
            method="GET",
        )

    def parse_models(self, payload: Any) -> list[str]:
        data = payload.get("data") if isinstance(payload, dict) else None
        ids = [entry.get("id") for entry in data or [] if isinstance(entry, dict)]
        return sorted(model_id for model_id in ids if isinstance(model_id, str) and model_id)

    @staticmethod
    def _headers(api_key: str, *, stream: bool = False) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return headers

    @staticmethod
    def _render(message: Message) -> list[dict[str, Any]]:
        if message.role is Role.TOOL and message.tool_call is not None:
            call = message.tool_call
            call_id = call.call_id or "call_0"
            return [
                {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": call.arguments_json,
                            },
                        }
                    ],
                },
                {"role": "tool", "tool_call_id": call_id, "content": message.content},
            ]

        if message.attachments:
            parts: list[dict[str, Any]] = []
            if message.content:
                parts.append({"type": "text", "text": message.content})
            parts.extend(
                {"type": "image_url", "image_url": {"url": image.data_url()}}
                for image in message.attachments
            )
            return [{"role": message.role.value, "content": parts}]

        return [{"role": message.role.value, "content": message.content}]


__all__ = ["GroqAdapter", "GroqFrameParser"]
