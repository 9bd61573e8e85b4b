"""Ollama chat adapter (newline-delimited JSON)."""

from __future__ import annotations

from typing import Any, Sequence

from ..chat.store import Message, Role
from ..chat.streaming.decoder import Framing
from ..chat.streaming.tooling import decode_arguments, encode_arguments
from ..chat.streaming.types import Complete, StreamEvent, Token, ToolCall
from ..schemas.preferences import ChatSettings
from .base import FrameParser, ProviderAdapter, ProviderRequest, with_system_prompt


class OllamaFrameParser(FrameParser):
    def parse_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        message = payload.get("message")
        if not isinstance(message, dict):
            message = {}

        reasoning = self._reasoning_event(message.get("thinking"))
        if reasoning is not None:
            events.append(reasoning)

        content = message.get("content")
        if isinstance(content, str) and content:
            events.append(Token(content))

        for call in message.get("tool_calls") or []:
            function = call.get("function") if isinstance(call, dict) else None
            if not isinstance(function, dict):
                continue
            name = function.get("name")
            if not isinstance(name, str) or not name:
                continue
            events.append(
                ToolCall(
                    name=name,
                    arguments_json=encode_arguments(function.get("arguments")),
                    call_id=call.get("id"),
                )
            )

        if payload.get("done") is True:
            raw_reason = payload.get("done_reason") or "stop"
            events.append(
                Complete(
                    reason=OllamaAdapter.map_finish_reason(raw_reason),
                    raw_reason=raw_reason,
                )
            )
        return events


class OllamaAdapter(ProviderAdapter):
    name = "ollama"
    display_name = "Ollama"
    framing = Framing.NDJSON

    def build_request(
        self,
        history: Sequence[Message],
        settings: ChatSettings,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> ProviderRequest:
        messages: list[dict[str, Any]] = []
        for message in with_system_prompt(history, settings.system_prompt):
            messages.extend(self._render(message))

        body: dict[str, Any] = {
            "model": settings.model,
            "messages": messages,
            "stream": True,
            "options": {
                "temperature": settings.temperature,
                "num_predict": settings.max_tokens,
            },
        }
        if tools:
            body["tools"] = tools

        return ProviderRequest(
            url=f"{settings.base_url}/api/chat",
            model=settings.model,
            json=body,
            headers=self._headers(settings),
        )

    def new_parser(self) -> OllamaFrameParser:
        return OllamaFrameParser()

    def models_request(self, settings: ChatSettings) -> ProviderRequest:
        return ProviderRequest(
            url=f"{settings.base_url}/api/tags",
            headers=self._headers(settings),
            method="GET",
        )

    def parse_models(self, payload: Any) -> list[str]:
        models = payload.get("models") if isinstance(payload, dict) else None
        names = [
            entry.get("name") or entry.get("model")
            for entry in models or []
            if isinstance(entry, dict)
        ]
        return sorted(name for name in names if isinstance(name, str) and name)

    @staticmethod
    def _headers(settings: ChatSettings) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        # Local servers need no key; ollama.com does.
        if settings.api_key:
            headers["Authorization"] = f"Bearer {settings.api_key}"
        return headers

    @staticmethod
    def _render(message: Message) -> list[dict[str, Any]]:
        if message.role is Role.TOOL and message.tool_call is not None:
            call = message.tool_call
            return [
                {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {
                            "function": {
                                "name": call.name,
                                "arguments": decode_arguments(call.arguments_json),
                            }
                        }
                    ],
                },
                {"role": "tool", "content": message.content, "tool_name": call.name},
            ]

        entry: dict[str, Any] = {"role": message.role.value, "content": message.content}
        if message.attachments:
            entry["images"] = [image.base64() for image in message.attachments]
        return [entry]


__all__ = ["OllamaAdapter", "OllamaFrameParser"]
