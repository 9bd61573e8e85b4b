"""Google Gemini adapter for ``streamGenerateContent`` over SSE."""

from __future__ import annotations

from typing import Any, Sequence

from ..chat.store import Message, Role
from ..chat.streaming.decoder import Framing
from ..chat.streaming.tooling import decode_arguments, encode_arguments
from ..chat.streaming.types import (
    Complete,
    Error,
    Reasoning,
    Source,
    StreamEvent,
    Token,
    ToolCall,
)
from ..schemas.preferences import ChatSettings
from .base import FrameParser, ProviderAdapter, ProviderRequest

_MODEL_PREFIX = "models/"


def normalize_model_id(model: str) -> str:
    if model.startswith(_MODEL_PREFIX):
        return model[len(_MODEL_PREFIX) :]
    return model


class GoogleFrameParser(FrameParser):
    def parse_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        feedback = payload.get("promptFeedback")
        if isinstance(feedback, dict) and feedback.get("blockReason"):
            return [Error(f"Prompt blocked: {feedback['blockReason']}")]

        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return []
        candidate = candidates[0]
        if not isinstance(candidate, dict):
            return []

        events: list[StreamEvent] = []
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            if not isinstance(part, dict):
                continue
            text = part.get("text")
            if isinstance(text, str) and text:
                if part.get("thought") is True:
                    if text.strip():
                        events.append(Reasoning(text.strip()))
                else:
                    events.append(Token(text))
            function_call = part.get("functionCall")
            if isinstance(function_call, dict) and function_call.get("name"):
                events.append(
                    ToolCall(
                        name=function_call["name"],
                        arguments_json=encode_arguments(function_call.get("args")),
                        call_id=function_call.get("id"),
                    )
                )

        sources = self._sources_event(_grounding_sources(candidate))
        if sources is not None:
            events.append(sources)

        finish_reason = candidate.get("finishReason")
        if finish_reason:
            events.append(
                Complete(
                    reason=GoogleAdapter.map_finish_reason(finish_reason),
                    raw_reason=finish_reason,
                )
            )
        return events


def _grounding_sources(candidate: dict[str, Any]) -> list[Source]:
    metadata = candidate.get("groundingMetadata")
    if not isinstance(metadata, dict):
        return []
    sources: list[Source] = []
    for chunk in metadata.get("groundingChunks") or []:
        web = chunk.get("web") if isinstance(chunk, dict) else None
        if not isinstance(web, dict):
            continue
        uri = web.get("uri")
        if not isinstance(uri, str) or not uri.strip():
            continue
        sources.append(Source(title=web.get("title") or uri, url=uri))
    return sources


class GoogleAdapter(ProviderAdapter):
    name = "google"
    display_name = "Google AI"
    framing = Framing.SSE
    native_web_search = True
    length_reasons = frozenset({"MAX_TOKENS"})

    def build_request(
        self,
        history: Sequence[Message],
        settings: ChatSettings,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> ProviderRequest:
        api_key = self.require_api_key(settings)

        system_texts = [
            message.content
            for message in history
            if message.role is Role.SYSTEM and message.content
        ]
        if not system_texts and settings.system_prompt:
            system_texts = [settings.system_prompt]

        contents: list[dict[str, Any]] = []
        for message in history:
            if message.role is Role.SYSTEM:
                continue
            contents.extend(self._render(message))

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            },
        }
        if system_texts:
            body["systemInstruction"] = {
                "parts": [{"text": text} for text in system_texts]
            }
        # Search runs through Google's own grounding tool; function tools are never sent.
        if settings.web_search_enabled:
            body["tools"] = [{"google_search": {}}]

        model = normalize_model_id(settings.model)
        return ProviderRequest(
            url=f"{settings.base_url}/models/{model}:streamGenerateContent",
            model=model,
            json=body,
            headers={"Content-Type": "application/json"},
            params={"alt": "sse", "key": api_key},
        )

    def new_parser(self) -> GoogleFrameParser:
        return GoogleFrameParser()

    def models_request(self, settings: ChatSettings) -> ProviderRequest:
        api_key = self.require_api_key(settings)
        return ProviderRequest(
            url=f"{settings.base_url}/models",
            params={"key": api_key},
            method="GET",
        )

    def parse_models(self, payload: Any) -> list[str]:
        models = payload.get("models") if isinstance(payload, dict) else None
        names: list[str] = []
        for entry in models or []:
            if not isinstance(entry, dict):
                continue
            methods = entry.get("supportedGenerationMethods")
            if isinstance(methods, list) and "generateContent" not in methods:
                continue
            name = entry.get("name")
            if isinstance(name, str) and name:
                names.append(normalize_model_id(name))
        return sorted(names)

    @staticmethod
    def _render(message: Message) -> list[dict[str, Any]]:
        if message.role is Role.TOOL and message.tool_call is not None:
            call = message.tool_call
            return [
                {
                    "role": "model",
                    "parts": [
                        {
                            "functionCall": {
                                "name": call.name,
                                "args": decode_arguments(call.arguments_json),
                            }
                        }
                    ],
                },
                {
                    "role": "user",
                    "parts": [
                        {
                            "functionResponse": {
                                "name": call.name,
                                "response": {"content": message.content},
                            }
                        }
                    ],
                },
            ]

        parts: list[dict[str, Any]] = []
        if message.content:
            parts.append({"text": message.content})
        for image in message.attachments:
            parts.append(
                {"inline_data": {"mime_type": image.mime_type, "data": image.base64()}}
            )
        role = "model" if message.role is Role.ASSISTANT else "user"
        return [{"role": role, "parts": parts}] if parts else []


__all__ = ["GoogleAdapter", "GoogleFrameParser", "normalize_model_id"]
