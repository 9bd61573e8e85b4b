"""Provider adapter interface shared by Ollama, Groq and Google."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Sequence

from ..chat.store import Message, Role
from ..chat.streaming.decoder import Framing
from ..chat.streaming.types import (
    CompleteReason,
    Error,
    Reasoning,
    Source,
    SourceCollector,
    Sources,
    StreamEvent,
)
from ..errors import ConfigurationError, DecodingError
from ..schemas.preferences import ChatSettings

logger = logging.getLogger(__name__)


@dataclass
class ProviderRequest:
    """Everything needed to issue one HTTP request to a provider."""

    url: str
    json: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    method: str = "POST"
    model: str | None = None


class FrameParser(ABC):
    """Stateful per-stream translation of provider frames into events."""

    def __init__(self) -> None:
        self._sources = SourceCollector()

    def parse(self, frame: str) -> list[StreamEvent]:
        try:
            payload = json.loads(frame)
        except json.JSONDecodeError as exc:
            logger.debug("Skipping undecodable frame (%s): %.200s", exc.msg, frame)
            return []
        if not isinstance(payload, dict):
            logger.debug("Skipping non-object frame: %.200s", frame)
            return []

        error = self.extract_error(payload)
        if error is not None:
            return [Error(error)]

        try:
            return self.parse_payload(payload)
        except DecodingError as exc:
            logger.debug("Skipping malformed frame: %s", exc.message)
            return []

    @abstractmethod
    def parse_payload(self, payload: dict[str, Any]) -> list[StreamEvent]:
        ...

    def extract_error(self, payload: dict[str, Any]) -> str | None:
        error = payload.get("error")
        if error is None or error is False:
            return None
        if isinstance(error, str):
            return error or "Unknown provider error"
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
            return json.dumps(error)
        return str(error)

    def _sources_event(self, sources: Iterable[Source]) -> Sources | None:
        added = self._sources.extend(sources)
        if not added:
            return None
        return Sources(tuple(added))

    @staticmethod
    def _reasoning_event(text: str | None) -> Reasoning | None:
        if isinstance(text, str) and text.strip():
            return Reasoning(text.strip())
        return None


class ProviderAdapter(ABC):
    """Build provider requests and create parsers for their responses."""

    name: ClassVar[str]
    display_name: ClassVar[str]
    framing: ClassVar[Framing]
    # Providers that search the web server-side never need the client tool.
    native_web_search: ClassVar[bool] = False
    length_reasons: ClassVar[frozenset[str]] = frozenset({"length"})

    @abstractmethod
    def build_request(
        self,
        history: Sequence[Message],
        settings: ChatSettings,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> ProviderRequest:
        ...

    @abstractmethod
    def new_parser(self) -> FrameParser:
        ...

    @abstractmethod
    def models_request(self, settings: ChatSettings) -> ProviderRequest:
        ...

    @abstractmethod
    def parse_models(self, payload: Any) -> list[str]:
        ...

    def require_api_key(self, settings: ChatSettings) -> str:
        if not settings.api_key:
            raise ConfigurationError(f"{self.display_name} API key not configured")
        return settings.api_key

    @classmethod
    def map_finish_reason(cls, raw: str | None) -> CompleteReason:
        if raw is not None and raw in cls.length_reasons:
            return CompleteReason.LENGTH_LIMIT
        return CompleteReason.NORMAL


def with_system_prompt(
    history: Sequence[Message], system_prompt: str | None
) -> list[Message]:
    """Prepend the system prompt unless the history already opens with one."""

    messages = list(history)
    if not system_prompt:
        return messages
    if messages and messages[0].role is Role.SYSTEM:
        return messages
    return [Message(role=Role.SYSTEM, content=system_prompt, hidden=True), *messages]


__all__ = [
    "FrameParser",
    "ProviderAdapter",
    "ProviderRequest",
    "with_system_prompt",
]
