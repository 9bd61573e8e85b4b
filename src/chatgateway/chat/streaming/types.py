"""Type definitions for the chat streaming subsystem."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Union


class CompleteReason(str, enum.Enum):
    NORMAL = "normal"
    LENGTH_LIMIT = "length_limit"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Source:
    """A grounding citation attached to an assistant reply."""

    title: str
    url: str
    preview_text: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"title": self.title, "url": self.url}
        if self.preview_text is not None:
            payload["preview_text"] = self.preview_text
        return payload


@dataclass(frozen=True)
class Token:
    text: str


@dataclass(frozen=True)
class Reasoning:
    text: str


@dataclass(frozen=True)
class Sources:
    items: tuple[Source, ...]


@dataclass(frozen=True)
class ToolCall:
    name: str
    arguments_json: str
    call_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.call_id,
            "name": self.name,
            "arguments": self.arguments_json,
        }


@dataclass(frozen=True)
class Complete:
    reason: CompleteReason = CompleteReason.NORMAL
    raw_reason: str | None = None

    @property
    def explicit_stop(self) -> bool:
        """True when the provider signalled an ordinary end of turn."""

        return self.reason is CompleteReason.NORMAL and self.raw_reason is not None


@dataclass(frozen=True)
class Error:
    message: str


StreamEvent = Union[Token, Reasoning, Sources, ToolCall, Complete, Error]


class CancellationToken:
    """Cooperative cancellation flag checked by the decode loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class SourceCollector:
    """Accumulate sources in arrival order, keeping the first title per URL."""

    items: list[Source] = field(default_factory=list)
    _seen: set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        initial, self.items = self.items, []
        self.extend(initial)

    def extend(self, sources: Iterable[Source]) -> list[Source]:
        added: list[Source] = []
        for source in sources:
            key = source.url.strip()
            if not key or key in self._seen:
                continue
            self._seen.add(key)
            self.items.append(source)
            added.append(source)
        return added


class ToolExecutor(Protocol):
    async def call_tool(self, call: ToolCall) -> "ToolResult":
        ...

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        ...


@dataclass(frozen=True)
class ToolResult:
    content: str
    sources: tuple[Source, ...] = ()


__all__ = [
    "CancellationToken",
    "Complete",
    "CompleteReason",
    "Error",
    "Reasoning",
    "Source",
    "SourceCollector",
    "Sources",
    "StreamEvent",
    "Token",
    "ToolCall",
    "ToolExecutor",
    "ToolResult",
]
