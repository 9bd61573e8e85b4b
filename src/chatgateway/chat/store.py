"""In-memory conversation state mutated by the stream orchestrator."""

from __future__ import annotations

import base64
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from .streaming.types import Source, SourceCollector, ToolCall

_TITLE_LIMIT = 50


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class StreamState(str, enum.Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    AWAITING_TOOL_RESULT = "awaiting_tool_result"
    ERROR = "error"


@dataclass(frozen=True)
class ImageAttachment:
    data: bytes
    mime_type: str = "image/jpeg"

    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64()}"


def _new_id() -> str:
    return uuid.uuid4().hex


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    role: Role
    content: str = ""
    attachments: tuple[ImageAttachment, ...] = ()
    reasoning: str | None = None
    sources: list[Source] = field(default_factory=list)
    resendable: bool = False
    tool_call: ToolCall | None = None
    hidden: bool = False
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "attachments": len(self.attachments),
            "reasoning": self.reasoning,
            "sources": [source.to_dict() for source in self.sources],
            "resendable": self.resendable,
            "created_at": self.created_at,
        }
        if self.tool_call is not None:
            payload["tool_call"] = self.tool_call.to_dict()
        return payload


class ConversationStore:
    """Ordered, id-keyed message list.

    Every mutation is synchronous and assumes a single writer (the
    orchestrator task that owns the conversation).
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def index_of(self, message_id: str) -> int | None:
        for index, message in enumerate(self._messages):
            if message.id == message_id:
                return index
        return None

    def last_message(self, role: Role | None = None) -> Message | None:
        for message in reversed(self._messages):
            if role is None or message.role is role:
                return message
        return None

    def append_user_message(
        self, text: str, attachments: Sequence[ImageAttachment] = ()
    ) -> str:
        message = Message(role=Role.USER, content=text, attachments=tuple(attachments))
        self._messages.append(message)
        return message.id

    def append_placeholder_assistant(self) -> str:
        message = Message(role=Role.ASSISTANT)
        self._messages.append(message)
        return message.id

    def append_tool_message(
        self,
        call: ToolCall,
        result_text: str,
        *,
        before: str | None = None,
    ) -> str:
        """Insert a hidden tool result, ahead of ``before`` when it exists."""

        message = Message(
            role=Role.TOOL,
            content=result_text,
            tool_call=call,
            hidden=True,
        )
        index = self.index_of(before) if before is not None else None
        if index is None:
            self._messages.append(message)
        else:
            self._messages.insert(index, message)
        return message.id

    def apply_token(self, message_id: str, text: str) -> None:
        message = self.get(message_id)
        if message is None or message.role is not Role.ASSISTANT:
            return
        message.content += text

    def attach_sources(self, message_id: str, sources: Sequence[Source]) -> None:
        message = self.get(message_id)
        if message is None or message.sources or not sources:
            return
        message.sources = list(SourceCollector(list(sources)).items)

    def attach_reasoning(self, message_id: str, text: str) -> None:
        message = self.get(message_id)
        if message is None or message.reasoning or not text:
            return
        message.reasoning = text

    def mark_resendable(self, message_id: str, flag: bool) -> None:
        message = self.get(message_id)
        if message is not None:
            message.resendable = flag

    def clear_resendable(self) -> None:
        for message in self._messages:
            message.resendable = False

    def remove_message(self, message_id: str) -> None:
        index = self.index_of(message_id)
        if index is not None:
            del self._messages[index]

    def truncate_after(self, message_id: str) -> None:
        index = self.index_of(message_id)
        if index is not None:
            del self._messages[index + 1 :]

    def has_visible_messages(self) -> bool:
        return any(
            not message.hidden and (message.role is Role.USER or message.content)
            for message in self._messages
        )

    def snapshot(self, *, include_hidden: bool = False) -> list[dict[str, Any]]:
        return [
            message.to_dict()
            for message in self._messages
            if include_hidden or not message.hidden
        ]


@dataclass
class Conversation:
    """A chat plus the bookkeeping the orchestrator needs while streaming."""

    active_model: str | None = None
    store: ConversationStore = field(default_factory=ConversationStore)
    stream_state: StreamState = StreamState.IDLE
    error_message: str | None = None
    pending_sources: SourceCollector = field(default_factory=SourceCollector)
    pending_reasoning: str | None = None
    id: str = field(default_factory=_new_id)
    created_at: str = field(default_factory=_utc_now)

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.store.messages

    @property
    def title(self) -> str:
        first_user = next(
            (message for message in self.store.messages if message.role is Role.USER),
            None,
        )
        if first_user is None or not first_user.content:
            return "New Chat"
        content = first_user.content
        if len(content) > _TITLE_LIMIT:
            return content[:_TITLE_LIMIT] + "..."
        return content

    def reset_pending(self) -> None:
        self.pending_sources = SourceCollector()
        self.pending_reasoning = None

    def snapshot(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "active_model": self.active_model,
            "stream_state": self.stream_state.value,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "messages": self.store.snapshot(),
        }


__all__ = [
    "Conversation",
    "ConversationStore",
    "ImageAttachment",
    "Message",
    "Role",
    "StreamState",
]
