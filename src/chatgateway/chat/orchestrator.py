"""Drive one conversation through request, streaming, tools and continuation."""

from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Sequence

from ..errors import (
    ChatGatewayError,
    ConversationBusyError,
    EmptyMessageError,
    ProviderReportedError,
    ResendNotAllowedError,
    ToolExecutionError,
)
from ..providers import ADAPTERS, get_adapter
from .continuation import CONTINUE_PROMPT, MAX_AUTO_CONTINUATIONS, looks_truncated
from .store import Conversation, ImageAttachment, Message, Role, StreamState
from .streaming.types import (
    CancellationToken,
    Complete,
    CompleteReason,
    Error,
    Reasoning,
    Sources,
    Token,
    ToolCall,
    ToolExecutor,
)

if TYPE_CHECKING:
    from ..client import ProviderClient
    from ..config import Settings
    from ..providers.base import ProviderAdapter, ProviderRequest
    from ..schemas.preferences import ChatSettings
    from ..services.preferences import PreferencesStore

logger = logging.getLogger(__name__)

Listener = Callable[[str, dict[str, Any]], None]

DEFAULT_TOOL_HOP_LIMIT = 4


class Phase(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    TOOL_EXECUTING = "tool_executing"
    COMPLETING = "completing"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass
class _StreamOutcome:
    complete: Complete | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    error: str | None = None
    cancelled: bool = False


class StreamOrchestrator:
    """Own the single in-flight exchange of a conversation.

    Each submit or resend starts one background task. Events from the
    provider are applied to the store in frame order; listeners registered
    with :meth:`subscribe` are notified after every state change.
    """

    def __init__(
        self,
        conversation: Conversation,
        client: ProviderClient,
        preferences: PreferencesStore,
        config: Settings,
        *,
        adapter: Optional[ProviderAdapter] = None,
        adapters: Optional[Mapping[str, ProviderAdapter]] = None,
        tool_executor: Optional[ToolExecutor] = None,
        tool_hop_limit: int = DEFAULT_TOOL_HOP_LIMIT,
    ):
        self._conversation = conversation
        self._client = client
        self._preferences = preferences
        self._config = config
        self._adapter = adapter
        self._adapters = adapters if adapters is not None else ADAPTERS
        self._tool_executor = tool_executor
        self._tool_hop_limit = tool_hop_limit

        self._phase = Phase.IDLE
        self._task: asyncio.Task[None] | None = None
        self._cancel_token: CancellationToken | None = None
        self._continuations = 0
        self._user_message_id: str | None = None
        self._assistant_message_id: str | None = None
        self._turn_closed = True
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def continuation_count(self) -> int:
        return self._continuations

    @property
    def is_busy(self) -> bool:
        return self._task is not None and not self._task.done()

    async def submit(
        self, text: str, images: Sequence[ImageAttachment] = ()
    ) -> str:
        """Append a user message and start streaming the reply."""

        text = text.strip()
        if not text and not images:
            raise EmptyMessageError("Message must contain text or an image")
        self._ensure_idle()

        store = self._conversation.store
        store.clear_resendable()
        user_id = store.append_user_message(text, images)
        self._start_turn(user_id)
        return user_id

    async def resend(self, message_id: str) -> None:
        """Retry a failed or cancelled user message in place."""

        self._ensure_idle()
        store = self._conversation.store
        message = store.get(message_id)
        if message is None or message.role is not Role.USER or not message.resendable:
            raise ResendNotAllowedError(f"Message {message_id} cannot be resent")

        store.mark_resendable(message_id, False)
        store.truncate_after(message_id)
        logger.info("Resending message %s in %s", message_id, self._conversation.id)
        self._start_turn(message_id)

    async def cancel(self) -> None:
        task = self._task
        if task is None or task.done():
            return
        if self._cancel_token is not None:
            self._cancel_token.cancel()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        # A task cancelled before its first step never runs its cleanup.
        self._finish_cancelled()

    async def wait(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> dict[str, Any]:
        payload = self._conversation.snapshot()
        payload["phase"] = self._phase.value
        payload["continuations"] = self._continuations
        return payload

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------
    def _ensure_idle(self) -> None:
        if self.is_busy:
            raise ConversationBusyError(
                f"Conversation {self._conversation.id} is already streaming"
            )

    def _start_turn(self, user_message_id: str) -> None:
        conversation = self._conversation
        conversation.error_message = None
        conversation.stream_state = StreamState.STREAMING
        conversation.reset_pending()

        self._continuations = 0
        self._user_message_id = user_message_id
        self._assistant_message_id = conversation.store.append_placeholder_assistant()
        self._cancel_token = CancellationToken()
        self._turn_closed = False
        self._set_phase(Phase.SENDING)
        self._task = asyncio.create_task(
            self._run_turn(self._cancel_token),
            name=f"chat-stream-{conversation.id}",
        )

    async def _run_turn(self, token: CancellationToken) -> None:
        try:
            await self._drive(token)
        except asyncio.CancelledError:
            self._finish_cancelled()
            raise
        except ChatGatewayError as exc:
            self._fail(exc.message)
        except Exception as exc:  # pragma: no cover - unexpected failure
            logger.exception("Unexpected failure while streaming")
            self._fail(str(exc) or exc.__class__.__name__)

    async def _drive(self, token: CancellationToken) -> None:
        tool_hops = 0
        extra: list[Message] = []

        while True:
            settings = self._preferences.snapshot(self._config)
            adapter = self._resolve_adapter(settings)
            request = adapter.build_request(
                self._history(extra),
                settings,
                tools=self._tool_definitions(adapter, settings),
            )
            self._conversation.active_model = request.model or settings.model
            self._set_phase(Phase.SENDING)
            logger.info(
                "Requesting %s/%s for %s",
                adapter.name,
                self._conversation.active_model,
                self._conversation.id,
            )

            outcome = await self._consume(adapter, request, token)
            if outcome.cancelled:
                self._finish_cancelled()
                return
            if outcome.error is not None:
                raise ProviderReportedError(outcome.error)

            if outcome.tool_calls:
                tool_hops += 1
                if tool_hops > self._tool_hop_limit:
                    raise ToolExecutionError(
                        f"Exceeded the limit of {self._tool_hop_limit} tool round trips"
                    )
                await self._execute_tools(outcome.tool_calls)
                continue

            self._set_phase(Phase.COMPLETING)
            if self._should_continue(outcome.complete):
                self._continuations += 1
                logger.info(
                    "Reply looks truncated; continuing (%d/%d)",
                    self._continuations,
                    MAX_AUTO_CONTINUATIONS,
                )
                extra = [Message(role=Role.USER, content=CONTINUE_PROMPT, hidden=True)]
                continue

            self._finish_success()
            return

    async def _consume(
        self,
        adapter: ProviderAdapter,
        request: ProviderRequest,
        token: CancellationToken,
    ) -> _StreamOutcome:
        outcome = _StreamOutcome()
        store = self._conversation.store
        assistant_id = self._assistant_message_id
        events = self._client.stream_events(adapter, request, adapter.new_parser(), token)

        async with aclosing(events):
            async for event in events:
                if self._phase is Phase.SENDING:
                    self._set_phase(Phase.STREAMING)

                if isinstance(event, Token):
                    if assistant_id is not None:
                        store.apply_token(assistant_id, event.text)
                    self._notify("token")
                elif isinstance(event, Reasoning):
                    self._apply_reasoning(event.text)
                elif isinstance(event, Sources):
                    self._conversation.pending_sources.extend(event.items)
                elif isinstance(event, ToolCall):
                    logger.debug("Tool call requested: %s", event.name)
                    outcome.tool_calls.append(event)
                elif isinstance(event, Error):
                    outcome.error = event.message
                    break
                elif isinstance(event, Complete):
                    if event.reason is CompleteReason.CANCELLED:
                        outcome.cancelled = True
                    else:
                        outcome.complete = event
                    break

        if token.cancelled:
            outcome.cancelled = True
        return outcome

    def _apply_reasoning(self, text: str) -> None:
        assistant = self._assistant_message()
        if assistant is None:
            if self._conversation.pending_reasoning is None:
                self._conversation.pending_reasoning = text
            return
        # First reasoning-bearing frame wins.
        if assistant.reasoning is None:
            self._conversation.store.attach_reasoning(assistant.id, text)
            self._notify("reasoning")

    async def _execute_tools(self, calls: Sequence[ToolCall]) -> None:
        conversation = self._conversation
        if self._tool_executor is None:
            raise ToolExecutionError(
                f"No tool executor available for '{calls[0].name}'"
            )

        self._set_phase(Phase.TOOL_EXECUTING)
        conversation.stream_state = StreamState.AWAITING_TOOL_RESULT
        self._notify("tool_call")
        for call in calls:
            result = await self._tool_executor.call_tool(call)
            conversation.store.append_tool_message(
                call, result.content, before=self._assistant_message_id
            )
            conversation.pending_sources.extend(result.sources)
        conversation.stream_state = StreamState.STREAMING

    def _should_continue(self, complete: Complete | None) -> bool:
        if self._continuations >= MAX_AUTO_CONTINUATIONS:
            return False
        assistant = self._assistant_message()
        if assistant is None or not assistant.content:
            return False
        if complete is not None and complete.reason is CompleteReason.LENGTH_LIMIT:
            return True
        explicit_stop = complete is not None and complete.explicit_stop
        return looks_truncated(assistant.content, explicit_stop=explicit_stop)

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------
    def _finish_success(self) -> None:
        self._flush_pending()
        self._conversation.stream_state = StreamState.IDLE
        self._close_turn("complete")
        logger.info("Stream complete for %s", self._conversation.id)

    def _finish_cancelled(self) -> None:
        if self._turn_closed:
            return
        self._set_phase(Phase.CANCELLED)
        assistant = self._assistant_message()
        if assistant is not None:
            if assistant.content:
                self._flush_pending()
            else:
                self._conversation.store.remove_message(assistant.id)
        if self._user_message_id is not None:
            self._conversation.store.mark_resendable(self._user_message_id, True)
        self._conversation.stream_state = StreamState.IDLE
        self._close_turn("cancelled")
        logger.info("Stream cancelled for %s", self._conversation.id)

    def _fail(self, message: str) -> None:
        if self._turn_closed:
            return
        self._set_phase(Phase.ERRORED)
        assistant = self._assistant_message()
        if assistant is not None and not assistant.content:
            self._conversation.store.remove_message(assistant.id)
        if self._user_message_id is not None:
            self._conversation.store.mark_resendable(self._user_message_id, True)
        self._conversation.stream_state = StreamState.ERROR
        self._conversation.error_message = message
        self._close_turn("error")
        logger.warning("Stream failed for %s: %s", self._conversation.id, message)

    def _close_turn(self, event: str) -> None:
        self._turn_closed = True
        self._phase = Phase.IDLE
        self._notify(event)

    def _flush_pending(self) -> None:
        conversation = self._conversation
        assistant_id = self._assistant_message_id
        if assistant_id is None:
            return
        if conversation.pending_sources.items:
            conversation.store.attach_sources(
                assistant_id, conversation.pending_sources.items
            )
        if conversation.pending_reasoning:
            conversation.store.attach_reasoning(
                assistant_id, conversation.pending_reasoning
            )
        conversation.reset_pending()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _assistant_message(self) -> Message | None:
        if self._assistant_message_id is None:
            return None
        return self._conversation.store.get(self._assistant_message_id)

    def _resolve_adapter(self, settings: ChatSettings) -> ProviderAdapter:
        if self._adapter is not None:
            return self._adapter
        if settings.provider in self._adapters:
            return self._adapters[settings.provider]
        return get_adapter(settings.provider)

    def _tool_definitions(
        self, adapter: ProviderAdapter, settings: ChatSettings
    ) -> list[dict[str, Any]] | None:
        if (
            self._tool_executor is None
            or not settings.web_search_enabled
            or adapter.native_web_search
        ):
            return None
        return self._tool_executor.get_tool_definitions()

    def _history(self, extra: Sequence[Message]) -> list[Message]:
        """Messages sent upstream: everything except empty assistant turns."""

        history = [
            message
            for message in self._conversation.store.messages
            if not (message.role is Role.ASSISTANT and not message.content)
        ]
        history.extend(extra)
        return history

    def _set_phase(self, phase: Phase) -> None:
        if phase is self._phase:
            return
        logger.debug("Phase %s -> %s", self._phase.value, phase.value)
        self._phase = phase
        self._notify("phase")

    def _notify(self, event: str) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(event, snapshot)
            except Exception:  # pragma: no cover - listener bug
                logger.exception("Conversation listener failed on %s", event)


__all__ = ["DEFAULT_TOOL_HOP_LIMIT", "Phase", "StreamOrchestrator"]
