"""In-memory registry mapping conversation ids to their orchestrators."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..errors import ConversationNotFoundError
from .orchestrator import DEFAULT_TOOL_HOP_LIMIT, StreamOrchestrator
from .store import Conversation

if TYPE_CHECKING:
    from ..client import ProviderClient
    from ..config import Settings
    from ..services.preferences import PreferencesStore
    from .streaming.types import ToolExecutor

logger = logging.getLogger(__name__)

# Empty conversations younger than this are someone's fresh handle.
DEFAULT_EMPTY_TTL_SECONDS = 15 * 60


class ConversationRegistry:
    """Create, look up and discard conversations for the HTTP layer."""

    def __init__(
        self,
        client: ProviderClient,
        preferences: PreferencesStore,
        config: Settings,
        *,
        tool_executor: Optional[ToolExecutor] = None,
        tool_hop_limit: int = DEFAULT_TOOL_HOP_LIMIT,
        empty_ttl: float = DEFAULT_EMPTY_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self._preferences = preferences
        self._config = config
        self._tool_executor = tool_executor
        self._tool_hop_limit = tool_hop_limit
        self._empty_ttl = empty_ttl
        self._clock = clock
        self._orchestrators: dict[str, StreamOrchestrator] = {}
        self._touched: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._orchestrators)

    def create(self) -> StreamOrchestrator:
        """Start a new chat, discarding chats left empty past the grace period."""

        self.prune()
        orchestrator = StreamOrchestrator(
            Conversation(),
            self._client,
            self._preferences,
            self._config,
            tool_executor=self._tool_executor,
            tool_hop_limit=self._tool_hop_limit,
        )
        conversation_id = orchestrator.conversation.id
        self._orchestrators[conversation_id] = orchestrator
        self._touched[conversation_id] = self._clock()
        logger.info("Created conversation %s", conversation_id)
        return orchestrator

    def get(self, conversation_id: str) -> StreamOrchestrator:
        try:
            orchestrator = self._orchestrators[conversation_id]
        except KeyError as exc:
            raise ConversationNotFoundError(
                f"Conversation {conversation_id} not found"
            ) from exc
        self._touched[conversation_id] = self._clock()
        return orchestrator

    def list(self) -> list[dict[str, Any]]:
        """Summaries of conversations with visible messages, newest first."""

        summaries = [
            {
                "id": orchestrator.conversation.id,
                "title": orchestrator.conversation.title,
                "created_at": orchestrator.conversation.created_at,
                "stream_state": orchestrator.conversation.stream_state.value,
                "message_count": len(orchestrator.conversation.store.snapshot()),
            }
            for orchestrator in self._orchestrators.values()
            if orchestrator.conversation.store.has_visible_messages()
        ]
        summaries.sort(key=lambda summary: summary["created_at"], reverse=True)
        return summaries

    async def delete(self, conversation_id: str) -> None:
        orchestrator = self.get(conversation_id)
        await orchestrator.cancel()
        self._forget(conversation_id)
        logger.info("Deleted conversation %s", conversation_id)

    def prune(self) -> int:
        """Drop idle conversations that stayed without visible messages too long."""

        cutoff = self._clock() - self._empty_ttl
        stale = [
            conversation_id
            for conversation_id, orchestrator in self._orchestrators.items()
            if not orchestrator.is_busy
            and not orchestrator.conversation.store.has_visible_messages()
            and self._touched.get(conversation_id, 0.0) <= cutoff
        ]
        for conversation_id in stale:
            self._forget(conversation_id)
        if stale:
            logger.debug("Discarded %d empty conversation(s)", len(stale))
        return len(stale)

    async def shutdown(self) -> None:
        for orchestrator in list(self._orchestrators.values()):
            await orchestrator.cancel()
        self._orchestrators.clear()
        self._touched.clear()

    def _forget(self, conversation_id: str) -> None:
        self._orchestrators.pop(conversation_id, None)
        self._touched.pop(conversation_id, None)


__all__ = ["ConversationRegistry", "DEFAULT_EMPTY_TTL_SECONDS"]
