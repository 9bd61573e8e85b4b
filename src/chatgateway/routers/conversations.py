"""Conversation API routes, including the live SSE feed."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sse_starlette.sse import EventSourceResponse

from ..chat.orchestrator import StreamOrchestrator
from ..chat.registry import ConversationRegistry
from ..errors import (
    ChatGatewayError,
    ConversationBusyError,
    ConversationNotFoundError,
    EmptyMessageError,
    ResendNotAllowedError,
)
from ..schemas.chat import (
    ConversationSnapshot,
    ConversationSummary,
    SubmitMessageRequest,
    SubmitMessageResponse,
)

router = APIRouter(prefix="/api/conversations", tags=["conversations"])

_STATUS_BY_ERROR: dict[type[ChatGatewayError], int] = {
    ConversationNotFoundError: status.HTTP_404_NOT_FOUND,
    ConversationBusyError: status.HTTP_409_CONFLICT,
    ResendNotAllowedError: status.HTTP_409_CONFLICT,
    EmptyMessageError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def get_conversation_registry(request: Request) -> ConversationRegistry:
    registry = getattr(request.app.state, "conversation_registry", None)
    if registry is None:  # pragma: no cover - defensive
        raise RuntimeError("Conversation registry is not configured")
    return registry


def _http_error(exc: ChatGatewayError) -> HTTPException:
    status_code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=exc.message)


def _lookup(registry: ConversationRegistry, conversation_id: str) -> StreamOrchestrator:
    try:
        return registry.get(conversation_id)
    except ConversationNotFoundError as exc:
        raise _http_error(exc) from exc


@router.get("", response_model=list[ConversationSummary])
async def list_conversations(
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> list[dict[str, Any]]:
    return registry.list()


@router.post("", response_model=ConversationSnapshot, status_code=201)
async def create_conversation(
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> dict[str, Any]:
    return registry.create().snapshot()


@router.get("/{conversation_id}", response_model=ConversationSnapshot)
async def read_conversation(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> dict[str, Any]:
    return _lookup(registry, conversation_id).snapshot()


@router.delete("/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> Response:
    try:
        await registry.delete(conversation_id)
    except ConversationNotFoundError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=204)


@router.post(
    "/{conversation_id}/messages",
    response_model=SubmitMessageResponse,
    status_code=202,
)
async def submit_message(
    conversation_id: str,
    payload: SubmitMessageRequest,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> SubmitMessageResponse:
    """Append a user message and start streaming the assistant reply."""

    orchestrator = _lookup(registry, conversation_id)
    try:
        message_id = await orchestrator.submit(payload.text, payload.attachments())
    except ChatGatewayError as exc:
        raise _http_error(exc) from exc
    return SubmitMessageResponse(conversation_id=conversation_id, message_id=message_id)


@router.post("/{conversation_id}/messages/{message_id}/resend", status_code=202)
async def resend_message(
    conversation_id: str,
    message_id: str,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> SubmitMessageResponse:
    orchestrator = _lookup(registry, conversation_id)
    try:
        await orchestrator.resend(message_id)
    except ChatGatewayError as exc:
        raise _http_error(exc) from exc
    return SubmitMessageResponse(conversation_id=conversation_id, message_id=message_id)


@router.post("/{conversation_id}/cancel", response_model=ConversationSnapshot)
async def cancel_stream(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> dict[str, Any]:
    orchestrator = _lookup(registry, conversation_id)
    await orchestrator.cancel()
    return orchestrator.snapshot()


@router.get("/{conversation_id}/events", response_model=None)
async def stream_conversation_events(
    conversation_id: str,
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> EventSourceResponse:
    """Push a snapshot now and after every change until the client leaves."""

    orchestrator = _lookup(registry, conversation_id)
    queue: asyncio.Queue[tuple[str, dict[str, Any]]] = asyncio.Queue()

    def _enqueue(event: str, snapshot: dict[str, Any]) -> None:
        queue.put_nowait((event, snapshot))

    async def event_publisher():
        unsubscribe = orchestrator.subscribe(_enqueue)
        try:
            yield {"event": "snapshot", "data": json.dumps(orchestrator.snapshot())}
            while True:
                event, snapshot = await queue.get()
                yield {"event": event, "data": json.dumps(snapshot)}
        finally:
            unsubscribe()

    return EventSourceResponse(event_publisher())


__all__ = ["get_conversation_registry", "router"]
