"""Chat streaming package."""

from .decoder import FrameDecoder, Framing, aiter_events
from .types import (
    CancellationToken,
    Complete,
    CompleteReason,
    Error,
    Reasoning,
    Source,
    Sources,
    StreamEvent,
    Token,
    ToolCall,
    ToolExecutor,
    ToolResult,
)

__all__ = [
    "CancellationToken",
    "Complete",
    "CompleteReason",
    "Error",
    "FrameDecoder",
    "Framing",
    "Reasoning",
    "Source",
    "Sources",
    "StreamEvent",
    "Token",
    "ToolCall",
    "ToolExecutor",
    "ToolResult",
    "aiter_events",
]
