"""Exception hierarchy shared by the provider clients and the orchestrator."""

from __future__ import annotations

from typing import Any


class ChatGatewayError(Exception):
    """Base class for every error surfaced by the chat pipeline."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(ChatGatewayError):
    """A required credential or endpoint is missing."""


class TransportError(ChatGatewayError):
    """Wrap network failures and non-2xx responses from a provider."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(_describe(detail))
        self.status_code = status_code
        self.detail = detail


class DecodingError(ChatGatewayError):
    """A frame could not be parsed. Never terminal for the stream."""


class ProviderReportedError(ChatGatewayError):
    """The provider embedded an explicit error object in the stream."""


class ToolExecutionError(ChatGatewayError):
    """A tool requested by the model failed to run."""


class ConversationBusyError(ChatGatewayError):
    """A stream is already in flight for the conversation."""


class EmptyMessageError(ChatGatewayError):
    """Submitted text was blank and carried no images."""


class ResendNotAllowedError(ChatGatewayError):
    """The message is not a resendable user message."""


class ConversationNotFoundError(ChatGatewayError):
    """No conversation is registered under the requested id."""


def _describe(detail: Any) -> str:
    if isinstance(detail, dict):
        message = detail.get("message")
        if isinstance(message, str) and message:
            return message
    if detail is None:
        return "Unknown error"
    return str(detail)


__all__ = [
    "ChatGatewayError",
    "ConfigurationError",
    "ConversationBusyError",
    "ConversationNotFoundError",
    "DecodingError",
    "EmptyMessageError",
    "ProviderReportedError",
    "ResendNotAllowedError",
    "ToolExecutionError",
    "TransportError",
]
