"""Application factory for the FastAPI service."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .chat.registry import ConversationRegistry
from .chat.tools import WebSearchToolExecutor
from .client import ProviderClient
from .config import PROJECT_ROOT, get_settings
from .logging_settings import apply_stream_levels, parse_logging_settings
from .routers.conversations import router as conversations_router
from .routers.models import router as models_router
from .routers.preferences import router as preferences_router
from .services.preferences import PreferencesStore

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SERVER_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error")
_HTTP_LOGGERS = ("httpx", "httpcore", "hpack")


def _file_handler(path: Path, retention_hours: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    if retention_hours <= 0:
        return logging.FileHandler(path, encoding="utf-8")
    # One file per hour, kept for the configured number of hours.
    return TimedRotatingFileHandler(
        path, when="h", backupCount=retention_hours, encoding="utf-8"
    )


def _configure_logging(logging_settings_path: Path | None = None) -> None:
    """Configure logging from LOG_LEVEL/LOG_FILE and the settings file."""
    load_dotenv()
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    file_settings = parse_logging_settings(
        logging_settings_path or PROJECT_ROOT / "logging_settings.conf"
    )
    handlers: list[logging.Handler] = []
    if log_file := os.getenv("LOG_FILE"):
        handlers.append(_file_handler(Path(log_file), file_settings.retention_hours))
    if file_settings.terminal_level is not None:
        console = logging.StreamHandler()
        console.setLevel(file_settings.terminal_level)
        handlers.append(console)

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=handlers or [logging.NullHandler()],
        force=True,
    )
    logging.getLogger("chatgateway").setLevel(level)
    apply_stream_levels(file_settings)

    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(level)
    if level > logging.DEBUG:
        for name in _HTTP_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _resolve_under(base: Path, path: Path) -> Path:
    """Resolve *path* against *base*, refusing relative paths that escape it."""
    if path.is_absolute():
        return path.resolve()
    resolved = (base / path).resolve()
    if not resolved.is_relative_to(base):
        raise ValueError(f"Configured path {resolved} escapes project root {base}")
    return resolved


def create_app() -> FastAPI:
    settings = get_settings()
    _configure_logging(_resolve_under(PROJECT_ROOT, settings.logging_settings_path))

    preferences_store = PreferencesStore(
        _resolve_under(PROJECT_ROOT, settings.preferences_path)
    )
    provider_client = ProviderClient(settings)
    registry = ConversationRegistry(
        provider_client,
        preferences_store,
        settings,
        tool_executor=WebSearchToolExecutor(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            try:
                await asyncio.wait_for(registry.shutdown(), timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning("Conversation shutdown timed out after 10s")
            await provider_client.aclose()

    app = FastAPI(
        title="Chat Gateway",
        version="0.1.0",
        description="Streaming chat gateway for Ollama, Groq and Google AI.",
        lifespan=lifespan,
    )

    app.state.preferences_store = preferences_store
    app.state.provider_client = provider_client
    app.state.conversation_registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(conversations_router)
    app.include_router(models_router)
    app.include_router(preferences_router)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, str | None]:
        snapshot = preferences_store.snapshot(settings)
        return {
            "status": "ok",
            "provider": snapshot.provider,
            "model": snapshot.model,
        }

    return app


__all__ = ["create_app"]
