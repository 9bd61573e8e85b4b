import json
import pathlib
import sys
from typing import Any

import pytest
from pydantic import SecretStr

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from chatgateway.config import Settings  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return Settings(
        default_provider="ollama",
        ollama_base_url="http://ollama.test",
        ollama_api_key=SecretStr("ollama-key"),
        ollama_web_search_url="https://search.test/api/web_search",
        groq_base_url="https://groq.test/openai/v1",
        groq_api_key=SecretStr("groq-key"),
        google_base_url="https://google.test/v1beta",
        google_api_key=SecretStr("google-key"),
        system_prompt="Be brief.",
    )


def ndjson(*frames: dict[str, Any]) -> bytes:
    return b"".join(json.dumps(frame).encode("utf-8") + b"\n" for frame in frames)


def sse(*frames: dict[str, Any], done: bool = True) -> bytes:
    body = b"".join(
        b"data: " + json.dumps(frame).encode("utf-8") + b"\n\n" for frame in frames
    )
    if done:
        body += b"data: [DONE]\n\n"
    return body
