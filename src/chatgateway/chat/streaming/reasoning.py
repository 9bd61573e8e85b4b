"""Utilities for working with reasoning payloads in streaming responses."""

from __future__ import annotations

from typing import Any

_TEXT_KEYS = ("text", "content", "reasoning", "thinking", "summary")


def extract_reasoning_text(payload: Any) -> str:
    """Flatten the varied reasoning payload shapes providers send into text."""

    fragments: list[str] = []

    def _walk(node: Any) -> None:
        if node is None or isinstance(node, bool):
            return
        if isinstance(node, str):
            if node.strip():
                fragments.append(node)
            return
        if isinstance(node, list):
            for item in node:
                _walk(item)
            return
        if isinstance(node, dict):
            for key in _TEXT_KEYS:
                if key in node:
                    _walk(node[key])

    _walk(payload)
    return "".join(fragments).strip()


__all__ = ["extract_reasoning_text"]
