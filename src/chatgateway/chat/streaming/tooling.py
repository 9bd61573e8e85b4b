"""Helpers for assembling tool calls out of streamed deltas."""

from __future__ import annotations

import json
from typing import Any

from .types import ToolCall


def _slot(accumulator: list[dict[str, Any]], delta: dict[str, Any]) -> dict[str, Any]:
    """Find (or allocate) the accumulator entry a delta belongs to.

    Providers normally send ``index``; when it is absent the call ``id`` is
    used, and an unknown call gets a fresh slot.
    """

    position = delta.get("index")
    if not isinstance(position, int) or position < 0:
        call_id = delta.get("id")
        known = [i for i, entry in enumerate(accumulator) if call_id and entry["id"] == call_id]
        position = known[0] if known else len(accumulator)

    while len(accumulator) <= position:
        accumulator.append({"id": None, "name": None, "arguments": ""})
    return accumulator[position]


def merge_tool_calls(accumulator: list[dict[str, Any]], deltas: Any) -> None:
    """Fold OpenAI-style ``tool_calls`` deltas into per-index entries."""

    for delta in deltas or ():
        if not isinstance(delta, dict):
            continue
        entry = _slot(accumulator, delta)
        if delta.get("id"):
            entry["id"] = delta["id"]

        function = delta.get("function")
        if not isinstance(function, dict):
            continue
        if function.get("name"):
            entry["name"] = function["name"]
        fragment = function.get("arguments")
        if isinstance(fragment, str):
            entry["arguments"] += fragment
        elif isinstance(fragment, dict):
            entry["arguments"] = json.dumps(fragment)


def finalize_tool_calls(tool_calls: list[dict[str, Any]]) -> list[ToolCall]:
    """Drop entries without a name and assign ids to anonymous calls."""

    return [
        ToolCall(
            name=call["name"],
            arguments_json=call.get("arguments", "").strip() or "{}",
            call_id=call.get("id") or f"call_{position}",
        )
        for position, call in enumerate(tool_calls)
        if isinstance(call.get("name"), str) and call["name"].strip()
    ]


def encode_arguments(arguments: Any) -> str:
    """Return the raw JSON argument string whatever shape the provider used."""

    if isinstance(arguments, str):
        return arguments or "{}"
    if arguments is None:
        return "{}"
    return json.dumps(arguments, ensure_ascii=False)


def decode_arguments(arguments_json: str) -> dict[str, Any]:
    try:
        decoded = json.loads(arguments_json or "{}")
    except json.JSONDecodeError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


__all__ = [
    "decode_arguments",
    "encode_arguments",
    "finalize_tool_calls",
    "merge_tool_calls",
]
