"""Truncation heuristics driving the automatic "continue" follow-up.

This is an approximation. It can ask for a continuation the reply did not
need, and it can miss a reply that was cut short.
"""

from __future__ import annotations

import re

MAX_AUTO_CONTINUATIONS = 2

CONTINUE_PROMPT = (
    "Your previous reply was cut off. Continue exactly where you stopped, "
    "without repeating anything you already wrote."
)

_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_LIST_RE = re.compile(r"^\s*(?:[-*+]\s|\d+[.)]\s)")
_HEADING_RE = re.compile(r"^\s*#{1,6}\s")
_TERMINAL_PUNCTUATION = frozenset('.!?:;"\')]}`*_>…。！？」』')


def has_unbalanced_fences(content: str) -> bool:
    fences = sum(1 for line in content.splitlines() if _FENCE_RE.match(line))
    return fences % 2 == 1


def _is_structural_line(line: str) -> bool:
    if _LIST_RE.match(line) or _HEADING_RE.match(line):
        return True
    if line.startswith(("    ", "\t")):
        return True
    stripped = line.strip()
    return stripped.startswith("|") or _FENCE_RE.match(stripped) is not None


def lacks_terminal_punctuation(content: str) -> bool:
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        return False
    last = lines[-1]
    if _is_structural_line(last):
        return False
    return last.rstrip()[-1] not in _TERMINAL_PUNCTUATION


def looks_truncated(content: str, *, explicit_stop: bool = False) -> bool:
    """Judge whether assistant content appears to stop mid-thought.

    Unbalanced code fences always count. The punctuation check only applies
    when the provider did not send an ordinary stop signal.
    """

    if not content.strip():
        return False
    if has_unbalanced_fences(content):
        return True
    if explicit_stop:
        return False
    return lacks_terminal_punctuation(content)


__all__ = [
    "CONTINUE_PROMPT",
    "MAX_AUTO_CONTINUATIONS",
    "has_unbalanced_fences",
    "lacks_terminal_punctuation",
    "looks_truncated",
]
