"""Tests for the truncation heuristic behind automatic continuation."""

import pytest

from chatgateway.chat.continuation import (
    has_unbalanced_fences,
    lacks_terminal_punctuation,
    looks_truncated,
)


@pytest.mark.parametrize(
    "content",
    [
        "The sky is blue.",
        "Really?",
        "- first item\n- second item",
        "## Summary",
        "| a | b |\n| - | - |\n| 1 | 2 |",
        "```python\nprint('hi')\n```",
        "",
    ],
)
def test_complete_looking_replies(content):
    assert looks_truncated(content) is False


@pytest.mark.parametrize(
    "content",
    [
        "The capital of France is",
        "Here is the code:\n```python\nprint('hi')",
        "First paragraph.\n\nSecond paragraph trails off and",
    ],
)
def test_truncated_looking_replies(content):
    assert looks_truncated(content) is True


def test_explicit_stop_overrides_punctuation_check():
    assert looks_truncated("Hi there", explicit_stop=True) is False
    assert looks_truncated("Hi there") is True


def test_unbalanced_fence_wins_over_explicit_stop():
    assert looks_truncated("~~~\ncode", explicit_stop=True) is True


def test_helpers():
    assert has_unbalanced_fences("```\na\n```\n```") is True
    assert has_unbalanced_fences("no fences") is False
    assert lacks_terminal_punctuation("ends with a colon:") is False
    assert lacks_terminal_punctuation("    indented code") is False
