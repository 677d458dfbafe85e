"""Text utility functions for script processing."""

# This module is part of clipsync.utils package

import re

# Split after sentence-ending punctuation (ASCII and CJK full stop), swallowing following whitespace
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?。])\s*")


def split_into_sentences(script: str) -> list[str]:
    """
    Split a script into sentences.

    Args:
        script: Full narration script.

    Returns:
        Non-empty, stripped sentences in order. Trailing text without
        terminal punctuation is kept as its own sentence.
    """
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(script) if s.strip()]


def estimate_spoken_seconds(text: str, chars_per_second: float) -> float:
    """
    Estimate the spoken duration of text from a measured character rate.

    Args:
        text: Text to estimate duration for.
        chars_per_second: Characters spoken per second (script length / audio length).

    Returns:
        Estimated duration in seconds.
    """
    if chars_per_second <= 0:
        raise ValueError("chars_per_second must be positive")
    return len(text) / chars_per_second


def truncate_text(text: str, limit: int) -> str:
    """Cut text to at most `limit` characters without leaving a dangling word."""
    if len(text) <= limit:
        return text
    cut = text[:limit]
    last_space = cut.rfind(" ")
    if last_space > limit * 0.7:  # Only use if not too early
        cut = cut[:last_space]
    return cut.rstrip()
