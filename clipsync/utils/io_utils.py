"""I/O utility functions for file naming and directories."""

# This module is part of clipsync.utils package

import re
import time
from pathlib import Path


def slugify(text: str) -> str:
    """
    Convert text to a filesystem-safe slug.

    Args:
        text: Input text to slugify.

    Returns:
        Filesystem-safe slug string.
    """
    text = text.lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "-", text)
    text = text.strip("-")
    if len(text) > 100:
        text = text[:100].rstrip("-")
    return text


def timestamped_filename(prefix: str, *parts: object, suffix: str = ".mp4") -> str:
    """
    Build a unique, write-once filename such as 'clip-job42-3-1718000000000.mp4'.

    Args:
        prefix: Leading name component.
        *parts: Further components joined with '-'.
        suffix: File extension including the dot.

    Returns:
        Filename ending with a millisecond timestamp.
    """
    millis = int(time.time() * 1000)
    components = [prefix, *(slugify(str(p)) or str(p) for p in parts), str(millis)]
    return "-".join(components) + suffix


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path
