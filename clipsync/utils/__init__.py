"""Utility functions for the ClipSync shorts pipeline."""

from clipsync.utils.io_utils import slugify, timestamped_filename
from clipsync.utils.text_utils import estimate_spoken_seconds, split_into_sentences

__all__ = [
    "slugify",
    "timestamped_filename",
    "estimate_spoken_seconds",
    "split_into_sentences",
]
