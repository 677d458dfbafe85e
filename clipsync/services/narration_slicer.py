"""Narration Slicer - cuts the narration track into one audio segment per section."""

import tempfile
from pathlib import Path
from typing import Any, Sequence

from moviepy import AudioFileClip

from clipsync.core.config import Settings
from clipsync.core.errors import MediaProcessingError
from clipsync.storage.blob_store import LocalBlobStore
from clipsync.utils.io_utils import timestamped_filename


def slot_bounds(durations_seconds: Sequence[float], narration_seconds: float) -> list[tuple[float, float]]:
    """
    Lay section durations back to back and cap them at the narration end.

    The last slot always runs to the end of the narration so no trailing speech is lost.
    """
    bounds = []
    start = 0.0
    for i, duration in enumerate(durations_seconds):
        start = min(start, narration_seconds)
        end = narration_seconds if i == len(durations_seconds) - 1 else min(start + duration, narration_seconds)
        bounds.append((start, end))
        start = end
    return bounds


class NarrationSlicer:
    """Writes per-section narration segments into the blob store."""

    def __init__(self, settings: Settings, logger: Any, blob_store: LocalBlobStore):
        self.settings = settings
        self.logger = logger
        self.blob_store = blob_store

    def slice(self, durations_seconds: Sequence[float], narration_path: Path, prefix: str = "narration") -> list[str]:
        """
        Cut the narration at cumulative section boundaries.

        Args:
            durations_seconds: Section durations in script order
            narration_path: Full narration audio file
            prefix: Leading component of the segment filenames

        Returns:
            Local audio URLs, one per section, in order

        Raises:
            MediaProcessingError: If the narration is missing or cannot be cut
        """
        narration_path = Path(narration_path)
        if not narration_path.exists():
            raise MediaProcessingError(f"Narration audio not found: {narration_path}")

        suffix = narration_path.suffix or ".mp3"
        urls = []
        narration = None
        try:
            narration = AudioFileClip(str(narration_path))
            bounds = slot_bounds(durations_seconds, narration.duration)
            self.logger.info(f"Slicing {narration.duration:.1f}s narration into {len(bounds)} segments")

            with tempfile.TemporaryDirectory() as tmp_dir:
                for i, (start, end) in enumerate(bounds):
                    if end - start <= 0:
                        raise MediaProcessingError(f"Segment {i} falls past the narration end ({start:.2f}s)")
                    filename = timestamped_filename(prefix, i, suffix=suffix)
                    tmp_path = Path(tmp_dir) / filename
                    narration.subclipped(start, end).write_audiofile(str(tmp_path), logger=None)
                    urls.append(self.blob_store.save(tmp_path.read_bytes(), filename, kind="audio"))
                    self.logger.debug(f"  Segment {i}: {start:.2f}s - {end:.2f}s")
        except MediaProcessingError:
            raise
        except Exception as e:
            raise MediaProcessingError(f"Cannot slice narration {narration_path}: {e}") from e
        finally:
            if narration is not None:
                narration.close()

        return urls
