"""Segmenter - splits a narration script into timed sections from the measured audio length."""

from typing import Any, Optional

from clipsync.core.config import Settings
from clipsync.core.errors import ScriptInputError
from clipsync.models.schemas import ClipInfo, Scene, ScriptSection
from clipsync.utils.text_utils import estimate_spoken_seconds, split_into_sentences

# A section may run this far past the target before the next sentence starts a new one
OVERFLOW_TOLERANCE_SECONDS = 1.5


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _redistribute(durations: list[float], total: float, lo: float, hi: float) -> list[float]:
    """
    Spread the difference between `total` and the sum of `durations` over sections
    that are not pinned at a bound, proportionally to their current length.

    Stops when the residual is negligible or every section is pinned, in which case
    the sum is left short of (or over) the total.
    """
    result = list(durations)
    for _ in range(len(result)):
        residual = total - sum(result)
        if abs(residual) < 0.05:
            break
        if residual > 0:
            free = [i for i, d in enumerate(result) if d < hi]
        else:
            free = [i for i, d in enumerate(result) if d > lo]
        if not free:
            break
        weight = sum(result[i] for i in free)
        for i in free:
            share = residual * result[i] / weight if weight > 0 else residual / len(free)
            result[i] = _clamp(result[i] + share, lo, hi)
    return result


def split_script_with_durations(
    script: str,
    total_audio_duration_seconds: float,
    target_clip_seconds: float,
    min_seconds: float,
    max_seconds: float,
) -> list[ScriptSection]:
    """
    Split a script into sections whose durations follow the measured narration length.

    Sentences are accumulated greedily using the script's average character rate.
    Section durations are clamped to [min_seconds, max_seconds], rescaled so they sum
    to the audio length, clamped again, and any remaining drift is redistributed over
    sections with headroom. Provider limits take precedence over the sum.

    Args:
        script: Full narration text
        total_audio_duration_seconds: Measured narration duration
        target_clip_seconds: Desired spoken duration per section
        min_seconds: Shortest legal clip
        max_seconds: Longest legal clip

    Returns:
        Sections in script order; empty when the script has no sentences

    Raises:
        ScriptInputError: If the audio duration is not positive
        ValueError: If min_seconds exceeds max_seconds
    """
    if total_audio_duration_seconds <= 0:
        raise ScriptInputError(f"Audio duration must be positive, got {total_audio_duration_seconds}")
    if min_seconds > max_seconds:
        raise ValueError(f"min_seconds ({min_seconds}) exceeds max_seconds ({max_seconds})")

    sentences = split_into_sentences(script)
    if not sentences:
        return []

    chars_per_second = len(script) / total_audio_duration_seconds
    limit = target_clip_seconds + OVERFLOW_TOLERANCE_SECONDS

    groups: list[list[str]] = []
    estimates: list[float] = []
    current: list[str] = []
    current_estimate = 0.0

    for sentence in sentences:
        sentence_estimate = estimate_spoken_seconds(sentence, chars_per_second)
        # Close the open section before it overflows, including ahead of the final sentence
        if current and current_estimate + sentence_estimate > limit:
            groups.append(current)
            estimates.append(current_estimate)
            current, current_estimate = [], 0.0
        current.append(sentence)
        current_estimate += sentence_estimate

    groups.append(current)
    estimates.append(current_estimate)

    raw = [_clamp(d, min_seconds, max_seconds) for d in estimates]
    scale = total_audio_duration_seconds / sum(raw)
    scaled = [_clamp(d * scale, min_seconds, max_seconds) for d in raw]
    balanced = _redistribute(scaled, total_audio_duration_seconds, min_seconds, max_seconds)

    return [
        ScriptSection(text=" ".join(group), duration_seconds=round(duration, 1))
        for group, duration in zip(groups, balanced)
    ]


class Segmenter:
    """Turns narration text plus its measured duration into sections, clips and scenes."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize segmenter.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def split(
        self,
        script: str,
        total_audio_duration_seconds: float,
        target_clip_seconds: Optional[float] = None,
        min_seconds: Optional[float] = None,
        max_seconds: Optional[float] = None,
    ) -> list[ScriptSection]:
        """
        Split a script into timed sections.

        Bounds default to the segmentation settings when not given.

        Returns:
            Sections in script order (possibly empty)
        """
        target = target_clip_seconds if target_clip_seconds is not None else self.settings.target_clip_seconds
        lo = min_seconds if min_seconds is not None else self.settings.min_clip_seconds
        hi = max_seconds if max_seconds is not None else self.settings.max_clip_seconds

        sections = split_script_with_durations(script, total_audio_duration_seconds, target, lo, hi)

        total = sum(s.duration_seconds for s in sections)
        self.logger.info(
            f"Split script into {len(sections)} sections "
            f"({total:.1f}s of {total_audio_duration_seconds:.1f}s audio, bounds {lo}-{hi}s)"
        )
        for i, section in enumerate(sections):
            self.logger.debug(f"  Section {i}: {section.duration_seconds}s - {section.text[:60]}")
        if sections and abs(total - total_audio_duration_seconds) > 1.0:
            self.logger.warning(
                f"Section durations ({total:.1f}s) differ from audio ({total_audio_duration_seconds:.1f}s); "
                "every section is pinned at a clip length bound"
            )
        return sections

    def split_or_raise(self, script: str, total_audio_duration_seconds: float, **bounds: float) -> list[ScriptSection]:
        """Split a script, treating zero sections as a fatal input error."""
        if not script or not script.strip():
            raise ScriptInputError("Script is empty")
        sections = self.split(script, total_audio_duration_seconds, **bounds)
        if not sections:
            raise ScriptInputError("Script contains no sentences to split into sections")
        return sections

    def sections_to_clips(
        self, sections: list[ScriptSection], audio_urls: Optional[list[str]] = None
    ) -> list[ClipInfo]:
        """Create one pending clip per section, in order, with its narration segment when sliced."""
        urls = audio_urls or [None] * len(sections)
        return [
            ClipInfo(index=i, script_section=section.text, duration=section.duration_seconds, audio_url=url)
            for i, (section, url) in enumerate(zip(sections, urls))
        ]

    def sections_to_scenes(
        self, sections: list[ScriptSection], audio_paths: Optional[list[str]] = None
    ) -> list[Scene]:
        """Create one pending scene per section, with its narration slot in milliseconds."""
        paths = audio_paths or [None] * len(sections)
        return [
            Scene(
                index=i,
                text=section.text,
                audio_path=path,
                audio_duration_ms=int(round(section.duration_seconds * 1000)),
            )
            for i, (section, path) in enumerate(zip(sections, paths))
        ]
