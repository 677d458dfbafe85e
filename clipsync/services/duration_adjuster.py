"""Duration Adjuster - fits each generated clip to its narration slot."""

import shutil
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np
from moviepy import AudioFileClip, ImageClip, VideoFileClip, concatenate_videoclips, vfx
from PIL import Image

from clipsync.core.config import Settings
from clipsync.core.errors import MediaProcessingError
from clipsync.models.schemas import AdjustmentResult, AdjustmentType, Scene, VideoStatus
from clipsync.utils.error_handler import format_error_message, get_fallback_suggestion
from clipsync.utils.io_utils import timestamped_filename

# Decision thresholds on delta = target - actual (milliseconds)
NO_CHANGE_TOLERANCE_MS = 500
FREEZE_MAX_MS = 2000
KEN_BURNS_MAX_MS = 4000


def choose_adjustment(clip_duration_ms: int, target_duration_ms: int) -> AdjustmentType:
    """
    Pick the time-correction strategy for a clip.

    Args:
        clip_duration_ms: Actual clip length
        target_duration_ms: Narration slot length

    Returns:
        none (|delta| < 500), freeze (up to 2s short), ken_burns (2-4s short),
        loop (more than 4s short) or trim (too long)
    """
    delta = target_duration_ms - clip_duration_ms
    if abs(delta) < NO_CHANGE_TOLERANCE_MS:
        return AdjustmentType.NONE
    if delta < 0:
        return AdjustmentType.TRIM
    if delta <= FREEZE_MAX_MS:
        return AdjustmentType.FREEZE
    if delta <= KEN_BURNS_MAX_MS:
        return AdjustmentType.KEN_BURNS
    return AdjustmentType.LOOP


def _last_frame(clip: Any) -> np.ndarray:
    # Step back one frame; reading exactly at clip.duration can run past the stream end
    fps = clip.fps or 30
    return clip.get_frame(max(0.0, clip.duration - 1.0 / fps))


def _center_zoom(duration: float, max_zoom: float) -> Callable[[Callable[[float], np.ndarray], float], np.ndarray]:
    """Frame filter zooming linearly from 1.0 to `max_zoom` about the centre over `duration`."""

    def zoom_frame(get_frame: Callable[[float], np.ndarray], t: float) -> np.ndarray:
        frame = get_frame(t)
        height, width = frame.shape[:2]
        zoom = 1.0 + (max_zoom - 1.0) * min(t / duration, 1.0) if duration > 0 else 1.0
        crop_w = max(1, int(round(width / zoom)))
        crop_h = max(1, int(round(height / zoom)))
        x1 = (width - crop_w) // 2
        y1 = (height - crop_h) // 2
        cropped = frame[y1:y1 + crop_h, x1:x1 + crop_w]
        resized = Image.fromarray(cropped).resize((width, height), Image.Resampling.LANCZOS)
        return np.asarray(resized)

    return zoom_frame


class DurationAdjuster:
    """Applies freeze, zoom, loop or trim corrections and optional narration dubbing."""

    def __init__(self, settings: Settings, logger: Any, output_dir: Optional[Path] = None):
        """
        Initialize duration adjuster.

        Args:
            settings: Application settings
            logger: Logger instance
            output_dir: Directory for adjusted clips (defaults to <media_root>/<videos_dir>/adjusted)
        """
        self.settings = settings
        self.logger = logger
        self.output_dir = Path(output_dir) if output_dir else Path(settings.media_root) / settings.videos_dir / "adjusted"

    def measure_duration_ms(self, path: Path) -> int:
        """
        Measure a video file's duration.

        Raises:
            MediaProcessingError: If the file is missing or cannot be decoded
        """
        if not Path(path).exists():
            raise MediaProcessingError(f"Video file not found: {path}")
        clip = None
        try:
            clip = VideoFileClip(str(path))
            return int(round(clip.duration * 1000))
        except Exception as e:
            raise MediaProcessingError(f"Cannot read video duration of {path}: {e}") from e
        finally:
            if clip is not None:
                clip.close()

    def adjust(self, scene: Scene, target_duration_ms: Optional[int] = None) -> AdjustmentResult:
        """
        Fit a scene's clip to its narration slot.

        If rendering or dubbing fails, the unmodified source is copied to the output path
        and its measured duration is reported with fallback=True.

        Args:
            scene: Scene with a generated clip at video_path
            target_duration_ms: Slot length; defaults to scene.audio_duration_ms

        Returns:
            AdjustmentResult describing the applied correction and the achieved duration

        Raises:
            MediaProcessingError: If the source clip is missing or unreadable
        """
        if not scene.video_path or not Path(scene.video_path).exists():
            raise MediaProcessingError(f"Scene {scene.index}: source clip not found: {scene.video_path}")

        source = Path(scene.video_path)
        target_ms = target_duration_ms if target_duration_ms is not None else scene.audio_duration_ms
        original_ms = scene.video_duration_ms or self.measure_duration_ms(source)
        adjustment = choose_adjustment(original_ms, target_ms)

        dub_audio = None
        if not scene.audio_included and scene.audio_path and Path(scene.audio_path).exists():
            dub_audio = Path(scene.audio_path)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        output = self.output_dir / timestamped_filename("scene", scene.index, adjustment.value)

        self.logger.info(
            f"Scene {scene.index}: {original_ms}ms -> {target_ms}ms "
            f"(delta {target_ms - original_ms:+d}ms, {adjustment.value}{', dub' if dub_audio else ''})"
        )

        if adjustment == AdjustmentType.NONE and dub_audio is None:
            shutil.copyfile(source, output)
            return self._result(scene, source, output, adjustment, original_ms, target_ms, original_ms)

        try:
            self._render(source, output, adjustment, target_ms / 1000.0, dub_audio)
            final_ms = original_ms if adjustment == AdjustmentType.NONE else self.measure_duration_ms(output)
            return self._result(scene, source, output, adjustment, original_ms, target_ms, final_ms)
        except Exception as e:
            self.logger.warning(
                format_error_message(
                    f"Adjusting scene {scene.index} ({adjustment.value})",
                    e,
                    context={"source": source.name},
                    suggestion=get_fallback_suggestion("Media Processing", e),
                )
            )

        # Fallback: unmodified source, achieved duration reported as-is
        output.unlink(missing_ok=True)
        shutil.copyfile(source, output)
        return self._result(
            scene, source, output, AdjustmentType.NONE, original_ms, target_ms, original_ms, fallback=True
        )

    def _result(
        self,
        scene: Scene,
        source: Path,
        output: Path,
        adjustment: AdjustmentType,
        original_ms: int,
        target_ms: int,
        final_ms: int,
        fallback: bool = False,
    ) -> AdjustmentResult:
        if abs(final_ms - target_ms) >= NO_CHANGE_TOLERANCE_MS:
            self.logger.warning(f"Scene {scene.index}: final {final_ms}ms drifts from target {target_ms}ms")
        return AdjustmentResult(
            scene_index=scene.index,
            original_path=str(source),
            adjusted_path=str(output),
            adjustment_type=adjustment,
            original_duration_ms=original_ms,
            target_duration_ms=target_ms,
            final_duration_ms=final_ms,
            fallback=fallback,
        )

    def _render(
        self,
        source: Path,
        output: Path,
        adjustment: AdjustmentType,
        target_seconds: float,
        dub_audio: Optional[Path],
    ) -> None:
        opened: list[Any] = []
        try:
            clip = VideoFileClip(str(source))
            opened.append(clip)

            if adjustment == AdjustmentType.FREEZE:
                adjusted = self._freeze(clip, target_seconds)
            elif adjustment == AdjustmentType.KEN_BURNS:
                adjusted = self._ken_burns(clip, target_seconds)
            elif adjustment == AdjustmentType.LOOP:
                adjusted = clip.with_effects([vfx.Loop(duration=target_seconds)])
            elif adjustment == AdjustmentType.TRIM:
                adjusted = clip.subclipped(0, target_seconds)
            else:
                adjusted = clip

            if dub_audio is not None:
                narration = AudioFileClip(str(dub_audio))
                opened.append(narration)
                adjusted = self._dub(adjusted, narration, trim_video=adjustment != AdjustmentType.NONE)

            adjusted.write_videofile(
                str(output),
                fps=self.settings.video_fps,
                codec=self.settings.video_codec,
                audio_codec=self.settings.audio_codec,
                preset=self.settings.render_preset,
                logger=None,
            )
        finally:
            for item in opened:
                item.close()

    def _freeze(self, clip: Any, target_seconds: float) -> Any:
        """Hold the final frame for the shortfall."""
        hold = ImageClip(_last_frame(clip)).with_duration(target_seconds - clip.duration)
        return concatenate_videoclips([clip, hold], method="compose")

    def _ken_burns(self, clip: Any, target_seconds: float) -> Any:
        """Slow playback, hold the final frame for any remainder, and zoom in slowly over the whole slot."""
        slowed = clip.with_effects([vfx.MultiplySpeed(factor=1.0 / self.settings.ken_burns_slowdown)])
        if slowed.duration < target_seconds:
            hold = ImageClip(_last_frame(slowed)).with_duration(target_seconds - slowed.duration)
            slowed = concatenate_videoclips([slowed, hold], method="compose")
        extended = slowed.subclipped(0, target_seconds)
        return extended.transform(_center_zoom(target_seconds, self.settings.ken_burns_max_zoom), apply_to=[])

    def _dub(self, video: Any, narration: Any, trim_video: bool = True) -> Any:
        """
        Replace the clip's audio with the narration segment, both cut to the shorter one.

        With trim_video=False the video keeps its full length and only the narration is cut.
        """
        length = min(video.duration, narration.duration)
        if trim_video:
            video = video.subclipped(0, length)
        return video.with_audio(narration.subclipped(0, length))

    def adjust_all(self, scenes: list[Scene]) -> list[Scene]:
        """
        Adjust every completed scene that has a clip.

        Returns:
            New scene list; adjusted scenes carry adjustment_type and adjusted_video_path,
            scenes whose source is unusable are marked failed with an error message
        """
        self.logger.info("=" * 60)
        self.logger.info(f"Adjusting {len(scenes)} scenes to narration slots")
        self.logger.info("=" * 60)

        updated = []
        for scene in scenes:
            if scene.video_status != VideoStatus.COMPLETED or not scene.video_path:
                updated.append(scene)
                continue
            try:
                result = self.adjust(scene)
            except MediaProcessingError as e:
                self.logger.error(f"Scene {scene.index}: {e}")
                updated.append(scene.model_copy(update={"video_status": VideoStatus.FAILED, "error_message": str(e)}))
                continue

            updated.append(
                scene.model_copy(
                    update={
                        "video_status": VideoStatus.ADJUSTED,
                        "adjustment_type": result.adjustment_type,
                        "adjusted_video_path": result.adjusted_path,
                        "video_duration_ms": result.final_duration_ms,
                        "error_message": "Adjustment fell back to the unmodified clip" if result.fallback else None,
                    }
                )
            )
        return updated
