"""Compositor - joins clips into one output whose length follows the narration."""

import json
from pathlib import Path
from typing import Any, Optional, Sequence

from moviepy import AudioFileClip, ImageClip, VideoFileClip, concatenate_videoclips

from clipsync.core.config import Settings
from clipsync.core.errors import NoCompletedClipsError
from clipsync.models.schemas import (
    ClipInfo,
    ClipStatus,
    CompositionResult,
    MergePlan,
    Scene,
    VideoStatus,
)
from clipsync.storage.blob_store import LocalBlobStore
from clipsync.utils.io_utils import timestamped_filename


class Compositor:
    """
    Concatenates clips in index order.

    Multi-clip merges skip failed clips, cover any shortfall with the last completed
    clip's final frame, lay the narration over the result and cap it at the narration
    length. Scene composition joins already-adjusted clips as they are.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        blob_store: Optional[LocalBlobStore] = None,
        output_dir: Optional[Path] = None,
    ):
        """
        Initialize compositor.

        Args:
            settings: Application settings
            logger: Logger instance
            blob_store: Resolves local clip URLs to paths (plain paths are used when omitted)
            output_dir: Directory for merged videos (defaults to <media_root>/<videos_dir>)
        """
        self.settings = settings
        self.logger = logger
        self.blob_store = blob_store
        self.output_dir = Path(output_dir) if output_dir else Path(settings.media_root) / settings.videos_dir

    def _resolve(self, url: str) -> Path:
        if self.blob_store is not None:
            return self.blob_store.resolve_path(url)
        return Path(url)

    def _fit_frame(self, clip: Any) -> Any:
        """Scale to cover the output frame and centre-crop, so clips from different providers share one size."""
        width, height = self.settings.video_width, self.settings.video_height
        if tuple(clip.size) == (width, height):
            return clip
        scale = max(width / clip.w, height / clip.h)
        resized = clip.resized(scale)
        return resized.cropped(x_center=resized.w / 2, y_center=resized.h / 2, width=width, height=height)

    def plan_merge(
        self,
        clips: Sequence[ClipInfo],
        clip_durations: dict[int, float],
        narration_duration_seconds: float,
    ) -> MergePlan:
        """
        Decide which clips go into the output and how much filler is needed.

        Args:
            clips: Full clip array in any order
            clip_durations: Measured seconds per clip index (requested duration is used when missing)
            narration_duration_seconds: Narration length

        Returns:
            MergePlan

        Raises:
            NoCompletedClipsError: If no clip completed
        """
        completed = sorted(
            (c for c in clips if c.status == ClipStatus.COMPLETED and c.video_url),
            key=lambda c: c.index,
        )
        if not completed:
            raise NoCompletedClipsError(f"No completed clips to merge (0/{len(clips)})")

        total = sum(clip_durations.get(c.index, c.duration) for c in completed)
        filler = 0.0
        if total < narration_duration_seconds - self.settings.filler_threshold_seconds:
            filler = narration_duration_seconds - total + self.settings.filler_margin_seconds

        return MergePlan(
            clips=completed,
            total_clip_seconds=total,
            narration_seconds=narration_duration_seconds,
            filler_seconds=filler,
            filler_source_index=completed[-1].index,
        )

    def merge_clips(
        self,
        clips: Sequence[ClipInfo],
        narration_audio_path: Optional[Path],
        narration_duration_seconds: float,
        output_path: Optional[Path] = None,
    ) -> CompositionResult:
        """
        Render the multi-clip output.

        Args:
            clips: Full clip array; only completed clips are used
            narration_audio_path: Narration track to lay over the video, if any
            narration_duration_seconds: Narration length; the output is capped at it
            output_path: Target file (a timestamped name under output_dir when omitted)

        Returns:
            CompositionResult

        Raises:
            NoCompletedClipsError: If no clip completed
        """
        if not any(c.status == ClipStatus.COMPLETED and c.video_url for c in clips):
            raise NoCompletedClipsError(f"No completed clips to merge (0/{len(clips)})")

        self.logger.info("=" * 60)
        self.logger.info(f"Merging clips against {narration_duration_seconds:.1f}s narration")
        self.logger.info("=" * 60)

        output = Path(output_path) if output_path else self.output_dir / timestamped_filename("merged")
        output.parent.mkdir(parents=True, exist_ok=True)

        opened: list[Any] = []
        try:
            video_clips: dict[int, Any] = {}
            for clip in sorted(clips, key=lambda c: c.index):
                if clip.status != ClipStatus.COMPLETED or not clip.video_url:
                    continue
                source = VideoFileClip(str(self._resolve(clip.video_url)))
                opened.append(source)
                video_clips[clip.index] = self._fit_frame(source)

            durations = {index: vc.duration for index, vc in video_clips.items()}
            plan = self.plan_merge(clips, durations, narration_duration_seconds)
            self.logger.info(
                f"Using {len(plan.clips)}/{len(clips)} clips ({plan.total_clip_seconds:.1f}s), "
                f"filler {plan.filler_seconds:.1f}s"
            )

            parts = [video_clips[c.index] for c in plan.clips]
            if plan.filler_seconds > 0:
                last = video_clips[plan.filler_source_index]
                frame = last.get_frame(max(0.0, last.duration - 1.0 / (last.fps or 30)))
                parts.append(ImageClip(frame).with_duration(plan.filler_seconds))

            final = concatenate_videoclips(parts, method="compose")

            if narration_audio_path:
                narration = AudioFileClip(str(narration_audio_path))
                opened.append(narration)
                final = final.with_audio(narration)

            final = final.subclipped(0, min(final.duration, narration_duration_seconds))
            final.write_videofile(
                str(output),
                fps=self.settings.video_fps,
                codec=self.settings.video_codec,
                audio_codec=self.settings.audio_codec,
                preset=self.settings.render_preset,
                logger=None,
            )
            total_ms = int(round(final.duration * 1000))
        finally:
            for item in opened:
                item.close()

        self.logger.info(f"✅ Merged video: {output} ({total_ms / 1000:.1f}s)")
        return CompositionResult(
            output_path=str(output),
            total_duration_ms=total_ms,
            clips_included=len(plan.clips),
            filler_seconds=plan.filler_seconds,
        )

    def merge(
        self,
        clips: Sequence[ClipInfo],
        narration_audio_path: Optional[Path],
        narration_duration_seconds: float,
    ) -> str:
        """Merge clips and return the output path."""
        return self.merge_clips(clips, narration_audio_path, narration_duration_seconds).output_path

    @staticmethod
    def _scene_video(scene: Scene) -> Optional[str]:
        if scene.video_status == VideoStatus.ADJUSTED:
            return scene.adjusted_video_path or scene.video_path
        if scene.video_status == VideoStatus.COMPLETED:
            return scene.video_path
        return None

    def assign_timeline(self, scenes: Sequence[Scene]) -> list[Scene]:
        """
        Place usable scenes back to back in index order.

        Scenes without a usable clip keep no timeline position.
        """
        cursor = 0
        updated = []
        for scene in sorted(scenes, key=lambda s: s.index):
            if self._scene_video(scene) is None:
                updated.append(scene.model_copy(update={"start_time_ms": None, "end_time_ms": None}))
                continue
            duration = scene.video_duration_ms if scene.video_duration_ms is not None else scene.audio_duration_ms
            updated.append(scene.model_copy(update={"start_time_ms": cursor, "end_time_ms": cursor + duration}))
            cursor += duration
        return updated

    def compose_scenes(self, scenes: Sequence[Scene], output_path: Optional[Path] = None) -> CompositionResult:
        """
        Join adjusted scene clips in index order without re-timing.

        Raises:
            NoCompletedClipsError: If no scene has a usable clip
        """
        usable = [s for s in sorted(scenes, key=lambda s: s.index) if self._scene_video(s)]
        if not usable:
            raise NoCompletedClipsError(f"No usable scene clips to compose (0/{len(scenes)})")

        output = Path(output_path) if output_path else self.output_dir / timestamped_filename("composed")
        output.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Composing {len(usable)}/{len(scenes)} scenes")

        opened: list[Any] = []
        try:
            parts = []
            for scene in usable:
                source = VideoFileClip(str(self._resolve(self._scene_video(scene))))
                opened.append(source)
                parts.append(self._fit_frame(source))
            final = concatenate_videoclips(parts, method="compose")
            final.write_videofile(
                str(output),
                fps=self.settings.video_fps,
                codec=self.settings.video_codec,
                audio_codec=self.settings.audio_codec,
                preset=self.settings.render_preset,
                logger=None,
            )
            total_ms = int(round(final.duration * 1000))
        finally:
            for item in opened:
                item.close()

        self.logger.info(f"✅ Composed video: {output} ({total_ms / 1000:.1f}s)")
        return CompositionResult(output_path=str(output), total_duration_ms=total_ms, clips_included=len(usable))

    def save_timeline_json(self, scenes: Sequence[Scene], total_duration_ms: int, output_path: Path) -> Path:
        """Write the scene timeline next to the output for auditing."""
        timeline = {
            "total_duration_ms": total_duration_ms,
            "scenes": [
                {
                    "index": s.index,
                    "text": s.text,
                    "start_time_ms": s.start_time_ms,
                    "end_time_ms": s.end_time_ms,
                    "audio_duration_ms": s.audio_duration_ms,
                    "video_duration_ms": s.video_duration_ms,
                    "adjustment_type": s.adjustment_type.value if s.adjustment_type else None,
                    "video_path": self._scene_video(s),
                    "error_message": s.error_message,
                }
                for s in sorted(scenes, key=lambda s: s.index)
            ],
        }
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(timeline, f, indent=2, ensure_ascii=False)
        self.logger.info(f"Timeline saved to: {output_path}")
        return output_path
