"""Scene pipeline driver - one clip per scene, adjusted to its narration slot, then joined."""

from pathlib import Path
from typing import Any, Optional, Sequence, Union

from clipsync.core.config import Settings
from clipsync.models.schemas import (
    ClipInfo,
    ClipStatus,
    CompositionResult,
    ProviderName,
    Scene,
    VideoStatus,
)
from clipsync.services.compositor import Compositor
from clipsync.services.duration_adjuster import DurationAdjuster
from clipsync.services.narration_slicer import NarrationSlicer
from clipsync.services.video_providers import ProviderRegistry
from clipsync.storage.blob_store import LocalBlobStore


class ScenePipeline:
    """Adjusts each scene's clip to its slot and composes the scenes in order."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        blob_store: LocalBlobStore,
        registry: ProviderRegistry,
        adjuster: Optional[DurationAdjuster] = None,
        compositor: Optional[Compositor] = None,
    ):
        self.settings = settings
        self.logger = logger
        self.blob_store = blob_store
        self.registry = registry
        self.adjuster = adjuster or DurationAdjuster(settings, logger)
        self.compositor = compositor or Compositor(settings, logger)
        self.slicer = NarrationSlicer(settings, logger, blob_store)

    def attach_narration(
        self, scenes: Sequence[Scene], narration_path: Path, prefix: str = "scene-narration"
    ) -> list[Scene]:
        """
        Cut the narration into one segment per scene slot and set each scene's audio_path.

        Raises:
            MediaProcessingError: If the narration cannot be read or cut
        """
        ordered = sorted(scenes, key=lambda s: s.index)
        urls = self.slicer.slice([s.audio_duration_ms / 1000.0 for s in ordered], narration_path, prefix=prefix)
        return [
            scene.model_copy(update={"audio_path": str(self.blob_store.resolve_path(url))})
            for scene, url in zip(ordered, urls)
        ]

    def scenes_from_clips(
        self,
        scenes: Sequence[Scene],
        clips: Sequence[ClipInfo],
        provider: Union[str, ProviderName],
    ) -> list[Scene]:
        """
        Attach generated clips to their scenes by index.

        Scenes get the clip's local path, job id and narration segment; clips from providers
        that bake narration into the video mark the scene audio_included so dubbing is skipped.
        """
        bakes_audio = self.registry.get(provider).bakes_audio
        by_index = {c.index: c for c in clips}
        updated = []
        for scene in scenes:
            clip = by_index.get(scene.index)
            if clip is None:
                updated.append(scene)
                continue

            changes: dict[str, Any] = {"provider_job_id": clip.provider_job_id, "audio_included": bakes_audio}
            if clip.audio_url and not scene.audio_path:
                changes["audio_path"] = str(self.blob_store.resolve_path(clip.audio_url))
            if clip.status == ClipStatus.COMPLETED and clip.video_url:
                changes.update(
                    video_status=VideoStatus.COMPLETED,
                    video_path=str(self.blob_store.resolve_path(clip.video_url)),
                )
            elif clip.status == ClipStatus.FAILED:
                changes.update(video_status=VideoStatus.FAILED, error_message=clip.error_message)
            else:
                changes.update(video_status=VideoStatus.GENERATING)
            updated.append(scene.model_copy(update=changes))
        return updated

    def run(self, scenes: Sequence[Scene], output_path: Optional[Path] = None) -> tuple[list[Scene], CompositionResult]:
        """
        Adjust all completed scenes, lay them on the timeline and compose the output.

        A timeline JSON is written next to the output video.

        Returns:
            (scenes with timeline positions, composition result)

        Raises:
            NoCompletedClipsError: If no scene has a usable clip
        """
        self.logger.info("=" * 60)
        self.logger.info(f"Scene pipeline: {len(scenes)} scenes")
        self.logger.info("=" * 60)

        adjusted = self.adjuster.adjust_all(list(scenes))
        timeline = self.compositor.assign_timeline(adjusted)
        result = self.compositor.compose_scenes(timeline, output_path)
        self.compositor.save_timeline_json(timeline, result.total_duration_ms, Path(result.output_path).with_suffix(".json"))

        fallbacks = sum(1 for s in timeline if s.error_message and s.video_status == VideoStatus.ADJUSTED)
        if fallbacks:
            self.logger.warning(f"{fallbacks} scenes used their unmodified clip; timeline may drift")
        return timeline, result
