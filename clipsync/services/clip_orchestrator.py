"""Clip Orchestrator - requests one generated clip per script section and advances them by polling."""

import time
from typing import Any, Optional, Sequence, Union

from clipsync.core.config import Settings
from clipsync.core.errors import UnknownProviderError
from clipsync.models.schemas import (
    ClipInfo,
    ClipStatus,
    MultiClipJobRef,
    PollResult,
    ProviderName,
    ScriptSection,
)
from clipsync.services.video_providers import ProviderRegistry, VideoProvider
from clipsync.storage.blob_store import LocalBlobStore
from clipsync.utils.error_handler import format_error_message, get_fallback_suggestion
from clipsync.utils.io_utils import timestamped_filename
from clipsync.utils.text_utils import truncate_text

BASE_VISUAL_STYLE = (
    "Warm, inviting colors with soft natural lighting.\n"
    "Clean, modern aesthetic with a calm and trustworthy atmosphere.\n"
    "High quality cinematic footage with smooth camera movements.\n"
    "9:16 vertical format for YouTube Shorts."
)


class ClipOrchestrator:
    """
    Drives provider jobs for a clip array.

    Every operation takes the clip array and returns a new one; nothing is held between
    calls, so polling can resume from a persisted record after a restart. Polling cadence
    and deadlines belong to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        registry: ProviderRegistry,
        blob_store: LocalBlobStore,
        job_id: Optional[str] = None,
    ):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
            logger: Logger instance
            registry: Provider lookup used for submit and poll dispatch
            blob_store: Durable storage for downloaded clips
            job_id: Owning job id, used in stored clip filenames
        """
        self.settings = settings
        self.logger = logger
        self.registry = registry
        self.blob_store = blob_store
        self.job_id = job_id

    def default_model(self, provider: Union[str, ProviderName]) -> str:
        if ProviderName(provider) == ProviderName.VEO:
            return self.settings.veo_default_model
        return self.settings.higgsfield_default_model

    def build_prompts(self, clips: Sequence[ClipInfo], topic: Optional[str] = None) -> list[ClipInfo]:
        """
        Fill empty prompts from each clip's script section with a shared visual style.

        Clips that already have a prompt are returned unchanged.
        """
        total = len(clips)
        updated = []
        for clip in clips:
            if clip.prompt:
                updated.append(clip)
                continue
            lines = [BASE_VISUAL_STYLE, ""]
            if topic:
                lines.append(f"Topic: {topic}")
            lines.append(f"Scene {clip.index + 1} of {total}:")
            lines.append(f"Content: {truncate_text(clip.script_section, 200)}")
            updated.append(clip.model_copy(update={"prompt": "\n".join(lines)}))
        return updated

    def request_all(
        self,
        clips: Sequence[Union[ClipInfo, ScriptSection]],
        provider: Union[str, ProviderName],
        model: Optional[str] = None,
    ) -> list[ClipInfo]:
        """
        Submit one generation job per clip, in index order.

        Durations are clamped to the provider's legal range before submission. A failed
        submit marks only that clip failed. Clips that already carry a job id or are
        settled are left untouched.

        Args:
            clips: Clips (or raw sections, which become clips in order)
            provider: Provider name
            model: Provider model; defaults to the provider's configured model

        Returns:
            New clip array

        Raises:
            UnknownProviderError: If the provider is not registered
        """
        video_provider = self.registry.get(provider)
        model = model or self.default_model(video_provider.name)
        items = self.build_prompts(self._as_clips(clips))

        self.logger.info("=" * 60)
        self.logger.info(
            f"Requesting {len(items)} clips (provider: {video_provider.name.value}, model: {model})"
        )
        self.logger.info("=" * 60)

        updated: list[ClipInfo] = []
        for position, clip in enumerate(items):
            if clip.is_settled or clip.provider_job_id:
                updated.append(clip)
                continue

            updated.append(self._submit_clip(video_provider, clip, model, len(items)))

            if position < len(items) - 1 and video_provider.request_delay_seconds > 0:
                time.sleep(video_provider.request_delay_seconds)

        failed = sum(1 for c in updated if c.status == ClipStatus.FAILED)
        self.logger.info(f"Requested {len(updated) - failed}/{len(updated)} clips ({failed} failed at submit)")
        return updated

    def _submit_clip(self, video_provider: VideoProvider, clip: ClipInfo, model: str, total: int) -> ClipInfo:
        duration = video_provider.clamp_duration(clip.duration)
        if duration != clip.duration:
            self.logger.debug(f"Clip {clip.index}: duration {clip.duration}s clamped to {duration}s")

        self.logger.info(f"Clip {clip.index + 1}/{total}: requesting {duration:.1f}s")
        try:
            job_id = video_provider.submit(clip.prompt, duration, self.settings.aspect_ratio, model)
        except Exception as e:
            self.logger.warning(
                format_error_message(
                    f"Requesting clip {clip.index + 1}",
                    e,
                    context={"provider": video_provider.name.value, "job_id": self.job_id},
                    suggestion=get_fallback_suggestion("Video Generation", e),
                )
            )
            return clip.model_copy(
                update={"duration": duration, "status": ClipStatus.FAILED, "error_message": str(e)}
            )

        self.logger.info(f"Clip {clip.index + 1}/{total}: job {job_id}")
        return clip.model_copy(
            update={
                "duration": duration,
                "status": ClipStatus.PROCESSING,
                "provider_job_id": job_id,
                "error_message": None,
            }
        )

    def poll_once(self, clips: Sequence[ClipInfo]) -> PollResult:
        """
        Advance every unsettled clip by one status query.

        Completed jobs are downloaded and stored under a new filename. Provider-reported
        failures mark the clip failed. Transient query or download errors are counted and
        only fail the clip once the configured budget is used up. Safe to call repeatedly.

        Args:
            clips: Current clip array

        Returns:
            PollResult with the new clip array (index order) and whether all clips settled
        """
        ordered = sorted(clips, key=lambda c: c.index)
        updated: list[ClipInfo] = []
        queried = 0

        for clip in ordered:
            if clip.is_settled:
                updated.append(clip)
                continue

            if queried and self.settings.poll_delay_seconds > 0:
                time.sleep(self.settings.poll_delay_seconds)
            queried += 1
            updated.append(self._poll_clip(clip))

        result = PollResult(clips=updated, all_settled=all(c.is_settled for c in updated))
        self.logger.info(
            f"Poll: {result.completed_count} completed, {result.failed_count} failed, "
            f"{result.pending_count} pending ({result.progress})"
        )
        return result

    def _poll_clip(self, clip: ClipInfo) -> ClipInfo:
        log = self.logger.bind(clip_index=clip.index)
        if not clip.provider_job_id:
            return clip.model_copy(
                update={"status": ClipStatus.FAILED, "error_message": "Clip has no provider job id"}
            )

        try:
            video_provider = self.registry.for_job_id(clip.provider_job_id)
        except UnknownProviderError as e:
            log.error(f"Clip {clip.index}: {e}")
            return clip.model_copy(update={"status": ClipStatus.FAILED, "error_message": str(e)})

        try:
            status = video_provider.poll(clip.provider_job_id)

            if status.status == ClipStatus.COMPLETED:
                data = self.blob_store.download(status.video_url)
                filename = timestamped_filename("clip", self.job_id or "job", clip.index)
                url = self.blob_store.save(data, filename, kind="video")
                log.info(f"Clip {clip.index}: completed -> {url}")
                return clip.model_copy(
                    update={
                        "status": ClipStatus.COMPLETED,
                        "video_url": url,
                        "error_message": None,
                        "poll_errors": 0,
                    }
                )

            if status.status == ClipStatus.FAILED:
                log.warning(f"Clip {clip.index}: provider reported failure: {status.error}")
                return clip.model_copy(
                    update={"status": ClipStatus.FAILED, "error_message": status.error or "Generation failed"}
                )

            if status.progress is not None:
                log.debug(f"Clip {clip.index}: {status.status.value} ({status.progress})")
            return clip.model_copy(update={"status": ClipStatus.PROCESSING, "poll_errors": 0})

        except Exception as e:
            poll_errors = clip.poll_errors + 1
            if poll_errors >= self.settings.max_poll_errors:
                log.error(
                    format_error_message(
                        f"Polling clip {clip.index + 1}",
                        e,
                        context={"job_id": self.job_id, "attempts": poll_errors},
                        suggestion=get_fallback_suggestion("Video Generation", e),
                    )
                )
                return clip.model_copy(
                    update={"status": ClipStatus.FAILED, "error_message": str(e), "poll_errors": poll_errors}
                )

            log.warning(
                f"Clip {clip.index}: poll error {poll_errors}/{self.settings.max_poll_errors}: {e}"
            )
            return clip.model_copy(
                update={"status": ClipStatus.PROCESSING, "error_message": str(e), "poll_errors": poll_errors}
            )

    def build_job_ref(
        self,
        clips: Sequence[ClipInfo],
        provider: Union[str, ProviderName],
        model: str,
        duration_seconds: float,
    ) -> MultiClipJobRef:
        """Collect the provider job ids of a clip array into a structured reference."""
        ordered = sorted(clips, key=lambda c: c.index)
        return MultiClipJobRef(
            provider=ProviderName(provider),
            model=model,
            duration_seconds=duration_seconds,
            sub_job_ids=[c.provider_job_id for c in ordered if c.provider_job_id],
        )

    def clips_from_job_ref(self, job_ref: MultiClipJobRef) -> list[ClipInfo]:
        """
        Rebuild a processing clip array from a job reference alone.

        Used for records that persisted only the reference. Each sub-job's provider is
        resolved from its id prefix when polled.
        """
        count = len(job_ref.sub_job_ids)
        share = job_ref.duration_seconds / count if count else 0.0
        return [
            ClipInfo(
                index=i,
                script_section="",
                duration=share,
                status=ClipStatus.PROCESSING,
                provider_job_id=job_id,
            )
            for i, job_id in enumerate(job_ref.sub_job_ids)
        ]

    @staticmethod
    def progress_label(clips: Sequence[ClipInfo]) -> str:
        completed = sum(1 for c in clips if c.status == ClipStatus.COMPLETED)
        return f"{completed}/{len(clips)}"

    @staticmethod
    def _as_clips(items: Sequence[Union[ClipInfo, ScriptSection]]) -> list[ClipInfo]:
        clips = []
        for i, item in enumerate(items):
            if isinstance(item, ScriptSection):
                clips.append(ClipInfo(index=i, script_section=item.text, duration=item.duration_seconds))
            else:
                clips.append(item)
        return sorted(clips, key=lambda c: c.index)
