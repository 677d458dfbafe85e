"""Multi-clip pipeline driver - split, request, poll and merge against one shared narration track."""

import uuid
from datetime import datetime
from typing import Any, Optional, Union

from clipsync.core.config import Settings
from clipsync.core.errors import MediaProcessingError, NoCompletedClipsError, ProviderError, ScriptInputError
from clipsync.models.schemas import (
    JobStatus,
    MultiClipJob,
    ProviderName,
    ScriptSection,
    StepId,
    StepStatus,
    initialize_steps,
    update_step,
)
from clipsync.services.clip_orchestrator import ClipOrchestrator
from clipsync.services.compositor import Compositor
from clipsync.services.narration_slicer import NarrationSlicer
from clipsync.services.segmenter import Segmenter
from clipsync.services.video_providers import ProviderRegistry
from clipsync.storage.blob_store import LocalBlobStore
from clipsync.storage.repository import JobRepository
from clipsync.utils.error_handler import format_error_message, get_fallback_suggestion


class MultiClipPipeline:
    """
    Job driver for the multi-clip flow.

    `start` submits every clip and persists the job; `tick` performs one polling round and
    merges once every clip has settled. The caller owns the polling schedule.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: JobRepository,
        blob_store: LocalBlobStore,
        registry: ProviderRegistry,
    ):
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.blob_store = blob_store
        self.registry = registry
        self.segmenter = Segmenter(settings, logger)
        self.compositor = Compositor(settings, logger, blob_store=blob_store)
        self.slicer = NarrationSlicer(settings, logger, blob_store)

    def _orchestrator(self, job_id: str) -> ClipOrchestrator:
        return ClipOrchestrator(
            self.settings, self.logger.bind(job_id=job_id), self.registry, self.blob_store, job_id=job_id
        )

    def _slice_narration(
        self, job_id: str, audio_url: str, sections: list[ScriptSection]
    ) -> tuple[str, Optional[list[str]]]:
        """
        Fetch the narration into the store and cut one segment per section.

        Returns the (possibly localized) narration URL and the segment URLs. Slicing is
        best effort: on failure clips carry no segment and the full track is still merged.
        """
        if not audio_url:
            return audio_url, None
        try:
            narration_path = self.blob_store.localize(audio_url)
        except ProviderError as e:
            self.logger.warning(format_error_message("Fetching narration", e, context={"job_id": job_id}))
            return audio_url, None
        local_url = self.blob_store.url_for(narration_path)
        if not narration_path.exists():
            self.logger.warning(f"Narration not found at {narration_path}; clips carry no audio segments")
            return local_url, None

        try:
            segment_urls = self.slicer.slice(
                [s.duration_seconds for s in sections], narration_path, prefix=f"narration-{job_id}"
            )
        except MediaProcessingError as e:
            self.logger.warning(
                format_error_message(
                    "Slicing narration",
                    e,
                    context={"job_id": job_id},
                    suggestion=get_fallback_suggestion("Media Processing", e),
                )
            )
            return local_url, None
        return local_url, segment_urls

    def start(
        self,
        topic: str,
        script: str,
        audio_url: str,
        audio_duration_seconds: float,
        provider: Optional[Union[str, ProviderName]] = None,
        model: Optional[str] = None,
        category: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> MultiClipJob:
        """
        Create a job: split the script, build prompts and request one clip per section.

        The script and narration audio come from upstream services and are taken as given.

        Returns:
            The persisted job record

        Raises:
            ScriptInputError: If the script yields no sections (the job is saved as failed)
            UnknownProviderError: If the provider is not registered
        """
        video_provider = self.registry.get(provider or self.settings.default_provider)
        job_id = job_id or f"job_{datetime.now():%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:6]}"
        orchestrator = self._orchestrator(job_id)
        model = model or orchestrator.default_model(video_provider.name)

        steps = initialize_steps()
        now = datetime.now()
        for step_id in (StepId.SCRIPT, StepId.TTS):
            steps = update_step(steps, step_id, status=StepStatus.COMPLETED, start_time=now, end_time=now)
        steps = update_step(steps, StepId.SPLIT, status=StepStatus.PROCESSING, start_time=now)

        job = MultiClipJob(
            id=job_id,
            topic=topic,
            category=category,
            status=JobStatus.PROMPTS,
            script=script,
            audio_url=audio_url,
            audio_duration=audio_duration_seconds,
            provider=video_provider.name,
            model=model,
            steps=steps,
        )

        self.logger.info("=" * 60)
        self.logger.info(f"Starting multi-clip job {job_id}: {topic}")
        self.logger.info("=" * 60)

        try:
            sections = self.segmenter.split_or_raise(
                script,
                audio_duration_seconds,
                target_clip_seconds=min(self.settings.target_clip_seconds, video_provider.max_duration_seconds),
                min_seconds=max(self.settings.min_clip_seconds, video_provider.min_duration_seconds),
                max_seconds=min(self.settings.max_clip_seconds, video_provider.max_duration_seconds),
            )
        except ScriptInputError as e:
            message = format_error_message("Splitting script", e, context={"job_id": job_id})
            self.logger.error(message)
            failed = job.model_copy(
                update={
                    "status": JobStatus.FAILED,
                    "error_message": message,
                    "steps": update_step(
                        job.steps, StepId.SPLIT, status=StepStatus.FAILED, end_time=datetime.now(), error=str(e)
                    ),
                }
            )
            self.repository.save_job(failed)
            raise

        steps = update_step(job.steps, StepId.SPLIT, status=StepStatus.COMPLETED, end_time=datetime.now())
        steps = update_step(steps, StepId.PROMPTS, status=StepStatus.PROCESSING, start_time=datetime.now())
        audio_url, segment_urls = self._slice_narration(job_id, audio_url, sections)
        clips = orchestrator.build_prompts(self.segmenter.sections_to_clips(sections, segment_urls), topic=topic)
        steps = update_step(steps, StepId.PROMPTS, status=StepStatus.COMPLETED, end_time=datetime.now())

        steps = update_step(steps, StepId.RENDER, status=StepStatus.PROCESSING, start_time=datetime.now())
        clips = orchestrator.request_all(clips, video_provider.name, model)

        job = job.model_copy(
            update={
                "status": JobStatus.RENDER,
                "audio_url": audio_url,
                "steps": steps,
                "clips": clips,
                "clip_progress": orchestrator.progress_label(clips),
                "job_ref": orchestrator.build_job_ref(clips, video_provider.name, model, audio_duration_seconds),
                "updated_at": datetime.now(),
            }
        )
        self.repository.save_job(job)
        self.logger.info(f"Job {job_id} rendering: {len(clips)} clips requested")
        return job

    def tick(self, job_id: str) -> MultiClipJob:
        """
        Run one polling round for a job and merge once every clip has settled.

        Finished jobs are returned unchanged. A job whose clips all failed is marked
        failed; partial failures still merge and complete with a reduced clip count.

        Raises:
            KeyError: If the job does not exist
        """
        job = self.repository.load_job(job_id)
        if job is None:
            raise KeyError(f"Job not found: {job_id}")
        if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
            return job

        orchestrator = self._orchestrator(job_id)
        clips = job.clips
        if not clips and job.job_ref is not None:
            self.logger.info(f"Job {job_id}: rebuilding clips from job reference")
            clips = orchestrator.clips_from_job_ref(job.job_ref)

        result = orchestrator.poll_once(clips)
        job = self.repository.update_job(job_id, clips=result.clips, clip_progress=result.progress)

        if not result.all_settled:
            return job

        steps = update_step(job.steps, StepId.RENDER, status=StepStatus.COMPLETED, end_time=datetime.now())
        steps = update_step(steps, StepId.MERGE, status=StepStatus.PROCESSING, start_time=datetime.now())
        job = self.repository.update_job(job_id, status=JobStatus.MERGE, steps=steps)

        try:
            narration_path = self.blob_store.localize(job.audio_url) if job.audio_url else None
            composition = self.compositor.merge_clips(result.clips, narration_path, job.audio_duration or 0.0)
        except NoCompletedClipsError as e:
            message = format_error_message(
                "Merging clips",
                e,
                context={"job_id": job_id, "clips": result.progress},
                suggestion=get_fallback_suggestion("Merge", e),
            )
            self.logger.error(message)
            return self.repository.update_job(
                job_id,
                status=JobStatus.FAILED,
                error_message=message,
                steps=update_step(job.steps, StepId.MERGE, status=StepStatus.FAILED, end_time=datetime.now(), error=str(e)),
            )
        except Exception as e:
            message = format_error_message(
                "Merging clips", e, context={"job_id": job_id}, suggestion=get_fallback_suggestion("Merge", e)
            )
            self.logger.error(message)
            self.repository.update_job(
                job_id,
                status=JobStatus.FAILED,
                error_message=message,
                steps=update_step(job.steps, StepId.MERGE, status=StepStatus.FAILED, end_time=datetime.now(), error=str(e)),
            )
            raise

        if result.failed_count:
            self.logger.warning(f"Job {job_id}: {result.failed_count} clips failed, merged {result.progress}")

        return self.repository.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            video_url=self.blob_store.url_for(composition.output_path),
            clip_progress=result.progress,
            steps=update_step(job.steps, StepId.MERGE, status=StepStatus.COMPLETED, end_time=datetime.now()),
        )
