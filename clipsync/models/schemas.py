"""Pydantic models and schemas for the clip rendering pipeline."""

from datetime import datetime
from enum import Enum
from typing import ClassVar, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Enums
# ============================================================================


class ClipStatus(str, Enum):
    """Lifecycle of one generated clip in the multi-clip pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class VideoStatus(str, Enum):
    """Lifecycle of a scene's video in the scene-based pipeline."""

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    ADJUSTED = "adjusted"


class AdjustmentType(str, Enum):
    """Time-correction strategy applied to a finished clip."""

    NONE = "none"
    FREEZE = "freeze"
    KEN_BURNS = "ken_burns"
    LOOP = "loop"
    TRIM = "trim"


class StepStatus(str, Enum):
    """Status of a reported pipeline phase."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class StepId(str, Enum):
    """Named pipeline phases used for progress reporting."""

    SCRIPT = "script"
    TTS = "tts"
    SPLIT = "split"
    PROMPTS = "prompts"
    RENDER = "render"
    MERGE = "merge"


class JobStatus(str, Enum):
    """Overall status of a job record."""

    SCRIPT = "script"
    AUDIO = "audio"
    PROMPTS = "prompts"
    RENDER = "render"
    MERGE = "merge"
    COMPLETED = "completed"
    FAILED = "failed"


class ProviderName(str, Enum):
    """Supported video-generation vendors."""

    VEO = "veo"
    HIGGSFIELD = "higgsfield"


TERMINAL_CLIP_STATUSES = (ClipStatus.COMPLETED, ClipStatus.FAILED)


# ============================================================================
# Segmenter Models
# ============================================================================


class ScriptSection(BaseModel):
    """A contiguous span of script text assigned one target spoken duration."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Section text (one or more whole sentences)")
    duration_seconds: float = Field(..., ge=0.0, description="Target spoken duration in seconds")


# ============================================================================
# Clip Orchestrator Models
# ============================================================================


class ClipInfo(BaseModel):
    """One independently generated clip, one per script section."""

    index: int = Field(..., ge=0, description="Position in script order (0-based)")
    script_section: str = Field(..., description="Script text this clip illustrates")
    prompt: str = Field(default="", description="Video generation prompt")
    duration: float = Field(..., description="Requested clip duration in seconds")
    status: ClipStatus = Field(default=ClipStatus.PENDING, description="Clip status")
    provider_job_id: Optional[str] = Field(
        default=None, description="Opaque provider job id, prefixed with the provider tag (e.g. 'veo|...')"
    )
    video_url: Optional[str] = Field(default=None, description="Local URL of the downloaded clip")
    audio_url: Optional[str] = Field(default=None, description="URL of the narration segment for this clip")
    error_message: Optional[str] = Field(default=None, description="Last error for this clip")
    poll_errors: int = Field(default=0, ge=0, description="Consecutive transient poll/download errors")

    @property
    def is_settled(self) -> bool:
        return self.status in TERMINAL_CLIP_STATUSES


class ProviderJobStatus(BaseModel):
    """A provider's answer to a status query."""

    status: ClipStatus = Field(..., description="pending, processing, completed or failed")
    video_url: Optional[str] = Field(default=None, description="Download URL once completed")
    error: Optional[str] = Field(default=None, description="Provider-reported error")
    progress: Optional[float] = Field(default=None, description="Provider-reported progress, if any")


class PollResult(BaseModel):
    """Result of one polling tick over a clip array."""

    clips: list[ClipInfo] = Field(..., description="Updated clips, in index order")
    all_settled: bool = Field(..., description="True once no clip is pending or processing")

    @property
    def completed_count(self) -> int:
        return sum(1 for c in self.clips if c.status == ClipStatus.COMPLETED)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.clips if c.status == ClipStatus.FAILED)

    @property
    def pending_count(self) -> int:
        return len(self.clips) - self.completed_count - self.failed_count

    @property
    def progress(self) -> str:
        return f"{self.completed_count}/{len(self.clips)}"


class MultiClipJobRef(BaseModel):
    """Provider, model, narration duration and sub-job ids of one multi-clip job."""

    LEGACY_PREFIX: ClassVar[str] = "multiclip"

    provider: ProviderName = Field(..., description="Provider that owns every sub-job")
    model: str = Field(..., description="Provider model name")
    duration_seconds: float = Field(..., description="Narration duration the clips cover")
    sub_job_ids: list[str] = Field(default_factory=list, description="Provider job ids in clip order")

    @classmethod
    def from_legacy_token(cls, token: str) -> "MultiClipJobRef":
        """
        Parse a record written as 'multiclip|provider|model|duration|id1,id2,...'.

        Sub-job ids may themselves contain '|', so only the first four separators split.
        """
        parts = token.split("|", 4)
        if len(parts) < 5 or parts[0] != cls.LEGACY_PREFIX:
            raise ValueError(f"Not a multi-clip job token: {token!r}")
        _, provider, model, duration, ids = parts
        return cls(
            provider=ProviderName(provider),
            model=model,
            duration_seconds=float(duration),
            sub_job_ids=[job_id for job_id in ids.split(",") if job_id],
        )

    def to_legacy_token(self) -> str:
        duration = f"{self.duration_seconds:g}"
        return "|".join(
            [self.LEGACY_PREFIX, self.provider.value, self.model, duration, ",".join(self.sub_job_ids)]
        )


# ============================================================================
# Scene Pipeline Models
# ============================================================================


class Scene(BaseModel):
    """A single-clip-per-scene unit: one sentence group, one narration slot, one video."""

    index: int = Field(..., ge=0, description="Scene position in script order")
    text: str = Field(..., description="Narration text for the scene")
    prompt: str = Field(default="", description="Video generation prompt")

    audio_path: Optional[str] = Field(default=None, description="Narration segment for this slot")
    audio_duration_ms: int = Field(..., ge=0, description="Narration slot duration in milliseconds")
    audio_included: bool = Field(
        default=False, description="Provider baked narration audio into the clip; skip dubbing"
    )

    provider_job_id: Optional[str] = Field(default=None, description="Opaque provider job id")
    video_path: Optional[str] = Field(default=None, description="Generated clip path")
    video_duration_ms: Optional[int] = Field(default=None, description="Generated clip duration in milliseconds")
    video_status: VideoStatus = Field(default=VideoStatus.PENDING, description="Video status")

    adjustment_type: Optional[AdjustmentType] = Field(default=None, description="Applied correction")
    adjusted_video_path: Optional[str] = Field(default=None, description="Corrected clip path")

    start_time_ms: Optional[int] = Field(default=None, description="Timeline start")
    end_time_ms: Optional[int] = Field(default=None, description="Timeline end")
    error_message: Optional[str] = Field(default=None, description="Last error for this scene")

    @model_validator(mode="after")
    def _adjustment_matches_status(self) -> "Scene":
        adjusted = self.video_status == VideoStatus.ADJUSTED
        if adjusted != (self.adjustment_type is not None):
            raise ValueError("adjustment_type must be set if and only if video_status is 'adjusted'")
        return self


class AdjustmentResult(BaseModel):
    """Outcome of correcting one clip to its narration slot."""

    scene_index: int = Field(..., description="Index of the adjusted scene")
    original_path: str = Field(..., description="Source clip path")
    adjusted_path: str = Field(..., description="Corrected clip path")
    adjustment_type: AdjustmentType = Field(..., description="Applied correction")
    original_duration_ms: int = Field(..., description="Source clip duration")
    target_duration_ms: int = Field(..., description="Narration slot duration")
    final_duration_ms: int = Field(..., description="Achieved duration (may drift on fallback)")
    fallback: bool = Field(default=False, description="True when the unmodified source was used")


class MergePlan(BaseModel):
    """What a multi-clip merge will contain, computed before any rendering."""

    clips: list[ClipInfo] = Field(..., description="Completed clips in index order")
    total_clip_seconds: float = Field(..., description="Summed duration of the completed clips")
    narration_seconds: float = Field(..., description="Narration duration the output is capped at")
    filler_seconds: float = Field(default=0.0, description="Held-frame filler appended after the last clip")
    filler_source_index: int = Field(..., description="Index of the clip whose final frame feeds the filler")


class CompositionResult(BaseModel):
    """Outcome of joining clips into one output video."""

    output_path: str = Field(..., description="Final video path")
    total_duration_ms: int = Field(..., description="Final video duration")
    clips_included: int = Field(..., description="Number of real clips in the output")
    filler_seconds: float = Field(default=0.0, description="Length of appended held-frame filler")


# ============================================================================
# Job Record Models
# ============================================================================


class MultiClipStep(BaseModel):
    """A named pipeline phase, used only for progress reporting."""

    id: StepId = Field(..., description="Phase id")
    name: str = Field(..., description="Display name")
    status: StepStatus = Field(default=StepStatus.PENDING, description="Phase status")
    start_time: Optional[datetime] = Field(default=None, description="When the phase started")
    end_time: Optional[datetime] = Field(default=None, description="When the phase ended")
    error: Optional[str] = Field(default=None, description="Failure message")


STEP_NAMES: dict[StepId, str] = {
    StepId.SCRIPT: "Script generation",
    StepId.TTS: "Narration audio (TTS)",
    StepId.SPLIT: "Script split",
    StepId.PROMPTS: "Video prompts",
    StepId.RENDER: "Clip rendering",
    StepId.MERGE: "Clip merge",
}


def initialize_steps() -> list[MultiClipStep]:
    """Create the six reporting phases, all pending."""
    return [MultiClipStep(id=step_id, name=name) for step_id, name in STEP_NAMES.items()]


def update_step(steps: list[MultiClipStep], step_id: StepId, **updates) -> list[MultiClipStep]:
    """Return a new step list with `updates` applied to the step matching `step_id`."""
    return [step.model_copy(update=updates) if step.id == step_id else step for step in steps]


class MultiClipJob(BaseModel):
    """Job record read and written by the persistence boundary."""

    id: str = Field(..., description="Job identifier")
    topic: str = Field(..., description="Video topic")
    category: Optional[str] = Field(default=None, description="Topic category")
    status: JobStatus = Field(default=JobStatus.SCRIPT, description="Overall job status")

    script: Optional[str] = Field(default=None, description="Full narration script")
    audio_url: Optional[str] = Field(default=None, description="Narration audio URL")
    audio_duration: Optional[float] = Field(default=None, description="Measured narration duration (seconds)")
    video_url: Optional[str] = Field(default=None, description="Final merged video URL")
    error_message: Optional[str] = Field(default=None, description="Human-readable failure message")
    clip_progress: Optional[str] = Field(default=None, description="Progress label such as '3/6'")

    provider: ProviderName = Field(default=ProviderName.HIGGSFIELD, description="Video provider")
    model: str = Field(default="seedance-1.5", description="Provider model")
    job_ref: Optional[MultiClipJobRef] = Field(default=None, description="Structured provider job reference")

    steps: list[MultiClipStep] = Field(default_factory=initialize_steps, description="Reporting phases")
    clips: list[ClipInfo] = Field(default_factory=list, description="Per-section clips")

    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")
