"""Tests for pipeline data models."""

import pytest
from pydantic import ValidationError

from clipsync.models.schemas import (
    AdjustmentType,
    ClipInfo,
    ClipStatus,
    MultiClipJob,
    MultiClipJobRef,
    PollResult,
    ProviderName,
    Scene,
    ScriptSection,
    StepId,
    StepStatus,
    VideoStatus,
    initialize_steps,
    update_step,
)


def test_scene_adjusted_requires_adjustment_type():
    """Test an adjusted scene must name its correction."""
    with pytest.raises(ValidationError):
        Scene(index=0, text="A.", audio_duration_ms=5000, video_status=VideoStatus.ADJUSTED)


def test_scene_adjustment_type_requires_adjusted_status():
    """Test a correction cannot be recorded on an unadjusted scene."""
    with pytest.raises(ValidationError):
        Scene(
            index=0,
            text="A.",
            audio_duration_ms=5000,
            video_status=VideoStatus.COMPLETED,
            adjustment_type=AdjustmentType.TRIM,
        )


def test_scene_adjusted_with_type_is_valid():
    scene = Scene(
        index=0,
        text="A.",
        audio_duration_ms=5000,
        video_status=VideoStatus.ADJUSTED,
        adjustment_type=AdjustmentType.NONE,
    )

    assert scene.adjustment_type == AdjustmentType.NONE


def test_script_section_is_immutable():
    """Test sections cannot be edited after splitting."""
    section = ScriptSection(text="A.", duration_seconds=5.0)

    with pytest.raises(ValidationError):
        section.duration_seconds = 6.0


class TestMultiClipJobRef:
    """Tests for the job reference and its legacy string form."""

    def test_parse_legacy_token_with_pipes_in_ids(self):
        """Test sub-job ids containing '|' survive parsing."""
        token = "multiclip|veo|veo-3.1|25.5|veo|models/a/operations/1,veo|models/a/operations/2"

        ref = MultiClipJobRef.from_legacy_token(token)

        assert ref.provider == ProviderName.VEO
        assert ref.model == "veo-3.1"
        assert ref.duration_seconds == 25.5
        assert ref.sub_job_ids == ["veo|models/a/operations/1", "veo|models/a/operations/2"]

    def test_format_legacy_token(self):
        ref = MultiClipJobRef(
            provider=ProviderName.HIGGSFIELD,
            model="seedance-1.5",
            duration_seconds=30.0,
            sub_job_ids=["higgsfield|a", "higgsfield|b"],
        )

        assert ref.to_legacy_token() == "multiclip|higgsfield|seedance-1.5|30|higgsfield|a,higgsfield|b"
        assert MultiClipJobRef.from_legacy_token(ref.to_legacy_token()) == ref

    @pytest.mark.parametrize("token", ["veo|models/x", "multiclip|veo|veo-3", "other|veo|m|1|a"])
    def test_rejects_malformed_tokens(self, token):
        """Test tokens without the prefix or all fields are rejected."""
        with pytest.raises(ValueError):
            MultiClipJobRef.from_legacy_token(token)


def test_update_step_returns_new_list():
    """Test step updates leave the original list untouched."""
    steps = initialize_steps()

    updated = update_step(steps, StepId.SPLIT, status=StepStatus.FAILED, error="empty script")

    assert [s.id for s in steps] == list(StepId)
    assert all(s.status == StepStatus.PENDING for s in steps)
    split = next(s for s in updated if s.id == StepId.SPLIT)
    assert split.status == StepStatus.FAILED
    assert split.error == "empty script"


def test_poll_result_counts():
    """Test counts and the progress label."""
    clips = [
        ClipInfo(index=0, script_section="A.", duration=5.0, status=ClipStatus.COMPLETED),
        ClipInfo(index=1, script_section="B.", duration=5.0, status=ClipStatus.FAILED),
        ClipInfo(index=2, script_section="C.", duration=5.0, status=ClipStatus.PROCESSING),
        ClipInfo(index=3, script_section="D.", duration=5.0, status=ClipStatus.COMPLETED),
    ]

    result = PollResult(clips=clips, all_settled=False)

    assert result.completed_count == 2
    assert result.failed_count == 1
    assert result.pending_count == 1
    assert result.progress == "2/4"


def test_clip_settled_states():
    clip = ClipInfo(index=0, script_section="A.", duration=5.0)

    assert not clip.is_settled
    assert clip.model_copy(update={"status": ClipStatus.FAILED}).is_settled


def test_job_defaults():
    """Test a new job starts with six pending steps and no clips."""
    job = MultiClipJob(id="job1", topic="Harbor")

    assert len(job.steps) == 6
    assert job.clips == []
    assert job.provider == ProviderName.HIGGSFIELD
