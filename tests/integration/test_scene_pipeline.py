"""Tests for the scene-based adjust-and-compose driver."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from clipsync.models.schemas import AdjustmentType, ClipInfo, ClipStatus, ProviderName, Scene, VideoStatus
from clipsync.pipelines.scene_pipeline import ScenePipeline
from clipsync.services.duration_adjuster import DurationAdjuster
from clipsync.services.video_providers import ProviderRegistry
from tests.fakes import FakeProvider


@pytest.fixture
def veo_registry(settings, logger):
    return ProviderRegistry([FakeProvider(settings, logger, name=ProviderName.VEO, min_duration=4, max_duration=8)])


@pytest.fixture
def pipeline(settings, logger, blob_store, veo_registry):
    return ScenePipeline(settings, logger, blob_store, veo_registry)


def _scenes() -> list[Scene]:
    return [
        Scene(index=0, text="The harbor wakes.", audio_duration_ms=6000),
        Scene(index=1, text="Boats leave at dawn.", audio_duration_ms=7000),
        Scene(index=2, text="Gulls follow them out.", audio_duration_ms=5000),
    ]


def _clips(blob_store) -> list[ClipInfo]:
    return [
        ClipInfo(
            index=0,
            script_section="The harbor wakes.",
            duration=6.0,
            status=ClipStatus.COMPLETED,
            provider_job_id="veo|op-0",
            video_url=blob_store.save(b"clip-0", "clip-0.mp4"),
        ),
        ClipInfo(
            index=1,
            script_section="Boats leave at dawn.",
            duration=7.0,
            status=ClipStatus.FAILED,
            provider_job_id="veo|op-1",
            error_message="content policy violation",
        ),
        ClipInfo(index=2, script_section="Gulls follow them out.", duration=5.0, status=ClipStatus.PROCESSING),
    ]


def test_scenes_from_clips(pipeline, blob_store):
    """Test clip outcomes map onto scene statuses and baked audio skips dubbing."""
    scenes = pipeline.scenes_from_clips(_scenes(), _clips(blob_store), ProviderName.VEO)

    assert scenes[0].video_status == VideoStatus.COMPLETED
    assert scenes[0].video_path == str(blob_store.resolve_path("/videos/clip-0.mp4"))
    assert scenes[0].audio_included is True
    assert scenes[1].video_status == VideoStatus.FAILED
    assert scenes[1].error_message == "content policy violation"
    assert scenes[2].video_status == VideoStatus.GENERATING


def test_run_adjusts_composes_and_writes_timeline(pipeline, blob_store, tmp_path):
    """Test usable scenes are adjusted, laid out and joined; failed ones are skipped."""
    scenes = pipeline.scenes_from_clips(_scenes(), _clips(blob_store), ProviderName.VEO)
    scenes[0] = scenes[0].model_copy(update={"video_duration_ms": 6100})
    joined = MagicMock()
    joined.duration = 6.1
    output = tmp_path / "final" / "scenes.mp4"

    with patch("clipsync.services.compositor.VideoFileClip") as mock_video, patch(
        "clipsync.services.compositor.concatenate_videoclips", return_value=joined
    ):
        mock_video.return_value.size = (1080, 1920)
        timeline, result = pipeline.run(scenes, output_path=output)

    assert timeline[0].video_status == VideoStatus.ADJUSTED
    assert timeline[0].adjustment_type == AdjustmentType.NONE
    assert (timeline[0].start_time_ms, timeline[0].end_time_ms) == (0, 6100)
    assert timeline[1].start_time_ms is None
    assert mock_video.call_count == 1
    assert result.output_path == str(output)
    assert result.total_duration_ms == 6100

    data = json.loads(output.with_suffix(".json").read_text(encoding="utf-8"))
    assert [s["index"] for s in data["scenes"]] == [0, 1, 2]
    assert data["scenes"][0]["adjustment_type"] == "none"


@pytest.fixture
def silent_pipeline(settings, logger, blob_store, registry):
    """Pipeline over a provider whose clips have no narration baked in."""
    return ScenePipeline(settings, logger, blob_store, registry)


def _write_segment(path, logger=None):
    Path(path).write_bytes(b"segment")


def test_attach_narration_gives_each_scene_its_slot(silent_pipeline, blob_store):
    """Test the narration is cut on the scene slot boundaries."""
    narration_path = blob_store.resolve_path(blob_store.save(b"narration", "narration.mp3", kind="audio"))

    with patch("clipsync.services.narration_slicer.AudioFileClip") as mock_audio:
        mock_audio.return_value.duration = 18.0
        mock_audio.return_value.subclipped.return_value.write_audiofile.side_effect = _write_segment
        scenes = silent_pipeline.attach_narration(list(reversed(_scenes())), narration_path)

    cuts = [c[0] for c in mock_audio.return_value.subclipped.call_args_list]
    assert cuts == [(0.0, 6.0), (6.0, 13.0), (13.0, 18.0)]
    assert [s.index for s in scenes] == [0, 1, 2]
    assert all(Path(s.audio_path).read_bytes() == b"segment" for s in scenes)
    assert len({s.audio_path for s in scenes}) == 3


def test_scene_flow_dubs_silent_clips(silent_pipeline, blob_store, tmp_path):
    """Test clips without baked audio are dubbed with their own narration segment."""
    segment_url = blob_store.save(b"segment-0", "narration-seg-0.mp3", kind="audio")
    clips = _clips(blob_store)
    clips[0] = clips[0].model_copy(update={"provider_job_id": "higgsfield|req-0", "audio_url": segment_url})

    scenes = silent_pipeline.scenes_from_clips(_scenes(), clips, ProviderName.HIGGSFIELD)
    assert scenes[0].audio_included is False
    assert scenes[0].audio_path == str(blob_store.resolve_path(segment_url))

    scenes[0] = scenes[0].model_copy(update={"video_duration_ms": 6000})
    joined = MagicMock()
    joined.duration = 6.0

    with patch.object(DurationAdjuster, "_render") as mock_render, patch(
        "clipsync.services.compositor.VideoFileClip"
    ) as mock_video, patch("clipsync.services.compositor.concatenate_videoclips", return_value=joined):
        mock_video.return_value.size = (1080, 1920)
        timeline, _ = silent_pipeline.run(scenes, output_path=tmp_path / "final" / "dubbed.mp4")

    mock_render.assert_called_once()
    assert mock_render.call_args[0][4] == Path(scenes[0].audio_path)
    assert timeline[0].video_status == VideoStatus.ADJUSTED
    assert timeline[0].adjustment_type == AdjustmentType.NONE
