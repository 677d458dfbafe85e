"""Tests for Duration Adjuster service."""

from pathlib import Path
from unittest.mock import patch

import pytest

from clipsync.core.errors import MediaProcessingError
from clipsync.models.schemas import AdjustmentType, Scene, VideoStatus
from clipsync.services.duration_adjuster import DurationAdjuster, choose_adjustment


@pytest.fixture
def adjuster(settings, logger, tmp_path):
    """Create DurationAdjuster writing into a temp directory."""
    return DurationAdjuster(settings, logger, output_dir=tmp_path / "adjusted")


@pytest.fixture
def source_clip(tmp_path) -> Path:
    """A stand-in clip file (contents are never decoded when rendering is mocked)."""
    path = tmp_path / "source.mp4"
    path.write_bytes(b"source-bytes")
    return path


def _scene(video_path, video_ms: int, target_ms: int, **extra) -> Scene:
    return Scene(
        index=extra.pop("index", 0),
        text="Narration for the scene.",
        audio_duration_ms=target_ms,
        video_path=str(video_path) if video_path else None,
        video_duration_ms=video_ms,
        video_status=VideoStatus.COMPLETED,
        **extra,
    )


@pytest.mark.parametrize(
    "clip_ms, target_ms, expected",
    [
        (5000, 5300, AdjustmentType.NONE),
        (6000, 5600, AdjustmentType.NONE),
        (5000, 6200, AdjustmentType.FREEZE),
        (5000, 7000, AdjustmentType.FREEZE),
        (5000, 8000, AdjustmentType.KEN_BURNS),
        (5000, 9000, AdjustmentType.KEN_BURNS),
        (5000, 9500, AdjustmentType.LOOP),
        (9000, 6000, AdjustmentType.TRIM),
    ],
)
def test_choose_adjustment(clip_ms, target_ms, expected):
    """Test the decision rule over delta = target - actual."""
    assert choose_adjustment(clip_ms, target_ms) == expected


def test_adjust_none_copies_source(adjuster, source_clip):
    """Test a near-match is copied as-is and keeps its duration."""
    with patch.object(DurationAdjuster, "_render") as mock_render:
        result = adjuster.adjust(_scene(source_clip, 6000, 6300))

    mock_render.assert_not_called()
    assert result.adjustment_type == AdjustmentType.NONE
    assert result.final_duration_ms == 6000
    assert result.fallback is False
    assert Path(result.adjusted_path).read_bytes() == b"source-bytes"


def test_adjust_ken_burns_renders_to_target(adjuster, source_clip):
    """Test a 2-4s shortfall renders the zoom correction."""
    with patch.object(DurationAdjuster, "_render") as mock_render, patch.object(
        DurationAdjuster, "measure_duration_ms", return_value=8000
    ):
        result = adjuster.adjust(_scene(source_clip, 5000, 8000))

    assert result.adjustment_type == AdjustmentType.KEN_BURNS
    assert result.final_duration_ms == 8000
    _, output, adjustment, target_seconds, dub_audio = mock_render.call_args[0]
    assert adjustment == AdjustmentType.KEN_BURNS
    assert target_seconds == 8.0
    assert dub_audio is None
    assert output == Path(result.adjusted_path)


def test_adjust_uses_explicit_target(adjuster, source_clip):
    """Test an explicit target overrides the scene's slot length."""
    with patch.object(DurationAdjuster, "_render"), patch.object(
        DurationAdjuster, "measure_duration_ms", return_value=6000
    ):
        result = adjuster.adjust(_scene(source_clip, 9000, 9000), target_duration_ms=6000)

    assert result.adjustment_type == AdjustmentType.TRIM
    assert result.target_duration_ms == 6000


def test_adjust_measures_missing_clip_duration(adjuster, source_clip):
    """Test the clip is measured when its duration is unknown."""
    scene = _scene(source_clip, 5000, 9500).model_copy(update={"video_duration_ms": None})

    with patch.object(DurationAdjuster, "_render"), patch.object(
        DurationAdjuster, "measure_duration_ms", side_effect=[5000, 9500]
    ):
        result = adjuster.adjust(scene)

    assert result.original_duration_ms == 5000
    assert result.adjustment_type == AdjustmentType.LOOP


def test_adjust_dubs_separate_narration(adjuster, source_clip, tmp_path):
    """Test narration audio is passed for dubbing when the clip has none baked in."""
    audio = tmp_path / "slot.mp3"
    audio.write_bytes(b"audio")
    scene = _scene(source_clip, 5000, 6200, audio_path=str(audio), audio_included=False)

    with patch.object(DurationAdjuster, "_render") as mock_render, patch.object(
        DurationAdjuster, "measure_duration_ms", return_value=6200
    ):
        adjuster.adjust(scene)

    assert mock_render.call_args[0][4] == audio


def test_adjust_skips_dubbing_when_audio_baked_in(adjuster, source_clip, tmp_path):
    """Test provider-baked narration is never re-dubbed."""
    audio = tmp_path / "slot.mp3"
    audio.write_bytes(b"audio")
    scene = _scene(source_clip, 5000, 6200, audio_path=str(audio), audio_included=True)

    with patch.object(DurationAdjuster, "_render") as mock_render, patch.object(
        DurationAdjuster, "measure_duration_ms", return_value=6200
    ):
        adjuster.adjust(scene)

    assert mock_render.call_args[0][4] is None


def test_adjust_none_with_dubbing_keeps_clip_duration(adjuster, source_clip, tmp_path):
    """Test a near-match still gets dubbed without changing its reported length."""
    audio = tmp_path / "slot.mp3"
    audio.write_bytes(b"audio")
    scene = _scene(source_clip, 6000, 6300, audio_path=str(audio))

    with patch.object(DurationAdjuster, "_render") as mock_render:
        result = adjuster.adjust(scene)

    mock_render.assert_called_once()
    assert result.adjustment_type == AdjustmentType.NONE
    assert result.final_duration_ms == 6000


def test_adjust_falls_back_to_source_on_render_failure(adjuster, source_clip):
    """Test a failed re-encode uses the unmodified clip and reports its duration."""
    with patch.object(DurationAdjuster, "_render", side_effect=RuntimeError("ffmpeg exploded")):
        result = adjuster.adjust(_scene(source_clip, 5000, 9500))

    assert result.fallback is True
    assert result.adjustment_type == AdjustmentType.NONE
    assert result.final_duration_ms == 5000
    assert result.target_duration_ms == 9500
    assert Path(result.adjusted_path).read_bytes() == b"source-bytes"


def test_adjust_missing_source_raises(adjuster, tmp_path):
    """Test a missing source clip cannot fall back and raises."""
    with pytest.raises(MediaProcessingError):
        adjuster.adjust(_scene(tmp_path / "missing.mp4", 5000, 6000))


def test_adjust_scene_without_video_raises(adjuster):
    """Test a scene with no clip path raises."""
    with pytest.raises(MediaProcessingError):
        adjuster.adjust(_scene(None, 5000, 6000))


def test_measure_missing_file_raises(adjuster, tmp_path):
    """Test probing a missing file raises MediaProcessingError."""
    with pytest.raises(MediaProcessingError):
        adjuster.measure_duration_ms(tmp_path / "missing.mp4")


def test_adjust_all_marks_scenes_adjusted(adjuster, source_clip, tmp_path):
    """Test adjust_all sets status, type and path, and fails unusable scenes."""
    pending = Scene(index=1, text="Pending.", audio_duration_ms=5000)
    broken = _scene(tmp_path / "gone.mp4", 5000, 5000, index=2)
    scenes = [_scene(source_clip, 6000, 6100, index=0), pending, broken]

    updated = adjuster.adjust_all(scenes)

    assert updated[0].video_status == VideoStatus.ADJUSTED
    assert updated[0].adjustment_type == AdjustmentType.NONE
    assert Path(updated[0].adjusted_video_path).exists()
    assert updated[1] == pending
    assert updated[2].video_status == VideoStatus.FAILED
    assert updated[2].adjustment_type is None
    assert "not found" in updated[2].error_message


def test_adjust_all_records_fallback(adjuster, source_clip):
    """Test scenes that fell back are adjusted with a note."""
    with patch.object(DurationAdjuster, "_render", side_effect=RuntimeError("decode error")):
        updated = adjuster.adjust_all([_scene(source_clip, 5000, 9500)])

    assert updated[0].video_status == VideoStatus.ADJUSTED
    assert updated[0].video_duration_ms == 5000
    assert updated[0].error_message


@pytest.fixture
def rendered_clip(tmp_path) -> Path:
    """Encode a real 2-second clip, skipping when no encoder is available."""
    path = tmp_path / "real.mp4"
    try:
        from moviepy import ColorClip

        clip = ColorClip(size=(64, 112), color=(200, 40, 40), duration=2.0)
        clip.write_videofile(str(path), fps=10, codec="libx264", audio=False, logger=None)
        clip.close()
    except Exception as e:
        pytest.skip(f"Video encoding unavailable: {e}")
    return path


@pytest.mark.parametrize(
    "target_ms, expected",
    [
        (3000, AdjustmentType.FREEZE),
        (5000, AdjustmentType.KEN_BURNS),
        (7000, AdjustmentType.LOOP),
        (1000, AdjustmentType.TRIM),
    ],
)
def test_real_render_reaches_target(settings, logger, tmp_path, rendered_clip, target_ms, expected):
    """Test each strategy renders a file close to the target length."""
    settings.video_fps = 10
    settings.render_preset = "ultrafast"
    adjuster = DurationAdjuster(settings, logger, output_dir=tmp_path / "out")

    result = adjuster.adjust(_scene(rendered_clip, 2000, target_ms))

    assert result.adjustment_type == expected
    assert result.fallback is False
    assert abs(result.final_duration_ms - target_ms) <= 200
