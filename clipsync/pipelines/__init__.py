"""Pipeline drivers for the ClipSync shorts pipeline."""

from clipsync.pipelines.multi_clip import MultiClipPipeline
from clipsync.pipelines.run_pipeline import main
from clipsync.pipelines.scene_pipeline import ScenePipeline

__all__ = ["MultiClipPipeline", "ScenePipeline", "main"]
