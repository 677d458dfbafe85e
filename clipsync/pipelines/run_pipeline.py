"""Command-line driver - split scripts, start multi-clip jobs and poll them to completion."""

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Optional

from moviepy import AudioFileClip

from clipsync.core.config import Settings, settings
from clipsync.core.errors import PipelineError
from clipsync.core.logging_config import get_logger, setup_logging
from clipsync.models.schemas import JobStatus, MultiClipJob
from clipsync.pipelines.multi_clip import MultiClipPipeline
from clipsync.services.segmenter import Segmenter
from clipsync.services.video_providers import build_default_registry
from clipsync.storage.blob_store import LocalBlobStore
from clipsync.storage.repository import JobRepository


def measure_audio_seconds(path: Path) -> float:
    """Read the duration of an audio file."""
    clip = AudioFileClip(str(path))
    try:
        return float(clip.duration)
    finally:
        clip.close()


def _read_script(args: argparse.Namespace) -> str:
    if args.script_file:
        return Path(args.script_file).read_text(encoding="utf-8")
    return args.script or ""


def _audio_seconds(args: argparse.Namespace, blob_store: LocalBlobStore) -> float:
    if args.audio_duration is not None:
        return args.audio_duration
    if args.audio_url:
        return measure_audio_seconds(blob_store.resolve_path(args.audio_url))
    raise SystemExit("Either --audio-duration or --audio-url is required")


def build_pipeline(app_settings: Settings, logger: Any) -> MultiClipPipeline:
    """Wire the multi-clip pipeline from settings."""
    blob_store = LocalBlobStore(app_settings, logger)
    return MultiClipPipeline(
        app_settings,
        logger,
        repository=JobRepository(app_settings, logger),
        blob_store=blob_store,
        registry=build_default_registry(app_settings, logger),
    )


def _report(job: MultiClipJob, logger: Any) -> int:
    logger.info(f"Job {job.id}: {job.status.value} (clips {job.clip_progress})")
    if job.status == JobStatus.COMPLETED:
        logger.info(f"✅ Video: {job.video_url}")
        return 0
    if job.status == JobStatus.FAILED:
        logger.error(job.error_message or "Job failed")
        return 1
    return 0


def cmd_split(args: argparse.Namespace, logger: Any) -> int:
    blob_store = LocalBlobStore(settings, logger)
    segmenter = Segmenter(settings, logger)
    sections = segmenter.split_or_raise(_read_script(args), _audio_seconds(args, blob_store))
    for i, section in enumerate(sections):
        print(f"[{i}] {section.duration_seconds:>5.1f}s  {section.text}")
    print(f"Total: {sum(s.duration_seconds for s in sections):.1f}s in {len(sections)} sections")
    return 0


def cmd_start(args: argparse.Namespace, logger: Any) -> MultiClipJob:
    pipeline = build_pipeline(settings, logger)
    job = pipeline.start(
        topic=args.topic,
        script=_read_script(args),
        audio_url=args.audio_url or "",
        audio_duration_seconds=_audio_seconds(args, pipeline.blob_store),
        provider=args.provider,
        model=args.model,
        category=args.category,
    )
    print(job.id)
    return job


def cmd_poll(args: argparse.Namespace, logger: Any) -> int:
    pipeline = build_pipeline(settings, logger)
    return _report(pipeline.tick(args.job_id), logger)


def cmd_run(args: argparse.Namespace, logger: Any) -> int:
    job = cmd_start(args, logger)
    pipeline = build_pipeline(settings, logger)
    for tick in range(1, args.max_ticks + 1):
        time.sleep(args.interval)
        logger.info(f"Polling tick {tick}/{args.max_ticks}")
        job = pipeline.tick(job.id)
        if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
            return _report(job, logger)

    logger.warning(f"Job {job.id} still rendering after {args.max_ticks} ticks; resume with 'poll {job.id}'")
    return 2


def _add_script_arguments(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--script", type=str, help="Narration script text")
    source.add_argument("--script-file", type=str, help="Path to a UTF-8 file holding the narration script")
    parser.add_argument(
        "--audio-url",
        type=str,
        default=None,
        help="Local URL of the narration audio (e.g. /audio/narration.mp3), resolved under the media root",
    )
    parser.add_argument(
        "--audio-duration",
        type=float,
        default=None,
        help="Measured narration duration in seconds (read from --audio-url when omitted)",
    )


def _add_job_arguments(parser: argparse.ArgumentParser) -> None:
    _add_script_arguments(parser)
    parser.add_argument("--topic", type=str, required=True, help="Video topic")
    parser.add_argument("--category", type=str, default=None, help="Topic category")
    parser.add_argument(
        "--provider",
        type=str,
        default=None,
        choices=["veo", "higgsfield"],
        help=f"Video provider (default: {settings.default_provider})",
    )
    parser.add_argument("--model", type=str, default=None, help="Provider model (default: provider's configured model)")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for the clip pipeline CLI."""
    parser = argparse.ArgumentParser(
        description=f"{settings.app_name} - narration-timed multi-clip video pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {settings.app_version}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    split_parser = subparsers.add_parser("split", help="Print the timed sections for a script")
    _add_script_arguments(split_parser)

    start_parser = subparsers.add_parser("start", help="Split a script and request one clip per section")
    _add_job_arguments(start_parser)

    poll_parser = subparsers.add_parser("poll", help="Run one polling round for a job (merges when settled)")
    poll_parser.add_argument("job_id", type=str, help="Job identifier")

    run_parser = subparsers.add_parser("run", help="Start a job and poll it until it finishes")
    _add_job_arguments(run_parser)
    run_parser.add_argument("--interval", type=float, default=10.0, help="Seconds between polling rounds (default: 10)")
    run_parser.add_argument("--max-ticks", type=int, default=60, help="Polling rounds before giving up (default: 60)")

    args = parser.parse_args(argv)

    setup_logging(settings)
    logger = get_logger(__name__, command=args.command)

    try:
        if args.command == "split":
            return cmd_split(args, logger)
        if args.command == "start":
            cmd_start(args, logger)
            return 0
        if args.command == "poll":
            return cmd_poll(args, logger)
        return cmd_run(args, logger)
    except (PipelineError, KeyError) as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
