"""Loguru setup driven by Settings, with job and clip context on every record."""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from clipsync.core.config import Settings, settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan>{extra[job_tag]} | <level>{message}</level>"
)


def _tag_record(record: dict) -> None:
    """Fill the logger name and a '[job_id#clip]' tag for the console format."""
    extra = record["extra"]
    extra.setdefault("name", record["name"])
    job_id = extra.get("job_id")
    clip_index = extra.get("clip_index")
    tag = ""
    if job_id is not None:
        tag = f" [{job_id}" + (f"#{clip_index}" if clip_index is not None else "") + "]"
    elif clip_index is not None:
        tag = f" [clip {clip_index}]"
    extra["job_tag"] = tag


def setup_logging(app_settings: Optional[Settings] = None) -> None:
    """
    Configure the console sink and, when `log_file` is set, a rotating JSON-lines file sink.

    Level, file, rotation and retention come from settings; `debug` forces DEBUG.
    """
    app_settings = app_settings or settings
    level = "DEBUG" if app_settings.debug else app_settings.log_level.upper()

    handlers: list[dict[str, Any]] = [
        {"sink": sys.stderr, "format": CONSOLE_FORMAT, "level": level, "colorize": True},
    ]
    if app_settings.log_file:
        log_file = Path(app_settings.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            {
                "sink": log_file,
                "level": level,
                "serialize": True,
                "rotation": app_settings.log_rotation,
                "retention": app_settings.log_retention,
                "compression": "zip",
            }
        )

    logger.configure(handlers=handlers, patcher=_tag_record)


def get_logger(name: str, job_id: Optional[str] = None, clip_index: Optional[int] = None, **context: Any) -> Any:
    """
    Get a logger bound to a module name and, optionally, the job and clip it works on.

    Args:
        name: Logger name (typically __name__)
        job_id: Owning job id, shown in console output and kept in file records
        clip_index: Clip or scene index
        **context: Further fields to bind (provider, command, ...)
    """
    if job_id is not None:
        context["job_id"] = job_id
    if clip_index is not None:
        context["clip_index"] = clip_index
    return logger.bind(name=name, **context)


setup_logging()
