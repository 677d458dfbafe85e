"""Exception types raised by the clip pipeline."""

from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ScriptInputError(PipelineError, ValueError):
    """The script or its measured audio cannot be split into sections. Not retried."""


class ProviderError(PipelineError):
    """A video-generation provider rejected or failed a submit/poll call."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class UnknownProviderError(ProviderError):
    """No registered provider matches a provider name or job id prefix."""


class MediaProcessingError(PipelineError):
    """A media file is missing or unreadable, so not even the unmodified source can be used."""


class NoCompletedClipsError(PipelineError):
    """Merging is impossible because no clip completed."""
