"""Local blob storage for generated media files."""

from pathlib import Path
from typing import Any

import requests

from clipsync.core.config import Settings
from clipsync.core.errors import ProviderError
from clipsync.utils.io_utils import ensure_dir, timestamped_filename


class LocalBlobStore:
    """
    Write-once file store under the media root.

    Files are addressed by URLs such as '/videos/clip-1.mp4', relative to the media root.
    Remote http(s) URLs can be downloaded but not resolved to local paths.
    """

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the blob store.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.root = Path(settings.media_root)
        self._subdirs = {"video": settings.videos_dir, "audio": settings.audio_dir}

    def save(self, data: bytes, filename: str, kind: str = "video") -> str:
        """
        Persist a payload under a new filename.

        Args:
            data: File contents
            filename: Target filename (must not already exist)
            kind: 'video' or 'audio'

        Returns:
            Local URL of the stored file

        Raises:
            FileExistsError: If the filename is already taken
        """
        subdir = self._subdirs.get(kind)
        if subdir is None:
            raise ValueError(f"Unknown blob kind: {kind}")

        directory = ensure_dir(self.root / subdir)
        path = directory / filename

        # "x" mode refuses to overwrite an existing file
        with open(path, "xb") as f:
            f.write(data)

        url = f"/{subdir}/{filename}"
        self.logger.info(f"Saved {kind} ({len(data) / 1024:.1f} KB): {url}")
        return url

    def resolve_path(self, url: str) -> Path:
        """Map a local URL to its path on disk."""
        if url.startswith(("http://", "https://")):
            raise ValueError(f"Remote URL has no local path: {url}")
        return self.root / url.lstrip("/")

    def url_for(self, path: Path) -> str:
        """Map a path under the media root back to its local URL."""
        relative = Path(path).resolve().relative_to(self.root.resolve())
        return "/" + relative.as_posix()

    def localize(self, url: str, kind: str = "audio") -> Path:
        """
        Return a local path for a URL, fetching remote files into the store first.

        Raises:
            ProviderError: If a remote download fails
        """
        if not url.startswith(("http://", "https://")):
            return self.resolve_path(url)

        suffix = Path(url.split("?", 1)[0]).suffix or ".bin"
        self.logger.info(f"Fetching remote {kind}: {url}")
        local_url = self.save(self.download(url), timestamped_filename("remote", kind, suffix=suffix), kind=kind)
        return self.resolve_path(local_url)

    def download(self, url: str) -> bytes:
        """
        Fetch a payload from a remote URL or from the local store.

        Raises:
            ProviderError: If a remote download fails
            FileNotFoundError: If a local file is missing
        """
        if url.startswith(("http://", "https://")):
            try:
                response = requests.get(url, timeout=self.settings.download_timeout_seconds)
                response.raise_for_status()
            except requests.exceptions.RequestException as e:
                status_code = e.response.status_code if getattr(e, "response", None) is not None else None
                raise ProviderError(f"Download failed: {e}", status_code=status_code) from e
            return response.content

        return self.resolve_path(url).read_bytes()
