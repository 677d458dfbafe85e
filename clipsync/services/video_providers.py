"""Video Providers - interchangeable text-to-video vendors behind one submit/poll interface."""

import json
from typing import Any, Optional, Union

import requests

from clipsync.core.config import Settings
from clipsync.core.errors import ProviderError, UnknownProviderError
from clipsync.models.schemas import ClipStatus, ProviderJobStatus, ProviderName


class VideoProvider:
    """
    Abstract provider for asynchronous video generation jobs.

    Job ids returned by `submit` carry the provider's prefix (e.g. 'veo|...') so the
    owning provider can be recovered from the id alone after a restart.
    """

    name: ProviderName
    job_prefix: str = ""
    legacy_prefixes: tuple[str, ...] = ()
    min_duration_seconds: float = 0.0
    max_duration_seconds: float = float("inf")
    bakes_audio: bool = False

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize provider.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    @property
    def request_delay_seconds(self) -> float:
        """Pause to insert between consecutive submit calls."""
        return 0.0

    def clamp_duration(self, seconds: float) -> float:
        """Clamp a requested clip length into this provider's legal range."""
        return max(self.min_duration_seconds, min(self.max_duration_seconds, seconds))

    def owns_job_id(self, job_id: str) -> bool:
        """Return True if `job_id` was issued by this provider."""
        return any(job_id.startswith(p) for p in (self.job_prefix, *self.legacy_prefixes))

    def strip_prefix(self, job_id: str) -> str:
        """Remove the provider prefix, returning the vendor's native id."""
        for prefix in (self.job_prefix, *self.legacy_prefixes):
            if job_id.startswith(prefix):
                return job_id[len(prefix):]
        return job_id

    def submit(self, prompt: str, duration_seconds: float, aspect_ratio: str, model: str) -> str:
        """
        Request a new video generation job.

        Args:
            prompt: Text prompt
            duration_seconds: Clip length, already clamped to this provider's range
            aspect_ratio: e.g. '9:16'
            model: Provider model name

        Returns:
            Prefixed job id

        Raises:
            ProviderError: If the request is rejected or fails
        """
        raise NotImplementedError("Subclass must implement submit()")

    def poll(self, job_id: str) -> ProviderJobStatus:
        """
        Query the status of a job.

        Args:
            job_id: Prefixed job id returned by `submit`

        Returns:
            Current job status

        Raises:
            ProviderError: If the status request fails
        """
        raise NotImplementedError("Subclass must implement poll()")

    def _request(self, method: str, url: str, **kwargs: Any) -> dict:
        """Send an HTTP request and return the decoded JSON body, wrapping failures in ProviderError."""
        kwargs.setdefault("timeout", self.settings.http_timeout_seconds)
        try:
            response = requests.request(method, url, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            error_msg = f"{self.name.value} API error: {e}"
            status_code = None
            if getattr(e, "response", None) is not None:
                status_code = e.response.status_code
                error_msg += f" - {e.response.text[:500]}"
            raise ProviderError(error_msg, provider=self.name.value, status_code=status_code) from e
        except ValueError as e:
            raise ProviderError(f"{self.name.value} API returned invalid JSON: {e}", provider=self.name.value) from e

        self.logger.debug(f"{self.name.value} response: {json.dumps(data)[:1000]}")
        return data


class VeoProvider(VideoProvider):
    """Google Veo via the Generative Language long-running operations API."""

    name = ProviderName.VEO
    job_prefix = "veo|"
    legacy_prefixes = ("veo-",)
    min_duration_seconds = 4.0
    max_duration_seconds = 8.0
    bakes_audio = True

    MODEL_MAP = {
        "veo-3": "models/veo-3.0-generate-001",
        "veo-3-fast": "models/veo-3.0-fast-generate-001",
        "veo-3.1": "models/veo-3.1-generate-preview",
    }

    def __init__(self, settings: Settings, logger: Any):
        super().__init__(settings, logger)
        self.api_key = settings.google_ai_api_key
        self.api_base = settings.veo_api_base.rstrip("/")

        if not self.api_key:
            self.logger.warning("Google AI API key not configured. Veo generation will not work.")

    @property
    def request_delay_seconds(self) -> float:
        return self.settings.veo_request_delay_seconds

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProviderError("Google AI API key not configured. Set GOOGLE_AI_API_KEY in .env", provider="veo")
        return self.api_key

    def submit(self, prompt: str, duration_seconds: float, aspect_ratio: str, model: str) -> str:
        api_key = self._require_key()
        model_path = self.MODEL_MAP.get(model, self.MODEL_MAP[self.settings.veo_default_model])

        payload = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "aspectRatio": aspect_ratio,
                "durationSeconds": int(round(duration_seconds)),
            },
        }
        self.logger.info(f"Requesting Veo video ({model_path}, {duration_seconds:.1f}s)")
        data = self._request(
            "POST",
            f"{self.api_base}/{model_path}:predictLongRunning",
            params={"key": api_key},
            json=payload,
        )

        operation_name = data.get("name")
        if not operation_name:
            raise ProviderError("Veo API did not return an operation name", provider="veo")
        return f"{self.job_prefix}{operation_name}"

    def poll(self, job_id: str) -> ProviderJobStatus:
        api_key = self._require_key()
        operation_path = self.strip_prefix(job_id)

        data = self._request("GET", f"{self.api_base}/{operation_path}", params={"key": api_key})

        if data.get("error"):
            return ProviderJobStatus(
                status=ClipStatus.FAILED, error=data["error"].get("message", "Unknown Veo error")
            )

        if not data.get("done"):
            return ProviderJobStatus(status=ClipStatus.PROCESSING)

        samples = data.get("response", {}).get("generateVideoResponse", {}).get("generatedSamples") or []
        video_uri = samples[0].get("video", {}).get("uri") if samples else None
        if not video_uri:
            return ProviderJobStatus(status=ClipStatus.FAILED, error="Veo operation finished without a video URI")

        # The file endpoint requires the API key on the download URL
        separator = "&" if "?" in video_uri else "?"
        return ProviderJobStatus(status=ClipStatus.COMPLETED, video_url=f"{video_uri}{separator}key={api_key}")


class HiggsfieldProvider(VideoProvider):
    """Higgsfield platform text-to-video models."""

    name = ProviderName.HIGGSFIELD
    job_prefix = "higgsfield|"
    min_duration_seconds = 5.0
    max_duration_seconds = 10.0

    MODEL_PATHS = {
        "seedance-1.5": "bytedance/seedance/v1/pro/text-to-video",
        "veo-3.1": "bytedance/seedance/v1/pro/text-to-video",
        "kling-2.6": "bytedance/seedance/v1/pro/text-to-video",
    }
    COMPLETED_STATES = ("completed", "done", "success")
    FAILED_STATES = ("failed", "error", "cancelled", "nsfw")

    def __init__(self, settings: Settings, logger: Any):
        super().__init__(settings, logger)
        self.api_base = settings.higgsfield_api_base.rstrip("/")
        self.key_id = settings.higgsfield_api_key_id
        self.key_secret = settings.higgsfield_api_key_secret

        if not (self.key_id and self.key_secret):
            self.logger.warning("Higgsfield API key not configured. Higgsfield generation will not work.")

    @property
    def request_delay_seconds(self) -> float:
        return self.settings.higgsfield_request_delay_seconds

    def _headers(self) -> dict[str, str]:
        if not (self.key_id and self.key_secret):
            raise ProviderError(
                "Higgsfield API key not configured. Set HIGGSFIELD_API_KEY_ID and HIGGSFIELD_API_KEY_SECRET in .env",
                provider="higgsfield",
            )
        return {
            "Authorization": f"Key {self.key_id}:{self.key_secret}",
            "Content-Type": "application/json",
        }

    def submit(self, prompt: str, duration_seconds: float, aspect_ratio: str, model: str) -> str:
        headers = self._headers()
        model_path = self.MODEL_PATHS.get(model, self.MODEL_PATHS["seedance-1.5"])

        payload = {
            "prompt": prompt,
            "aspect_ratio": aspect_ratio,
            "resolution": "720",
            "duration": int(round(duration_seconds)),
        }
        self.logger.info(f"Requesting Higgsfield video ({model}, {duration_seconds:.1f}s)")
        data = self._request("POST", f"{self.api_base}/{model_path}", headers=headers, json=payload)

        request_id = data.get("request_id")
        if not request_id:
            raise ProviderError("Higgsfield API did not return a request_id", provider="higgsfield")
        return f"{self.job_prefix}{request_id}"

    def poll(self, job_id: str) -> ProviderJobStatus:
        headers = self._headers()
        request_id = self.strip_prefix(job_id)

        data = self._request("GET", f"{self.api_base}/requests/{request_id}/status", headers=headers)
        status = str(data.get("status", "")).lower()

        if status in self.COMPLETED_STATES:
            video_url = (
                (data.get("video") or {}).get("url")
                or data.get("output_url")
                or (data.get("result") or {}).get("url")
            )
            if not video_url:
                return ProviderJobStatus(status=ClipStatus.FAILED, error="Higgsfield job finished without a video URL")
            return ProviderJobStatus(status=ClipStatus.COMPLETED, video_url=video_url)

        if status in self.FAILED_STATES:
            error = data.get("error")
            if isinstance(error, dict):
                error = error.get("message")
            return ProviderJobStatus(status=ClipStatus.FAILED, error=error or data.get("message") or "Generation failed")

        return ProviderJobStatus(
            status=ClipStatus.PENDING if status == "queued" else ClipStatus.PROCESSING,
            progress=data.get("progress"),
        )


class ProviderRegistry:
    """Single lookup for provider dispatch by name or by job id prefix."""

    def __init__(self, providers: Optional[list[VideoProvider]] = None):
        self._providers: dict[ProviderName, VideoProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: VideoProvider) -> None:
        self._providers[provider.name] = provider

    def names(self) -> list[ProviderName]:
        return list(self._providers)

    def get(self, name: Union[str, ProviderName]) -> VideoProvider:
        """
        Look up a provider by name.

        Raises:
            UnknownProviderError: If no provider with that name is registered
        """
        try:
            key = ProviderName(name)
        except ValueError as e:
            raise UnknownProviderError(f"Unknown video provider: {name}") from e
        if key not in self._providers:
            raise UnknownProviderError(f"Video provider not registered: {key.value}", provider=key.value)
        return self._providers[key]

    def for_job_id(self, job_id: str) -> VideoProvider:
        """
        Resolve the provider that issued `job_id` from its prefix.

        Raises:
            UnknownProviderError: If no registered provider owns the prefix
        """
        for provider in self._providers.values():
            if provider.owns_job_id(job_id):
                return provider
        raise UnknownProviderError(f"No provider owns job id: {job_id}")


def build_default_registry(settings: Settings, logger: Any) -> ProviderRegistry:
    """Create a registry holding every supported vendor."""
    return ProviderRegistry([VeoProvider(settings, logger), HiggsfieldProvider(settings, logger)])
