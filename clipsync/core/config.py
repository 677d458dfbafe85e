"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="ClipSync Shorts Pipeline", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode (forces DEBUG logging)")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional JSON-lines log file path")
    log_rotation: str = Field(default="10 MB", description="Size or interval at which the log file rotates")
    log_retention: str = Field(default="7 days", description="How long rotated log files are kept")

    # ========================================================================
    # Storage Settings
    # ========================================================================
    media_root: str = Field(
        default="public",
        description="Root directory of the blob store; URLs like /videos/x.mp4 resolve under it",
    )
    videos_dir: str = Field(default="videos", description="Sub-directory of media_root for video files")
    audio_dir: str = Field(default="audio", description="Sub-directory of media_root for audio files")
    jobs_storage_path: str = Field(default="storage/jobs", description="Directory for job record JSON documents")

    # ========================================================================
    # Video Provider Credentials & Endpoints
    # ========================================================================
    google_ai_api_key: Optional[str] = Field(default=None, description="Google AI API key (Veo)")
    veo_api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Google Generative Language API base URL",
    )
    higgsfield_api_key_id: Optional[str] = Field(default=None, description="Higgsfield API key id")
    higgsfield_api_key_secret: Optional[str] = Field(default=None, description="Higgsfield API key secret")
    higgsfield_api_base: str = Field(
        default="https://platform.higgsfield.ai", description="Higgsfield platform API base URL"
    )

    # ========================================================================
    # Provider Defaults
    # ========================================================================
    default_provider: str = Field(default="higgsfield", description="Video provider: 'veo' or 'higgsfield'")
    veo_default_model: str = Field(default="veo-3.1", description="Default Veo model (veo-3, veo-3-fast, veo-3.1)")
    higgsfield_default_model: str = Field(default="seedance-1.5", description="Default Higgsfield model")
    aspect_ratio: str = Field(default="9:16", description="Aspect ratio requested from providers")

    # ========================================================================
    # Throttling & Polling Settings
    # ========================================================================
    veo_request_delay_seconds: float = Field(
        default=3.0, description="Pause between Veo generation requests (stricter rate limits)"
    )
    higgsfield_request_delay_seconds: float = Field(
        default=2.0, description="Pause between Higgsfield generation requests"
    )
    poll_delay_seconds: float = Field(default=1.0, description="Pause between per-clip status queries in one tick")
    http_timeout_seconds: float = Field(default=30.0, description="Timeout for provider API calls")
    download_timeout_seconds: float = Field(default=120.0, description="Timeout for clip downloads")
    max_poll_errors: int = Field(
        default=3,
        description="Consecutive transient poll/download errors tolerated before a clip is marked failed",
    )

    # ========================================================================
    # Segmentation Settings
    # ========================================================================
    target_clip_seconds: float = Field(default=8.0, description="Target spoken duration per section")
    min_clip_seconds: float = Field(default=4.0, description="Minimum section duration")
    max_clip_seconds: float = Field(default=10.0, description="Maximum section duration")

    # ========================================================================
    # Rendering Settings
    # ========================================================================
    video_width: int = Field(default=1080, description="Output width in pixels (vertical format)")
    video_height: int = Field(default=1920, description="Output height in pixels (vertical format)")
    video_fps: int = Field(default=30, description="Output frames per second")
    video_codec: str = Field(default="libx264", description="Video codec for re-encodes")
    audio_codec: str = Field(default="aac", description="Audio codec for re-encodes")
    render_preset: str = Field(default="medium", description="x264 preset for re-encodes")
    ken_burns_slowdown: float = Field(default=1.5, description="Playback slowdown factor for the zoom correction")
    ken_burns_max_zoom: float = Field(default=1.1, description="Final zoom factor for the zoom correction")

    # ========================================================================
    # Compositing Settings
    # ========================================================================
    filler_threshold_seconds: float = Field(
        default=0.5, description="Shortfall below which no filler footage is generated"
    )
    filler_margin_seconds: float = Field(
        default=1.0, description="Extra filler length added on top of the measured shortfall"
    )


# Global settings instance
settings = Settings()
