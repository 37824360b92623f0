"""Client settings and configuration.

This module defines all configuration options for the CancelMe feed client.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables.

    Every service takes explicit keyword overrides and falls back to the
    values defined here. Settings can be overridden via environment
    variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="CancelMe", alias="APP_NAME")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Remote store (PostgREST-style REST API plus object storage)
    remote_base_url: str = Field(default="http://localhost:54321", alias="REMOTE_BASE_URL")
    remote_api_key: str | None = Field(default=None, alias="REMOTE_API_KEY")
    remote_timeout_seconds: float = Field(default=10.0, alias="REMOTE_TIMEOUT_SECONDS")
    media_bucket: str = Field(default="media", alias="MEDIA_BUCKET")

    # Device-local storage for rate-limit ledgers, markers and preferences
    local_store_url: str = Field(
        default="sqlite:///./cancelme_device.db",
        alias="LOCAL_STORE_URL",
    )
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Pagination
    feed_page_size: int = Field(default=20, alias="FEED_PAGE_SIZE")
    comments_page_size: int = Field(default=20, alias="COMMENTS_PAGE_SIZE")

    # Comment throttling (sliding windows, milliseconds)
    comment_global_max: int = Field(default=5, alias="COMMENT_GLOBAL_MAX")
    comment_global_window_ms: int = Field(default=60_000, alias="COMMENT_GLOBAL_WINDOW_MS")
    comment_post_max: int = Field(default=2, alias="COMMENT_POST_MAX")
    comment_post_window_ms: int = Field(default=30_000, alias="COMMENT_POST_WINDOW_MS")

    # Reaction throttling uses the same pair of scopes with shorter windows
    reaction_global_max: int = Field(default=30, alias="REACTION_GLOBAL_MAX")
    reaction_global_window_ms: int = Field(default=60_000, alias="REACTION_GLOBAL_WINDOW_MS")
    reaction_post_max: int = Field(default=4, alias="REACTION_POST_MAX")
    reaction_post_window_ms: int = Field(default=10_000, alias="REACTION_POST_WINDOW_MS")

    # Comment content gate
    comment_max_length: int = Field(default=1000, alias="COMMENT_MAX_LENGTH")
    banned_patterns: list[str] = Field(
        default=[r"\b(?:insulte1|insulte2|slur1|slur2)\b"],
        alias="BANNED_PATTERNS",
    )

    # Community auto-moderation
    reports_window_hours: int = Field(default=24, alias="REPORTS_WINDOW_HOURS")
    reports_autohide_threshold: int = Field(default=3, alias="REPORTS_AUTOHIDE_THRESHOLD")

    # Post composition
    max_image_mb: int = Field(default=15, alias="MAX_IMAGE_MB")
    max_video_mb: int = Field(default=50, alias="MAX_VIDEO_MB")
    max_tags: int = Field(default=10, alias="MAX_TAGS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def reports_window_ms(self) -> int:
        """Return the report lookback window in milliseconds."""
        return self.reports_window_hours * 3600 * 1000


settings = Settings()
