"""Report schemas. Reports are write-only from the client's perspective."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from cancelme_feed.db.time import ensure_aware


class ReportCreate(BaseModel):
    """Payload for flagging a post."""

    post_id: str
    reason: str | None = None
    reporter_fingerprint: str
    reporter_name: str | None = None


class ReportRecord(BaseModel):
    """The slice of a report read back for auto-moderation."""

    post_id: str
    created_at: datetime

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("created_at")
    @classmethod
    def _aware_created_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("post_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value
