"""Comment-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cancelme_feed.db.time import ensure_aware

PLACEHOLDER_PREFIX = "temp-"


class CommentCreate(BaseModel):
    """Schema for inserting a comment."""

    post_id: str
    content: str = Field(..., min_length=1)
    display_name: str | None = None


class Comment(BaseModel):
    """A comment as displayed, either authoritative or an optimistic placeholder."""

    id: str
    post_id: str
    content: str = Field(..., min_length=1)
    display_name: str | None = None
    created_at: datetime

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("created_at")
    @classmethod
    def _aware_created_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("id", "post_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @property
    def is_placeholder(self) -> bool:
        """Return True for locally generated identifiers awaiting the server echo."""
        return self.id.startswith(PLACEHOLDER_PREFIX)


class CommentPage(BaseModel):
    """A page of comments plus the total number stored for the post."""

    items: list[Comment]
    total: int | None = None
