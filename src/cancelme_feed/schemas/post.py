"""Post-related Pydantic schemas."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cancelme_feed.db.time import ensure_aware

MAX_TAGS = 10
ANONYMOUS_LABEL = "Anonyme"


class ReactionKind(StrEnum):
    """The four independent reaction counters of a post."""

    LOL = "lol"
    CRINGE = "cringe"
    WTF = "wtf"
    GENIUS = "genius"


class MediaType(StrEnum):
    """Kind of media attached to a post."""

    IMAGE = "image"
    VIDEO = "video"
    YOUTUBE = "youtube"  # embedded video


def normalize_tags(values: object) -> list[str]:
    """Lowercase, deduplicate and cap a tag collection."""
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    seen: list[str] = []
    for raw in values:  # type: ignore[union-attr]
        tag = str(raw).strip().lstrip("#").lower()
        if tag and tag not in seen:
            seen.append(tag)
    return seen[:MAX_TAGS]


class Post(BaseModel):
    """Locally cached copy of a post, possibly stale.

    Instances are immutable; state transitions build new copies.
    """

    id: str
    caption: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    display_name: str | None = None
    username: str | None = None
    is_anonymous: bool = False
    tags: list[str] = Field(default_factory=list)
    lol: int = 0
    cringe: int = 0
    wtf: int = 0
    genius: int = 0
    score: int = 0
    views: int = 0
    created_at: datetime

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("created_at")
    @classmethod
    def _aware_created_at(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("lol", "cringe", "wtf", "genius", "score", "views", mode="before")
    @classmethod
    def _clamp_counter(cls, value: object) -> int:
        # The store reports never-touched counters as null.
        if value is None:
            return 0
        return max(0, int(value))  # type: ignore[call-overload]

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str]:
        return normalize_tags(value)

    @property
    def author_label(self) -> str:
        """Return the declared display name, or the anonymous label."""
        if self.is_anonymous:
            return ANONYMOUS_LABEL
        return self.display_name or self.username or ANONYMOUS_LABEL

    def reactions(self) -> dict[ReactionKind, int]:
        """Return the reaction counters keyed by kind."""
        return {kind: getattr(self, kind.value) for kind in ReactionKind}


class PostCreate(BaseModel):
    """Fields sent to the store when publishing a post."""

    caption: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    is_anonymous: bool = True
    display_name: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value: object) -> list[str]:
        return normalize_tags(value)
