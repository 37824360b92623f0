"""Feed query and page schemas."""

from datetime import datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field

from .post import Post


class SortMode(StrEnum):
    """Feed ranking modes."""

    RECENT = "recent"
    TOP_DAY = "top_day"
    TOP_WEEK = "top_week"
    TOP_MONTH = "top_month"
    TOP_ALL = "top_all"

    @property
    def window(self) -> timedelta | None:
        """Return the creation-time window for score modes (None = unbounded)."""
        return _WINDOWS.get(self)

    @property
    def by_score(self) -> bool:
        """Return True when the mode orders by score."""
        return self is not SortMode.RECENT


_WINDOWS = {
    SortMode.TOP_DAY: timedelta(days=1),
    SortMode.TOP_WEEK: timedelta(days=7),
    SortMode.TOP_MONTH: timedelta(days=30),
}


class OrderBy(StrEnum):
    """Primary ordering key of a post query; ties always break on recency."""

    CREATED_AT = "created_at"
    SCORE = "score"


class PostQuery(BaseModel):
    """Filters for `RemoteService.query_posts`."""

    since: datetime | None = None
    tag: str | None = None
    order_by: OrderBy = OrderBy.CREATED_AT
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1)


class FeedPage(BaseModel):
    """One page of posts; `has_more` is True only for a full page."""

    items: list[Post]
    has_more: bool
