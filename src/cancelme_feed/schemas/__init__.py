"""Pydantic schemas for the feed client."""

from .comment import Comment, CommentCreate, CommentPage
from .feed import FeedPage, OrderBy, PostQuery, SortMode
from .post import MediaType, Post, PostCreate, ReactionKind
from .report import ReportCreate, ReportRecord

__all__ = [
    "Comment", "CommentCreate", "CommentPage",
    "FeedPage", "OrderBy", "PostQuery", "SortMode",
    "MediaType", "Post", "PostCreate", "ReactionKind",
    "ReportCreate", "ReportRecord",
]
