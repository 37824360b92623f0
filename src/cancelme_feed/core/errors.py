"""Error taxonomy for the feed client.

Every error is scoped to the single user action that raised it; none of them
is fatal to the process. `message` is suitable for inline or toast display.
"""

from __future__ import annotations


class FeedError(RuntimeError):
    """Base exception for recoverable feed client failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FeedError):
    """Content was rejected before any state change."""


class RateLimitError(FeedError):
    """A sliding-window limit was reached; nothing was sent."""

    def __init__(self, message: str, *, scope: str) -> None:
        super().__init__(message)
        self.scope = scope


class DuplicateReactionError(FeedError):
    """This device already sent the same reaction kind for the post."""


class RemoteError(FeedError):
    """Base class for failures talking to the remote store."""


class RemoteReadFailure(RemoteError):
    """A feed, comment or report read failed."""


class RemoteWriteFailure(RemoteError):
    """An insert or increment failed; optimistic state has been rolled back."""


class UploadFailure(FeedError):
    """Media was rejected by the size/type gate or the upload failed."""
