"""Post composition: hashtags, media gate, upload and insert."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from cancelme_feed.core.errors import RemoteError, RemoteWriteFailure, UploadFailure, ValidationError
from cancelme_feed.core.settings import Settings, settings
from cancelme_feed.schemas.post import MediaType, Post, PostCreate
from cancelme_feed.services.device import DeviceProfile
from cancelme_feed.services.feed import FeedPaginator
from cancelme_feed.services.remote import RemoteService

logger = logging.getLogger(__name__)

EMPTY_POST_MESSAGE = "Ajoute un texte, un média ou des hashtags."
FILE_TOO_LARGE_MESSAGE = "Fichier trop lourd"
UNSUPPORTED_FILE_MESSAGE = "Type de fichier non supporté"
POST_FAILED_MESSAGE = "Ajout impossible"

# `#` followed by letters of any script, digits or underscores.
_HASHTAG = re.compile(r"#(\w+)")
_YOUTUBE_HOSTS = {"youtube.com", "m.youtube.com"}
_PATH_ID = re.compile(r"^/(?:shorts|embed)/([^/?#]+)")

MEGABYTE = 1024 * 1024


def extract_tags(text: str, limit: int | None = None) -> list[str]:
    """Return the lowercase, deduplicated hashtags of `text`, at most `limit`."""
    limit = settings.max_tags if limit is None else limit
    tags: list[str] = []
    for match in _HASHTAG.findall(text or ""):
        tag = match.lower()
        if tag not in tags:
            tags.append(tag)
    return tags[:limit]


def parse_youtube_id(url: str) -> str | None:
    """Return the video id of a YouTube watch, shorts, embed or youtu.be URL."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    host = (parsed.hostname or "").removeprefix("www.")
    if host in _YOUTUBE_HOSTS:
        if parsed.path == "/watch":
            values = parse_qs(parsed.query).get("v")
            return values[0] if values and values[0] else None
        match = _PATH_ID.match(parsed.path)
        return match.group(1) if match else None
    if host == "youtu.be":
        video_id = parsed.path.lstrip("/").split("/", 1)[0]
        return video_id or None
    return None


@dataclass(frozen=True)
class MediaFile:
    """A file picked for upload."""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def media_type(self) -> MediaType | None:
        if self.content_type.startswith("video/"):
            return MediaType.VIDEO
        if self.content_type.startswith("image/"):
            return MediaType.IMAGE
        return None


def check_media(file: MediaFile, config: Settings | None = None) -> MediaType:
    """Apply the client-side type and size gate.

    Raises:
        UploadFailure: unsupported type, or larger than the cap for its kind.
    """
    config = config or settings
    kind = file.media_type
    if kind is None:
        raise UploadFailure(UNSUPPORTED_FILE_MESSAGE)
    limit_mb = config.max_video_mb if kind is MediaType.VIDEO else config.max_image_mb
    if file.size > limit_mb * MEGABYTE:
        raise UploadFailure(FILE_TOO_LARGE_MESSAGE)
    return kind


class PostComposer:
    """Publishes posts and refreshes the feed afterwards."""

    def __init__(
        self,
        remote: RemoteService,
        device: DeviceProfile,
        paginator: FeedPaginator,
        *,
        config: Settings | None = None,
    ) -> None:
        self._remote = remote
        self._device = device
        self._paginator = paginator
        self._config = config or settings

    async def submit(
        self,
        *,
        caption: str = "",
        media_url: str = "",
        hashtags: str = "",
        file: MediaFile | None = None,
    ) -> Post:
        """Upload media if any, insert the post and reload the first feed page.

        Raises:
            ValidationError: nothing to publish.
            UploadFailure: the file failed the gate or the upload; `file` is untouched.
            RemoteWriteFailure: the insert failed.
        """
        caption = caption.strip()
        media_url = media_url.strip()
        if not caption and not media_url and file is None and not hashtags.strip():
            raise ValidationError(EMPTY_POST_MESSAGE)

        media_type: MediaType | None = None
        final_url: str | None = None
        if file is not None:
            media_type = check_media(file, self._config)
            final_url = await self._remote.upload_media(file.filename, file.content, file.content_type)
        elif media_url:
            final_url = media_url
            media_type = MediaType.YOUTUBE if parse_youtube_id(media_url) else MediaType.IMAGE

        limit = self._config.max_tags
        tags = list(dict.fromkeys(extract_tags(hashtags, limit) + extract_tags(caption, limit)))[:limit]
        display_name = self._device.display_name
        fields = PostCreate(
            caption=caption or None,
            media_url=final_url,
            media_type=media_type,
            is_anonymous=display_name is None,
            display_name=display_name,
            tags=tags,
        )
        try:
            post = await self._remote.insert_post(fields)
        except RemoteError as exc:
            logger.error("Post insert failed: %s", exc)
            raise RemoteWriteFailure(POST_FAILED_MESSAGE) from exc

        await self._paginator.load_first_page()
        return post
