# tests/services/test_composer.py
"""Tests for hashtag extraction, the media gate and post submission."""

import pytest

from cancelme_feed.core.errors import RemoteWriteFailure, UploadFailure, ValidationError
from cancelme_feed.core.settings import Settings
from cancelme_feed.schemas.post import MediaType
from cancelme_feed.services.posts import (
    MEGABYTE,
    MediaFile,
    PostComposer,
    check_media,
    extract_tags,
    parse_youtube_id,
)


@pytest.fixture()
def composer(remote, device, paginator, test_settings) -> PostComposer:
    return PostComposer(remote, device, paginator, config=test_settings)


def test_extract_tags_lowercases_dedups_and_caps() -> None:
    assert extract_tags("#Chat #chat #Été_2024 pas#tag? #a-b") == ["chat", "été_2024", "tag", "a"]
    assert extract_tags("#a #b #c", limit=2) == ["a", "b"]
    assert extract_tags("") == []


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10", "dQw4w9WgXcQ"),
        ("https://youtube.com/shorts/abc123", "abc123"),
        ("https://m.youtube.com/embed/xyz?autoplay=1", "xyz"),
        ("https://youtu.be/short1", "short1"),
        ("https://www.youtube.com/watch", None),
        ("https://example.com/watch?v=nope", None),
        ("https://cdn.test/cat.png", None),
    ],
)
def test_parse_youtube_id(url, expected) -> None:
    assert parse_youtube_id(url) == expected


def test_media_gate() -> None:
    config = Settings(max_image_mb=1, max_video_mb=2)
    image = MediaFile("cat.png", "image/png", b"x" * MEGABYTE)
    assert check_media(image, config) is MediaType.IMAGE

    with pytest.raises(UploadFailure, match="Fichier trop lourd"):
        check_media(MediaFile("big.png", "image/png", b"x" * (MEGABYTE + 1)), config)
    clip = MediaFile("clip.mp4", "video/mp4", b"x" * (2 * MEGABYTE))
    assert check_media(clip, config) is MediaType.VIDEO
    with pytest.raises(UploadFailure, match="Type de fichier non supporté"):
        check_media(MediaFile("notes.pdf", "application/pdf", b"%PDF"), config)


@pytest.mark.asyncio
async def test_empty_submission_is_rejected(composer, remote) -> None:
    with pytest.raises(ValidationError):
        await composer.submit(caption="   ", hashtags=" ")
    assert remote.calls == []


@pytest.mark.asyncio
async def test_submit_with_file_uploads_then_inserts(composer, remote, device, store) -> None:
    device.set_display_name("Léa")
    post = await composer.submit(
        caption="Regardez #Chat",
        hashtags="#memes #chat",
        file=MediaFile("cat.png", "image/png", b"png-bytes"),
    )

    assert [name for name, _ in remote.calls[:2]] == ["upload_media", "insert_post"]
    assert post.media_url in remote.uploads
    assert post.media_type is MediaType.IMAGE
    assert post.tags == ["memes", "chat"]
    assert post.is_anonymous is False
    assert post.display_name == "Léa"
    # The feed reloads from page one and now shows the new post first.
    assert store.state.posts[0].id == post.id


@pytest.mark.asyncio
async def test_submit_url_classifies_youtube_and_is_anonymous(composer) -> None:
    post = await composer.submit(media_url=" https://youtu.be/abc ")
    assert post.media_type is MediaType.YOUTUBE
    assert post.media_url == "https://youtu.be/abc"
    assert post.is_anonymous is True
    assert post.caption is None

    post = await composer.submit(media_url="https://cdn.test/cat.gif")
    assert post.media_type is MediaType.IMAGE


@pytest.mark.asyncio
async def test_failed_upload_inserts_nothing(composer, remote) -> None:
    remote.failures.add("upload_media")
    with pytest.raises(UploadFailure):
        await composer.submit(file=MediaFile("cat.png", "image/png", b"png"))
    assert remote.called("insert_post") == []


@pytest.mark.asyncio
async def test_failed_insert_leaves_feed_alone(composer, remote, store) -> None:
    remote.failures.add("insert_post")
    before = store.state
    with pytest.raises(RemoteWriteFailure, match="Ajout impossible"):
        await composer.submit(caption="hello")
    assert store.state is before
