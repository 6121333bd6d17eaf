"""Tests for the media materializer (file layout, thumbnails, metadata sidecar)."""

from __future__ import annotations

import json

import pytest

from fakes import FakeFetcher
from mediagrab.errors import FetchFailed, WriteFailed
from mediagrab.models import MediaItem, PostInfo, SavedFile
from mediagrab.services.materializer import METADATA_FILE, materialize


def reel_post(*items: MediaItem) -> PostInfo:
    return PostInfo(
        content_id="ABC123",
        platform="instagram",
        username="creator",
        caption="Hello",
        likes_count=120,
        comments_count=7,
        media_items=list(items),
        strategy="embedded_data",
    )


VIDEO = "https://scontent.cdninstagram.com/v/reel.mp4"
THUMB = "https://scontent.cdninstagram.com/v/thumb.jpg"


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_single_video_with_thumbnail(self, tmp_path) -> None:
        post = reel_post(MediaItem(kind="video", url=VIDEO, thumbnail_url=THUMB))
        fetcher = FakeFetcher(downloads={VIDEO: b"video-bytes", THUMB: b"thumb-bytes"})

        saved = await materialize(post, tmp_path, fetcher)

        assert saved == [SavedFile("instagram/ABC123/ABC123.mp4", "instagram/ABC123/ABC123_thumbnail.jpg")]
        assert post.saved_files == saved
        assert post.media_items[0].file_name == "ABC123.mp4"
        assert (tmp_path / "instagram/ABC123/ABC123.mp4").read_bytes() == b"video-bytes"
        assert (tmp_path / "instagram/ABC123/ABC123_thumbnail.jpg").read_bytes() == b"thumb-bytes"

    @pytest.mark.asyncio
    async def test_downloads_use_platform_referer(self, tmp_path) -> None:
        post = reel_post(MediaItem(kind="video", url=VIDEO))
        fetcher = FakeFetcher()

        await materialize(post, tmp_path, fetcher)

        [(url, dest, profile)] = fetcher.downloaded
        assert url == VIDEO
        assert dest == tmp_path / "instagram" / "ABC123" / "ABC123.mp4"
        assert profile.build_headers()["Referer"] == "https://www.instagram.com/"

    @pytest.mark.asyncio
    async def test_several_items_are_numbered_from_one(self, tmp_path) -> None:
        post = reel_post(
            MediaItem(kind="video", url="https://cdn.test/1.mp4", thumbnail_url="https://cdn.test/1.jpg"),
            MediaItem(kind="image", url="https://cdn.test/2.jpg", thumbnail_url="https://cdn.test/2.jpg"),
        )

        fetcher = FakeFetcher()

        saved = await materialize(post, tmp_path, fetcher)

        assert [s.media_path for s in saved] == ["instagram/ABC123/ABC123_1.mp4", "instagram/ABC123/ABC123_2.jpg"]
        assert saved[0].thumbnail_path == "instagram/ABC123/ABC123_1_thumbnail.jpg"
        # an image is its own thumbnail: not downloaded twice
        assert saved[1].thumbnail_path is None
        assert [d[0] for d in fetcher.downloaded] == [
            "https://cdn.test/1.mp4",
            "https://cdn.test/1.jpg",
            "https://cdn.test/2.jpg",
        ]

    @pytest.mark.asyncio
    async def test_thumbnail_failure_is_tolerated(self, tmp_path, caplog) -> None:
        post = reel_post(MediaItem(kind="video", url=VIDEO, thumbnail_url=THUMB))
        fetcher = FakeFetcher(downloads={THUMB: FetchFailed(THUMB, status=403)})

        saved = await materialize(post, tmp_path, fetcher)

        assert saved == [SavedFile("instagram/ABC123/ABC123.mp4", None)]
        assert "Failed to download thumbnail" in caplog.text
        assert (tmp_path / "instagram/ABC123" / METADATA_FILE).exists()

    @pytest.mark.asyncio
    async def test_media_failure_raises_write_failed(self, tmp_path) -> None:
        post = reel_post(MediaItem(kind="video", url=VIDEO, thumbnail_url=THUMB))
        fetcher = FakeFetcher(downloads={VIDEO: FetchFailed(VIDEO, status=403)})

        with pytest.raises(WriteFailed):
            await materialize(post, tmp_path, fetcher)

        assert not (tmp_path / "instagram/ABC123" / METADATA_FILE).exists()
        assert post.saved_files == []

    @pytest.mark.asyncio
    async def test_metadata_sidecar(self, tmp_path) -> None:
        post = reel_post(MediaItem(kind="video", url=VIDEO, thumbnail_url=THUMB))

        await materialize(post, tmp_path, FakeFetcher())

        doc = json.loads((tmp_path / "instagram/ABC123" / METADATA_FILE).read_text(encoding="utf-8"))
        assert doc["contentIdentifier"] == "ABC123"
        assert doc["platform"] == "instagram"
        assert doc["username"] == "creator"
        assert doc["likesCount"] == 120
        assert doc["commentsCount"] == 7
        assert doc["strategy"] == "embedded_data"
        assert doc["mediaItems"][0]["fileName"] == "ABC123.mp4"
        assert doc["savedFiles"] == [
            {"mediaPath": "instagram/ABC123/ABC123.mp4", "thumbnailPath": "instagram/ABC123/ABC123_thumbnail.jpg"}
        ]
        assert "downloadedAt" in doc

    @pytest.mark.asyncio
    async def test_existing_directory_is_reused(self, tmp_path) -> None:
        (tmp_path / "instagram" / "ABC123").mkdir(parents=True)
        post = reel_post(MediaItem(kind="video", url=VIDEO))

        await materialize(post, tmp_path, FakeFetcher())
        await materialize(post, tmp_path, FakeFetcher())

        assert (tmp_path / "instagram/ABC123/ABC123.mp4").exists()

    @pytest.mark.asyncio
    async def test_unwritable_output_dir(self, tmp_path) -> None:
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file in the way")
        post = reel_post(MediaItem(kind="video", url=VIDEO))

        with pytest.raises(WriteFailed):
            await materialize(post, blocker, FakeFetcher())
