"""Tests for the HTTP surface (FastAPI TestClient).

Tests cover:
- /api/health and /api/config
- camelCase download manifests with public media URLs
- Validation errors -> 400 before any network call
- Pipeline errors -> {error, message} with their status codes
- Unhandled exceptions -> 500 with CORS headers
- End-to-end runs with the network replaced by FakeFetcher
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from fakes import FakeFetcher
from mediagrab.config import get_settings
from mediagrab.errors import AllStrategiesExhausted, ExtractionFailed, FetchFailed, WriteFailed
from mediagrab.main import app
from mediagrab.models import MediaItem, PostInfo, SavedFile

settings = get_settings()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def sample_post() -> PostInfo:
    return PostInfo(
        content_id="ABC123",
        platform="instagram",
        username="creator",
        caption="Hello reel",
        likes_count=120,
        comments_count=7,
        media_items=[
            MediaItem(
                kind="video",
                url="https://scontent.cdninstagram.com/v/reel.mp4",
                thumbnail_url="https://scontent.cdninstagram.com/v/thumb.jpg",
                file_name="ABC123.mp4",
            )
        ],
        saved_files=[SavedFile("instagram/ABC123/ABC123.mp4", "instagram/ABC123/ABC123_thumbnail.jpg")],
        strategy="embed",
    )


# ---------------------------------------------------------------------------
# Health / config
# ---------------------------------------------------------------------------


class TestInfoEndpoints:
    def test_health(self, client) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "media_url_prefix": "/media"}

    def test_config(self, client) -> None:
        body = client.get("/api/config").json()
        assert [p["name"] for p in body["platforms"]] == ["instagram", "tiktok"]
        assert body["platforms"][0]["content_types"] == ["reel"]
        assert body["platforms"][1]["endpoint"] == "/api/tiktok"
        assert body["serve_media"] is False

    def test_unknown_route(self, client) -> None:
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Request failed", "message": "Not Found"}


# ---------------------------------------------------------------------------
# Download: success
# ---------------------------------------------------------------------------


class TestDownloadSuccess:
    def test_manifest_is_camel_case(self, client) -> None:
        with patch("mediagrab.api.download.download_media", new=AsyncMock(return_value=sample_post())) as mock:
            resp = client.post("/api/instagram", json={"url": "https://www.instagram.com/reel/ABC123/"})

        assert resp.status_code == 200
        mock.assert_awaited_once_with("https://www.instagram.com/reel/ABC123/", platform="instagram")
        assert resp.json() == {
            "contentIdentifier": "ABC123",
            "platform": "instagram",
            "username": "creator",
            "caption": "Hello reel",
            "likesCount": 120,
            "commentsCount": 7,
            "mediaItems": [
                {
                    "type": "video",
                    "url": "https://scontent.cdninstagram.com/v/reel.mp4",
                    "thumbnailUrl": "https://scontent.cdninstagram.com/v/thumb.jpg",
                }
            ],
            "savedFiles": [
                {
                    "mediaPath": "/media/instagram/ABC123/ABC123.mp4",
                    "thumbnailPath": "/media/instagram/ABC123/ABC123_thumbnail.jpg",
                }
            ],
        }

    def test_tiktok_endpoint_passes_platform(self, client) -> None:
        post = sample_post()
        post.platform = "tiktok"
        with patch("mediagrab.api.download.download_media", new=AsyncMock(return_value=post)) as mock:
            resp = client.post("/api/tiktok", json={"url": "https://vm.tiktok.com/ZMabc123/"})

        assert resp.status_code == 200
        mock.assert_awaited_once_with("https://vm.tiktok.com/ZMabc123/", platform="tiktok")

    def test_post_without_media_is_404(self, client) -> None:
        empty = PostInfo(content_id="ABC123", platform="instagram")
        with patch("mediagrab.api.download.download_media", new=AsyncMock(return_value=empty)):
            resp = client.post("/api/instagram", json={"url": "https://www.instagram.com/reel/ABC123/"})

        assert resp.status_code == 404
        assert resp.json()["error"] == "No media found"


# ---------------------------------------------------------------------------
# Download: validation (no network)
# ---------------------------------------------------------------------------


class TestDownloadValidation:
    @pytest.mark.parametrize(
        "endpoint, body, message",
        [
            ("/api/instagram", {}, "URL is required"),
            ("/api/instagram", {"url": "   "}, "URL is required"),
            ("/api/instagram", {"url": "https://www.instagram.com/p/ABC123/"}, "Instagram reel URL"),
            ("/api/instagram", {"url": "https://www.tiktok.com/@dancer/video/1"}, "Instagram reel URL"),
            ("/api/tiktok", {"url": "https://www.instagram.com/reel/ABC123/"}, "TikTok video URL"),
            ("/api/tiktok", {"url": "https://www.tiktok.com/@dancer"}, "TikTok video URL"),
        ],
    )
    def test_rejected_before_any_fetch(self, client, endpoint, body, message) -> None:
        with patch("mediagrab.services.downloader.PageFetcher") as fetcher_cls:
            resp = client.post(endpoint, json=body)

        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid URL"
        assert message in resp.json()["message"]
        fetcher_cls.assert_not_called()

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"json": {"url": 123}}, "url"),
            ({"json": {"url": ["https://www.instagram.com/reel/ABC123/"]}}, "url"),
            ({"content": b"not json", "headers": {"Content-Type": "application/json"}}, ""),
        ],
    )
    def test_malformed_body_is_400(self, client, kwargs, field) -> None:
        kwargs = dict(kwargs)
        headers = {"Origin": "http://localhost:3000", **kwargs.pop("headers", {})}
        with patch("mediagrab.services.downloader.PageFetcher") as fetcher_cls:
            resp = client.post("/api/instagram", headers=headers, **kwargs)

        assert resp.status_code == 400
        body = resp.json()
        assert set(body) == {"error", "message"}
        assert body["error"] == "Invalid URL"
        assert f"({field}" in body["message"]
        assert resp.headers["access-control-allow-origin"] == "*"
        fetcher_cls.assert_not_called()


# ---------------------------------------------------------------------------
# Download: pipeline errors
# ---------------------------------------------------------------------------


class TestDownloadErrors:
    def _post_with_error(self, client, error: BaseException):
        with patch("mediagrab.api.download.download_media", new=AsyncMock(side_effect=error)):
            return client.post(
                "/api/instagram",
                json={"url": "https://www.instagram.com/reel/ABC123/"},
                headers={"Origin": "http://localhost:3000"},
            )

    def test_all_strategies_exhausted(self, client) -> None:
        error = AllStrategiesExhausted(
            "instagram",
            5,
            FetchFailed("https://www.instagram.com/reel/ABC123/", status=403),
            ["Access denied (403). The platform detected automated access.", "The reel may be private."],
        )

        resp = self._post_with_error(client, error)

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Could not download media"
        assert "All 5 download methods failed" in body["message"]
        assert "- Access denied (403)" in body["message"]
        assert "- The reel may be private." in body["message"]
        assert resp.headers["access-control-allow-origin"] == "*"

    def test_extraction_failed(self, client) -> None:
        resp = self._post_with_error(client, ExtractionFailed("No media found in this post"))
        assert resp.status_code == 404
        assert resp.json() == {"error": "No media found", "message": "No media found in this post"}

    def test_write_failed(self, client) -> None:
        resp = self._post_with_error(client, WriteFailed("Could not write /x"))
        assert resp.status_code == 500
        assert resp.json()["error"] == "Could not save media"

    def test_unhandled_exception(self) -> None:
        with TestClient(app, raise_server_exceptions=False) as client:
            resp = self._post_with_error(client, ValueError("boom"))

        assert resp.status_code == 500
        assert resp.json() == {"error": "Internal server error", "message": "An unexpected error occurred."}
        assert resp.headers["access-control-allow-origin"] == "*"


# ---------------------------------------------------------------------------
# End to end (network replaced by FakeFetcher)
# ---------------------------------------------------------------------------


class TestEndToEnd:
    def test_instagram_reel(self, client) -> None:
        page = (
            '<script>{"video_url":"https://scontent.cdninstagram.com/v/e2e.mp4",'
            '"display_url":"https://scontent.cdninstagram.com/v/e2e.jpg","username":"e2e_user"}</script>'
        )
        fake = FakeFetcher(routes={"https://www.instagram.com/p/E2E123/embed/": page})

        with patch("mediagrab.services.downloader.PageFetcher", MagicMock(return_value=fake)):
            resp = client.post("/api/instagram", json={"url": "https://instagram.com/reel/E2E123?igshid=abc"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["contentIdentifier"] == "E2E123"
        assert body["username"] == "e2e_user"
        assert body["savedFiles"] == [
            {
                "mediaPath": "/media/instagram/E2E123/E2E123.mp4",
                "thumbnailPath": "/media/instagram/E2E123/E2E123_thumbnail.jpg",
            }
        ]
        out = Path(settings.output_dir) / "instagram" / "E2E123"
        assert (out / "E2E123.mp4").read_bytes() == b"fake-media-bytes"
        assert (out / "metadata.json").exists()
        assert fake.closed

    def test_tiktok_video_with_failing_first_helper(self, client) -> None:
        fake = FakeFetcher(
            routes={
                "https://tikwm.com/api/": FetchFailed("https://tikwm.com/api/", status=429),
                "https://ssstik.io/api/1/downloader": {
                    "video": {"download_url": "https://cdn.ssstik.io/v/e2e.mp4"},
                    "author": "e2e_dancer",
                },
            }
        )

        with patch("mediagrab.services.downloader.PageFetcher", MagicMock(return_value=fake)):
            resp = client.post("/api/tiktok", json={"url": "https://www.tiktok.com/@dancer/video/7000000000000000001"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["username"] == "e2e_dancer"
        assert body["savedFiles"][0]["mediaPath"] == "/media/tiktok/7000000000000000001/7000000000000000001.mp4"

    def test_every_strategy_failing(self, client) -> None:
        fake = FakeFetcher()

        with patch("mediagrab.services.downloader.PageFetcher", MagicMock(return_value=fake)):
            resp = client.post("/api/tiktok", json={"url": "https://www.tiktok.com/@dancer/video/7000000000000000002"})

        assert resp.status_code == 500
        message = resp.json()["message"]
        assert message.startswith("All 3 download methods failed for this tiktok URL.")
        assert "Content not found (404)" in message
        assert "Last error: HTTP 404" in message
