"""Shared pytest fixtures for mediagrab tests.

Fixture summary
---------------
fake_fetcher  - In-memory stand-in for PageFetcher; routes URLs to canned responses.
reel_ref      - ContentReference for https://www.instagram.com/reel/ABC123/.
tiktok_ref    - ContentReference for a full TikTok video URL.

Nothing here touches the network. Fetcher tests run against a local
aiohttp test server instead.
"""

from __future__ import annotations

import os
import tempfile

import pytest

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Settings defaults are read from the environment when mediagrab.config is
# first imported, so these must be in place before any application import.

os.environ["MEDIA_OUTPUT_DIR"] = tempfile.mkdtemp(prefix="mediagrab-test-")
os.environ["MEDIA_SERVE_FILES"] = "false"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from fakes import FakeFetcher  # noqa: E402
from mediagrab.models import ContentReference  # noqa: E402


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def reel_ref() -> ContentReference:
    return ContentReference(
        platform="instagram",
        url="https://www.instagram.com/reel/ABC123/",
        content_type="reel",
        content_id="ABC123",
    )


@pytest.fixture
def tiktok_ref() -> ContentReference:
    return ContentReference(
        platform="tiktok",
        url="https://www.tiktok.com/@dancer/video/7234567890123456789",
        content_type="video",
        content_id="7234567890123456789",
    )
