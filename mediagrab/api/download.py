"""
Download endpoints.

POST /api/instagram  – download an Instagram reel
POST /api/tiktok     – download a TikTok video

Both take {"url": "..."} and answer with the post manifest. Errors are
rendered by the MediaGrabError handler in main.py as {error, message}.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from mediagrab.config import get_settings
from mediagrab.errors import ExtractionFailed
from mediagrab.models import PostInfo
from mediagrab.services.downloader import download_media

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class DownloadRequest(BaseModel):
    # Optional so a missing URL is reported as 400 "Invalid URL", not 422.
    url: Optional[str] = None


class MediaItemOut(BaseModel):
    type: str
    url: str
    thumbnail_url: Optional[str] = Field(default=None, alias="thumbnailUrl")

    class Config:
        populate_by_name = True


class SavedFileOut(BaseModel):
    media_path: str = Field(alias="mediaPath")
    thumbnail_path: Optional[str] = Field(default=None, alias="thumbnailPath")

    class Config:
        populate_by_name = True


class DownloadOut(BaseModel):
    content_identifier: str = Field(alias="contentIdentifier")
    platform: str
    username: str
    caption: str = ""
    likes_count: Optional[int] = Field(default=None, alias="likesCount")
    comments_count: Optional[int] = Field(default=None, alias="commentsCount")
    media_items: List[MediaItemOut] = Field(default_factory=list, alias="mediaItems")
    saved_files: List[SavedFileOut] = Field(default_factory=list, alias="savedFiles")

    class Config:
        populate_by_name = True


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def public_url(relative_path: Optional[str]) -> Optional[str]:
    """Public URL of a file stored under the output directory."""
    if not relative_path:
        return None
    return f"{settings.media_url_prefix.rstrip('/')}/{relative_path.lstrip('/')}"


def _to_response(post: PostInfo) -> DownloadOut:
    return DownloadOut(
        content_identifier=post.content_id,
        platform=post.platform,
        username=post.username,
        caption=post.caption,
        likes_count=post.likes_count,
        comments_count=post.comments_count,
        media_items=[
            MediaItemOut(type=item.kind, url=item.url, thumbnail_url=item.thumbnail_url)
            for item in post.media_items
        ],
        saved_files=[
            SavedFileOut(
                media_path=public_url(saved.media_path),
                thumbnail_path=public_url(saved.thumbnail_path),
            )
            for saved in post.saved_files
        ],
    )


async def _download(url: Optional[str], platform: str) -> DownloadOut:
    post = await download_media(url, platform=platform)
    if not post.media_items:
        raise ExtractionFailed("No media found in this post")
    logger.info(
        "Served %s %s via %s (%d file(s))",
        platform, post.content_id, post.strategy, len(post.saved_files),
    )
    return _to_response(post)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/instagram", response_model=DownloadOut)
async def download_instagram(body: DownloadRequest):
    return await _download(body.url, "instagram")


@router.post("/tiktok", response_model=DownloadOut)
async def download_tiktok(body: DownloadRequest):
    return await _download(body.url, "tiktok")
