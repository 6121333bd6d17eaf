"""
Download service – the pipeline behind every download request.

URL -> site handler -> ContentReference -> orchestrator -> materializer.
Unsupported URLs are rejected before any network call.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from mediagrab.config import get_settings
from mediagrab.errors import InvalidUrl
from mediagrab.models import ContentReference, PostInfo
from mediagrab.services.fetcher import PageFetcher
from mediagrab.services.materializer import materialize
from mediagrab.services.orchestrator import build_orchestrator
from mediagrab.sites import get_handler, get_handler_by_name

logger = logging.getLogger(__name__)
settings = get_settings()


def resolve_reference(url: Optional[str], platform: Optional[str] = None) -> ContentReference:
    """
    Validate and canonicalize *url*. With *platform* set, the URL must belong
    to that platform. Raises InvalidUrl; never touches the network.
    """
    if not url or not url.strip():
        raise InvalidUrl("URL is required")
    url = url.strip()

    if platform:
        handler = get_handler_by_name(platform)
        if handler is None:
            raise InvalidUrl(f"Unsupported platform: {platform}")
        if not handler.matches_url(url):
            raise InvalidUrl(handler.unsupported_message)
    else:
        handler = get_handler(url)
        if handler is None:
            raise InvalidUrl("Only Instagram reel and TikTok video URLs are supported.")

    return handler.build_reference(url)


async def download_media(
    url: Optional[str],
    platform: Optional[str] = None,
    output_dir: Optional[Union[str, Path]] = None,
    fetcher: Optional[PageFetcher] = None,
) -> PostInfo:
    """
    Extract and persist the media behind *url*.

    Creates (and closes) its own PageFetcher unless one is supplied. Returns
    the PostInfo with `saved_files` filled in; raises InvalidUrl,
    AllStrategiesExhausted or WriteFailed.
    """
    ref = resolve_reference(url, platform)
    handler = get_handler_by_name(ref.platform)
    orchestrator = build_orchestrator(handler, ref.content_type)
    output_dir = output_dir or settings.output_dir
    logger.info("Downloading %s %s (%s)", ref.platform, ref.content_id, ref.url)

    if fetcher is not None:
        post = await orchestrator.run(ref, fetcher)
        await materialize(post, output_dir, fetcher)
        return post

    async with PageFetcher() as own_fetcher:
        post = await orchestrator.run(ref, own_fetcher)
        await materialize(post, output_dir, own_fetcher)
    return post
