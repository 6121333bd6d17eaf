"""
TikTok extraction strategies.

TikTok pages are not scraped; third-party helper APIs resolve the video and
answer in JSON. Tried in order: tikwm -> ssstik -> rapidsave.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from mediagrab.config import get_settings
from mediagrab.errors import ExtractionFailed, FetchFailed
from mediagrab.models import ContentReference, PostInfo
from mediagrab.services.identity import JSON_API
from mediagrab.sites.tiktok import TikTokHandler
from mediagrab.strategies.base import ExtractionStrategy, FieldCandidates
from mediagrab.strategies.helpers import dig

logger = logging.getLogger(__name__)
settings = get_settings()

OEMBED_URL = "https://www.tiktok.com/oembed"


class HelperApiStrategy(ExtractionStrategy):
    """
    One GET against a helper API with the content URL as `url` parameter.

    Subclasses set `endpoint` and implement `parse_payload()`.
    """

    platform = "tiktok"
    profile = JSON_API
    endpoint: str = ""
    base_url: str = "https://www.tiktok.com"

    def api_url(self, ref: ContentReference) -> str:
        return f"{self.endpoint}?url={quote(ref.url, safe='')}"

    async def _get_json(self, url: str, fetcher) -> Dict[str, Any]:
        resp = await fetcher.fetch(url, self.profile, settings.api_timeout_ms)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ExtractionFailed(f"{self.name} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ExtractionFailed(f"{self.name} returned an unexpected payload")
        return data

    def parse_payload(self, data: Dict[str, Any], ref: ContentReference, fields: FieldCandidates) -> None:
        raise NotImplementedError

    def finish(self, ref: ContentReference, fields: FieldCandidates) -> PostInfo:
        """Helper APIs only count when they hand out a video URL."""
        if not fields.has("video_url"):
            raise ExtractionFailed(f"{self.name} returned no video URL for {ref.content_id}")
        fields.offer("username", TikTokHandler.username_from_url(ref.url))
        return fields.to_post_info(ref, self.name)

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        data = await self._get_json(self.api_url(ref), fetcher)
        fields = FieldCandidates(self.base_url)
        self.parse_payload(data, ref, fields)
        return self.finish(ref, fields)


class TikwmStrategy(HelperApiStrategy):
    """tikwm.com, with TikTok's own oEmbed endpoint as a metadata fallback."""

    name = "tikwm"
    endpoint = "https://tikwm.com/api/"
    base_url = "https://www.tikwm.com"

    def parse_payload(self, data: Dict[str, Any], ref: ContentReference, fields: FieldCandidates) -> None:
        payload = data.get("data")
        if not isinstance(payload, dict):
            raise ExtractionFailed(data.get("msg") or "tikwm returned no data")
        fields.offer("video_url", payload.get("play"))
        fields.offer("thumbnail_url", payload.get("cover"))
        fields.offer("username", dig(payload, ("author", "unique_id")))
        fields.offer("username", dig(payload, ("author", "nickname")))
        fields.offer("caption", payload.get("title"))
        fields.offer("likes_count", payload.get("digg_count"))
        fields.offer("comments_count", payload.get("comment_count"))
        fields.offer("timestamp", payload.get("create_time"))

    async def _oembed(self, ref: ContentReference, fetcher) -> Optional[Dict[str, Any]]:
        """Best effort: a failing oEmbed call does not fail the strategy."""
        url = f"{OEMBED_URL}?url={quote(ref.url, safe='')}"
        try:
            return await self._get_json(url, fetcher)
        except (FetchFailed, ExtractionFailed) as exc:
            logger.info("TikTok oEmbed unavailable for %s: %s", ref.content_id, exc)
            return None

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        oembed = await self._oembed(ref, fetcher)
        data = await self._get_json(self.api_url(ref), fetcher)
        fields = FieldCandidates(self.base_url)
        self.parse_payload(data, ref, fields)
        if oembed:
            fields.offer("thumbnail_url", oembed.get("thumbnail_url"))
            fields.offer("username", oembed.get("author_unique_id"))
            fields.offer("username", oembed.get("author_name"))
            fields.offer("caption", oembed.get("title"))
        return self.finish(ref, fields)


class SsstikStrategy(HelperApiStrategy):
    name = "ssstik"
    endpoint = "https://ssstik.io/api/1/downloader"
    base_url = "https://ssstik.io"

    def parse_payload(self, data: Dict[str, Any], ref: ContentReference, fields: FieldCandidates) -> None:
        fields.offer("video_url", dig(data, ("video", "download_url")))
        fields.offer("thumbnail_url", data.get("thumbnail"))
        fields.offer("username", data.get("author"))
        fields.offer("caption", data.get("title"))


class RapidsaveStrategy(HelperApiStrategy):
    name = "rapidsave"
    endpoint = "https://rapidsave.com/api/get-video"
    base_url = "https://rapidsave.com"

    def parse_payload(self, data: Dict[str, Any], ref: ContentReference, fields: FieldCandidates) -> None:
        fields.offer("video_url", data.get("videoUrl"))
        fields.offer("thumbnail_url", data.get("thumbnailUrl"))
        fields.offer("username", data.get("author"))
        fields.offer("caption", data.get("description"))


TIKTOK_STRATEGIES = [
    TikwmStrategy,
    SsstikStrategy,
    RapidsaveStrategy,
]
