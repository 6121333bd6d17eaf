"""
Base extraction strategy plus the per-field candidate accumulator.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Type

from mediagrab.errors import ExtractionFailed
from mediagrab.models import UNKNOWN_USER, ContentReference, MediaItem, PostInfo
from mediagrab.services.identity import DESKTOP_CHROME, IdentityProfile
from mediagrab.strategies.helpers import normalize_media_url, to_iso_timestamp

logger = logging.getLogger(__name__)


class FieldCandidates:
    """
    Collects results for each PostInfo field while a strategy runs its rules.

    The first non-empty offer for a field wins; later offers are ignored, so
    rule order is priority order.
    """

    FIELDS = (
        "video_url", "thumbnail_url", "username", "caption", "likes_count", "comments_count", "timestamp",
    )
    URL_FIELDS = ("video_url", "thumbnail_url")
    TEXT_FIELDS = ("username", "caption")
    COUNT_FIELDS = ("likes_count", "comments_count")

    def __init__(self, base_url: str = "https://www.instagram.com"):
        self.base_url = base_url
        self.values: Dict[str, object] = {}

    def offer(self, name: str, value) -> bool:
        """Record *value* for *name* unless already set. True if it was taken."""
        if name not in self.FIELDS:
            raise KeyError(name)
        if name in self.values:
            return False
        if value is None or isinstance(value, bool):
            return False
        if name in self.URL_FIELDS + self.TEXT_FIELDS and not isinstance(value, str):
            return False
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return False
            if name in self.URL_FIELDS:
                value = normalize_media_url(value, self.base_url)
                if not value.startswith("https://"):
                    return False
        if name in self.COUNT_FIELDS:
            try:
                value = int(value)
            except (TypeError, ValueError):
                return False
        if name == "timestamp":
            if not isinstance(value, (int, float, str)):
                return False
            value = to_iso_timestamp(value)
            if value is None:
                return False
        self.values[name] = value
        return True

    def update(self, **fields) -> None:
        for name, value in fields.items():
            self.offer(name, value)

    def get(self, name: str):
        return self.values.get(name)

    def has(self, name: str) -> bool:
        return name in self.values

    def to_post_info(self, ref: ContentReference, strategy: Optional[str] = None) -> PostInfo:
        """
        Build the PostInfo. Raises ExtractionFailed when neither a video nor a
        thumbnail URL was found.
        """
        video_url = self.values.get("video_url")
        thumbnail_url = self.values.get("thumbnail_url")
        if not video_url and not thumbnail_url:
            raise ExtractionFailed(f"No video or image URL found for {ref.url}")

        if video_url:
            item = MediaItem(kind="video", url=video_url, thumbnail_url=thumbnail_url)
        else:
            item = MediaItem(kind="image", url=thumbnail_url, thumbnail_url=thumbnail_url)

        return PostInfo(
            content_id=ref.content_id,
            platform=ref.platform,
            username=str(self.values.get("username") or UNKNOWN_USER),
            caption=str(self.values.get("caption") or ""),
            likes_count=self.values.get("likes_count"),
            comments_count=self.values.get("comments_count"),
            timestamp=self.values.get("timestamp"),
            media_items=[item],
            strategy=strategy,
        )


class ExtractionStrategy:
    """
    One way of turning a ContentReference into a PostInfo.

    Subclass responsibilities:
      - Set `name`, `platform` and `profile` class attributes.
      - Override `extract()`; raise FetchFailed / ExtractionFailed on failure.
    """

    name: str = "generic"
    platform: str = "generic"
    profile: IdentityProfile = DESKTOP_CHROME

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.platform}/{self.name}>"


class HtmlStrategy(ExtractionStrategy):
    """Strategy that fetches one page and scrapes it with a pure `parse()`."""

    timeout_ms: Optional[int] = None

    def page_url(self, ref: ContentReference) -> str:
        return ref.url

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        resp = await fetcher.fetch(self.page_url(ref), self.profile, self.timeout_ms)
        return self.parse(resp.text, ref)

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_STRATEGY_CLASSES: List[Type[ExtractionStrategy]] = []
_initialized = False


def _init_strategy_classes() -> None:
    """Import all strategy classes. Called once."""
    global _STRATEGY_CLASSES, _initialized
    if _initialized:
        return

    from mediagrab.strategies.instagram import INSTAGRAM_STRATEGIES
    from mediagrab.strategies.tiktok import TIKTOK_STRATEGIES

    _STRATEGY_CLASSES = [*INSTAGRAM_STRATEGIES, *TIKTOK_STRATEGIES]
    _initialized = True
    logger.debug("Registered %d extraction strategy classes", len(_STRATEGY_CLASSES))


def get_strategy(platform: str, name: str) -> Optional[ExtractionStrategy]:
    """Instance of the strategy called *name* for *platform*, or None."""
    _init_strategy_classes()
    for strategy_cls in _STRATEGY_CLASSES:
        if strategy_cls.platform == platform and strategy_cls.name == name:
            return strategy_cls()
    return None
