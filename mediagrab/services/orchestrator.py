"""
Fallback orchestrator – runs extraction strategies in order until one works.

Strategies run strictly one at a time; the first PostInfo with media wins and
later strategies are never invoked. When all of them fail a single
AllStrategiesExhausted carries the attempt count, guidance and last error.
"""

import logging
from typing import List, Optional, Sequence

from mediagrab.errors import (
    AllStrategiesExhausted,
    ExtractionFailed,
    FetchFailed,
    FetchTimeout,
    MediaGrabError,
)
from mediagrab.models import ContentReference, PostInfo
from mediagrab.sites.base import SiteHandler
from mediagrab.strategies.base import ExtractionStrategy, get_strategy

logger = logging.getLogger(__name__)


def error_hint(error: Optional[BaseException]) -> Optional[str]:
    """One guidance line derived from the kind of the last failure."""
    if isinstance(error, FetchTimeout):
        return "The request timed out. The server might be slow or blocking requests."
    if isinstance(error, FetchFailed):
        if error.status == 403:
            return "Access denied (403). The platform detected automated access."
        if error.status == 404:
            return "Content not found (404). It may have been deleted or made private."
        if error.status == 429:
            return "Too many requests (429). Wait a while before trying again."
        return "Network error. Check your internet connection."
    return None


class Orchestrator:
    def __init__(self, strategies: Sequence[ExtractionStrategy], guidance: Sequence[str] = ()):
        self.strategies = list(strategies)
        self.guidance = list(guidance)

    def _guidance_for(self, last_error: Optional[BaseException]) -> List[str]:
        hints = []
        hint = error_hint(last_error)
        if hint:
            hints.append(hint)
        hints.extend(h for h in self.guidance if h not in hints)
        return hints

    async def run(self, ref: ContentReference, fetcher) -> PostInfo:
        last_error: Optional[BaseException] = None
        total = len(self.strategies)

        for attempt, strategy in enumerate(self.strategies, start=1):
            logger.info(
                "Trying %s strategy %d/%d (%s) for %s",
                ref.platform, attempt, total, strategy.name, ref.content_id,
            )
            try:
                post = await strategy.extract(ref, fetcher)
                if not post.media_items:
                    raise ExtractionFailed(f"{strategy.name} returned no media items")
            except MediaGrabError as exc:
                last_error = exc
                logger.warning("Strategy %s failed for %s: %s", strategy.name, ref.content_id, exc)
                continue
            except Exception as exc:
                last_error = exc
                logger.warning(
                    "Strategy %s crashed for %s: %s: %s",
                    strategy.name, ref.content_id, type(exc).__name__, exc,
                    exc_info=True,
                )
                continue

            post.strategy = strategy.name
            logger.info(
                "Strategy %s found %d media item(s) for %s",
                strategy.name, len(post.media_items), ref.content_id,
            )
            return post

        logger.error("All %d strategies failed for %s %s", total, ref.platform, ref.content_id)
        raise AllStrategiesExhausted(ref.platform, total, last_error, self._guidance_for(last_error))


def build_orchestrator(handler: SiteHandler, content_type: Optional[str] = None) -> Orchestrator:
    """Orchestrator for *handler*'s strategy order, resolved through the strategy registry."""
    strategies = []
    for name in handler.strategy_order(content_type or handler.supported_content_types[0]):
        strategy = get_strategy(handler.name, name)
        if strategy is None:
            raise LookupError(f"No strategy named {name!r} for {handler.name}")
        strategies.append(strategy)
    return Orchestrator(strategies, handler.remediation)
