"""Site handler registry. Maps URLs to handlers."""

from __future__ import annotations

import logging
from typing import List, Optional, Type

from mediagrab.config import get_settings
from mediagrab.sites.base import SiteHandler

logger = logging.getLogger(__name__)

# List of handler classes (not instances)
_HANDLER_CLASSES: List[Type[SiteHandler]] = []
_initialized = False


def _init_handler_classes() -> None:
    """Import all site handler classes. Called once."""
    global _HANDLER_CLASSES, _initialized
    if _initialized:
        return

    from mediagrab.sites.instagram import InstagramHandler
    from mediagrab.sites.tiktok import TikTokHandler

    _HANDLER_CLASSES = [
        InstagramHandler,
        TikTokHandler,
    ]
    _initialized = True
    logger.debug("Registered %d site handler classes", len(_HANDLER_CLASSES))


def get_handler(url: str) -> Optional[SiteHandler]:
    """Return the first handler that matches the URL, or None."""
    settings = get_settings()
    _init_handler_classes()

    for handler_cls in _HANDLER_CLASSES:
        handler = handler_cls(settings)
        if handler.matches_url(url):
            return handler
    return None


def get_handler_by_name(name: str) -> Optional[SiteHandler]:
    """Get a specific handler by its platform name (e.g. 'instagram', 'tiktok')."""
    settings = get_settings()
    _init_handler_classes()

    for handler_cls in _HANDLER_CLASSES:
        if handler_cls.name == name:
            return handler_cls(settings)
    return None


def get_handlers() -> List[SiteHandler]:
    """Return one instance of every registered handler."""
    settings = get_settings()
    _init_handler_classes()
    return [handler_cls(settings) for handler_cls in _HANDLER_CLASSES]


def normalize_url(url: str) -> str:
    """Run site-specific URL normalization. Falls through to identity if no handler matches."""
    handler = get_handler(url)
    if handler:
        return handler.normalize_url(url)
    return url
