"""
Base site handler. Subclass and override what differs per site.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from mediagrab.config import Settings, get_settings
from mediagrab.errors import InvalidUrl
from mediagrab.models import ContentReference

logger = logging.getLogger(__name__)


class SiteHandler:
    """
    Base handler for a media platform.

    Subclass responsibilities:
      - Set `name`, `label`, `domains` and `canonical_host` class attributes.
      - Override `classify()` and `extract_content_id()`.
      - Set `supported_content_types` and `default_strategies`; optionally
        `priority_strategies` to move a strategy to the front for one content type.
    """

    name: str = "generic"
    label: str = "Generic"
    domains: Tuple[str, ...] = ()
    canonical_host: str = ""
    trailing_slash: bool = False
    supported_content_types: Tuple[str, ...] = ()
    default_strategies: Tuple[str, ...] = ()
    # content_type -> strategy tried first for that content type
    priority_strategies: dict = {}
    unsupported_message: str = "This URL is not supported."
    remediation: Tuple[str, ...] = ()

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # -- URL matching --

    def _host_matches(self, host: str) -> bool:
        host = host.lower().split(":")[0]
        return any(host == d or host.endswith("." + d) for d in self.domains)

    def matches_url(self, url: str) -> bool:
        if not url:
            return False
        try:
            parsed = urlparse(url.strip() if "://" in url else f"https://{url.strip()}")
        except ValueError:
            return False
        return self._host_matches(parsed.netloc)

    # -- URL normalization --

    def canonical_netloc(self, host: str) -> str:
        """Host to use in the canonical URL. Default: force `canonical_host`."""
        return self.canonical_host or host

    def normalize_url(self, url: str) -> str:
        """
        Canonicalize *url*: https scheme, canonical host, no query or fragment,
        optional trailing slash. Returns *url* unchanged when it cannot be parsed
        or is not on this platform's domain.
        """
        if not url or not url.strip():
            return url
        raw = url.strip()
        if "://" not in raw:
            raw = f"https://{raw}"
        try:
            parsed = urlparse(raw)
        except ValueError:
            logger.debug("Could not parse %s URL: %s", self.label, url)
            return url
        if parsed.scheme.lower() not in ("http", "https") or not self._host_matches(parsed.netloc):
            return url

        path = parsed.path or "/"
        if self.trailing_slash and not path.endswith("/"):
            path += "/"
        elif not self.trailing_slash and len(path) > 1:
            path = path.rstrip("/")
        host = self.canonical_netloc(parsed.netloc.lower().split(":")[0])
        return f"https://{host}{path}"

    # -- Classification --

    def classify(self, url: str) -> str:
        """Pure pattern match on the URL path. Default: "unknown"."""
        return "unknown"

    def is_supported(self, url: str) -> bool:
        """True only for URLs of a content type this platform implements."""
        if not self.matches_url(url):
            return False
        return self.classify(url) in self.supported_content_types

    def extract_content_id(self, url: str) -> str:
        raise InvalidUrl(f"Could not extract a content identifier from {url}")

    def build_reference(self, url: str) -> ContentReference:
        """Validate and canonicalize *url*. Raises InvalidUrl for unsupported URLs."""
        if not self.is_supported(url):
            raise InvalidUrl(self.unsupported_message)
        canonical = self.normalize_url(url)
        return ContentReference(
            platform=self.name,
            url=canonical,
            content_type=self.classify(canonical),
            content_id=self.extract_content_id(canonical),
        )

    # -- Strategy ordering --

    def strategy_order(self, content_type: str) -> List[str]:
        """
        Names of the strategies to try, in order. A priority strategy for the
        content type goes first and is not repeated at its default position.
        """
        order = list(self.default_strategies)
        first = self.priority_strategies.get(content_type)
        if first:
            order = [first] + [s for s in order if s != first]
        return order
