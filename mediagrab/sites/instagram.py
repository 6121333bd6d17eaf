"""Instagram (instagram.com) handler. Only reels are supported."""

import re
from urllib.parse import urlparse

from mediagrab.errors import InvalidUrl
from mediagrab.sites.base import SiteHandler

_REEL_PATH = re.compile(r"^/(?:reel|reels)/([A-Za-z0-9_-]+)", re.IGNORECASE)


def _path_of(url: str) -> str:
    raw = url.strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    try:
        return urlparse(raw).path or "/"
    except ValueError:
        return ""


class InstagramHandler(SiteHandler):
    name = "instagram"
    label = "Instagram"
    domains = ("instagram.com",)
    canonical_host = "www.instagram.com"
    trailing_slash = True
    supported_content_types = ("reel",)
    default_strategies = ("embedded_data", "script_json", "dom", "embed", "session")
    # The embed page is the most reliable source for reels.
    priority_strategies = {"reel": "embed"}
    unsupported_message = (
        "Please provide a valid Instagram reel URL. Other content types are not supported."
    )
    remediation = (
        "The reel may be private, age-restricted or deleted.",
        "Instagram may be rate-limiting or blocking automated requests; try again later.",
        "Instagram may have changed its page structure.",
    )

    def classify(self, url: str) -> str:
        if _REEL_PATH.match(_path_of(url)):
            return "reel"
        return "unknown"

    def extract_content_id(self, url: str) -> str:
        """Return the reel shortcode."""
        m = _REEL_PATH.match(_path_of(url))
        if not m:
            raise InvalidUrl(f"Could not extract reel ID from Instagram URL: {url}")
        return m.group(1)
