"""TikTok (tiktok.com) handler."""

from __future__ import annotations

import re
from typing import Optional, Tuple
from urllib.parse import urlparse

from mediagrab.errors import InvalidUrl
from mediagrab.sites.base import SiteHandler

_VIDEO_PATH = re.compile(r"^/@(?P<user>[^/]+)/video/(?P<id>\d+)")
_SHORT_PATH = re.compile(r"^/(?:t/)?(?P<code>[A-Za-z0-9]+)/?$")
# Short-link hosts redirect to the full video URL and must be kept as they are.
_SHORT_HOSTS = {"vm.tiktok.com", "vt.tiktok.com"}


def _split(url: str) -> Tuple[str, str]:
    raw = url.strip()
    if "://" not in raw:
        raw = f"https://{raw}"
    try:
        parsed = urlparse(raw)
    except ValueError:
        return "", ""
    return parsed.netloc.lower().split(":")[0], parsed.path or "/"


class TikTokHandler(SiteHandler):
    name = "tiktok"
    label = "TikTok"
    domains = ("tiktok.com",)
    canonical_host = "www.tiktok.com"
    supported_content_types = ("video",)
    default_strategies = ("tikwm", "ssstik", "rapidsave")
    unsupported_message = (
        "Please provide a valid TikTok video URL (https://www.tiktok.com/@user/video/<id>)."
    )
    remediation = (
        "The video may be private or deleted.",
        "TikTok has strong protections against downloading videos; try again later.",
        "The third-party download services may be unavailable.",
    )

    def canonical_netloc(self, host: str) -> str:
        if host in _SHORT_HOSTS:
            return host
        return self.canonical_host

    def _match(self, url: str) -> Optional[re.Match]:
        host, path = _split(url)
        if host in _SHORT_HOSTS or path.startswith("/t/"):
            return _SHORT_PATH.match(path)
        return _VIDEO_PATH.match(path)

    def classify(self, url: str) -> str:
        return "video" if self._match(url) else "unknown"

    def extract_content_id(self, url: str) -> str:
        """Return the numeric video id, or the short-link code."""
        m = self._match(url)
        if not m:
            raise InvalidUrl(f"Could not extract video ID from TikTok URL: {url}")
        return m.group("id") if "id" in m.groupdict() else m.group("code")

    @staticmethod
    def username_from_url(url: str) -> Optional[str]:
        """The @handle embedded in a full video URL, if any."""
        m = _VIDEO_PATH.match(_split(url)[1])
        return m.group("user") if m else None
