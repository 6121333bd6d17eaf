"""
Identity profiles: the header sets a fetch presents to look like a given
browser or device. Process-wide, read-only tables.
"""

import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional


@dataclass(frozen=True)
class IdentityProfile:
    """User-agent plus header set for one browser/device persona."""
    name: str
    user_agent: str
    headers: Mapping[str, str] = field(default_factory=dict)
    referer: Optional[str] = None

    def build_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Full request headers; *extra* overrides the profile's own."""
        out: Dict[str, str] = {"User-Agent": self.user_agent}
        out.update(self.headers)
        if self.referer:
            out["Referer"] = self.referer
        if extra:
            out.update(extra)
        return out

    def with_user_agent(self, user_agent: str) -> "IdentityProfile":
        return IdentityProfile(self.name, user_agent, self.headers, self.referer)


UA_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_5_1 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.5 Mobile/15E148 Safari/604.1"
)
UA_MAC_CHROME = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)
UA_WINDOWS_CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
UA_FIREFOX = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0"

# Pool for random rotation (media downloads).
USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
    UA_IPHONE,
    "Mozilla/5.0 (iPad; CPU OS 17_5_1 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.5 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Android 14; Mobile) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Mobile Safari/537.36",
)

_HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8"

_NAVIGATE = {
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-User": "?1",
    "Sec-Fetch-Dest": "document",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

MOBILE_SAFARI = IdentityProfile(
    name="mobile_safari",
    user_agent=UA_IPHONE,
    headers=MappingProxyType({
        "Accept": _HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": '"Not/A)Brand";v="99", "Google Chrome";v="125", "Chromium";v="125"',
        "sec-ch-ua-mobile": "?1",
        "sec-ch-ua-platform": '"iOS"',
        "Sec-Fetch-Site": "none",
        **_NAVIGATE,
    }),
    referer="https://www.google.com/",
)

DESKTOP_CHROME = IdentityProfile(
    name="desktop_chrome",
    user_agent=UA_MAC_CHROME,
    headers=MappingProxyType({
        "Accept": _HTML_ACCEPT + ",application/signed-exchange;v=b3;q=0.7",
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": '"Google Chrome";v="125", "Chromium";v="125", "Not.A/Brand";v="8"',
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"macOS"',
        "Sec-Fetch-Site": "none",
        **_NAVIGATE,
    }),
)

FIREFOX = IdentityProfile(
    name="firefox",
    user_agent=UA_FIREFOX,
    headers=MappingProxyType({
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "DNT": "1",
        "Sec-Fetch-Site": "none",
        **_NAVIGATE,
    }),
)

# Two-step session flow: the home page first, then the target same-origin.
SESSION_CHROME = IdentityProfile(
    name="session_chrome",
    user_agent=UA_WINDOWS_CHROME,
    headers=MappingProxyType({
        "Accept": _HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
        "Sec-Fetch-Site": "none",
        **_NAVIGATE,
        "Cache-Control": "max-age=0",
    }),
)

EMBED_MOBILE = IdentityProfile(
    name="embed_mobile",
    user_agent=UA_IPHONE,
    headers=MappingProxyType({
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }),
    referer="https://www.instagram.com/",
)

JSON_API = IdentityProfile(
    name="json_api",
    user_agent=UA_WINDOWS_CHROME,
    headers=MappingProxyType({
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    }),
)

MEDIA_DOWNLOAD = IdentityProfile(
    name="media_download",
    user_agent=USER_AGENTS[0],
    headers=MappingProxyType({
        "Accept": "*/*",
        "Accept-Language": "en-US,en;q=0.9",
        "DNT": "1",
        "Sec-Fetch-Dest": "video",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "cross-site",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }),
)

PROFILES: Mapping[str, IdentityProfile] = MappingProxyType({
    p.name: p
    for p in (MOBILE_SAFARI, DESKTOP_CHROME, FIREFOX, SESSION_CHROME, EMBED_MOBILE, JSON_API, MEDIA_DOWNLOAD)
})


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def media_profile(referer: Optional[str] = None) -> IdentityProfile:
    """Download profile with a randomly drawn user agent."""
    profile = MEDIA_DOWNLOAD.with_user_agent(random_user_agent())
    if referer:
        profile = IdentityProfile(profile.name, profile.user_agent, profile.headers, referer)
    return profile
