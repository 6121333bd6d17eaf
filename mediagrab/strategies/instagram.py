"""
Instagram extraction strategies.

Each strategy fetches the reel with its own identity profile and runs an
ordered list of rules over the response; the first rule to produce a value
for a field wins (see FieldCandidates). The default order is

    embedded_data -> script_json -> dom -> embed -> session

with `embed` moved to the front for reels.
"""

import html as htmlmod
import json
import logging
import re
from typing import Any, Iterable, Iterator, List, Optional
from urllib.parse import quote

from bs4 import BeautifulSoup

from mediagrab.config import get_settings
from mediagrab.errors import ExtractionFailed, FetchFailed
from mediagrab.models import ContentReference, PostInfo
from mediagrab.services.identity import (
    DESKTOP_CHROME,
    EMBED_MOBILE,
    FIREFOX,
    JSON_API,
    MOBILE_SAFARI,
    SESSION_CHROME,
)
from mediagrab.strategies.base import FieldCandidates, HtmlStrategy
from mediagrab.strategies.helpers import (
    CAPTION_PATHS,
    COMMENTS_PATHS,
    LIKES_PATHS,
    THUMBNAIL_PATHS,
    TIMESTAMP_PATHS,
    USERNAME_PATHS,
    VIDEO_URL_PATHS,
    all_matches,
    clean_text,
    find_first,
    first_match,
    first_path,
    has_media_url,
    json_after,
    pick_longest,
    unescape_url,
)

logger = logging.getLogger(__name__)
settings = get_settings()

HOME_URL = "https://www.instagram.com/"
EMBED_URL = "https://www.instagram.com/p/{shortcode}/embed/"
OEMBED_URL = "https://www.instagram.com/oembed/"

# ---------------------------------------------------------------------------
# Regex signatures
# ---------------------------------------------------------------------------

_JSON_TEXT = r'((?:[^"\\]|\\.)+)'

VIDEO_SIGNATURES = [
    re.compile(r'"video_url":\s*"([^"]+)"'),
    re.compile(r'"playback_url":\s*"([^"]+)"'),
    re.compile(r'"src":\s*"(https:[^"]+\.mp4[^"]*)"'),
    re.compile(r'"contentUrl":\s*"([^"]+)"'),
    re.compile(r"""video_url["']?\s*:\s*["']([^"']+)["']"""),
]
# Bare CDN URLs anywhere in the page; only used where every match is collected.
_DIRECT_MP4 = re.compile(r"""(https:(?://|\\/\\/)[^"'\s<>]+\.mp4[^"'\s<>]*)""")

THUMBNAIL_SIGNATURES = [
    re.compile(r'"display_url":\s*"([^"]+)"'),
    re.compile(r'"thumbnail_url":\s*"([^"]+)"'),
    re.compile(r'"image_versions2":\s*\{\s*"candidates":\s*\[\s*\{[^{}]*?"url":\s*"([^"]+)"'),
]

USERNAME_SIGNATURES = [
    re.compile(r'"owner":\s*\{[^{}]*?"username":\s*"([^"]+)"'),
    re.compile(r'"username":\s*"([^"]+)"'),
]

CAPTION_SIGNATURES = [
    re.compile(r'"edge_media_to_caption":\s*\{\s*"edges":\s*\[\s*\{\s*"node":\s*\{\s*"text":\s*"' + _JSON_TEXT + '"'),
    re.compile(r'"caption":\s*\{[^{}]*?"text":\s*"' + _JSON_TEXT + '"'),
    re.compile(r'"caption":\s*"' + _JSON_TEXT + '"'),
    re.compile(r'"text":\s*"' + _JSON_TEXT + '"'),
]

LIKES_SIGNATURES = [
    re.compile(r'"edge_media_preview_like":\s*\{\s*"count":\s*(\d+)'),
    re.compile(r'"like_count":\s*(\d+)'),
]

COMMENTS_SIGNATURES = [
    re.compile(r'"edge_media_to_comment":\s*\{\s*"count":\s*(\d+)'),
    re.compile(r'"comment_count":\s*(\d+)'),
]

# Inline page state: the JSON object follows the marker.
STATE_MARKERS = [
    re.compile(r"window\._sharedData\s*=\s*"),
    re.compile(r"""window\.__additionalDataLoaded\s*\(\s*['"](?:feed|reel)['"]\s*,\s*"""),
    re.compile(r"window\.__REELDATA__\s*=\s*"),
    re.compile(r"window\.__APOLLO_STATE__\s*=\s*"),
    re.compile(r"window\.__APOLLO_PROPS__\s*=\s*"),
]

_SCRIPT_BODY = re.compile(r"<script[^>]*>([\s\S]*?)</script>", re.IGNORECASE)
_FLAT_MEDIA_OBJECTS = [
    re.compile(r'(\{[^{}]*"video_url"[^{}]*\})'),
    re.compile(r'(\{[^{}]*"playback_url"[^{}]*\})'),
    re.compile(r'(\{[^{}]*"video_versions"[^{}]*\})'),
]
_EMBED_MARKERS = [
    re.compile(r"instgrm\.Embeds\.process\(\)"),
    re.compile(r"instagram-media"),
    re.compile(r"instagram\.com/embed\.js"),
]
_DATA_VIDEO_URL = re.compile(r'data-video-url="([^"]+)"')
_IFRAME_SRC = re.compile(r'src="([^"]+)"')
_HANDLE_IN_TITLE = re.compile(r"\(@([A-Za-z0-9._]+)\)")

# Known <img> class fragments of the media element, in preference order.
IMG_CLASSES_LEGACY = ("tWeCl", "FFVAD", "sizer_element--cover")
IMG_CLASSES = ("Sqi2_", "_aagt", "FFVAD", "EmbeddedMediaImage", "tWeCl")


def _meta_patterns(prop: str) -> List[re.Pattern]:
    """Both attribute orders of a <meta property|name=... content=...> tag."""
    p = re.escape(prop)
    return [
        re.compile(r'<meta[^>]+(?:property|name)="' + p + r'"[^>]*?content="([^"]*)"', re.IGNORECASE),
        re.compile(r'<meta[^>]+content="([^"]*)"[^>]*?(?:property|name)="' + p + r'"', re.IGNORECASE),
    ]


def _img_class_patterns(classes: Iterable[str]) -> List[re.Pattern]:
    out = []
    for cls in classes:
        c = re.escape(cls)
        out.append(re.compile(r'<img[^>]*class="[^"]*' + c + r'[^"]*"[^>]*src="([^"]+)"', re.IGNORECASE))
        out.append(re.compile(r'<img[^>]*src="([^"]+)"[^>]*class="[^"]*' + c, re.IGNORECASE))
    return out


_OG_IMAGE = _meta_patterns("og:image")
_TWITTER_IMAGE = _meta_patterns("twitter:image")
_OG_TITLE = _meta_patterns("og:title")
_OG_DESCRIPTION = _meta_patterns("og:description")


def username_from_title(title: Optional[str]) -> Optional[str]:
    """
    Account name from an og:title / <title> text, e.g.
    "creator on Instagram: ..." or "Some Name (@creator) • Instagram reel".
    """
    if not title:
        return None
    title = htmlmod.unescape(title)
    m = _HANDLE_IN_TITLE.search(title)
    if m:
        return m.group(1)
    name = re.split(r"\s+on Instagram", title, maxsplit=1, flags=re.IGNORECASE)[0]
    name = name.split("•")[0].strip()
    if not name or name.lower() == "instagram":
        return None
    return name


def _text(value: Optional[str]) -> Optional[str]:
    """Unescape a regex-captured JSON string or HTML attribute value."""
    if value is None:
        return None
    return htmlmod.unescape(clean_text(value))


def _int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _meta_content(soup: BeautifulSoup, *props: str) -> Optional[str]:
    """content of the first <meta property|name=prop> present with a value."""
    for prop in props:
        tag = soup.find("meta", attrs={"property": prop}) or soup.find("meta", attrs={"name": prop})
        if tag and tag.get("content"):
            return tag["content"]
    return None


def _offer_node(fields: FieldCandidates, node: Any) -> None:
    """Offer every field the path tables can read out of one JSON node."""
    fields.offer("video_url", first_path(node, VIDEO_URL_PATHS))
    fields.offer("thumbnail_url", first_path(node, THUMBNAIL_PATHS))
    fields.offer("username", first_path(node, USERNAME_PATHS))
    fields.offer("caption", first_path(node, CAPTION_PATHS))
    fields.offer("likes_count", first_path(node, LIKES_PATHS, int))
    fields.offer("comments_count", first_path(node, COMMENTS_PATHS, int))
    fields.offer("timestamp", first_path(node, TIMESTAMP_PATHS, (int, str)))


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class EmbeddedDataStrategy(HtmlStrategy):
    """
    Structured data embedded in the reel page: JSON-LD blocks and the inline
    state objects (`window._sharedData`, `__additionalDataLoaded(...)`,
    `__REELDATA__` / Apollo state), walked for the first media node. Meta
    tags and known <img> classes fill whatever is still missing.
    """

    name = "embedded_data"
    platform = "instagram"
    profile = MOBILE_SAFARI

    def _json_ld(self, soup: BeautifulSoup) -> Iterator[Any]:
        for script in soup.find_all("script", type="application/ld+json"):
            try:
                parsed = json.loads(script.string or "")
            except ValueError:
                logger.debug("Skipping malformed JSON-LD block")
                continue
            if isinstance(parsed, list):
                yield from parsed
            else:
                yield parsed

    def _page_state(self, html: str) -> Iterator[Any]:
        for marker in STATE_MARKERS:
            data = json_after(marker, html)
            if data is not None:
                yield data

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        soup = _soup(html)
        fields = FieldCandidates()

        for block in self._json_ld(soup):
            _offer_node(fields, block)

        for state in self._page_state(html):
            media = find_first(state, has_media_url)
            if media is not None:
                _offer_node(fields, media)
            # Counts can sit on the shortcode_media node without a video.
            counts = find_first(state, lambda n: "edge_media_preview_like" in n)
            if counts is not None:
                _offer_node(fields, counts)

        fields.offer("video_url", _meta_content(soup, "og:video"))
        fields.offer("thumbnail_url", _meta_content(soup, "og:image"))
        for cls in IMG_CLASSES_LEGACY:
            img = soup.select_one(f'img[class*="{cls}"]')
            if img is not None:
                fields.offer("thumbnail_url", img.get("src"))

        fields.offer("username", username_from_title(_meta_content(soup, "og:title")))
        if soup.title and soup.title.string:
            fields.offer("username", username_from_title(soup.title.string))
        fields.offer("username", _text(first_match(USERNAME_SIGNATURES[1:], html)))
        fields.offer("caption", _meta_content(soup, "og:description"))

        return fields.to_post_info(ref, self.name)


class ScriptJsonStrategy(HtmlStrategy):
    """
    Flat JSON objects inside inline <script> bodies, then regex signatures
    over the whole document, then the embed `data-video-url` attribute.
    """

    name = "script_json"
    platform = "instagram"
    profile = DESKTOP_CHROME

    def _script_objects(self, html: str) -> Iterator[dict]:
        for body in _SCRIPT_BODY.findall(html):
            for pattern in _FLAT_MEDIA_OBJECTS:
                for raw in pattern.findall(body):
                    try:
                        data = json.loads(raw)
                    except ValueError:
                        continue
                    if isinstance(data, dict):
                        yield data

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        fields = FieldCandidates()

        for data in self._script_objects(html):
            if first_path(data, VIDEO_URL_PATHS):
                _offer_node(fields, data)
                break

        fields.offer("video_url", first_match(VIDEO_SIGNATURES, html))

        if not fields.has("video_url") and any(p.search(html) for p in _EMBED_MARKERS):
            fields.offer("video_url", first_match([_DATA_VIDEO_URL], html))

        fields.offer("thumbnail_url", first_match(_OG_IMAGE + _TWITTER_IMAGE + THUMBNAIL_SIGNATURES[:2], html))
        fields.offer("username", username_from_title(first_match(_OG_TITLE, html)))
        fields.offer("username", _text(first_match(USERNAME_SIGNATURES, html)))
        fields.offer("caption", _text(first_match(_OG_DESCRIPTION, html)))
        fields.offer("caption", _text(first_match(CAPTION_SIGNATURES[1:], html)))
        fields.offer("likes_count", _int(first_match(LIKES_SIGNATURES, html)))
        fields.offer("comments_count", _int(first_match(COMMENTS_SIGNATURES, html)))
        fields.offer("thumbnail_url", first_match(_img_class_patterns(IMG_CLASSES), html))

        return fields.to_post_info(ref, self.name)


class DomStrategy(HtmlStrategy):
    """
    DOM scraping with BeautifulSoup: Open Graph meta tags, inline scripts,
    <video>/<source>/data-* attributes and media <img> elements. As a last
    resort the longest CDN .mp4 URL anywhere in the page is taken.
    """

    name = "dom"
    platform = "instagram"
    profile = FIREFOX

    _IMG_SELECTORS = (
        'img[class*="FFVAD"]',
        'img[class*="_aagt"]',
        'img[class*="tWeCl"]',
        'img[class*="EmbeddedMediaImage"]',
        'img[alt*="Photo"]',
        'img[alt*="Video"]',
    )

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        soup = _soup(html)
        fields = FieldCandidates()

        fields.offer("video_url", _meta_content(soup, "og:video", "og:video:url", "og:video:secure_url"))
        fields.offer("thumbnail_url", _meta_content(soup, "og:image", "og:image:url", "og:image:secure_url"))
        fields.offer("username", username_from_title(_meta_content(soup, "og:title")))
        fields.offer("caption", _meta_content(soup, "og:description"))

        for script in soup.find_all("script"):
            content = script.string or ""
            if not content:
                continue
            fields.offer("video_url", first_match(VIDEO_SIGNATURES, content))
            fields.offer("thumbnail_url", first_match(THUMBNAIL_SIGNATURES, content))
            fields.offer("username", _text(first_match(USERNAME_SIGNATURES, content)))
            fields.offer("caption", _text(first_match(CAPTION_SIGNATURES, content)))
            fields.offer("likes_count", _int(first_match(LIKES_SIGNATURES, content)))
            fields.offer("comments_count", _int(first_match(COMMENTS_SIGNATURES, content)))

        for el in soup.select('video, [data-video-url], [data-src*=".mp4"]'):
            source = el.find("source")
            src = el.get("src") or el.get("data-src") or el.get("data-video-url") or (source and source.get("src"))
            if fields.offer("video_url", src):
                break

        for selector in self._IMG_SELECTORS:
            img = soup.select_one(selector)
            if img is not None and fields.offer("thumbnail_url", img.get("src") or img.get("data-src")):
                break

        if not fields.has("video_url"):
            candidates = [unescape_url(u) for u in _DIRECT_MP4.findall(html)]
            fields.offer("video_url", pick_longest(candidates))

        return fields.to_post_info(ref, self.name)


class EmbedStrategy(HtmlStrategy):
    """
    The lightweight `/p/<shortcode>/embed/` page. When it shows no video the
    oEmbed endpoint is asked for the player iframe, which is then scanned.
    """

    name = "embed"
    platform = "instagram"
    profile = EMBED_MOBILE

    # playback_url only appears in the player iframe, not the embed page
    _EMBED_VIDEO = [VIDEO_SIGNATURES[i] for i in (0, 2, 3, 4)]

    def page_url(self, ref: ContentReference) -> str:
        return EMBED_URL.format(shortcode=ref.content_id)

    def oembed_url(self, ref: ContentReference) -> str:
        return f"{OEMBED_URL}?url={quote(ref.url, safe='')}"

    def _scan(self, html: str, fields: FieldCandidates) -> None:
        fields.offer("video_url", first_match(self._EMBED_VIDEO, html))
        fields.offer("thumbnail_url", first_match(THUMBNAIL_SIGNATURES[:1], html))
        fields.offer("username", _text(first_match(USERNAME_SIGNATURES[1:], html)))
        fields.offer("caption", _text(first_match(CAPTION_SIGNATURES[2:3], html)))

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        """Embed page only counts when it carries a video URL."""
        fields = FieldCandidates()
        self._scan(html, fields)
        if not fields.has("video_url"):
            raise ExtractionFailed(f"Embed page for {ref.content_id} has no video URL")
        return fields.to_post_info(ref, self.name)

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        try:
            resp = await fetcher.fetch(self.page_url(ref), self.profile, settings.api_timeout_ms)
            return self.parse(resp.text, ref)
        except (FetchFailed, ExtractionFailed) as exc:
            logger.info("Embed page unusable for %s (%s); trying oEmbed", ref.content_id, exc)

        resp = await fetcher.fetch(self.oembed_url(ref), JSON_API, settings.api_timeout_ms)
        try:
            data = resp.json()
        except ValueError as exc:
            raise ExtractionFailed(f"oEmbed response for {ref.content_id} is not JSON") from exc
        if not isinstance(data, dict):
            raise ExtractionFailed(f"oEmbed response for {ref.content_id} is not an object")

        snippet = data.get("html")
        iframe_src = first_match([_IFRAME_SRC], snippet) if isinstance(snippet, str) else None
        if not iframe_src:
            raise ExtractionFailed(f"oEmbed response for {ref.content_id} has no player iframe")

        iframe = await fetcher.fetch(htmlmod.unescape(iframe_src), self.profile, settings.api_timeout_ms)
        fields = FieldCandidates()
        fields.offer("video_url", first_match(VIDEO_SIGNATURES, iframe.text))
        if not fields.has("video_url"):
            raise ExtractionFailed(f"oEmbed player for {ref.content_id} has no video URL")
        fields.offer("username", data.get("author_name"))
        fields.offer("caption", data.get("title"))
        fields.offer("thumbnail_url", data.get("thumbnail_url"))
        self._scan(iframe.text, fields)
        return fields.to_post_info(ref, self.name)


class SessionStrategy(HtmlStrategy):
    """
    Two-step fetch: visit the home page first, then request the reel
    same-origin with the cookies it set. Every video signature match is
    collected and the longest CDN .mp4 URL wins.
    """

    name = "session"
    platform = "instagram"
    profile = SESSION_CHROME

    def parse(self, html: str, ref: ContentReference) -> PostInfo:
        fields = FieldCandidates()

        candidates = [unescape_url(u) for u in all_matches(VIDEO_SIGNATURES + [_DIRECT_MP4], html)]
        fields.offer("video_url", pick_longest(candidates))

        fields.offer("thumbnail_url", first_match(THUMBNAIL_SIGNATURES[:2] + _OG_IMAGE, html))
        fields.offer("username", _text(first_match(USERNAME_SIGNATURES, html)))
        fields.offer("username", username_from_title(first_match(_OG_TITLE, html)))
        fields.offer("caption", _text(first_match(CAPTION_SIGNATURES[2:] + _OG_DESCRIPTION, html)))

        return fields.to_post_info(ref, self.name)

    async def extract(self, ref: ContentReference, fetcher) -> PostInfo:
        home = await fetcher.fetch(HOME_URL, self.profile, settings.api_timeout_ms)
        cookies = home.cookie_header()
        logger.debug("Session for %s carries %d cookies", ref.content_id, len(home.set_cookies))

        resp = await fetcher.fetch(
            ref.url,
            self.profile,
            cookies=cookies or None,
            headers={"Sec-Fetch-Site": "same-origin", "Referer": HOME_URL},
        )
        return self.parse(resp.text, ref)


INSTAGRAM_STRATEGIES = [
    EmbeddedDataStrategy,
    ScriptJsonStrategy,
    DomStrategy,
    EmbedStrategy,
    SessionStrategy,
]
