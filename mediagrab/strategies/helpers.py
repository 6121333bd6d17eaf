"""
Shared extraction helpers.

Embedded JSON shapes vary between page versions and are not stable, so media
nodes are located by a depth-bounded walk and read through declarative
field-path tables instead of hard-coded traversals.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Pattern, Sequence, Tuple, Union

from mediagrab.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

Path = Tuple[Union[str, int], ...]

# ---------------------------------------------------------------------------
# Field paths (first non-empty wins)
# ---------------------------------------------------------------------------

VIDEO_URL_PATHS: Sequence[Path] = (
    ("video_url",),
    ("video_versions", 0, "url"),
    ("playback_video_url",),
    ("playback_url",),
    ("clips_media", "video_versions", 0, "url"),
    ("media", "video_versions", 0, "url"),
    ("contentUrl",),
    ("video", "contentUrl"),
    ("video", 0, "contentUrl"),
)

THUMBNAIL_PATHS: Sequence[Path] = (
    ("display_url",),
    ("image_versions2", "candidates", 0, "url"),
    ("clips_media", "image_versions2", "candidates", 0, "url"),
    ("media", "image_versions2", "candidates", 0, "url"),
    ("thumbnail_url",),
    ("thumbnail_src",),
    ("thumbnailUrl",),
    ("thumbnailUrl", 0),
    ("video", "thumbnailUrl"),
    ("image",),
)

USERNAME_PATHS: Sequence[Path] = (
    ("owner", "username"),
    ("user", "username"),
    ("media", "user", "username"),
    ("author", "identifier", "value"),
    ("author", "alternateName"),
    ("author", "name"),
)

CAPTION_PATHS: Sequence[Path] = (
    ("edge_media_to_caption", "edges", 0, "node", "text"),
    ("caption", "text"),
    ("media", "caption", "text"),
    ("caption",),
    ("articleBody",),
    ("description",),
)

LIKES_PATHS: Sequence[Path] = (
    ("edge_media_preview_like", "count"),
    ("edge_liked_by", "count"),
    ("like_count",),
)

COMMENTS_PATHS: Sequence[Path] = (
    ("edge_media_to_comment", "count"),
    ("edge_media_preview_comment", "count"),
    ("comment_count",),
    ("commentCount",),
)

TIMESTAMP_PATHS: Sequence[Path] = (
    ("taken_at_timestamp",),
    ("taken_at",),
    ("media", "taken_at"),
    ("uploadDate",),
    ("datePublished",),
    ("dateCreated",),
)

# Keys whose presence marks a dict as a media node.
MEDIA_NODE_KEYS = ("video_url", "video_versions", "playback_video_url", "playback_url")

# Hostname substrings of the platforms' content delivery networks.
CDN_HOSTS = ("scontent", "cdninstagram", "fbcdn")


def dig(node: Any, path: Path) -> Any:
    """Follow *path* (dict keys / list indexes) into *node*; None if any step is missing."""
    cur = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(cur, list) or len(cur) <= step:
                return None
            cur = cur[step]
        else:
            if not isinstance(cur, dict):
                return None
            cur = cur.get(step)
        if cur is None:
            return None
    return cur


def first_path(node: Any, paths: Iterable[Path], kind: type = str) -> Any:
    """First value along *paths* that is a non-empty instance of *kind*."""
    for path in paths:
        value = dig(node, path)
        if isinstance(value, bool):
            continue
        if isinstance(value, kind) and (value or value == 0):
            if isinstance(value, str) and not value.strip():
                continue
            return value
    return None


def has_media_url(node: Any) -> bool:
    """Predicate: *node* is a dict exposing a recognizable video URL field."""
    if not isinstance(node, dict):
        return False
    for key in MEDIA_NODE_KEYS:
        value = node.get(key)
        if isinstance(value, str) and value:
            return True
        if isinstance(value, list) and value:
            return True
    return False


def find_first(
    node: Any,
    predicate: Callable[[Any], bool],
    max_depth: Optional[int] = None,
) -> Optional[dict]:
    """
    Pre-order walk over parsed JSON; return the first dict satisfying *predicate*.

    Nesting deeper than *max_depth* is not explored.
    """
    limit = settings.json_max_depth if max_depth is None else max_depth

    def _walk(value: Any, depth: int) -> Optional[dict]:
        if depth > limit:
            return None
        if isinstance(value, dict):
            if predicate(value):
                return value
            children = value.values()
        elif isinstance(value, list):
            children = value
        else:
            return None
        for child in children:
            if isinstance(child, (dict, list)):
                found = _walk(child, depth + 1)
                if found is not None:
                    return found
        return None

    return _walk(node, 0)


# ---------------------------------------------------------------------------
# Regex helpers
# ---------------------------------------------------------------------------


def first_match(patterns: Iterable[Pattern], text: str, group: int = 1) -> Optional[str]:
    """Group *group* of the first pattern that matches *text* with a non-empty capture."""
    for pattern in patterns:
        m = pattern.search(text)
        if m and m.group(group):
            return m.group(group)
    return None


def all_matches(patterns: Iterable[Pattern], text: str, group: int = 1) -> List[str]:
    """Every non-empty capture of every pattern, in pattern order."""
    out: List[str] = []
    for pattern in patterns:
        for m in pattern.finditer(text):
            if m.group(group):
                out.append(m.group(group))
    return out


def pick_longest(
    urls: Iterable[str],
    extension: str = ".mp4",
    hosts: Sequence[str] = CDN_HOSTS,
) -> Optional[str]:
    """
    Keep URLs containing *extension* and one of the CDN *hosts* substrings and
    return the longest (longer URLs usually carry the higher-quality variant).
    """
    valid = [u for u in urls if extension in u and any(h in u for h in hosts)]
    if not valid:
        return None
    return max(valid, key=len)


# ---------------------------------------------------------------------------
# URL cleanup
# ---------------------------------------------------------------------------

_ESCAPES = (
    ("\\u0026", "&"),
    ("\\u003c", "<"),
    ("\\u003C", "<"),
    ("\\u003e", ">"),
    ("\\u003E", ">"),
    ("\\u002F", "/"),
    ("\\u002f", "/"),
    ("\\/", "/"),
    ("&amp;", "&"),
)


def unescape_url(text: str) -> str:
    """Undo the escapes found in URLs embedded in inline JSON and HTML attributes."""
    for escaped, plain in _ESCAPES:
        text = text.replace(escaped, plain)
    return text


def normalize_media_url(url: Optional[str], base: str = "https://www.instagram.com") -> Optional[str]:
    """
    Absolute https form of *url*: protocol-relative and site-relative URLs are
    resolved against *base*, http is upgraded, escapes are undone.
    """
    if not url:
        return None
    out = unescape_url(url.strip())
    if out.startswith("//"):
        out = f"https:{out}"
    elif out.startswith("/"):
        out = f"{base.rstrip('/')}{out}"
    elif out.startswith("http://"):
        out = "https://" + out[len("http://"):]
    return out


def clean_text(text: Optional[str]) -> Optional[str]:
    """Decode JSON string escapes in a regex-captured text field."""
    if not text:
        return text
    try:
        return json.loads(f'"{text}"')
    except ValueError:
        return text.replace("\\n", "\n")


# ---------------------------------------------------------------------------
# Embedded JSON
# ---------------------------------------------------------------------------


def extract_balanced_json(text: str, start: int) -> Optional[Any]:
    """
    Parse the JSON object that opens at or after index *start* of *text*, by
    brace matching (string-aware). Returns None when no valid object is found.
    """
    begin = text.find("{", start)
    if begin < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(begin, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[begin:i + 1])
                except ValueError as exc:
                    logger.debug("Embedded JSON at %d did not parse: %s", begin, exc)
                    return None
    return None


def json_after(pattern: Pattern, text: str) -> Optional[Any]:
    """Parse the JSON object following the first match of *pattern* in *text*."""
    m = pattern.search(text)
    if not m:
        return None
    return extract_balanced_json(text, m.end())


def to_iso_timestamp(value: Union[int, str, None]) -> Optional[str]:
    """ISO 8601 form of an epoch-seconds value; date strings pass through."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            return value or None
        value = int(value)
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()
    except (OverflowError, OSError, ValueError):
        return None
