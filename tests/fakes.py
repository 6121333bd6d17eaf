"""In-memory test doubles for the network layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from mediagrab.errors import FetchFailed
from mediagrab.services.fetcher import FetchResponse
from mediagrab.services.identity import IdentityProfile


def make_response(
    body: Union[str, bytes, dict, list] = "",
    url: str = "https://example.test/",
    status: int = 200,
    set_cookies: Optional[List[str]] = None,
) -> FetchResponse:
    """FetchResponse from a str / bytes / JSON-able body."""
    if isinstance(body, (dict, list)):
        raw = json.dumps(body).encode()
    elif isinstance(body, str):
        raw = body.encode()
    else:
        raw = body
    return FetchResponse(url=url, status=status, body=raw, set_cookies=list(set_cookies or []))


@dataclass
class FetchCall:
    url: str
    profile: IdentityProfile
    timeout_ms: Optional[int]
    kwargs: Dict[str, Any] = field(default_factory=dict)


class FakeFetcher:
    """
    Records calls and answers from `routes`.

    A route value is a FetchResponse, a body (str/bytes/dict/list) or an
    exception to raise. Lookup tries the full URL, then the URL without its
    query string. Unrouted URLs raise FetchFailed(404).

    `downloads` maps URL -> bytes or exception for `download()`; unlisted
    URLs get a small default body.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None, downloads: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.downloads: Dict[str, Any] = dict(downloads or {})
        self.calls: List[FetchCall] = []
        self.downloaded: List[tuple] = []
        self.closed = False

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.closed = True

    def _lookup(self, url: str) -> Any:
        if url in self.routes:
            return self.routes[url]
        return self.routes.get(url.split("?", 1)[0])

    async def fetch(self, url: str, profile: IdentityProfile, timeout_ms: Optional[int] = None, **kwargs) -> FetchResponse:
        self.calls.append(FetchCall(url, profile, timeout_ms, kwargs))
        route = self._lookup(url)
        if route is None:
            raise FetchFailed(url, status=404, reason="Not Found")
        if isinstance(route, BaseException):
            raise route
        if isinstance(route, FetchResponse):
            return route
        return make_response(route, url=url)

    async def download(self, url: str, dest: Path, profile: IdentityProfile, timeout_ms: Optional[int] = None) -> int:
        self.downloaded.append((url, dest, profile))
        payload = self.downloads.get(url, b"fake-media-bytes")
        if isinstance(payload, BaseException):
            raise payload
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(payload)
        return len(payload)

    @property
    def urls(self) -> List[str]:
        return [c.url for c in self.calls]

