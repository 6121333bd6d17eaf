"""
Page fetcher – thin aiohttp wrapper used by every strategy and the materializer.

Each call is independent: the session carries no cookie jar, so cookies only
travel when a caller passes them explicitly (see FetchResponse.cookie_header).
Failures are raised as FetchFailed / FetchTimeout, never swallowed here.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from mediagrab.config import get_settings
from mediagrab.errors import FetchFailed, FetchTimeout, WriteFailed
from mediagrab.services.identity import IdentityProfile

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class FetchResponse:
    """Fully read response of a single HTTP call."""
    url: str
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)
    set_cookies: List[str] = field(default_factory=list)  # raw Set-Cookie values, redirect hops included

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON. Raises ValueError on malformed bodies."""
        return json.loads(self.text)

    def cookie_header(self) -> str:
        """`Cookie` header value built from this response's Set-Cookie headers."""
        pairs = []
        for raw in self.set_cookies:
            pair = raw.split(";", 1)[0].strip()
            if "=" in pair:
                pairs.append(pair)
        return "; ".join(pairs)


def _collect_set_cookies(resp: aiohttp.ClientResponse) -> List[str]:
    cookies: List[str] = []
    for hop in list(resp.history) + [resp]:
        cookies.extend(hop.headers.getall("Set-Cookie", []))
    return cookies


class PageFetcher:
    """
    Issues HTTP requests with a given identity profile.

    Use as an async context manager; an injected session is not closed on exit.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        timeout_ms: Optional[int] = None,
        max_redirects: Optional[int] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self.timeout_ms = timeout_ms if timeout_ms is not None else settings.fetch_timeout_ms
        self.max_redirects = max_redirects if max_redirects is not None else settings.max_redirects

    async def __aenter__(self) -> "PageFetcher":
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _request_kwargs(
        self,
        profile: IdentityProfile,
        timeout_ms: int,
        cookies: Optional[str],
        headers: Optional[Mapping[str, str]],
    ) -> Dict[str, Any]:
        request_headers = profile.build_headers(headers)
        if cookies:
            request_headers["Cookie"] = cookies
        return {
            "headers": request_headers,
            "allow_redirects": True,
            "max_redirects": self.max_redirects,
            "timeout": aiohttp.ClientTimeout(total=timeout_ms / 1000),
        }

    async def fetch(
        self,
        url: str,
        profile: IdentityProfile,
        timeout_ms: Optional[int] = None,
        *,
        method: str = "GET",
        cookies: Optional[str] = None,
        params: Optional[Mapping[str, str]] = None,
        data: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResponse:
        """
        Perform one request and read the whole body.

        Raises FetchTimeout when *timeout_ms* elapses, FetchFailed on network
        errors, too many redirects or a non-2xx status.
        """
        timeout_ms = timeout_ms or self.timeout_ms
        session = self._ensure_session()
        kwargs = self._request_kwargs(profile, timeout_ms, cookies, headers)
        logger.debug("%s %s (profile=%s, timeout=%dms)", method, url, profile.name, timeout_ms)

        try:
            async with session.request(method, url, params=params, data=data, **kwargs) as resp:
                body = await resp.read()
                if not 200 <= resp.status < 300:
                    raise FetchFailed(url, status=resp.status, reason=resp.reason or "")
                return FetchResponse(
                    url=str(resp.url),
                    status=resp.status,
                    body=body,
                    headers={k: v for k, v in resp.headers.items()},
                    set_cookies=_collect_set_cookies(resp),
                )
        except asyncio.TimeoutError as exc:
            raise FetchTimeout(url, timeout_ms) from exc
        except aiohttp.TooManyRedirects as exc:
            raise FetchFailed(url, reason=f"more than {self.max_redirects} redirects") from exc
        except aiohttp.ClientError as exc:
            raise FetchFailed(url, reason=str(exc) or exc.__class__.__name__) from exc

    async def download(
        self,
        url: str,
        dest: Path,
        profile: IdentityProfile,
        timeout_ms: Optional[int] = None,
    ) -> int:
        """
        Stream the body of *url* into *dest* and return the number of bytes written.

        Network failures raise FetchFailed / FetchTimeout; disk failures raise
        WriteFailed. A partially written file is removed.
        """
        timeout_ms = timeout_ms or settings.download_timeout_ms
        session = self._ensure_session()
        kwargs = self._request_kwargs(profile, timeout_ms, None, None)
        written = 0

        try:
            async with session.get(url, **kwargs) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchFailed(url, status=resp.status, reason=resp.reason or "")
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    async for chunk in resp.content.iter_chunked(settings.download_chunk_size):
                        f.write(chunk)
                        written += len(chunk)
        except asyncio.TimeoutError as exc:
            self._discard(dest)
            raise FetchTimeout(url, timeout_ms) from exc
        except aiohttp.TooManyRedirects as exc:
            raise FetchFailed(url, reason=f"more than {self.max_redirects} redirects") from exc
        except aiohttp.ClientError as exc:
            self._discard(dest)
            raise FetchFailed(url, reason=str(exc) or exc.__class__.__name__) from exc
        except OSError as exc:
            self._discard(dest)
            raise WriteFailed(f"Could not write {dest}: {exc}") from exc

        logger.info("Downloaded %s (%d bytes)", dest.name, written)
        return written

    @staticmethod
    def _discard(path: Path) -> None:
        """Remove a partially written download."""
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not remove partial file %s: %s", path, exc)
