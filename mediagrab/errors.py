"""
Error taxonomy for the download pipeline.

Only InvalidUrl, AllStrategiesExhausted and WriteFailed are expected to reach
the HTTP boundary; FetchFailed and ExtractionFailed are consumed by the
orchestrator and turned into "try the next strategy".
"""

from typing import Optional, Sequence


class MediaGrabError(RuntimeError):
    """Base class. `status_code` and `error` drive the HTTP error body."""

    status_code: int = 500
    error: str = "Download failed"


class InvalidUrl(MediaGrabError):
    """Raised when a URL fails validation, before any network call."""

    status_code = 400
    error = "Invalid URL"


class FetchFailed(MediaGrabError):
    """Raised when an HTTP call fails: network error, timeout or non-2xx status."""

    def __init__(self, url: str, status: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status = status
        self.reason = reason
        if status is not None:
            message = f"HTTP {status} fetching {url}"
        else:
            message = f"Request to {url} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FetchTimeout(FetchFailed):
    """Raised when a single HTTP call exceeds its timeout."""

    def __init__(self, url: str, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(url, reason=f"timeout after {timeout_ms}ms")


class ExtractionFailed(MediaGrabError):
    """Raised by a strategy that ran but found no usable media reference."""

    status_code = 404
    error = "No media found"


class AllStrategiesExhausted(MediaGrabError):
    """Raised once by the orchestrator when every strategy has failed."""

    status_code = 500
    error = "Could not download media"

    def __init__(
        self,
        platform: str,
        attempts: int,
        last_error: Optional[BaseException],
        guidance: Sequence[str] = (),
    ):
        self.platform = platform
        self.attempts = attempts
        self.last_error = last_error
        self.guidance = list(guidance)
        lines = [
            f"All {attempts} download methods failed for this {platform} URL.",
        ]
        if self.guidance:
            lines.append("Possible reasons:")
            lines.extend(f"- {hint}" for hint in self.guidance)
        if isinstance(last_error, MediaGrabError):
            lines.append(f"Last error: {last_error}")
        elif last_error is not None:
            lines.append(f"Last error: {type(last_error).__name__}: {last_error}")
        super().__init__("\n".join(lines))


class WriteFailed(MediaGrabError):
    """Raised when the materializer cannot persist a media file."""

    status_code = 500
    error = "Could not save media"
