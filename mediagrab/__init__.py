"""Instagram reel and TikTok video downloader with multi-strategy extraction."""

__version__ = "0.1.0"
