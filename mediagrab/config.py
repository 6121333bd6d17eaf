"""
Configuration module for mediagrab.
Loads all settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # --- Output ---
    # Root for downloaded media: <output_dir>/<platform>/<content_id>/...
    output_dir: str = os.getenv("MEDIA_OUTPUT_DIR", os.path.join(os.getcwd(), "public"))
    # Public URL prefix under which output_dir is served.
    media_url_prefix: str = os.getenv("MEDIA_URL_PREFIX", "/media")
    serve_media: bool = os.getenv("MEDIA_SERVE_FILES", "true").lower() == "true"

    # --- Network (all timeouts in milliseconds, per call) ---
    fetch_timeout_ms: int = int(os.getenv("FETCH_TIMEOUT_MS", "30000"))
    # Embed / oEmbed / third-party helper APIs answer faster than full pages.
    api_timeout_ms: int = int(os.getenv("API_TIMEOUT_MS", "15000"))
    download_timeout_ms: int = int(os.getenv("DOWNLOAD_TIMEOUT_MS", "60000"))
    max_redirects: int = max(0, int(os.getenv("MAX_REDIRECTS", "5")))
    download_chunk_size: int = max(1024, int(os.getenv("DOWNLOAD_CHUNK_SIZE", "65536")))

    # --- Extraction ---
    # Depth bound for the recursive walk over embedded JSON blobs.
    json_max_depth: int = max(1, int(os.getenv("JSON_MAX_DEPTH", "64")))

    # --- Server ---
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")


def get_settings() -> Settings:
    """Return a singleton-ish settings instance."""
    return Settings()
