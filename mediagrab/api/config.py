"""
Config API endpoint.
Exposes what a frontend needs: supported platforms and where saved media is served.
"""

from fastapi import APIRouter

from mediagrab.config import get_settings
from mediagrab.sites import get_handlers

router = APIRouter()


@router.get("/config")
async def get_config():
    """Return frontend configuration."""
    settings = get_settings()
    return {
        "platforms": [
            {
                "name": handler.name,
                "label": handler.label,
                "content_types": list(handler.supported_content_types),
                "endpoint": f"/api/{handler.name}",
            }
            for handler in get_handlers()
        ],
        "media_url_prefix": settings.media_url_prefix,
        "serve_media": settings.serve_media,
    }
