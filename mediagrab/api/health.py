"""
Health-check endpoint.
"""

from fastapi import APIRouter

from mediagrab.config import get_settings

router = APIRouter()


@router.get("/health")
async def healthcheck():
    settings = get_settings()
    return {"status": "ok", "media_url_prefix": settings.media_url_prefix}
