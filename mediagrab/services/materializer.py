"""
Media materializer – persists a PostInfo's media to the output directory.

Layout: <output_dir>/<platform>/<content_id>/
    <content_id>.mp4                 one item
    <content_id>_<n>.mp4             several items (n from 1)
    <content_id>[_<n>]_thumbnail.jpg
    metadata.json
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from mediagrab.errors import FetchFailed, WriteFailed
from mediagrab.models import MediaItem, PostInfo, SavedFile
from mediagrab.services.identity import media_profile

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"

_EXTENSIONS = {"video": "mp4", "image": "jpg"}

_REFERERS = {
    "instagram": "https://www.instagram.com/",
    "tiktok": "https://www.tiktok.com/",
}


def content_dir(output_dir: Union[str, Path], post: PostInfo) -> Path:
    return Path(output_dir) / post.platform / post.content_id


def media_file_name(post: PostInfo, index: int, item: MediaItem) -> str:
    """`<id>.<ext>` for a single item, `<id>_<n>.<ext>` (n from 1) otherwise."""
    ext = _EXTENSIONS.get(item.kind, "bin")
    if len(post.media_items) > 1:
        return f"{post.content_id}_{index + 1}.{ext}"
    return f"{post.content_id}.{ext}"


def thumbnail_file_name(post: PostInfo, index: int) -> str:
    if len(post.media_items) > 1:
        return f"{post.content_id}_{index + 1}_thumbnail.jpg"
    return f"{post.content_id}_thumbnail.jpg"


def _relative(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


async def _save_thumbnail(
    item: MediaItem, dest: Path, root: Path, fetcher, referer: Optional[str]
) -> Optional[str]:
    """Download a thumbnail; failures are logged and yield None."""
    try:
        await fetcher.download(item.thumbnail_url, dest, media_profile(referer))
    except (FetchFailed, WriteFailed) as exc:
        logger.warning("Failed to download thumbnail %s: %s", dest.name, exc)
        return None
    return _relative(dest, root)


def write_metadata(post: PostInfo, dest_dir: Path) -> Path:
    """Write the metadata sidecar (the PostInfo document plus `downloadedAt`)."""
    doc = post.to_dict()
    doc["downloadedAt"] = datetime.now(timezone.utc).isoformat()
    path = dest_dir / METADATA_FILE
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(doc, f, ensure_ascii=False, indent=2)
    except OSError as exc:
        raise WriteFailed(f"Could not write {path}: {exc}") from exc
    return path


async def materialize(post: PostInfo, output_dir: Union[str, Path], fetcher) -> List[SavedFile]:
    """
    Download every media item of *post* (in order) plus thumbnails, then the
    metadata sidecar. Sets `file_name` on each item and `post.saved_files`.

    Raises WriteFailed when a media file cannot be fetched or written; a
    thumbnail failure is tolerated.
    """
    root = Path(output_dir)
    dest_dir = content_dir(root, post)
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WriteFailed(f"Could not create {dest_dir}: {exc}") from exc

    referer = _REFERERS.get(post.platform)
    saved: List[SavedFile] = []

    for index, item in enumerate(post.media_items):
        item.file_name = media_file_name(post, index, item)
        media_path = dest_dir / item.file_name
        try:
            await fetcher.download(item.url, media_path, media_profile(referer))
        except FetchFailed as exc:
            logger.error("Failed to download media item %d of %s: %s", index + 1, post.content_id, exc)
            raise WriteFailed(f"Could not download media item {index + 1}: {exc}") from exc

        thumbnail_path = None
        if item.thumbnail_url and item.thumbnail_url != item.url:
            dest = dest_dir / thumbnail_file_name(post, index)
            thumbnail_path = await _save_thumbnail(item, dest, root, fetcher, referer)

        saved.append(SavedFile(_relative(media_path, root), thumbnail_path))

    post.saved_files = saved
    write_metadata(post, dest_dir)
    logger.info("Saved %d media file(s) for %s/%s", len(saved), post.platform, post.content_id)
    return saved
