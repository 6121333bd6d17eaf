"""
Data model shared by the sites, strategies and services layers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

UNKNOWN_USER = "unknown_user"


@dataclass(frozen=True)
class ContentReference:
    """A validated, canonical pointer at one piece of content."""
    platform: str  # "instagram" | "tiktok"
    url: str  # canonical URL
    content_type: str  # "reel" | "video" | "unknown"
    content_id: str  # shortcode / video id


@dataclass
class MediaItem:
    """One downloadable media file of a post."""
    kind: str  # "video" | "image"
    url: str
    thumbnail_url: Optional[str] = None
    file_name: Optional[str] = None  # set once by the materializer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "url": self.url,
            "thumbnailUrl": self.thumbnail_url,
            "fileName": self.file_name,
        }


@dataclass(frozen=True)
class SavedFile:
    """Paths (relative to the output root) of one materialized media item."""
    media_path: str
    thumbnail_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"mediaPath": self.media_path, "thumbnailPath": self.thumbnail_path}


@dataclass
class PostInfo:
    """Metadata aggregate for one post; sole owner of its media items."""
    content_id: str
    platform: str
    username: str = UNKNOWN_USER
    caption: str = ""
    likes_count: Optional[int] = None
    comments_count: Optional[int] = None
    timestamp: Optional[str] = None
    media_items: List[MediaItem] = field(default_factory=list)
    saved_files: List[SavedFile] = field(default_factory=list)
    strategy: Optional[str] = None  # name of the strategy that produced it

    def to_dict(self) -> Dict[str, Any]:
        """camelCase document used for the metadata sidecar."""
        return {
            "contentIdentifier": self.content_id,
            "platform": self.platform,
            "username": self.username,
            "caption": self.caption,
            "likesCount": self.likes_count,
            "commentsCount": self.comments_count,
            "timestamp": self.timestamp,
            "strategy": self.strategy,
            "mediaItems": [item.to_dict() for item in self.media_items],
            "savedFiles": [saved.to_dict() for saved in self.saved_files],
        }
