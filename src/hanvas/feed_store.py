"""
Feed Store Module - Community Post Storage
==========================================
Community post model plus a JSON-file store holding a capped,
newest-first list of posts.

The same store backs the feed server's durable storage and the client's
local fallback. Malformed content never raises on read: non-list files
read as an empty feed and bad entries are dropped.
"""

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

MAX_POSTS = 50


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a 'Z' suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class CommunityPost:
    """A shared drawing snapshot."""
    image_data_url: str
    shared_at: str

    @classmethod
    def create(cls, image_data_url: str, now: Optional[datetime] = None) -> 'CommunityPost':
        return cls(image_data_url=image_data_url, shared_at=utc_timestamp(now))

    @classmethod
    def from_dict(cls, data: Any) -> Optional['CommunityPost']:
        """Parse a wire/storage entry; None if it is malformed."""
        if not isinstance(data, dict):
            return None
        image = data.get("imageDataUrl")
        shared_at = data.get("sharedAt")
        if not isinstance(image, str) or not isinstance(shared_at, str):
            return None
        return cls(image_data_url=image, shared_at=shared_at)

    def to_dict(self) -> Dict[str, str]:
        return {"imageDataUrl": self.image_data_url, "sharedAt": self.shared_at}


def sanitize_posts(raw: Any, limit: int = MAX_POSTS) -> List[CommunityPost]:
    """
    Keep the well-formed entries of a decoded feed, capped to `limit`.

    Anything that is not a list yields an empty feed.
    """
    if not isinstance(raw, list):
        return []
    posts = []
    for entry in raw:
        post = CommunityPost.from_dict(entry)
        if post is not None:
            posts.append(post)
    return posts[:limit]


def prepend_post(posts: Iterable[CommunityPost], post: CommunityPost, limit: int = MAX_POSTS) -> List[CommunityPost]:
    """New post first, oldest dropped past the limit."""
    return [post, *posts][:limit]


def posts_to_json(posts: Iterable[CommunityPost]) -> List[Dict[str, str]]:
    return [post.to_dict() for post in posts]


class JsonPostStore:
    """
    Flat JSON list of posts in a single file.

    The parent directory and an empty list are created on first use.
    Writes are serialized with a lock.
    """

    def __init__(self, path: Path, limit: int = MAX_POSTS):
        self.path = Path(path)
        self.limit = limit
        self._lock = threading.Lock()

    def _ensure_file(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text("[]", encoding="utf-8")

    def read(self) -> List[CommunityPost]:
        """Load the feed; corrupt content reads as an empty feed."""
        with self._lock:
            return self._read_unlocked()

    def _read_unlocked(self) -> List[CommunityPost]:
        self._ensure_file()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable feed file %s: %s", self.path, e)
            return []
        return sanitize_posts(raw, self.limit)

    def write(self, posts: Iterable[CommunityPost]) -> List[CommunityPost]:
        with self._lock:
            return self._write_unlocked(posts)

    def _write_unlocked(self, posts: Iterable[CommunityPost]) -> List[CommunityPost]:
        self._ensure_file()
        posts = list(posts)[:self.limit]
        self.path.write_text(json.dumps(posts_to_json(posts), indent=2), encoding="utf-8")
        return posts

    def add(self, post: CommunityPost) -> List[CommunityPost]:
        """Prepend a post and persist; returns the updated feed."""
        with self._lock:
            posts = prepend_post(self._read_unlocked(), post, self.limit)
            return self._write_unlocked(posts)
