"""
Community Module - Shared Feed Synchronization
==============================================
Publishes drawing snapshots to the community feed server and fetches the
current feed, falling back to a local JSON store when the server cannot be
reached.

Remote calls (RemoteFeedClient) only return FeedResponse outcomes and touch
no shared state. CommunitySync applies those outcomes, so the UI can run the
network part on a worker thread and apply the result on its own thread.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

import requests

from .feed_store import (
    MAX_POSTS,
    CommunityPost,
    JsonPostStore,
    prepend_post,
    sanitize_posts,
)

logger = logging.getLogger(__name__)

POSTS_PATH = "/api/community-posts"


class SyncMode(Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class FeedResponse:
    """Outcome of one remote feed call."""
    success: bool
    posts: List[CommunityPost] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'FeedResponse':
        return cls(success=False, error=error)


class RemoteFeedClient:
    """HTTP client for the community feed API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            base_url: Server root, e.g. http://localhost:8000
            timeout: Per-request timeout in seconds
            session: requests session to use (one is created if omitted)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return self.base_url + POSTS_PATH

    def fetch_posts(self) -> FeedResponse:
        """GET the feed."""
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            return FeedResponse.failed(f"Network error: {e}")
        return self._parse(response, expected_status=200)

    def submit(self, image_data_url: str) -> FeedResponse:
        """POST a snapshot; the server answers with the updated feed."""
        try:
            response = self.session.post(
                self.url,
                json={"imageDataUrl": image_data_url},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            return FeedResponse.failed(f"Network error: {e}")
        return self._parse(response, expected_status=201)

    @staticmethod
    def _parse(response: requests.Response, expected_status: int) -> FeedResponse:
        if response.status_code != expected_status:
            return FeedResponse.failed(f"API error: {response.status_code}")
        try:
            body = response.json()
        except ValueError:
            return FeedResponse.failed("Malformed response body")
        if not isinstance(body, dict) or not isinstance(body.get("posts"), list):
            return FeedResponse.failed("Malformed response body")
        return FeedResponse(success=True, posts=sanitize_posts(body["posts"]))


class CommunitySync:
    """
    Client-side view of the community feed.

    Starts in REMOTE mode. Any remote failure downgrades to LOCAL for the
    rest of the session; LOCAL never retries the server.
    """

    def __init__(
        self,
        remote: Optional[RemoteFeedClient],
        local_store: JsonPostStore,
        on_status: Optional[Callable[[str], None]] = None
    ):
        """
        Args:
            remote: Server client, or None to work locally from the start
            local_store: Fallback storage
            on_status: Receives user-facing status messages
        """
        self.remote = remote
        self.local_store = local_store
        self.mode = SyncMode.REMOTE if remote is not None else SyncMode.LOCAL
        self.posts: List[CommunityPost] = []
        self._on_status = on_status

    def _status(self, message: str):
        logger.info(message)
        if self._on_status:
            self._on_status(message)

    @property
    def is_remote(self) -> bool:
        return self.mode is SyncMode.REMOTE

    def _downgrade(self, error: Optional[str]):
        if self.mode is SyncMode.REMOTE:
            logger.warning("Community server unavailable (%s); using local storage", error)
        self.mode = SyncMode.LOCAL

    # Fetch

    def fetch_feed(self) -> List[CommunityPost]:
        """Fetch the feed, remote first."""
        response = self.remote.fetch_posts() if self.is_remote else None
        return self.apply_fetch(response)

    def apply_fetch(self, response: Optional[FeedResponse]) -> List[CommunityPost]:
        """
        Adopt a fetch outcome.

        Args:
            response: Remote outcome, or None when no remote call was made
        """
        if response is not None and response.success:
            self.posts = response.posts[:MAX_POSTS]
            self._status(f"Community feed loaded ({len(self.posts)} posts).")
            return self.posts

        if response is not None:
            self._downgrade(response.error)
            self._status("Community server unavailable. Showing posts saved on this device.")
        try:
            self.posts = self.local_store.read()
        except OSError as e:
            logger.error("Could not read local posts: %s", e)
            self._status("Local feed storage unavailable. Showing this session's posts.")
        return self.posts

    # Publish

    def publish(self, image_data_url: str) -> List[CommunityPost]:
        """Share a snapshot, remote first."""
        response = self.remote.submit(image_data_url) if self.is_remote else None
        return self.apply_publish(response, image_data_url)

    def apply_publish(self, response: Optional[FeedResponse], image_data_url: str) -> List[CommunityPost]:
        """
        Adopt a publish outcome, falling through to a local publish on failure.

        Args:
            response: Remote outcome, or None when no remote call was made
            image_data_url: The snapshot that was shared
        """
        if response is not None and response.success:
            self.posts = response.posts[:MAX_POSTS]
            self._status("Shared to community feed.")
            return self.posts

        if response is not None:
            self._downgrade(response.error)

        post = CommunityPost.create(image_data_url)
        try:
            self.posts = self.local_store.write(prepend_post(self.local_store.read(), post))
        except OSError as e:
            logger.error("Could not save post locally: %s", e)
            self.posts = prepend_post(self.posts, post)
            self._status("Shared for this session only (local storage unavailable).")
            return self.posts

        self._status("Shared to community feed (saved on this device).")
        return self.posts
