"""
Community Feed Server
=====================
Flask application serving the shared community feed.

    GET  /api/community-posts  -> 200 {"posts": [...]}
    POST /api/community-posts  -> 201 {"post": {...}, "posts": [...]}
                                  400 {"error": "imageDataUrl is required"}
"""

import logging
import os
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request

from .feed_store import CommunityPost, JsonPostStore, posts_to_json

logger = logging.getLogger(__name__)

POSTS_FILENAME = "community-posts.json"
MAX_BODY_BYTES = 10 * 1024 * 1024


def create_app(data_dir: Optional[Path] = None) -> Flask:
    """
    Build the feed server.

    Args:
        data_dir: Directory holding community-posts.json
            (defaults to $HANVAS_DATA_DIR or ./data)
    """
    data_dir = Path(data_dir or os.environ.get("HANVAS_DATA_DIR", "data"))

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = MAX_BODY_BYTES
    store = JsonPostStore(data_dir / POSTS_FILENAME)
    app.extensions["hanvas_store"] = store

    @app.get("/api/community-posts")
    def list_posts():
        return jsonify({"posts": posts_to_json(store.read())})

    @app.post("/api/community-posts")
    def create_post():
        body = request.get_json(silent=True)
        image_data_url = body.get("imageDataUrl") if isinstance(body, dict) else None
        if not isinstance(image_data_url, str) or not image_data_url:
            return jsonify({"error": "imageDataUrl is required"}), 400

        post = CommunityPost.create(image_data_url)
        posts = store.add(post)
        logger.info("New community post at %s (%d in feed)", post.shared_at, len(posts))
        return jsonify({"post": post.to_dict(), "posts": posts_to_json(posts)}), 201

    return app


def main():
    """Run the feed server."""
    import argparse

    from dotenv import find_dotenv, load_dotenv

    from .config import configure_logging

    load_dotenv(find_dotenv(usecwd=True))

    parser = argparse.ArgumentParser(description="Hanvas community feed server")
    parser.add_argument('--host', default=os.environ.get("HOST", "0.0.0.0"), help='Bind address')
    parser.add_argument('--port', type=int, default=int(os.environ.get("PORT", 8000)), help='Port')
    parser.add_argument('--data-dir', default=os.environ.get("HANVAS_DATA_DIR", "data"),
                        help='Directory for community-posts.json')
    args = parser.parse_args()

    configure_logging(os.environ.get("HANVAS_LOG_LEVEL", "INFO"))
    app = create_app(Path(args.data_dir))
    logger.info("Hanvas server running on port %d", args.port)
    app.run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
