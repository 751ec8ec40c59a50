import json

import pytest

from hanvas.feed_store import MAX_POSTS
from hanvas.server import POSTS_FILENAME, create_app


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def client(data_dir):
    app = create_app(data_dir)
    app.config["TESTING"] = True
    return app.test_client()


def test_empty_feed(client, data_dir):
    response = client.get("/api/community-posts")
    assert response.status_code == 200
    assert response.get_json() == {"posts": []}
    assert (data_dir / POSTS_FILENAME).exists()


@pytest.mark.parametrize("body", [{}, {"imageDataUrl": ""}, {"imageDataUrl": 42}, None])
def test_post_requires_image(client, body):
    response = client.post("/api/community-posts", json=body)
    assert response.status_code == 400
    assert response.get_json() == {"error": "imageDataUrl is required"}


def test_post_prepends(client):
    client.post("/api/community-posts", json={"imageDataUrl": "data:first"})
    response = client.post("/api/community-posts", json={"imageDataUrl": "data:second"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["post"]["imageDataUrl"] == "data:second"
    assert body["post"]["sharedAt"].endswith("Z")
    assert [p["imageDataUrl"] for p in body["posts"]] == ["data:second", "data:first"]

    listed = client.get("/api/community-posts").get_json()["posts"]
    assert listed == body["posts"]


def test_feed_capped(client):
    for i in range(MAX_POSTS + 1):
        response = client.post("/api/community-posts", json={"imageDataUrl": f"data:{i}"})
    posts = response.get_json()["posts"]
    assert len(posts) == MAX_POSTS
    assert posts[-1]["imageDataUrl"] == "data:1"


def test_corrupt_storage_reads_empty(client, data_dir):
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / POSTS_FILENAME).write_text(json.dumps({"oops": True}))
    assert client.get("/api/community-posts").get_json() == {"posts": []}

    response = client.post("/api/community-posts", json={"imageDataUrl": "data:x"})
    assert response.status_code == 201
    assert len(response.get_json()["posts"]) == 1
