"""Fixtures compartidas para tests del backend."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Set, TYPE_CHECKING

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"

# Ensure the backend package is importable without installing.
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

import httpx  # noqa: E402

if TYPE_CHECKING:
    from postcache.adapters.placeholder_client import JsonPlaceholderClient
    from postcache.repositories.post_store import PostStore
    from postcache.services.refresh_service import RefreshCoordinator

BASE_URL = "https://upstream.test"


def make_post(post_id: int, user_id: int = 1, title: str | None = None) -> Dict[str, Any]:
    return {
        "userId": user_id,
        "id": post_id,
        "title": title or f"title {post_id}",
        "body": f"body of post {post_id}",
    }


def make_user(user_id: int) -> Dict[str, Any]:
    return {
        "id": user_id,
        "name": f"User {user_id}",
        "username": f"user{user_id}",
        "email": f"user{user_id}@example.com",
        "company": {"name": "ACME", "catchPhrase": "ship it", "bs": "synergy"},
        "address": {"city": "Gwenborough", "geo": {"lat": "-37.3", "lng": "81.1"}},
    }


def make_comment(post_id: int, comment_id: int) -> Dict[str, Any]:
    return {
        "postId": post_id,
        "id": comment_id,
        "name": f"comment {comment_id}",
        "email": f"c{comment_id}@example.com",
        "body": f"comment body {comment_id}",
    }


class FakeUpstream:
    """Upstream JSONPlaceholder en memoria para `httpx.MockTransport`."""

    def __init__(self, posts: List[Dict[str, Any]] | None = None) -> None:
        self.posts: List[Dict[str, Any]] = posts if posts is not None else [
            make_post(1, 1),
            make_post(2, 1),
            make_post(3, 2),
        ]
        self.users: Dict[int, Dict[str, Any]] = {1: make_user(1), 2: make_user(2)}
        self.comments: Dict[int, List[Dict[str, Any]]] = {}
        self.fail_users: Set[int] = set()
        self.fail_comments: Set[int] = set()
        self.fail_all = False
        self.calls: List[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        if self.fail_all:
            return httpx.Response(503, json={"error": "unavailable"})
        parts = [p for p in path.split("/") if p]
        if parts == ["posts"]:
            return httpx.Response(200, json=self.posts)
        if len(parts) == 2 and parts[0] == "posts":
            post_id = int(parts[1])
            for post in self.posts:
                if post["id"] == post_id:
                    return httpx.Response(200, json=post)
            return httpx.Response(404, json={})
        if len(parts) == 3 and parts[0] == "posts" and parts[2] == "comments":
            post_id = int(parts[1])
            if post_id in self.fail_comments:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=self.comments.get(post_id, []))
        if len(parts) == 2 and parts[0] == "users":
            user_id = int(parts[1])
            if user_id in self.fail_users or user_id not in self.users:
                return httpx.Response(500, json={"error": "boom"})
            return httpx.Response(200, json=self.users[user_id])
        return httpx.Response(404, json={"error": "not found"})

    def count(self, prefix: str) -> int:
        return sum(1 for call in self.calls if call.startswith(prefix))


@pytest.fixture()
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def placeholder_client(upstream: FakeUpstream) -> "JsonPlaceholderClient":
    from postcache.adapters.placeholder_client import JsonPlaceholderClient

    transport = httpx.MockTransport(upstream.handler)
    return JsonPlaceholderClient(BASE_URL, client=httpx.Client(transport=transport))


@pytest.fixture()
def store(tmp_path: Path) -> "PostStore":
    from postcache.repositories.post_store import PostStore

    return PostStore(tmp_path / "posts")


@pytest.fixture()
def coordinator(
    placeholder_client: "JsonPlaceholderClient", store: "PostStore"
) -> "RefreshCoordinator":
    from postcache.services.refresh_service import RefreshCoordinator

    return RefreshCoordinator(placeholder_client, store)
