"""Tests for posts, the feed and comment subscriptions."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Comment, CommentEdit, Like, Notification, Post, PostSubscription


def make_user_payload(prefix: str) -> dict[str, str]:
    suffix = uuid4().hex[:6]
    return {
        "username": f"{prefix}_{suffix}",
        "email": f"{prefix}_{suffix}@example.com",
        "password": "Sup3rSecret!",
        "name": prefix.capitalize(),
    }


async def _register(async_client: AsyncClient, payload: dict[str, str]) -> str:
    response = await async_client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 201
    return response.json()["data"]["id"]


async def _login(async_client: AsyncClient, payload: dict[str, str]) -> None:
    response = await async_client.post(
        "/api/v1/auth/login",
        json={"username": payload["username"], "password": payload["password"]},
    )
    assert response.status_code == 200


async def _create_post(async_client: AsyncClient, content: str = "hello") -> int:
    response = await async_client.post("/api/v1/posts", json={"content": content})
    assert response.status_code == 201
    return response.json()["data"]["id"]


async def _count(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return int(result.scalar_one())


@pytest.mark.asyncio
async def test_create_and_read_post(async_client: AsyncClient):
    author = make_user_payload("author")
    author_id = await _register(async_client, author)
    await _login(async_client, author)

    created = await async_client.post(
        "/api/v1/posts",
        json={"content": " first post ", "location": "Paris", "imageKey": "posts/a.jpg"},
    )
    assert created.status_code == 201
    data = created.json()["data"]
    assert data["content"] == "first post"
    assert data["imageKey"] == "posts/a.jpg"
    assert data["author"]["id"] == author_id

    fetched = await async_client.get(f"/api/v1/posts/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["location"] == "Paris"
    assert fetched.json()["data"]["likeCount"] == 0


@pytest.mark.asyncio
async def test_empty_post_is_rejected(async_client: AsyncClient, db_session: AsyncSession):
    author = make_user_payload("author")
    await _register(async_client, author)
    await _login(async_client, author)

    response = await async_client.post("/api/v1/posts", json={"content": "  "})

    assert response.status_code == 400
    assert await _count(db_session, Post) == 0


@pytest.mark.asyncio
async def test_feed_contains_own_and_followed_posts(async_client: AsyncClient):
    viewer = make_user_payload("viewer")
    followee = make_user_payload("followee")
    stranger = make_user_payload("stranger")
    for user in (viewer, followee, stranger):
        await _register(async_client, user)

    await _login(async_client, followee)
    followee_post = await _create_post(async_client, "from followee")
    await _login(async_client, stranger)
    await _create_post(async_client, "from stranger")

    await _login(async_client, viewer)
    own_post = await _create_post(async_client, "from viewer")
    await async_client.post(f"/api/v1/users/{followee['username']}/follow")

    feed = await async_client.get("/api/v1/posts/feed")

    assert feed.status_code == 200
    data = feed.json()["data"]
    assert [post["id"] for post in data["posts"]] == [own_post, followee_post]
    assert data["isLastPage"] is True


@pytest.mark.asyncio
async def test_user_posts_listing_is_paginated(async_client: AsyncClient):
    author = make_user_payload("author")
    await _register(async_client, author)
    await _login(async_client, author)
    for index in range(6):
        await _create_post(async_client, f"post {index}")

    first = await async_client.get(f"/api/v1/users/{author['username']}/posts")
    second = await async_client.get(
        f"/api/v1/users/{author['username']}/posts", params={"page": 2}
    )

    assert len(first.json()["data"]["userPosts"]) == 5
    assert first.json()["data"]["isLastPage"] is False
    assert [post["content"] for post in second.json()["data"]["userPosts"]] == ["post 0"]
    assert second.json()["data"]["isLastPage"] is True


@pytest.mark.asyncio
async def test_delete_post_cascades(async_client: AsyncClient, db_session: AsyncSession):
    owner = make_user_payload("owner")
    fan = make_user_payload("fan")
    await _register(async_client, owner)
    await _register(async_client, fan)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    await _login(async_client, fan)
    comment = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "hey"})
    await async_client.patch(
        f"/api/v1/comments/{comment.json()['data']['id']}", json={"text": "hey!"}
    )
    await async_client.post(f"/api/v1/posts/{post_id}/likes")

    forbidden = await async_client.delete(f"/api/v1/posts/{post_id}")
    assert forbidden.status_code == 403

    await _login(async_client, owner)
    response = await async_client.delete(f"/api/v1/posts/{post_id}")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == post_id
    for model in (Post, Comment, CommentEdit, Like, PostSubscription, Notification):
        assert await _count(db_session, model) == 0

    missing = await async_client.get(f"/api/v1/posts/{post_id}")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe(async_client: AsyncClient, db_session: AsyncSession):
    owner = make_user_payload("owner")
    watcher = make_user_payload("watcher")
    commenter = make_user_payload("commenter")
    await _register(async_client, owner)
    watcher_id = await _register(async_client, watcher)
    await _register(async_client, commenter)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    await _login(async_client, watcher)
    subscribed = await async_client.post(f"/api/v1/posts/{post_id}/subscription")
    assert subscribed.json()["data"] == {"postId": post_id, "subscribed": True}

    await _login(async_client, commenter)
    await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "ping"})
    result = await db_session.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == watcher_id)
    )
    assert result.scalar_one() == 1

    await _login(async_client, watcher)
    unsubscribed = await async_client.delete(f"/api/v1/posts/{post_id}/subscription")
    assert unsubscribed.json()["data"]["subscribed"] is False
    assert await db_session.get(PostSubscription, (watcher_id, post_id)) is None
