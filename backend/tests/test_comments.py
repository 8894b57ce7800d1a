"""Tests for comment creation, editing, deletion and listing."""

from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AuthorizationError, ValidationError
from models import Comment, CommentEdit, Notification, PostSubscription, User
from models.notification import KIND_COMMENT
from models.user import ROLE_ADMIN
from services.comments import create_comment, delete_comment, edit_comment, list_comments


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
async def test_create_comment_returns_comment_for_post(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    commenter = make_user_payload("commenter")
    owner_id = await _register(async_client, owner)
    commenter_id = await _register(async_client, commenter)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    await _login(async_client, commenter)
    response = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "  nice  "})

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["postId"] == post_id
    assert data["postOwnerId"] == owner_id
    assert data["author"]["id"] == commenter_id
    assert data["author"]["username"] == commenter["username"]
    assert data["text"] == "nice"

    subscription = await db_session.get(PostSubscription, (commenter_id, post_id))
    assert subscription is not None

    result = await db_session.execute(
        select(Notification).where(Notification.recipient_id == owner_id)
    )
    notifications = result.scalars().all()
    assert len(notifications) == 1
    assert notifications[0].kind == KIND_COMMENT
    assert notifications[0].comment_id == data["id"]


@pytest.mark.asyncio
async def test_owner_comment_does_not_subscribe_or_notify(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    await _register(async_client, owner)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    response = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "mine"})

    assert response.status_code == 201
    assert await _count(db_session, PostSubscription) == 0
    assert await _count(db_session, Notification) == 0


@pytest.mark.asyncio
async def test_subscribers_are_notified_of_new_comments(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    first = make_user_payload("first")
    second = make_user_payload("second")
    owner_id = await _register(async_client, owner)
    first_id = await _register(async_client, first)
    second_id = await _register(async_client, second)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    await _login(async_client, first)
    await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "first!"})
    await _login(async_client, second)
    await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "second!"})

    result = await db_session.execute(
        select(Notification.recipient_id, Notification.actor_id).order_by(Notification.id)
    )
    assert result.all() == [
        (owner_id, first_id),
        (owner_id, second_id),
        (first_id, second_id),
    ]


@pytest.mark.asyncio
async def test_empty_comment_is_rejected_and_store_unchanged(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    await _register(async_client, owner)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    response = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "   "})

    assert response.status_code == 400
    assert response.json() == {"status": "failed", "message": "The comment cannot be empty"}
    assert await _count(db_session, Comment) == 0


@pytest.mark.asyncio
async def test_comment_on_missing_post_is_not_found(async_client: AsyncClient):
    user = make_user_payload("user")
    await _register(async_client, user)
    await _login(async_client, user)

    response = await async_client.post("/api/v1/comments/999", json={"text": "hello"})

    assert response.status_code == 404
    assert response.json()["message"] == "Post not found or deleted"


@pytest.mark.asyncio
async def test_comment_rejected_when_author_blocked_by_owner(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    commenter = make_user_payload("commenter")
    await _register(async_client, owner)
    await _register(async_client, commenter)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    await async_client.post(f"/api/v1/users/{commenter['username']}/block")

    await _login(async_client, commenter)
    response = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "hi"})

    assert response.status_code == 403
    assert await _count(db_session, Comment) == 0


@pytest.mark.asyncio
async def test_edit_appends_history_with_previous_text(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    await _register(async_client, owner)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    created = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "v1"})
    comment_id = created.json()["data"]["id"]

    first_edit = await async_client.patch(f"/api/v1/comments/{comment_id}", json={"text": "v2"})
    assert first_edit.status_code == 200
    assert first_edit.json()["data"]["text"] == "v2"
    assert await _count(db_session, CommentEdit) == 1

    second_edit = await async_client.patch(f"/api/v1/comments/{comment_id}", json={"text": "v3"})
    assert second_edit.status_code == 200
    assert await _count(db_session, CommentEdit) == 2

    history = await async_client.get(f"/api/v1/comments/{comment_id}/history")
    assert history.status_code == 200
    assert [entry["text"] for entry in history.json()["data"]] == ["v1", "v2"]
    assert "previousUpdatedAt" in history.json()["data"][-1]


@pytest.mark.asyncio
async def test_edit_by_other_user_is_forbidden(async_client: AsyncClient):
    owner = make_user_payload("owner")
    other = make_user_payload("other")
    await _register(async_client, owner)
    await _register(async_client, other)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    created = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "v1"})
    comment_id = created.json()["data"]["id"]

    await _login(async_client, other)
    response = await async_client.patch(f"/api/v1/comments/{comment_id}", json={"text": "hijack"})

    assert response.status_code == 403
    assert response.json()["message"] == "You're not allowed to perform this task"


@pytest.mark.asyncio
async def test_admin_can_edit_any_comment(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    author = make_user_payload("author")
    admin = make_user_payload("admin")
    await _register(async_client, author)
    admin_id = await _register(async_client, admin)
    admin_user = await db_session.get(User, admin_id)
    assert admin_user is not None
    admin_user.role = ROLE_ADMIN
    await db_session.commit()

    await _login(async_client, author)
    post_id = await _create_post(async_client)
    created = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "rude"})
    comment_id = created.json()["data"]["id"]

    await _login(async_client, admin)
    response = await async_client.patch(
        f"/api/v1/comments/{comment_id}", json={"text": "moderated"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["author"]["username"] == author["username"]


@pytest.mark.asyncio
async def test_delete_by_unrelated_user_is_forbidden_and_comment_intact(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    author = make_user_payload("author")
    stranger = make_user_payload("stranger")
    for user in (owner, author, stranger):
        await _register(async_client, user)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    await _login(async_client, author)
    created = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "keep"})
    comment_id = created.json()["data"]["id"]

    await _login(async_client, stranger)
    response = await async_client.delete(f"/api/v1/comments/{comment_id}")

    assert response.status_code == 403
    assert await db_session.get(Comment, comment_id) is not None


@pytest.mark.asyncio
async def test_post_owner_can_delete_comment_and_its_notifications(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    author = make_user_payload("author")
    await _register(async_client, owner)
    await _register(async_client, author)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    await _login(async_client, author)
    created = await async_client.post(f"/api/v1/comments/{post_id}", json={"text": "bye"})
    comment_id = created.json()["data"]["id"]
    await async_client.patch(f"/api/v1/comments/{comment_id}", json={"text": "bye!"})
    assert await _count(db_session, Notification) == 1

    await _login(async_client, owner)
    response = await async_client.delete(f"/api/v1/comments/{comment_id}")

    assert response.status_code == 200
    assert response.json()["data"]["id"] == comment_id
    assert response.json()["data"]["text"] == "bye!"
    assert await db_session.get(Comment, comment_id) is None
    assert await _count(db_session, Notification) == 0
    assert await _count(db_session, CommentEdit) == 0

    missing = await async_client.delete(f"/api/v1/comments/{comment_id}")
    assert missing.status_code == 404
    assert missing.json()["message"] == "Comment not found or deleted"


@pytest.mark.asyncio
async def test_twelve_comments_paginate_in_pages_of_five(async_client: AsyncClient):
    owner = make_user_payload("owner")
    await _register(async_client, owner)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)
    for index in range(12):
        await async_client.post(f"/api/v1/comments/{post_id}", json={"text": f"c{index}"})

    first_page = await async_client.get(f"/api/v1/comments/{post_id}", params={"page": 1})
    third_page = await async_client.get(f"/api/v1/comments/{post_id}", params={"page": 3})

    first = first_page.json()["data"]
    assert first["commentsCount"] == 12
    assert len(first["comments"]) == 5
    assert first["isLastPage"] is False
    assert [comment["text"] for comment in first["comments"]] == ["c11", "c10", "c9", "c8", "c7"]

    third = third_page.json()["data"]
    assert len(third["comments"]) == 2
    assert third["isLastPage"] is True
    assert [comment["text"] for comment in third["comments"]] == ["c1", "c0"]


@pytest.mark.asyncio
async def test_listing_comments_of_missing_post_is_not_found(async_client: AsyncClient):
    user = make_user_payload("user")
    await _register(async_client, user)
    await _login(async_client, user)

    response = await async_client.get("/api/v1/comments/12345")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_comment_services_enforce_rules_directly(
    async_client: AsyncClient,
    db_session: AsyncSession,
):
    owner = make_user_payload("owner")
    stranger = make_user_payload("stranger")
    owner_id = await _register(async_client, owner)
    stranger_id = await _register(async_client, stranger)
    await _login(async_client, owner)
    post_id = await _create_post(async_client)

    owner_user = await db_session.get(User, owner_id)
    stranger_user = await db_session.get(User, stranger_id)
    assert owner_user is not None and stranger_user is not None

    with pytest.raises(ValidationError):
        await create_comment(db_session, post_id=post_id, author=owner_user, text="")

    entry = await create_comment(db_session, post_id=post_id, author=owner_user, text="ok")
    comment_id = entry.comment.id
    assert comment_id is not None

    with pytest.raises(AuthorizationError):
        await edit_comment(db_session, comment_id=comment_id, editor=stranger_user, text="x")
    with pytest.raises(AuthorizationError):
        await delete_comment(db_session, comment_id=comment_id, acting_user=stranger_user)

    page = await list_comments(db_session, post_id=post_id)
    assert page.total == 1
    assert page.is_last_page is True
    assert page.items[0].comment.text == "ok"
