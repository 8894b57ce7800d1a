"""Post, feed, like and subscription endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import User
from services.likes import LikeResult, like_post, list_likes, unlike_post
from services.posts import (
    MAX_LOCATION_LENGTH,
    PostEntry,
    create_post,
    delete_post,
    get_post,
    list_feed,
    subscribe,
    unsubscribe,
)

from .pagination import PageQuery
from .schemas import CamelModel, Envelope, UserSummary, success, user_summary

router = APIRouter(prefix="/posts", tags=["posts"])


class PostCreateRequest(CamelModel):
    content: str = Field(max_length=4000)
    location: str | None = Field(default=None, max_length=MAX_LOCATION_LENGTH)
    image_key: str | None = Field(default=None, max_length=512)


class PostOut(CamelModel):
    id: int
    author: UserSummary
    content: str
    location: str | None = None
    image_key: str | None = None
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False
    created_at: datetime
    updated_at: datetime


class DeletedPostOut(CamelModel):
    id: int
    author_id: str


class FeedOut(CamelModel):
    posts: list[PostOut]
    is_last_page: bool


class UserPostsOut(CamelModel):
    user_posts: list[PostOut]
    is_last_page: bool


class LikeOut(CamelModel):
    post_id: int
    like_count: int
    liked: bool


class LikesPageOut(CamelModel):
    likes_count: int
    users: list[UserSummary]
    is_last_page: bool


class SubscriptionOut(CamelModel):
    post_id: int
    subscribed: bool


def post_out(entry: PostEntry) -> PostOut:
    post = entry.post
    return PostOut(
        id=post.id,
        author=user_summary(entry.author),
        content=post.content,
        location=post.location,
        image_key=post.image_key,
        like_count=entry.meta.like_count,
        comment_count=entry.meta.comment_count,
        viewer_has_liked=entry.meta.viewer_has_liked,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


def _like_out(result: LikeResult) -> LikeOut:
    return LikeOut(post_id=result.post_id, like_count=result.like_count, liked=result.liked)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Envelope[PostOut])
async def create_post_endpoint(
    payload: PostCreateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[PostOut]:
    entry = await create_post(
        session,
        author=current_user,
        content=payload.content,
        location=payload.location,
        image_key=payload.image_key,
    )
    return success(post_out(entry))


@router.get("/feed", response_model=Envelope[FeedOut])
async def read_feed(
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[FeedOut]:
    feed = await list_feed(session, viewer=current_user, page=page)
    return success(
        FeedOut(
            posts=[post_out(entry) for entry in feed.items],
            is_last_page=feed.is_last_page,
        )
    )


@router.get("/{post_id}", response_model=Envelope[PostOut])
async def read_post(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[PostOut]:
    entry = await get_post(session, post_id=post_id, viewer=current_user)
    return success(post_out(entry))


@router.delete("/{post_id}", response_model=Envelope[DeletedPostOut])
async def delete_post_endpoint(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[DeletedPostOut]:
    post = await delete_post(session, post_id=post_id, acting_user=current_user)
    return success(DeletedPostOut(id=post_id, author_id=post.author_id))


@router.post("/{post_id}/likes", response_model=Envelope[LikeOut])
async def like_post_endpoint(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[LikeOut]:
    return success(_like_out(await like_post(session, post_id=post_id, user=current_user)))


@router.delete("/{post_id}/likes", response_model=Envelope[LikeOut])
async def unlike_post_endpoint(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[LikeOut]:
    return success(_like_out(await unlike_post(session, post_id=post_id, user=current_user)))


@router.get("/{post_id}/likes", response_model=Envelope[LikesPageOut])
async def read_post_likes(
    post_id: int,
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[LikesPageOut]:
    like_page = await list_likes(session, post_id=post_id, viewer=current_user, page=page)
    return success(
        LikesPageOut(
            likes_count=like_page.total,
            users=[user_summary(user) for user in like_page.items],
            is_last_page=like_page.is_last_page,
        )
    )


@router.post("/{post_id}/subscription", response_model=Envelope[SubscriptionOut])
async def subscribe_endpoint(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[SubscriptionOut]:
    await subscribe(session, user=current_user, post_id=post_id)
    return success(SubscriptionOut(post_id=post_id, subscribed=True))


@router.delete("/{post_id}/subscription", response_model=Envelope[SubscriptionOut])
async def unsubscribe_endpoint(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[SubscriptionOut]:
    await unsubscribe(session, user=current_user, post_id=post_id)
    return success(SubscriptionOut(post_id=post_id, subscribed=False))
