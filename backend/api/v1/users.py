"""User profile, follow graph and block endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import User
from services import account_blocks
from services.auth import change_password
from services.posts import list_user_posts
from services.social_graph import (
    FollowEntry,
    FollowPage,
    count_follows,
    get_profile,
    list_followers,
    list_following,
    require_user,
    toggle_follow,
)

from .pagination import PageQuery
from .posts import UserPostsOut, post_out
from .schemas import (
    CamelModel,
    CurrentUser,
    Envelope,
    MessageOut,
    UserProfile,
    UserSummary,
    success,
    user_summary,
)

router = APIRouter(tags=["users"])


class FollowToggleOut(CamelModel):
    action_type: Literal["follow", "unfollow"]
    siguiendo: str
    relation_id: int = Field(alias="_id")


class FollowEntryOut(CamelModel):
    id: int
    user: UserSummary
    profile_href: str | None = None
    can_follow: bool
    viewer_is_following: bool


class FollowPageOut(CamelModel):
    follows_count: int
    follows: list[FollowEntryOut]
    is_last_page: bool


class BlockOut(CamelModel):
    message: str
    blocked: bool


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


def _follow_entry_out(entry: FollowEntry, *, requester_id: str) -> FollowEntryOut:
    user = entry.user
    return FollowEntryOut(
        id=entry.relation_id,
        user=user_summary(user),
        profile_href=f"/users/{user.username}" if user.is_active else None,
        can_follow=user.is_active and user.id != requester_id,
        viewer_is_following=entry.viewer_is_following,
    )


def _follow_page_out(page: FollowPage, *, requester_id: str) -> FollowPageOut:
    return FollowPageOut(
        follows_count=page.total,
        follows=[_follow_entry_out(entry, requester_id=requester_id) for entry in page.items],
        is_last_page=page.is_last_page,
    )


@router.get("/me", response_model=Envelope[CurrentUser])
async def read_me(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[CurrentUser]:
    followers_count, following_count = await count_follows(session, user_id=current_user.id)
    profile = CurrentUser.model_validate(current_user)
    profile.followers_count = followers_count
    profile.following_count = following_count
    return success(profile)


@router.get("/me/blocked-users", response_model=Envelope[list[UserSummary]])
async def list_blocked_users(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[list[UserSummary]]:
    blocked = await account_blocks.list_blocked_users(session, blocker_id=current_user.id)
    return success([user_summary(user) for user in blocked])


@router.patch("/me/password", response_model=Envelope[MessageOut])
async def update_password(
    payload: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[MessageOut]:
    await change_password(
        session,
        user=current_user,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return success(MessageOut(message="Password updated"))


@router.get("/users/{username}", response_model=Envelope[UserProfile])
async def read_user(
    username: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[UserProfile]:
    view = await get_profile(session, username=username, viewer=current_user)
    profile = UserProfile.model_validate(view.user)
    profile.followers_count = view.followers_count
    profile.following_count = view.following_count
    profile.is_following = view.is_following
    profile.is_blocked = view.is_blocked
    return success(profile)


@router.get("/users/{username}/posts", response_model=Envelope[UserPostsOut])
async def read_user_posts(
    username: str,
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[UserPostsOut]:
    post_page = await list_user_posts(
        session,
        username=username,
        viewer=current_user,
        page=page,
    )
    return success(
        UserPostsOut(
            user_posts=[post_out(entry) for entry in post_page.items],
            is_last_page=post_page.is_last_page,
        )
    )


@router.post("/users/{username}/follow", response_model=Envelope[FollowToggleOut])
async def follow_user(
    username: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[FollowToggleOut]:
    result = await toggle_follow(
        session,
        acting_user=current_user,
        target_username=username,
    )
    return success(
        FollowToggleOut(
            action_type=result.action_type,
            siguiendo=result.target_id,
            relation_id=result.relation_id,
        )
    )


@router.get("/users/{username}/followers", response_model=Envelope[FollowPageOut])
async def read_followers(
    username: str,
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[FollowPageOut]:
    requester_id = current_user.id
    follow_page = await list_followers(
        session,
        username=username,
        requester=current_user,
        page=page,
    )
    return success(_follow_page_out(follow_page, requester_id=requester_id))


@router.get("/users/{username}/following", response_model=Envelope[FollowPageOut])
async def read_following(
    username: str,
    page: PageQuery = 1,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[FollowPageOut]:
    requester_id = current_user.id
    follow_page = await list_following(
        session,
        username=username,
        requester=current_user,
        page=page,
    )
    return success(_follow_page_out(follow_page, requester_id=requester_id))


@router.post("/users/{username}/block", response_model=Envelope[BlockOut])
async def block_user(
    username: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[BlockOut]:
    blocker_id = current_user.id
    target_id = (await require_user(session, username)).id
    created = await account_blocks.block_user(
        session, blocker_id=blocker_id, blocked_id=target_id
    )
    return success(
        BlockOut(
            message="User blocked" if created else "User already blocked",
            blocked=True,
        )
    )


@router.delete("/users/{username}/block", response_model=Envelope[BlockOut])
async def unblock_user(
    username: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[BlockOut]:
    target = await require_user(session, username)
    removed = await account_blocks.unblock_user(
        session,
        blocker_id=current_user.id,
        blocked_id=target.id,
    )
    return success(
        BlockOut(
            message="User unblocked" if removed else "User was not blocked",
            blocked=False,
        )
    )
