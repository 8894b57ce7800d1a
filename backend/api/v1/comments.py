"""Comment endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models import Comment, User
from services.comments import (
    CommentEntry,
    create_comment,
    delete_comment,
    edit_comment,
    get_comment_history,
    list_comments,
)

from .pagination import PageQuery
from .schemas import CamelModel, Envelope, UserSummary, success, user_summary

router = APIRouter(prefix="/comments", tags=["comments"])


class CommentRequest(CamelModel):
    text: str = Field(max_length=2000)


class CommentOut(CamelModel):
    id: int
    post_id: int
    post_owner_id: str
    author: UserSummary
    text: str
    created_at: datetime
    updated_at: datetime


class DeletedCommentOut(CamelModel):
    id: int
    post_id: int
    post_owner_id: str
    author_id: str
    text: str


class CommentsPageOut(CamelModel):
    comments_count: int
    comments: list[CommentOut]
    is_last_page: bool


class CommentEditOut(CamelModel):
    id: int
    text: str
    previous_updated_at: datetime
    edited_at: datetime


def _comment_out(entry: CommentEntry) -> CommentOut:
    comment = entry.comment
    return CommentOut(
        id=comment.id,
        post_id=comment.post_id,
        post_owner_id=comment.post_owner_id,
        author=user_summary(entry.author),
        text=comment.text,
        created_at=comment.created_at,
        updated_at=comment.updated_at,
    )


@router.get("/{post_id}", response_model=Envelope[CommentsPageOut])
async def read_comments(
    post_id: int,
    page: PageQuery = 1,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[CommentsPageOut]:
    comment_page = await list_comments(session, post_id=post_id, page=page)
    return success(
        CommentsPageOut(
            comments_count=comment_page.total,
            comments=[_comment_out(entry) for entry in comment_page.items],
            is_last_page=comment_page.is_last_page,
        )
    )


@router.post(
    "/{post_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=Envelope[CommentOut],
)
async def create_comment_endpoint(
    post_id: int,
    payload: CommentRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[CommentOut]:
    entry = await create_comment(
        session,
        post_id=post_id,
        author=current_user,
        text=payload.text,
    )
    return success(_comment_out(entry))


@router.patch("/{comment_id}", response_model=Envelope[CommentOut])
async def edit_comment_endpoint(
    comment_id: int,
    payload: CommentRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[CommentOut]:
    entry = await edit_comment(
        session,
        comment_id=comment_id,
        editor=current_user,
        text=payload.text,
    )
    return success(_comment_out(entry))


@router.delete("/{comment_id}", response_model=Envelope[DeletedCommentOut])
async def delete_comment_endpoint(
    comment_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[DeletedCommentOut]:
    comment: Comment = await delete_comment(
        session,
        comment_id=comment_id,
        acting_user=current_user,
    )
    return success(DeletedCommentOut.model_validate(comment))


@router.get("/{comment_id}/history", response_model=Envelope[list[CommentEditOut]])
async def read_comment_history(
    comment_id: int,
    _: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> Envelope[list[CommentEditOut]]:
    edits = await get_comment_history(session, comment_id=comment_id)
    return success([CommentEditOut.model_validate(edit) for edit in edits])
