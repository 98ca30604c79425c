"""
Discussion router — threaded comments and likes on approved ideas.

Endpoints:
    GET  /api/discussion/{ideaId}/comments                   → reply tree
    POST /api/discussion/{ideaId}/comments                   → add comment or reply
    POST /api/discussion/{ideaId}/likes                      → like / unlike the idea
    GET  /api/discussion/{ideaId}/likes/check                → has the caller liked it
    GET  /api/discussion/{ideaId}/comments/liked             → comment ids the caller liked
    POST /api/discussion/{ideaId}/comments/{commentId}/likes → like / unlike a comment
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import get_db
from odrlab.models.comment import Comment
from odrlab.models.user import User
from odrlab.routers.auth import get_current_user
from odrlab.schemas.idea import CommentCreate, LikeAction
from odrlab.services import ideas as idea_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/discussion", tags=["discussion"])


async def _comment_on_idea(db: AsyncSession, idea_id: int, comment_id: int) -> Comment:
    result = await db.execute(
        select(Comment).where(Comment.id == comment_id, Comment.idea_id == idea_id)
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


@router.get("/{idea_id}/comments")
async def list_comments(
    idea_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await idea_service.get_approved_idea(db, idea_id)
    return await idea_service.comment_thread(db, idea_id)


@router.post("/{idea_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    idea_id: int,
    body: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Post a comment; replies must point at a comment on the same idea."""
    await idea_service.get_approved_idea(db, idea_id)
    if body.parent_id is not None:
        await _comment_on_idea(db, idea_id, body.parent_id)

    comment = Comment(
        content=body.content,
        idea_id=idea_id,
        author_id=current_user.id,
        parent_id=body.parent_id,
    )
    db.add(comment)
    await db.flush()
    data = {
        "id": comment.id,
        "content": comment.content,
        "ideaId": comment.idea_id,
        "parentId": comment.parent_id,
        "createdAt": comment.created_at.isoformat() if comment.created_at else None,
        "author": idea_service.user_summary(current_user),
        "likes": 0,
        "replies": [],
    }
    await db.commit()
    return data


@router.post("/{idea_id}/likes")
async def like_idea(
    idea_id: int,
    body: LikeAction,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await idea_service.get_approved_idea(db, idea_id)
    liked, likes = await idea_service.set_like(
        db, current_user.id, body.action == "like", idea_id=idea_id
    )
    await db.commit()
    return {"liked": liked, "likes": likes}


@router.get("/{idea_id}/likes/check")
async def check_like(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"hasLiked": await idea_service.user_has_liked(db, current_user.id, idea_id=idea_id)}


@router.get("/{idea_id}/comments/liked")
async def liked_comments(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return {"likedCommentIds": await idea_service.liked_comment_ids(db, current_user.id, idea_id)}


@router.post("/{idea_id}/comments/{comment_id}/likes")
async def like_comment(
    idea_id: int,
    comment_id: int,
    body: LikeAction,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _comment_on_idea(db, idea_id, comment_id)
    liked, likes = await idea_service.set_like(
        db, current_user.id, body.action == "like", comment_id=comment_id
    )
    await db.commit()
    return {"liked": liked, "likes": likes}
