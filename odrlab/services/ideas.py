"""
Idea workflow service: submission review, cascading deletes,
likes and the JSON shapes shared by the idea and discussion routers.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import utcnow
from odrlab.errors import ConflictError, NotFoundError
from odrlab.models.comment import Comment, Like
from odrlab.models.idea import Idea
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor
from odrlab.models.idea_submission import IdeaSubmission
from odrlab.models.user import User

logger = logging.getLogger(__name__)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ═══════════════════════════════════════════════════════════════
#  Serialisers
# ═══════════════════════════════════════════════════════════════

def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "userRole": user.user_role.value,
        "imageAvatar": user.image_avatar,
        "country": user.country,
    }


def serialize_submission(submission: IdeaSubmission, owner: Optional[User] = None) -> Dict[str, Any]:
    data = {
        "id": submission.id,
        "title": submission.title,
        "caption": submission.caption,
        "description": submission.description,
        "priorOdrExperience": submission.prior_odr_experience,
        "ownerId": submission.owner_id,
        "reviewed": submission.reviewed,
        "approved": submission.approved,
        "rejected": submission.rejected,
        "rejectionReason": submission.rejection_reason,
        "reviewedAt": _iso(submission.reviewed_at),
        "reviewedBy": submission.reviewed_by,
        "createdAt": _iso(submission.created_at),
    }
    if owner is not None:
        data["owner"] = user_summary(owner)
    return data


def serialize_idea(
    idea: Idea,
    owner: Optional[User] = None,
    likes: int = 0,
    comments: int = 0,
) -> Dict[str, Any]:
    data = {
        "id": idea.id,
        "title": idea.title,
        "caption": idea.caption,
        "description": idea.description,
        "ownerId": idea.owner_id,
        "approved": idea.approved,
        "createdAt": _iso(idea.created_at),
        "likes": likes,
        "commentCount": comments,
    }
    if owner is not None:
        data["owner"] = user_summary(owner)
    return data


# ═══════════════════════════════════════════════════════════════
#  Lookups
# ═══════════════════════════════════════════════════════════════

async def get_idea(db: AsyncSession, idea_id: int) -> Idea:
    result = await db.execute(select(Idea).where(Idea.id == idea_id))
    idea = result.scalar_one_or_none()
    if idea is None:
        raise NotFoundError("Idea not found")
    return idea


async def get_approved_idea(db: AsyncSession, idea_id: int) -> Idea:
    """Return the idea when it exists and is published; 404 otherwise."""
    result = await db.execute(select(Idea).where(Idea.id == idea_id, Idea.approved.is_(True)))
    idea = result.scalar_one_or_none()
    if idea is None:
        raise NotFoundError("Idea not found or not approved")
    return idea


async def users_by_id(db: AsyncSession, user_ids: Iterable[int]) -> Dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return {user.id: user for user in result.scalars().all()}


async def like_counts(db: AsyncSession, idea_ids: Sequence[int]) -> Dict[int, int]:
    if not idea_ids:
        return {}
    result = await db.execute(
        select(Like.idea_id, func.count(Like.id))
        .where(Like.idea_id.in_(idea_ids))
        .group_by(Like.idea_id)
    )
    return dict(result.all())


async def comment_counts(db: AsyncSession, idea_ids: Sequence[int]) -> Dict[int, int]:
    if not idea_ids:
        return {}
    result = await db.execute(
        select(Comment.idea_id, func.count(Comment.id))
        .where(Comment.idea_id.in_(idea_ids))
        .group_by(Comment.idea_id)
    )
    return dict(result.all())


async def serialize_ideas(db: AsyncSession, ideas: Sequence[Idea]) -> List[Dict[str, Any]]:
    """Serialise ideas with owner summaries and like / comment counts."""
    ids = [idea.id for idea in ideas]
    owners = await users_by_id(db, (idea.owner_id for idea in ideas))
    likes = await like_counts(db, ids)
    comments = await comment_counts(db, ids)
    return [
        serialize_idea(idea, owners.get(idea.owner_id), likes.get(idea.id, 0), comments.get(idea.id, 0))
        for idea in ideas
    ]


# ═══════════════════════════════════════════════════════════════
#  Submission review
# ═══════════════════════════════════════════════════════════════

async def _unreviewed_submission(db: AsyncSession, submission_id: int) -> IdeaSubmission:
    result = await db.execute(select(IdeaSubmission).where(IdeaSubmission.id == submission_id))
    submission = result.scalar_one_or_none()
    if submission is None:
        raise NotFoundError("Idea submission not found")
    if submission.reviewed:
        raise ConflictError("This idea submission has already been reviewed")
    return submission


async def approve_submission(db: AsyncSession, submission_id: int, reviewer: User) -> Idea:
    """
    Publish a submission as an Idea. Only title, caption, description and
    owner are carried over; the submission is marked reviewed in the same
    transaction, so a second approval fails instead of duplicating the idea.
    """
    submission = await _unreviewed_submission(db, submission_id)

    idea = Idea(
        title=submission.title,
        caption=submission.caption,
        description=submission.description,
        owner_id=submission.owner_id,
        approved=True,
    )
    db.add(idea)

    submission.reviewed = True
    submission.approved = True
    submission.rejected = False
    submission.reviewed_at = utcnow()
    submission.reviewed_by = reviewer.id

    await db.flush()
    logger.info(f"Submission {submission.id} approved as idea {idea.id} by user {reviewer.id}")
    return idea


async def reject_submission(
    db: AsyncSession, submission_id: int, reviewer: User, reason: Optional[str] = None
) -> IdeaSubmission:
    submission = await _unreviewed_submission(db, submission_id)

    submission.reviewed = True
    submission.approved = False
    submission.rejected = True
    submission.rejection_reason = reason
    submission.reviewed_at = utcnow()
    submission.reviewed_by = reviewer.id

    await db.flush()
    logger.info(f"Submission {submission.id} rejected by user {reviewer.id}")
    return submission


# ═══════════════════════════════════════════════════════════════
#  Cascading deletes
# ═══════════════════════════════════════════════════════════════

async def comment_subtree_ids(db: AsyncSession, root_ids: Iterable[int]) -> List[int]:
    """Return ``root_ids`` plus every reply below them, at any depth."""
    collected = set(root_ids)
    frontier = set(collected)
    while frontier:
        result = await db.execute(select(Comment.id).where(Comment.parent_id.in_(frontier)))
        frontier = set(result.scalars().all()) - collected
        collected |= frontier
    return list(collected)


async def delete_comments(db: AsyncSession, comment_ids: Sequence[int]) -> None:
    if not comment_ids:
        return
    await db.execute(delete(Like).where(Like.comment_id.in_(comment_ids)))
    await db.execute(delete(Comment).where(Comment.id.in_(comment_ids)))


async def delete_ideas(db: AsyncSession, idea_ids: Sequence[int]) -> None:
    """Delete ideas with their comments, likes and memberships."""
    idea_ids = list(idea_ids)
    if not idea_ids:
        return

    result = await db.execute(select(Comment.id).where(Comment.idea_id.in_(idea_ids)))
    # Replies hanging off these threads can only live on the same ideas
    await delete_comments(db, await comment_subtree_ids(db, result.scalars().all()))

    await db.execute(delete(Like).where(Like.idea_id.in_(idea_ids)))
    await db.execute(delete(IdeaCollaborator).where(IdeaCollaborator.idea_id.in_(idea_ids)))
    await db.execute(delete(IdeaMentor).where(IdeaMentor.idea_id.in_(idea_ids)))
    await db.execute(delete(Idea).where(Idea.id.in_(idea_ids)))
    logger.info(f"Deleted ideas {idea_ids} with their discussion and memberships")


# ═══════════════════════════════════════════════════════════════
#  Likes & comment threads
# ═══════════════════════════════════════════════════════════════

async def set_like(
    db: AsyncSession,
    user_id: int,
    liked: bool,
    idea_id: Optional[int] = None,
    comment_id: Optional[int] = None,
) -> Tuple[bool, int]:
    """
    Like (upsert) or unlike (delete if present) one idea or comment.
    Both directions are idempotent. Returns the new state and like count.
    """
    if (idea_id is None) == (comment_id is None):
        raise ValueError("Exactly one of idea_id / comment_id is required")

    target = Like.idea_id == idea_id if idea_id is not None else Like.comment_id == comment_id
    result = await db.execute(select(Like).where(Like.user_id == user_id, target))
    existing = result.scalar_one_or_none()

    if liked and existing is None:
        db.add(Like(user_id=user_id, idea_id=idea_id, comment_id=comment_id))
    elif not liked and existing is not None:
        await db.delete(existing)
    await db.flush()

    count = await db.execute(select(func.count(Like.id)).where(target))
    return liked, count.scalar_one()


async def user_has_liked(
    db: AsyncSession, user_id: int, idea_id: Optional[int] = None, comment_id: Optional[int] = None
) -> bool:
    target = Like.idea_id == idea_id if idea_id is not None else Like.comment_id == comment_id
    result = await db.execute(select(Like.id).where(Like.user_id == user_id, target))
    return result.first() is not None


async def comment_thread(db: AsyncSession, idea_id: int) -> List[Dict[str, Any]]:
    """Return the idea's comments as a reply tree, oldest first at every level."""
    result = await db.execute(
        select(Comment).where(Comment.idea_id == idea_id).order_by(Comment.created_at, Comment.id)
    )
    comments = result.scalars().all()
    if not comments:
        return []

    authors = await users_by_id(db, (c.author_id for c in comments))
    counts = await db.execute(
        select(Like.comment_id, func.count(Like.id))
        .where(Like.comment_id.in_([c.id for c in comments]))
        .group_by(Like.comment_id)
    )
    likes = dict(counts.all())

    nodes = {}
    roots = []
    for comment in comments:
        nodes[comment.id] = {
            "id": comment.id,
            "content": comment.content,
            "ideaId": comment.idea_id,
            "parentId": comment.parent_id,
            "createdAt": _iso(comment.created_at),
            "author": user_summary(authors.get(comment.author_id)),
            "likes": likes.get(comment.id, 0),
            "replies": [],
        }
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(comment.parent_id) if comment.parent_id is not None else None
        if parent is not None:
            parent["replies"].append(node)
        else:
            roots.append(node)
    return roots


async def liked_comment_ids(db: AsyncSession, user_id: int, idea_id: int) -> List[int]:
    result = await db.execute(
        select(Like.comment_id)
        .join(Comment, Comment.id == Like.comment_id)
        .where(Like.user_id == user_id, Comment.idea_id == idea_id)
    )
    return list(result.scalars().all())


async def membership_user_ids(db: AsyncSession, model, idea_id: int) -> List[int]:
    result = await db.execute(select(model.user_id).where(model.idea_id == idea_id).order_by(model.joined_at))
    return list(result.scalars().all())

