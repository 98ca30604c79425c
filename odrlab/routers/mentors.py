"""Mentors directory — approved mentors and the ideas they mentor."""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import get_db
from odrlab.models.idea import Idea
from odrlab.models.idea_membership import IdeaMentor
from odrlab.models.mentor import Mentor
from odrlab.models.user import User, UserRole
from odrlab.routers.auth import get_current_user
from odrlab.services import profiles

router = APIRouter(prefix="/mentors", tags=["mentors"])


async def _mentoring_ideas(db: AsyncSession, user_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
    by_user: Dict[int, List[Dict[str, Any]]] = {uid: [] for uid in user_ids}
    if not user_ids:
        return by_user
    result = await db.execute(
        select(IdeaMentor, Idea)
        .join(Idea, Idea.id == IdeaMentor.idea_id)
        .where(IdeaMentor.user_id.in_(user_ids))
        .order_by(IdeaMentor.joined_at)
    )
    for membership, idea in result.all():
        by_user[membership.user_id].append({
            "role": membership.role,
            "idea": {
                "id": idea.id,
                "title": idea.title,
                "caption": idea.caption,
                "description": idea.description,
                "createdAt": idea.created_at.isoformat() if idea.created_at else None,
            },
        })
    return by_user


def _directory_entry(user: User, mentor: Mentor, ideas: List[Dict[str, Any]]) -> Dict[str, Any]:
    entry = profiles.effective_profile(user, mentor)
    entry["mentoringIdeas"] = ideas
    return entry


@router.get("/")
async def list_mentors(
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User, Mentor)
        .join(Mentor, Mentor.user_id == User.id)
        .where(User.user_role == UserRole.MENTOR, Mentor.approved.is_(True))
        .order_by(User.name)
    )
    rows = result.all()
    ideas = await _mentoring_ideas(db, [user.id for user, _ in rows])
    return {"mentors": [_directory_entry(user, mentor, ideas[user.id]) for user, mentor in rows]}


@router.get("/{user_id}")
async def get_mentor(
    user_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User, Mentor)
        .join(Mentor, Mentor.user_id == User.id)
        .where(User.id == user_id, User.user_role == UserRole.MENTOR)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mentor not found")
    user, mentor = row
    ideas = await _mentoring_ideas(db, [user.id])
    return {"mentor": _directory_entry(user, mentor, ideas[user.id])}
