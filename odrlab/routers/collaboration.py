"""Collaboration router — join and leave an approved idea as collaborator or mentor."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import get_db
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor
from odrlab.models.user import User, UserRole
from odrlab.routers.auth import get_current_user
from odrlab.services import ideas as idea_service
from odrlab.services import profiles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/collaboration", tags=["collaboration"])


async def _membership(db: AsyncSession, model, idea_id: int, user_id: int):
    result = await db.execute(
        select(model).where(model.idea_id == idea_id, model.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def _members(db: AsyncSession, model, idea_id: int):
    await idea_service.get_approved_idea(db, idea_id)
    result = await db.execute(select(model).where(model.idea_id == idea_id).order_by(model.joined_at))
    memberships = result.scalars().all()
    users = await idea_service.users_by_id(db, (m.user_id for m in memberships))
    built = {
        p["id"]: p
        for p in await profiles.build_profiles(db, [users[m.user_id] for m in memberships if m.user_id in users])
    }
    return [
        {
            "ideaId": m.idea_id,
            "userId": m.user_id,
            "role": m.role,
            "joinedAt": m.joined_at.isoformat() if m.joined_at else None,
            "user": built.get(m.user_id),
        }
        for m in memberships
    ]


@router.get("/{idea_id}/collaborators")
async def list_collaborators(
    idea_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _members(db, IdeaCollaborator, idea_id)


@router.get("/{idea_id}/mentors")
async def list_mentors(
    idea_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _members(db, IdeaMentor, idea_id)


@router.post("/{idea_id}/join-collaborator", status_code=status.HTTP_201_CREATED)
async def join_collaborator(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    idea = await idea_service.get_approved_idea(db, idea_id)
    if idea.owner_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot join as a collaborator to your own idea",
        )
    if await _membership(db, IdeaCollaborator, idea_id, current_user.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You are already a collaborator for this idea",
        )

    db.add(IdeaCollaborator(idea_id=idea_id, user_id=current_user.id))
    await db.commit()
    logger.info(f"User {current_user.id} joined idea {idea_id} as collaborator")
    return {"message": "Successfully joined as collaborator", "ideaId": idea_id, "userId": current_user.id}


@router.delete("/{idea_id}/leave-collaborator")
async def leave_collaborator(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    membership = await _membership(db, IdeaCollaborator, idea_id, current_user.id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not a collaborator for this idea")

    await db.delete(membership)
    await db.commit()
    return {"message": "Successfully left collaboration"}


@router.post("/{idea_id}/request-mentor", status_code=status.HTTP_201_CREATED)
async def request_mentor(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Attach an approved mentor to an idea."""
    if current_user.user_role != UserRole.MENTOR:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only users with MENTOR role can become mentors")
    application = await profiles.load_mentor_application(db, current_user.id)
    if application is None or not application.approved:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your mentor application is still pending approval")

    await idea_service.get_approved_idea(db, idea_id)
    if await _membership(db, IdeaMentor, idea_id, current_user.id) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You are already a mentor for this idea")

    db.add(IdeaMentor(idea_id=idea_id, user_id=current_user.id))
    await db.commit()
    logger.info(f"Mentor {current_user.id} joined idea {idea_id}")
    return {"message": "Successfully joined as mentor", "ideaId": idea_id, "userId": current_user.id}


@router.delete("/{idea_id}/leave-mentor")
async def leave_mentor(
    idea_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    membership = await _membership(db, IdeaMentor, idea_id, current_user.id)
    if membership is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="You are not a mentor for this idea")

    await db.delete(membership)
    await db.commit()
    return {"message": "Successfully left mentorship"}
