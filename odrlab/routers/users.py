"""Self-service user router — profile, mentor application and activity stats."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import Database, get_database, get_db
from odrlab.models.idea import Idea
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor
from odrlab.models.user import User, UserRole
from odrlab.routers.auth import get_current_user
from odrlab.schemas.user import ApplyMentorIn, ProfileUpdateIn
from odrlab.services import profiles
from odrlab.services.audit import client_ip, log_audit_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile")
async def get_profile(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the effective profile of the logged-in user with mentor status."""
    return {"user": await profiles.build_profile(db, current_user, with_mentor_status=True)}


@router.put("/profile")
async def update_profile(
    body: ProfileUpdateIn,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    """Update base fields and the current role's extension in one transaction."""
    user = current_user
    user.name = body.name
    user.image_avatar = body.image_avatar
    user.contact_number = body.contact_number or None
    user.city = body.city or None
    user.country = body.country or None

    data = body.extension_data()
    # Mentor type is changed through a new application, not a profile edit
    data.pop("mentor_type", None)
    await profiles.upsert_extension(db, user, data)

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    await db.commit()

    await log_audit_event(
        database, "UPDATE_PROFILE", user, True,
        target_id=user.id, target_type="USER",
        message="Profile updated", ip_address=client_ip(request),
    )
    return {"user": profile, "message": "Profile updated successfully"}


@router.post("/apply-mentor")
async def apply_mentor(
    body: ApplyMentorIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit (or resubmit after a rejection) a mentor application."""
    mentor = await profiles.apply_for_mentor(
        db,
        current_user,
        body.mentor_type,
        organization=body.organization,
        expertise=body.expertise,
        description=body.description,
        role=body.role,
    )
    profile = await profiles.build_profile(db, current_user, with_mentor_status=True)
    await db.commit()
    return {
        "success": True,
        "message": "Mentor application submitted. An administrator will review it.",
        "user": profile,
        "mentorType": mentor.mentor_type.value,
    }


@router.get("/stats")
async def user_stats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ideas_count = (await db.execute(
        select(func.count(Idea.id)).where(Idea.owner_id == current_user.id)
    )).scalar_one()
    collaborations_count = (await db.execute(
        select(func.count()).select_from(IdeaCollaborator).where(IdeaCollaborator.user_id == current_user.id)
    )).scalar_one()

    if current_user.user_role == UserRole.MENTOR:
        # Ideas this mentor is mentoring
        mentorship_query = select(func.count()).select_from(IdeaMentor).where(
            IdeaMentor.user_id == current_user.id
        )
    else:
        # Mentors attached to this user's ideas
        mentorship_query = (
            select(func.count())
            .select_from(IdeaMentor)
            .join(Idea, Idea.id == IdeaMentor.idea_id)
            .where(Idea.owner_id == current_user.id)
        )
    mentorships_count = (await db.execute(mentorship_query)).scalar_one()

    return {
        "ideasCount": ideas_count,
        "collaborationsCount": collaborations_count,
        "mentorshipsCount": mentorships_count,
    }
