"""
Admin router — submission review, mentor applications and user management.
Every endpoint requires an ADMIN token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import Database, get_database, get_db
from odrlab.errors import ODRLabError
from odrlab.models.idea_submission import IdeaSubmission
from odrlab.models.user import User, UserRole
from odrlab.routers.auth import require_admin
from odrlab.schemas.idea import ReviewIn
from odrlab.schemas.user import AdminUserUpdateIn, RejectMentorIn, UserIdIn
from odrlab.services import ideas as idea_service
from odrlab.services import profiles
from odrlab.services.audit import client_ip, log_audit_event, log_failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ═══════════════════════════════════════════════════════════════
#  Idea submissions
# ═══════════════════════════════════════════════════════════════

@router.get("/approve-idea")
async def pending_submissions(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Unreviewed submissions with the owner's institution."""
    result = await db.execute(
        select(IdeaSubmission)
        .where(IdeaSubmission.reviewed.is_(False))
        .order_by(IdeaSubmission.created_at.desc())
    )
    submissions = result.scalars().all()
    owners = await idea_service.users_by_id(db, (s.owner_id for s in submissions))
    owner_profiles = {p["id"]: p for p in await profiles.build_profiles(db, owners.values())}

    items = []
    for submission in submissions:
        item = idea_service.serialize_submission(submission, owners.get(submission.owner_id))
        owner_profile = owner_profiles.get(submission.owner_id) or {}
        item["institution"] = owner_profile.get("institution")
        items.append(item)
    return items


@router.post("/approve-idea")
async def approve_idea(
    body: ReviewIn,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    try:
        idea = await idea_service.approve_submission(db, body.idea_id, admin)
    except ODRLabError as exc:
        await log_failure(db, database, request, admin, "APPROVE_IDEA", body.idea_id, "IDEA_SUBMISSION", exc.message)
        raise

    owner = await profiles.get_user(db, idea.owner_id)
    data = idea_service.serialize_idea(idea, owner)
    await db.commit()

    await log_audit_event(
        database, "APPROVE_IDEA", admin, True,
        target_id=body.idea_id, target_type="IDEA_SUBMISSION",
        message=f"Published as idea {idea.id}", ip_address=client_ip(request),
    )
    return {"success": True, "idea": data}


@router.post("/reject-idea")
async def reject_idea(
    body: ReviewIn,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    try:
        submission = await idea_service.reject_submission(db, body.idea_id, admin, body.reason)
    except ODRLabError as exc:
        await log_failure(db, database, request, admin, "REJECT_IDEA", body.idea_id, "IDEA_SUBMISSION", exc.message)
        raise

    data = idea_service.serialize_submission(submission)
    await db.commit()

    await log_audit_event(
        database, "REJECT_IDEA", admin, True,
        target_id=body.idea_id, target_type="IDEA_SUBMISSION",
        message=body.reason or "Rejected", ip_address=client_ip(request),
    )
    return {"success": True, "submission": data}


# ═══════════════════════════════════════════════════════════════
#  Mentor applications
# ═══════════════════════════════════════════════════════════════

@router.get("/approve-mentor")
async def pending_mentor_applications(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    items = []
    for user, mentor in await profiles.pending_mentors(db):
        profile = profiles.effective_profile(user, mentor)
        profile.update(profiles.mentor_status(mentor))
        items.append(profile)
    return items


@router.post("/approve-mentor")
async def approve_mentor(
    body: UserIdIn,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    try:
        user, mentor = await profiles.approve_mentor(db, body.user_id, admin)
    except ODRLabError as exc:
        await log_failure(db, database, request, admin, "APPROVE_MENTOR", body.user_id, "MENTOR", exc.message)
        raise

    profile = profiles.effective_profile(user, mentor)
    await db.commit()

    await log_audit_event(
        database, "APPROVE_MENTOR", admin, True,
        target_id=body.user_id, target_type="MENTOR",
        message="Mentor approved.", ip_address=client_ip(request),
    )
    return {"success": True, "user": profile}


@router.post("/approve-mentor/reject")
async def reject_mentor(
    body: RejectMentorIn,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    try:
        await profiles.reject_mentor(db, body.user_id, admin, body.reason)
    except ODRLabError as exc:
        await log_failure(db, database, request, admin, "REJECT_MENTOR", body.user_id, "MENTOR", exc.message)
        raise

    await db.commit()

    await log_audit_event(
        database, "REJECT_MENTOR", admin, True,
        target_id=body.user_id, target_type="MENTOR",
        message="Mentor rejected.", ip_address=client_ip(request),
    )
    return {
        "success": True,
        "message": "Mentor application has been rejected and user role updated",
    }


# ═══════════════════════════════════════════════════════════════
#  Users
# ═══════════════════════════════════════════════════════════════

@router.get("/users")
async def list_users(
    search: Optional[str] = None,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    users = await profiles.search_users(db, search)
    return await profiles.build_profiles(db, users)


async def _target_user(db: AsyncSession, user_id: int) -> User:
    user = await profiles.get_user(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _target_user(db, user_id)
    return await profiles.build_profile(db, user, with_mentor_status=True)


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    body: AdminUserUpdateIn,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    """Edit base fields, optionally move the user to another role, then upsert the extension."""
    user = await _target_user(db, user_id)
    changes = body.model_dump(
        include={"name", "email", "contact_number", "city", "country", "image_avatar"},
        exclude_unset=True,
    )
    if changes.get("email"):
        changes["email"] = changes["email"].strip().lower()
        holder = await profiles.get_user_by_email(db, changes["email"])
        if holder is not None and holder.id != user.id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    for field, value in changes.items():
        if field in ("name", "email") and not value:
            continue
        setattr(user, field, value)

    data = body.extension_data()
    if body.user_role is not None and body.user_role != user.user_role:
        if user.id == admin.id and body.user_role != UserRole.ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
        await profiles.change_role(db, user, body.user_role, defaults=data, actor_id=admin.id)
    await profiles.upsert_extension(db, user, data)

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    await db.commit()

    await log_audit_event(
        database, "UPDATE_USER", admin, True,
        target_id=user_id, target_type="USER",
        message=f"Role {user.user_role.value}", ip_address=client_ip(request),
    )
    return {"success": True, "user": profile}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    """Delete a user and all content it owns."""
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    user = await _target_user(db, user_id)

    await profiles.delete_user(db, user)
    await db.commit()

    await log_audit_event(
        database, "DELETE_USER", admin, True,
        target_id=user_id, target_type="USER",
        message="User deleted", ip_address=client_ip(request),
    )
    return {"success": True}
