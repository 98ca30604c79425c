"""
Ideas router — submissions, the public idea board and owner/admin edits.

Endpoints:
    POST   /api/ideas/submit        → propose an idea for admin review
    GET    /api/ideas/approved      → public list of published ideas
    GET    /api/ideas/submissions   → unreviewed submissions (admin)
    GET    /api/ideas/              → every idea (admin)
    POST   /api/ideas/              → publish an idea directly (admin)
    GET    /api/ideas/{id}          → idea detail with its team
    GET    /api/ideas/{id}/team     → owner, mentor and collaborators
    PUT    /api/ideas/{id}          → edit (owner or admin)
    DELETE /api/ideas/{id}          → delete with discussion (owner or admin)
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.database import Database, get_database, get_db
from odrlab.models.idea import Idea
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor
from odrlab.models.idea_submission import IdeaSubmission
from odrlab.models.user import User, UserRole
from odrlab.routers.auth import get_current_user, require_admin
from odrlab.schemas.idea import AdminIdeaCreate, IdeaSubmissionCreate, IdeaUpdate
from odrlab.services import ideas as idea_service
from odrlab.services import profiles
from odrlab.services.audit import client_ip, log_audit_event, log_failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ideas", tags=["ideas"])


def _can_modify(idea: Idea, user: User) -> bool:
    return idea.owner_id == user.id or user.user_role == UserRole.ADMIN


def _team_member(profile: Optional[Dict[str, Any]], role: str, fallback: str) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    place = profile.get("institution") or profile.get("organization") or ""
    about = f"{place} {profile.get('country') or ''}".strip()
    return {
        "id": profile["id"],
        "name": profile["name"],
        "email": profile["email"],
        "image": profile.get("imageAvatar"),
        "description": about or fallback,
        "role": role,
    }


async def _member_profiles(db: AsyncSession, model, idea_id: int):
    user_ids = await idea_service.membership_user_ids(db, model, idea_id)
    users = await idea_service.users_by_id(db, user_ids)
    return await profiles.build_profiles(db, [users[uid] for uid in user_ids if uid in users])


# ═══════════════════════════════════════════════════════════════
#  Submissions
# ═══════════════════════════════════════════════════════════════

@router.post("/submit", status_code=status.HTTP_201_CREATED)
async def submit_idea(
    body: IdeaSubmissionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an IdeaSubmission awaiting admin review."""
    submission = IdeaSubmission(
        title=body.title,
        caption=body.caption,
        description=body.description,
        prior_odr_experience=body.prior_odr_experience,
        owner_id=current_user.id,
    )
    db.add(submission)
    await db.flush()
    data = idea_service.serialize_submission(submission)
    await db.commit()
    logger.info(f"User {current_user.id} submitted idea {submission.id} for review")
    return data


@router.get("/submissions")
async def list_submissions(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(IdeaSubmission)
        .where(IdeaSubmission.reviewed.is_(False))
        .order_by(IdeaSubmission.created_at.desc())
    )
    submissions = result.scalars().all()
    owners = await idea_service.users_by_id(db, (s.owner_id for s in submissions))
    return [idea_service.serialize_submission(s, owners.get(s.owner_id)) for s in submissions]


# ═══════════════════════════════════════════════════════════════
#  Published ideas
# ═══════════════════════════════════════════════════════════════

@router.get("/approved")
async def approved_ideas(db: AsyncSession = Depends(get_db)):
    """Public idea board, newest first."""
    result = await db.execute(
        select(Idea).where(Idea.approved.is_(True)).order_by(Idea.created_at.desc(), Idea.id.desc())
    )
    ideas = result.scalars().all()
    serialized = await idea_service.serialize_ideas(db, ideas)
    return [
        {
            "id": item["id"],
            "name": (item.get("owner") or {}).get("name") or "Anonymous",
            "email": (item.get("owner") or {}).get("email") or "",
            "country": (item.get("owner") or {}).get("country") or "",
            "title": item["title"],
            "caption": item["caption"],
            "description": item["description"],
            "submittedAt": item["createdAt"],
            "likes": item["likes"],
            "commentCount": item["commentCount"],
        }
        for item in serialized
    ]


@router.get("/")
async def list_ideas(
    _admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Idea).order_by(Idea.created_at.desc(), Idea.id.desc()))
    return await idea_service.serialize_ideas(db, result.scalars().all())


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_idea(
    body: AdminIdeaCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Publish an idea on behalf of ``ownerId`` without the review step."""
    owner = await profiles.get_user(db, body.owner_id)
    if owner is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Owner not found")

    idea = Idea(
        title=body.title,
        caption=body.caption,
        description=body.description,
        owner_id=owner.id,
        approved=True,
    )
    db.add(idea)
    await db.flush()
    data = idea_service.serialize_idea(idea, owner)
    await db.commit()
    logger.info(f"Admin {admin.id} published idea {idea.id} for user {owner.id}")
    return data


@router.get("/{idea_id}")
async def get_idea(
    idea_id: int,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Idea detail for the discussion board: owner, team profiles and counts."""
    idea = await idea_service.get_approved_idea(db, idea_id)
    data = (await idea_service.serialize_ideas(db, [idea]))[0]

    owner = await profiles.get_user(db, idea.owner_id)
    data["owner"] = await profiles.build_profile(db, owner) if owner is not None else None
    data["collaborators"] = await _member_profiles(db, IdeaCollaborator, idea.id)
    data["mentors"] = await _member_profiles(db, IdeaMentor, idea.id)
    return data


@router.get("/{idea_id}/team")
async def get_team(idea_id: int, db: AsyncSession = Depends(get_db)):
    idea = await idea_service.get_approved_idea(db, idea_id)

    owner = await profiles.get_user(db, idea.owner_id)
    owner_profile = await profiles.build_profile(db, owner) if owner is not None else None
    mentors = await _member_profiles(db, IdeaMentor, idea.id)
    collaborators = await _member_profiles(db, IdeaCollaborator, idea.id)

    return {
        "owner": _team_member(owner_profile, "owner", "Project Owner"),
        "mentor": _team_member(mentors[0], "mentor", "Project Mentor") if mentors else None,
        "collaborators": [_team_member(p, "collaborator", "Team Member") for p in collaborators],
    }


@router.put("/{idea_id}")
async def update_idea(
    idea_id: int,
    body: IdeaUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    idea = await idea_service.get_idea(db, idea_id)
    if not _can_modify(idea, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only edit your own ideas")

    for field, value in body.model_dump(exclude_unset=True).items():
        if field in ("title", "description") and value is None:
            continue
        setattr(idea, field, value)
    await db.flush()
    data = (await idea_service.serialize_ideas(db, [idea]))[0]
    await db.commit()
    return data


@router.delete("/{idea_id}")
async def delete_idea(
    idea_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    database: Database = Depends(get_database),
):
    """Delete an idea together with its comments, likes and memberships."""
    idea = await idea_service.get_idea(db, idea_id)
    if not _can_modify(idea, current_user):
        await log_failure(db, database, request, current_user, "DELETE_IDEA", idea_id, "IDEA", "Not the owner")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own ideas")

    await idea_service.delete_ideas(db, [idea.id])
    await db.commit()

    await log_audit_event(
        database, "DELETE_IDEA", current_user, True,
        target_id=idea_id, target_type="IDEA",
        message="Idea deleted", ip_address=client_ip(request),
    )
    return {"success": True}
