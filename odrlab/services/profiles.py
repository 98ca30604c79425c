"""Role-polymorphic user profiles: extension rows, role transitions and the mentor lifecycle."""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from pydantic import EmailStr, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.config import Settings
from odrlab.database import Base, Database, utcnow
from odrlab.errors import ConfigurationError, ConflictError, InvalidStateError, NotFoundError, PermissionDeniedError
from odrlab.models.comment import Comment, Like
from odrlab.models.faculty import Faculty
from odrlab.models.idea import Idea
from odrlab.models.idea_membership import IdeaCollaborator, IdeaMentor
from odrlab.models.idea_submission import IdeaSubmission
from odrlab.models.innovator import Innovator
from odrlab.models.mentor import Mentor, MentorType
from odrlab.models.other import Other
from odrlab.models.user import User, UserRole
from odrlab.security import hash_password
from odrlab.services.ideas import comment_subtree_ids, delete_comments, delete_ideas

logger = logging.getLogger(__name__)

# One extension table per non-admin role
ROLE_EXTENSIONS: Dict[UserRole, Type[Base]] = {
    UserRole.INNOVATOR: Innovator,
    UserRole.MENTOR: Mentor,
    UserRole.FACULTY: Faculty,
    UserRole.OTHER: Other,
}

_unmapped = set(UserRole) - {UserRole.ADMIN} - set(ROLE_EXTENSIONS)
if _unmapped:
    raise RuntimeError(f"Roles without an extension table: {sorted(r.value for r in _unmapped)}")

# Columns each extension contributes to the effective profile
EXTENSION_COLUMNS: Dict[Type[Base], Tuple[str, ...]] = {
    Innovator: ("institution", "highest_education", "course_name", "course_status", "description"),
    Mentor: ("mentor_type", "organization", "role", "expertise", "description"),
    Faculty: ("institution", "role", "expertise", "course", "mentoring", "description"),
    Other: ("role", "workplace", "description"),
}

# Fields that must be filled for a profile to count as complete
REQUIRED_FOR_COMPLETION: Dict[UserRole, Tuple[str, ...]] = {
    UserRole.INNOVATOR: ("institution", "highest_education"),
    UserRole.MENTOR: ("mentor_type", "organization"),
    UserRole.FACULTY: ("institution", "course"),
    UserRole.OTHER: ("workplace", "role"),
}

DEFAULT_REJECTION_REASON = "Application not approved"

# Same check the login form applies to its email field
_ADMIN_EMAIL = TypeAdapter(EmailStr)


def extension_model(role: UserRole) -> Optional[Type[Base]]:
    """Return the extension table for ``role``; admins have none."""
    if role == UserRole.ADMIN:
        return None
    return ROLE_EXTENSIONS[role]


def mentor_type_label(mentor_type: MentorType) -> str:
    return mentor_type.value.replace("_", " ")


def _json_value(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (MentorType, UserRole)):
        return value.value
    return value


# ═══════════════════════════════════════════════════════════════
#  Loading & serialisation
# ═══════════════════════════════════════════════════════════════

async def get_user(db: AsyncSession, user_id: int) -> Optional[User]:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def _get_row(db: AsyncSession, model: Type[Base], user_id: int):
    result = await db.execute(select(model).where(model.user_id == user_id))
    return result.scalar_one_or_none()


async def load_extension(db: AsyncSession, user: User):
    """Return the extension row of the user's current role, or None."""
    model = extension_model(user.user_role)
    if model is None:
        return None
    return await _get_row(db, model, user.id)


async def load_mentor_application(db: AsyncSession, user_id: int) -> Optional[Mentor]:
    return await _get_row(db, Mentor, user_id)


def effective_profile(user: User, extension=None) -> Dict[str, Any]:
    """
    Merge the base user with the extension of its current role.
    A missing extension just omits its fields; the password hash never leaves here.
    """
    profile = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "userRole": user.user_role.value,
        "contactNumber": user.contact_number,
        "city": user.city,
        "country": user.country,
        "imageAvatar": user.image_avatar,
        "createdAt": _json_value(user.created_at),
        "updatedAt": _json_value(user.updated_at),
    }
    if extension is not None:
        for column in EXTENSION_COLUMNS[type(extension)]:
            profile[to_camel(column)] = _json_value(getattr(extension, column))
    return profile


def mentor_status(application: Optional[Mentor]) -> Dict[str, Any]:
    return {
        "hasMentorApplication": application is not None,
        "isMentorApproved": bool(application and application.approved),
        "mentorRejectionReason": application.rejection_reason if application else None,
    }


async def build_profile(db: AsyncSession, user: User, with_mentor_status: bool = False) -> Dict[str, Any]:
    """Load the user's extension and return its effective profile."""
    extension = await load_extension(db, user)
    profile = effective_profile(user, extension)
    if with_mentor_status:
        application = extension if isinstance(extension, Mentor) else await load_mentor_application(db, user.id)
        profile.update(mentor_status(application))
    return profile


async def build_profiles(db: AsyncSession, users: Iterable[User]) -> List[Dict[str, Any]]:
    """Effective profiles for many users with one query per extension table."""
    users = list(users)
    by_model: Dict[Type[Base], List[int]] = {}
    for user in users:
        model = extension_model(user.user_role)
        if model is not None:
            by_model.setdefault(model, []).append(user.id)

    extensions: Dict[Tuple[Type[Base], int], Any] = {}
    for model, user_ids in by_model.items():
        result = await db.execute(select(model).where(model.user_id.in_(user_ids)))
        for row in result.scalars().all():
            extensions[(model, row.user_id)] = row

    profiles = []
    for user in users:
        model = extension_model(user.user_role)
        profiles.append(effective_profile(user, extensions.get((model, user.id))))
    return profiles


def needs_profile_completion(user: User, extension) -> bool:
    """True when the role-specific fields the frontend relies on are missing."""
    required = REQUIRED_FOR_COMPLETION.get(user.user_role)
    if required is None:
        return False
    if extension is None:
        return True
    return any(not getattr(extension, field) for field in required)


# ═══════════════════════════════════════════════════════════════
#  Extension writes & role transitions
# ═══════════════════════════════════════════════════════════════

def _extension_fields(model: Type[Base], data: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(data)
    # Institution doubles as the organisation / workplace on the generic forms
    if model is Mentor and not data.get("organization") and data.get("institution"):
        data["organization"] = data["institution"]
    if model is Other and not data.get("workplace") and data.get("institution"):
        data["workplace"] = data["institution"]

    fields = {k: v for k, v in data.items() if k in EXTENSION_COLUMNS[model]}
    # Non-nullable columns keep their current value when not provided
    for column in ("mentor_type", "mentoring"):
        if column in fields and fields[column] is None:
            del fields[column]
    return fields


async def upsert_extension(db: AsyncSession, user: User, data: Dict[str, Any]):
    """Create or update the extension row for the user's current role."""
    model = extension_model(user.user_role)
    if model is None:
        return None

    fields = _extension_fields(model, data)
    row = await _get_row(db, model, user.id)
    if row is None:
        if model is Mentor:
            fields.setdefault("mentor_type", MentorType.TECHNICAL_EXPERT)
        row = model(user_id=user.id, **fields)
        db.add(row)
    else:
        for key, value in fields.items():
            setattr(row, key, value)
    await db.flush()
    return row


async def _delete_stale_extensions(db: AsyncSession, user: User) -> None:
    keep = extension_model(user.user_role)
    for model in ROLE_EXTENSIONS.values():
        if model is keep:
            continue
        stmt = delete(model).where(model.user_id == user.id)
        if model is Mentor and user.user_role == UserRole.OTHER:
            # An unapproved mentor row is the pending application of an OTHER user
            stmt = stmt.where(Mentor.approved.is_(True))
        await db.execute(stmt)


async def change_role(
    db: AsyncSession,
    user: User,
    new_role: UserRole,
    defaults: Optional[Dict[str, Any]] = None,
    actor_id: Optional[int] = None,
):
    """
    Move ``user`` to ``new_role``, dropping every extension row of other roles
    and creating the new role's row (from ``defaults``) when missing.
    Reaching MENTOR this way approves the mentor row.
    """
    old_role = user.user_role
    user.user_role = new_role
    await _delete_stale_extensions(db, user)

    model = extension_model(new_role)
    if model is None:
        await db.flush()
        logger.info(f"User {user.id} role changed {old_role.value} -> {new_role.value}")
        return None

    row = await _get_row(db, model, user.id)
    if row is None:
        fields = _extension_fields(model, defaults or {})
        if model is Mentor:
            fields.setdefault("mentor_type", MentorType.TECHNICAL_EXPERT)
        row = model(user_id=user.id, **fields)
        db.add(row)
    if model is Mentor and not row.approved:
        row.approved = True
        row.rejection_reason = None
        row.reviewed_at = utcnow()
        row.reviewed_by = actor_id

    await db.flush()
    logger.info(f"User {user.id} role changed {old_role.value} -> {new_role.value}")
    return row


# ═══════════════════════════════════════════════════════════════
#  Mentor lifecycle
# ═══════════════════════════════════════════════════════════════

async def apply_for_mentor(
    db: AsyncSession,
    user: User,
    mentor_type: MentorType,
    organization: Optional[str] = None,
    expertise: Optional[str] = None,
    description: Optional[str] = None,
    role: Optional[str] = None,
) -> Mentor:
    """
    Open (or re-open) a mentor application. The user becomes OTHER until an
    admin approves; the Other row records the pending state.
    """
    if user.user_role == UserRole.ADMIN:
        raise PermissionDeniedError("Administrators cannot apply as mentors")
    if user.user_role == UserRole.MENTOR:
        raise InvalidStateError("You are already an approved mentor")

    pending_label = f"Pending {mentor_type_label(mentor_type)} approval"
    other = await change_role(
        db, user, UserRole.OTHER,
        defaults={"role": pending_label, "workplace": organization, "description": description},
    )
    other.role = pending_label

    mentor = await load_mentor_application(db, user.id)
    if mentor is None:
        mentor = Mentor(user_id=user.id)
        db.add(mentor)
    mentor.mentor_type = mentor_type
    mentor.organization = organization
    mentor.expertise = expertise
    mentor.description = description
    if role is not None:
        mentor.role = role
    mentor.approved = False
    mentor.rejection_reason = None
    mentor.reviewed_at = None
    mentor.reviewed_by = None

    await db.flush()
    logger.info(f"User {user.id} applied as {mentor_type.value} mentor")
    return mentor


async def _require_application(db: AsyncSession, user_id: int) -> Tuple[User, Mentor]:
    user = await get_user(db, user_id)
    if user is None:
        raise NotFoundError(f"User with ID {user_id} not found")
    mentor = await load_mentor_application(db, user_id)
    if mentor is None:
        raise NotFoundError(f"Mentor application not found for user {user_id}")
    return user, mentor


async def approve_mentor(db: AsyncSession, user_id: int, reviewer: User) -> Tuple[User, Mentor]:
    user, mentor = await _require_application(db, user_id)
    if mentor.approved:
        raise ConflictError(f"Mentor with ID {user_id} is already approved")

    mentor.approved = True
    mentor.rejection_reason = None
    mentor.reviewed_at = utcnow()
    mentor.reviewed_by = reviewer.id
    await change_role(db, user, UserRole.MENTOR, actor_id=reviewer.id)
    return user, mentor


async def reject_mentor(
    db: AsyncSession, user_id: int, reviewer: User, reason: Optional[str] = None
) -> Tuple[User, Mentor]:
    user, mentor = await _require_application(db, user_id)
    reason = reason or DEFAULT_REJECTION_REASON

    mentor.approved = False
    mentor.rejection_reason = reason
    mentor.reviewed_at = utcnow()
    mentor.reviewed_by = reviewer.id
    await db.flush()

    trace = {
        "role": f"Former {mentor_type_label(mentor.mentor_type)} mentor applicant",
        "workplace": mentor.organization or "",
        "description": f"Mentor application rejected: {reason}",
    }
    other = await change_role(db, user, UserRole.OTHER, defaults=trace)
    # A pending applicant already has an Other row; overwrite its pending label
    other.role = trace["role"]
    other.description = trace["description"]
    await db.flush()
    return user, mentor


async def pending_mentors(db: AsyncSession) -> List[Tuple[User, Mentor]]:
    result = await db.execute(
        select(User, Mentor)
        .join(Mentor, Mentor.user_id == User.id)
        .where(Mentor.approved.is_(False), Mentor.reviewed_at.is_(None))
        .order_by(User.created_at.desc())
    )
    return list(result.all())


# ═══════════════════════════════════════════════════════════════
#  Account deletion & bootstrap
# ═══════════════════════════════════════════════════════════════

async def delete_user(db: AsyncSession, user: User) -> None:
    """Remove a user and everything that hangs off it, inside the caller's transaction."""
    user_id = user.id

    owned = await db.execute(select(Idea.id).where(Idea.owner_id == user_id))
    await delete_ideas(db, owned.scalars().all())

    authored = await db.execute(select(Comment.id).where(Comment.author_id == user_id))
    await delete_comments(db, await comment_subtree_ids(db, authored.scalars().all()))

    await db.execute(delete(Like).where(Like.user_id == user_id))
    await db.execute(delete(IdeaCollaborator).where(IdeaCollaborator.user_id == user_id))
    await db.execute(delete(IdeaMentor).where(IdeaMentor.user_id == user_id))
    await db.execute(delete(IdeaSubmission).where(IdeaSubmission.owner_id == user_id))

    # Reviews by this user stay, without the reviewer reference
    await db.execute(
        update(IdeaSubmission).where(IdeaSubmission.reviewed_by == user_id).values(reviewed_by=None)
    )
    await db.execute(
        update(Mentor).where(Mentor.reviewed_by == user_id).values(reviewed_by=None)
    )

    for model in ROLE_EXTENSIONS.values():
        await db.execute(delete(model).where(model.user_id == user_id))

    await db.delete(user)
    await db.flush()
    logger.info(f"User {user_id} deleted with owned content")


async def ensure_admin(database: Database, settings: Settings) -> Optional[User]:
    """Create or promote the configured bootstrap admin account."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("No bootstrap admin configured")
        return None

    try:
        email = _ADMIN_EMAIL.validate_python(settings.ADMIN_EMAIL.strip()).lower()
    except ValidationError as e:
        # An address the login form rejects would leave an admin nobody can sign in as
        raise ConfigurationError(f"ADMIN_EMAIL is not a valid email address: {settings.ADMIN_EMAIL}") from e

    async with database.session() as db:
        user = await get_user_by_email(db, email)
        if user is None:
            user = User(
                name=settings.ADMIN_NAME,
                email=email,
                password=await asyncio.to_thread(hash_password, settings.ADMIN_PASSWORD),
                user_role=UserRole.ADMIN,
            )
            db.add(user)
            logger.info(f"Bootstrap admin {email} created")
        elif user.user_role != UserRole.ADMIN:
            await change_role(db, user, UserRole.ADMIN)
            logger.info(f"Existing user {email} promoted to admin")
        await db.commit()
        return user


async def search_users(db: AsyncSession, query: Optional[str] = None) -> List[User]:
    stmt = select(User).order_by(User.created_at.desc())
    if query:
        pattern = f"%{query.strip().lower()}%"
        stmt = stmt.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    result = await db.execute(stmt)
    return list(result.scalars().all())
