"""
Authentication router — email/password and Google sign-in with JWT cookies.

Endpoints:
    POST /api/auth/signup            → create account, set cookies
    POST /api/auth/login             → verify credentials, set cookies
    POST /api/auth/google-signin     → find-or-create from a Google identity
    POST /api/auth/complete-profile  → fill contact details and role after Google sign-in
    POST /api/auth/refresh-token     → rotate cookies from the refresh token
    POST /api/auth/logout            → clear cookies
    GET  /api/auth/session           → current session state
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from odrlab.config import Settings
from odrlab.database import get_db
from odrlab.models.mentor import MENTOR_TYPE_CODES, MentorType
from odrlab.models.user import User, UserRole
from odrlab.schemas.user import CompleteProfileIn, GoogleSignInIn, LoginIn, SignupIn
from odrlab.security import (
    ACCESS_COOKIE,
    REFRESH_AUDIENCE,
    REFRESH_COOKIE,
    InvalidTokenError,
    TokenExpiredError,
    clear_auth_cookies,
    decode_token,
    extract_user_id,
    hash_password,
    set_auth_cookies,
    verify_password,
)
from odrlab.services import profiles

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password."

# userType values of the profile-completion form
COMPLETION_ROLES = {
    "student": UserRole.INNOVATOR,
    "faculty": UserRole.FACULTY,
    "professional": UserRole.OTHER,
    "researcher": UserRole.OTHER,
    "other": UserRole.OTHER,
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ═══════════════════════════════════════════════════════════════
#  Dependencies
# ═══════════════════════════════════════════════════════════════

def _request_token(request: Request) -> Optional[str]:
    """Bearer header first, then the access cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        if token:
            return token
    return request.cookies.get(ACCESS_COOKIE)


async def _resolve_user(request: Request, db: AsyncSession, settings: Settings) -> User:
    token = _request_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        payload = decode_token(token, settings)
    except TokenExpiredError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = extract_user_id(payload)
    user = await profiles.get_user(db, user_id) if user_id is not None else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    request.state.jwt_payload = payload
    request.state.extension = await profiles.load_extension(db, user)
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """Return the authenticated user or fail with 401."""
    return await _resolve_user(request, db, settings)


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Optional[User]:
    """Like get_current_user, but anonymous requests yield None."""
    try:
        return await _resolve_user(request, db, settings)
    except HTTPException:
        return None


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.user_role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user


# ═══════════════════════════════════════════════════════════════
#  Helpers
# ═══════════════════════════════════════════════════════════════

def _signup_mentor_type(body: SignupIn) -> Optional[MentorType]:
    """The mentor type a signup asks for, or None when it is not a mentor signup."""
    if body.mentor_type is not None:
        return body.mentor_type
    if body.user_type and body.user_type.lower() in MENTOR_TYPE_CODES:
        return MENTOR_TYPE_CODES[body.user_type.lower()]
    if (body.main_user_type or "").lower() == "mentor" or body.user_role == UserRole.MENTOR:
        return MentorType.TECHNICAL_EXPERT
    return None


def _signup_role(body: SignupIn) -> UserRole:
    kinds = {(body.user_type or "").lower(), (body.main_user_type or "").lower()}
    if "student" in kinds:
        return UserRole.INNOVATOR
    if "faculty" in kinds:
        return UserRole.FACULTY
    if body.user_role in (UserRole.INNOVATOR, UserRole.FACULTY, UserRole.OTHER):
        return body.user_role
    # ADMIN is never self-assigned
    return UserRole.OTHER


def _signup_extension(body: SignupIn, role: UserRole) -> dict:
    if role == UserRole.INNOVATOR:
        return {
            "institution": body.student_institute or body.institution,
            "highest_education": body.highest_education,
            "course_name": body.course_name,
            "course_status": body.course_status,
            "description": body.odr_lab_usage,
        }
    if role == UserRole.FACULTY:
        return {
            "institution": body.faculty_institute or body.institution,
            "role": body.faculty_role,
            "expertise": body.faculty_expertise,
            "course": body.faculty_course,
            "mentoring": (body.faculty_mentor or "").lower() == "yes",
            "description": body.odr_lab_usage,
        }
    return {
        "role": body.other_role,
        "workplace": body.other_workplace or body.institution,
        "description": body.odr_lab_usage,
    }


def _mentor_organization(body: SignupIn, mentor_type: MentorType) -> Optional[str]:
    if mentor_type == MentorType.TECHNICAL_EXPERT:
        return body.tech_org or body.institution
    if mentor_type == MentorType.LEGAL_EXPERT:
        return body.law_firm or body.institution
    return body.institution


def _json_with_cookies(content: dict, user: User, settings: Settings, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(content, status_code=status_code)
    set_auth_cookies(response, user, settings)
    return response


# ═══════════════════════════════════════════════════════════════
#  Signup / login
# ═══════════════════════════════════════════════════════════════

@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupIn,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Register a new account with its role extension; mentors start as pending applicants."""
    email = body.email.strip().lower()
    if await profiles.get_user_by_email(db, email) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists.")

    mentor_type = _signup_mentor_type(body)
    role = UserRole.OTHER if mentor_type is not None else _signup_role(body)

    user = User(
        name=body.name,
        email=email,
        password=await asyncio.to_thread(hash_password, body.password),
        contact_number=body.contact_number,
        city=body.city,
        country=body.country,
        user_role=role,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists.")

    if mentor_type is not None:
        await profiles.apply_for_mentor(
            db,
            user,
            mentor_type,
            organization=_mentor_organization(body, mentor_type),
            description=body.odr_lab_usage,
            role=body.tech_role if mentor_type == MentorType.TECHNICAL_EXPERT else None,
        )
    else:
        await profiles.upsert_extension(db, user, _signup_extension(body, role))

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    # Tokens are signed before the commit so a signing failure leaves no account behind
    response = _json_with_cookies({"user": profile}, user, settings, status.HTTP_201_CREATED)
    await db.commit()
    logger.info(f"New user {user.id} signed up as {role.value}")
    return response


@router.post("/login")
async def login(
    body: LoginIn,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = await profiles.get_user_by_email(db, body.email)
    # Password-less (Google) accounts get the same answer as a wrong password
    if user is None or not await asyncio.to_thread(verify_password, body.password, user.password):
        logger.warning(f"Failed login attempt for {body.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS)

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    logger.info(f"User {user.id} logged in")
    return _json_with_cookies({"user": profile, "message": "Login successful"}, user, settings)


@router.post("/google-signin")
async def google_signin(
    body: GoogleSignInIn,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Find or create the account for a Google identity verified by the frontend."""
    email = body.email.strip().lower()
    user = await profiles.get_user_by_email(db, email)

    if user is None:
        user = User(
            name=body.name or email.split("@")[0],
            email=email,
            image_avatar=body.image,
            user_role=UserRole.INNOVATOR,
        )
        db.add(user)
        await db.flush()
        await profiles.upsert_extension(db, user, {})
        needs_completion = True
        logger.info(f"New user {user.id} created from Google sign-in")
    else:
        if body.image and not user.image_avatar:
            user.image_avatar = body.image
        needs_completion = not (user.contact_number and user.city and user.country)

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    response = _json_with_cookies(
        {
            "user": profile,
            "needsProfileCompletion": needs_completion,
            "message": "Profile completion required" if needs_completion else "Sign in successful",
        },
        user,
        settings,
    )
    await db.commit()
    return response


@router.post("/complete-profile")
async def complete_profile(
    body: CompleteProfileIn,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Fill contact details and, optionally, switch role after a Google sign-in."""
    user = current_user
    if body.name:
        user.name = body.name
    user.contact_number = body.contact_number
    user.city = body.city
    user.country = body.country

    data = body.extension_data()
    if body.odr_lab_usage and not data.get("description"):
        data["description"] = body.odr_lab_usage

    user_type = (body.user_type or "").lower()
    if user_type in MENTOR_TYPE_CODES and user.user_role != UserRole.MENTOR:
        await profiles.apply_for_mentor(
            db,
            user,
            MENTOR_TYPE_CODES[user_type],
            organization=data.get("organization") or data.get("institution"),
            expertise=data.get("expertise"),
            description=data.get("description"),
        )
    else:
        new_role = COMPLETION_ROLES.get(user_type)
        if new_role is not None and user.user_role != UserRole.ADMIN and new_role != user.user_role:
            await profiles.change_role(db, user, new_role, defaults=data)
        await profiles.upsert_extension(db, user, data)

    profile = await profiles.build_profile(db, user, with_mentor_status=True)
    response = _json_with_cookies(
        {"user": profile, "message": "Profile completed successfully"}, user, settings
    )
    await db.commit()
    logger.info(f"User {user.id} completed profile as {user.user_role.value}")
    return response


# ═══════════════════════════════════════════════════════════════
#  Token lifecycle
# ═══════════════════════════════════════════════════════════════

@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token required")
    try:
        payload = decode_token(token, settings, audience=REFRESH_AUDIENCE)
    except TokenExpiredError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    user_id = extract_user_id(payload)
    user = await profiles.get_user(db, user_id) if user_id is not None else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    profile = await profiles.build_profile(db, user)
    return _json_with_cookies({"user": profile, "message": "Token refreshed"}, user, settings)


@router.post("/logout")
async def logout(settings: Settings = Depends(get_settings)):
    """Clear every auth cookie."""
    response = JSONResponse({"message": "Logged out successfully"})
    clear_auth_cookies(response, settings)
    return response


@router.get("/session")
async def session(
    request: Request,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if current_user is None:
        return JSONResponse({"authenticated": False}, status_code=status.HTTP_401_UNAUTHORIZED)

    extension = request.state.extension
    profile = profiles.effective_profile(current_user, extension)
    content = {
        "authenticated": True,
        "user": profile,
        "needsProfileCompletion": profiles.needs_profile_completion(current_user, extension),
    }
    exp = request.state.jwt_payload.get("exp")
    if exp:
        content["expiresAt"] = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        content["expiresIn"] = int(exp - datetime.now(timezone.utc).timestamp())
    return content
