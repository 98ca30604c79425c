"""User Pydantic schemas — signup, login, profile and admin edits."""

import re
from typing import Annotated, Any, Dict, Optional
from urllib.parse import urlparse

from pydantic import BeforeValidator, EmailStr, Field, field_validator

from odrlab.models.mentor import MentorType
from odrlab.models.user import UserRole
from odrlab.schemas.base import CamelModel

_IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)
_AVATAR_HOSTS = ("googleusercontent.com", "githubusercontent.com")

EXTENSION_FIELDS = (
    "institution",
    "highest_education",
    "course_name",
    "course_status",
    "organization",
    "workplace",
    "role",
    "expertise",
    "course",
    "mentoring",
    "description",
    "mentor_type",
)


def _mentor_type(value: Any) -> Any:
    if value is None or isinstance(value, MentorType):
        return value
    if isinstance(value, str):
        try:
            return MentorType.from_code(value)
        except ValueError:
            raise ValueError("Unknown mentor type") from None
    return value


MentorTypeIn = Annotated[MentorType, BeforeValidator(_mentor_type)]


class ExtensionFields(CamelModel):
    """Role-specific fields accepted by profile edits; only sent keys are applied."""

    institution: Optional[str] = Field(None, max_length=200)
    highest_education: Optional[str] = Field(None, max_length=100)
    course_name: Optional[str] = Field(None, max_length=100)
    course_status: Optional[str] = Field(None, max_length=100)
    organization: Optional[str] = Field(None, max_length=200)
    workplace: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = Field(None, max_length=100)
    expertise: Optional[str] = Field(None, max_length=200)
    course: Optional[str] = Field(None, max_length=100)
    mentoring: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=1000)
    mentor_type: Optional[MentorTypeIn] = None

    def extension_data(self) -> Dict[str, Any]:
        return self.model_dump(include=set(EXTENSION_FIELDS), exclude_unset=True)


class SignupIn(CamelModel):
    """Fields submitted on the registration form, including every role sub-form."""

    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    contact_number: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)

    # Role selection
    user_role: Optional[UserRole] = None
    user_type: Optional[str] = Field(None, max_length=100)
    main_user_type: Optional[str] = Field(None, max_length=100)
    mentor_type: Optional[MentorTypeIn] = None

    # Shared
    institution: Optional[str] = Field(None, max_length=200)
    odr_lab_usage: Optional[str] = Field(None, max_length=1000)

    # Student form
    student_institute: Optional[str] = Field(None, max_length=200)
    highest_education: Optional[str] = Field(None, max_length=100)
    course_name: Optional[str] = Field(None, max_length=100)
    course_status: Optional[str] = Field(None, max_length=100)

    # Faculty form
    faculty_institute: Optional[str] = Field(None, max_length=200)
    faculty_role: Optional[str] = Field(None, max_length=100)
    faculty_expertise: Optional[str] = Field(None, max_length=200)
    faculty_course: Optional[str] = Field(None, max_length=100)
    faculty_mentor: Optional[str] = None

    # Mentor form
    tech_org: Optional[str] = Field(None, max_length=200)
    tech_role: Optional[str] = Field(None, max_length=100)
    law_firm: Optional[str] = Field(None, max_length=200)

    # Other form
    other_workplace: Optional[str] = Field(None, max_length=200)
    other_role: Optional[str] = Field(None, max_length=100)


class LoginIn(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=100)


class GoogleSignInIn(CamelModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    image: Optional[str] = Field(None, max_length=500)


class CompleteProfileIn(ExtensionFields):
    contact_number: str = Field(..., min_length=1, max_length=20)
    city: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    user_type: Optional[str] = Field(None, max_length=100)
    odr_lab_usage: Optional[str] = Field(None, max_length=1000)


class ProfileUpdateIn(ExtensionFields):
    """Self-service profile edit: base fields plus the current role's extension."""

    name: str = Field(..., min_length=1, max_length=100)
    image_avatar: Optional[str] = Field(None, max_length=500)
    contact_number: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)

    @field_validator("image_avatar")
    @classmethod
    def check_image_url(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Please provide a valid image URL")
        if not _IMAGE_EXTENSION.search(parsed.path) and not parsed.netloc.endswith(_AVATAR_HOSTS):
            raise ValueError("Please provide a valid image URL")
        return value


class ApplyMentorIn(CamelModel):
    mentor_type: MentorTypeIn
    description: str = Field(..., min_length=1, max_length=1000)
    organization: Optional[str] = Field(None, max_length=200)
    expertise: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = Field(None, max_length=100)



class AdminUserUpdateIn(ExtensionFields):
    """Admin edit of any user; ``user_role`` triggers a role transition."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    contact_number: Optional[str] = Field(None, max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    image_avatar: Optional[str] = Field(None, max_length=500)
    user_role: Optional[UserRole] = None


class UserIdIn(CamelModel):
    user_id: int


class RejectMentorIn(UserIdIn):
    reason: Optional[str] = Field(None, max_length=1000)
