"""Mentor extension — doubles as the mentor application record."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from odrlab.database import Base


class MentorType(str, enum.Enum):
    TECHNICAL_EXPERT = "TECHNICAL_EXPERT"
    LEGAL_EXPERT = "LEGAL_EXPERT"
    ODR_EXPERT = "ODR_EXPERT"
    CONFLICT_RESOLUTION_EXPERT = "CONFLICT_RESOLUTION_EXPERT"

    @classmethod
    def from_code(cls, value: str) -> "MentorType":
        """Accept the short form codes (tech / law / odr / conflict) or a member name."""
        key = value.strip()
        if key.lower() in MENTOR_TYPE_CODES:
            return MENTOR_TYPE_CODES[key.lower()]
        return cls(key.upper())


# Short codes used by the signup and profile completion forms
MENTOR_TYPE_CODES = {
    "tech": MentorType.TECHNICAL_EXPERT,
    "law": MentorType.LEGAL_EXPERT,
    "odr": MentorType.ODR_EXPERT,
    "conflict": MentorType.CONFLICT_RESOLUTION_EXPERT,
}


class Mentor(Base):
    __tablename__ = "mentors"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    mentor_type: Mapped[MentorType] = mapped_column(
        Enum(MentorType), default=MentorType.TECHNICAL_EXPERT, nullable=False
    )
    organization: Mapped[Optional[str]] = mapped_column(String(200))
    role: Mapped[Optional[str]] = mapped_column(String(100))
    expertise: Mapped[Optional[str]] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # ── Application review ──
    approved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    reviewed_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
