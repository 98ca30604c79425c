"""User model — base identity shared by every role."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from odrlab.database import Base, utcnow


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    INNOVATOR = "INNOVATOR"
    MENTOR = "MENTOR"
    FACULTY = "FACULTY"
    OTHER = "OTHER"


class User(Base):
    __tablename__ = "users"

    # ── Identity ──
    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(
        String(200), unique=True, index=True, nullable=False
    )
    # Null for Google-only accounts
    password: Mapped[Optional[str]] = mapped_column(String(255))
    user_role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.OTHER, nullable=False
    )

    # ── Contact ──
    contact_number: Mapped[Optional[str]] = mapped_column(String(20))
    city: Mapped[Optional[str]] = mapped_column(String(100))
    country: Mapped[Optional[str]] = mapped_column(String(100))
    image_avatar: Mapped[Optional[str]] = mapped_column(String(500))

    # ── Timestamps ──
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )
