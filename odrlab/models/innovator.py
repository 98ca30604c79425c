"""Innovator extension — student / idea-owner profile fields."""

from typing import Optional

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from odrlab.database import Base


class Innovator(Base):
    __tablename__ = "innovators"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    institution: Mapped[Optional[str]] = mapped_column(String(200))
    highest_education: Mapped[Optional[str]] = mapped_column(String(100))
    course_name: Mapped[Optional[str]] = mapped_column(String(100))
    course_status: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
