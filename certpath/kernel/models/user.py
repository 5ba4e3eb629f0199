"""
User model with assessment progression state.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from certpath.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow


class UserRole(str, Enum):
    """User roles in the system."""
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    """
    User account plus the authoritative progression summary.

    completed_steps and can_retake are what the progression gate reads;
    they are updated exactly once per completed assessment.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        String(50),
        default=UserRole.STUDENT,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Progression
    current_level: Mapped[Optional[str]] = mapped_column(
        String(2),
        nullable=True,
    )
    completed_steps: Mapped[List[int]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    can_retake: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    last_assessment_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class AssessmentHistoryEntry(Base):
    """One row per completed assessment that produced a level."""

    __tablename__ = "assessment_history"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assessment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    level: Mapped[str] = mapped_column(String(2), nullable=False)
    certificate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("certificates.id"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_assessment_history_user_time", "user_id", "created_at"),
    )
