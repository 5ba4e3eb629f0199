"""
Assessment model - one timed attempt at a step.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, JSON, String, text
from sqlalchemy.orm import Mapped, mapped_column

from certpath.kernel.models.base import Base, TimestampMixin, generate_uuid


class AssessmentStatus(str, Enum):
    """Lifecycle states of an assessment."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


TERMINAL_STATUSES = frozenset({AssessmentStatus.COMPLETED, AssessmentStatus.EXPIRED})


class Assessment(Base, TimestampMixin):
    """
    A user's attempt at one step.

    Every UPDATE carries the row version in its WHERE clause; a writer
    holding a stale copy gets StaleDataError instead of overwriting.
    A partial unique index allows one in_progress row per user and step.
    """

    __tablename__ = "assessments"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    levels: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    question_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    time_limit_minutes: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=AssessmentStatus.PENDING.value,
        nullable=False,
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expired_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Results (set on completion)
    answers: Mapped[List[dict]] = mapped_column(JSON, default=list, nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    percentage: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    achieved_level: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    certificate_level: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    can_proceed_to_next: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_assessments_user_step", "user_id", "step"),
        Index("ix_assessments_status", "status"),
        Index(
            "uq_assessments_user_step_in_progress",
            "user_id",
            "step",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    @property
    def status_enum(self) -> AssessmentStatus:
        return AssessmentStatus(self.status)

    @property
    def question_count(self) -> int:
        return len(self.question_ids or [])

    def __repr__(self) -> str:
        return f"<Assessment step={self.step} {self.status}>"
