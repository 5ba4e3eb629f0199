"""
Question model and the competency level/step vocabulary.
"""

import uuid
from enum import Enum
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Boolean, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from certpath.kernel.models.base import Base, TimestampMixin, generate_uuid


class CompetencyLevel(str, Enum):
    """Six ordered proficiency bands."""
    A1 = "A1"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    C1 = "C1"
    C2 = "C2"


# Each step owns two adjacent levels (low, high)
STEP_LEVELS: Dict[int, Tuple[CompetencyLevel, CompetencyLevel]] = {
    1: (CompetencyLevel.A1, CompetencyLevel.A2),
    2: (CompetencyLevel.B1, CompetencyLevel.B2),
    3: (CompetencyLevel.C1, CompetencyLevel.C2),
}

VALID_STEPS = tuple(STEP_LEVELS)


def step_for_level(level: CompetencyLevel) -> int:
    """Return the step that owns a level."""
    for step, levels in STEP_LEVELS.items():
        if level in levels:
            return step
    raise ValueError(f"Unknown level: {level}")


class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Question(Base, TimestampMixin):
    """
    Multiple-choice question in the pool.

    The correct option is stored as a zero-based index; text answers are
    normalized to an index when questions are ingested.
    """

    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid,
    )
    competency: Mapped[str] = mapped_column(String(255), nullable=False)
    level: Mapped[str] = mapped_column(String(2), nullable=False)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[List[str]] = mapped_column(JSON, nullable=False)
    correct_index: Mapped[int] = mapped_column(Integer, nullable=False)
    explanation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    difficulty: Mapped[str] = mapped_column(
        String(20),
        default=QuestionDifficulty.MEDIUM.value,
        nullable=False,
    )
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tags: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_questions_step_level", "step", "level"),
        Index("ix_questions_competency_level_step", "competency", "level", "step"),
    )

    def __repr__(self) -> str:
        return f"<Question {self.level} {self.competency}>"
