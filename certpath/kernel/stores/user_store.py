"""
User progression store - the authoritative progression summary per user.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.exceptions import NotFoundError
from certpath.kernel.models.assessment import Assessment, AssessmentStatus
from certpath.kernel.models.user import AssessmentHistoryEntry, User

_PROGRESSION_FIELDS = frozenset({"current_level", "completed_steps", "can_retake", "last_assessment_at"})


class HistoryItem(BaseModel):
    """One (step, score, level, date) entry."""

    step: int
    score: float
    level: str
    date: datetime
    assessment_id: uuid.UUID
    certificate_id: Optional[uuid.UUID] = None


class UserProgression(BaseModel):
    """Snapshot of a user's progression, as read by the progression gate."""

    user_id: uuid.UUID
    current_level: Optional[str] = None
    completed_steps: List[int] = []
    can_retake: bool = True
    last_assessment_at: Optional[datetime] = None
    history: List[HistoryItem] = []
    # Proceed flag of the most recent completed assessment, per step
    latest_proceed: Dict[int, bool] = {}


class UserProgressionStore:
    """Reads and patches progression fields on the user record."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: uuid.UUID) -> User:
        """Get a user or raise NotFoundError."""
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == email.lower().strip())
        )
        return result.scalar_one_or_none()

    async def get_user_progression(self, user_id: uuid.UUID) -> UserProgression:
        """Build the progression snapshot for a user."""
        user = await self.get_user(user_id)
        history = await self.history_for(user_id)

        completed_q = (
            select(Assessment.step, Assessment.can_proceed_to_next)
            .where(
                Assessment.user_id == user_id,
                Assessment.status == AssessmentStatus.COMPLETED.value,
            )
            .order_by(Assessment.completed_at, Assessment.created_at)
        )
        latest_proceed: Dict[int, bool] = {}
        for step, proceed in (await self.session.execute(completed_q)).all():
            latest_proceed[step] = bool(proceed)  # later rows overwrite earlier ones

        return UserProgression(
            user_id=user.id,
            current_level=user.current_level,
            completed_steps=list(user.completed_steps or []),
            can_retake=user.can_retake,
            last_assessment_at=user.last_assessment_at,
            history=[
                HistoryItem(
                    step=h.step,
                    score=h.score,
                    level=h.level,
                    date=h.created_at,
                    assessment_id=h.assessment_id,
                    certificate_id=h.certificate_id,
                )
                for h in history
            ],
            latest_proceed=latest_proceed,
        )

    async def update_user_progression(self, user_id: uuid.UUID, patch: Dict[str, Any]) -> User:
        """
        Apply a progression patch.

        completed_steps is replaced wholesale (JSON columns do not track
        in-place mutation). can_retake can only ever move to False.
        """
        unknown = set(patch) - _PROGRESSION_FIELDS
        if unknown:
            raise ValueError(f"Not progression fields: {sorted(unknown)}")
        user = await self.get_user(user_id)
        for key, value in patch.items():
            if key == "can_retake" and value and not user.can_retake:
                raise ValueError("can_retake cannot be restored once locked")
            if key == "completed_steps":
                value = sorted(set(value))
            setattr(user, key, value)
        await self.session.flush()
        return user

    async def append_history(
        self,
        user_id: uuid.UUID,
        assessment_id: uuid.UUID,
        step: int,
        score: float,
        level: str,
        recorded_at: datetime,
    ) -> AssessmentHistoryEntry:
        entry = AssessmentHistoryEntry(
            user_id=user_id,
            assessment_id=assessment_id,
            step=step,
            score=score,
            level=level,
            created_at=recorded_at,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def history_for(self, user_id: uuid.UUID) -> List[AssessmentHistoryEntry]:
        """Chronological history entries for a user."""
        q = (
            select(AssessmentHistoryEntry)
            .where(AssessmentHistoryEntry.user_id == user_id)
            .order_by(AssessmentHistoryEntry.created_at)
        )
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def link_certificate(self, assessment_id: uuid.UUID, certificate_id: uuid.UUID) -> None:
        """Point the history entry of an assessment at its certificate."""
        result = await self.session.execute(
            select(AssessmentHistoryEntry).where(AssessmentHistoryEntry.assessment_id == assessment_id)
        )
        entry = result.scalar_one_or_none()
        if entry is not None and entry.certificate_id is None:
            entry.certificate_id = certificate_id
            await self.session.flush()
