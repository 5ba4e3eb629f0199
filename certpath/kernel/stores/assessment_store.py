"""
Assessment store - persistence for assessment instances.
"""

import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.exceptions import NotFoundError
from certpath.kernel.models.assessment import Assessment, AssessmentStatus
from certpath.kernel.models.base import as_utc


class AssessmentStore:
    """
    CRUD for assessments.

    update() flushes through the ORM, so the row version is checked and a
    concurrent writer surfaces as StaleDataError to the caller.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, assessment: Assessment) -> Assessment:
        self.session.add(assessment)
        await self.session.flush()
        return assessment

    async def find_by_id(self, assessment_id: uuid.UUID) -> Assessment:
        """Get an assessment or raise NotFoundError."""
        assessment = await self.session.get(Assessment, assessment_id)
        if assessment is None:
            raise NotFoundError("Assessment", assessment_id)
        return assessment

    async def update(self, assessment: Assessment) -> Assessment:
        """Flush pending changes; raises StaleDataError if the row moved on."""
        await self.session.flush()
        return assessment

    async def find_latest_by_user_and_step(
        self,
        user_id: uuid.UUID,
        step: int,
        status: Optional[AssessmentStatus] = None,
    ) -> Optional[Assessment]:
        q = select(Assessment).where(
            Assessment.user_id == user_id,
            Assessment.step == step,
        )
        if status is not None:
            q = q.where(Assessment.status == status.value)
        q = q.order_by(desc(Assessment.created_at)).limit(1)
        result = await self.session.execute(q)
        return result.scalar_one_or_none()

    async def find_in_progress(self, user_id: uuid.UUID, step: int) -> List[Assessment]:
        q = select(Assessment).where(
            Assessment.user_id == user_id,
            Assessment.step == step,
            Assessment.status == AssessmentStatus.IN_PROGRESS.value,
        )
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def list_for_user(self, user_id: uuid.UUID) -> List[Assessment]:
        """User's assessments, newest first."""
        q = (
            select(Assessment)
            .where(Assessment.user_id == user_id)
            .order_by(desc(Assessment.created_at))
        )
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def find_overdue(self, now: datetime, grace_seconds: int = 0) -> List[Assessment]:
        """
        In-progress assessments whose time limit (plus grace) has passed.

        The deadline depends on each row's own time limit, so rows are
        filtered in Python after a status-only query.
        """
        q = select(Assessment).where(Assessment.status == AssessmentStatus.IN_PROGRESS.value)
        result = await self.session.execute(q)
        overdue = []
        for assessment in result.scalars().all():
            if assessment.started_at is None:
                continue
            deadline = as_utc(assessment.started_at) + timedelta(
                minutes=assessment.time_limit_minutes, seconds=grace_seconds
            )
            if now >= deadline:
                overdue.append(assessment)
        return overdue
