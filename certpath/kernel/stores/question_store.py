"""
Question Pool - read access to active questions, plus bulk ingestion.
"""

import uuid
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from certpath.kernel.models.question import CompetencyLevel, Question
from certpath.schemas.question import QuestionCreate


class QuestionPool:
    """Queryable collection of questions tagged by competency, level and step."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_questions(
        self,
        step: int,
        levels: Sequence[CompetencyLevel],
    ) -> List[Question]:
        """Active questions of the step whose level is one of `levels`."""
        level_values = [lv.value if hasattr(lv, "value") else str(lv) for lv in levels]
        q = (
            select(Question)
            .where(
                Question.step == step,
                Question.level.in_(level_values),
                Question.is_active.is_(True),
            )
            .order_by(Question.created_at, Question.id)
        )
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def get_many(self, question_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, Question]:
        """Fetch questions by id, inactive ones included."""
        ids = list(question_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(Question).where(Question.id.in_(ids)))
        return {q.id: q for q in result.scalars().all()}

    async def add_questions(
        self,
        items: Iterable[QuestionCreate],
        created_by: Optional[uuid.UUID] = None,
    ) -> List[Question]:
        """Insert validated questions, normalizing the correct answer to an index."""
        rows = [
            Question(
                competency=item.competency.strip(),
                level=item.level.value,
                step=item.step,
                prompt=item.prompt.strip(),
                options=list(item.options),
                correct_index=item.correct_index(),
                explanation=item.explanation,
                difficulty=item.difficulty.value,
                category=item.category,
                tags=list(item.tags),
                is_active=item.is_active,
                created_by=created_by,
            )
            for item in items
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows
