"""
Pydantic schemas for user progression API.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from certpath.engines.assessment.assessment_service import ProgressReport


class HistoryItemResponse(BaseModel):
    """One completed assessment that produced a level."""

    step: int
    score: float
    level: str
    date: datetime
    assessment_id: uuid.UUID
    certificate_id: Optional[uuid.UUID] = None


class ProgressResponse(BaseModel):
    """User's progression through the three steps."""

    user_id: uuid.UUID
    current_level: Optional[str] = None
    completed_steps: List[int] = []
    can_retake: bool = True
    next_available_step: Optional[int] = None
    last_assessment_at: Optional[datetime] = None
    history: List[HistoryItemResponse] = []

    @classmethod
    def from_report(cls, report: ProgressReport) -> "ProgressResponse":
        progression = report.progression
        return cls(
            user_id=progression.user_id,
            current_level=progression.current_level,
            completed_steps=progression.completed_steps,
            can_retake=progression.can_retake,
            next_available_step=report.next_available_step,
            last_assessment_at=progression.last_assessment_at,
            history=[HistoryItemResponse(**item.model_dump()) for item in progression.history],
        )
