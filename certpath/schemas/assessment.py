"""
Pydantic schemas for assessment API.
"""

import uuid
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from certpath.engines.assessment.assessment_service import AssessmentDetail, SubmissionResult
from certpath.engines.assessment.grader import SubmittedAnswer
from certpath.kernel.models.assessment import TERMINAL_STATUSES
from certpath.schemas.certificate import CertificateResponse
from certpath.schemas.question import QuestionPublic, QuestionReview


class AssessmentRequest(BaseModel):
    """Body for requesting a new assessment."""

    step: int


class AnswerSubmitItem(BaseModel):
    """Single answer submission."""

    question_id: uuid.UUID
    selected_index: int = Field(..., ge=0)


class AssessmentSubmitRequest(BaseModel):
    """Body for assessment submit. Unanswered questions count as wrong."""

    answers: List[AnswerSubmitItem] = []

    def to_answers(self) -> List[SubmittedAnswer]:
        return [SubmittedAnswer(**a.model_dump()) for a in self.answers]


class AnswerRecordResponse(BaseModel):
    question_id: uuid.UUID
    selected_index: int
    is_correct: bool


class AssessmentResponse(BaseModel):
    """Assessment summary; result fields are meaningful once completed."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    step: int
    levels: List[str]
    status: str
    question_count: int
    time_limit_minutes: int
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    score: int = 0
    percentage: float = 0.0
    achieved_level: Optional[str] = None
    certificate_level: Optional[str] = None
    can_proceed_to_next: bool = False


class AssessmentDetailResponse(AssessmentResponse):
    """Assessment with its questions. The answer key appears only once it is over."""

    remaining_seconds: int
    questions: List[Union[QuestionReview, QuestionPublic]] = []
    answers: List[AnswerRecordResponse] = []

    @classmethod
    def from_detail(cls, detail: AssessmentDetail) -> "AssessmentDetailResponse":
        assessment = detail.assessment
        finished = assessment.status_enum in TERMINAL_STATUSES
        question_schema = QuestionReview if finished else QuestionPublic
        base = AssessmentResponse.model_validate(assessment)
        return cls(
            **base.model_dump(),
            remaining_seconds=detail.remaining_seconds,
            questions=[question_schema.model_validate(q, from_attributes=True) for q in detail.questions],
            answers=[AnswerRecordResponse(**a) for a in assessment.answers] if finished else [],
        )


class SubmissionResponse(BaseModel):
    """Result of a scored submission."""

    assessment: AssessmentResponse
    answers: List[AnswerRecordResponse]
    certificate: Optional[CertificateResponse] = None

    @classmethod
    def from_result(cls, result: SubmissionResult) -> "SubmissionResponse":
        return cls(
            assessment=AssessmentResponse.model_validate(result.assessment),
            answers=[AnswerRecordResponse(**a) for a in result.assessment.answers],
            certificate=(
                CertificateResponse.from_certificate(result.certificate)
                if result.certificate is not None
                else None
            ),
        )
