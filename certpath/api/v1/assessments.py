"""
Assessment endpoints - lifecycle of a single assessment.
"""

import uuid

from fastapi import APIRouter

from certpath.api.deps import AssessmentSvc
from certpath.schemas.assessment import (
    AssessmentDetailResponse,
    AssessmentResponse,
    AssessmentSubmitRequest,
    SubmissionResponse,
)

router = APIRouter()


@router.get("/{assessment_id}", response_model=AssessmentDetailResponse)
async def get_assessment(assessment_id: uuid.UUID, service: AssessmentSvc):
    """Assessment with its questions; the answer key is hidden until it is over."""
    detail = await service.get_assessment(assessment_id)
    return AssessmentDetailResponse.from_detail(detail)


@router.post("/{assessment_id}/start", response_model=AssessmentResponse)
async def start_assessment(assessment_id: uuid.UUID, service: AssessmentSvc):
    assessment = await service.begin_assessment(assessment_id)
    return AssessmentResponse.model_validate(assessment)


@router.post("/{assessment_id}/submit", response_model=SubmissionResponse)
async def submit_assessment(
    assessment_id: uuid.UUID,
    request: AssessmentSubmitRequest,
    service: AssessmentSvc,
):
    """Score answers; updates progression and issues a certificate when earned."""
    result = await service.submit_assessment(assessment_id, request.to_answers())
    return SubmissionResponse.from_result(result)


@router.post("/{assessment_id}/expire", response_model=AssessmentResponse)
async def expire_assessment(assessment_id: uuid.UUID, service: AssessmentSvc):
    """Discard an in-progress assessment whose time has run out."""
    assessment = await service.expire_assessment(assessment_id)
    return AssessmentResponse.model_validate(assessment)
