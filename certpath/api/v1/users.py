"""
User-scoped endpoints - progression, assessments and certificates of one user.
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from certpath.api.deps import AssessmentSvc
from certpath.schemas.assessment import AssessmentRequest, AssessmentResponse
from certpath.schemas.certificate import CertificateResponse
from certpath.schemas.progression import ProgressResponse

router = APIRouter()


@router.get("/{user_id}/progress", response_model=ProgressResponse)
async def get_progress(user_id: uuid.UUID, service: AssessmentSvc):
    """Current level, completed steps, retake flag, next available step and history."""
    report = await service.get_progress(user_id)
    return ProgressResponse.from_report(report)


@router.get("/{user_id}/assessments", response_model=List[AssessmentResponse])
async def list_assessments(user_id: uuid.UUID, service: AssessmentSvc):
    assessments = await service.list_assessments(user_id)
    return [AssessmentResponse.model_validate(a) for a in assessments]


@router.post(
    "/{user_id}/assessments",
    response_model=AssessmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_assessment(
    user_id: uuid.UUID,
    request: AssessmentRequest,
    service: AssessmentSvc,
):
    """Create a pending assessment for a step the user is eligible for."""
    assessment = await service.request_assessment(user_id, request.step)
    return AssessmentResponse.model_validate(assessment)


@router.get("/{user_id}/certificates", response_model=List[CertificateResponse])
async def list_certificates(user_id: uuid.UUID, service: AssessmentSvc):
    certificates = await service.list_certificates(user_id)
    return [CertificateResponse.from_certificate(c) for c in certificates]
