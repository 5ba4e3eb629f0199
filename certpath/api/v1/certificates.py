"""
Certificate endpoints - public verification and revocation.
"""

import uuid
from typing import Optional

from fastapi import APIRouter

from certpath.api.deps import AssessmentSvc
from certpath.schemas.certificate import CertificateResponse, CertificateRevokeRequest

router = APIRouter()


@router.get("/{certificate_number}", response_model=CertificateResponse)
async def verify_certificate(certificate_number: str, service: AssessmentSvc):
    """Look up a certificate by its number; is_valid reports revocation and expiry."""
    certificate = await service.verify_certificate(certificate_number)
    return CertificateResponse.from_certificate(certificate)


@router.post("/{certificate_id}/revoke", response_model=CertificateResponse)
async def revoke_certificate(
    certificate_id: uuid.UUID,
    service: AssessmentSvc,
    request: Optional[CertificateRevokeRequest] = None,
):
    reason = request.reason if request is not None else None
    certificate = await service.revoke_certificate(certificate_id, reason)
    return CertificateResponse.from_certificate(certificate)
