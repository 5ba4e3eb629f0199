"""
Pydantic schemas for certificate API.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from certpath.kernel.models.certificate import Certificate


class CertificateResponse(BaseModel):
    """Certificate as returned by listing and verification endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    certificate_number: str
    user_id: uuid.UUID
    assessment_id: uuid.UUID
    level: str
    step: int
    score: float
    competencies: List[str] = []
    issued_at: datetime
    valid_until: Optional[datetime] = None
    status: str
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    is_valid: bool = True

    @classmethod
    def from_certificate(
        cls,
        certificate: Certificate,
        now: Optional[datetime] = None,
    ) -> "CertificateResponse":
        response = cls.model_validate(certificate, from_attributes=True)
        return response.model_copy(update={"is_valid": certificate.is_valid_at(now)})


class CertificateRevokeRequest(BaseModel):
    """Body for certificate revocation."""

    reason: Optional[str] = Field(default=None, max_length=500)
