"""
Event type definitions using Pydantic for validation.

These are the payload schemas for events logged to the audit trail.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BaseEvent(BaseModel):
    """Base event payload structure."""

    model_config = ConfigDict(extra="allow")

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Assessment Events

class AssessmentEvent(BaseEvent):
    """Assessment lifecycle event payloads."""

    step: int
    status: Optional[str] = None


class AssessmentCreatedEvent(AssessmentEvent):
    """Assessment creation event."""

    levels: List[str]
    question_count: int
    target_count: int
    time_limit_minutes: int


class AssessmentCompletedEvent(AssessmentEvent):
    """Scored submission event."""

    score: int
    total_questions: int
    percentage: float
    achieved_level: Optional[str] = None
    certificate_level: Optional[str] = None
    can_proceed_to_next: bool = False
    ignored_answers: int = 0


# Progression Events

class RetakeLockedEvent(BaseEvent):
    """Step-1 hard-fail lockout."""

    assessment_id: uuid.UUID
    percentage: float


# Certificate Events

class CertificateEvent(BaseEvent):
    """Certificate event payloads."""

    certificate_number: str
    level: str


class CertificateIssuedEvent(CertificateEvent):
    """Certificate issuance event."""

    assessment_id: uuid.UUID
    step: int
    score: float


class CertificateRevokedEvent(CertificateEvent):
    """Certificate revocation event."""

    reason: Optional[str] = None
