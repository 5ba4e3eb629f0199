"""
Kernel Data Models

Core SQLAlchemy models: users and their progression, the question pool,
assessments, certificates and the audit log.
"""

from certpath.kernel.models.base import Base, TimestampMixin, as_utc, generate_uuid, utcnow
from certpath.kernel.models.user import User, UserRole, AssessmentHistoryEntry
from certpath.kernel.models.question import (
    CompetencyLevel,
    Question,
    QuestionDifficulty,
    STEP_LEVELS,
    VALID_STEPS,
    step_for_level,
)
from certpath.kernel.models.assessment import Assessment, AssessmentStatus, TERMINAL_STATUSES
from certpath.kernel.models.certificate import Certificate, CertificateStatus
from certpath.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "as_utc",
    "generate_uuid",
    "utcnow",
    # User
    "User",
    "UserRole",
    "AssessmentHistoryEntry",
    # Questions
    "CompetencyLevel",
    "Question",
    "QuestionDifficulty",
    "STEP_LEVELS",
    "VALID_STEPS",
    "step_for_level",
    # Assessments
    "Assessment",
    "AssessmentStatus",
    "TERMINAL_STATUSES",
    # Certificates
    "Certificate",
    "CertificateStatus",
    # Event Log
    "EventLog",
    "EventType",
]
